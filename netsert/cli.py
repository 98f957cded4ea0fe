"""Command line interface for netsert.

Commands:
    run       Evaluate an assertion file against its targets.
    validate  Check an assertion file without connecting.
    generate  Baseline assertions from live device state.
    get       Fetch and print one path.
    paths     Convert between short and canonical paths.
    version   Print the version.

Device sessions come from ``make_client_factory``; tests replace it to
route every session to an in-memory network.
"""

from __future__ import annotations

import json
import logging
import signal
import sys
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

import typer

from netsert import __version__
from netsert.client.base_client import ConnectionInfo
from netsert.client.client_factory import ClientFactory
from netsert.core.assertion import AssertionFile, Result, Verdict
from netsert.core.exceptions import GeneratorError, InventoryError, NetsertError
from netsert.core.path import compact_path, expand_short_path
from netsert.core.runner import DEFAULT_PARALLEL, DEFAULT_TIMEOUT, DEFAULT_WORKERS
from netsert.inventory.inventory_manager import Inventory, auto_discover, load

logger = logging.getLogger("netsert.cli")

app = typer.Typer(name="netsert", help="Declarative network state assertions using gNMI")
paths_app = typer.Typer(name="paths", help="Convert between short and canonical paths")
app.add_typer(paths_app, name="paths")

GENERATE_HEADER = "# Generated by netsert from {source}\n# Review and edit as needed\n\n"


def make_client_factory() -> ClientFactory:
    """Return the factory used to open device sessions."""
    return ClientFactory()


def configure_logging(verbose: bool) -> None:
    """Send log records to stderr, at DEBUG with --verbose and WARNING otherwise."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)-8s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def _fail(message: object) -> typer.Exit:
    """Print *message* to stderr and return the exit to raise."""
    typer.echo(f"Error: {message}", err=True)
    return typer.Exit(1)


@contextmanager
def _cancel_on_signals(cancel_event: threading.Event) -> Iterator[None]:
    """Set *cancel_event* on SIGINT/SIGTERM for the duration of the block."""

    def handler(signum: int, frame: object) -> None:
        typer.echo("\nInterrupted, stopping...", err=True)
        cancel_event.set()

    if threading.current_thread() is not threading.main_thread():
        yield
        return

    previous = {sig: signal.signal(sig, handler) for sig in (signal.SIGINT, signal.SIGTERM)}
    try:
        yield
    finally:
        for sig, old in previous.items():
            signal.signal(sig, old)


def _resolve_timeout(timeout: float | None, config_timeout: float | None) -> float:
    if timeout is not None:
        return timeout
    return config_timeout if config_timeout is not None else DEFAULT_TIMEOUT


def _report_environment(
    inventory: Inventory | None,
    group: str | None,
    workers: int,
    parallel: int,
    timeout: float,
) -> dict[str, str]:
    """Describe how the run was set up, for the report header."""
    env = {
        "netsert": __version__,
        "workers": str(workers),
        "parallel": str(parallel),
        "timeout": f"{timeout:g}s",
    }
    if inventory is not None and inventory.source is not None:
        env["inventory"] = str(inventory.source)
    if group:
        env["group"] = group
    return env


def _load_inventory(inventory_file: str | None, required: bool, reason: str) -> Inventory | None:
    if inventory_file:
        return load(inventory_file)
    if not required:
        return None
    inventory = auto_discover()
    if inventory is None:
        raise InventoryError(f"{reason} - create inventory.yaml or pass -i")
    logger.info("Using inventory: %s", inventory.source)
    return inventory


@app.command()
def run(
    file: str = typer.Argument(help="Path to assertion YAML file"),
    workers: int = typer.Option(
        DEFAULT_WORKERS, "--workers", "-w", min=1, help="Number of concurrent targets"
    ),
    parallel: int = typer.Option(
        DEFAULT_PARALLEL, "--parallel", "-p", min=1, help="Parallel assertions per target"
    ),
    inventory_file: str | None = typer.Option(
        None, "--inventory", "-i", help="Inventory file (YAML or INI format)"
    ),
    group: str | None = typer.Option(
        None, "--group", "-g", help="Run only against hosts in this group"
    ),
    timeout: float | None = typer.Option(
        None, "--timeout", "-t", min=0.001, help="Timeout per assertion in seconds"
    ),
    output: str = typer.Option("text", "--output", "-o", help="Output format: text, json or html"),
    report: str | None = typer.Option(None, "--report", help="Also write an HTML report here"),
    title: str | None = typer.Option(None, "--title", help="Title of the HTML report"),
    fail_fast: bool = typer.Option(
        False, "--fail-fast", help="Stop starting new work after the first failure"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show failure details"),
):
    """Run assertions against targets."""
    from netsert.config import load_config
    from netsert.core.loader import load_file
    from netsert.core.runner import Runner
    from netsert.reporting.report_generator import ReportGenerator, format_result_line

    configure_logging(verbose)
    if output not in ("text", "json", "html"):
        raise _fail(f"unknown output format '{output}' (use text, json or html)")

    try:
        assertion_file = load_file(file)

        has_group_refs = any(t.is_group_reference for t in assertion_file.targets)
        reason = (
            "assertion file contains @group references but no inventory found"
            if has_group_refs
            else "--group requires an inventory file"
        )
        inventory = _load_inventory(inventory_file, has_group_refs or bool(group), reason)
        if inventory is not None:
            assertion_file = inventory.expand_groups(assertion_file, group)
            if not assertion_file.targets:
                if group:
                    raise InventoryError(f"no targets match group '{group}'")
                raise InventoryError("no targets found after expanding inventory groups")

        cfg = load_config()
        if inventory is not None:
            d = inventory.defaults
            cfg.merge_defaults(d.username, d.password, d.insecure)
        per_assertion_timeout = _resolve_timeout(timeout, cfg.default_timeout())
    except NetsertError as exc:
        raise _fail(exc) from exc

    cancel_event = threading.Event()
    text_output = output == "text"

    def on_result(result: Result) -> None:
        if text_output:
            typer.echo(format_result_line(result, verbose))
        if fail_fast and result.status != Verdict.PASS:
            cancel_event.set()

    runner = Runner(
        make_client_factory(),
        workers=workers,
        parallel=parallel,
        timeout=per_assertion_timeout,
        credentials=cfg,
        on_result=on_result,
    )

    if text_output:
        typer.echo(f"Running assertions from {file}\n")
    try:
        with _cancel_on_signals(cancel_event):
            run_result = runner.run(assertion_file, cancel_event=cancel_event)
    except NetsertError as exc:
        raise _fail(exc) from exc

    reporter = ReportGenerator(run_result, source=file)
    if title:
        reporter.set_title(title)
    reporter.set_environment(
        _report_environment(inventory, group, workers, parallel, per_assertion_timeout)
    )
    if output == "json":
        typer.echo(reporter.to_json())
    elif output == "html":
        typer.echo(reporter.render_html())
    else:
        typer.echo("")
        typer.echo(reporter.summary_text())
    if report:
        reporter.generate_html(report)
        if text_output:
            typer.echo(f"Report: {report}")

    if not run_result.success or run_result.cancelled:
        raise typer.Exit(1)


@app.command()
def validate(
    file: str = typer.Argument(help="Path to assertion YAML file"),
    output: str = typer.Option("text", "--output", "-o", help="Output format: text or json"),
):
    """Validate assertion file syntax."""
    from netsert.core.loader import load_file

    try:
        assertion_file = load_file(file)
    except NetsertError as exc:
        raise _fail(exc) from exc

    targets = len(assertion_file.targets)
    assertions = assertion_file.assertion_count
    if output == "json":
        typer.echo(json.dumps({"valid": True, "targets": targets, "assertions": assertions}, indent=2))
    else:
        typer.echo(f"✓ Valid: {targets} targets, {assertions} assertions")


def _connection_info(
    target: str,
    username: str,
    password: str,
    insecure: bool,
    timeout: float | None,
) -> ConnectionInfo:
    from netsert.config import load_config

    cfg = load_config()
    info = ConnectionInfo(
        address=target,
        username=username,
        password=password,
        insecure=insecure,
        timeout=_resolve_timeout(timeout, cfg.default_timeout()),
    )
    return info.with_defaults(*cfg.get_credentials(target))


@app.command()
def get(
    target: str = typer.Argument(help="Device address (host:port)"),
    path: str = typer.Argument(help="Canonical or short path to query"),
    username: str = typer.Option("", "--username", "-u", help="Username (or use config file)"),
    password: str = typer.Option("", "--password", "-P", help="Password (or use config file)"),
    insecure: bool = typer.Option(False, "--insecure", "-k", help="Use a plaintext session"),
    timeout: float | None = typer.Option(None, "--timeout", "-t", min=0.001, help="Timeout in seconds"),
    output: str = typer.Option("text", "--output", "-o", help="Output format: text or json"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
):
    """Query a single path on a device to discover available data."""
    from netsert.core.value import extract_value

    configure_logging(verbose)
    try:
        canonical = expand_short_path(path)
        info = _connection_info(target, username, password, insecure, timeout)
        with make_client_factory().create(info) as client:
            fetched = client.fetch(canonical, timeout=info.timeout)
    except NetsertError as exc:
        raise _fail(exc) from exc

    value = extract_value(fetched.value)
    if output == "json":
        typer.echo(
            json.dumps(
                {"target": target, "path": canonical, "exists": fetched.exists, "value": value},
                indent=2,
            )
        )
        return

    typer.echo(f"Path: {canonical}")
    if not fetched.exists:
        typer.echo("Exists: false")
        return
    typer.echo(f"Value: {value}")


@app.command()
def generate(
    target: str = typer.Argument(help="Device address or @group"),
    gen: list[str] | None = typer.Option(
        None, "--gen", help="Generator to run (repeatable). Default: all"
    ),
    out_file: str | None = typer.Option(None, "--file", "-f", help="Output file (default: stdout)"),
    username: str = typer.Option("", "--username", "-u", help="Username (or use config file)"),
    password: str = typer.Option("", "--password", "-P", help="Password (or use config file)"),
    insecure: bool = typer.Option(False, "--insecure", "-k", help="Use a plaintext session"),
    inventory_file: str | None = typer.Option(
        None, "--inventory", "-i", help="Inventory file (for @group targets)"
    ),
    timeout: float | None = typer.Option(None, "--timeout", "-t", min=0.001, help="Timeout in seconds"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
):
    """Generate assertions from current device state."""
    from netsert.core.loader import dump
    from netsert.generate import GenerateOptions, default_generators, generate_file

    configure_logging(verbose)
    registry = default_generators()
    names = gen or sorted(registry)

    try:
        unknown = [n for n in names if n not in registry]
        if unknown:
            raise GeneratorError(
                f"Unknown generator(s): {', '.join(unknown)}",
                details={"available": ", ".join(sorted(registry))},
            )

        hosts = [target]
        if target.startswith("@"):
            group = target[1:]
            inventory = _load_inventory(inventory_file, True, f"target {target} requires inventory")
            members = inventory.get_group(group)
            if members is None:
                raise InventoryError(
                    f"group '{group}' not found in inventory",
                    details={"groups": ", ".join(inventory.list_groups())},
                )
            if not members:
                raise InventoryError(f"group '{group}' is empty")
            hosts = [inventory.defaults.address(m) for m in members]

        factory = make_client_factory()
        targets = []
        for host in hosts:
            info = _connection_info(host, username, password, insecure, timeout)
            options = GenerateOptions(
                target=host,
                username=info.username,
                password=info.password,
                insecure=info.insecure,
            )
            with factory.create(info) as client:
                generated = generate_file(client, names, registry, options)
            targets.extend(generated.targets)
            if len(hosts) > 1:
                typer.echo(
                    f"Generated from {host} ({generated.assertion_count} assertions)", err=True
                )
    except NetsertError as exc:
        raise _fail(exc) from exc

    combined = AssertionFile(targets=tuple(targets))
    text = dump(combined, header=GENERATE_HEADER.format(source=target))
    if out_file:
        Path(out_file).write_text(text, encoding="utf-8")
        typer.echo(
            f"Generated {combined.assertion_count} assertions ({len(targets)} targets) to {out_file}"
        )
    else:
        typer.echo(text, nl=False)


@paths_app.command("expand")
def paths_expand(path: str = typer.Argument(help="Short or canonical path")):
    """Print the canonical form of a path."""
    from netsert.core.path import parse_path

    try:
        typer.echo(str(parse_path(expand_short_path(path))))
    except NetsertError as exc:
        raise _fail(exc) from exc


@paths_app.command("compact")
def paths_compact(path: str = typer.Argument(help="Canonical path")):
    """Print the short form of a canonical path, if one exists."""
    typer.echo(compact_path(path))


@app.command()
def version():
    """Show the netsert version."""
    typer.echo(f"netsert {__version__}")


if __name__ == "__main__":
    app()
