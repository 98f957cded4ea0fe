"""Run result reporting: live result lines, summaries, JSON and HTML.

Text lines are emitted while a run is in progress; the summary, JSON
document and HTML report are produced from the finished ``RunResult``.
HTML is rendered from a Jinja2 template shipped with the package.

Usage::

    report = ReportGenerator(run_result, source="assertions.yaml")
    print(report.summary_text())
    report.generate_html("output/report.html")
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from typing import TYPE_CHECKING, Any

from ..core.assertion import Result, Verdict

if TYPE_CHECKING:
    from ..core.runner import RunResult

logger = logging.getLogger(__name__)

TEMPLATE_DIR = Path(__file__).parent / "templates"
DEFAULT_TEMPLATE = "report_template.html"

MAX_NAME_LENGTH = 60

_STATUS_ICON = {Verdict.PASS: "✓", Verdict.FAIL: "✗", Verdict.ERROR: "✗"}


def truncate_name(name: str, limit: int = MAX_NAME_LENGTH) -> str:
    """Shorten *name* to *limit* characters, ending in ``...``."""
    if len(name) <= limit:
        return name
    return name[: limit - 3] + "..."


def format_result_line(result: Result, verbose: bool = False) -> str:
    """Format one result for the live output stream.

    Args:
        result: The result to format.
        verbose: Append error/actual/expected lines for non-passing results.

    Returns:
        One line, or several when *verbose* applies; no trailing newline.

    """
    status = result.status
    lines = [
        f"{_STATUS_ICON[status]} [{status.value.upper()}] "
        f"{truncate_name(result.assertion.display_name)} @ {result.target}"
    ]
    if verbose and status != Verdict.PASS:
        if result.error is not None:
            lines.append(f"    error: {result.error}")
        if result.actual_value:
            lines.append(f"    actual: {result.actual_value}")
        if result.assertion.expected:
            lines.append(f"    expected: {result.assertion.expected}")
    return "\n".join(lines)


@dataclass
class ReportData:
    """Data model passed to the Jinja2 template.

    Attributes:
        title: Report title.
        source: Assertion file the run came from.
        timestamp: ISO-8601 generation timestamp.
        environment: Free-form metadata shown in the header.

    """

    title: str = "netsert Assertion Report"
    source: str = ""
    timestamp: str = field(default_factory=lambda: datetime.now(UTC).isoformat())
    environment: dict[str, str] = field(default_factory=dict)


class ReportGenerator:
    """Render a finished run as text, JSON or HTML.

    Args:
        run_result: The finished run.
        source: Path of the assertion file, shown in summaries.
        template_dir: Directory containing Jinja2 templates.
        template_name: Name of the HTML report template.

    """

    def __init__(
        self,
        run_result: RunResult,
        source: str = "",
        template_dir: Path = TEMPLATE_DIR,
        template_name: str = DEFAULT_TEMPLATE,
    ) -> None:
        """Initialize the report generator with a run and template settings."""
        self._run = run_result
        self._template_dir = template_dir
        self._template_name = template_name
        self._data = ReportData(source=source)
        self._logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    def set_title(self, title: str) -> None:
        """Set the report title."""
        self._data.title = title

    def set_environment(self, env: dict[str, str]) -> None:
        """Set metadata (inventory, group, versions, etc.)."""
        self._data.environment = env

    # -- Text ---------------------------------------------------------------

    def summary_text(self) -> str:
        """Return the end-of-run summary block."""
        run = self._run
        lines = [
            f"Completed in {run.duration:.3f}s",
            f"  Total:  {run.total}",
            f"  Passed: {run.passed}",
            f"  Failed: {run.failed}",
        ]
        if run.errored:
            lines.append(f"  Errors: {run.errored}")
        if run.cancelled:
            lines.append("  (cancelled before completion)")
        return "\n".join(lines)

    # -- JSON ---------------------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        """Return the machine-readable report."""
        run = self._run
        return {
            "summary": {
                "file": self._data.source,
                "total": run.total,
                "passed": run.passed,
                "failed": run.failed,
                "errors": run.errored,
                "duration": f"{run.duration:.3f}s",
                "success": run.success,
                "cancelled": run.cancelled,
            },
            "results": [r.to_dict() for r in run.results],
        }

    def to_json(self, indent: int = 2) -> str:
        """Serialize ``to_dict()`` as JSON text."""
        return json.dumps(self.to_dict(), indent=indent)

    # -- HTML ---------------------------------------------------------------

    def generate_html(self, output_path: str | Path) -> Path:
        """Render the HTML report and write to disk.

        Args:
            output_path: Destination file path.

        Returns:
            Path to the generated report file.

        """
        output = Path(output_path)
        output.parent.mkdir(parents=True, exist_ok=True)

        html = self.render_html()
        output.write_text(html, encoding="utf-8")
        self._logger.info("Report generated: %s", output)
        return output

    def render_html(self) -> str:
        """Render the Jinja2 template with the run data."""
        from jinja2 import Environment, FileSystemLoader  # type: ignore[import-untyped]

        env = Environment(
            loader=FileSystemLoader(str(self._template_dir)),
            autoescape=True,
        )
        template = env.get_template(self._template_name)
        run = self._run
        pass_rate = (run.passed / run.total * 100) if run.total else 0.0
        return template.render(
            data=self._data,
            title=self._data.title,
            source=self._data.source,
            timestamp=self._data.timestamp,
            environment=self._data.environment,
            summary=self.to_dict()["summary"],
            results=[r.to_dict() for r in run.results],
            pass_rate=pass_rate,
        )
