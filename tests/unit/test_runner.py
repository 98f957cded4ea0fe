"""Unit tests for the concurrent Runner."""

from __future__ import annotations

import threading
import time
from typing import Any

import pytest
from netsert.config import Config, Defaults, TargetSettings
from netsert.core.assertion import (
    Assertion,
    AssertionFile,
    Predicate,
    PredicateKind,
    Result,
    Target,
    Verdict,
)
from netsert.core.exceptions import ConnectError, FetchError
from netsert.core.runner import DEFAULT_PARALLEL, DEFAULT_TIMEOUT, DEFAULT_WORKERS, Runner, RunResult

from tests.conftest import HOSTNAME, IN_OCTETS, OPER_STATUS, StubNetwork


def equals(path: str, value: str, name: str = "") -> Assertion:
    return Assertion(path=path, predicate=Predicate(PredicateKind.EQUALS, value), name=name)


def many_assertions(count: int) -> tuple[Assertion, ...]:
    return tuple(equals(f"/counters/c{i}", str(i)) for i in range(count))


class TestDefaults:
    """Tests for runner constants."""

    def test_default_constants(self) -> None:
        assert DEFAULT_WORKERS == 10
        assert DEFAULT_PARALLEL == 5
        assert DEFAULT_TIMEOUT == 30.0

    def test_limits_clamped_to_one(self) -> None:
        runner = Runner(workers=0, parallel=-3)
        assert runner.workers == 1
        assert runner.parallel == 1


class TestRun:
    """Tests for end-to-end execution against the stub network."""

    def test_single_target_pass_fail_error(
        self,
        network: StubNetwork,
        spine_values: dict[str, Any],
        spine_file: AssertionFile,
    ) -> None:
        network.add_device("spine1:6030", spine_values)
        run = Runner(network.factory()).run(spine_file)

        assert run.total == 3
        assert (run.passed, run.failed, run.errored) == (1, 1, 1)
        assert not run.success
        assert [r.status for r in run.results] == [Verdict.PASS, Verdict.FAIL, Verdict.ERROR]
        assert run.results[1].actual_value == "spine1"
        assert all(r.target == "spine1:6030" for r in run.results)
        assert network.closed == ["spine1:6030"]

    def test_loaded_short_path_end_to_end(self, network: StubNetwork) -> None:
        from netsert.core.loader import parse

        network.add_device("spine1:6030", {OPER_STATUS: "UP"})
        assertion_file = parse(
            "targets:\n"
            "  - host: spine1:6030\n"
            "    assertions:\n"
            "      - path: interface[Ethernet1]/state/oper-status\n"
            "        equals: UP\n"
        )

        run = Runner(network.factory()).run(assertion_file)

        assert (run.total, run.passed, run.failed, run.errored) == (1, 1, 0, 0)
        assert run.results[0].passed
        assert run.results[0].actual_value == "UP"

    def test_results_follow_declaration_order(self, network: StubNetwork) -> None:
        hosts = [f"leaf{i}:6030" for i in range(4)]
        for host in hosts:
            network.add_device(host, {f"/counters/c{i}": i for i in range(6)})
        network.delay = 0.01
        targets = tuple(Target(host=h, assertions=many_assertions(6)) for h in hosts)

        run = Runner(network.factory(), workers=4, parallel=3).run(AssertionFile(targets=targets))

        assert [(r.target, r.assertion.path) for r in run.results] == [
            (h, f"/counters/c{i}") for h in hosts for i in range(6)
        ]
        assert run.success

    def test_outcome_independent_of_concurrency(self, network: StubNetwork) -> None:
        values = {f"/counters/c{i}": i if i % 3 else i + 1 for i in range(12)}
        network.add_device("spine1:6030", values)
        assertion_file = AssertionFile(
            targets=(Target(host="spine1:6030", assertions=many_assertions(12)),)
        )

        serial = Runner(network.factory(), workers=1, parallel=1).run(assertion_file)
        concurrent = Runner(network.factory(), workers=8, parallel=8).run(assertion_file)

        assert [r.status for r in serial.results] == [r.status for r in concurrent.results]
        assert serial.failed == concurrent.failed == 4

    def test_parallel_ceiling_respected(self, network: StubNetwork) -> None:
        network.add_device("spine1:6030", {f"/counters/c{i}": i for i in range(20)})
        network.delay = 0.02
        assertion_file = AssertionFile(
            targets=(Target(host="spine1:6030", assertions=many_assertions(20)),)
        )

        run = Runner(network.factory(), parallel=3).run(assertion_file)

        assert run.total == 20
        assert 1 <= network.max_in_flight["spine1:6030"] <= 3

    def test_workers_ceiling_across_targets(self, network: StubNetwork) -> None:
        hosts = [f"leaf{i}:6030" for i in range(6)]
        for host in hosts:
            network.add_device(host, {f"/counters/c{i}": i for i in range(2)})
        network.delay = 0.03
        targets = tuple(Target(host=h, assertions=many_assertions(2)) for h in hosts)

        run = Runner(network.factory(), workers=2, parallel=2).run(AssertionFile(targets=targets))

        assert run.total == 12
        assert 1 <= network.max_open_sessions <= 2
        assert sorted(network.closed) == sorted(hosts)

    def test_fetch_error_recorded_without_affecting_siblings(self, network: StubNetwork) -> None:
        network.add_device(
            "spine1:6030",
            {OPER_STATUS: FetchError("rpc error: Unavailable"), HOSTNAME: "spine1"},
        )
        assertion_file = AssertionFile(
            targets=(
                Target(
                    host="spine1:6030",
                    assertions=(equals(OPER_STATUS, "UP"), equals(HOSTNAME, "spine1")),
                ),
            )
        )

        run = Runner(network.factory()).run(assertion_file)

        assert [r.status for r in run.results] == [Verdict.ERROR, Verdict.PASS]
        assert isinstance(run.results[0].error, FetchError)

    def test_unexpected_fetch_exception_becomes_fetch_error(self, network: StubNetwork) -> None:
        network.add_device("spine1:6030", {OPER_STATUS: RuntimeError("boom")})
        assertion_file = AssertionFile(
            targets=(Target(host="spine1:6030", assertions=(equals(OPER_STATUS, "UP"),)),)
        )

        run = Runner(network.factory()).run(assertion_file)

        assert isinstance(run.results[0].error, FetchError)
        assert "boom" in str(run.results[0].error)

    def test_numeric_value_extracted(self, network: StubNetwork) -> None:
        network.add_device("spine1:6030", {IN_OCTETS: 1000})
        assertion = Assertion(path=IN_OCTETS, predicate=Predicate(PredicateKind.GT, "100"))
        run = Runner(network.factory()).run(
            AssertionFile(targets=(Target(host="spine1:6030", assertions=(assertion,)),))
        )
        assert run.results[0].passed
        assert run.results[0].actual_value == "1000"

    def test_empty_file(self) -> None:
        run = Runner().run(AssertionFile())
        assert run == RunResult(results=(), duration=run.duration, cancelled=False)
        assert run.success


class TestConnectErrors:
    """Tests for fatal connect failures."""

    def test_connect_error_raised_after_other_targets_finish(self, network: StubNetwork) -> None:
        network.add_device("spine1:6030", {HOSTNAME: "spine1"})
        network.unreachable = {"spine2:6030"}
        assertion_file = AssertionFile(
            targets=(
                Target(host="spine1:6030", assertions=(equals(HOSTNAME, "spine1"),)),
                Target(host="spine2:6030", assertions=(equals(HOSTNAME, "spine2"),)),
            )
        )

        with pytest.raises(ConnectError) as exc_info:
            Runner(network.factory()).run(assertion_file)

        assert exc_info.value.device == "spine2:6030"
        assert ("spine1:6030", HOSTNAME) in network.fetched
        assert network.closed == ["spine1:6030"]

    def test_first_connect_error_in_file_order(self, network: StubNetwork) -> None:
        network.unreachable = {"a:6030", "b:6030"}
        assertion_file = AssertionFile(
            targets=(
                Target(host="a:6030", assertions=(equals(HOSTNAME, "a"),)),
                Target(host="b:6030", assertions=(equals(HOSTNAME, "b"),)),
            )
        )
        with pytest.raises(ConnectError) as exc_info:
            Runner(network.factory(), workers=2).run(assertion_file)
        assert exc_info.value.device == "a:6030"

    def test_unsupported_transport_is_connect_error(self, spine_file: AssertionFile) -> None:
        from netsert.client.client_factory import ClientFactory

        factory = ClientFactory()
        factory._registry.clear()
        with pytest.raises(ConnectError, match="Unsupported transport"):
            Runner(factory).run(spine_file)


class TestCredentials:
    """Tests for credential merging."""

    def test_config_fills_empty_fields(self, network: StubNetwork) -> None:
        network.add_device("spine1:6030", {HOSTNAME: "spine1"})
        cfg = Config(
            defaults=Defaults(username="admin", password="admin", insecure=True),
            targets={"spine1:6030": TargetSettings(password="secret")},
        )
        assertion_file = AssertionFile(
            targets=(
                Target(
                    host="spine1:6030",
                    username="ops",
                    assertions=(equals(HOSTNAME, "spine1"),),
                ),
            )
        )

        Runner(network.factory(), credentials=cfg).run(assertion_file)

        info = network.connections[0]
        assert (info.username, info.password, info.insecure) == ("ops", "secret", True)

    def test_without_provider_uses_file_values(self, network: StubNetwork) -> None:
        network.add_device("spine1:6030", {})
        target = Target(host="spine1:6030", username="u", password="p", insecure=False)
        Runner(network.factory()).run(AssertionFile(targets=(target,)))
        info = network.connections[0]
        assert (info.username, info.password, info.insecure) == ("u", "p", False)


class TestTimeouts:
    """Tests for the per-assertion timeout handed to each fetch."""

    def test_runner_timeout_reaches_fetch(
        self,
        network: StubNetwork,
        spine_values: dict[str, Any],
        spine_file: AssertionFile,
    ) -> None:
        network.add_device("spine1:6030", spine_values)
        Runner(network.factory(), timeout=7.5).run(spine_file)

        assert len(network.timeouts) == 3
        assert {timeout for _, _, timeout in network.timeouts} == {7.5}
        assert network.connections[0].timeout == 7.5

    def test_deadline_clamps_fetch_timeout(
        self,
        network: StubNetwork,
        spine_values: dict[str, Any],
        spine_file: AssertionFile,
    ) -> None:
        network.add_device("spine1:6030", spine_values)
        run = Runner(network.factory(), timeout=30.0).run(
            spine_file, deadline=time.monotonic() + 2.0
        )

        assert run.total == 3
        assert not run.cancelled
        for _, _, timeout in network.timeouts:
            assert timeout is not None
            assert 0 < timeout <= 2.0
        assert network.connections[0].timeout <= 2.0


class TestCancellation:
    """Tests for cancellation, deadlines and the live callback."""

    def test_deadline_lapsing_after_last_result_is_not_cancelled(
        self,
        network: StubNetwork,
        spine_values: dict[str, Any],
        spine_file: AssertionFile,
    ) -> None:
        network.add_device("spine1:6030", spine_values)
        seen: list[Result] = []

        def on_result(result: Result) -> None:
            seen.append(result)
            if len(seen) == 3:
                time.sleep(0.3)

        run = Runner(network.factory(), on_result=on_result).run(
            spine_file, deadline=time.monotonic() + 0.2
        )

        assert run.total == 3
        assert not run.cancelled

    def test_cancel_after_last_result_is_not_cancelled(
        self,
        network: StubNetwork,
        spine_values: dict[str, Any],
        spine_file: AssertionFile,
    ) -> None:
        network.add_device("spine1:6030", spine_values)
        cancel = threading.Event()
        seen: list[Result] = []

        def on_result(result: Result) -> None:
            seen.append(result)
            if len(seen) == 3:
                cancel.set()

        run = Runner(network.factory(), on_result=on_result).run(spine_file, cancel_event=cancel)

        assert run.total == 3
        assert not run.cancelled

    def test_fetch_interrupted_by_cancel_marks_run_cancelled(self, network: StubNetwork) -> None:
        network.add_device("spine1:6030", {HOSTNAME: "spine1"})
        network.delay = 5.0
        cancel = threading.Event()
        timer = threading.Timer(0.1, cancel.set)
        timer.start()
        try:
            run = Runner(network.factory()).run(
                AssertionFile(
                    targets=(Target(host="spine1:6030", assertions=(equals(HOSTNAME, "spine1"),)),)
                ),
                cancel_event=cancel,
            )
        finally:
            timer.cancel()

        assert run.cancelled
        assert run.errored == 1
        assert "cancelled" in str(run.results[0].error)

    def test_pre_cancelled_run_records_nothing(
        self, network: StubNetwork, spine_file: AssertionFile
    ) -> None:
        cancel = threading.Event()
        cancel.set()
        run = Runner(network.factory()).run(spine_file, cancel_event=cancel)
        assert run.cancelled
        assert run.total == 0
        assert network.connections == []

    def test_cancel_mid_run_gives_consistent_subset(self, network: StubNetwork) -> None:
        network.add_device("spine1:6030", {f"/counters/c{i}": i for i in range(30)})
        network.delay = 0.05
        assertions = many_assertions(30)
        cancel = threading.Event()
        seen: list[Result] = []

        def on_result(result: Result) -> None:
            seen.append(result)
            if len(seen) == 2:
                cancel.set()

        run = Runner(network.factory(), parallel=2, on_result=on_result).run(
            AssertionFile(targets=(Target(host="spine1:6030", assertions=assertions),)),
            cancel_event=cancel,
        )

        assert run.cancelled
        assert 2 <= run.total < 30
        assert run.passed + run.failed + run.errored == run.total
        assert len({id(r) for r in run.results}) == run.total
        paths = [r.assertion.path for r in run.results]
        assert paths == sorted(paths, key=lambda p: int(p.rsplit("c", 1)[1]))
        assert network.closed == ["spine1:6030"]

    def test_expired_deadline_starts_nothing(
        self, network: StubNetwork, spine_file: AssertionFile
    ) -> None:
        run = Runner(network.factory()).run(spine_file, deadline=time.monotonic() - 1)
        assert run.cancelled
        assert run.total == 0

    def test_callback_sees_every_result(
        self,
        network: StubNetwork,
        spine_values: dict[str, Any],
        spine_file: AssertionFile,
    ) -> None:
        network.add_device("spine1:6030", spine_values)
        seen: list[Result] = []
        run = Runner(network.factory(), on_result=seen.append).run(spine_file)
        assert sorted(r.assertion.path for r in seen) == sorted(
            r.assertion.path for r in run.results
        )
