"""Concurrent execution of assertion files.

The ``Runner`` processes up to ``workers`` targets at once.  For each
target it opens a single protocol session and evaluates up to
``parallel`` assertions concurrently over it.  Results are streamed to an
optional callback as they complete and collected into a ``RunResult``
whose ordering follows the assertion file, not completion order.

Usage::

    runner = Runner(ClientFactory(), workers=10, parallel=5, timeout=30.0)
    run = runner.run(load_file("assertions.yaml"), cancel_event=stop)
    print(run.passed, run.failed, run.errored)
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, replace

from ..client.base_client import ConnectionInfo, ProtocolClient
from ..client.client_factory import ClientFactory
from ..config import CredentialProvider
from .assertion import Assertion, AssertionFile, Result, Target, Verdict, validate
from .exceptions import ConnectError, FetchError
from .value import extract_value

logger = logging.getLogger(__name__)

DEFAULT_WORKERS = 10
DEFAULT_PARALLEL = 5
DEFAULT_TIMEOUT = 30.0

ResultCallback = Callable[[Result], None]


@dataclass(frozen=True)
class RunResult:
    """Aggregate outcome of one assertion file execution.

    Counts are derived from ``results`` on access.

    Attributes:
        results: Results in target, then assertion, declaration order.
        duration: Wall-clock seconds from start to the last target.
        cancelled: Whether cancellation or the deadline skipped or
            interrupted any assertion.

    """

    results: tuple[Result, ...] = ()
    duration: float = 0.0
    cancelled: bool = False

    @property
    def total(self) -> int:
        """Number of recorded results."""
        return len(self.results)

    @property
    def passed(self) -> int:
        """Results whose predicate held."""
        return sum(1 for r in self.results if r.status == Verdict.PASS)

    @property
    def failed(self) -> int:
        """Results whose predicate was evaluated and did not hold."""
        return sum(1 for r in self.results if r.status == Verdict.FAIL)

    @property
    def errored(self) -> int:
        """Results that could not be evaluated."""
        return sum(1 for r in self.results if r.status == Verdict.ERROR)

    @property
    def success(self) -> bool:
        """Return ``True`` when nothing failed or errored."""
        return self.failed == 0 and self.errored == 0

    def summary(self) -> str:
        """Return a one-line summary string."""
        return (
            f"{self.passed}/{self.total} passed, {self.failed} failed, "
            f"{self.errored} errors in {self.duration:.3f}s"
        )


class _RunState:
    """Mutable state shared by the workers of one run."""

    def __init__(
        self,
        cancel_event: threading.Event,
        deadline: float | None,
        on_result: ResultCallback | None,
    ) -> None:
        self.cancel_event = cancel_event
        self.deadline = deadline
        self._on_result = on_result
        self._lock = threading.Lock()
        self._results: list[tuple[int, int, Result]] = []
        self.cut_short = False

    def remaining(self) -> float | None:
        """Seconds left before the deadline, or ``None`` without one."""
        if self.deadline is None:
            return None
        return self.deadline - time.monotonic()

    def stopped(self) -> bool:
        """Whether new work must not be started."""
        if self.cancel_event.is_set():
            return True
        remaining = self.remaining()
        return remaining is not None and remaining <= 0

    def mark_cut_short(self) -> None:
        """Note that stopping skipped or interrupted some work."""
        with self._lock:
            self.cut_short = True

    def timeout(self, budget: float) -> float:
        """Clamp a per-operation budget to the remaining deadline."""
        remaining = self.remaining()
        if remaining is None:
            return budget
        return max(0.0, min(budget, remaining))

    def record(self, target_index: int, assertion_index: int, result: Result) -> None:
        """Store a result and emit it to the live callback."""
        with self._lock:
            self._results.append((target_index, assertion_index, result))
            if self._on_result is not None:
                self._on_result(result)

    def ordered_results(self) -> tuple[Result, ...]:
        with self._lock:
            return tuple(r for _, _, r in sorted(self._results, key=lambda e: (e[0], e[1])))


class Runner:
    """Execute every assertion of a file against its targets.

    A connect failure on any target is fatal: once in-flight work has
    settled, the first ``ConnectError`` in file order is raised.  Fetch
    failures are recorded as error results and do not affect siblings.

    Args:
        client_factory: Creates a ``ProtocolClient`` per target.
        workers: Maximum number of targets processed concurrently.
        parallel: Maximum number of concurrent fetches per target.
        timeout: Per-assertion (and connect) timeout in seconds.
        credentials: Fills credentials the assertion file left empty.
        on_result: Called with each result as soon as it is recorded.
            Calls are serialized.

    """

    def __init__(
        self,
        client_factory: ClientFactory | None = None,
        workers: int = DEFAULT_WORKERS,
        parallel: int = DEFAULT_PARALLEL,
        timeout: float = DEFAULT_TIMEOUT,
        credentials: CredentialProvider | None = None,
        on_result: ResultCallback | None = None,
    ) -> None:
        """Initialize the runner with concurrency limits and collaborators."""
        self._client_factory = client_factory or ClientFactory()
        self.workers = max(workers, 1)
        self.parallel = max(parallel, 1)
        self.timeout = timeout
        self.credentials = credentials
        self.on_result = on_result
        self._logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    # -- Public API ---------------------------------------------------------

    def run(
        self,
        assertion_file: AssertionFile,
        cancel_event: threading.Event | None = None,
        deadline: float | None = None,
    ) -> RunResult:
        """Run all assertions in the file.

        Args:
            assertion_file: Loaded, path-expanded assertion file.
            cancel_event: Set it to stop starting new work.
            deadline: Absolute ``time.monotonic()`` value after which no new
                work is started; also caps each per-assertion timeout.

        Returns:
            The aggregate ``RunResult`` (partial if cancelled).

        Raises:
            ConnectError: If connecting to any target failed.

        """
        start = time.monotonic()
        state = _RunState(cancel_event or threading.Event(), deadline, self.on_result)
        targets = assertion_file.targets
        self._logger.info(
            "Running %d assertions against %d targets (workers=%d, parallel=%d)",
            assertion_file.assertion_count,
            len(targets),
            self.workers,
            self.parallel,
        )

        connect_errors: dict[int, ConnectError] = {}
        if targets:
            with ThreadPoolExecutor(
                max_workers=min(self.workers, len(targets)),
                thread_name_prefix="netsert-target",
            ) as executor:
                futures = {
                    executor.submit(self._run_target, index, target, state): index
                    for index, target in enumerate(targets)
                }
                for future in as_completed(futures):
                    try:
                        future.result()
                    except ConnectError as exc:
                        connect_errors[futures[future]] = exc

        if connect_errors:
            first = connect_errors[min(connect_errors)]
            self._logger.error("Run aborted: %s", first)
            raise first

        run_result = RunResult(
            results=state.ordered_results(),
            duration=time.monotonic() - start,
            cancelled=state.cut_short,
        )
        if run_result.cancelled:
            self._logger.warning("Run cancelled with %d results recorded", run_result.total)
        self._logger.info("Run complete: %s", run_result.summary())
        return run_result

    def connection_info(self, target: Target) -> ConnectionInfo:
        """Build connection parameters, filling gaps from the credential provider."""
        info = ConnectionInfo(
            address=target.host,
            username=target.username,
            password=target.password,
            insecure=target.insecure,
            timeout=self.timeout,
        )
        if self.credentials is None:
            return info
        return info.with_defaults(*self.credentials.get_credentials(target.host))

    # -- Internal helpers ---------------------------------------------------

    def _run_target(self, target_index: int, target: Target, state: _RunState) -> None:
        """Connect to one target and evaluate its assertions."""
        if state.stopped():
            self._logger.debug("Skipping %s, run is stopping", target.host)
            state.mark_cut_short()
            return

        info = replace(self.connection_info(target), timeout=state.timeout(self.timeout))
        client = self._connect(info)
        try:
            with ThreadPoolExecutor(
                max_workers=self.parallel,
                thread_name_prefix="netsert-fetch",
            ) as executor:
                futures = [
                    executor.submit(
                        self._run_assertion, client, target, target_index, index, assertion, state
                    )
                    for index, assertion in enumerate(target.assertions)
                ]
                for future in futures:
                    future.result()
        finally:
            client.close()

    def _connect(self, info: ConnectionInfo) -> ProtocolClient:
        """Open a session, normalizing any failure to ``ConnectError``."""
        try:
            return self._client_factory.connect(info)
        except ConnectError:
            raise
        except Exception as exc:
            raise ConnectError(f"connect: {exc}", device=info.address) from exc

    def _run_assertion(
        self,
        client: ProtocolClient,
        target: Target,
        target_index: int,
        assertion_index: int,
        assertion: Assertion,
        state: _RunState,
    ) -> None:
        """Fetch, extract and validate a single assertion."""
        if state.stopped():
            state.mark_cut_short()
            return

        try:
            fetched = client.fetch(
                assertion.path,
                timeout=state.timeout(self.timeout),
                cancel_event=state.cancel_event,
            )
        except FetchError as exc:
            if state.stopped():
                state.mark_cut_short()
            result = Result(assertion=assertion, error=exc)
        except Exception as exc:
            self._logger.debug("Fetch of %s failed", assertion.path, exc_info=True)
            result = Result(
                assertion=assertion,
                error=FetchError(str(exc), device=target.host, details={"path": assertion.path}),
            )
        else:
            result = validate(assertion, extract_value(fetched.value), fetched.exists)

        state.record(target_index, assertion_index, replace(result, target=target.host))
