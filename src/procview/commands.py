"""Command dispatcher: terminate a process, then force a refresh."""

from collections.abc import Callable
from dataclasses import dataclass

import structlog

from procview.errors import TerminateFailed
from procview.source import SnapshotSource

log = structlog.get_logger()


@dataclass(slots=True, frozen=True)
class TerminateResult:
    """Outcome of a terminate command."""

    pid: int
    error: TerminateFailed | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


class CommandDispatcher:
    """
    Issue terminate commands against the snapshot source.

    Calls for different pids share no state and may run concurrently from
    separate threads. A successful terminate triggers one out-of-cycle refresh.
    """

    def __init__(self, source: SnapshotSource, refresh: Callable[[], object]) -> None:
        """
        Initialize the CommandDispatcher.

        Args:
            source: Collaborator that performs the terminate.
            refresh: Called once after every successful terminate.
        """
        self._source = source
        self._refresh = refresh

    def terminate(self, pid: int) -> TerminateResult:
        """Terminate pid. Never raises; failures come back in the result."""
        try:
            self._source.terminate(pid)
        except TerminateFailed as exc:
            log.warning("terminate_failed", pid=pid, reason=exc.reason)
            return TerminateResult(pid, exc)
        except Exception as exc:
            log.warning("terminate_failed", pid=pid, reason=str(exc))
            return TerminateResult(pid, TerminateFailed(pid, str(exc) or type(exc).__name__))

        log.info("terminate_ok", pid=pid)
        self._refresh()
        return TerminateResult(pid)
