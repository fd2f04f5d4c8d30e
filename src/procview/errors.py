"""Exception types for procview."""


class ProcviewError(Exception):
    """Base class for all procview errors."""


class AdapterUnavailable(ProcviewError):
    """The snapshot source could not produce a snapshot."""


class MalformedSnapshot(AdapterUnavailable):
    """A snapshot violated the pid-uniqueness invariant and was rejected whole."""

    def __init__(self, duplicate_pids: list[int]) -> None:
        self.duplicate_pids = sorted(duplicate_pids)
        super().__init__(f"duplicate pids in snapshot: {self.duplicate_pids}")


class TerminateFailed(ProcviewError):
    """The source refused or failed to terminate a process."""

    def __init__(self, pid: int, reason: str) -> None:
        self.pid = pid
        self.reason = reason
        super().__init__(f"failed to terminate {pid}: {reason}")
