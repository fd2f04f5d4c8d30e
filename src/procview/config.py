"""Runtime settings for procview."""

import logging
import os
from dataclasses import dataclass
from enum import Enum

MIN_POLL_RATE = 0.1


class RefreshMode(Enum):
    """How snapshots reach the view."""

    PULL = "pull"
    PUSH = "push"


@dataclass(slots=True, frozen=True)
class Settings:
    """
    Settings for a procview session.

    Attributes:
        poll_rate: Seconds between snapshots (pull interval or push cadence).
        page_size: Rows per page.
        mode: Pull or push refresh.
        log_level: structlog filtering level name.
        ui_tick: Seconds between UI drains of the snapshot queue.
    """

    poll_rate: float = 2.0
    page_size: int = 50
    mode: RefreshMode = RefreshMode.PULL
    log_level: str = "WARNING"
    ui_tick: float = 0.5

    def __post_init__(self) -> None:
        if self.page_size < 1:
            raise ValueError(f"page_size must be positive, got {self.page_size}")
        if not isinstance(logging.getLevelName(self.log_level.upper()), int):
            raise ValueError(f"unknown log level: {self.log_level!r}")
        object.__setattr__(self, "log_level", self.log_level.upper())
        # Minimum 0.1 seconds
        object.__setattr__(self, "poll_rate", max(MIN_POLL_RATE, self.poll_rate))

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None) -> "Settings":
        """Build settings from PROCVIEW_* environment variables."""
        env = os.environ if environ is None else environ
        defaults = cls()
        return cls(
            poll_rate=float(env.get("PROCVIEW_POLL_RATE", defaults.poll_rate)),
            page_size=int(env.get("PROCVIEW_PAGE_SIZE", defaults.page_size)),
            mode=RefreshMode(env.get("PROCVIEW_MODE", defaults.mode.value).lower()),
            log_level=env.get("PROCVIEW_LOG_LEVEL", defaults.log_level).upper(),
        )
