"""Models describing workflow runs and scheduler state."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class RunStatus(str, Enum):
    SUCCESS = "success"
    SKIPPED = "skipped"


@dataclass
class RunResult:
    """Outcome of one extract → translate → persist run."""

    url: str
    status: RunStatus
    started_at: datetime
    duration_seconds: float
    page_id: str | None = None
    error_message: str | None = None
    failed_fields: list[str] | None = None


@dataclass
class SchedulerStatus:
    """Snapshot of the scheduler for the status endpoints."""

    is_scheduled: bool
    is_running: bool
    cron_expression: str | None = None
    next_run: datetime | None = None
    description: str | None = None
