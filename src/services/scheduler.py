"""Cron-driven execution of the scraping workflow."""

import re

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

import logfire

from src.constants import DEFAULT_SCHEDULER_TIMEZONE
from src.models.run_models import SchedulerStatus
from src.services.pipeline import ScrapingWorkflow

_JOB_ID = "scraping-workflow"
_WEEKDAYS = ["Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday"]

# Crontab numbers weekdays from Sunday (0 and 7); APScheduler from Monday
_CRON_DAY_NAMES = ["sun", "mon", "tue", "wed", "thu", "fri", "sat"]
_NUMERIC_DAY_PART = re.compile(r"[\d*/-]+")


def describe_cron(expression: str) -> str:
    """Human-readable form of the common daily and weekly cron patterns."""
    parts = expression.split()
    if len(parts) != 5:
        return expression

    minute, hour, day_of_month, month, day_of_week = parts
    if not (minute.isdigit() and hour.isdigit()) or day_of_month != "*" or month != "*":
        return expression

    at = f"{hour.zfill(2)}:{minute.zfill(2)}"
    if day_of_week == "*":
        return f"Daily at {at}"
    if day_of_week.isdigit() and int(day_of_week) <= 7:
        return f"Weekly on {_WEEKDAYS[int(day_of_week) % 7]} at {at}"
    return expression


def crontab_day_of_week(field: str) -> str:
    """Translate a crontab day-of-week field into APScheduler day names.

    Numeric entries, ranges and steps are expanded to names ("1-5" becomes
    "mon,tue,wed,thu,fri"); entries already written with names are kept.

    Raises:
        ValueError: If a numeric entry is out of range or malformed
    """
    if field == "*":
        return field

    days: list[str] = []
    for part in field.split(","):
        if not _NUMERIC_DAY_PART.fullmatch(part):
            days.append(part.lower())
            continue

        base, _, step = part.partition("/")
        if base == "*":
            start, end = 0, 6
        elif "-" in base:
            low, high = base.split("-", 1)
            start, end = int(low), int(high)
        else:
            start = int(base)
            end = 6 if step else start
        if start > end or end > 7:
            raise ValueError(f"Invalid day of week: {part!r}")

        for number in range(start, end + 1, int(step) if step else 1):
            name = _CRON_DAY_NAMES[number % 7]
            if name not in days:
                days.append(name)
    return ",".join(days)


def build_cron_trigger(expression: str, timezone: str) -> CronTrigger:
    """Build a CronTrigger from a standard five-field crontab expression.

    Raises:
        ValueError: If the expression is invalid
    """
    parts = expression.split()
    if len(parts) != 5:
        raise ValueError(f"Wrong number of fields; got {len(parts)}, expected 5")

    minute, hour, day, month, day_of_week = parts
    return CronTrigger(
        minute=minute,
        hour=hour,
        day=day,
        month=month,
        day_of_week=crontab_day_of_week(day_of_week),
        timezone=timezone,
    )


class WorkflowScheduler:
    """Run the workflow against one URL on a cron schedule.

    Overlapping ticks are absorbed by the workflow's run guard, so a tick that
    fires while a manual run is in flight is logged and skipped.
    """

    def __init__(
        self,
        workflow: ScrapingWorkflow,
        url: str,
        cron_expression: str,
        timezone: str = DEFAULT_SCHEDULER_TIMEZONE,
    ):
        self._workflow = workflow
        self.url = url
        self.cron_expression = cron_expression
        self.timezone = timezone
        self._scheduler: AsyncIOScheduler | None = None

    async def _run_job(self) -> None:
        logfire.info("Cron job triggered", url=self.url)
        try:
            await self._workflow.run(self.url)
        except Exception as e:
            logfire.error(
                "Scheduled workflow failed",
                url=self.url,
                error=str(e),
                error_type=type(e).__name__,
            )

    def start(self) -> None:
        """Start (or restart) the schedule. Must be called from a running event loop.

        Raises:
            ValueError: If the cron expression or timezone is invalid
        """
        trigger = build_cron_trigger(self.cron_expression, self.timezone)

        if self._scheduler is not None:
            logfire.info("Stopping existing scheduled job")
            self.stop()

        self._scheduler = AsyncIOScheduler(timezone=self.timezone)
        self._scheduler.add_job(
            self._run_job,
            trigger,
            id=_JOB_ID,
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        self._scheduler.start()

        logfire.info(
            "Scheduler started",
            url=self.url,
            cron_expression=self.cron_expression,
            timezone=self.timezone,
            schedule=describe_cron(self.cron_expression),
        )

    def stop(self) -> None:
        if self._scheduler is None:
            return
        if self._scheduler.running:
            self._scheduler.shutdown(wait=False)
        self._scheduler = None
        logfire.info("Scheduler stopped")

    @property
    def is_scheduled(self) -> bool:
        return self._scheduler is not None and self._scheduler.running

    def status(self) -> SchedulerStatus:
        next_run = None
        if self.is_scheduled:
            job = self._scheduler.get_job(_JOB_ID)
            next_run = getattr(job, "next_run_time", None) if job else None
        return SchedulerStatus(
            is_scheduled=self.is_scheduled,
            is_running=self._workflow.is_running,
            cron_expression=self.cron_expression,
            next_run=next_run,
            description=describe_cron(self.cron_expression),
        )


# Global instance
_scheduler: WorkflowScheduler | None = None


def get_scheduler() -> WorkflowScheduler | None:
    """Get the scheduler registered at startup, if any."""
    return _scheduler


def set_scheduler(scheduler: WorkflowScheduler | None) -> None:
    global _scheduler
    _scheduler = scheduler
