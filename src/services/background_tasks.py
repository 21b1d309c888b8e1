"""Tracking of fire-and-forget tasks and the shutdown flag that stops new ones."""

import asyncio

import logfire

from src.constants import GRACEFUL_SHUTDOWN_TIMEOUT_SECONDS

# Track pending background tasks for graceful shutdown
_pending_tasks: set[asyncio.Task] = set()

# Shutdown event for graceful termination
shutdown_event = asyncio.Event()


def is_shutting_down() -> bool:
    """Check if the application is in shutdown mode."""
    return shutdown_event.is_set()


def track_background_task(task: asyncio.Task) -> None:
    """
    Track a background task for graceful shutdown.

    Example:
        task = asyncio.create_task(workflow.run(url))
        track_background_task(task)
    """
    _pending_tasks.add(task)
    task.add_done_callback(_pending_tasks.discard)


def pending_task_count() -> int:
    return len(_pending_tasks)


async def drain_background_tasks(
    timeout_seconds: float = GRACEFUL_SHUTDOWN_TIMEOUT_SECONDS,
) -> None:
    """Wait for tracked tasks, cancelling whatever is left after the timeout."""
    if not _pending_tasks:
        logfire.info("No pending background tasks during shutdown")
        return

    logfire.info(
        "Waiting for pending background tasks to complete",
        task_count=len(_pending_tasks),
        timeout_seconds=timeout_seconds,
    )

    done, pending = await asyncio.wait(
        set(_pending_tasks),
        timeout=timeout_seconds,
        return_when=asyncio.ALL_COMPLETED,
    )

    if pending:
        logfire.warning(
            "Cancelling remaining tasks after timeout",
            completed_count=len(done),
            cancelled_count=len(pending),
        )
        for task in pending:
            task.cancel()

        # Wait briefly for cancellation to complete
        await asyncio.gather(*pending, return_exceptions=True)
    else:
        logfire.info(
            "All background tasks completed successfully",
            completed_count=len(done),
        )
