"""Health and status endpoints."""

import logging
from dataclasses import asdict
from datetime import datetime, timezone

from fastapi import APIRouter, Depends

from src.config import Settings, get_settings
from src.models.run_models import SchedulerStatus
from src.services.pipeline import ScrapingWorkflow, get_workflow
from src.services.scheduler import describe_cron, get_scheduler

logger = logging.getLogger(__name__)
router = APIRouter()


def _scheduler_status(settings: Settings, workflow: ScrapingWorkflow) -> dict:
    scheduler = get_scheduler()
    if scheduler is not None:
        status = scheduler.status()
    else:
        status = SchedulerStatus(
            is_scheduled=False,
            is_running=workflow.is_running,
            cron_expression=settings.scrape_cron,
            description=describe_cron(settings.scrape_cron) if settings.scrape_cron else None,
        )
    data = asdict(status)
    data["next_run"] = status.next_run.isoformat() if status.next_run else None
    return data


@router.get("/health")
async def health(
    settings: Settings = Depends(get_settings),
    workflow: ScrapingWorkflow = Depends(get_workflow),
):
    """Liveness check with a summary of what is configured."""
    return {
        "status": "ok",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "scheduler": _scheduler_status(settings, workflow),
        "environment": {
            "env": settings.env,
            "target_url_configured": bool(settings.target_url),
            "cron_configured": bool(settings.scrape_cron),
            "notion_configured": settings.notion_configured,
            "translation_api_key_configured": bool(settings.libre_translate_api_key),
        },
    }


@router.get("/status")
async def status(
    settings: Settings = Depends(get_settings),
    workflow: ScrapingWorkflow = Depends(get_workflow),
):
    """Scheduler state and the active run configuration."""
    return {
        "scheduler": _scheduler_status(settings, workflow),
        "workflow_running": workflow.is_running,
        "target_url": settings.target_url,
        "cron_expression": settings.scrape_cron,
        "timezone": settings.scheduler_timezone,
        "translation_service": settings.libre_translate_url,
        "languages": {
            "source": settings.source_language,
            "target": settings.target_language,
        },
    }
