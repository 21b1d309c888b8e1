"""Manual trigger for the scraping workflow."""

import asyncio
import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from src.config import Settings, get_settings
from src.services.background_tasks import is_shutting_down, track_background_task
from src.services.pipeline import ScrapingWorkflow, get_workflow

logger = logging.getLogger(__name__)
router = APIRouter()


async def run_workflow_in_background(workflow: ScrapingWorkflow, url: str) -> None:
    """Run a workflow whose guard is already held, logging its outcome."""
    try:
        result = await workflow.run_acquired(url)
        logger.info("Manual workflow run finished: %s (page %s)", url, result.page_id)
    except Exception as e:
        # The workflow has already logged and recorded the failure in Notion
        logger.error("Manual workflow run failed for %s: %s", url, e)


@router.post("/trigger")
async def trigger(
    settings: Settings = Depends(get_settings),
    workflow: ScrapingWorkflow = Depends(get_workflow),
):
    """Start one workflow run in the background and return immediately."""
    if is_shutting_down():
        logger.warning("Manual trigger rejected: service is shutting down")
        return JSONResponse(
            status_code=503, content={"error": "Service is shutting down"}
        )

    url = settings.target_url
    if not url:
        logger.warning("Manual trigger rejected: TARGET_URL is not configured")
        return JSONResponse(
            status_code=400, content={"error": "TARGET_URL not configured"}
        )

    # Acquired here so two concurrent triggers cannot both start a run
    if not workflow.guard.try_acquire():
        logger.warning("Manual trigger rejected: workflow already running")
        return JSONResponse(
            status_code=409, content={"error": "Workflow already running"}
        )

    logger.info("Manual workflow trigger for %s", url)
    task = asyncio.create_task(run_workflow_in_background(workflow, url))
    track_background_task(task)

    return JSONResponse(
        status_code=202,
        content={
            "message": "Workflow triggered",
            "url": url,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        },
    )
