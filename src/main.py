"""FastAPI application initialization."""

import signal
from contextlib import asynccontextmanager

import logfire
import sentry_sdk
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from notion_client import AsyncClient
from sentry_sdk.integrations.fastapi import FastApiIntegration

from src.api import health, trigger
from src.config import get_settings
from src.logging_config import mask_secret, setup_logfire
from src.middleware.request_logging import RequestLoggingMiddleware
from src.services.background_tasks import (
    drain_background_tasks,
    pending_task_count,
    shutdown_event,
)
from src.services.notion_service import NotionWriter
from src.services.pipeline import get_workflow
from src.services.scheduler import WorkflowScheduler, get_scheduler, set_scheduler

APP_VERSION = "1.0.0"

_SHUTDOWN_SIGNALS = (signal.SIGTERM, signal.SIGINT)


def install_signal_handlers() -> dict:
    """Flag shutdown on SIGTERM/SIGINT, then hand the signal to the server.

    The handler that was installed before (uvicorn's exit handler when served)
    is still called, so the server keeps exiting on Ctrl+C and SIGTERM.

    Returns:
        The previous handlers, for restore_signal_handlers()
    """
    previous: dict = {}
    for sig in _SHUTDOWN_SIGNALS:
        prior = signal.getsignal(sig)
        if not callable(prior):
            # Default or ignored disposition: leave it to the OS
            continue

        def handler(signum, frame, prior=prior):
            logfire.info(
                "Received shutdown signal, initiating graceful shutdown",
                signal=signal.Signals(signum).name,
                pending_tasks=pending_task_count(),
            )
            shutdown_event.set()
            prior(signum, frame)

        try:
            signal.signal(sig, handler)
        except ValueError:
            logfire.warning("Signal handlers can only be installed from the main thread")
            break
        previous[sig] = prior
    return previous


def restore_signal_handlers(previous: dict) -> None:
    for sig, prior in previous.items():
        try:
            signal.signal(sig, prior)
        except ValueError:
            logfire.warning("Signal handlers can only be restored from the main thread")
            return


async def check_notion() -> bool:
    """Verify the Notion database is reachable; never fatal."""
    settings = get_settings()
    if not settings.notion_configured:
        logfire.warning("Notion is not configured, entries cannot be saved")
        return False

    writer = NotionWriter(AsyncClient(auth=settings.notion_api_key), settings.notion_database_id)
    connected = await writer.check_connection()
    if not connected:
        logfire.warning(
            "Notion connection failed, the service will start anyway",
            api_key=mask_secret(settings.notion_api_key),
        )
    return connected


def start_scheduler() -> WorkflowScheduler | None:
    """Start the cron schedule when both a URL and an expression are configured."""
    settings = get_settings()
    if not settings.target_url or not settings.scrape_cron:
        logfire.warning(
            "Scheduler not started",
            target_url_configured=bool(settings.target_url),
            cron_configured=bool(settings.scrape_cron),
        )
        return None

    scheduler = WorkflowScheduler(
        get_workflow(),
        settings.target_url,
        settings.scrape_cron,
        timezone=settings.scheduler_timezone,
    )
    try:
        scheduler.start()
    except ValueError as e:
        logfire.error(
            "Invalid schedule, scheduler not started",
            cron_expression=settings.scrape_cron,
            error=str(e),
        )
        return None

    set_scheduler(scheduler)
    return scheduler


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager with graceful shutdown support."""
    # Startup
    settings = get_settings()

    # Initialize Logfire for observability
    setup_logfire(app)

    # Initialize Sentry if DSN is provided
    if settings.sentry_dsn:
        sentry_sdk.init(
            dsn=settings.sentry_dsn,
            traces_sample_rate=settings.sentry_traces_sample_rate,
            integrations=[FastApiIntegration()],
        )

    await check_notion()
    start_scheduler()

    shutdown_event.clear()
    previous_handlers = install_signal_handlers()

    logfire.info(
        "Application startup complete",
        environment=settings.env,
        target_url=settings.target_url,
        translation_service=settings.libre_translate_url,
        port=settings.port,
    )

    yield

    # ==========================================================================
    # Graceful Shutdown
    # ==========================================================================
    shutdown_event.set()
    restore_signal_handlers(previous_handlers)
    logfire.info("Application shutdown initiated", pending_tasks=pending_task_count())

    scheduler = get_scheduler()
    if scheduler is not None:
        scheduler.stop()
        set_scheduler(None)

    await drain_background_tasks()

    logfire.info("Application shutdown complete")


# Create FastAPI app
app = FastAPI(
    title="MindRipper",
    description="Scrapes the idea of the day, translates it and saves it to Notion",
    version=APP_VERSION,
    lifespan=lifespan,
)

# Request logging middleware (must be first for request tracing)
app.add_middleware(RequestLoggingMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Register routers
app.include_router(health.router, tags=["health"])
app.include_router(trigger.router, tags=["workflow"])


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logfire.error(
        "Unhandled request error",
        path=request.url.path,
        error=str(exc),
        error_type=type(exc).__name__,
    )
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


@app.get("/")
def root():
    """Root endpoint."""
    return {
        "message": "MindRipper scraping service",
        "version": APP_VERSION,
        "endpoints": ["/health", "/status", "/trigger"],
    }


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "src.main:app",
        host="0.0.0.0",
        port=settings.port,
        reload=settings.env == "local",
    )
