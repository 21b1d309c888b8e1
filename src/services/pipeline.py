"""Extract, translate and persist one page per run.

The workflow is the only place that decides what a stage failure means for
the run as a whole:

- any failure while rendering, extracting or persisting aborts the run,
  leaves an error record in Notion when possible, and propagates
- translation failures never abort: the record is written with the original
  text on both sides and every field flagged as failed
"""

import time
from datetime import datetime, timezone
from typing import Protocol

import logfire
from notion_client import AsyncClient

from src.config import Settings, get_settings
from src.errors import PersistenceError
from src.models.content_models import PageContent
from src.models.run_models import RunResult, RunStatus
from src.models.translation_models import TranslatedContent
from src.services.extractor import ExtractionError, PageExtractor
from src.services.notion_service import NotionWriter
from src.services.rate_limiter import get_request_pacer
from src.services.renderer import PlaywrightRenderer, RenderError
from src.services.translator import (
    ContentTranslator,
    LibreTranslateClient,
    identity_translation,
)


class RunGuard:
    """Single-flight flag shared by the scheduler and the HTTP trigger.

    Acquisition is synchronous and only ever happens on the event loop thread,
    so check-and-set cannot interleave with another coroutine.
    """

    def __init__(self):
        self._running = False

    @property
    def is_running(self) -> bool:
        return self._running

    def try_acquire(self) -> bool:
        if self._running:
            return False
        self._running = True
        return True

    def release(self) -> None:
        self._running = False


class ContentSource(Protocol):
    async def extract(self, url: str) -> PageContent: ...


class ContentTranslatorProtocol(Protocol):
    source_language: str
    target_language: str

    async def translate(self, content: PageContent) -> TranslatedContent: ...


class RecordWriter(Protocol):
    async def create_entry(self, translated: TranslatedContent) -> str: ...

    async def create_error_entry(self, url: str, error_message: str) -> str: ...


class ScrapingWorkflow:
    """Sequence extractor, translator and writer for a single URL."""

    def __init__(
        self,
        extractor: ContentSource,
        translator: ContentTranslatorProtocol,
        writer: RecordWriter,
        guard: RunGuard | None = None,
    ):
        self._extractor = extractor
        self._translator = translator
        self._writer = writer
        self.guard = guard or RunGuard()

    @property
    def is_running(self) -> bool:
        return self.guard.is_running

    async def run(self, url: str) -> RunResult:
        """Run the full workflow once.

        Returns a SKIPPED result without touching any collaborator when another
        run is in flight.

        Raises:
            RenderError: If the page cannot be loaded
            ExtractionError: If the page has no recognizable title
            PersistenceError: If Notion rejects the record after retries
            Exception: Unexpected failures are recorded the same way and re-raised
        """
        if not self.guard.try_acquire():
            logfire.warning("Workflow already running, skipping", url=url)
            return RunResult(
                url=url,
                status=RunStatus.SKIPPED,
                started_at=datetime.now(timezone.utc),
                duration_seconds=0.0,
                error_message="Workflow already running",
            )
        return await self.run_acquired(url)

    async def run_acquired(self, url: str) -> RunResult:
        """Run with the guard already acquired by the caller; releases it when done."""
        started_at = datetime.now(timezone.utc)
        start_time = time.time()

        try:
            with logfire.span("scraping workflow", url=url):
                logfire.info("Starting scraping workflow", url=url)
                try:
                    content = await self._extractor.extract(url)
                    translated = await self._translate(content)
                    page_id = await self._writer.create_entry(translated)
                except (RenderError, ExtractionError, PersistenceError) as e:
                    logfire.error(
                        "Scraping workflow failed",
                        url=url,
                        error=str(e),
                        error_type=type(e).__name__,
                        duration_seconds=round(time.time() - start_time, 2),
                    )
                    await self._record_failure(url, e)
                    raise
                except Exception as e:
                    logfire.error(
                        "Unexpected error in scraping workflow",
                        url=url,
                        error=str(e),
                        error_type=type(e).__name__,
                        duration_seconds=round(time.time() - start_time, 2),
                    )
                    await self._record_failure(url, e)
                    raise

            duration = time.time() - start_time
            logfire.info(
                "Scraping workflow completed",
                url=url,
                page_id=page_id,
                duration_seconds=round(duration, 2),
                failed_fields=len(translated.metadata.failed_fields),
            )
            return RunResult(
                url=url,
                status=RunStatus.SUCCESS,
                started_at=started_at,
                duration_seconds=duration,
                page_id=page_id,
                failed_fields=list(translated.metadata.failed_fields),
            )
        finally:
            self.guard.release()

    async def _translate(self, content: PageContent) -> TranslatedContent:
        try:
            return await self._translator.translate(content)
        except Exception as e:
            logfire.error(
                "Translation unavailable, persisting original text",
                error=str(e),
                error_type=type(e).__name__,
            )
            return identity_translation(
                content,
                source=self._translator.source_language,
                target=self._translator.target_language,
                reason=str(e),
            )

    async def _record_failure(self, url: str, error: Exception) -> None:
        try:
            await self._writer.create_error_entry(url, f"{type(error).__name__}: {error}")
        except Exception as e:
            # Never mask the failure that ended the run
            logfire.error(
                "Failed to create error entry",
                url=url,
                error=str(e),
                error_type=type(e).__name__,
            )


# =============================================================================
# Factory
# =============================================================================


def build_workflow(settings: Settings, guard: RunGuard | None = None) -> ScrapingWorkflow:
    """Wire the production collaborators from settings."""
    renderer = PlaywrightRenderer(
        timeout_seconds=settings.browser_page_load_timeout_seconds,
        viewport_width=settings.browser_viewport_width,
        viewport_height=settings.browser_viewport_height,
        headless=settings.browser_headless,
        settle_delay_seconds=settings.browser_settle_delay_seconds,
    )
    client = LibreTranslateClient(
        base_url=settings.libre_translate_url,
        api_key=settings.libre_translate_api_key,
        timeout_seconds=settings.translation_timeout_seconds,
    )
    translator = ContentTranslator(
        client,
        get_request_pacer(),
        source_language=settings.source_language,
        target_language=settings.target_language,
    )
    writer = NotionWriter(
        AsyncClient(auth=settings.notion_api_key),
        settings.notion_database_id or "",
    )
    return ScrapingWorkflow(PageExtractor(renderer), translator, writer, guard)


# Global instance
_workflow: ScrapingWorkflow | None = None


def get_workflow() -> ScrapingWorkflow:
    """Get the global workflow, building it from settings on first use."""
    global _workflow
    if _workflow is None:
        _workflow = build_workflow(get_settings())
    return _workflow


def reset_workflow() -> None:
    """Reset the global workflow (primarily for testing)."""
    global _workflow
    _workflow = None
