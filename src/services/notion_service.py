"""Persist bilingual records to a Notion database."""

import asyncio
import time
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, List, TypeVar

import httpx
import logfire
from notion_client import AsyncClient
from notion_client.errors import HTTPResponseError, RequestTimeoutError

from src.constants import (
    NOTION_INITIAL_RETRY_DELAY_SECONDS,
    NOTION_MAX_RETRIES,
    NOTION_RICH_TEXT_MAX_CHARS,
    NOTION_SELECT_OPTION_MAX_CHARS,
    NOTION_TITLE_MAX_CHARS,
)
from src.errors import PersistenceError
from src.models.content_models import BusinessFit, Categorization
from src.models.notion_models import NotionEntry
from src.models.translation_models import TranslatedContent
from src.services.metrics import count_words

T = TypeVar("T")

# Client errors that a retry cannot fix
_NON_RETRYABLE_STATUS = frozenset((400, 401, 403, 404))

BUSINESS_FIT_LABELS = {
    "opportunities": "Opportunities",
    "problems": "Problems",
    "why_now": "Why Now",
    "feasibility": "Feasibility",
    "revenue_potential": "Revenue Potential",
    "execution_difficulty": "Execution Difficulty",
    "go_to_market": "Go To Market",
}

CATEGORIZATION_LABELS = {
    "type": "Type",
    "market": "Market",
    "target_audience": "Target Audience",
    "main_competitor": "Main Competitor",
    "trend_analysis": "Trend Analysis",
}


# =============================================================================
# Text helpers
# =============================================================================


def truncate_text(text: str, max_length: int = NOTION_RICH_TEXT_MAX_CHARS) -> str:
    """Cut text to max_length, marking the cut with an ellipsis."""
    if len(text) <= max_length:
        return text
    return text[: max_length - 3] + "..."


def split_rich_text(
    text: str, max_length: int = NOTION_RICH_TEXT_MAX_CHARS
) -> List[dict[str, Any]]:
    """Split text into consecutive rich text objects of at most max_length chars."""
    if len(text) <= max_length:
        return [{"type": "text", "text": {"content": text}}]
    return [
        {"type": "text", "text": {"content": text[start : start + max_length]}}
        for start in range(0, len(text), max_length)
    ]


def _select_option(name: str) -> str:
    # Notion rejects commas in select option names
    return name.replace(",", " ").strip()[:NOTION_SELECT_OPTION_MAX_CHARS]


# =============================================================================
# Entry building
# =============================================================================


def build_entry(translated: TranslatedContent) -> NotionEntry:
    """Flatten a TranslatedContent into a NotionEntry."""
    original = translated.original
    metrics = original.derived_metrics
    target_text = " ".join(
        [
            *translated.translated.business_fit.model_dump().values(),
            *translated.translated.categorization.model_dump().values(),
        ]
    )
    top_keyword = max(original.keywords, key=lambda kw: kw.volume).name if original.keywords else ""
    failed = translated.metadata.failed_fields

    return NotionEntry(
        url=original.source_url,
        scraped_date=original.scraped_at,
        published_date=original.published_date,
        status="success",
        image_preview=original.open_graph.image,
        source_language=translated.source_language,
        target_language=translated.target_language,
        title_source=original.title,
        title_target=translated.translated.title,
        business_fit_source=original.business_fit,
        business_fit_target=translated.translated.business_fit,
        keywords=[kw.name for kw in original.keywords],
        top_keyword=top_keyword,
        keyword_count=metrics.keyword_count,
        avg_keyword_volume=metrics.avg_keyword_volume,
        high_growth_keyword_count=metrics.high_growth_count,
        categorization_source=original.categorization,
        categorization_target=translated.translated.categorization,
        word_count_source=metrics.word_count,
        word_count_target=count_words(target_text),
        translation_duration_seconds=round(translated.metadata.duration_seconds, 2),
        failed_translations=", ".join(failed) if failed else None,
    )


def build_error_entry(url: str, error_message: str) -> NotionEntry:
    return NotionEntry(
        url=url,
        scraped_date=datetime.now(timezone.utc),
        status="error",
        title_source="Error",
        title_target="Error",
        error_message=error_message,
    )


def _rich_text(text: str) -> dict[str, Any]:
    return {"rich_text": split_rich_text(text)}


def build_properties(entry: NotionEntry) -> dict[str, Any]:
    """Map a NotionEntry onto the database property payload."""
    src = entry.source_language.upper()
    dst = entry.target_language.upper()

    properties: dict[str, Any] = {
        "Name": {
            "title": [
                {"text": {"content": truncate_text(entry.title_source, NOTION_TITLE_MAX_CHARS)}}
            ]
        },
        f"Title {dst}": _rich_text(truncate_text(entry.title_target)),
        "URL": {"url": entry.url},
        "Scraped Date": {"date": {"start": entry.scraped_date.isoformat()}},
        "Status": {"select": {"name": entry.status}},
        "Keywords": {
            "multi_select": [
                {"name": option}
                for option in dict.fromkeys(_select_option(k) for k in entry.keywords)
                if option
            ]
        },
        "Top Keyword": _rich_text(entry.top_keyword),
        "Keywords Count": {"number": entry.keyword_count},
        "Avg Keyword Volume": {"number": entry.avg_keyword_volume},
        "High Growth Keywords": {"number": entry.high_growth_keyword_count},
        f"Word Count {src}": {"number": entry.word_count_source},
        f"Word Count {dst}": {"number": entry.word_count_target},
        "Translation Duration": {"number": entry.translation_duration_seconds},
    }

    for field, label in BUSINESS_FIT_LABELS.items():
        properties[f"{label} {src}"] = _rich_text(getattr(entry.business_fit_source, field))
        properties[f"{label} {dst}"] = _rich_text(getattr(entry.business_fit_target, field))

    for field, label in CATEGORIZATION_LABELS.items():
        properties[f"{label} {src}"] = _rich_text(getattr(entry.categorization_source, field))
        properties[f"{label} {dst}"] = _rich_text(getattr(entry.categorization_target, field))

    if entry.published_date:
        properties["Published Date"] = {"date": {"start": entry.published_date.isoformat()}}
    if entry.image_preview:
        properties["Image Preview"] = {"url": entry.image_preview}
    if entry.failed_translations:
        properties["Failed Translations"] = _rich_text(truncate_text(entry.failed_translations))
    if entry.error_message:
        properties["Error Message"] = _rich_text(truncate_text(entry.error_message))

    return properties


def _heading(level: int, text: str) -> dict[str, Any]:
    key = f"heading_{level}"
    return {"object": "block", "type": key, key: {"rich_text": split_rich_text(text)}}


def _paragraph(text: str) -> dict[str, Any]:
    return {"object": "block", "type": "paragraph", "paragraph": {"rich_text": split_rich_text(text)}}


def _language_blocks(
    heading: str,
    business_fit: BusinessFit,
    keywords: List[str],
    categorization: Categorization,
) -> List[dict[str, Any]]:
    blocks = [_heading(2, heading)]
    for field, label in BUSINESS_FIT_LABELS.items():
        text = getattr(business_fit, field)
        if text:
            blocks += [_heading(3, label), _paragraph(text)]
    if keywords:
        blocks += [_heading(3, "Keywords"), _paragraph("\n".join(keywords))]
    for field, label in CATEGORIZATION_LABELS.items():
        text = getattr(categorization, field)
        if text:
            blocks += [_heading(3, label), _paragraph(text)]
    return blocks


def build_page_blocks(translated: TranslatedContent) -> List[dict[str, Any]]:
    """Full-length page body: original content, divider, translated content."""
    original = translated.original
    keyword_lines = [
        f"{kw.name}: {kw.volume:,} searches, {kw.growth_percent:+g}% ({kw.trend})"
        for kw in original.keywords
    ]
    return [
        *_language_blocks(
            f"Original Content ({translated.source_language.upper()})",
            original.business_fit,
            keyword_lines,
            original.categorization,
        ),
        {"object": "block", "type": "divider", "divider": {}},
        *_language_blocks(
            f"Translated Content ({translated.target_language.upper()})",
            translated.translated.business_fit,
            translated.translated.keywords,
            translated.translated.categorization,
        ),
    ]


# =============================================================================
# Writer
# =============================================================================


def _is_retryable(error: Exception) -> bool:
    if isinstance(error, HTTPResponseError):
        return error.status not in _NON_RETRYABLE_STATUS
    return True


class NotionWriter:
    """Create database pages through the Notion API with retry."""

    def __init__(
        self,
        client: AsyncClient,
        database_id: str,
        max_retries: int = NOTION_MAX_RETRIES,
        initial_retry_delay_seconds: float = NOTION_INITIAL_RETRY_DELAY_SECONDS,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self._client = client
        self._database_id = database_id
        self._max_retries = max_retries
        self._initial_delay = initial_retry_delay_seconds
        self._sleep = sleep

    async def _with_retry(self, operation: Callable[[], Awaitable[T]]) -> T:
        for attempt in range(self._max_retries + 1):
            try:
                return await operation()
            except (HTTPResponseError, RequestTimeoutError, httpx.TransportError) as e:
                if attempt >= self._max_retries or not _is_retryable(e):
                    raise PersistenceError(f"Notion API call failed: {e}") from e
                delay = self._initial_delay * (2**attempt)
                logfire.warning(
                    "Notion API retry scheduled",
                    attempt=attempt + 1,
                    max_retries=self._max_retries,
                    delay_seconds=delay,
                    error=str(e),
                )
                await self._sleep(delay)
        raise PersistenceError("Notion API call failed")  # pragma: no cover

    async def _create_page(
        self, entry: NotionEntry, children: List[dict[str, Any]] | None = None
    ) -> str:
        start_time = time.time()
        logfire.info("Creating Notion entry", url=entry.url, status=entry.status)

        payload: dict[str, Any] = {
            "parent": {"database_id": self._database_id},
            "properties": build_properties(entry),
        }
        if children:
            payload["children"] = children

        try:
            response = await self._with_retry(lambda: self._client.pages.create(**payload))
        except PersistenceError as e:
            logfire.error("Failed to create Notion entry", url=entry.url, error=str(e))
            raise

        page_id = response["id"]
        logfire.info(
            "Notion entry created",
            page_id=page_id,
            url=entry.url,
            response_time_ms=(time.time() - start_time) * 1000,
        )
        return page_id

    async def create_entry(self, translated: TranslatedContent) -> str:
        """Write the bilingual record and its full-text page body.

        Returns:
            The created Notion page id

        Raises:
            PersistenceError: If Notion keeps rejecting the page
        """
        return await self._create_page(build_entry(translated), build_page_blocks(translated))

    async def create_error_entry(self, url: str, error_message: str) -> str:
        return await self._create_page(build_error_entry(url, error_message))

    async def check_connection(self) -> bool:
        """Return True if the database can be retrieved with the configured token."""
        try:
            database = await self._client.databases.retrieve(database_id=self._database_id)
        except (HTTPResponseError, RequestTimeoutError, httpx.TransportError) as e:
            logfire.error(
                "Notion connection failed",
                error=str(e),
                code=getattr(e, "code", None),
            )
            return False

        title = database.get("title") or []
        logfire.info(
            "Notion connection successful",
            database_id=database.get("id"),
            title=title[0].get("plain_text") if title else "Untitled",
        )
        return True
