"""Translation of extracted page content through a LibreTranslate endpoint.

Three layers:
- ``split_into_chunks`` / ``join_chunks``: keep each request under the
  endpoint's size limit while preserving paragraph structure.
- ``LibreTranslateClient``: one HTTP call per chunk, with retry and
  exponential backoff classified by HTTP status.
- ``ContentTranslator``: walks every text field of a PageContent one at a
  time, paced by a RequestPacer, falling back to the original text for any
  field whose translation fails.
"""

import asyncio
import re
import time
from typing import Awaitable, Callable, Iterator, List

import httpx
import logfire

from src.constants import (
    DEFAULT_LIBRE_TRANSLATE_URL,
    DEFAULT_SOURCE_LANGUAGE,
    DEFAULT_TARGET_LANGUAGE,
    MAX_TRANSLATION_CHUNK_CHARS,
    TRANSLATION_CHUNK_INTERVAL_SECONDS,
    TRANSLATION_FIELD_INTERVAL_SECONDS,
    TRANSLATION_HTTP_TIMEOUT_SECONDS,
    TRANSLATION_INITIAL_RETRY_DELAY_SECONDS,
    TRANSLATION_KEYWORD_INTERVAL_SECONDS,
    TRANSLATION_MAX_RETRIES,
    TRANSLATION_RATE_LIMIT_BACKOFF_MULTIPLIER,
)
from src.errors import PipelineError
from src.logging_config import redact_tokens
from src.models.content_models import BusinessFit, Categorization, PageContent
from src.models.translation_models import (
    TranslatedContent,
    TranslatedFields,
    TranslationMetadata,
)
from src.services.rate_limiter import RequestPacer


class TranslationError(PipelineError):
    """Base exception for translation failures."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class TranslationSystemicError(TranslationError):
    """Invalid credentials or unsupported language pair; retrying cannot help."""

    pass


class TranslationRateLimitError(TranslationError):
    """Still rate limited (HTTP 429) after every retry."""

    pass


# =============================================================================
# Chunking
# =============================================================================

_PARAGRAPH_SPLIT = re.compile(r"\n\n+")
_SENTENCE_PATTERN = re.compile(r"[^.!?]*[.!?]+|[^.!?]+$")


def split_into_chunks(text: str, max_size: int = MAX_TRANSLATION_CHUNK_CHARS) -> List[str]:
    """
    Split text into chunks no longer than max_size characters.

    Paragraph boundaries (blank lines) are preferred; a paragraph that is too
    long is split on sentence boundaries, and a sentence that is still too long
    is cut at max_size.
    """
    if len(text) <= max_size:
        return [text]

    chunks: List[str] = []
    current = ""

    for paragraph in _PARAGRAPH_SPLIT.split(text):
        if len(paragraph) > max_size:
            # An oversized paragraph never shares a chunk with the previous one
            if current.strip():
                chunks.append(current.strip())
            current = ""
            sentences = _SENTENCE_PATTERN.findall(paragraph) or [paragraph]
            for sentence in sentences:
                if len(current) + len(sentence) > max_size:
                    if current.strip():
                        chunks.append(current.strip())
                    current = ""
                    if len(sentence) > max_size:
                        for start in range(0, len(sentence), max_size):
                            chunks.append(sentence[start : start + max_size])
                    else:
                        current = sentence
                else:
                    current += sentence
        elif len(current) + len(paragraph) + 2 > max_size:
            if current.strip():
                chunks.append(current.strip())
            current = paragraph
        else:
            current += ("\n\n" if current else "") + paragraph

    if current.strip():
        chunks.append(current.strip())

    return chunks


def join_chunks(chunks: List[str]) -> str:
    return "\n\n".join(chunks)


# =============================================================================
# HTTP client
# =============================================================================


def _error_message(response: httpx.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        return response.text[:500]
    if isinstance(data, dict) and data.get("error"):
        return str(data["error"])
    return response.text[:500]


class LibreTranslateClient:
    """Async client for a LibreTranslate-compatible /translate endpoint."""

    def __init__(
        self,
        base_url: str = DEFAULT_LIBRE_TRANSLATE_URL,
        api_key: str | None = None,
        timeout_seconds: float = TRANSLATION_HTTP_TIMEOUT_SECONDS,
        max_retries: int = TRANSLATION_MAX_RETRIES,
        initial_retry_delay_seconds: float = TRANSLATION_INITIAL_RETRY_DELAY_SECONDS,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """Initialize the client.

        Args:
            base_url: Full URL of the translate endpoint
            api_key: Optional key for premium or self-hosted instances
            timeout_seconds: Timeout for one HTTP call
            max_retries: Retries after the first failed attempt
            initial_retry_delay_seconds: First backoff delay, doubled per retry
            sleep: Async sleep function, injectable for tests
        """
        self.base_url = base_url
        self._api_key = api_key
        self._timeout = timeout_seconds
        self._max_retries = max_retries
        self._initial_delay = initial_retry_delay_seconds
        self._sleep = sleep
        self.request_count = 0

    def _backoff(self, attempt: int, rate_limited: bool = False) -> float:
        delay = self._initial_delay * (2**attempt)
        if rate_limited:
            delay *= TRANSLATION_RATE_LIMIT_BACKOFF_MULTIPLIER
        return delay

    async def translate(self, text: str, source: str, target: str) -> str:
        """Translate one chunk of text.

        Raises:
            TranslationSystemicError: On 403 or an unsupported language pair
            TranslationRateLimitError: When still rate limited after retries
            TranslationError: On any other failure once retries are exhausted
        """
        payload: dict[str, str] = {
            "q": text,
            "source": source,
            "target": target,
            "format": "text",
        }
        if self._api_key:
            payload["api_key"] = self._api_key

        for attempt in range(self._max_retries + 1):
            start_time = time.time()
            self.request_count += 1
            rate_limited = False
            try:
                async with httpx.AsyncClient(timeout=self._timeout) as client:
                    response = await client.post(self.base_url, json=payload)
            except httpx.TransportError as e:
                error = TranslationError(f"Translation request failed: {e}")
                logfire.warning(
                    "Translation request error",
                    error=str(e),
                    error_type=type(e).__name__,
                    attempt=attempt + 1,
                )
            else:
                status = response.status_code
                if status == 200:
                    return self._parse_success(response, text, start_time)

                message = _error_message(response)
                if status == 429:
                    logfire.warning("LibreTranslate rate limit reached", message=message)
                    rate_limited = True
                    error = TranslationRateLimitError(
                        "Translation rate limit exceeded. Consider a self-hosted "
                        "LibreTranslate instance or an API key.",
                        status_code=status,
                    )
                elif status == 403:
                    logfire.error(
                        "LibreTranslate API authentication failed",
                        status_code=status,
                        message=message,
                        request=redact_tokens({"api_key": self._api_key or ""}),
                    )
                    raise TranslationSystemicError(
                        "Invalid LibreTranslate API key.", status_code=status
                    )
                elif status == 400 and "language" in message.lower():
                    logfire.error(
                        "Unsupported language pair",
                        status_code=status,
                        message=message,
                        source=source,
                        target=target,
                    )
                    raise TranslationSystemicError(
                        f"Unsupported language pair: {source} -> {target}",
                        status_code=status,
                    )
                elif status >= 500:
                    error = TranslationError(
                        f"Translation server error {status}: {message}",
                        status_code=status,
                    )
                else:
                    logfire.error(
                        "Translation request rejected",
                        status_code=status,
                        message=message,
                    )
                    raise TranslationError(
                        f"Translation request rejected ({status}): {message}",
                        status_code=status,
                    )

            if attempt < self._max_retries:
                delay = self._backoff(attempt, rate_limited=rate_limited)
                logfire.warning(
                    "Translation retry scheduled",
                    attempt=attempt + 1,
                    max_retries=self._max_retries,
                    delay_seconds=delay,
                    error=str(error),
                )
                await self._sleep(delay)

        raise error

    def _parse_success(self, response: httpx.Response, text: str, start_time: float) -> str:
        try:
            data = response.json()
        except ValueError as e:
            raise TranslationError("Translation response is not JSON") from e

        translated = data.get("translatedText") if isinstance(data, dict) else None
        if not isinstance(translated, str):
            raise TranslationError("Translation response missing translatedText")

        logfire.debug(
            "Chunk translated",
            chunk_length=len(text),
            translated_length=len(translated),
            response_time_ms=(time.time() - start_time) * 1000,
        )
        return translated


async def translate_text(
    client: LibreTranslateClient,
    text: str,
    source: str,
    target: str,
    pacer: RequestPacer,
    chunk_interval: float = TRANSLATION_CHUNK_INTERVAL_SECONDS,
) -> str:
    """Translate text of any length, chunk by chunk, sequentially."""
    chunks = split_into_chunks(text)
    translated_chunks: List[str] = []
    for index, chunk in enumerate(chunks):
        if index > 0:
            await pacer.wait(chunk_interval)
        translated_chunks.append(await client.translate(chunk, source, target))
    return join_chunks(translated_chunks)


# =============================================================================
# Content translation
# =============================================================================

_SHORT_CATEGORIZATION_FIELDS = ("type", "market", "target_audience", "main_competitor")


def iter_text_fields(content: PageContent) -> Iterator[tuple[str, str]]:
    """Yield (field identifier, text) in translation order."""
    yield "title", content.title
    for name, text in content.business_fit.model_dump().items():
        yield f"business_fit.{name}", text
    for keyword in content.keywords:
        yield f"keyword.{keyword.name}", keyword.name
    categorization = content.categorization.model_dump()
    for name in _SHORT_CATEGORIZATION_FIELDS:
        yield f"categorization.{name}", categorization[name]
    yield "categorization.trend_analysis", categorization["trend_analysis"]


def _assemble(
    content: PageContent,
    values: dict[str, str],
    metadata: TranslationMetadata,
    source: str,
    target: str,
) -> TranslatedContent:
    business_fit = BusinessFit(
        **{
            name: values.get(f"business_fit.{name}", "")
            for name in BusinessFit.model_fields
        }
    )
    categorization = Categorization(
        **{
            name: values.get(f"categorization.{name}", "")
            for name in Categorization.model_fields
        }
    )
    return TranslatedContent(
        original=content,
        translated=TranslatedFields(
            title=values.get("title", ""),
            business_fit=business_fit,
            keywords=[values.get(f"keyword.{kw.name}", kw.name) for kw in content.keywords],
            categorization=categorization,
        ),
        metadata=metadata,
        source_language=source,
        target_language=target,
    )


def identity_translation(
    content: PageContent,
    source: str = DEFAULT_SOURCE_LANGUAGE,
    target: str = DEFAULT_TARGET_LANGUAGE,
    reason: str | None = None,
) -> TranslatedContent:
    """Bilingual record whose translated side is a verbatim copy of the original.

    Every non-empty field is recorded as failed.
    """
    values: dict[str, str] = {}
    failed: List[str] = []
    for field_id, text in iter_text_fields(content):
        values[field_id] = text
        if text and text.strip():
            failed.append(field_id)
    metadata = TranslationMetadata(failed_fields=failed, aborted_reason=reason)
    return _assemble(content, values, metadata, source, target)


class ContentTranslator:
    """Translate every text field of a PageContent with per-field fallback."""

    def __init__(
        self,
        client: LibreTranslateClient,
        pacer: RequestPacer,
        source_language: str = DEFAULT_SOURCE_LANGUAGE,
        target_language: str = DEFAULT_TARGET_LANGUAGE,
        field_interval_seconds: float = TRANSLATION_FIELD_INTERVAL_SECONDS,
        keyword_interval_seconds: float = TRANSLATION_KEYWORD_INTERVAL_SECONDS,
    ):
        self._client = client
        self._pacer = pacer
        self.source_language = source_language
        self.target_language = target_language
        self._field_interval = field_interval_seconds
        self._keyword_interval = keyword_interval_seconds

    async def translate(self, content: PageContent) -> TranslatedContent:
        """Translate title, business fit, keyword names and categorization.

        Never raises for a field-level failure: the original text is kept and
        the field identifier is added to ``failed_fields``. After a systemic
        error (bad credentials, unsupported pair) no further calls are made and
        every remaining non-empty field falls back the same way.
        """
        start_time = time.time()
        requests_before = self._client.request_count
        values: dict[str, str] = {}
        failed: List[str] = []
        total_characters = 0
        aborted_reason: str | None = None

        logfire.info(
            "Starting content translation",
            title=content.title,
            keyword_count=len(content.keywords),
            source=self.source_language,
            target=self.target_language,
        )

        for field_id, text in iter_text_fields(content):
            if not text or not text.strip():
                values[field_id] = ""
                continue

            total_characters += len(text)

            if aborted_reason is not None:
                values[field_id] = text
                failed.append(field_id)
                continue

            interval = (
                self._keyword_interval
                if field_id.startswith("keyword.")
                else self._field_interval
            )
            await self._pacer.wait(interval)

            try:
                values[field_id] = await translate_text(
                    self._client,
                    text,
                    self.source_language,
                    self.target_language,
                    self._pacer,
                )
            except Exception as e:
                logfire.warning(
                    "Translation failed, keeping original",
                    field=field_id,
                    error=str(e),
                    error_type=type(e).__name__,
                    status_code=getattr(e, "status_code", None),
                )
                values[field_id] = text
                failed.append(field_id)
                if isinstance(e, TranslationSystemicError):
                    aborted_reason = str(e)

        duration = time.time() - start_time
        metadata = TranslationMetadata(
            total_characters=total_characters,
            request_count=self._client.request_count - requests_before,
            duration_seconds=duration,
            failed_fields=failed,
            aborted_reason=aborted_reason,
        )

        logfire.info(
            "Content translation completed",
            duration_seconds=round(duration, 2),
            total_characters=total_characters,
            request_count=metadata.request_count,
            failed_fields=failed or "none",
        )
        return _assemble(
            content, values, metadata, self.source_language, self.target_language
        )
