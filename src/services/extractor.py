"""Heuristic extraction of business-analysis fields from a rendered idea page.

The page has no stable markup contract, so every field is located by scanning
the line-split visible text for label keywords and reading the lines that
follow. Each finder is a pure function over ``lines`` and is tested on its
own; ``parse_page`` assembles them into a ``PageContent``.

Only a missing title is fatal. Every other field degrades to an empty value
and is listed in ``PageContent.missing_fields`` when its label never appeared.
"""

import math
import re
import time
from datetime import date, datetime, timezone
from typing import List, Sequence

import logfire
from bs4 import BeautifulSoup

from src.constants import (
    KEYWORD_NAME_MAX_CHARS,
    KEYWORD_NAME_MIN_CHARS,
    LABEL_VALUE_MAX_CHARS,
    LABEL_VALUE_MIN_CHARS,
    LABEL_VALUE_WINDOW_LINES,
    SECTION_MAX_CHARS,
    SECTION_MIN_LINE_CHARS,
    SECTION_WINDOW_LINES,
    VOLUME_SUFFIX_MULTIPLIERS,
)
from src.errors import PipelineError
from src.models.content_models import (
    BusinessFit,
    Categorization,
    FieldMatch,
    Keyword,
    OpenGraph,
    PageContent,
)
from src.services.renderer import PageRenderer, RenderedPage, RenderError


class ExtractionError(PipelineError):
    """Raised when the page carries nothing recognizable (no title)."""

    pass


BUSINESS_FIT_TERMS: dict[str, tuple[str, ...]] = {
    "opportunities": ("opportunit",),
    "problems": ("problem",),
    "why_now": ("why now", "timing"),
    "feasibility": ("feasibility", "feasible"),
    "revenue_potential": ("revenue potential", "revenue"),
    "execution_difficulty": ("execution difficulty", "difficulty"),
    "go_to_market": ("go-to-market", "go to market", "gtm"),
}

CATEGORIZATION_LABELS: dict[str, tuple[str, ...]] = {
    "type": ("type", "category"),
    "market": ("market", "segment"),
    "target_audience": ("target", "audience", "customer"),
    "main_competitor": ("competitor", "competition"),
    "trend_analysis": ("trend analysis", "trends", "market trend"),
}

_DATE_NAV_PATTERN = re.compile(r"Previous\s*\|\s*([^|\n]+?)\s*\|\s*Next", re.IGNORECASE)
_DATE_FORMATS = ("%B %d, %Y", "%b %d, %Y", "%B %d %Y", "%b %d %Y", "%Y-%m-%d")

_VOLUME_LINE_PATTERN = re.compile(
    r"(\d[\d,]*(?:\.\d+)?\s*[KMB]?)\s*(?:volume|searches?|monthly)\b", re.IGNORECASE
)
_VOLUME_VALUE_PATTERN = re.compile(r"(\d+(?:\.\d+)?)\s*([KMB])?")
_GROWTH_PATTERN = re.compile(r"([+-]?\d+(?:\.\d+)?)\s*%")


# =============================================================================
# Metadata
# =============================================================================


def _meta_content(soup: BeautifulSoup, prop: str) -> str | None:
    tag = soup.find("meta", attrs={"property": prop})
    if tag is None:
        return None
    content = (tag.get("content") or "").strip()
    return content or None


def extract_open_graph(soup: BeautifulSoup) -> OpenGraph:
    return OpenGraph(
        title=_meta_content(soup, "og:title"),
        description=_meta_content(soup, "og:description"),
        image=_meta_content(soup, "og:image"),
        type=_meta_content(soup, "og:type"),
    )


def extract_title(soup: BeautifulSoup) -> str:
    """First non-empty of <h1>, og:title and <title>.

    Raises:
        ExtractionError: If none of them carries text
    """
    h1 = soup.find("h1")
    if h1 is not None:
        text = h1.get_text(" ", strip=True)
        if text:
            return text

    og_title = _meta_content(soup, "og:title")
    if og_title:
        return og_title

    if soup.title and soup.title.string and soup.title.string.strip():
        return soup.title.string.strip()

    raise ExtractionError("No title found on page")


def parse_date_text(text: str) -> date | None:
    cleaned = " ".join(text.split())
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(cleaned, fmt).date()
        except ValueError:
            continue
    return None


def extract_published_date(visible_text: str) -> date | None:
    """Read the date from the "Previous | <date> | Next" day navigation.

    Never raises: an absent or unparseable date yields None.
    """
    match = _DATE_NAV_PATTERN.search(visible_text)
    if not match:
        return None

    parsed = parse_date_text(match.group(1))
    if parsed is None:
        logfire.warning("Invalid date parsed", date_text=match.group(1))
    return parsed


# =============================================================================
# Line-scanning finders
# =============================================================================


def _has_term(line: str, terms: Sequence[str]) -> bool:
    lowered = line.lower()
    return any(term.lower() in lowered for term in terms)


def find_section(lines: Sequence[str], terms: Sequence[str]) -> FieldMatch:
    """Collect the prose following the first line mentioning one of ``terms``.

    Lines of SECTION_MIN_LINE_CHARS characters or fewer are skipped; collection
    stops at the end of the window or once SECTION_MAX_CHARS is exceeded. When
    a labelled line has no prose after it, the next labelled line is tried.
    """
    found = False
    for i, line in enumerate(lines):
        if not _has_term(line, terms):
            continue
        found = True

        collected = ""
        for j in range(i + 1, min(i + SECTION_WINDOW_LINES, len(lines))):
            next_line = lines[j].strip()
            if len(next_line) > SECTION_MIN_LINE_CHARS:
                collected += next_line + "\n\n"
                if len(collected) > SECTION_MAX_CHARS:
                    break
        if collected.strip():
            return FieldMatch(value=collected.strip(), found=True)

    return FieldMatch(value="", found=found)


def find_label_value(lines: Sequence[str], labels: Sequence[str]) -> FieldMatch:
    """Read a short value either after a colon or on a following line."""
    found = False
    for i, line in enumerate(lines):
        if not _has_term(line, labels):
            continue
        found = True

        colon_match = re.search(r":\s*(.+)", line)
        if colon_match and colon_match.group(1).strip():
            return FieldMatch(value=colon_match.group(1).strip(), found=True)

        for j in range(i + 1, min(i + LABEL_VALUE_WINDOW_LINES, len(lines))):
            next_line = lines[j].strip()
            if LABEL_VALUE_MIN_CHARS < len(next_line) < LABEL_VALUE_MAX_CHARS:
                return FieldMatch(value=next_line, found=True)

    return FieldMatch(value="", found=found)


def extract_business_fit(lines: Sequence[str]) -> tuple[BusinessFit, List[str]]:
    """Return the seven sections and the names of those whose label was absent."""
    values: dict[str, str] = {}
    missing: List[str] = []
    for field, terms in BUSINESS_FIT_TERMS.items():
        match = find_section(lines, terms)
        values[field] = match.value
        if not match.found:
            missing.append(f"business_fit.{field}")
    return BusinessFit(**values), missing


def extract_categorization(lines: Sequence[str]) -> tuple[Categorization, List[str]]:
    values: dict[str, str] = {}
    missing: List[str] = []
    for field, labels in CATEGORIZATION_LABELS.items():
        match = find_label_value(lines, labels)
        values[field] = match.value
        if not match.found:
            missing.append(f"categorization.{field}")
    return Categorization(**values), missing


# =============================================================================
# Keywords
# =============================================================================


def parse_volume(text: str) -> int:
    """Convert "673.0K", "1.2M", "2B" or "1,500" into an integer count.

    Unparseable input gives 0, which the keyword filter then discards.
    """
    match = _VOLUME_VALUE_PATTERN.search(text.upper().replace(",", ""))
    if not match:
        return 0
    number = float(match.group(1))
    multiplier = VOLUME_SUFFIX_MULTIPLIERS.get(match.group(2) or "", 1)
    return int(math.floor(number * multiplier + 0.5))


def parse_growth(text: str) -> float:
    match = _GROWTH_PATTERN.search(text)
    return float(match.group(1)) if match else 0.0


def _is_keyword_name(text: str) -> bool:
    return KEYWORD_NAME_MIN_CHARS < len(text) < KEYWORD_NAME_MAX_CHARS


def _keywords_from_lines(lines: Sequence[str]) -> List[tuple[str, str, str]]:
    """Pair "<name>" / "<n>K Volume" / "+x% Growth" line runs."""
    candidates: List[tuple[str, str, str]] = []
    current: tuple[str, str] | None = None

    for i, raw in enumerate(lines):
        line = raw.strip()

        volume_match = _VOLUME_LINE_PATTERN.search(line)
        if volume_match and "total" not in line.lower():
            prev_line = lines[i - 1].strip() if i > 0 else ""
            if _is_keyword_name(prev_line):
                current = (prev_line, volume_match.group(1))

        growth_match = _GROWTH_PATTERN.search(line)
        if growth_match and current is not None:
            candidates.append((current[0], current[1], growth_match.group(1)))
            current = None

    return candidates


def _keywords_from_chart_labels(svg_texts: Sequence[str]) -> List[tuple[str, str, str]]:
    """Pair a non-numeric chart label with the numeric label that follows it."""
    candidates: List[tuple[str, str, str]] = []
    pending_name = ""
    for content in svg_texts:
        content = content.strip()
        if not content:
            continue
        if not content[0].isdigit():
            pending_name = content
        elif pending_name:
            candidates.append((pending_name, content, "0"))
            pending_name = ""
    return candidates


def extract_keywords(
    lines: Sequence[str], svg_texts: Sequence[str] = ()
) -> List[Keyword]:
    """Extract keywords, falling back to chart labels when the text has none."""
    candidates = _keywords_from_lines(lines)
    source = "text"
    if not candidates and svg_texts:
        candidates = _keywords_from_chart_labels(svg_texts)
        source = "chart"

    keywords: List[Keyword] = []
    for name, volume_text, growth_text in candidates:
        volume = parse_volume(volume_text)
        if volume <= 0 or len(name) <= KEYWORD_NAME_MIN_CHARS:
            continue
        keywords.append(Keyword.from_growth(name, volume, parse_growth(growth_text + "%")))

    logfire.info("Keywords extracted", count=len(keywords), source=source)
    return keywords


# =============================================================================
# Assembly
# =============================================================================


def parse_page(rendered: RenderedPage, scraped_at: datetime | None = None) -> PageContent:
    """Build PageContent from a rendered page.

    Raises:
        ExtractionError: If no title can be found
    """
    soup = BeautifulSoup(rendered.html, "html.parser")
    title = extract_title(soup)
    open_graph = extract_open_graph(soup)
    svg_texts = [node.get_text(strip=True) for node in soup.select("svg text")]

    text = rendered.visible_text
    if not text.strip():
        # innerText unavailable (e.g. canned HTML in tests): fall back to DOM text
        for tag in soup(["script", "style", "noscript"]):
            tag.decompose()
        text = soup.get_text("\n")
    lines = text.split("\n")

    business_fit, missing_fit = extract_business_fit(lines)
    categorization, missing_cat = extract_categorization(lines)

    return PageContent(
        source_url=rendered.url,
        title=title,
        published_date=extract_published_date(text),
        scraped_at=scraped_at or datetime.now(timezone.utc),
        business_fit=business_fit,
        keywords=extract_keywords(lines, svg_texts),
        categorization=categorization,
        open_graph=open_graph,
        missing_fields=missing_fit + missing_cat,
    )


class PageExtractor:
    """Render a page and run the extraction heuristics on it."""

    def __init__(self, renderer: PageRenderer):
        self._renderer = renderer

    async def extract(self, url: str) -> PageContent:
        """Render URL and extract its content.

        Raises:
            RenderError: If the page cannot be loaded
            ExtractionError: If no title is recognizable
        """
        start_time = time.time()
        logfire.info("Starting page extraction", url=url)

        try:
            rendered = await self._renderer.render(url)
            content = parse_page(rendered)
        except (RenderError, ExtractionError) as e:
            logfire.error(
                "Extraction failed",
                url=url,
                error=str(e),
                error_type=type(e).__name__,
                duration_ms=(time.time() - start_time) * 1000,
            )
            raise

        filled = sum(1 for value in content.business_fit.model_dump().values() if value)
        metrics = content.derived_metrics
        logfire.info(
            "Extraction completed",
            url=url,
            title=content.title,
            published_date=content.published_date.isoformat()
            if content.published_date
            else None,
            business_fit_sections=f"{filled}/7",
            keyword_count=metrics.keyword_count,
            word_count=metrics.word_count,
            missing_fields=content.missing_fields,
            duration_ms=(time.time() - start_time) * 1000,
        )
        return content
