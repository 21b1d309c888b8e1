"""Shared pytest fixtures and configuration.

Fixture Categories:
1. Sample Data: sample_visible_text, sample_html, rendered_page, page_content
2. Mock Collaborators: mock_extractor, mock_translator, mock_writer, mock_browser,
   mock_workflow
3. Infrastructure: respx_mock, mock_settings, mock_logfire, logfire_capture, test_client
"""

import os
from contextlib import contextmanager
from datetime import date, datetime, timezone
from unittest.mock import AsyncMock, MagicMock, Mock, patch

import logfire
import pytest
import respx

# Suppress "logfire not configured" warnings in tests
os.environ.setdefault("LOGFIRE_IGNORE_NO_CONFIG", "1")

from src.config import get_settings as _get_settings_dependency
from src.models.content_models import (
    BusinessFit,
    Categorization,
    Keyword,
    OpenGraph,
    PageContent,
)
from src.services.pipeline import RunGuard
from src.services.renderer import RenderedPage

TEST_TARGET_URL = "https://ideas.test/idea-of-the-day"
TEST_TRANSLATE_URL = "https://translate.test/translate"


# =============================================================================
# Sample Data
# =============================================================================

SAMPLE_VISIBLE_TEXT = """AI Meal Planner for Busy Parents
Previous | March 5, 2025 | Next
Type: SaaS
Market: B2C
Target Audience: Working parents with young kids
Main Competitor: Mealime
Trend Analysis: Meal kit fatigue drives demand for planning tools
Opportunities
Parents spend five hours a week deciding what to cook for dinner.
Problems
Existing apps ignore picky eaters and allergy constraints entirely.
Why Now
Cheap language models make personalized recipes affordable at scale.
Feasibility
A two person team can ship a working prototype in eight weeks.
Revenue Potential
Subscriptions at 9 dollars a month reach 1M ARR with 10k users.
Execution Difficulty
Moderate, recipe data licensing is the hardest piece to negotiate.
Go-To-Market
Partner with parenting newsletters and grocery delivery services.
Keywords
meal planner app
673.0K Volume
+65% Growth
family meal planning
12K Volume
-15% Growth"""

SAMPLE_HTML = """<html>
<head>
    <title>Idea of the Day</title>
    <meta property="og:title" content="AI Meal Planner" />
    <meta property="og:image" content="https://ideas.test/og/meal-planner.png" />
    <meta property="og:type" content="article" />
</head>
<body>
    <h1>AI Meal Planner for Busy Parents</h1>
    <p>Idea body rendered client-side.</p>
</body>
</html>"""


@pytest.fixture
def sample_visible_text() -> str:
    return SAMPLE_VISIBLE_TEXT


@pytest.fixture
def sample_html() -> str:
    return SAMPLE_HTML


@pytest.fixture
def rendered_page() -> RenderedPage:
    """Rendered page as the browser would return it."""
    return RenderedPage(
        url=TEST_TARGET_URL, html=SAMPLE_HTML, visible_text=SAMPLE_VISIBLE_TEXT
    )


@pytest.fixture
def page_content() -> PageContent:
    """Fully populated PageContent built without going through the extractor."""
    return PageContent(
        source_url=TEST_TARGET_URL,
        title="AI Meal Planner for Busy Parents",
        published_date=date(2025, 3, 5),
        scraped_at=datetime(2025, 3, 5, 9, 0, tzinfo=timezone.utc),
        business_fit=BusinessFit(
            opportunities="Parents spend five hours a week deciding what to cook.",
            problems="Existing apps ignore picky eaters.",
            why_now="Cheap language models make personalized recipes affordable.",
            feasibility="A two person team can ship in eight weeks.",
            revenue_potential="1M ARR with 10k users.",
            execution_difficulty="Moderate.",
            go_to_market="Parenting newsletters.",
        ),
        keywords=[
            Keyword.from_growth("meal planner app", 673000, 65.0),
            Keyword.from_growth("family meal planning", 12000, -15.0),
        ],
        categorization=Categorization(
            type="SaaS",
            market="B2C",
            target_audience="Working parents",
            main_competitor="Mealime",
            trend_analysis="Meal kit fatigue drives demand.",
        ),
        open_graph=OpenGraph(
            title="AI Meal Planner", image="https://ideas.test/og/meal-planner.png"
        ),
    )


# =============================================================================
# Mock Collaborators
# =============================================================================


@pytest.fixture
def mock_extractor(page_content):
    extractor = MagicMock()
    extractor.extract = AsyncMock(return_value=page_content)
    return extractor


@pytest.fixture
def mock_translator():
    """Translator whose output is filled in by the test (defaults to identity)."""
    from src.services.translator import identity_translation

    translator = MagicMock()
    translator.source_language = "en"
    translator.target_language = "fr"
    translator.translate = AsyncMock(
        side_effect=lambda content: identity_translation(content)
    )
    return translator


@pytest.fixture
def mock_writer():
    writer = MagicMock()
    writer.create_entry = AsyncMock(return_value="page-123")
    writer.create_error_entry = AsyncMock(return_value="error-page-456")
    return writer


@pytest.fixture
def mock_browser(sample_html, sample_visible_text):
    """Patch async_playwright with an in-memory Chromium; yields the page mock."""
    page = MagicMock()
    page.goto = AsyncMock()
    page.wait_for_timeout = AsyncMock()
    page.content = AsyncMock(return_value=sample_html)
    page.evaluate = AsyncMock(return_value=sample_visible_text)

    context = MagicMock()
    context.new_page = AsyncMock(return_value=page)

    browser = MagicMock()
    browser.new_context = AsyncMock(return_value=context)
    browser.new_page = AsyncMock(return_value=page)
    browser.close = AsyncMock()
    page.browser = browser

    playwright = MagicMock()
    playwright.chromium.launch = AsyncMock(return_value=browser)

    manager = MagicMock()
    manager.__aenter__ = AsyncMock(return_value=playwright)
    manager.__aexit__ = AsyncMock(return_value=False)

    with patch("src.services.renderer.async_playwright", return_value=manager):
        yield page


@pytest.fixture
def mock_workflow():
    """Workflow stand-in with a real RunGuard so the 409 path can be exercised."""
    from src.models.run_models import RunResult, RunStatus

    workflow = MagicMock()
    workflow.guard = RunGuard()
    type(workflow).is_running = property(lambda self: self.guard.is_running)

    async def run_acquired(url):
        workflow.guard.release()
        return RunResult(
            url=url,
            status=RunStatus.SUCCESS,
            started_at=datetime.now(timezone.utc),
            duration_seconds=0.1,
            page_id="page-123",
        )

    workflow.run_acquired = AsyncMock(side_effect=run_acquired)
    workflow.run = AsyncMock(side_effect=run_acquired)
    return workflow


# =============================================================================
# Infrastructure
# =============================================================================


@pytest.fixture
def respx_mock():
    """Respx mock fixture for HTTP mocking."""
    with respx.mock:
        yield respx


@pytest.fixture
def mock_settings(monkeypatch):
    """Mock application settings."""
    from src.config import Settings

    settings = Settings(
        _env_file=None,
        target_url=TEST_TARGET_URL,
        scrape_cron=None,
        libre_translate_url=TEST_TRANSLATE_URL,
        libre_translate_api_key=None,
        notion_api_key="secret_test_notion_key",
        notion_database_id="test-database-id",
        env="local",
        logfire_token=None,
        sentry_dsn=None,
    )

    monkeypatch.setattr("src.config.get_settings", lambda: settings)
    # Patch where get_settings is imported so module-level lookups see the mock
    monkeypatch.setattr("src.main.get_settings", lambda: settings)
    monkeypatch.setattr("src.logging_config.get_settings", lambda: settings)
    monkeypatch.setattr("src.services.pipeline.get_settings", lambda: settings)
    monkeypatch.setattr("src.cli.run_cli.get_settings", lambda: settings)
    return settings


@pytest.fixture
def logfire_capture():
    """
    Capture Logfire logs for testing.

    Yields a list of (level, args, kwargs) tuples.
    """
    captured_logs = []

    def capture(level):
        def _capture(*args, **kwargs):
            captured_logs.append((level, args, kwargs))

        return _capture

    @contextmanager
    def mock_span(*args, **kwargs):
        yield {}

    with (
        patch("logfire.info", side_effect=capture("info")),
        patch("logfire.debug", side_effect=capture("debug")),
        patch("logfire.warning", side_effect=capture("warning")),
        patch("logfire.error", side_effect=capture("error")),
        patch("logfire.span", side_effect=mock_span),
    ):
        yield captured_logs


@pytest.fixture
def mock_logfire(monkeypatch):
    """
    Mock Logfire for testing without actual logging.

    Useful for tests that don't need to verify logging behavior.
    """

    @contextmanager
    def mock_span(*args, **kwargs):
        yield {}

    for attr in ["info", "debug", "warning", "warn", "error"]:
        monkeypatch.setattr(logfire, attr, Mock())
    monkeypatch.setattr(logfire, "span", mock_span)
    for attr in [
        "configure",
        "instrument_fastapi",
        "instrument_pydantic",
        "instrument_httpx",
    ]:
        monkeypatch.setattr(logfire, attr, Mock())
    return logfire


@pytest.fixture
def test_client(mock_settings, mock_logfire, mock_workflow):
    """FastAPI TestClient for E2E tests with settings and workflow overridden."""
    from fastapi.testclient import TestClient

    from src.main import app
    from src.services.background_tasks import shutdown_event
    from src.services.pipeline import get_workflow

    shutdown_event.clear()
    app.dependency_overrides[_get_settings_dependency] = lambda: mock_settings
    app.dependency_overrides[get_workflow] = lambda: mock_workflow
    yield TestClient(app)
    app.dependency_overrides.clear()
