"""Tests for the page extraction heuristics."""

from datetime import date
from unittest.mock import AsyncMock, MagicMock

import pytest
from bs4 import BeautifulSoup

from src.services.extractor import (
    ExtractionError,
    PageExtractor,
    extract_business_fit,
    extract_categorization,
    extract_keywords,
    extract_published_date,
    extract_title,
    find_label_value,
    find_section,
    parse_growth,
    parse_page,
    parse_volume,
)
from src.services.renderer import RenderedPage, RenderError


class TestExtractTitle:
    """Test title fallback chain."""

    def test_prefers_h1(self, sample_html):
        soup = BeautifulSoup(sample_html, "html.parser")
        assert extract_title(soup) == "AI Meal Planner for Busy Parents"

    def test_falls_back_to_og_title(self):
        soup = BeautifulSoup(
            '<html><head><meta property="og:title" content="From OG" />'
            "<title>Doc Title</title></head><body><h1>  </h1></body></html>",
            "html.parser",
        )
        assert extract_title(soup) == "From OG"

    def test_falls_back_to_document_title(self):
        soup = BeautifulSoup(
            "<html><head><title> Doc Title </title></head><body></body></html>",
            "html.parser",
        )
        assert extract_title(soup) == "Doc Title"

    def test_no_title_raises(self):
        soup = BeautifulSoup("<html><body><p>nothing</p></body></html>", "html.parser")
        with pytest.raises(ExtractionError, match="No title"):
            extract_title(soup)


class TestPublishedDate:
    """Test the "Previous | date | Next" date lookup."""

    def test_parses_navigation_date(self):
        assert extract_published_date("Previous | March 5, 2025 | Next") == date(2025, 3, 5)

    def test_parses_abbreviated_month(self):
        assert extract_published_date("Previous | Jan 12, 2024 | Next") == date(2024, 1, 12)

    def test_missing_navigation_returns_none(self):
        assert extract_published_date("No navigation here") is None

    def test_unparseable_date_returns_none(self, mock_logfire):
        assert extract_published_date("Previous | someday soon | Next") is None


class TestFindSection:
    """Test business-fit section collection."""

    def test_collects_following_prose(self):
        lines = [
            "Problems",
            "Existing apps ignore picky eaters and allergies.",
            "short",
            "They also lack any grocery integration at all.",
        ]
        match = find_section(lines, ("problem",))

        assert match.found is True
        assert match.value == (
            "Existing apps ignore picky eaters and allergies.\n\n"
            "They also lack any grocery integration at all."
        )

    def test_skips_lines_of_ten_chars_or_fewer(self):
        lines = ["Why Now", "0123456789", "01234567890"]
        assert find_section(lines, ("why now",)).value == "01234567890"

    def test_stops_after_length_cap(self):
        lines = ["Feasibility"] + ["x" * 250 for _ in range(10)]
        value = find_section(lines, ("feasibility",)).value

        # Third line pushes past 600 chars, collection stops there
        assert value.count("x" * 250) == 3

    def test_window_is_bounded(self):
        lines = ["Opportunities"] + [f"line number {i:02d} of prose" for i in range(30)]
        value = find_section(lines, ("opportunit",)).value

        assert "line number 13" in value
        assert "line number 14" not in value

    def test_matching_is_case_insensitive(self):
        lines = ["REVENUE POTENTIAL", "Strong recurring revenue from subscriptions."]
        assert find_section(lines, ("revenue potential",)).value.startswith("Strong")

    def test_absent_label_is_not_found(self):
        match = find_section(["Nothing relevant", "at all in this text"], ("gtm",))
        assert match.value == ""
        assert match.found is False

    def test_label_without_prose_is_found_but_empty(self):
        match = find_section(["Go-To-Market", "tiny"], ("go-to-market",))
        assert match.value == ""
        assert match.found is True


class TestFindLabelValue:
    """Test short categorization values."""

    def test_value_after_colon(self):
        assert find_label_value(["Type: SaaS"], ("type",)).value == "SaaS"

    def test_value_keeps_original_case(self):
        match = find_label_value(["Main Competitor: HelloFresh"], ("competitor",))
        assert match.value == "HelloFresh"

    def test_value_on_next_line(self):
        lines = ["Target Audience", "", "Working parents"]
        assert find_label_value(lines, ("audience",)).value == "Working parents"

    def test_next_line_value_length_bounds(self):
        lines = ["Market", "ab", "x" * 200, "Consumers"]
        assert find_label_value(lines, ("market",)).value == "Consumers"

    def test_value_window_is_five_lines(self):
        lines = ["Competitor", "a", "b", "c", "d", "Too far away"]
        match = find_label_value(lines, ("competitor",))
        assert match.value == ""
        assert match.found is True


class TestKeywordParsing:
    """Test volume and growth parsing."""

    @pytest.mark.parametrize(
        "text,expected",
        [
            ("673.0K", 673000),
            ("1.2M", 1200000),
            ("2B", 2000000000),
            ("1,500", 1500),
            ("2.5", 3),
            ("12k", 12000),
            ("n/a", 0),
        ],
    )
    def test_parse_volume(self, text, expected):
        assert parse_volume(text) == expected

    def test_parse_growth(self):
        assert parse_growth("+45% Growth") == 45.0
        assert parse_growth("-12.5%") == -12.5
        assert parse_growth("no growth") == 0.0


class TestExtractKeywords:
    """Test keyword extraction from text lines and chart labels."""

    def test_line_triples(self, mock_logfire):
        lines = ["ai agents", "10K Volume", "+45% Growth", "voice cloning", "2.1M Volume", "-20% Growth"]
        keywords = extract_keywords(lines)

        assert [kw.name for kw in keywords] == ["ai agents", "voice cloning"]
        assert keywords[0].volume == 10000
        assert keywords[0].growth_percent == 45.0
        assert keywords[0].trend == "growing"
        assert keywords[1].volume == 2100000
        assert keywords[1].trend == "declining"

    def test_single_keyword_block(self, mock_logfire):
        text = "Email Marketing\n673.0K Volume\n+45% Growth"

        keywords = extract_keywords(text.split("\n"))

        assert len(keywords) == 1
        assert keywords[0].name == "Email Marketing"
        assert keywords[0].volume == 673000
        assert keywords[0].growth_percent == 45.0
        assert keywords[0].trend == "growing"

    def test_growth_line_does_not_open_a_candidate(self, mock_logfire):
        lines = ["ai agents", "10K Volume", "+45% Growth", "-5% Growth"]
        keywords = extract_keywords(lines)

        assert len(keywords) == 1
        assert keywords[0].name == "ai agents"

    def test_total_volume_line_is_ignored(self, mock_logfire):
        lines = ["Search summary", "500K total volume", "+10% Growth"]
        assert extract_keywords(lines) == []

    def test_zero_volume_is_discarded(self, mock_logfire):
        lines = ["ghost keyword", "0 Volume", "+10% Growth"]
        assert extract_keywords(lines) == []

    def test_short_names_are_discarded(self, mock_logfire):
        lines = ["ab", "10K Volume", "+10% Growth"]
        assert extract_keywords(lines) == []

    def test_chart_label_fallback(self, mock_logfire):
        keywords = extract_keywords(["no keywords here"], ["chatbot builder", "5.2K", "", "7"])

        assert len(keywords) == 1
        assert keywords[0].name == "chatbot builder"
        assert keywords[0].volume == 5200
        assert keywords[0].trend == "stable"

    def test_chart_labels_unused_when_text_has_keywords(self, mock_logfire):
        lines = ["ai agents", "10K Volume", "+45% Growth"]
        keywords = extract_keywords(lines, ["chart label", "99K"])
        assert [kw.name for kw in keywords] == ["ai agents"]


class TestParsePage:
    """Test full page assembly on the sample idea page."""

    def test_sample_page(self, rendered_page, mock_logfire):
        content = parse_page(rendered_page)

        assert content.source_url == rendered_page.url
        assert content.title == "AI Meal Planner for Busy Parents"
        assert content.published_date == date(2025, 3, 5)
        assert content.open_graph.image == "https://ideas.test/og/meal-planner.png"
        assert content.missing_fields == []

    def test_sample_business_fit(self, rendered_page, mock_logfire):
        fit = parse_page(rendered_page).business_fit

        assert fit.opportunities.startswith("Parents spend five hours")
        assert fit.problems.startswith("Existing apps ignore picky eaters")
        assert fit.why_now.startswith("Cheap language models")
        assert fit.feasibility.startswith("A two person team")
        assert fit.revenue_potential.startswith("Subscriptions at 9 dollars")
        assert fit.execution_difficulty.startswith("Moderate, recipe data")
        assert fit.go_to_market.startswith("Partner with parenting newsletters")

    def test_sample_categorization(self, rendered_page, mock_logfire):
        categorization = parse_page(rendered_page).categorization

        assert categorization.type == "SaaS"
        assert categorization.market == "B2C"
        assert categorization.target_audience == "Working parents with young kids"
        assert categorization.main_competitor == "Mealime"
        assert categorization.trend_analysis == (
            "Meal kit fatigue drives demand for planning tools"
        )

    def test_sample_keywords_and_metrics(self, rendered_page, mock_logfire):
        content = parse_page(rendered_page)

        assert [(kw.name, kw.volume, kw.trend) for kw in content.keywords] == [
            ("meal planner app", 673000, "growing"),
            ("family meal planning", 12000, "declining"),
        ]
        metrics = content.derived_metrics
        assert metrics.keyword_count == 2
        assert metrics.avg_keyword_volume == 342500
        assert metrics.high_growth_count == 1

    def test_missing_sections_are_empty_not_fatal(self, mock_logfire):
        page = RenderedPage(
            url="https://ideas.test/x",
            html="<html><body><h1>Bare Idea</h1></body></html>",
            visible_text="Bare Idea\nNothing else on this page.",
        )
        content = parse_page(page)

        assert content.title == "Bare Idea"
        assert content.business_fit.opportunities == ""
        assert content.keywords == []
        assert "business_fit.opportunities" in content.missing_fields
        assert "categorization.main_competitor" in content.missing_fields

    def test_dom_text_used_when_visible_text_blank(self, mock_logfire):
        page = RenderedPage(
            url="https://ideas.test/x",
            html=(
                "<html><body><h1>Idea</h1><script>var x = 1;</script>"
                "<p>Type: Marketplace</p></body></html>"
            ),
            visible_text="   ",
        )
        assert parse_page(page).categorization.type == "Marketplace"

    def test_business_fit_and_categorization_helpers(self, sample_visible_text):
        lines = sample_visible_text.split("\n")
        fit, missing_fit = extract_business_fit(lines)
        categorization, missing_cat = extract_categorization(lines)

        assert fit.why_now
        assert categorization.market == "B2C"
        assert missing_fit == []
        assert missing_cat == []


class TestPageExtractor:
    """Test PageExtractor with a fake renderer."""

    @pytest.mark.asyncio
    async def test_extract(self, rendered_page, mock_logfire):
        renderer = MagicMock()
        renderer.render = AsyncMock(return_value=rendered_page)

        content = await PageExtractor(renderer).extract(rendered_page.url)

        renderer.render.assert_awaited_once_with(rendered_page.url)
        assert content.title == "AI Meal Planner for Busy Parents"

    @pytest.mark.asyncio
    async def test_render_error_propagates(self, mock_logfire):
        renderer = MagicMock()
        renderer.render = AsyncMock(side_effect=RenderError("Timed out"))

        with pytest.raises(RenderError, match="Timed out"):
            await PageExtractor(renderer).extract("https://ideas.test/x")

    @pytest.mark.asyncio
    async def test_extraction_error_propagates(self, mock_logfire):
        renderer = MagicMock()
        renderer.render = AsyncMock(
            return_value=RenderedPage(url="https://ideas.test/x", html="<p></p>", visible_text="")
        )

        with pytest.raises(ExtractionError):
            await PageExtractor(renderer).extract("https://ideas.test/x")
