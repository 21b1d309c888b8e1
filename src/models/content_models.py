"""Models for extracted page content: business fit, keywords, categorization."""

from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import List, Literal

from pydantic import BaseModel, ConfigDict, Field, computed_field, model_validator

from src.constants import (
    TREND_DECLINING_THRESHOLD_PERCENT,
    TREND_GROWING_THRESHOLD_PERCENT,
)

Trend = Literal["growing", "stable", "declining"]


def classify_trend(growth_percent: float) -> Trend:
    """Map a growth percentage onto the keyword trend classification."""
    if growth_percent > TREND_GROWING_THRESHOLD_PERCENT:
        return "growing"
    if growth_percent < TREND_DECLINING_THRESHOLD_PERCENT:
        return "declining"
    return "stable"


@dataclass(frozen=True)
class FieldMatch:
    """Result of a heuristic field lookup.

    ``found`` is False when no line carried the field's label at all, so a
    missing section can be told apart from a section whose label was present
    but whose body was empty.
    """

    value: str
    found: bool


class BusinessFit(BaseModel):
    """The seven qualitative business-viability sections."""

    model_config = ConfigDict(frozen=True)

    opportunities: str = ""
    problems: str = ""
    why_now: str = ""
    feasibility: str = ""
    revenue_potential: str = ""
    execution_difficulty: str = ""
    go_to_market: str = ""


class Categorization(BaseModel):
    """Market and competitor classification of an idea."""

    model_config = ConfigDict(frozen=True)

    type: str = ""
    market: str = ""
    target_audience: str = ""
    main_competitor: str = ""
    trend_analysis: str = ""


class Keyword(BaseModel):
    """Search keyword with monthly volume and growth."""

    model_config = ConfigDict(frozen=True)

    name: str
    volume: int = Field(..., ge=0, description="Monthly search volume")
    growth_percent: float = Field(default=0.0, description="Signed growth in %")
    trend: Trend = "stable"

    @model_validator(mode="after")
    def _trend_matches_growth(self) -> "Keyword":
        expected = classify_trend(self.growth_percent)
        if self.trend != expected:
            raise ValueError(
                f"trend {self.trend!r} does not match growth "
                f"{self.growth_percent}% (expected {expected!r})"
            )
        return self

    @classmethod
    def from_growth(cls, name: str, volume: int, growth_percent: float) -> "Keyword":
        return cls(
            name=name,
            volume=volume,
            growth_percent=growth_percent,
            trend=classify_trend(growth_percent),
        )


class OpenGraph(BaseModel):
    """Open Graph metadata read from the page head."""

    model_config = ConfigDict(frozen=True)

    title: str | None = None
    description: str | None = None
    image: str | None = None
    type: str | None = None


class DerivedMetrics(BaseModel):
    """Aggregate counters computed from the extracted fields."""

    model_config = ConfigDict(frozen=True)

    word_count: int = Field(default=0, ge=0)
    keyword_count: int = Field(default=0, ge=0)
    avg_keyword_volume: int = Field(default=0, ge=0)
    high_growth_count: int = Field(default=0, ge=0)


class PageContent(BaseModel):
    """Everything the extractor recovered from one rendered page."""

    model_config = ConfigDict(frozen=True)

    source_url: str
    title: str
    published_date: date | None = None
    scraped_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    business_fit: BusinessFit = Field(default_factory=BusinessFit)
    keywords: List[Keyword] = Field(default_factory=list)
    categorization: Categorization = Field(default_factory=Categorization)
    open_graph: OpenGraph = Field(default_factory=OpenGraph)
    missing_fields: List[str] = Field(
        default_factory=list,
        description="Fields whose label was not found on the page",
    )

    @computed_field
    @property
    def derived_metrics(self) -> DerivedMetrics:
        # Computed on access so it always reflects the current fields
        from src.services.metrics import compute_derived_metrics

        return compute_derived_metrics(
            self.business_fit, self.categorization, self.keywords
        )
