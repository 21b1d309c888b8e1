"""Models for the Notion database record written once per run."""

from datetime import date, datetime
from typing import List, Literal

from pydantic import BaseModel, Field

from src.models.content_models import BusinessFit, Categorization


class NotionEntry(BaseModel):
    """Bilingual record mapped onto the Notion database properties.

    "source" fields hold the page language, "target" fields the translation.
    """

    url: str = Field(..., description="Source page URL")
    scraped_date: datetime
    published_date: date | None = None
    status: Literal["success", "error"] = "success"
    image_preview: str | None = Field(default=None, description="og:image URL")

    source_language: str = "en"
    target_language: str = "fr"

    title_source: str
    title_target: str = ""

    business_fit_source: BusinessFit = Field(default_factory=BusinessFit)
    business_fit_target: BusinessFit = Field(default_factory=BusinessFit)

    keywords: List[str] = Field(default_factory=list, description="Keyword names")
    top_keyword: str = ""
    keyword_count: int = Field(default=0, ge=0)
    avg_keyword_volume: int = Field(default=0, ge=0)
    high_growth_keyword_count: int = Field(default=0, ge=0)

    categorization_source: Categorization = Field(default_factory=Categorization)
    categorization_target: Categorization = Field(default_factory=Categorization)

    word_count_source: int = Field(default=0, ge=0)
    word_count_target: int = Field(default=0, ge=0)
    translation_duration_seconds: float = Field(default=0.0, ge=0)
    failed_translations: str | None = None

    error_message: str | None = None
