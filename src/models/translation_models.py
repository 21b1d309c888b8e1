"""Models for bilingual content produced by the translator."""

from typing import List

from pydantic import BaseModel, ConfigDict, Field

from src.models.content_models import BusinessFit, Categorization, PageContent


class TranslatedFields(BaseModel):
    """Translated copy of every text field of a PageContent."""

    model_config = ConfigDict(frozen=True)

    title: str = ""
    business_fit: BusinessFit = Field(default_factory=BusinessFit)
    keywords: List[str] = Field(
        default_factory=list, description="Translated keyword names, same order"
    )
    categorization: Categorization = Field(default_factory=Categorization)


class TranslationMetadata(BaseModel):
    """Bookkeeping for one translation pass."""

    model_config = ConfigDict(frozen=True)

    total_characters: int = Field(default=0, ge=0)
    request_count: int = Field(default=0, ge=0)
    duration_seconds: float = Field(default=0.0, ge=0)
    failed_fields: List[str] = Field(default_factory=list)
    aborted_reason: str | None = Field(
        default=None,
        description="Systemic error that stopped translation early, if any",
    )


class TranslatedContent(BaseModel):
    """Original content paired with its translation."""

    model_config = ConfigDict(frozen=True)

    original: PageContent
    translated: TranslatedFields
    metadata: TranslationMetadata
    source_language: str
    target_language: str
