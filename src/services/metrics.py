"""Derived counters for extracted page content."""

import math
from typing import Sequence

from src.constants import HIGH_GROWTH_THRESHOLD_PERCENT
from src.models.content_models import (
    BusinessFit,
    Categorization,
    DerivedMetrics,
    Keyword,
)


def count_words(text: str) -> int:
    """Count whitespace-separated, non-empty tokens."""
    return len(text.split())


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def compute_derived_metrics(
    business_fit: BusinessFit,
    categorization: Categorization,
    keywords: Sequence[Keyword],
) -> DerivedMetrics:
    """
    Compute word count and keyword aggregates.

    Pure function: the same inputs always give the same counters, and an
    empty keyword list yields a zero average rather than a division error.
    """
    text = " ".join(
        [
            *business_fit.model_dump().values(),
            *categorization.model_dump().values(),
        ]
    )

    keyword_count = len(keywords)
    avg_volume = 0
    high_growth = 0
    if keyword_count:
        avg_volume = _round_half_up(sum(kw.volume for kw in keywords) / keyword_count)
        high_growth = sum(
            1 for kw in keywords if kw.growth_percent > HIGH_GROWTH_THRESHOLD_PERCENT
        )

    return DerivedMetrics(
        word_count=count_words(text),
        keyword_count=keyword_count,
        avg_keyword_volume=avg_volume,
        high_growth_count=high_growth,
    )
