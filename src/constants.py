"""Application-wide constants.

This module centralizes all magic numbers and configuration constants
to ensure a single source of truth and easier maintenance.

Constants are organized by category: rendering, extraction heuristics,
translation, persistence and scheduling.
"""

# =============================================================================
# Rendering Configuration
# =============================================================================

# Bounded wait for page navigation (seconds)
BROWSER_PAGE_LOAD_TIMEOUT_SECONDS = 60.0

# Extra wait after network idle so client-rendered content can appear (seconds)
BROWSER_SETTLE_DELAY_SECONDS = 2.0

# Timeout for the lightweight reachability check (seconds)
BROWSER_CHECK_TIMEOUT_SECONDS = 30.0

DEFAULT_VIEWPORT_WIDTH = 1920
DEFAULT_VIEWPORT_HEIGHT = 1080

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)

# =============================================================================
# Extraction Heuristics
# =============================================================================

# Lines scanned after a business-fit label (label line included in the count)
SECTION_WINDOW_LINES = 15

# Lines must be longer than this to count as section prose
SECTION_MIN_LINE_CHARS = 10

# Stop collecting section prose once this many characters are gathered
SECTION_MAX_CHARS = 600

# Lines scanned after a categorization label
LABEL_VALUE_WINDOW_LINES = 5

# Accepted categorization value length (exclusive bounds)
LABEL_VALUE_MIN_CHARS = 2
LABEL_VALUE_MAX_CHARS = 200

# Accepted keyword name length (exclusive bounds)
KEYWORD_NAME_MIN_CHARS = 2
KEYWORD_NAME_MAX_CHARS = 100

# Trend classification thresholds (growth percent)
TREND_GROWING_THRESHOLD_PERCENT = 10.0
TREND_DECLINING_THRESHOLD_PERCENT = -10.0

# Keywords above this growth count as high-growth
HIGH_GROWTH_THRESHOLD_PERCENT = 50.0

VOLUME_SUFFIX_MULTIPLIERS = {"K": 1_000, "M": 1_000_000, "B": 1_000_000_000}

# =============================================================================
# Translation Configuration
# =============================================================================

DEFAULT_LIBRE_TRANSLATE_URL = "https://libretranslate.com/translate"

# Maximum characters submitted in a single translation request
MAX_TRANSLATION_CHUNK_CHARS = 5000

# Retries after the first failed attempt
TRANSLATION_MAX_RETRIES = 3

# First backoff delay, doubled on every retry (seconds)
TRANSLATION_INITIAL_RETRY_DELAY_SECONDS = 2.0

# Extra multiplier applied to the backoff when rate limited (HTTP 429)
TRANSLATION_RATE_LIMIT_BACKOFF_MULTIPLIER = 2

# Timeout for a single translation HTTP call (seconds)
TRANSLATION_HTTP_TIMEOUT_SECONDS = 30.0

# Minimum spacing between translation calls
TRANSLATION_CHUNK_INTERVAL_SECONDS = 1.0
TRANSLATION_FIELD_INTERVAL_SECONDS = 1.5
TRANSLATION_KEYWORD_INTERVAL_SECONDS = 1.0

DEFAULT_SOURCE_LANGUAGE = "en"
DEFAULT_TARGET_LANGUAGE = "fr"

# =============================================================================
# Notion Persistence
# =============================================================================

# Notion rejects rich text values longer than this
NOTION_RICH_TEXT_MAX_CHARS = 2000

# Title property is kept short for readable database views
NOTION_TITLE_MAX_CHARS = 200

# Multi-select option names are capped by Notion
NOTION_SELECT_OPTION_MAX_CHARS = 100

NOTION_MAX_RETRIES = 3
NOTION_INITIAL_RETRY_DELAY_SECONDS = 2.0

# =============================================================================
# Scheduling
# =============================================================================

DEFAULT_SCHEDULER_TIMEZONE = "Europe/Paris"

# Graceful shutdown timeout (seconds) - wait this long for a running workflow
GRACEFUL_SHUTDOWN_TIMEOUT_SECONDS = 30.0
