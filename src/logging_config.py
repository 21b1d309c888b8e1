"""Centralized logging configuration with Pydantic Logfire integration."""

import logging
from typing import Any

import logfire
from fastapi import FastAPI

from src.config import get_settings


def setup_logfire(app: FastAPI | None = None) -> None:
    """
    Initialize and configure Pydantic Logfire for observability.

    Sets up:
    - FastAPI instrumentation (request/response tracing) when an app is given
    - Pydantic instrumentation (model validation logging)
    - httpx instrumentation (translation endpoint calls)
    - Environment-aware stdlib logging format
    """
    settings = get_settings()

    logfire_config: dict[str, Any] = {
        "environment": settings.env,
    }

    # Add token if provided (for cloud logging)
    if settings.logfire_token:
        logfire_config["token"] = settings.logfire_token

    logfire.configure(**logfire_config)

    if app is not None:
        logfire.instrument_fastapi(app)
    logfire.instrument_pydantic()

    try:
        logfire.instrument_httpx()
    except Exception:
        # Optional extra (logfire[httpx]) may be missing
        logfire.warning("httpx instrumentation unavailable")

    log_level = settings.log_level.upper()

    if settings.env == "local":
        # Local: Console formatting for development
        logging.basicConfig(
            level=getattr(logging, log_level, logging.INFO),
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        )
    else:
        # Production: Logfire handles structured formatting
        logging.basicConfig(
            level=getattr(logging, log_level, logging.INFO),
            format="%(message)s",
        )


def mask_secret(value: str | None, mask_char: str = "*") -> str:
    """
    Mask an API key or token for log output.

    Args:
        value: Value to mask
        mask_char: Character to use for masking

    Returns:
        Masked string showing only the first and last two characters
    """
    if not value:
        return ""

    if len(value) <= 4:
        return mask_char * len(value)

    return f"{value[:2]}{mask_char * (len(value) - 4)}{value[-2:]}"


def redact_tokens(data: dict[str, Any]) -> dict[str, Any]:
    """
    Redact authentication tokens and API keys from log data.

    Args:
        data: Dictionary that may contain sensitive tokens

    Returns:
        Dictionary with tokens redacted
    """
    redacted = data.copy()
    sensitive_keys = [
        "token",
        "api_key",
        "secret",
        "authorization",
        "auth",
    ]

    for key in sensitive_keys:
        if key in redacted:
            if isinstance(redacted[key], str):
                redacted[key] = mask_secret(redacted[key])
            elif isinstance(redacted[key], dict):
                redacted[key] = redact_tokens(redacted[key])

    return redacted
