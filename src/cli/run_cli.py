"""Typer CLI for running and diagnosing the workflow by hand."""

import os

os.environ.setdefault("LOGFIRE_IGNORE_NO_CONFIG", "1")

from pathlib import Path

_project_root = Path(__file__).resolve().parent.parent.parent
from dotenv import load_dotenv

load_dotenv(_project_root / ".env")
load_dotenv(_project_root / ".env.local")

import asyncio
import json
from typing import Optional

import typer
from notion_client import AsyncClient

from src.config import get_settings
from src.errors import PipelineError
from src.services.extractor import PageExtractor
from src.services.notion_service import NotionWriter
from src.services.pipeline import build_workflow
from src.services.renderer import PlaywrightRenderer, check_url_reachable
from src.services.translator import LibreTranslateClient, TranslationError

app = typer.Typer(help="MindRipper: scrape, translate and save the idea of the day.")


def _run_async(coro):
    """Run a coroutine on a fresh event loop."""
    return asyncio.run(coro)


def _resolve_url(url: str | None) -> str:
    resolved = url or get_settings().target_url
    if not resolved:
        typer.echo("✗ No URL given and TARGET_URL is not configured", err=True)
        raise typer.Exit(1)
    return resolved


def _translation_client() -> LibreTranslateClient:
    settings = get_settings()
    return LibreTranslateClient(
        base_url=settings.libre_translate_url,
        api_key=settings.libre_translate_api_key,
        timeout_seconds=settings.translation_timeout_seconds,
    )


def _notion_writer() -> NotionWriter:
    settings = get_settings()
    if not settings.notion_configured:
        typer.echo("✗ NOTION_API_KEY and NOTION_DATABASE_ID must be set", err=True)
        raise typer.Exit(1)
    return NotionWriter(
        AsyncClient(auth=settings.notion_api_key), settings.notion_database_id
    )


@app.command()
def scrape(url: Optional[str] = typer.Argument(None, help="Page to scrape (defaults to TARGET_URL)")):
    """Render and extract a page, printing the result as JSON."""
    target = _resolve_url(url)
    settings = get_settings()
    extractor = PageExtractor(
        PlaywrightRenderer(
            timeout_seconds=settings.browser_page_load_timeout_seconds,
            headless=settings.browser_headless,
            settle_delay_seconds=settings.browser_settle_delay_seconds,
        )
    )

    typer.echo(f"Scraping {target}...")
    try:
        content = _run_async(extractor.extract(target))
    except PipelineError as e:
        typer.echo(f"✗ Error scraping page: {e}", err=True)
        raise typer.Exit(1)

    typer.echo(json.dumps(content.model_dump(mode="json"), indent=2, ensure_ascii=False))
    if content.missing_fields:
        typer.echo(f"Missing fields: {', '.join(content.missing_fields)}")


@app.command()
def translate(
    text: str = typer.Argument(..., help="Text to translate"),
    source: Optional[str] = typer.Option(None, "--source", "-s"),
    target: Optional[str] = typer.Option(None, "--target", "-t"),
):
    """Translate a piece of text once."""
    settings = get_settings()
    client = _translation_client()
    try:
        translated = _run_async(
            client.translate(
                text,
                source or settings.source_language,
                target or settings.target_language,
            )
        )
    except TranslationError as e:
        typer.echo(f"✗ Translation failed: {e}", err=True)
        raise typer.Exit(1)
    typer.echo(translated)


@app.command("check-url")
def check_url(url: Optional[str] = typer.Argument(None, help="Page to check (defaults to TARGET_URL)")):
    """Check that the browser can load a page."""
    target = _resolve_url(url)
    typer.echo(f"Testing {target}...")
    if not _run_async(check_url_reachable(target)):
        typer.echo(f"✗ Could not load {target}", err=True)
        raise typer.Exit(1)
    typer.echo("✓ Page reachable")


@app.command("check-translation")
def check_translation():
    """Check that the translation endpoint answers."""
    settings = get_settings()
    typer.echo(f"Testing {settings.libre_translate_url}...")
    client = _translation_client()
    try:
        translated = _run_async(
            client.translate("Hello, world!", settings.source_language, settings.target_language)
        )
    except TranslationError as e:
        typer.echo(f"✗ Translation service unavailable: {e}", err=True)
        raise typer.Exit(1)
    typer.echo(f"✓ Translation service OK: {translated}")


@app.command("check-notion")
def check_notion():
    """Check that the Notion database is reachable."""
    writer = _notion_writer()
    if not _run_async(writer.check_connection()):
        typer.echo("✗ Could not reach the Notion database", err=True)
        raise typer.Exit(1)
    typer.echo("✓ Notion connection OK")


@app.command()
def run(url: Optional[str] = typer.Argument(None, help="Page to process (defaults to TARGET_URL)")):
    """Run the full workflow once: scrape, translate, save to Notion."""
    target = _resolve_url(url)
    _notion_writer()
    workflow = build_workflow(get_settings())

    typer.echo(f"Running workflow for {target}...")
    try:
        result = _run_async(workflow.run(target))
    except PipelineError as e:
        typer.echo(f"✗ Workflow failed: {e}", err=True)
        raise typer.Exit(1)

    typer.echo(f"✓ Notion page created: {result.page_id}")
    typer.echo(f"  Duration: {result.duration_seconds:.1f}s")
    if result.failed_fields:
        typer.echo(f"  Untranslated fields: {', '.join(result.failed_fields)}")


if __name__ == "__main__":
    app()
