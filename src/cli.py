"""Click CLI: run the server, or discover/extract URLs from the shell."""

from __future__ import annotations

import asyncio
import json
import logging
import os
from pathlib import Path
from typing import IO

import click

from src.audit.logger import validate_audit_chain
from src.extraction.discovery import discover_urls
from src.extraction.extractor import ContentExtractor


@click.group()
@click.option(
    "--log-level",
    default=lambda: os.environ.get("LOG_LEVEL", "INFO"),
    show_default="INFO",
    help="Logging level.",
)
def cli(log_level: str) -> None:
    """hookscout webhook ingestion and URL extraction."""
    logging.basicConfig(
        level=log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@cli.command()
@click.option("--host", default=lambda: os.environ.get("HOST", "0.0.0.0"), help="Bind address.")
@click.option("--port", default=lambda: int(os.environ.get("PORT", "3000")), type=int,
              help="Bind port.")
@click.option("--reload", is_flag=True, help="Reload on code changes.")
def serve(host: str, port: int, reload: bool) -> None:
    """Run the HTTP server."""
    import uvicorn

    click.echo(f"Webhook URL: http://localhost:{port}/webhook", err=True)
    uvicorn.run(
        "src.server.app:create_app_from_env",
        factory=True,
        host=host,
        port=port,
        reload=reload,
    )


@cli.command()
@click.argument("payload", type=click.File("r"))
@click.option("--referer", default=None, help="Referer header value to include.")
def discover(payload: IO[str], referer: str | None) -> None:
    """Print URLs found in a JSON PAYLOAD file (use - for stdin)."""
    try:
        body = json.load(payload)
    except json.JSONDecodeError as exc:
        raise click.ClickException(f"Invalid JSON payload: {exc}") from exc
    headers = {"referer": referer} if referer else {}
    click.echo(json.dumps(discover_urls(body, headers), indent=2))


@cli.command()
@click.argument("url")
@click.option("--token", default=None, help="Credential forwarded to the target URL.")
def extract(url: str, token: str | None) -> None:
    """Fetch URL once and print the extraction result as JSON."""
    content = asyncio.run(ContentExtractor().extract(url, token))
    click.echo(json.dumps(content.to_wire(), indent=2))


@cli.command("audit-verify")
@click.argument("log_path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
def audit_verify(log_path: Path) -> None:
    """Check the hash chain of an audit log; exit 1 if it is broken."""
    result = validate_audit_chain(log_path)
    if not result.valid:
        click.echo(f"Audit chain broken at line {result.broken_at_line}", err=True)
        raise SystemExit(1)
    click.echo("Audit chain intact")
