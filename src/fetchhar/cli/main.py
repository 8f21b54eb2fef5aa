"""fetchhar CLI - record HTTP requests as a HAR file.

Fetches one or more URLs through the instrumented fetch and writes the
resulting HAR log to a file or stdout.
"""

import asyncio
import os
import sys
from pathlib import Path
from typing import Annotated, Any

import click
import typer
from rich.panel import Panel

import fetchhar
from fetchhar import console as fh_console
from fetchhar.client import with_har
from fetchhar.config import get_settings
from fetchhar.har import create_har_log, dump_har
from fetchhar.logging import (
    configure_from_settings,
    configure_logging,
    enable_transport_debug,
    get_logger,
)

# Configure logging early using env vars directly; -v/-vv and --log-format in
# main_callback() may reconfigure later.
configure_logging(
    level=os.environ.get("FETCHHAR_LOG_LEVEL", "WARNING"),
    json_output=os.environ.get("FETCHHAR_LOG_FORMAT", "console") == "json",
)

LOG = get_logger(__name__)

app = typer.Typer(
    name="fetchhar",
    help="""
    fetchhar - record HTTP requests as HAR

    \b
    Quick start:
      fetchhar capture https://example.com            HAR to stdout
      fetchhar capture URL URL -o run.har             Several URLs, one file
    """,
    no_args_is_help=True,
    rich_markup_mode="rich",
    context_settings={"help_option_names": ["-h", "--help"]},
)


@app.callback(invoke_without_command=True)
def main_callback(
    verbose: Annotated[
        int,
        typer.Option(
            "--verbose",
            "-v",
            count=True,
            help="Increase verbosity (-v for info, -vv for debug)",
        ),
    ] = 0,
    log_format: Annotated[
        str | None,
        typer.Option(
            "--log-format",
            click_type=click.Choice(["console", "json"]),
            help="Log output format: console (human-readable) or json (structured)",
        ),
    ] = None,
    transport_debug: Annotated[
        bool,
        typer.Option(
            "--transport-debug",
            help="Enable httpx/httpcore debug logging",
        ),
    ] = False,
) -> None:
    """fetchhar - record HTTP requests as HAR."""
    json_output = None if log_format is None else log_format == "json"

    if verbose >= 2:
        configure_from_settings(get_settings(), level="DEBUG", json_output=json_output)
    elif verbose >= 1:
        configure_from_settings(get_settings(), level="INFO", json_output=json_output)
    elif log_format is not None:
        configure_from_settings(get_settings(), json_output=json_output)

    if transport_debug:
        enable_transport_debug()


@app.command("version")
def version() -> None:
    """Show fetchhar version and settings."""
    settings = get_settings()
    fh_console.err_console.print(
        Panel(
            f"[bold cyan]fetchhar[/bold cyan] v{fetchhar.__version__}\n\n"
            f"[dim]Header:[/dim]   {settings.header_name}\n"
            f"[dim]Page ref:[/dim] {settings.page_ref}",
            title="HAR capture for fetch-style HTTP calls",
            border_style="cyan",
        )
    )


def parse_header_options(values: list[str]) -> list[tuple[str, str]]:
    """Parse ``"Name: value"`` strings into header pairs.

    Raises:
        typer.BadParameter: If a value has no colon or an empty name.
    """
    headers: list[tuple[str, str]] = []
    for header_str in values:
        name, sep, value = header_str.partition(":")
        if not sep or not name.strip():
            raise typer.BadParameter(f"Invalid header format (expected 'Name: value'): {header_str}")
        headers.append((name.strip(), value.strip()))
    return headers


async def _capture_all(
    urls: list[str],
    *,
    har: dict[str, Any],
    page_ref: str,
    method: str,
    headers: list[tuple[str, str]],
    data: str | None,
    follow: bool,
    timeout: float,
) -> list[tuple[str, BaseException]]:
    """Fetch every URL concurrently, recording into ``har``.

    Returns:
        ``(url, error)`` pairs for the requests that failed.
    """
    async with with_har(har=har, har_page_ref=page_ref) as fetch:
        results = await asyncio.gather(
            *(
                fetch(
                    url,
                    method=method,
                    headers=list(headers),
                    content=data,
                    redirect="follow" if follow else "manual",
                    timeout=timeout,
                )
                for url in urls
            ),
            return_exceptions=True,
        )
    return [
        (url, result) for url, result in zip(urls, results, strict=True) if isinstance(result, BaseException)
    ]


@app.command("capture")
def capture(
    urls: Annotated[list[str], typer.Argument(help="URLs to fetch", metavar="URL...")],
    method: Annotated[str, typer.Option("--method", "-X", help="HTTP method")] = "GET",
    header: Annotated[
        list[str] | None,
        typer.Option("--header", "-H", help="Request header as 'Name: value' (repeatable)"),
    ] = None,
    data: Annotated[
        str | None, typer.Option("--data", "-d", help="Request body sent as-is")
    ] = None,
    page_ref: Annotated[
        str | None, typer.Option("--page-ref", help="pageref for the recorded entries")
    ] = None,
    output: Annotated[
        Path | None, typer.Option("--output", "-o", help="Write the HAR to this file")
    ] = None,
    no_follow: Annotated[
        bool, typer.Option("--no-follow", help="Do not follow redirects")
    ] = False,
    timeout: Annotated[float, typer.Option("--timeout", help="Request timeout in seconds")] = 30.0,
) -> None:
    """Fetch URLs and write their HAR log."""
    headers = parse_header_options(header or [])
    page_ref = page_ref or get_settings().page_ref
    har = create_har_log(page_info={"id": page_ref, "title": " ".join(urls)})

    failures = asyncio.run(
        _capture_all(
            urls,
            har=har,
            page_ref=page_ref,
            method=method.upper(),
            headers=headers,
            data=data,
            follow=not no_follow,
            timeout=timeout,
        )
    )

    text = dump_har(har)
    if output is not None:
        output.write_text(text + "\n")
        fh_console.success(f"Wrote {len(har['log']['entries'])} entries to {output}")
    else:
        sys.stdout.write(text + "\n")

    if har["log"]["entries"] or not failures:
        fh_console.print_entries(har["log"]["entries"])

    for url, exc in failures:
        LOG.warning("capture_failed", url=url, error=str(exc), exc_type=type(exc).__name__)
        fh_console.error(f"{url}: {exc}")
    if failures:
        raise typer.Exit(1)


def main() -> None:
    """Console script entry point."""
    app()


if __name__ == "__main__":
    main()
