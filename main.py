#!/usr/bin/env python3
"""
LinkFeed - Feed Ingestion and Link Canonicalization
==================================================

Command line interface for configuration checks and manual feed runs.

Usage:
    python main.py --help                          # Show all commands
    python main.py check-config                    # Validate configuration
    python main.py normalize URL                   # Canonical form of a URL
    python main.py absolutize LINK BASE            # Resolve a relative link
    python main.py fetch-feed URL                  # Fetch and parse one feed
    python main.py collect --feeds URL --feeds URL # Harvest links from feeds
"""

import sys
from datetime import datetime, timezone
from pathlib import Path

import click
from rich.console import Console
from rich.table import Table

# Add project root to Python path
sys.path.insert(0, str(Path(__file__).parent))

from linkfeed.config.settings import get_settings
from linkfeed.ingestion import FeedReader
from linkfeed.urls import UrlCanonicalizer, StaticResolver
from linkfeed.utils.logging import configure_application_logging
from linkfeed.utils.exceptions import LinkFeedError, get_user_friendly_message

console = Console()


def _setup_logging(settings, debug: bool) -> None:
    configure_application_logging(
        settings.logging,
        log_level="DEBUG" if debug else settings.get_effective_log_level(),
    )


def _format_timestamp(timestamp) -> str:
    if timestamp is None:
        return "No date"
    return datetime.fromtimestamp(timestamp, tz=timezone.utc).strftime("%Y-%m-%d %H:%M UTC")


@click.group(invoke_without_command=True)
@click.option('--debug', is_flag=True, help='Enable debug mode')
@click.pass_context
def cli(ctx, debug):
    """LinkFeed - feed ingestion and URL canonicalization."""
    ctx.ensure_object(dict)
    ctx.obj['debug'] = debug

    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


@cli.command()
def check_config():
    """Show the effective configuration and prepare its directories."""
    console.print("[bold blue]🔧 Checking LinkFeed Configuration[/bold blue]")

    try:
        settings = get_settings()
    except LinkFeedError as e:
        console.print(f"[bold red]❌ {get_user_friendly_message(e)}[/bold red]")
        sys.exit(1)

    table = Table(title="Effective Configuration")
    table.add_column("Section", style="cyan")
    table.add_column("Setting")
    table.add_column("Value", style="green")

    for section, name, value in _describe_settings(settings):
        table.add_row(section, name, value)

    console.print(table)
    console.print("[bold green]✅ All configuration checks passed![/bold green]")


@cli.command()
@click.argument('url')
@click.option('--offline', is_flag=True, help='Skip DNS lookups (www. hosts are kept)')
def normalize(url, offline):
    """Print the canonical form of URL."""
    canonicalizer = UrlCanonicalizer(StaticResolver() if offline else None)
    click.echo(canonicalizer.normalize(url))


@cli.command()
@click.argument('link')
@click.argument('base')
def absolutize(link, base):
    """Resolve LINK found on page BASE into an absolute URL."""
    click.echo(UrlCanonicalizer(StaticResolver()).absolutize(link, base))


@cli.command()
@click.argument('url')
@click.option('--user', default=None, help='Basic auth user name')
@click.option('--password', default=None, help='Basic auth password')
@click.option('--limit', default=10, show_default=True, help='Items to show')
@click.pass_context
def fetch_feed(ctx, url, user, password, limit):
    """Fetch and parse a single feed."""
    console.print(f"[bold blue]📡 Fetching Feed: {url}[/bold blue]")

    try:
        settings = get_settings()
        _setup_logging(settings, ctx.obj.get('debug', False))
        reader = FeedReader.from_settings(settings)
        feed = reader.read(url, user, password)
    except LinkFeedError as e:
        console.print(f"[bold red]❌ {get_user_friendly_message(e)}: {e}[/bold red]")
        sys.exit(1)

    console.print(f"[bold green]✅ {feed.format.upper()} feed with {len(feed)} items[/bold green]")

    info_table = Table(title=feed.title or "Untitled feed")
    info_table.add_column("Published", style="cyan")
    info_table.add_column("Title", style="green")
    info_table.add_column("Link")

    for item in feed.items[:limit]:
        info_table.add_row(_format_timestamp(item.timestamp), item.title or "", item.link or "")

    console.print(info_table)


@cli.command()
@click.option('--feeds', multiple=True, required=True, help='Feed URLs to read (repeatable)')
@click.pass_context
def collect(ctx, feeds):
    """Harvest canonical links from several feeds."""
    try:
        settings = get_settings()
    except LinkFeedError as e:
        console.print(f"[bold red]❌ {get_user_friendly_message(e)}[/bold red]")
        sys.exit(1)

    _setup_logging(settings, ctx.obj.get('debug', False))
    reader = FeedReader.from_settings(settings)

    results = reader.collect(feeds)

    table = Table(title="Feed Collection")
    table.add_column("Feed", style="cyan")
    table.add_column("Status")
    table.add_column("Links", justify="right")

    for result in results:
        status = "✅ OK" if result.success else f"❌ {get_user_friendly_message(result.error)}"
        table.add_row(result.feed_url, status, str(len(result.links)))

    console.print(table)

    for result in results:
        for link in result.links:
            click.echo(link.url)

    if not any(result.success for result in results):
        sys.exit(1)


def _describe_settings(settings):
    """Rows of (section, setting, value); credentials are never printed."""
    feeds = settings.feeds
    yield "feeds", "cache_dir", feeds.cache_dir or "disabled"
    yield "feeds", "cache_ttl_seconds", str(feeds.cache_ttl_seconds)
    yield "feeds", "user_agent", feeds.user_agent
    yield "feeds", "request_timeout", f"{feeds.request_timeout}s"
    yield "feeds", "follow_redirects", str(feeds.follow_redirects)
    yield "feeds", "credentials", f"{len(feeds.credentials)} feed(s)"

    log_settings = settings.logging
    yield "logging", "level", settings.get_effective_log_level()
    yield "logging", "file_path", log_settings.file_path or "none"
    yield "logging", "console", str(log_settings.console_logging)


if __name__ == "__main__":
    try:
        cli()
    except KeyboardInterrupt:
        console.print("\n[yellow]👋 LinkFeed interrupted by user[/yellow]")
        sys.exit(130)
