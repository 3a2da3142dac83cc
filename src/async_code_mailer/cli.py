# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Command-line interface for the code mailer.

Usage:
    code-mailer serve --port 3000
    code-mailer config
    code-mailer send user@example.com Ann 123456 --url http://localhost:3000
    code-mailer queue
    code-mailer run-now
"""

from __future__ import annotations

import asyncio
import json
import sys
from typing import Any, Optional

import aiohttp
import click
from rich.console import Console
from rich.table import Table

from async_code_mailer.client import CodeMailerClient
from async_code_mailer.config import ConfigurationError, load_settings
from async_code_mailer.server import serve

console = Console()
err_console = Console(stderr=True)

DEFAULT_URL = "http://localhost:3000"


def run_async(coro):
    """Run an async coroutine synchronously."""
    return asyncio.run(coro)


def print_error(message: str) -> None:
    """Print an error message to stderr."""
    err_console.print(f"[red]Error:[/red] {message}")


def print_json(data: Any) -> None:
    console.print_json(json.dumps(data, indent=2, default=str))


def _load_settings(config_path: Optional[str]):
    try:
        return load_settings(config_path)
    except ConfigurationError as exc:
        print_error(str(exc))
        sys.exit(2)


@click.group()
@click.version_option(package_name="async-code-mailer")
@click.option("--config", "config_path", default=None, help="Path to config.ini (default: $ACM_CONFIG or config.ini).")
@click.pass_context
def main(ctx: click.Context, config_path: Optional[str]) -> None:
    """Deliver confirmation codes by email."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path


@main.command("serve")
@click.option("--host", "-h", default=None, help="Host to bind to.")
@click.option("--port", "-p", type=int, default=None, help="Port to listen on.")
@click.pass_context
def serve_command(ctx: click.Context, host: Optional[str], port: Optional[int]) -> None:
    """Run the HTTP server."""
    settings = _load_settings(ctx.obj["config_path"])
    serve(settings, host=host, port=port)


@main.command("config")
@click.pass_context
def show_config(ctx: click.Context) -> None:
    """Show the resolved settings (secrets masked)."""
    settings = _load_settings(ctx.obj["config_path"])
    table = Table(title="Code mailer settings")
    table.add_column("Setting", style="cyan")
    table.add_column("Value")
    for key, value in settings.as_dict().items():
        table.add_row(key, "-" if value is None else str(value))
    console.print(table)
    if not settings.smtp_configured:
        console.print("[yellow]SMTP is not fully configured: simulation mode.[/yellow]")


@main.command("send")
@click.argument("email")
@click.argument("username")
@click.argument("code")
@click.option("--url", default=DEFAULT_URL, show_default=True, help="Base URL of a running server.")
def send_command(email: str, username: str, code: str, url: str) -> None:
    """Submit a confirmation code to a running server."""

    async def _send():
        async with CodeMailerClient(url) as client:
            return await client.send_code(email, username, code)

    try:
        status_code, body = run_async(_send())
    except aiohttp.ClientError as exc:
        print_error(f"Cannot reach {url}: {exc}")
        sys.exit(1)
    print_json({"status": status_code, **body})
    if status_code not in (200, 202):
        sys.exit(1)


@main.command("queue")
@click.option("--url", default=DEFAULT_URL, show_default=True, help="Base URL of a running server.")
def queue_command(url: str) -> None:
    """List items waiting for background redelivery."""

    async def _queue():
        async with CodeMailerClient(url) as client:
            return await client.queue()

    try:
        data = run_async(_queue())
    except aiohttp.ClientError as exc:
        print_error(f"Cannot reach {url}: {exc}")
        sys.exit(1)
    items = data.get("items", [])
    if not items:
        console.print("[dim]Failure queue is empty.[/dim]")
        return
    table = Table(title=f"Failure queue ({len(items)})")
    table.add_column("Recipient", style="cyan")
    table.add_column("Name")
    table.add_column("Attempts", justify="right")
    table.add_column("Last error")
    for item in items:
        table.add_row(
            item.get("recipient", ""),
            item.get("display_name", ""),
            str(item.get("attempt_count", 0)),
            item.get("last_error") or "-",
        )
    console.print(table)


@main.command("run-now")
@click.option("--url", default=DEFAULT_URL, show_default=True, help="Base URL of a running server.")
def run_now_command(url: str) -> None:
    """Run one requeue cycle on a running server."""

    async def _run():
        async with CodeMailerClient(url) as client:
            return await client.run_now()

    try:
        data = run_async(_run())
    except aiohttp.ClientError as exc:
        print_error(f"Cannot reach {url}: {exc}")
        sys.exit(1)
    console.print(f"[green]✓[/green] Requeue cycle: {data.get('outcome')}")


if __name__ == "__main__":
    main()
