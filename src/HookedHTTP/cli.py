"""Command line entry point for ad-hoc requests through a HookedHTTP client.

Usage:
    hookedhttp request GET https://api.example.com/v1/users
    hookedhttp request POST users --base-url https://api.example.com/v1 \\
        -H "Authorization: Bearer abc" --json '{"name": "ada"}'
    hookedhttp request GET https://api.example.com/health --no-log --fail
"""

from __future__ import annotations

import asyncio
import json
from typing import Any, Dict, List, Optional

import httpx
import typer

from .client import create_http_client
from .errors import HookedHTTPError
from .logging_utils import setup_logging
from .settings import get_settings

app = typer.Typer(help="Issue HTTP requests through a HookedHTTP client", no_args_is_help=True)


@app.callback()
def main() -> None:
    """HookedHTTP command line tools."""


def _parse_headers(values: List[str]) -> Dict[str, str]:
    headers: Dict[str, str] = {}
    for value in values:
        name, sep, content = value.partition(":")
        if not sep or not name.strip():
            raise typer.BadParameter(f"header must look like 'Name: value', got '{value}'")
        headers[name.strip()] = content.strip()
    return headers


def _default_base_url(url: str) -> str:
    parsed = httpx.URL(url)
    if not parsed.is_absolute_url:
        raise typer.BadParameter("relative URLs need --base-url")
    return str(parsed.copy_with(raw_path=b"/"))


async def _send(
    method: str,
    url: str,
    base_url: str,
    headers: Dict[str, str],
    body: Any,
    log: bool,
    timeout: Optional[float],
) -> httpx.Response:
    options: Dict[str, Any] = {"headers": headers}
    if timeout is not None:
        options["timeout"] = timeout
    async with create_http_client(base_url, logging=log, **options) as client:
        kwargs: Dict[str, Any] = {}
        if body is not None:
            kwargs["json"] = body
        return await client.request(method, url, **kwargs)


@app.command()
def request(
    method: str = typer.Argument(..., help="HTTP method, e.g. GET or POST"),
    url: str = typer.Argument(..., help="Absolute URL, or a path relative to --base-url"),
    base_url: Optional[str] = typer.Option(None, "--base-url", help="Prefix for relative URLs"),
    header: List[str] = typer.Option([], "--header", "-H", help="Extra header, 'Name: value'"),
    json_body: Optional[str] = typer.Option(None, "--json", help="JSON request body"),
    log: bool = typer.Option(True, "--log/--no-log", help="Emit [REQ]/[RES] log groups"),
    json_logs: bool = typer.Option(False, "--json-logs", help="Emit logs as JSON lines"),
    timeout: Optional[float] = typer.Option(None, help="Request timeout in seconds"),
    fail: bool = typer.Option(False, "--fail/--no-fail", help="Exit 1 on 4xx/5xx responses"),
) -> None:
    """Send one request and print the status line and body."""

    headers = _parse_headers(header)
    body: Any = None
    if json_body is not None:
        try:
            body = json.loads(json_body)
        except ValueError as exc:
            raise typer.BadParameter(f"--json is not valid JSON: {exc}") from exc

    try:
        logging_settings = get_settings().logging_settings()
        if json_logs:
            logging_settings = logging_settings.model_copy(update={"emit_json_logs": True})
        setup_logging(logging_settings)

        response = asyncio.run(
            _send(method, url, base_url or _default_base_url(url), headers, body, log, timeout)
        )
    except (httpx.HTTPError, HookedHTTPError) as exc:
        typer.echo(f"request failed: {exc}", err=True)
        raise typer.Exit(1) from exc

    typer.echo(f"HTTP {response.status_code} {response.reason_phrase}")
    if response.content:
        typer.echo(response.text)
    if fail and response.is_error:
        raise typer.Exit(1)


if __name__ == "__main__":  # pragma: no cover
    app()
