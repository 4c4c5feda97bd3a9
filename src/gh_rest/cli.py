"""CLI entry point for gh-rest.

Commands:
- get: GET an endpoint (optionally every page) and print the JSON body
- rate-limit: Show the current rate limit status
"""

import asyncio
import json
from pathlib import Path
from typing import Any

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from gh_rest import __version__
from gh_rest.client import RestClient
from gh_rest.config import ClientConfig, load_config
from gh_rest.errors import GitHubError
from gh_rest.http.api_info import ApiInfo
from gh_rest.http.connection import Connection
from gh_rest.http.pagination import ApiOptions
from gh_rest.logging import setup_logging

console = Console()
err_console = Console(stderr=True)


def _make_client(ctx: click.Context) -> RestClient:
    config: ClientConfig = ctx.obj["config"]
    return RestClient(Connection.from_config(config))


def _run(coro: Any) -> Any:
    try:
        return asyncio.run(coro)
    except GitHubError as e:
        err_console.print(f"[bold red]Error:[/bold red] {escape(str(e))}")
        raise SystemExit(1) from e


@click.group()
@click.version_option(version=__version__, prog_name="gh-rest")
@click.option("--verbose", "-v", is_flag=True, default=False, help="Enable verbose output")
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=True, path_type=Path),
    default=None,
    help="Path to config.yaml file",
)
@click.pass_context
def main(ctx: click.Context, verbose: bool, config: Path | None) -> None:
    """Command line access to the GitHub REST API.

    \b
    Examples:
        gh-rest get /users/octocat
        gh-rest get /repos/octocat/hello-world/issues --all --per-page 100
        gh-rest rate-limit
    """
    cfg = load_config(config) if config else ClientConfig()
    ctx.ensure_object(dict)
    ctx.obj["config"] = cfg
    setup_logging(verbose=verbose or cfg.logging.verbose, json_format=cfg.logging.json_format)


@main.command()
@click.argument("endpoint")
@click.option("--all", "fetch_all", is_flag=True, default=False, help="Follow pagination")
@click.option("--per-page", type=click.IntRange(1, 100), default=None, help="Page size")
@click.option("--max-pages", type=click.IntRange(1), default=None, help="Stop after N pages")
@click.pass_context
def get(
    ctx: click.Context,
    endpoint: str,
    fetch_all: bool,
    per_page: int | None,
    max_pages: int | None,
) -> None:
    """GET ENDPOINT and print the response body as JSON."""

    async def fetch() -> Any:
        async with _make_client(ctx) as client:
            if fetch_all:
                options = ApiOptions(page_size=per_page, page_count=max_pages)
                return list(await client.get_all(endpoint, options=options))
            params = {"per_page": str(per_page)} if per_page else None
            return await client.get(endpoint, params=params)

    data = _run(fetch())
    if isinstance(data, str):
        click.echo(data)
    else:
        click.echo(json.dumps(data, indent=2, default=str))


@main.command("rate-limit")
@click.pass_context
def rate_limit(ctx: click.Context) -> None:
    """Show rate limit usage per resource."""

    async def fetch() -> tuple[dict[str, Any], ApiInfo | None]:
        async with _make_client(ctx) as client:
            data = await client.get_rate_limit()
            return data, client.last_api_info

    data, info = _run(fetch())

    table = Table(title="GitHub API rate limits")
    table.add_column("Resource")
    table.add_column("Limit", justify="right")
    table.add_column("Remaining", justify="right")
    table.add_column("Used", justify="right")

    for name, values in sorted(data.get("resources", {}).items()):
        table.add_row(
            name,
            str(values.get("limit", "")),
            str(values.get("remaining", "")),
            str(values.get("used", "")),
        )

    if info is not None:
        reset = info.rate_limit_reset.isoformat() if info.rate_limit_reset else "unknown"
        scopes = ", ".join(info.oauth_scopes) or "none"
        table.caption = f"Core resets at {reset} | OAuth scopes: {scopes}"

    console.print(table)


if __name__ == "__main__":
    main()
