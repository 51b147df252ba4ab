"""
CLI interface for the AI request router.

Routes single requests from the shell, reports usage, shows the routing
ledger, and runs the HTTP API.
"""

import sys
from typing import Optional

import typer
import uvicorn
import yaml
from rich.console import Console
from rich.table import Table

from ai_router.api.app import create_app
from ai_router.api.auth import StaticCallerResolver
from ai_router.config.loader import RouterConfig
from ai_router.core.errors import QuotaExceeded, RouterError
from ai_router.core.models import DEFAULT_TASK_TYPE, UNLIMITED_LABEL, RoutingRequest, parse_provider_id
from ai_router.core.quota import current_period_key
from ai_router.core.router import Router
from ai_router.core.usage_stats import get_usage_stats
from ai_router.logs import configure_logging
from ai_router.storage.repository import SqliteQuotaStore, SqliteUsageLedger, initialize_schema

app = typer.Typer()
console = Console()

EXIT_CODE_OK = 0
EXIT_CODE_FAIL = 1
EXIT_CODE_QUOTA_EXCEEDED = 2


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    config_path: Optional[str] = typer.Option(
        None,
        "--config",
        "-c",
        help="Routing policy YAML (defaults to $AI_ROUTER_CONFIG)"
    )
):
    """AI Request Router CLI."""
    try:
        config = RouterConfig.from_env(routing_config_path=config_path)
    except (FileNotFoundError, ValueError, yaml.YAMLError) as e:
        console.print(f"[red]Error loading configuration:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)

    configure_logging(config.log_level, config.log_json)
    ctx.obj = config

    if ctx.invoked_subcommand is None:
        console.print("AI Request Router - Use --help to see available commands")


@app.command()
def init(ctx: typer.Context):
    """Initialize the router database."""
    config: RouterConfig = ctx.obj
    try:
        initialize_schema(config.db_path)
        console.print(f"[green]✓[/] Database initialized at {config.db_path}")
        sys.exit(EXIT_CODE_OK)
    except Exception as e:
        console.print(f"[red]Error initializing database:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)


@app.command()
def route(
    ctx: typer.Context,
    prompt: str = typer.Argument(..., help="Prompt to send"),
    caller: str = typer.Option(..., "--caller", help="Caller id to charge"),
    tier: str = typer.Option("free", "--tier", "-t", help="Subscription tier"),
    task_type: str = typer.Option(DEFAULT_TASK_TYPE, "--task-type", help="Task type label"),
    provider: Optional[str] = typer.Option(
        None,
        "--provider",
        "-p",
        help="Preferred provider, honored when the tier permits it"
    )
):
    """
    Route one request through quota, selection and the chosen provider.

    Exits 2 when the caller's monthly quota is exhausted, 1 on any other
    failure.
    """
    config: RouterConfig = ctx.obj
    router = Router.from_config(config)
    try:
        result = router.route(RoutingRequest(
            caller_id=caller,
            subscription_tier=tier,
            prompt=prompt,
            task_type=task_type,
            preferred_provider=parse_provider_id(provider)
        ))
    except QuotaExceeded as e:
        console.print(f"[yellow]Usage limit exceeded:[/] {str(e)}")
        sys.exit(EXIT_CODE_QUOTA_EXCEEDED)
    except RouterError as e:
        console.print(f"[red]Error:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)
    finally:
        router.close()

    console.print(result.content)
    console.print(
        f"\n[dim]provider={result.provider_used.value} "
        f"usage={result.usage.current}/{result.usage.limit_display} "
        f"tier={result.usage.tier}[/]"
    )
    sys.exit(EXIT_CODE_OK)


@app.command()
def usage(
    ctx: typer.Context,
    caller: str = typer.Option(..., "--caller", help="Caller id"),
    tier: str = typer.Option("free", "--tier", "-t", help="Subscription tier"),
    period: Optional[str] = typer.Option(None, "--period", help="Period as YYYY-MM")
):
    """Show a caller's usage for the current period."""
    config: RouterConfig = ctx.obj
    try:
        initialize_schema(config.db_path)
        stats = get_usage_stats(
            caller,
            tier,
            SqliteQuotaStore(config.db_path),
            SqliteUsageLedger(config.db_path),
            period_key=period or current_period_key(),
            policy=config.routing.tier_policy
        )
    except RouterError as e:
        console.print(f"[red]Error:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)

    table = Table(title=f"Usage for {caller} ({stats.period_key})")
    table.add_column("Metric")
    table.add_column("Value", justify="right")
    table.add_row("Tier", stats.tier)
    table.add_row("Requests used", str(stats.requests_used))
    table.add_row("Limit", UNLIMITED_LABEL if stats.limit is None else str(stats.limit))
    table.add_row("Remaining", UNLIMITED_LABEL if stats.remaining is None else str(stats.remaining))
    for task, count in sorted(stats.by_task_type.items()):
        table.add_row(f"Task: {task}", str(count))
    for provider_name, count in sorted(stats.by_provider.items()):
        table.add_row(f"Provider: {provider_name}", str(count))
    console.print(table)

    if stats.near_limit:
        console.print("[yellow]Warning:[/] over 80% of the monthly limit used")
    sys.exit(EXIT_CODE_OK)


@app.command()
def ledger(
    ctx: typer.Context,
    caller: Optional[str] = typer.Option(None, "--caller", help="Filter by caller id"),
    limit: int = typer.Option(20, "--limit", "-n", help="Number of entries to show")
):
    """Show the most recent routing ledger entries."""
    config: RouterConfig = ctx.obj
    try:
        initialize_schema(config.db_path)
        entries = SqliteUsageLedger(config.db_path).fetch_entries(caller_id=caller, limit=limit)
    except RouterError as e:
        console.print(f"[red]Error:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)

    if not entries:
        console.print("[dim]No routed requests recorded.[/]")
        sys.exit(EXIT_CODE_OK)

    table = Table(title="Routing ledger")
    table.add_column("Requested at")
    table.add_column("Caller")
    table.add_column("Task type")
    table.add_column("Provider")
    table.add_column("Outcome")
    table.add_column("Latency (ms)", justify="right")
    for entry in entries:
        table.add_row(
            entry.requested_at.strftime("%Y-%m-%d %H:%M:%S"),
            entry.caller_id,
            entry.task_type,
            entry.provider_used,
            entry.outcome,
            str(entry.latency_ms)
        )
    console.print(table)
    sys.exit(EXIT_CODE_OK)


@app.command()
def serve(
    ctx: typer.Context,
    host: str = typer.Option("127.0.0.1", "--host", help="Bind address"),
    port: int = typer.Option(8000, "--port", help="Bind port")
):
    """Run the HTTP API."""
    config: RouterConfig = ctx.obj
    router = Router.from_config(config)
    resolver = StaticCallerResolver(config.routing.callers)
    uvicorn.run(create_app(router, resolver), host=host, port=port, log_config=None)


if __name__ == "__main__":
    app()
