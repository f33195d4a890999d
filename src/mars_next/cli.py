"""
mars-next CLI - run rounds, inspect usage, serve the API.

Commands:
    mars-next round PROMPT --agent name:model [--agent ...]   Run one round
    mars-next usage --user-id ID [--days N]                   Usage summary
    mars-next serve [--host --port]                           Run the HTTP API
"""

import asyncio
import logging
import re
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from pathlib import Path

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from .config import build_provider, build_round, load_settings
from .orchestration import AgentConfig, ExecutionContext, RoundError, RoundStatus
from .usage import BestEffortRecorder, UsageLedger

app = typer.Typer(help="Multi-agent rounds with synthesis and usage accounting")
console = Console()


def _parse_agent(value: str) -> AgentConfig:
    """Parse "name:model" into an AgentConfig. The id is the slugified name."""
    name, sep, model = value.partition(":")
    if not sep or not name.strip() or not model.strip():
        raise typer.BadParameter(f"Expected name:model, got '{value}'")
    agent_id = re.sub(r"[^a-z0-9]+", "-", name.strip().lower()).strip("-") or "agent"
    return AgentConfig(id=agent_id, name=name.strip(), model=model.strip())


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logging"),
):
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
    )


# =============================================================================
# ROUND
# =============================================================================


@app.command("round")
def run_round(
    prompt: str = typer.Argument(..., help="The message every agent answers"),
    agent: list[str] = typer.Option(..., "--agent", "-a", help="Agent as name:model (repeatable)"),
    user_id: str = typer.Option("cli", help="User the usage records are attributed to"),
    project_id: str = typer.Option(None, help="Project the usage records are attributed to"),
    context_file: Path = typer.Option(None, exists=True, dir_okay=False, help="Context document"),
    simulate: bool = typer.Option(False, help="Use the simulated provider (no API calls)"),
):
    """Send PROMPT to every agent, then print each response and the synthesis."""
    settings = load_settings()
    if simulate:
        settings = replace(settings, inference_mode="simulated")

    agents = [_parse_agent(value) for value in agent]
    context = ExecutionContext(
        user_id=user_id,
        project_id=project_id,
        context_text=context_file.read_text(encoding="utf-8") if context_file else None,
    )

    provider = build_provider(settings)
    usage = BestEffortRecorder.for_sink(UsageLedger(settings.usage_db_path))
    round_ = build_round(settings, provider, usage)

    console.print(f"\n[bold blue]mars-next round[/bold blue] ({len(agents)} agent(s), {settings.inference_mode})\n")
    try:
        result = asyncio.run(round_.run(prompt, agents, context))
    except RoundError as e:
        console.print(f"[bold red]Error:[/bold red] {e.user_message}")
        console.print(f"[dim]{type(e).__name__}: {e}[/dim]")
        raise typer.Exit(1)

    if result.status == RoundStatus.NO_AGENTS:
        console.print(f"[yellow]{result.message}[/yellow]")
        return

    for response in result.responses:
        style = "green" if response.ok else "red"
        subtitle = (
            f"{response.provider}/{response.model} - {response.tokens.total} tokens - {response.duration_ms}ms"
        )
        if not response.ok:
            subtitle += f" - {response.error_type}"
        if response.fallback_used:
            subtitle += f" - fallback for {response.fallback_used.original_model}"
        console.print(Panel(response.content, title=response.agent_name, subtitle=subtitle, border_style=style))

    synthesis = result.synthesis
    console.print(
        Panel(
            synthesis.content,
            title="[bold]Synthesis[/bold]",
            subtitle=f"{synthesis.provider}/{synthesis.model} - {synthesis.tokens.total} tokens",
            border_style="blue",
        )
    )
    console.print(f"\n[dim]Round finished in {result.duration_ms}ms[/dim]")


# =============================================================================
# USAGE
# =============================================================================


@app.command()
def usage(
    user_id: str = typer.Option(..., help="User to summarize"),
    days: int = typer.Option(30, min=1, help="How many days back to include"),
):
    """Print token usage and cost estimates for a user."""
    settings = load_settings()
    ledger = UsageLedger(settings.usage_db_path)
    end = datetime.now(timezone.utc)
    summary = ledger.get_usage_summary(user_id, end - timedelta(days=days), end)

    console.print(f"\n[bold blue]mars-next usage[/bold blue] {user_id}, last {days} day(s)\n")
    if summary.total_calls == 0:
        console.print("[yellow]No usage recorded in this period.[/yellow]")
        return

    console.print(
        f"Total tokens: [bold]{summary.total_tokens:,}[/bold]   "
        f"Calls: {summary.total_calls} ({summary.error_calls} failed)   "
        f"Estimated cost: [bold]${summary.total_cost_estimate:.4f}[/bold]\n"
    )

    table = Table(title="By provider")
    table.add_column("Provider", style="bold")
    table.add_column("Tokens", justify="right")
    table.add_column("Share", justify="right")
    for p in summary.provider_usage:
        table.add_row(p.provider, f"{p.tokens:,}", f"{p.percentage:.1f}%")
    console.print(table)

    table = Table(title="By model")
    table.add_column("Model", style="bold")
    table.add_column("Provider")
    table.add_column("Tokens", justify="right")
    table.add_column("Share", justify="right")
    for m in summary.model_usage:
        table.add_row(m.model, m.provider, f"{m.tokens:,}", f"{m.percentage:.1f}%")
    console.print(table)

    if summary.project_usage:
        table = Table(title="By project")
        table.add_column("Project", style="bold")
        table.add_column("Tokens", justify="right")
        table.add_column("Share", justify="right")
        for p in summary.project_usage:
            table.add_row(p.project_id, f"{p.tokens:,}", f"{p.percentage:.1f}%")
        console.print(table)

    table = Table(title="By day")
    table.add_column("Date", style="bold")
    table.add_column("Tokens", justify="right")
    for d in summary.daily_usage:
        table.add_row(d.date, f"{d.tokens:,}")
    console.print(table)


# =============================================================================
# SERVE
# =============================================================================


@app.command()
def serve(
    host: str = typer.Option("127.0.0.1", help="Bind address"),
    port: int = typer.Option(8000, help="Bind port"),
    reload: bool = typer.Option(False, help="Auto-reload on code changes"),
):
    """Run the HTTP API with uvicorn."""
    import uvicorn

    uvicorn.run(
        "mars_next.api.gateway:create_app",
        factory=True,
        host=host,
        port=port,
        reload=reload,
    )


if __name__ == "__main__":
    app()
