"""CLI: Typer app for replaying event logs, inspecting tool schemas and streaming a turn."""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from dataclasses import asdict
from pathlib import Path
from types import SimpleNamespace
from typing import Any, Dict, List, Optional

import httpx
import typer
from rich import print as rprint
from rich.panel import Panel

from agent_relay.application.stream_turn import stream_turn
from agent_relay.config import load_config
from agent_relay.domain import (
    ConversionError,
    ErrorChunk,
    MalformedToolCall,
    Message,
    ReasoningChunk,
    RelayError,
    TextBlock,
    TextChunk,
    ToolCallRequest,
    ToolDefinition,
    UsageChunk,
)
from agent_relay.infrastructure.chat import build_provider_client
from agent_relay.infrastructure.convert import (
    convert_tools,
    tool_definition_from_mcp,
    tool_definition_from_openai,
)
from agent_relay.infrastructure.log_reader import read_log_events
from agent_relay.infrastructure.reducer import reduce_log

app = typer.Typer(help="agent-relay: provider-agnostic LLM streaming adapter and conversation log reducer.")


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def _load_tool_definitions(path: str) -> List[ToolDefinition]:
    """Read tool definitions from a JSON file.

    Accepts a list (or ``{"tools": [...]}``) of OpenAI function tools, and MCP
    tools written as ``{"server": ..., "name": ..., "description": ..., "inputSchema": ...}``.
    """
    p = Path(path).expanduser()
    if not p.is_file():
        raise FileNotFoundError(f"Tools file not found: {p}")
    try:
        data = json.loads(p.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise ConversionError(f"{p} is not valid JSON: {e}") from e
    if isinstance(data, dict):
        data = data.get("tools", [])
    if not isinstance(data, list):
        raise ConversionError(f"{p}: expected a list of tools")

    definitions: List[ToolDefinition] = []
    for item in data:
        if isinstance(item, dict) and "server" in item and "inputSchema" in item:
            mcp_tool = SimpleNamespace(
                name=item.get("name", ""),
                description=item.get("description"),
                inputSchema=item.get("inputSchema"),
            )
            definitions.append(tool_definition_from_mcp(item["server"], mcp_tool))
        else:
            definitions.append(tool_definition_from_openai(item))
    return definitions


# ---------------------------------------------------------------------------
# relay replay
# ---------------------------------------------------------------------------

@app.command()
def replay(
    logfile: str = typer.Argument(..., help="Event log: JSON Lines or a JSON array of events."),
    resume: bool = typer.Option(False, "--resume", help="Treat the log as a resumed task (keep the first text event)."),
    as_json: bool = typer.Option(False, "--json", help="Print the folded state as JSON."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose (DEBUG) logging to stderr."),
) -> None:
    """Fold an event log and print the timeline, usage totals and tool usage."""
    _setup_logging(verbose)
    config = load_config()
    try:
        events = read_log_events(logfile)
    except FileNotFoundError as e:
        rprint(f"[red]{e}[/red]")
        sys.exit(1)

    reducer = reduce_log(events, config.reducer, resuming=resume)
    usage = reducer.usage
    tool_usage = reducer.tool_usage

    if as_json:
        state = {
            "timeline": [asdict(entry) for entry in reducer.timeline],
            "usage": asdict(usage),
            "tool_usage": {name: asdict(stats) for name, stats in tool_usage.items()},
            "complete": reducer.is_complete,
        }
        typer.echo(json.dumps(state, indent=2, ensure_ascii=False))
        return

    from rich.console import Console
    from rich.table import Table

    console = Console()
    table = Table(title=f"Timeline ({len(reducer.timeline)}/{len(events)} events)", show_header=True, header_style="bold")
    table.add_column("ID", style="dim", no_wrap=True)
    table.add_column("Role", style="cyan")
    table.add_column("Type", style="green")
    table.add_column("Content", overflow="fold")
    for entry in reducer.timeline:
        label = entry.tool_display_name or entry.subtype
        content = entry.content
        if entry.tool_data and entry.tool_data.get("command"):
            content = f"$ {entry.tool_data['command']}\n{content}"
        table.add_row(str(entry.id), entry.role, label, content[:400])
    console.print(table)

    rprint(
        Panel.fit(
            f"[bold]Tokens in:[/bold] {usage.total_tokens_in}\n"
            f"[bold]Tokens out:[/bold] {usage.total_tokens_out}\n"
            f"[bold]Cache reads/writes:[/bold] {usage.total_cache_reads}/{usage.total_cache_writes}\n"
            f"[bold]Cost:[/bold] ${usage.total_cost:.4f}\n"
            f"[bold]Context:[/bold] {usage.context_tokens}",
            title="Usage",
        )
    )

    if tool_usage:
        tools_table = Table(title="Tool usage", show_header=True, header_style="bold")
        tools_table.add_column("Tool", style="cyan")
        tools_table.add_column("Attempts", justify="right")
        tools_table.add_column("Failures", justify="right")
        for name, stats in sorted(tool_usage.items()):
            tools_table.add_row(name, str(stats.attempts), str(stats.failures))
        console.print(tools_table)
    if reducer.is_complete:
        rprint("[green]Task complete[/green]")


# ---------------------------------------------------------------------------
# relay tools
# ---------------------------------------------------------------------------

@app.command()
def tools(
    file: str = typer.Argument(..., help="JSON file with OpenAI function tools and/or MCP tools."),
    format: str = typer.Option("chat", "--format", "-f", help="Schema layout: chat|responses."),
) -> None:
    """Print the provider tool schemas for the tools in FILE."""
    try:
        schemas = convert_tools(_load_tool_definitions(file), format)
    except FileNotFoundError as e:
        rprint(f"[red]{e}[/red]")
        sys.exit(1)
    except RelayError as e:
        rprint(f"[red]Tool conversion failed:[/red] {e}")
        sys.exit(1)
    typer.echo(json.dumps(schemas, indent=2, ensure_ascii=False))


# ---------------------------------------------------------------------------
# relay chat
# ---------------------------------------------------------------------------

async def _run_chat(
    prompt: str,
    provider_key: str,
    system: str,
    tool_definitions: Optional[List[ToolDefinition]],
) -> Dict[str, Any]:
    config = load_config()
    provider = config.providers[provider_key]
    client = build_provider_client(provider)
    messages = [Message(role="user", content=[TextBlock(text=prompt)])]

    summary: Dict[str, Any] = {"tool_calls": [], "malformed": [], "usage": None}
    async for item in stream_turn(
        client,
        system,
        messages,
        tools=tool_definitions,
        provider_label=provider.label,
        tool_format=provider.tool_format,
        flatten=provider.flatten_messages,
        unknown_tool_name=config.unknown_tool_name,
    ):
        if isinstance(item, TextChunk):
            sys.stdout.write(item.text)
            sys.stdout.flush()
        elif isinstance(item, ReasoningChunk):
            sys.stderr.write(item.text)
        elif isinstance(item, ToolCallRequest):
            summary["tool_calls"].append(item)
        elif isinstance(item, MalformedToolCall):
            summary["malformed"].append(item)
        elif isinstance(item, UsageChunk):
            summary["usage"] = item
        elif isinstance(item, ErrorChunk):
            rprint(f"\n[yellow]{item.kind}: {item.message}[/yellow]")
    sys.stdout.write("\n")
    return summary


@app.command()
def chat(
    prompt: str = typer.Argument(..., help="User message to send."),
    provider: str = typer.Option("", "--provider", "-p", help="Provider key from config (default: default_provider)."),
    system: str = typer.Option("You are a helpful assistant.", "--system", help="System prompt."),
    tools_file: str = typer.Option("", "--tools", help="Optional JSON file of tools to offer the model."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose (DEBUG) logging to stderr."),
) -> None:
    """Stream one turn through a configured provider and print text, tool calls and usage."""
    _setup_logging(verbose)
    config = load_config()
    provider_key = provider or config.default_provider
    if provider_key not in config.providers:
        rprint(f"[red]Unknown provider {provider_key!r}.[/red] Known: {', '.join(sorted(config.providers))}")
        sys.exit(1)
    resolved = config.providers[provider_key]
    rprint(f"[dim]Using model: {resolved.model} at {resolved.base_url}[/dim]", file=sys.stderr)

    try:
        tool_definitions = _load_tool_definitions(tools_file) if tools_file else None
        summary = asyncio.run(_run_chat(prompt, provider_key, system, tool_definitions))
    except FileNotFoundError as e:
        rprint(f"[red]{e}[/red]")
        sys.exit(1)
    except RelayError as e:
        cause = e.__cause__
        if isinstance(cause, httpx.ConnectError):
            rprint(
                f"[red]LLM server unreachable.[/red]\n"
                f"  URL: {resolved.base_url}\n  Error: {cause}"
            )
        else:
            rprint(f"[red]{e}[/red]")
        sys.exit(1)

    for call in summary["tool_calls"]:
        rprint(
            Panel.fit(
                json.dumps(call.arguments, indent=2, ensure_ascii=False),
                title=f"[bold]{call.tool_name}[/bold] ({call.call_id})",
            )
        )
    for call in summary["malformed"]:
        rprint(f"[yellow]Malformed call to {call.tool_name} ({call.call_id}):[/yellow] {call.error}")
    usage = summary["usage"]
    if usage is not None:
        rprint(f"[dim]Tokens: {usage.input_tokens} in / {usage.output_tokens} out[/dim]")
