"""Rich console output and markdown transcript export for deliberations."""

import logging
import re
from datetime import datetime
from pathlib import Path

from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel
from rich.rule import Rule
from rich.table import Table
from rich.text import Text

from chamber.models import ChatMessage, CreativeKind, Deliberation, Minute, Sender
from chamber.personas import PersonaRegistry

logger = logging.getLogger(__name__)

console = Console(legacy_windows=False)

ACTION_COMMANDS: dict[CreativeKind, str] = {
    CreativeKind.IMAGE: "/wireframe",
    CreativeKind.VIDEO: "/video",
}


def _slug(text: str, max_len: int = 40) -> str:
    """Convert text to a filename-safe slug."""
    slug = re.sub(r"[^\w\s-]", "", text.lower())
    slug = re.sub(r"[\s_-]+", "-", slug).strip("-")
    return slug[:max_len]


def _speaker(minute: Minute, registry: PersonaRegistry) -> tuple[str, str, str]:
    """Return (label, avatar, border style) for a minute."""
    persona = registry.get(minute.persona_id)
    if minute.is_error or persona is None:
        return "System Error", "⚠️", "red"
    return f"{persona.display_name} ({persona.title})", persona.avatar, persona.color or "dim"


def print_minute(minute: Minute, registry: PersonaRegistry) -> None:
    label, avatar, style = _speaker(minute, registry)
    console.print(
        Panel(
            Markdown(minute.text) if not minute.is_error else Text(minute.text, style="red"),
            title=f"{avatar} [bold]{label}[/bold]",
            subtitle=f"Round {minute.round}",
            border_style=style,
        )
    )


def print_final_decision(deliberation: Deliberation) -> None:
    if deliberation.final_decision is None:
        if deliberation.synthesis_error:
            console.print(f"[bold red]Chair synthesis failed:[/bold red] {deliberation.synthesis_error}")
        return
    console.print(Rule("[bold green]Council's Final Decision[/bold green]"))
    console.print(Markdown(deliberation.final_decision))


def print_deliberation(deliberation: Deliberation, registry: PersonaRegistry) -> None:
    console.print(Rule(f"[bold cyan]{deliberation.title}[/bold cyan]"))
    console.print(
        Text(
            f"{deliberation.id} | Mode: {deliberation.mode.value} | "
            f"{deliberation.created_at.strftime('%Y-%m-%d %H:%M')}",
            style="dim",
        )
    )
    for minute in deliberation.minutes:
        print_minute(minute, registry)
    print_final_decision(deliberation)


def print_history_table(deliberations: list[Deliberation]) -> None:
    if not deliberations:
        console.print("[dim]No deliberations yet.[/dim]")
        return
    table = Table(title="Deliberations")
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Title")
    table.add_column("Mode")
    table.add_column("Minutes", justify="right")
    table.add_column("Status")
    table.add_column("Created", style="dim")
    for d in deliberations:
        status = "[green]decided[/green]" if d.final_decision is not None else "[red]incomplete[/red]"
        table.add_row(
            d.id,
            d.title,
            d.mode.value,
            str(len(d.minutes)),
            status,
            d.created_at.strftime("%Y-%m-%d %H:%M"),
        )
    console.print(table)


def print_chat_message(message: ChatMessage) -> None:
    if message.sender == Sender.SYSTEM:
        console.print(f"[dim italic]{message.text}[/dim italic]")
        return
    if message.sender == Sender.USER:
        console.print(f"[bold]You:[/bold] {message.text}")
        return
    console.print(Panel(Markdown(message.text), title="[bold]Assistant[/bold]", border_style="blue"))
    if message.image is not None:
        console.print(f"[dim]({message.image.mime_type} image, {len(message.image.binary_data or b'')} bytes)[/dim]")
    if message.actions:
        options = ", ".join(f"{ACTION_COMMANDS[a.kind]} ({a.label})" for a in message.actions)
        console.print(f"[yellow]Try:[/yellow] {options}")


def save_to_file(
    deliberation: Deliberation,
    registry: PersonaRegistry,
    output_dir: Path,
    slug_override: str | None = None,
) -> Path:
    """Save the full deliberation transcript as a markdown file.

    Args:
        deliberation: The finished (or partial) deliberation.
        registry: Persona roster used to label minutes.
        output_dir: Directory to save the file in.
        slug_override: If provided, use this as the filename stem instead of
            deriving one from the title. Useful for inbox mode.

    Returns:
        Path to the saved file.
    """
    output_dir.mkdir(parents=True, exist_ok=True)

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    slug = slug_override if slug_override is not None else _slug(deliberation.prompt or deliberation.title)
    filepath = output_dir / f"{timestamp}_{slug}.md"

    members, _ = registry.resolve(deliberation.mode)
    lines: list[str] = [
        f"# Council Deliberation: {deliberation.prompt[:80] or deliberation.title}",
        "",
        f"**ID:** {deliberation.id}",
        f"**Date:** {deliberation.created_at.strftime('%Y-%m-%d %H:%M:%S')}",
        f"**Mode:** {deliberation.mode.value}",
        f"**Members:** {', '.join(p.display_name for p in members)}",
    ]
    if deliberation.attachments:
        lines.append(f"**Attachments:** {', '.join(a.name for a in deliberation.attachments)}")
    lines += ["", "---", ""]

    current_round = 0
    for minute in deliberation.minutes:
        if minute.round != current_round:
            current_round = minute.round
            lines += [f"## Round {current_round}", ""]
        label, _, _ = _speaker(minute, registry)
        lines += [f"### {label}", "", minute.text, ""]

    if deliberation.final_decision is not None:
        lines += ["## Final Decision", "", deliberation.final_decision, ""]
    elif deliberation.synthesis_error:
        lines += ["## Final Decision", "", f"*Chair synthesis failed: {deliberation.synthesis_error}*", ""]
    else:
        lines += ["*Deliberation ended before a decision was reached.*", ""]

    filepath.write_text("\n".join(lines), encoding="utf-8")
    logger.info("Deliberation saved to: %s", filepath)
    return filepath
