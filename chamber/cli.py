"""Click CLI: config loading, backend selection, deliberations, history and chat."""

import asyncio
import logging
import mimetypes
import sys
from pathlib import Path

import click
from dotenv import load_dotenv
from rich.logging import RichHandler
from rich.progress import Progress, SpinnerColumn, TextColumn, TimeElapsedColumn

from config.config_loader import AppConfig, load_config
from chamber.assistant import AssistantRouter, ChatSession, KeywordClassifier
from chamber.creative import CreativeGenerationFallback
from chamber.deliberation import (
    DeliberationEvent,
    DeliberationOrchestrator,
    MinuteAdded,
    RunFailed,
    TurnStarted,
    ValidationError,
)
from chamber.healthcheck import run_health_checks
from chamber.history import HistoryStore
from chamber.identity import IdentityProvider
from chamber.inbox import archive_proposal, outcome, parse_proposal, pending_proposals
from chamber.models import (
    Attachment,
    AttachmentKind,
    ChatMessage,
    CreativeKind,
    Deliberation,
    DeliberationMode,
    FallbackAction,
)
from chamber.output import (
    console,
    print_chat_message,
    print_deliberation,
    print_final_decision,
    print_history_table,
    print_minute,
    save_to_file,
)
from chamber.personas import PersonaRegistry
from chamber.providers.anthropic import AnthropicClient
from chamber.providers.base import LanguageModelClient
from chamber.providers.gemini import GeminiClient

logger = logging.getLogger(__name__)

CLIENT_CLASSES: dict[str, type[LanguageModelClient]] = {
    "gemini": GeminiClient,
    "anthropic": AnthropicClient,
}

_MODE_CHOICES = [m.value for m in DeliberationMode]


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
    )


def _build_client(config: AppConfig, backend: str) -> LanguageModelClient:
    """Instantiate the configured backend. Exits when it cannot be used."""
    if backend not in config.models:
        console.print(f"[bold red]Error:[/bold red] Unknown backend '{backend}'.")
        sys.exit(1)
    if backend not in config.available_backends:
        console.print(
            f"[bold red]Error:[/bold red] Backend '{backend}' has no API key. "
            f"Set {config.models[backend].api_key_env} in .env."
        )
        sys.exit(1)
    model_cfg = config.models[backend]
    if model_cfg.sdk not in CLIENT_CLASSES:
        console.print(f"[bold red]Error:[/bold red] Unsupported sdk '{model_cfg.sdk}' for backend '{backend}'.")
        sys.exit(1)
    return CLIENT_CLASSES[model_cfg.sdk](model_cfg)


def _load_attachments(image_paths: tuple[str, ...], file_paths: tuple[str, ...]) -> list[Attachment]:
    """Read images as bytes; other files are referenced by name only."""
    attachments: list[Attachment] = []
    for raw in image_paths:
        path = Path(raw)
        mime_type = mimetypes.guess_type(path.name)[0] or "image/png"
        attachments.append(
            Attachment(name=path.name, kind=AttachmentKind.IMAGE, binary_data=path.read_bytes(), mime_type=mime_type)
        )
    for raw in file_paths:
        attachments.append(Attachment(name=Path(raw).name, kind=AttachmentKind.FILE))
    return attachments


def _resolve_mode(mode_cli: str | None, default: str) -> DeliberationMode:
    """CLI flag > config default."""
    value = mode_cli if mode_cli is not None else default
    try:
        return DeliberationMode(value)
    except ValueError:
        raise click.BadParameter(f"Unknown mode '{value}', choose from {', '.join(_MODE_CHOICES)}") from None


def _pending_action(last_reply: ChatMessage | None, kind: CreativeKind) -> FallbackAction | None:
    """Find the fallback action of the given kind offered on the last assistant reply."""
    if last_reply is None:
        return None
    return next((a for a in last_reply.actions if a.kind == kind), None)


def _require_user(config: AppConfig) -> None:
    user = IdentityProvider(config.defaults.user_path).current()
    if user is None:
        console.print("[bold red]Please sign in first:[/bold red] council login")
        sys.exit(1)


def _load_history(config: AppConfig) -> HistoryStore:
    history = HistoryStore(config.defaults.history_path)
    history.load()
    return history


def _check_client(client: LanguageModelClient) -> None:
    console.print("\n[bold]Checking backend...[/bold]")
    results = asyncio.run(run_health_checks({client.name(): client}))
    ok, err = results[client.name()]
    if ok:
        console.print(f"  [green]OK  [/green] {client.name()}\n")
        return
    short_err = err.splitlines()[0][:120] if err else "unknown error"
    console.print(f"  [red]FAIL[/red] {client.name()}: {short_err}")
    if not click.confirm("Continue anyway?", default=False):
        sys.exit(1)


async def _run_single(
    prompt: str,
    attachments: list[Attachment],
    mode: DeliberationMode,
    config: AppConfig,
    client: LanguageModelClient,
    registry: PersonaRegistry,
    history: HistoryStore,
    output_dir: Path,
    slug_override: str | None = None,
) -> tuple[Deliberation, Path]:
    """Run one deliberation with live progress and return (record, transcript path)."""
    orchestrator = DeliberationOrchestrator(
        client=client,
        registry=registry,
        prompts=config.prompts,
        model=config.models[client.name()],
        history=history,
    )
    members, rounds = registry.resolve(mode)

    console.print(f"\n[bold cyan]Council[/bold cyan]: {len(members)} members, {rounds} rounds [{mode.value}]")
    console.print(f"Members: {', '.join(p.display_name for p in members)}")
    console.print(f"Proposal: [italic]{prompt[:80]}{'...' if len(prompt) > 80 else ''}[/italic]\n")

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        TimeElapsedColumn(),
        console=console,
        transient=True,
    ) as progress:
        task = progress.add_task("Convening the council...", total=None)

        def on_event(event: DeliberationEvent) -> None:
            if isinstance(event, TurnStarted):
                name = registry.display_name(event.persona_id)
                progress.update(task, description=f"Deliberating... Round {event.round}: {name}")
            elif isinstance(event, MinuteAdded):
                print_minute(event.minute, registry)
                if len(event.deliberation.minutes) == len(members) * rounds:
                    progress.update(task, description="The chair is synthesizing...")
            elif isinstance(event, RunFailed) and event.minute is not None:
                print_minute(event.minute, registry)

        deliberation = await orchestrator.run(prompt, attachments, mode, on_event=on_event)

    print_final_decision(deliberation)

    saved_path = save_to_file(deliberation, registry, output_dir, slug_override=slug_override)
    console.print(f"\n[dim]Saved to: {saved_path}[/dim]")
    return deliberation, saved_path


async def _run_inbox(
    config: AppConfig,
    client: LanguageModelClient,
    registry: PersonaRegistry,
    history: HistoryStore,
    inbox_dir: Path,
    archive_dir: Path,
    mode_cli: str | None,
) -> list[Path]:
    """Process all .md proposals in the inbox folder and return the archived paths.

    Precedence for the mode: CLI flag > frontmatter > config default.
    """
    files = pending_proposals(inbox_dir)
    if not files:
        click.echo("No files in inbox.")
        return []

    default_mode = _resolve_mode(None, config.defaults.mode)
    override = _resolve_mode(mode_cli, config.defaults.mode) if mode_cli else None

    archived: list[Path] = []
    for file_path in files:
        deliberation: Deliberation | None = None
        try:
            proposal = parse_proposal(file_path, default_mode, override)
            deliberation, saved = await _run_single(
                prompt=proposal.prompt,
                attachments=[],
                mode=proposal.mode,
                config=config,
                client=client,
                registry=registry,
                history=history,
                output_dir=config.defaults.output_dir,
                slug_override=file_path.stem,
            )
        except Exception as e:
            logger.error("Failed: %s -- %s", file_path.name, e)
        else:
            click.echo(f"Processed: {file_path.name} -> {saved}")

        dest = archive_proposal(file_path, archive_dir, deliberation)
        click.echo(f"Archived: {dest.name} ({outcome(deliberation)})")
        archived.append(dest)
    return archived


async def _chat_loop(session: ChatSession, history: HistoryStore) -> None:
    console.print("[dim]Commands: /focus ID, /general, /wireframe, /video, /history, /quit[/dim]")
    for message in session.messages:
        print_chat_message(message)

    last_reply: ChatMessage | None = None
    while True:
        text = (await asyncio.to_thread(console.input, "[bold green]> [/bold green]")).strip()
        if not text:
            continue
        if text in ("/quit", "/exit"):
            return
        if text == "/history":
            print_history_table(history.recent())
            continue
        if text == "/general":
            print_chat_message(session.set_active(None))
            continue
        if text.startswith("/focus"):
            target = history.get(text.removeprefix("/focus").strip())
            if target is None:
                console.print("[red]No deliberation with that id.[/red]")
                continue
            print_chat_message(session.set_active(target))
            continue
        if text in ("/wireframe", "/video"):
            kind = CreativeKind.IMAGE if text == "/wireframe" else CreativeKind.VIDEO
            action = _pending_action(last_reply, kind)
            if action is None:
                console.print("[red]No suggestion to act on.[/red]")
                continue
            session.request(action)
            with console.status("Generating..."):
                results = await session.process_pending()
            for message in results:
                print_chat_message(message)
            continue

        with console.status("Thinking..."):
            last_reply = await session.send(text)
        print_chat_message(last_reply)


@click.group()
@click.option("--verbose", is_flag=True, help="Enable DEBUG-level logging")
@click.option("--backend", default=None, help="Model backend from settings.yaml (default: from config)")
@click.pass_context
def main(ctx: click.Context, verbose: bool, backend: str | None) -> None:
    """Council -- expert personas deliberate on your proposal.

    \b
    Examples:
      council login
      council deliberate "Ban single-use plastics in city parks"
      council deliberate "Fund a new tram line" --mode debate
      council deliberate "Redesign our app onboarding" --image sketch.png --mode single
      council history
      council chat --deliberation delib_1a2b3c4d5e6f
      council inbox
    """
    # Reconfigure stdout/stderr to UTF-8 on Windows so persona avatars and
    # model output don't crash the ANSI render path.
    if sys.platform == "win32":
        if hasattr(sys.stdout, "reconfigure"):
            sys.stdout.reconfigure(encoding="utf-8", errors="replace")
        if hasattr(sys.stderr, "reconfigure"):
            sys.stderr.reconfigure(encoding="utf-8", errors="replace")

    load_dotenv()
    _setup_logging(verbose)

    try:
        config = load_config()
        registry = PersonaRegistry.from_app_config(config)
    except (FileNotFoundError, KeyError, ValueError) as exc:
        console.print(f"[bold red]Config error:[/bold red] {exc}")
        sys.exit(1)

    ctx.obj = {"config": config, "registry": registry, "backend": backend or config.defaults.backend}


@main.command()
@click.argument("proposal", required=False, default="")
@click.option("--mode", type=click.Choice(_MODE_CHOICES), default=None, help="full, single or debate")
@click.option("--image", "image_paths", multiple=True, type=click.Path(exists=True, dir_okay=False),
              help="Attach an image (sent to the model)")
@click.option("--file", "file_paths", multiple=True, type=click.Path(exists=True, dir_okay=False),
              help="Attach a document (referenced by name)")
@click.option("--output", "output_path", default=None, help="Output directory (default: from config)")
@click.option("--skip-health-check", is_flag=True, default=False,
              help="Skip the API connectivity check at startup")
@click.pass_obj
def deliberate(
    obj: dict,
    proposal: str,
    mode: str | None,
    image_paths: tuple[str, ...],
    file_paths: tuple[str, ...],
    output_path: str | None,
    skip_health_check: bool,
) -> None:
    """Convene the council on PROPOSAL."""
    config: AppConfig = obj["config"]
    _require_user(config)

    client = _build_client(config, obj["backend"])
    if not skip_health_check:
        _check_client(client)

    attachments = _load_attachments(image_paths, file_paths)
    try:
        asyncio.run(
            _run_single(
                prompt=proposal,
                attachments=attachments,
                mode=_resolve_mode(mode, config.defaults.mode),
                config=config,
                client=client,
                registry=obj["registry"],
                history=_load_history(config),
                output_dir=Path(output_path) if output_path else config.defaults.output_dir,
            )
        )
    except ValidationError as exc:
        console.print(f"[bold red]Error:[/bold red] {exc}")
        sys.exit(1)


@main.command()
@click.argument("deliberation_id", required=False)
@click.pass_obj
def history(obj: dict, deliberation_id: str | None) -> None:
    """List past deliberations, or show one in full."""
    config: AppConfig = obj["config"]
    _require_user(config)
    store = _load_history(config)
    if deliberation_id is None:
        print_history_table(store.recent())
        return
    record = store.get(deliberation_id)
    if record is None:
        console.print(f"[bold red]Error:[/bold red] No deliberation '{deliberation_id}'.")
        sys.exit(1)
    print_deliberation(record, obj["registry"])


@main.command()
@click.option("--deliberation", "deliberation_id", default=None,
              help="Start in analyst mode focused on this deliberation")
@click.pass_obj
def chat(obj: dict, deliberation_id: str | None) -> None:
    """Ask the assistant questions, in general or about one deliberation."""
    config: AppConfig = obj["config"]
    _require_user(config)
    client = _build_client(config, obj["backend"])
    model_cfg = config.models[client.name()]
    store = _load_history(config)

    router = AssistantRouter(
        client=client,
        registry=obj["registry"],
        prompts=config.prompts,
        model=model_cfg,
        classifier=KeywordClassifier(config.assistant.confused_keywords),
    )
    session = ChatSession(router, CreativeGenerationFallback(client, config.prompts, model_cfg))

    active = None
    if deliberation_id is not None:
        active = store.get(deliberation_id)
        if active is None:
            console.print(f"[bold red]Error:[/bold red] No deliberation '{deliberation_id}'.")
            sys.exit(1)
    session.set_active(active)

    try:
        asyncio.run(_chat_loop(session, store))
    except (KeyboardInterrupt, EOFError):
        console.print()


@main.command()
@click.option("--inbox-dir", "inbox_dir_override", default=None,
              help="Override inbox folder path (default: from config)")
@click.option("--mode", type=click.Choice(_MODE_CHOICES), default=None,
              help="Mode for every file (overrides frontmatter)")
@click.option("--skip-health-check", is_flag=True, default=False,
              help="Skip the API connectivity check at startup")
@click.pass_obj
def inbox(obj: dict, inbox_dir_override: str | None, mode: str | None, skip_health_check: bool) -> None:
    """Process all .md proposals in the inbox folder."""
    config: AppConfig = obj["config"]
    _require_user(config)
    client = _build_client(config, obj["backend"])
    if not skip_health_check:
        _check_client(client)

    asyncio.run(
        _run_inbox(
            config=config,
            client=client,
            registry=obj["registry"],
            history=_load_history(config),
            inbox_dir=Path(inbox_dir_override) if inbox_dir_override else config.defaults.inbox_dir,
            archive_dir=config.defaults.archive_dir,
            mode_cli=mode,
        )
    )


@main.command()
@click.pass_obj
def login(obj: dict) -> None:
    """Sign in (mock identity)."""
    user = IdentityProvider(obj["config"].defaults.user_path).sign_in()
    console.print(f"Signed in as [bold]{user.name}[/bold]")


@main.command()
@click.pass_obj
def logout(obj: dict) -> None:
    """Sign out."""
    IdentityProvider(obj["config"].defaults.user_path).sign_out()
    console.print("Signed out.")


@main.command()
@click.pass_obj
def whoami(obj: dict) -> None:
    """Show the signed-in user."""
    user = IdentityProvider(obj["config"].defaults.user_path).current()
    console.print(f"[bold]{user.name}[/bold]" if user else "Not signed in.")


if __name__ == "__main__":
    main()
