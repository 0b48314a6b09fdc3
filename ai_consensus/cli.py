"""Click CLI: loads config and keys, picks the models, runs the conversation, renders it."""

import asyncio
import logging
import sys
from pathlib import Path

import click
import httpx
from dotenv import load_dotenv
from rich.console import Console
from rich.logging import RichHandler
from rich.progress import Progress, SpinnerColumn, TextColumn, TimeElapsedColumn

from ai_consensus.catalog import CatalogCache, fetch_catalog
from ai_consensus.consensus import ConsensusRunner, build_provider_factory
from ai_consensus.errors import ConfigurationError
from ai_consensus.events import ConsensusEvent
from ai_consensus.models import ConversationRequest, ParticipantRef
from ai_consensus.output import print_round_summary, print_synthesis, save_to_file
from ai_consensus.routing import resolve_provider
from ai_consensus.search import TavilySearchClient
from ai_consensus.selector import PRESETS, resolve_preset
from config.config_loader import AppConfig, load_config, load_keyset, load_search_key

logger = logging.getLogger(__name__)

console = Console(legacy_windows=False)


def _setup_logging(verbose: bool, json_mode: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    # NDJSON owns stdout, so logs go to stderr there.
    handler_console = Console(stderr=True, legacy_windows=False) if json_mode else console
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(console=handler_console, rich_tracebacks=True, show_path=False)],
    )


def _participant_refs(model_ids: list[str], config: AppConfig) -> list[ParticipantRef]:
    return [
        ParticipantRef(
            id=f"model-{i}",
            provider=resolve_provider(model_id, config.routing.family_prefixes) or "unknown",
            model_id=model_id,
            label=model_id.split("/")[-1],
        )
        for i, model_id in enumerate(model_ids, start=1)
    ]


def _judge_ref(model_id: str, config: AppConfig) -> ParticipantRef:
    return ParticipantRef(
        id="judge",
        provider=resolve_provider(model_id, config.routing.family_prefixes) or "unknown",
        model_id=model_id,
        label=model_id.split("/")[-1],
    )


async def _build_request(
    question_text: str,
    config: AppConfig,
    preset_id: str | None,
    models_arg: str | None,
    judge_arg: str | None,
    rounds: int | None,
    threshold: int | None,
    search: bool | None,
    catalog_cache: CatalogCache,
) -> ConversationRequest:
    """CLI flags win over the preset, the preset wins over settings.yaml defaults."""
    defaults = config.defaults
    max_rounds = defaults.max_rounds
    consensus_threshold = defaults.consensus_threshold
    search_enabled = defaults.search_enabled
    participants = _participant_refs(defaults.participants, config)
    judge = _judge_ref(defaults.judge, config)

    if preset_id:
        url = config.catalog.url
        catalog = await catalog_cache.get_or_fetch(url, lambda: fetch_catalog(url))
        resolved = resolve_preset(preset_id, catalog)
        participants = resolved.participants
        judge = resolved.judge
        max_rounds = resolved.preset.max_rounds
        consensus_threshold = resolved.preset.consensus_threshold
        search_enabled = resolved.preset.search_enabled

    if models_arg:
        participants = _participant_refs([m.strip() for m in models_arg.split(",") if m.strip()], config)
    if judge_arg:
        judge = _judge_ref(judge_arg, config)

    return ConversationRequest(
        prompt=question_text,
        participants=participants,
        judge=judge,
        max_rounds=rounds if rounds is not None else max_rounds,
        consensus_threshold=threshold if threshold is not None else consensus_threshold,
        search_enabled=search if search is not None else search_enabled,
    )


async def _consume_json(runner: ConsensusRunner) -> bool:
    """Print every event as one NDJSON line. Returns False on an error event."""
    ok = True
    async for event in runner.run():
        click.echo(event.to_json())
        if event.type == "error":
            ok = False
    return ok


def _describe(event: ConsensusEvent, labels: dict[str, str]) -> str | None:
    """Progress-line text for ``event``; None leaves the line unchanged."""
    if event.type == "round-start":
        return f"Round {event.round}: waiting for participants..."
    if event.type == "search-start":
        return f"Round {event.round}: searching the web for '{event.data['query']}'..."
    if event.type == "evaluation-start":
        return f"Round {event.round}: judge is scoring..."
    if event.type == "evaluation-partial":
        return f"Round {event.round}: judge is scoring... {event.data['evaluation']['score']}"
    if event.type == "participant-complete":
        return f"Round {event.round}: {labels.get(event.data['participantId'], '?')} answered"
    if event.type == "synthesis-start":
        return "Writing consensus answer..."
    if event.type == "progression-summary-start":
        return "Summarizing progression..."
    return None


async def _consume_console(runner: ConsensusRunner) -> bool:
    labels = {p.id: p.label for p in runner.request.participants}
    ok = True
    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        TimeElapsedColumn(),
        console=console,
        transient=True,
    ) as progress:
        task = progress.add_task("Starting...", total=None)
        async for event in runner.run():
            description = _describe(event, labels)
            if description:
                progress.update(task, description=description)
            if event.type == "participant-error":
                label = labels.get(event.data["participantId"], "?")
                progress.print(f"[yellow]WARN[/yellow] Round {event.round}: {label} failed: {event.data['message']}")
            elif event.type == "search-error":
                progress.print(f"[yellow]WARN[/yellow] Round {event.round}: search failed: {event.data['message']}")
            elif event.type == "evaluation-complete":
                evaluation = event.data["evaluation"]
                progress.print(
                    f"[green]OK[/green] Round {event.round} scored {evaluation['score']}/100 {evaluation['emoji']}"
                )
            elif event.type == "error":
                progress.print(f"[bold red]Error:[/bold red] {event.data['message']}")
                ok = False
    return ok


async def _run(
    question_text: str,
    config: AppConfig,
    preset_id: str | None,
    models_arg: str | None,
    judge_arg: str | None,
    rounds: int | None,
    threshold: int | None,
    search: bool | None,
    output_dir: Path,
    json_mode: bool,
) -> int:
    keys = load_keyset(config)
    catalog_cache = CatalogCache(config.catalog.ttl_sec, config.catalog.max_entries)
    try:
        request = await _build_request(
            question_text, config, preset_id, models_arg, judge_arg, rounds, threshold, search, catalog_cache
        )
        search_client = None
        if request.search_enabled:
            search_key = load_search_key(config)
            if search_key and config.search is not None:
                search_client = TavilySearchClient(
                    search_key, config.search.base_url, config.search.max_results
                )
            else:
                logger.warning("Search requested but no search key is configured; continuing without it")
        runner = ConsensusRunner(
            request,
            build_provider_factory(keys, config),
            search_client=search_client,
            judge_timeout_sec=config.defaults.judge_timeout_sec,
            progression_summary=config.defaults.progression_summary,
        )
    except ConfigurationError as exc:
        console.print(f"[bold red]Configuration error:[/bold red] {exc}")
        return 1
    except httpx.HTTPError as exc:
        console.print(f"[bold red]Error:[/bold red] Could not load the model catalog: {exc}")
        return 1

    if json_mode:
        return 0 if await _consume_json(runner) else 1

    names = ", ".join(p.label for p in request.participants)
    console.print(
        f"\n[bold cyan]AI Consensus[/bold cyan] - {len(request.participants)} models, "
        f"up to {request.max_rounds} rounds, threshold {request.consensus_threshold}"
    )
    console.print(f"Participants: {names}")
    console.print(f"Judge: {request.judge.label}")
    console.print(f"Question: [italic]{question_text[:80]}{'...' if len(question_text) > 80 else ''}[/italic]\n")

    ok = await _consume_console(runner)

    for record in runner.state.rounds:
        print_round_summary(record, request.participants, request.consensus_threshold)
    if not ok or runner.result is None:
        return 1

    print_synthesis(runner.result)
    saved_path = save_to_file(runner.result, output_dir)
    console.print(f"\n[dim]Saved to: {saved_path}[/dim]")
    return 0


@click.command()
@click.argument("question", required=False)
@click.option("--file", "question_file", type=click.Path(exists=True), help="Read question from a file")
@click.option("--models", default=None, help="Comma-separated participant model ids (2-3)")
@click.option("--judge", default=None, help="Model id of the judge (default: from config)")
@click.option("--preset", "preset_id", type=click.Choice(sorted(PRESETS)), default=None,
              help="Pick models, rounds and threshold automatically from the gateway catalog")
@click.option("--rounds", default=None, type=int, help="Maximum number of rounds (1-10)")
@click.option("--threshold", default=None, type=int, help="Consensus threshold (60-95)")
@click.option("--search/--no-search", default=None, help="Allow web search when the judge asks for it")
@click.option("--output", "output_path", default=None, help="Output directory (default: from config)")
@click.option("--json", "json_mode", is_flag=True, help="Print NDJSON events instead of the rich view")
@click.option("--verbose", is_flag=True, help="Enable DEBUG-level logging")
def main(
    question: str | None,
    question_file: str | None,
    models: str | None,
    judge: str | None,
    preset_id: str | None,
    rounds: int | None,
    threshold: int | None,
    search: bool | None,
    output_path: str | None,
    json_mode: bool,
    verbose: bool,
) -> None:
    """AI Consensus -- models answer, a judge scores agreement, answers converge.

    \b
    Examples:
      ai-consensus "Is Rust a good fit for CLI tools?"
      ai-consensus "Best way to version an API?" --models anthropic/claude-sonnet-4.5,openai/gpt-5
      ai-consensus "Compare B-trees and LSM trees" --preset research
      ai-consensus --file question.md --rounds 2 --json
    """
    if sys.platform == "win32":
        if hasattr(sys.stdout, "reconfigure"):
            sys.stdout.reconfigure(encoding="utf-8", errors="replace")
        if hasattr(sys.stderr, "reconfigure"):
            sys.stderr.reconfigure(encoding="utf-8", errors="replace")

    load_dotenv()
    _setup_logging(verbose, json_mode)

    try:
        config = load_config()
    except FileNotFoundError as exc:
        console.print(f"[bold red]Config error:[/bold red] {exc}")
        sys.exit(1)

    if question_file:
        question_text = Path(question_file).read_text(encoding="utf-8").strip()
    elif question:
        question_text = question
    else:
        console.print("[bold red]Error:[/bold red] Provide a QUESTION argument or --file.")
        sys.exit(1)

    output_dir = Path(output_path) if output_path else config.defaults.output_dir
    exit_code = asyncio.run(
        _run(
            question_text=question_text,
            config=config,
            preset_id=preset_id,
            models_arg=models,
            judge_arg=judge,
            rounds=rounds,
            threshold=threshold,
            search=search,
            output_dir=output_dir,
            json_mode=json_mode,
        )
    )
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
