"""Rich console output and markdown file save for consensus results."""

import logging
import re
from datetime import datetime
from pathlib import Path

from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel
from rich.rule import Rule
from rich.text import Text

from ai_consensus.models import ConsensusResult, ConversationStatus, ParticipantRef, RoundRecord
from ai_consensus.prompts import NO_RESPONSE

logger = logging.getLogger(__name__)

console = Console(legacy_windows=False)

_STATUS_LABELS = {
    ConversationStatus.CONVERGED: "consensus reached",
    ConversationStatus.ROUNDS_EXHAUSTED: "round limit reached",
    ConversationStatus.FAILED: "failed",
    ConversationStatus.RUNNING: "running",
}


def _slug(text: str, max_len: int = 40) -> str:
    """Convert text to a filename-safe slug."""
    slug = re.sub(r"[^\w\s-]", "", text.lower())
    slug = re.sub(r"[\s_-]+", "-", slug).strip("-")
    return slug[:max_len]


def _preview(text: str, words: int = 50) -> str:
    all_words = text.split()
    preview = " ".join(all_words[:words])
    if len(all_words) > words:
        preview += "..."
    return preview


def _score_style(score: int, threshold: int) -> str:
    if score >= threshold:
        return "bold green"
    if score >= 50:
        return "bold yellow"
    return "bold red"


def print_round_summary(
    record: RoundRecord,
    participants: list[ParticipantRef],
    consensus_threshold: int,
) -> None:
    """Print response previews and the judge's verdict for one round."""
    evaluation = record.evaluation
    console.print(Rule(f"[bold cyan]Round {record.round_number}[/bold cyan]"))
    if record.search_data is not None:
        console.print(Text(
            f"Searched: {record.search_data.query} ({len(record.search_data.results)} results)",
            style="dim",
        ))
    for p in participants:
        text = record.responses.get(p.id, "")
        console.print(
            Panel(
                _preview(text) if text.strip() else f"[dim]{NO_RESPONSE}[/dim]",
                title=f"[bold]{p.label}[/bold] ({p.model_id})",
                border_style="dim",
            )
        )
    console.print(Text.assemble(
        (f"{evaluation.emoji} Score {evaluation.score}/100", _score_style(evaluation.score, consensus_threshold)),
        (f"  threshold {consensus_threshold}  ", "dim"),
        (evaluation.summary, ""),
    ))
    for difference in evaluation.key_differences:
        console.print(f"  [yellow]-[/yellow] {difference}")


def print_synthesis(result: ConsensusResult) -> None:
    """Print the synthesis (and progression summary, if any) using Rich markdown."""
    console.print(Rule("[bold green]Consensus[/bold green]"))
    judge = result.judge.label if result.judge else "judge"
    console.print(
        Text(
            f"Synthesized by: {judge} | "
            f"Final score: {result.final_score}/100 ({_STATUS_LABELS[result.status]}) | "
            f"Rounds: {len(result.rounds)} | "
            f"Duration: {result.total_duration_sec:.1f}s",
            style="dim",
        )
    )
    console.print(Markdown(result.synthesis))
    if result.progression_summary:
        console.print(Rule("[bold]How the answers converged[/bold]"))
        console.print(Markdown(result.progression_summary))


def render_markdown(result: ConsensusResult) -> str:
    """Full transcript of a run as markdown."""
    participants = ", ".join(f"{p.label} ({p.model_id})" for p in result.participants)
    judge = f"{result.judge.label} ({result.judge.model_id})" if result.judge else "-"

    lines: list[str] = [
        f"# AI Consensus: {result.prompt[:80]}",
        "",
        f"**Date:** {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}",
        f"**Participants:** {participants}",
        f"**Judge:** {judge}",
        f"**Rounds:** {len(result.rounds)}",
        f"**Final score:** {result.final_score}/100 ({_STATUS_LABELS[result.status]})",
        f"**Duration:** {result.total_duration_sec:.1f}s",
        "",
        "---",
        "",
        "## Question",
        "",
        result.prompt,
        "",
    ]

    labels = {p.id: p for p in result.participants}
    for record in result.rounds:
        evaluation = record.evaluation
        round_label = "Initial Responses" if record.round_number == 1 else "Refinement"
        lines += [f"## Round {record.round_number}: {round_label}", ""]
        if record.search_data is not None:
            lines += [f"*Web search:* {record.search_data.query}", ""]
            lines += [f"- [{r.title}]({r.url})" for r in record.search_data.results]
            lines.append("")
        for participant_id, p in labels.items():
            lines += [f"### {p.label}", "", record.responses.get(participant_id) or NO_RESPONSE, ""]
        lines += [
            f"### Evaluation: {evaluation.emoji} {evaluation.score}/100",
            "",
            evaluation.summary,
            "",
        ]
        if evaluation.areas_of_agreement:
            lines.append("**Agreement:**")
            lines += [f"- {a}" for a in evaluation.areas_of_agreement]
            lines.append("")
        if evaluation.key_differences:
            lines.append("**Differences:**")
            lines += [f"- {d}" for d in evaluation.key_differences]
            lines.append("")

    lines += ["## Consensus", "", result.synthesis, ""]
    if result.progression_summary:
        lines += ["## Progression", "", result.progression_summary, ""]
    return "\n".join(lines)


def save_to_file(result: ConsensusResult, output_dir: Path, slug_override: str | None = None) -> Path:
    """Save the transcript as ``<timestamp>_<slug>.md`` in ``output_dir``."""
    output_dir.mkdir(parents=True, exist_ok=True)

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    slug = slug_override if slug_override is not None else _slug(result.prompt)
    filepath = output_dir / f"{timestamp}_{slug}.md"

    filepath.write_text(render_markdown(result), encoding="utf-8")
    logger.info("Transcript saved to: %s", filepath)
    return filepath
