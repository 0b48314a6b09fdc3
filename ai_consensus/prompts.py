"""Prompt text for refinement, evaluation, synthesis and progression summaries.

Pure string builders: no network, no state.
"""

from collections.abc import Mapping, Sequence
from typing import TYPE_CHECKING

from ai_consensus.models import ParticipantRef, RoundRecord, SearchResult

if TYPE_CHECKING:
    from ai_consensus.evaluation import Evaluation

NO_RESPONSE = "(no response this round)"

# (low, high, emoji, vibe); high is exclusive except for the top band.
SCORE_BANDS: tuple[tuple[int, int, str, str], ...] = (
    (90, 100, "🎉", "celebration"),
    (75, 90, "👍", "agreement"),
    (50, 75, "🤔", "mixed"),
    (30, 50, "⚠️", "disagreement"),
    (0, 30, "💥", "clash"),
)


def band_for_score(score: int) -> tuple[str, str]:
    """Return (emoji, vibe) for a 0-100 score."""
    for low, _high, emoji, vibe in SCORE_BANDS:
        if score >= low:
            return emoji, vibe
    return SCORE_BANDS[-1][2], SCORE_BANDS[-1][3]


def _response_or_marker(responses: Mapping[str, str], participant_id: str) -> str:
    text = responses.get(participant_id, "")
    return text if text.strip() else NO_RESPONSE


def _targeted_instructions(label: str, evaluation: "Evaluation") -> list[str]:
    """Differences the judge attributed to this participant by name."""
    lowered = label.lower()
    return [d for d in evaluation.key_differences if lowered in d.lower()]


def build_refinement_prompt(
    original_prompt: str,
    participant: ParticipantRef,
    previous_responses: Mapping[str, str],
    participants: Sequence[ParticipantRef],
    round_number: int,
    evaluation: "Evaluation | None" = None,
) -> str:
    """Prompt for ``participant`` to refine its answer after seeing the others."""
    others = "\n\n".join(
        f"{p.label.upper()}:\n{_response_or_marker(previous_responses, p.id)}"
        for p in participants
        if p.id != participant.id
    )

    sections = [
        f"Original Question: {original_prompt}",
        f"Round {round_number} - Refinement Phase",
        f"Your previous response ({participant.label}):\n{_response_or_marker(previous_responses, participant.id)}",
        f"Other models' responses:\n{others}",
    ]

    if evaluation is not None:
        insights = [f"Insights from the previous evaluation (consensus score {evaluation.score}/100):"]
        if evaluation.key_differences:
            insights.append("Key differences:")
            insights.extend(f"- {d}" for d in evaluation.key_differences)
        if evaluation.areas_of_agreement:
            insights.append("Areas of agreement:")
            insights.extend(f"- {a}" for a in evaluation.areas_of_agreement)
        sections.append("\n".join(insights))

        targeted = _targeted_instructions(participant.label, evaluation)
        instructions = [
            "Refine your answer with these insights in mind.",
            "1. Resolve each key difference: keep your position only where you can justify it, otherwise adopt the better-supported view.",
            "2. Keep the points of agreement intact.",
        ]
        if targeted:
            instructions.append("3. These differences involve your answer directly and need a clear response:")
            instructions.extend(f"   - {d}" for d in targeted)
        instructions.append("Provide your complete refined response.")
        sections.append("\n".join(instructions))
    else:
        sections.append(
            "Please refine your answer considering these other perspectives.\n"
            "1. Address any divergences or disagreements.\n"
            "2. Incorporate valid points from other models.\n"
            "3. Clarify any ambiguities.\n"
            "4. Move toward consensus while maintaining accuracy.\n"
            "Provide your complete refined response."
        )

    return "\n\n".join(sections)


def build_refinement_prompts_for_all(
    original_prompt: str,
    previous_responses: Mapping[str, str],
    participants: Sequence[ParticipantRef],
    round_number: int,
    evaluation: "Evaluation | None" = None,
) -> dict[str, str]:
    return {
        p.id: build_refinement_prompt(original_prompt, p, previous_responses, participants, round_number, evaluation)
        for p in participants
    }


def build_prompt_with_search_context(prompt: str, results: Sequence[SearchResult]) -> str:
    """Prefix ``prompt`` with numbered web search results."""
    if not results:
        return prompt
    context = "\n\n".join(
        f"[{i}] {r.title}\nURL: {r.url}\n{r.content}" for i, r in enumerate(results, start=1)
    )
    return (
        "Recent web search results that may help answer the question:\n\n"
        f"{context}\n\n"
        "Use these results where relevant and cite them by number.\n\n"
        f"{prompt}"
    )


def build_evaluation_system_prompt(consensus_threshold: int, search_enabled: bool = False) -> str:
    """System prompt carrying the scoring rubric, score bands and output format."""
    bands = "\n".join(
        f"{low}-{100 if high == 100 else high - 1}: {emoji} {vibe}" for low, high, emoji, vibe in SCORE_BANDS
    )

    search_block = ""
    if search_enabled:
        search_block = """
MISSING INFORMATION:
If the responses disagree because current or factual information is missing,
set needsMoreInfo = true and put a focused 3-8 word web search query in
suggestedSearchQuery. Otherwise set needsMoreInfo = false and
suggestedSearchQuery = "".
"""

    return f"""You are a rigorous consensus evaluator analyzing AI model responses.

Your task: determine how well aligned the responses are.

PROCESS:
1. Identify what the responses AGREE on first, even minor points.
2. Then catalog the differences, weighted by severity:
   A. Factual differences (highest weight): contradictions, missing key facts, numerical discrepancies.
   B. Approach differences (high weight): different reasoning chains, methods or frameworks.
   C. Coverage differences (medium weight): aspects some responses address and others omit.
   D. Superficial differences (low weight): tone, structure, length.
3. Start at 100 and subtract penalties for each difference, then assign the score.

SCORE BANDS (score: emoji vibe):
{bands}

CRITICAL INSTRUCTIONS:
1. Be skeptical: look actively for disagreements.
2. Structural similarity must NOT inflate scores; judge content.
3. 90+ means the responses are essentially interchangeable.
4. When in doubt between two bands, choose the lower one.

Consensus threshold: {consensus_threshold}
Set isGoodEnough = true only if score >= {consensus_threshold}.
{search_block}
OUTPUT FORMAT:
Respond with one JSON object with exactly these fields:
{{
  "score": <integer 0-100>,
  "summary": "<1-2 sentence plain summary>",
  "emoji": "<emoji for the score band>",
  "vibe": "<celebration|agreement|mixed|disagreement|clash>",
  "areasOfAgreement": ["<agreement 1>", "<agreement 2>"],
  "keyDifferences": ["<difference 1>", "<difference 2>"],
  "reasoning": "<explanation of penalties and the final score>",
  "isGoodEnough": <true or false>,
  "needsMoreInfo": <true or false>,
  "suggestedSearchQuery": "<query or empty string>"
}}

areasOfAgreement and keyDifferences MUST be JSON arrays of strings, not numbered lists."""


def build_evaluation_prompt(
    responses: Mapping[str, str],
    participants: Sequence[ParticipantRef],
    round_number: int,
) -> str:
    """User prompt listing each participant's answer for the judge.

    Participants without a response this round are left out.
    """
    answered = [p for p in participants if responses.get(p.id, "").strip()]
    response_text = "\n\n".join(f"--- {p.label.upper()} ---\n{responses[p.id]}" for p in answered)

    return f"""Round {round_number}

Responses to evaluate ({len(answered)} models):

{response_text}

EVALUATION STEPS:
1. List the areas of agreement between the responses.
2. List every significant difference (factual, approach, coverage, superficial).
3. Apply the penalties and assign the final score.

Remember: 90+ means near-identical. Be rigorous."""


def build_synthesis_prompt(
    original_prompt: str,
    final_responses: Mapping[str, str],
    participants: Sequence[ParticipantRef],
    rounds: Sequence[RoundRecord],
) -> str:
    """Prompt asking for one unified answer from the final-round responses."""
    answered = [p for p in participants if final_responses.get(p.id, "").strip()]
    responses_text = "\n\n---\n\n".join(f"{p.label}:\n{final_responses[p.id]}" for p in answered)

    history = ""
    if rounds:
        lines = [f"Round {r.round_number}: Score {r.evaluation.score}/100 - {r.evaluation.summary}" for r in rounds]
        history = "\n\nConsensus Evolution:\n" + "\n".join(lines)

    return f"""You are synthesizing a consensus response from {len(answered)} AI models.

Original Question: {original_prompt}

Final Responses:
---
{responses_text}{history}

Create a single, unified response that:
1. Incorporates the key insights from all models.
2. Presents a balanced, consensus view.
3. Acknowledges any remaining differences if they exist.
4. Provides a clear, coherent answer.

Write the consensus response now."""


def build_progression_summary_prompt(
    original_prompt: str,
    rounds: Sequence[RoundRecord],
    participants: Sequence[ParticipantRef],
    excerpt_chars: int = 300,
) -> str:
    """Prompt for a short narrative of how the answers converged across rounds."""

    def excerpt(text: str) -> str:
        return text if len(text) <= excerpt_chars else text[:excerpt_chars] + "..."

    blocks = []
    for r in rounds:
        lines = [
            f"  - **{p.label}**: {excerpt(_response_or_marker(r.responses, p.id))}" for p in participants
        ]
        blocks.append(
            f"**Round {r.round_number}**:\n- Score: {r.evaluation.score}%\n"
            f"- Summary: {r.evaluation.summary}\n\n" + "\n".join(lines)
        )

    rounds_summary = "\n\n---\n\n".join(blocks)
    return f"""Analyze how AI models evolved across {len(rounds)} rounds of consensus-building.

Original Question: {original_prompt}

Rounds Data:
---
{rounds_summary}

Write a 2-4 paragraph narrative summary in markdown. No emojis."""
