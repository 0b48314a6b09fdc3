"""Consensus orchestration: parallel participant rounds, judge scoring, synthesis.

One ConsensusRunner drives one conversation. Rounds run strictly in sequence;
inside a round every participant streams concurrently and the judge scores the
answers once all of them have finished or failed. The run ends when the score
reaches the threshold or the round limit is reached, then the judge writes the
synthesis. Progress is reported as a stream of ConsensusEvent values.
"""

import asyncio
import logging
import time
from collections.abc import AsyncIterator, Callable

from ai_consensus.errors import ConfigurationError, ConversationFailure, JudgeParsingError
from ai_consensus.evaluation import Evaluation, PartialEvaluation, stream_evaluation
from ai_consensus.events import ConsensusEvent
from ai_consensus.models import (
    ConsensusResult,
    ConversationRequest,
    ConversationState,
    ConversationStatus,
    KeySet,
    ParticipantRef,
    RoundRecord,
    SearchData,
)
from ai_consensus.prompts import build_prompt_with_search_context, build_refinement_prompts_for_all
from ai_consensus.providers.base import AIProvider, ProviderError
from ai_consensus.providers.errors import classify_provider_error
from ai_consensus.providers.factory import create_provider
from ai_consensus.routing import require_route
from ai_consensus.search import SearchError, TavilySearchClient
from ai_consensus.synthesis import stream_progression_summary, stream_synthesis
from ai_consensus.validation import validate_request
from config.config_loader import AppConfig

logger = logging.getLogger(__name__)

ProviderFactory = Callable[[ParticipantRef], AIProvider]


def build_provider_factory(keys: KeySet, config: AppConfig) -> ProviderFactory:
    """Route each participant with ``keys`` and build its client.

    The returned callable raises ConfigurationError when a model has no route.
    """

    def factory(ref: ParticipantRef) -> AIProvider:
        route = require_route(
            ref.model_id,
            keys,
            ref.provider,
            family_prefixes=config.routing.family_prefixes,
            direct_providers=config.routing.direct_providers,
        )
        logger.info("Routing %s (%s) -> %s via %s", ref.label, ref.model_id, route.model_id, route.source)
        return create_provider(route, keys, config)

    return factory


def round_to_dict(record: RoundRecord) -> dict:
    payload = {
        "roundNumber": record.round_number,
        "responses": dict(record.responses),
        "evaluation": record.evaluation.to_dict(),
    }
    if record.refinement_prompts is not None:
        payload["refinementPrompts"] = dict(record.refinement_prompts)
    if record.search_data is not None:
        payload["searchData"] = {
            "query": record.search_data.query,
            "results": [vars(r) for r in record.search_data.results],
        }
    return payload


def result_to_dict(result: ConsensusResult) -> dict:
    return {
        "prompt": result.prompt,
        "synthesis": result.synthesis,
        "rounds": [round_to_dict(r) for r in result.rounds],
        "finalResponses": dict(result.final_responses),
        "finalScore": result.final_score,
        "status": result.status.value,
        "progressionSummary": result.progression_summary,
        "totalDurationSec": round(result.total_duration_sec, 2),
    }


class ConsensusRunner:
    """Run one conversation to completion.

    Args:
        request: Validated and routed on construction; ConfigurationError if invalid
            or if any participant or the judge has no route.
        provider_factory: Builds the client for a participant or the judge.
        search_client: Optional; used only when ``request.search_enabled``.
        judge_timeout_sec: Ceiling for each judge call before the text fallback.
        progression_summary: Generate a narrative summary after multi-round runs.
    """

    def __init__(
        self,
        request: ConversationRequest,
        provider_factory: ProviderFactory,
        search_client: TavilySearchClient | None = None,
        judge_timeout_sec: float = 180.0,
        progression_summary: bool = True,
    ) -> None:
        validate_request(request)
        self.request = request
        self.state = ConversationState(request=request)
        self.result: ConsensusResult | None = None
        self._search_client = search_client
        self._judge_timeout_sec = judge_timeout_sec
        self._progression_summary = progression_summary
        # routing happens up front; a missing route rejects the whole request
        self._providers: dict[str, AIProvider] = {p.id: provider_factory(p) for p in request.participants}
        self._judge = provider_factory(request.judge)
        self._tasks: list[asyncio.Task] = []
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        """Stop issuing provider calls. In-flight participant calls are cancelled and discarded."""
        if self._cancelled:
            return
        logger.info("Conversation cancelled")
        self._cancelled = True
        for task in self._tasks:
            task.cancel()

    async def run(self) -> AsyncIterator[ConsensusEvent]:
        """Yield events until a ``final`` or ``error`` event (or cancellation)."""
        start_time = time.monotonic()
        request = self.request
        participants = request.participants
        yield ConsensusEvent("start", data={
            "participants": [{"id": p.id, "label": p.label, "modelId": p.model_id} for p in participants],
            "judge": {"id": request.judge.id, "label": request.judge.label, "modelId": request.judge.model_id},
            "maxRounds": request.max_rounds,
            "consensusThreshold": request.consensus_threshold,
        })

        prompts = {p.id: request.prompt for p in participants}
        try:
            while self.state.status is ConversationStatus.RUNNING:
                if self._cancelled:
                    return
                self.state.current_round += 1
                round_number = self.state.current_round
                logger.info("Starting round %d/%d with %d participants",
                            round_number, request.max_rounds, len(participants))
                yield ConsensusEvent("round-start", round_number, {"maxRounds": request.max_rounds})

                search_data = None
                async for event in self._search_step(round_number):
                    if isinstance(event, SearchData):
                        search_data = event
                    else:
                        yield event
                if self._cancelled:
                    return
                round_prompts = prompts
                if search_data is not None:
                    round_prompts = {
                        pid: build_prompt_with_search_context(text, search_data.results)
                        for pid, text in prompts.items()
                    }

                responses: dict[str, str] = {}
                async for event in self._participants_step(round_number, round_prompts, responses):
                    yield event
                if self._cancelled:
                    return
                if not responses:
                    raise ConversationFailure("All participants failed", round_number)
                logger.info("Round %d: %d/%d participants answered",
                            round_number, len(responses), len(participants))

                evaluation = None
                async for event in self._evaluation_step(round_number, responses):
                    if isinstance(event, Evaluation):
                        evaluation = event
                    else:
                        yield event
                if self._cancelled:
                    return

                if self.state.is_good_enough(evaluation.score):
                    self.state.status = ConversationStatus.CONVERGED
                elif round_number >= request.max_rounds:
                    self.state.status = ConversationStatus.ROUNDS_EXHAUSTED
                logger.info("Round %d scored %d (threshold %d): %s",
                            round_number, evaluation.score, request.consensus_threshold,
                            self.state.status.value)

                refinement = None
                if self.state.status is ConversationStatus.RUNNING:
                    refinement = build_refinement_prompts_for_all(
                        request.prompt, responses, participants, round_number + 1, evaluation
                    )
                    prompts = refinement

                self.state.rounds.append(RoundRecord(
                    round_number=round_number,
                    responses=responses,
                    evaluation=evaluation,
                    refinement_prompts=refinement,
                    search_data=search_data,
                ))
                if refinement is not None:
                    yield ConsensusEvent("refinement-prompts", round_number, {"prompts": refinement})

            async for event in self._finish(start_time):
                yield event

        except (ConversationFailure, ConfigurationError) as exc:
            self.state.status = ConversationStatus.FAILED
            round_number = getattr(exc, "round_number", None) or self.state.current_round or None
            logger.error("Conversation failed in round %s: %s", round_number, exc)
            yield ConsensusEvent("error", round_number, {"message": str(exc)})
        finally:
            for task in self._tasks:
                task.cancel()
            self._tasks.clear()

    # --- steps ----------------------------------------------------------------

    async def _search_step(self, round_number: int) -> AsyncIterator[ConsensusEvent | SearchData]:
        previous = self.state.last_round
        if (
            self._cancelled
            or not self.request.search_enabled
            or self._search_client is None
            or previous is None
            or not previous.evaluation.needs_more_info
            or not previous.evaluation.suggested_search_query.strip()
        ):
            return

        query = previous.evaluation.suggested_search_query.strip()
        yield ConsensusEvent("search-start", round_number, {"query": query})
        try:
            results = await self._search_client.search(query)
        except SearchError as exc:
            logger.warning("Round %d: search failed: %s", round_number, exc)
            yield ConsensusEvent("search-error", round_number, {"query": query, "message": str(exc)})
            return
        yield ConsensusEvent("search-complete", round_number, {
            "query": query,
            "results": [vars(r) for r in results],
        })
        yield SearchData(query=query, results=tuple(results), round_number=round_number)

    async def _stream_participant(
        self,
        participant: ParticipantRef,
        prompt: str,
        round_number: int,
        queue: asyncio.Queue,
    ) -> str:
        provider = self._providers[participant.id]
        parts: list[str] = []
        async for chunk in provider.stream_text(prompt):
            parts.append(chunk)
            queue.put_nowait(ConsensusEvent("participant-chunk", round_number, {
                "participantId": participant.id,
                "chunk": chunk,
            }))
        text = "".join(parts)
        if not text.strip():
            raise ProviderError(provider.name(), "Empty response content")
        queue.put_nowait(ConsensusEvent("participant-complete", round_number, {
            "participantId": participant.id,
            "response": text,
        }))
        return text

    async def _run_participant(
        self,
        participant: ParticipantRef,
        prompt: str,
        round_number: int,
        queue: asyncio.Queue,
    ) -> str | None:
        """Run one participant. Failures become ``participant-error`` events, never exceptions."""
        text = None
        try:
            text = await self._stream_participant(participant, prompt, round_number, queue)
        except ProviderError as exc:
            self._report_failure(participant, exc, round_number, queue)
        except Exception as exc:
            error = ProviderError(participant.provider, f"Unexpected error: {exc}")
            error.__cause__ = exc
            self._report_failure(participant, error, round_number, queue)
        return text

    @staticmethod
    def _report_failure(
        participant: ParticipantRef,
        exc: Exception,
        round_number: int,
        queue: asyncio.Queue,
    ) -> None:
        error_type, message = classify_provider_error(exc)
        logger.warning("Round %d: participant %s failed (%s): %s",
                       round_number, participant.label, error_type, exc)
        queue.put_nowait(ConsensusEvent("participant-error", round_number, {
            "participantId": participant.id,
            "errorType": error_type,
            "message": message,
        }))

    async def _participants_step(
        self,
        round_number: int,
        prompts: dict[str, str],
        responses: dict[str, str],
    ) -> AsyncIterator[ConsensusEvent]:
        queue: asyncio.Queue[ConsensusEvent | None] = asyncio.Queue()
        tasks = {
            p.id: asyncio.create_task(self._run_participant(p, prompts[p.id], round_number, queue))
            for p in self.request.participants
        }
        for task in tasks.values():
            # end marker; also fires for a task cancelled before it started
            task.add_done_callback(lambda _: queue.put_nowait(None))
        self._tasks.extend(tasks.values())

        finished = 0
        while finished < len(tasks):
            event = await queue.get()
            if event is None:
                finished += 1
                continue
            yield event

        await asyncio.wait(tasks.values())
        for participant_id, task in tasks.items():
            if not task.cancelled() and task.result() is not None:
                responses[participant_id] = task.result()
        self._tasks.clear()

    async def _evaluation_step(
        self,
        round_number: int,
        responses: dict[str, str],
    ) -> AsyncIterator[ConsensusEvent | Evaluation]:
        judge_ref = self.request.judge
        yield ConsensusEvent("evaluation-start", round_number, {"judge": judge_ref.label})
        try:
            async for item in stream_evaluation(
                self._judge,
                responses,
                self.request.participants,
                self.request.consensus_threshold,
                round_number,
                search_enabled=self.request.search_enabled,
                timeout_sec=self._judge_timeout_sec,
            ):
                if isinstance(item, PartialEvaluation):
                    yield ConsensusEvent("evaluation-partial", round_number, {"evaluation": item.to_dict()})
                else:
                    yield ConsensusEvent("evaluation-complete", round_number, {"evaluation": item.to_dict()})
                    yield item
        except JudgeParsingError as exc:
            raise ConversationFailure(f"Judge failed to evaluate round {round_number}: {exc}", round_number) from exc

    async def _finish(self, start_time: float) -> AsyncIterator[ConsensusEvent]:
        request = self.request
        rounds = self.state.rounds
        last = rounds[-1]

        if self._cancelled:
            return
        yield ConsensusEvent("synthesis-start")
        parts: list[str] = []
        try:
            async for chunk in stream_synthesis(
                self._judge, request.prompt, last.responses, request.participants, rounds
            ):
                parts.append(chunk)
                yield ConsensusEvent("synthesis-chunk", data={"chunk": chunk})
        except ProviderError as exc:
            raise ConversationFailure(f"Synthesis failed: {exc}") from exc
        except Exception as exc:
            raise ConversationFailure(f"Synthesis failed: {exc!r}") from exc
        synthesis = "".join(parts)
        if not synthesis.strip():
            raise ConversationFailure("Synthesis returned empty content")

        summary = None
        if self._progression_summary and len(rounds) > 1 and not self._cancelled:
            yield ConsensusEvent("progression-summary-start")
            summary_parts: list[str] = []
            try:
                async for chunk in stream_progression_summary(
                    self._judge, request.prompt, rounds, request.participants
                ):
                    summary_parts.append(chunk)
                    yield ConsensusEvent("progression-summary-chunk", data={"chunk": chunk})
                summary = "".join(summary_parts) or None
            except Exception as exc:
                logger.warning("Progression summary failed: %s", exc)

        self.result = ConsensusResult(
            prompt=request.prompt,
            synthesis=synthesis,
            rounds=list(rounds),
            final_responses=dict(last.responses),
            final_score=last.evaluation.score,
            status=self.state.status,
            participants=list(request.participants),
            judge=request.judge,
            progression_summary=summary,
            total_duration_sec=time.monotonic() - start_time,
        )
        logger.info("Conversation %s after %d rounds, final score %d",
                    self.result.status.value, len(rounds), self.result.final_score)
        yield ConsensusEvent("final", data=result_to_dict(self.result))


async def run_consensus(
    request: ConversationRequest,
    provider_factory: ProviderFactory,
    **kwargs,
) -> AsyncIterator[ConsensusEvent]:
    """Convenience wrapper: build a ConsensusRunner and yield its events."""
    runner = ConsensusRunner(request, provider_factory, **kwargs)
    async for event in runner.run():
        yield event
