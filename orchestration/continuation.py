# orchestration/continuation.py
"""Drive an outline to its target chapter count across several streaming calls.

Chat APIs cut a response off at their token ceiling, and an outline with
many chapters regularly does not fit into one response. Completion is
therefore judged by inspecting the generated text for chapter headings,
not by the API's own finish signal: after every round the highest chapter
number is recomputed and, while it is short of the target, another bounded
call asks for the missing chapters. The transcript only ever grows.
"""

from __future__ import annotations

import asyncio
import re
from dataclasses import dataclass

import structlog

from config import settings
from core.exceptions import GenerationCancelled, GenerationError
from core.generation_guard import GenerationCoordinator
from core.llm_interface import LLMService
from models.generation_models import GenerationRequest, OutlineRequest
from orchestration.models import (
    OUTLINE_PROGRESS_EVENT,
    OUTLINE_STREAM_EVENT,
    ContinuationState,
    GenerationListener,
    OutlineOutcome,
)
from orchestration.prompt_builder import (
    PromptPair,
    build_outline_continuation_prompts,
    build_outline_prompts,
)

logger = structlog.get_logger(__name__)

# "第N章" at the start of a line, optionally behind Markdown heading or bold markers
CHAPTER_HEADING_PATTERN = re.compile(
    r"^[ \t]*(?:#{1,6}[ \t]*)?(?:\*\*)?[ \t]*第[ \t]*(\d+)[ \t]*章", re.MULTILINE
)

ROUND_SEPARATOR = "\n\n"


def max_chapter_index(text: str, pattern: re.Pattern[str] = CHAPTER_HEADING_PATTERN) -> int:
    """Return the highest chapter number among the headings in ``text``, or 0."""
    numbers = [int(match.group(1)) for match in pattern.finditer(text)]
    return max(numbers, default=0)


def transcript_tail(text: str, max_chars: int) -> str:
    """Return at most ``max_chars`` trailing characters, starting on a line if possible."""
    if len(text) <= max_chars:
        return text
    tail = text[-max_chars:]
    newline_at = tail.find("\n")
    if 0 <= newline_at < len(tail) // 2:
        tail = tail[newline_at + 1 :]
    return tail


@dataclass(frozen=True)
class ContinuationPolicy:
    """Budgets that bound the continuation loop."""

    max_rounds: int = 5
    tail_chars: int = 3000
    initial_max_tokens: int = 4000
    continuation_max_tokens: int = 8000
    delay_seconds: float = 0.5

    @classmethod
    def from_settings(cls) -> ContinuationPolicy:
        return cls(
            max_rounds=settings.MAX_CONTINUATION_ROUNDS,
            tail_chars=settings.CONTINUATION_TAIL_CHARS,
            initial_max_tokens=settings.OUTLINE_MAX_TOKENS,
            continuation_max_tokens=settings.OUTLINE_CONTINUATION_MAX_TOKENS,
            delay_seconds=settings.CONTINUATION_DELAY_SECONDS,
        )


class OutlineContinuationController:
    """Run the first outline round plus up to ``policy.max_rounds`` continuations.

    The caller must already hold the coordinator's generation slot.
    Reaching the round limit is not an error: the partial transcript is
    returned with state ``EXHAUSTED`` because it is still useful.
    """

    def __init__(
        self,
        llm: LLMService,
        coordinator: GenerationCoordinator,
        *,
        url: str,
        model: str,
        temperature: float,
        policy: ContinuationPolicy | None = None,
        listener: GenerationListener | None = None,
        marker_pattern: re.Pattern[str] = CHAPTER_HEADING_PATTERN,
    ) -> None:
        self.llm = llm
        self.coordinator = coordinator
        self.url = url
        self.model = model
        self.temperature = temperature
        self.policy = policy or ContinuationPolicy.from_settings()
        self.listener = listener
        self.marker_pattern = marker_pattern
        self.state = ContinuationState.INITIAL
        self.rounds = 0
        self._transcript: list[str] = []

    @property
    def transcript(self) -> str:
        return "".join(self._transcript)

    def _emit(self, event: str, payload: str) -> None:
        if self.listener is not None:
            self.listener(event, payload)

    def _deliver(self, delta: str) -> None:
        self._transcript.append(delta)
        self._emit(OUTLINE_STREAM_EVENT, delta)

    async def _run_round(self, prompts: PromptPair, api_key: str, max_tokens: int) -> None:
        request = GenerationRequest.from_prompts(
            model=self.model,
            system_prompt=prompts.system,
            user_prompt=prompts.user,
            temperature=self.temperature,
            max_tokens=max_tokens,
        )
        self.state = ContinuationState.AWAITING_ROUND
        await self.llm.stream_chat(
            request,
            url=self.url,
            api_key=api_key,
            on_delta=self._deliver,
            coordinator=self.coordinator,
        )

    def _progress_note(self, found: int, target: int) -> str:
        return (
            f"大纲已生成到第{found}章，目标{target}章，"
            f"正在续写第{found + 1}-{target}章"
            f"（第{self.rounds}/{self.policy.max_rounds}轮）……"
        )

    async def run(self, request: OutlineRequest) -> OutlineOutcome:
        target = request.target_chapters
        found = 0
        try:
            await self._run_round(
                build_outline_prompts(request),
                request.api_key,
                self.policy.initial_max_tokens,
            )
            while True:
                transcript = self.transcript
                found = max_chapter_index(transcript, self.marker_pattern)
                if found >= target:
                    self.state = ContinuationState.SATISFIED
                    break
                if self.coordinator.is_cancelled:
                    raise GenerationCancelled()
                if self.rounds >= self.policy.max_rounds:
                    self.state = ContinuationState.EXHAUSTED
                    logger.warning(
                        "Outline continuation budget exhausted; returning partial outline",
                        max_chapter=found,
                        target=target,
                        rounds=self.rounds,
                    )
                    break

                self.rounds += 1
                logger.info(
                    "Outline short of target; starting continuation round",
                    max_chapter=found,
                    target=target,
                    round=self.rounds,
                )
                self._emit(OUTLINE_PROGRESS_EVENT, self._progress_note(found, target))
                if self.policy.delay_seconds > 0:
                    await asyncio.sleep(self.policy.delay_seconds)
                self.coordinator.raise_if_cancelled()

                tail = transcript_tail(transcript, self.policy.tail_chars)
                if transcript and not transcript.endswith("\n"):
                    self._deliver(ROUND_SEPARATOR)
                await self._run_round(
                    build_outline_continuation_prompts(request, tail, found),
                    request.api_key,
                    self.policy.continuation_max_tokens,
                )
        except GenerationCancelled:
            self.state = ContinuationState.CANCELLED
            raise
        except GenerationError:
            self.state = ContinuationState.FAILED
            raise

        logger.info(
            "Outline generation finished",
            state=self.state.value,
            rounds=self.rounds,
            max_chapter=found,
            target=target,
        )
        return OutlineOutcome(
            text=self.transcript,
            state=self.state,
            rounds=self.rounds,
            max_chapter=found,
        )
