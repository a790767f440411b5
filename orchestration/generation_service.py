# orchestration/generation_service.py
"""Entry points for every text generation operation.

Streaming operations (outline, chapter) hold the coordinator's single
generation slot for their whole duration and can be stopped with
``cancel_generation()``. The request/response operations (chapter prose,
prologue, revision, blurb, character sheets) are single calls with a
generous token ceiling; a truncated answer is returned as is.
"""

from __future__ import annotations

import json
from typing import Any

import structlog

from config import settings
from core.exceptions import ResponseFormatError
from core.generation_guard import GenerationCoordinator
from core.llm_interface import LLMService
from models.generation_models import (
    ChapterStreamRequest,
    CharacterAppearance,
    GenerationRequest,
    OutlineRequest,
    TextModelConfig,
)
from orchestration.continuation import (
    ContinuationPolicy,
    OutlineContinuationController,
)
from orchestration.models import (
    CHAPTER_STREAM_EVENT,
    GenerationListener,
    OutlineOutcome,
)
from orchestration.prompt_builder import (
    PromptPair,
    build_basic_outline_prompts,
    build_chapter_prompts,
    build_chapter_stream_prompts,
    build_character_appearance_prompts,
    build_portrait_prompt_prompts,
    build_prologue_prompts,
    build_revision_prompts,
    build_tweet_prompts,
)

logger = structlog.get_logger(__name__)

DEFAULT_PORTRAIT_PROMPT = (
    "studio portrait, one-inch ID photo, clean background, realistic, high detail"
)


def default_text_config() -> TextModelConfig:
    return TextModelConfig(
        provider=settings.TEXT_PROVIDER,
        api_key=settings.OPENAI_API_KEY,
        api_url=settings.OPENAI_API_BASE,
        model=settings.TEXT_MODEL,
    )


def parse_json_reply(content: str) -> dict[str, Any]:
    """Parse a JSON object out of a reply that may be wrapped in code fences."""
    cleaned = content.strip()
    for prefix in ("```json", "```"):
        if cleaned.startswith(prefix):
            cleaned = cleaned[len(prefix) :]
            break
    if cleaned.endswith("```"):
        cleaned = cleaned[: -len("```")]
    cleaned = cleaned.strip()
    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError as exc:
        raise ResponseFormatError(
            f"Model reply is not valid JSON: {exc}. Raw content: {cleaned}"
        ) from exc
    if not isinstance(data, dict):
        raise ResponseFormatError(f"Expected a JSON object, got: {cleaned}")
    return data


class GenerationService:
    """Text generation backed by one ``LLMService`` and one ``GenerationCoordinator``."""

    def __init__(
        self,
        llm: LLMService | None = None,
        coordinator: GenerationCoordinator | None = None,
        text_config: TextModelConfig | None = None,
        policy: ContinuationPolicy | None = None,
    ) -> None:
        self.llm = llm or LLMService()
        self.coordinator = coordinator or GenerationCoordinator()
        self.text_config = text_config or default_text_config()
        self.policy = policy or ContinuationPolicy.from_settings()

    async def aclose(self) -> None:
        await self.llm.aclose()

    def _stream_config(self, api_key: str) -> TextModelConfig:
        config = self.text_config.model_copy(update={"api_key": api_key})
        config.validate_for_request()
        return config

    # --- streaming -----------------------------------------------------

    async def run_outline_stream(
        self,
        request: OutlineRequest,
        listener: GenerationListener | None = None,
    ) -> OutlineOutcome:
        """Stream an outline, continuing until the target chapter count or the round budget."""
        config = self._stream_config(request.api_key)
        async with self.coordinator.begin("outline") as handle:
            logger.info(
                "Outline generation started",
                title=request.title,
                target_chapters=request.target_chapters,
                sequence=handle.sequence,
            )
            controller = OutlineContinuationController(
                self.llm,
                self.coordinator,
                url=config.chat_completions_url(),
                model=config.model,
                temperature=config.normalized_temperature(settings.TEMPERATURE_OUTLINE),
                policy=self.policy,
                listener=listener,
            )
            return await controller.run(request)

    async def generate_outline_stream(
        self,
        title: str,
        genre: str,
        description: str,
        target_chapters: int,
        api_key: str,
        requirements: str | None = None,
        listener: GenerationListener | None = None,
    ) -> str:
        request = OutlineRequest(
            title=title,
            genre=genre,
            description=description,
            target_chapters=target_chapters,
            api_key=api_key,
            requirements=requirements,
        )
        outcome = await self.run_outline_stream(request, listener)
        return outcome.text

    async def generate_chapter_stream(
        self,
        request: ChapterStreamRequest,
        listener: GenerationListener | None = None,
    ) -> str:
        """Stream chapter prose in a single call; no continuation rounds."""
        config = self._stream_config(request.api_key)
        prompts = build_chapter_stream_prompts(request)
        generation_request = GenerationRequest.from_prompts(
            model=config.model,
            system_prompt=prompts.system,
            user_prompt=prompts.user,
            temperature=config.normalized_temperature(settings.TEMPERATURE_CHAPTER),
            max_tokens=settings.CHAPTER_STREAM_MAX_TOKENS,
        )

        def on_delta(delta: str) -> None:
            if listener is not None:
                listener(CHAPTER_STREAM_EVENT, delta)

        async with self.coordinator.begin("chapter"):
            logger.info(
                "Chapter generation started",
                chapter_title=request.chapter_title,
                is_continuation=request.is_continuation,
            )
            return await self.llm.stream_chat(
                generation_request,
                url=config.chat_completions_url(),
                api_key=config.api_key,
                on_delta=on_delta,
                coordinator=self.coordinator,
            )

    def cancel_generation(self) -> None:
        """Ask the running streaming generation to stop. Safe to call when idle."""
        self.coordinator.request_cancel()

    # --- request/response ----------------------------------------------

    async def _complete(
        self,
        operation: str,
        prompts: PromptPair,
        config: TextModelConfig | None,
        default_temperature: float,
        max_tokens: int,
    ) -> str:
        config = config or self.text_config
        config.validate_for_request()
        request = GenerationRequest.from_prompts(
            model=config.model.strip(),
            system_prompt=prompts.system,
            user_prompt=prompts.user,
            temperature=config.normalized_temperature(default_temperature),
            max_tokens=max_tokens,
            stream=False,
        )
        content, usage = await self.llm.complete_chat(
            request, url=config.chat_completions_url(), api_key=config.api_key
        )
        if isinstance(usage, dict) and isinstance(usage.get("total_tokens"), int):
            logger.info(
                "%s generation used %s tokens", operation, usage["total_tokens"]
            )
        return content

    async def test_connection(self, config: TextModelConfig | None = None) -> bool:
        await self._complete(
            "Connection test",
            PromptPair(system="You are a helpful assistant.", user="测试连接"),
            config,
            0.7,
            32,
        )
        return True

    async def generate_outline(
        self,
        title: str,
        genre: str,
        description: str,
        target_chapters: int,
        config: TextModelConfig | None = None,
    ) -> str:
        return await self._complete(
            "Outline",
            build_basic_outline_prompts(title, genre, description, target_chapters),
            config,
            settings.TEMPERATURE_OUTLINE,
            settings.OUTLINE_MAX_TOKENS,
        )

    async def generate_chapter(
        self,
        chapter_title: str,
        outline_goal: str,
        conflict: str,
        previous_summary: str | None = None,
        character_info: str | None = None,
        world_info: str | None = None,
        config: TextModelConfig | None = None,
    ) -> str:
        return await self._complete(
            "Chapter",
            build_chapter_prompts(
                chapter_title,
                outline_goal,
                conflict,
                previous_summary,
                character_info,
                world_info,
            ),
            config,
            settings.TEMPERATURE_CHAPTER,
            settings.CHAPTER_MAX_TOKENS,
        )

    async def generate_prologue(
        self,
        title: str,
        genre: str,
        outline: str,
        config: TextModelConfig | None = None,
    ) -> str:
        return await self._complete(
            "Prologue",
            build_prologue_prompts(title, genre, outline),
            config,
            settings.TEMPERATURE_CHAPTER,
            settings.PROLOGUE_MAX_TOKENS,
        )

    async def generate_revision(
        self,
        text: str,
        goals: str | None = None,
        config: TextModelConfig | None = None,
    ) -> str:
        return await self._complete(
            "Revision",
            build_revision_prompts(text, goals or settings.DEFAULT_REVISION_GOALS),
            config,
            settings.TEMPERATURE_REVISION,
            settings.REVISION_MAX_TOKENS,
        )

    async def generate_tweet(
        self, chapter_content: str, config: TextModelConfig | None = None
    ) -> str:
        return await self._complete(
            "Tweet",
            build_tweet_prompts(chapter_content),
            config,
            settings.TEMPERATURE_TWEET,
            settings.TWEET_MAX_TOKENS,
        )

    async def generate_character_appearance(
        self,
        name: str,
        role: str | None = None,
        personality: str | None = None,
        background: str | None = None,
        motivation: str | None = None,
        style: str | None = None,
        config: TextModelConfig | None = None,
    ) -> CharacterAppearance:
        content = await self._complete(
            "Character appearance",
            build_character_appearance_prompts(
                name, role, personality, background, motivation, style
            ),
            config,
            settings.TEMPERATURE_CHARACTER,
            settings.CHARACTER_MAX_TOKENS,
        )
        data = parse_json_reply(content)
        appearance = data.get("appearance")
        appearance = appearance.strip() if isinstance(appearance, str) else ""
        if not appearance:
            raise ResponseFormatError("Model returned no usable appearance text")
        image_prompt = data.get("image_prompt")
        if not isinstance(image_prompt, str):
            image_prompt = DEFAULT_PORTRAIT_PROMPT
        return CharacterAppearance(
            appearance=appearance, image_prompt=image_prompt.strip()
        )

    async def generate_character_portrait_prompt(
        self,
        name: str,
        appearance: str | None = None,
        role: str | None = None,
        personality: str | None = None,
        background: str | None = None,
        motivation: str | None = None,
        style: str | None = None,
        config: TextModelConfig | None = None,
    ) -> str:
        content = await self._complete(
            "Portrait prompt",
            build_portrait_prompt_prompts(
                name, appearance, role, personality, background, motivation, style
            ),
            config,
            settings.TEMPERATURE_PORTRAIT,
            settings.PORTRAIT_MAX_TOKENS,
        )
        data = parse_json_reply(content)
        image_prompt = data.get("image_prompt")
        if not isinstance(image_prompt, str):
            return DEFAULT_PORTRAIT_PROMPT
        if not image_prompt.strip():
            raise ResponseFormatError("Model returned an empty portrait prompt")
        return image_prompt.strip()
