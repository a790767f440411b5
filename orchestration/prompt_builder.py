# orchestration/prompt_builder.py
"""Assemble the system/user prompt pairs for every generation call."""

from __future__ import annotations

from typing import NamedTuple

from config import settings
from models.generation_models import ChapterStreamRequest, OutlineRequest
from prompt_renderer import render_prompt

CHARACTER_SYSTEM_PROMPT = (
    "You are a character designer and image prompt engineer. Return JSON only."
)
PORTRAIT_SYSTEM_PROMPT = (
    "You are a professional portrait prompt engineer. Return JSON only."
)


class PromptPair(NamedTuple):
    system: str
    user: str


def build_outline_prompts(request: OutlineRequest) -> PromptPair:
    """Prompts for the first outline round, including the chapter template."""
    context = {
        "title": request.title,
        "genre": request.genre,
        "description": request.description,
        "target_chapters": request.target_chapters,
        "requirements": (request.requirements or "").strip(),
    }
    return PromptPair(
        system=render_prompt("outline_system.j2", context),
        user=render_prompt("outline_user.j2", context),
    )


def build_outline_continuation_prompts(
    request: OutlineRequest, tail: str, last_chapter: int
) -> PromptPair:
    """Prompts asking for chapters ``last_chapter + 1`` through the target.

    ``tail`` is a bounded suffix of the transcript; sending the full outline
    again would grow the prompt with every round.
    """
    context = {
        "title": request.title,
        "genre": request.genre,
        "tail": tail,
        "last_chapter": last_chapter,
        "start_chapter": last_chapter + 1,
        "end_chapter": request.target_chapters,
        "target_chapters": request.target_chapters,
    }
    return PromptPair(
        system=render_prompt("outline_continuation_system.j2", context),
        user=render_prompt("outline_continuation_user.j2", context),
    )


def build_chapter_stream_prompts(request: ChapterStreamRequest) -> PromptPair:
    context = request.model_dump(exclude={"api_key"})
    context["target_words"] = request.target_words or settings.DEFAULT_TARGET_WORDS
    return PromptPair(
        system=render_prompt("chapter_stream_system.j2", context),
        user=render_prompt("chapter_stream_user.j2", context),
    )


def build_basic_outline_prompts(
    title: str, genre: str, description: str, target_chapters: int
) -> PromptPair:
    context = {
        "title": title,
        "genre": genre,
        "description": description,
        "target_chapters": target_chapters,
    }
    return PromptPair(
        system=render_prompt("outline_basic_system.j2", context),
        user=render_prompt("outline_basic_user.j2", context),
    )


def build_chapter_prompts(
    chapter_title: str,
    outline_goal: str,
    conflict: str,
    previous_summary: str | None = None,
    character_info: str | None = None,
    world_info: str | None = None,
) -> PromptPair:
    context = {
        "chapter_title": chapter_title,
        "outline_goal": outline_goal,
        "conflict": conflict,
        "previous_summary": previous_summary,
        "character_info": character_info,
        "world_info": world_info,
    }
    return PromptPair(
        system=render_prompt("chapter_system.j2", {}),
        user=render_prompt("chapter_user.j2", context),
    )


def build_prologue_prompts(title: str, genre: str, outline: str) -> PromptPair:
    return PromptPair(
        system=render_prompt("chapter_system.j2", {}),
        user=render_prompt(
            "prologue_user.j2", {"title": title, "genre": genre, "outline": outline}
        ),
    )


def build_revision_prompts(text: str, goals: str) -> PromptPair:
    return PromptPair(
        system=render_prompt("revision_system.j2", {}),
        user=render_prompt("revision_user.j2", {"text": text, "goals": goals}),
    )


def build_tweet_prompts(chapter_content: str) -> PromptPair:
    return PromptPair(
        system=render_prompt("tweet_system.j2", {}),
        user=render_prompt("tweet_user.j2", {"chapter_content": chapter_content}),
    )


def _character_context(**fields: str | None) -> dict[str, str]:
    return {key: (value or "").strip() for key, value in fields.items()}


def build_character_appearance_prompts(
    name: str,
    role: str | None = None,
    personality: str | None = None,
    background: str | None = None,
    motivation: str | None = None,
    style: str | None = None,
) -> PromptPair:
    context = _character_context(
        name=name,
        role=role,
        personality=personality,
        background=background,
        motivation=motivation,
        style=style,
    )
    return PromptPair(
        system=CHARACTER_SYSTEM_PROMPT,
        user=render_prompt("character_appearance_user.j2", context),
    )


def build_portrait_prompt_prompts(
    name: str,
    appearance: str | None = None,
    role: str | None = None,
    personality: str | None = None,
    background: str | None = None,
    motivation: str | None = None,
    style: str | None = None,
) -> PromptPair:
    context = _character_context(
        name=name,
        appearance=appearance,
        role=role,
        personality=personality,
        background=background,
        motivation=motivation,
        style=style,
    )
    return PromptPair(
        system=PORTRAIT_SYSTEM_PROMPT,
        user=render_prompt("portrait_prompt_user.j2", context),
    )
