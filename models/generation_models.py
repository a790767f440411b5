# models/generation_models.py
"""Request and response models for text generation calls."""

from __future__ import annotations

import math
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from core.exceptions import ConfigError


class ChatMessage(BaseModel):
    """A single chat-completion message."""

    model_config = ConfigDict(frozen=True)

    role: Literal["system", "user", "assistant"]
    content: str


class GenerationRequest(BaseModel):
    """Immutable body of one chat-completion call."""

    model_config = ConfigDict(frozen=True)

    model: str
    messages: tuple[ChatMessage, ...]
    temperature: float
    max_tokens: int = Field(..., gt=0)
    stream: bool = True

    @classmethod
    def from_prompts(
        cls,
        *,
        model: str,
        system_prompt: str,
        user_prompt: str,
        temperature: float,
        max_tokens: int,
        stream: bool = True,
    ) -> GenerationRequest:
        return cls(
            model=model,
            messages=(
                ChatMessage(role="system", content=system_prompt),
                ChatMessage(role="user", content=user_prompt),
            ),
            temperature=temperature,
            max_tokens=max_tokens,
            stream=stream,
        )

    def with_stream(self, stream: bool) -> GenerationRequest:
        return self.model_copy(update={"stream": stream})

    def to_payload(self) -> dict[str, Any]:
        """JSON body sent to ``/chat/completions``."""
        return {
            "model": self.model,
            "messages": [m.model_dump() for m in self.messages],
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
            "stream": self.stream,
        }


class TextModelConfig(BaseModel):
    """Connection settings for an OpenAI-compatible text model."""

    provider: str = "deepseek"
    api_key: str = ""
    api_url: str = "https://api.deepseek.com/v1"
    model: str = "deepseek-chat"
    temperature: float | None = None

    def validate_for_request(self) -> None:
        """Raise ``ConfigError`` if the config cannot be used for a request."""
        if not self.api_key.strip():
            raise ConfigError("API key must not be empty")
        if not self.api_url.strip():
            raise ConfigError("API URL must not be empty")
        if not self.model.strip():
            raise ConfigError("Model name must not be empty")
        if self.temperature is not None and not math.isfinite(self.temperature):
            raise ConfigError("Temperature is not a finite number")

    def normalized_temperature(self, fallback: float) -> float:
        """Configured temperature clamped to [0, 2], else ``fallback``."""
        if self.temperature is not None and math.isfinite(self.temperature):
            return min(max(self.temperature, 0.0), 2.0)
        return fallback

    def normalized_api_base_url(self) -> str:
        return self.api_url.strip().rstrip("/")

    def chat_completions_url(self) -> str:
        base = self.normalized_api_base_url()
        if base.endswith("/chat/completions"):
            return base
        return f"{base}/chat/completions"


class OutlineRequest(BaseModel):
    """Input of a streamed outline generation."""

    title: str
    genre: str
    description: str
    target_chapters: int = Field(..., ge=1)
    api_key: str
    requirements: str | None = None


class ChapterStreamRequest(BaseModel):
    """Input of a streamed chapter generation or continuation."""

    chapter_title: str
    outline_goal: str
    conflict: str = ""
    previous_summary: str | None = None
    current_content: str | None = None
    characters_info: str | None = None
    world_setting: str | None = None
    timeline: str | None = None
    target_words: int | None = Field(None, gt=0)
    is_continuation: bool = False
    api_key: str


class CharacterAppearance(BaseModel):
    """Appearance text and matching portrait prompt for one character."""

    appearance: str
    image_prompt: str
