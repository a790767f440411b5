"""Central package for storyloom data models."""

from .generation_models import (
    ChapterStreamRequest,
    CharacterAppearance,
    ChatMessage,
    GenerationRequest,
    OutlineRequest,
    TextModelConfig,
)

__all__ = [
    "ChatMessage",
    "GenerationRequest",
    "TextModelConfig",
    "OutlineRequest",
    "ChapterStreamRequest",
    "CharacterAppearance",
]
