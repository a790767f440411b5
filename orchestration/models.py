# orchestration/models.py
"""Shared types for orchestration services."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

OUTLINE_STREAM_EVENT = "outline-stream"
OUTLINE_PROGRESS_EVENT = "outline-progress"
CHAPTER_STREAM_EVENT = "chapter-stream"

# Receives (event_name, payload) for every delta and progress note.
GenerationListener = Callable[[str, str], None]


class ContinuationState(str, Enum):
    INITIAL = "initial"
    AWAITING_ROUND = "awaiting_round"
    SATISFIED = "satisfied"
    EXHAUSTED = "exhausted"
    CANCELLED = "cancelled"
    FAILED = "failed"


@dataclass
class OutlineOutcome:
    """Final outline transcript and how the continuation loop ended."""

    text: str
    state: ContinuationState
    rounds: int
    max_chapter: int

    @property
    def is_complete(self) -> bool:
        return self.state is ContinuationState.SATISFIED
