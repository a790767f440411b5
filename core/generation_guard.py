# core/generation_guard.py
"""Single-flight guard and cooperative cancellation for generation calls."""

from __future__ import annotations

import asyncio
import threading
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass

import structlog

from core.exceptions import GenerationCancelled

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class GenerationHandle:
    """Proof of holding the generation slot; valid inside ``begin()`` only."""

    sequence: int
    label: str


class GenerationCoordinator:
    """Allow one generation at a time and carry its cancellation signal.

    ``begin()`` queues callers in arrival order and has no timeout: a
    second caller waits for as long as the running generation takes,
    continuation rounds included. The cancellation signal belongs to the
    coordinator, not to a single call, and is reset whenever a new
    generation acquires the slot.
    """

    def __init__(self) -> None:
        self._slot = asyncio.Lock()
        # threading.Event so a GUI thread can cancel without touching the loop
        self._cancel = threading.Event()
        self._sequence = 0
        self._waiting = 0

    @property
    def is_cancelled(self) -> bool:
        return self._cancel.is_set()

    @property
    def is_busy(self) -> bool:
        return self._slot.locked()

    @property
    def waiting(self) -> int:
        """Number of callers queued behind the running generation."""
        return self._waiting

    def request_cancel(self) -> None:
        """Mark the running generation as cancelled. Never blocks."""
        self._cancel.set()
        logger.info("Cancellation requested", busy=self.is_busy)

    def raise_if_cancelled(self) -> None:
        if self._cancel.is_set():
            raise GenerationCancelled()

    @asynccontextmanager
    async def begin(self, label: str = "generation") -> AsyncIterator[GenerationHandle]:
        """Hold the generation slot for the duration of the ``async with`` block."""
        self._waiting += 1
        try:
            await self._slot.acquire()
        finally:
            self._waiting -= 1
        try:
            self._sequence += 1
            self._cancel.clear()
            handle = GenerationHandle(sequence=self._sequence, label=label)
            logger.debug("Generation slot acquired", label=label, sequence=handle.sequence)
            yield handle
        finally:
            self._slot.release()
            logger.debug("Generation slot released", label=label)
