# core/sse_decoder.py
"""Incremental decoder for chat-completion server-sent events.

The upstream body arrives as byte chunks that are not aligned to lines,
UTF-8 sequences or JSON objects. ``SSEFrameDecoder`` buffers raw bytes and
only decodes a line once its terminating newline has arrived, so a chunk
boundary can never produce a half-parsed frame.
"""

from __future__ import annotations

import json
from collections.abc import AsyncIterable, AsyncIterator
from typing import Any

import structlog

logger = structlog.get_logger(__name__)

DATA_PREFIX = "data: "
DONE_SENTINEL = "[DONE]"


def parse_data_payload(payload: str) -> tuple[str | None, str | None]:
    """Return ``(content, finish_reason)`` for one ``data:`` payload.

    Unparseable or oddly shaped payloads return ``(None, None)``; the API
    interleaves heartbeat lines with real frames and those must not abort
    the stream.
    """
    try:
        frame: Any = json.loads(payload)
    except json.JSONDecodeError:
        return None, None
    if not isinstance(frame, dict):
        return None, None
    choices = frame.get("choices")
    if not isinstance(choices, list) or not choices:
        return None, None
    choice = choices[0]
    if not isinstance(choice, dict):
        return None, None

    finish_reason = choice.get("finish_reason")
    if not isinstance(finish_reason, str):
        finish_reason = None

    delta = choice.get("delta")
    content = delta.get("content") if isinstance(delta, dict) else None
    if not isinstance(content, str) or not content:
        content = None
    return content, finish_reason


class SSEFrameDecoder:
    """Turn arbitrary byte chunks into content deltas.

    A decoder is single use: create a fresh one for every response body.
    """

    def __init__(self) -> None:
        self._buffer = bytearray()
        self.finish_reason: str | None = None
        self.done = False
        self.skipped_frames = 0

    def feed(self, chunk: bytes) -> list[str]:
        """Buffer ``chunk`` and return the deltas of every completed line."""
        self._buffer.extend(chunk)
        deltas: list[str] = []
        while True:
            newline_at = self._buffer.find(b"\n")
            if newline_at < 0:
                break
            raw_line = bytes(self._buffer[:newline_at])
            del self._buffer[: newline_at + 1]
            delta = self._process_line(raw_line)
            if delta is not None:
                deltas.append(delta)
        return deltas

    def flush(self) -> list[str]:
        """Process a trailing line that never received its newline."""
        if not self._buffer:
            return []
        raw_line = bytes(self._buffer)
        self._buffer.clear()
        delta = self._process_line(raw_line)
        return [delta] if delta is not None else []

    def _process_line(self, raw_line: bytes) -> str | None:
        line = raw_line.decode("utf-8", errors="replace").rstrip("\r")
        if not line.startswith(DATA_PREFIX):
            return None
        payload = line[len(DATA_PREFIX) :]
        if payload.strip() == DONE_SENTINEL:
            self.done = True
            return None
        content, finish_reason = parse_data_payload(payload)
        if finish_reason is not None:
            self.finish_reason = finish_reason
        if content is None and finish_reason is None:
            self.skipped_frames += 1
            logger.debug("Skipping SSE frame without content", payload=payload[:80])
        return content


async def iter_sse_deltas(
    byte_chunks: AsyncIterable[bytes],
    decoder: SSEFrameDecoder | None = None,
) -> AsyncIterator[str]:
    """Yield content deltas from an async iterator of raw body chunks."""
    decoder = decoder or SSEFrameDecoder()
    async for chunk in byte_chunks:
        for delta in decoder.feed(chunk):
            yield delta
    for delta in decoder.flush():
        yield delta
