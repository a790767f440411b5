# core/llm_interface.py
"""
Handles all direct interactions with the chat-completion API.

``LLMService.stream_chat`` relays one streaming request: it feeds the
response body through ``SSEFrameDecoder``, accumulates the transcript and
hands each delta to a listener as soon as it is decoded.
``LLMService.complete_chat`` is the plain request/response sibling.

Neither method retries. Transport and upstream failures are mapped onto
``core.exceptions`` and surfaced to the caller as they happen.
"""

from __future__ import annotations

import inspect
from collections.abc import Awaitable, Callable
from typing import Any

import httpx
import structlog

from config import settings
from core.exceptions import (
    ConfigError,
    GenerationCancelled,
    ResponseFormatError,
    TransportError,
    UpstreamError,
)
from core.generation_guard import GenerationCoordinator
from core.sse_decoder import SSEFrameDecoder
from models.generation_models import GenerationRequest

logger = structlog.get_logger(__name__)

DeltaCallback = Callable[[str], Awaitable[None] | None]


def _auth_headers(api_key: str) -> dict[str, str]:
    if not api_key or not api_key.strip():
        raise ConfigError("API key must not be empty")
    return {
        "Authorization": f"Bearer {api_key.strip()}",
        "Content-Type": "application/json",
    }


async def _read_error_body(response: httpx.Response) -> str:
    body = await response.aread()
    return body.decode("utf-8", errors="replace")


class LLMService:
    """Utility class for calling an OpenAI-compatible chat endpoint."""

    def __init__(
        self,
        timeout: float = settings.HTTPX_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        # One client for all requests so connections are reused
        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(timeout), transport=transport
        )
        self.request_count = 0

    async def aclose(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

    async def __aenter__(self) -> LLMService:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    def _log_llm_usage(
        self,
        model_name: str,
        usage_data: dict[str, int] | None,
    ) -> None:
        """Helper to log LLM token usage if available in the response."""
        if usage_data and isinstance(usage_data, dict):
            logger.info(
                f"LLM ('{model_name}') Usage - Prompt: {usage_data.get('prompt_tokens', 'N/A')} tk, "
                f"Comp: {usage_data.get('completion_tokens', 'N/A')} tk, Total: {usage_data.get('total_tokens', 'N/A')} tk"
            )
        else:
            logger.debug(
                f"LLM ('{model_name}') response missing 'usage' information."
            )

    async def stream_chat(
        self,
        request: GenerationRequest,
        *,
        url: str,
        api_key: str,
        on_delta: DeltaCallback | None = None,
        coordinator: GenerationCoordinator | None = None,
    ) -> str:
        """Run one streaming call and return everything it produced.

        Each delta is appended to the transcript and then pushed to
        ``on_delta``. The coordinator's cancellation signal is checked at
        every body chunk and before every delta; once set, the HTTP
        transfer is dropped and ``GenerationCancelled`` raised. Text already
        passed to ``on_delta`` stays delivered.
        """
        headers = _auth_headers(api_key)
        payload = request.with_stream(True).to_payload()
        decoder = SSEFrameDecoder()
        accumulated: list[str] = []

        async def relay(delta: str) -> None:
            if coordinator is not None:
                coordinator.raise_if_cancelled()
            accumulated.append(delta)
            if on_delta is not None:
                result = on_delta(delta)
                if inspect.isawaitable(result):
                    await result

        logger.debug(
            "Opening LLM stream",
            model=request.model,
            max_tokens=request.max_tokens,
            url=url,
        )
        self.request_count += 1
        try:
            async with self._client.stream(
                "POST", url, json=payload, headers=headers
            ) as response:
                if not response.is_success:
                    body = await _read_error_body(response)
                    logger.error(
                        "LLM stream rejected by upstream",
                        status_code=response.status_code,
                        body=body[:500],
                    )
                    raise UpstreamError(response.status_code, body)

                async for chunk in response.aiter_bytes():
                    if coordinator is not None:
                        coordinator.raise_if_cancelled()
                    for delta in decoder.feed(chunk):
                        await relay(delta)
                for delta in decoder.flush():
                    await relay(delta)
        except GenerationCancelled:
            logger.info(
                "LLM stream cancelled",
                model=request.model,
                delivered_chars=sum(len(d) for d in accumulated),
            )
            raise
        except (httpx.InvalidURL, httpx.UnsupportedProtocol) as exc:
            raise ConfigError(f"Invalid API URL '{url}': {exc}") from exc
        except httpx.RequestError as exc:
            logger.error("LLM stream transport failure", error=str(exc))
            raise TransportError(f"Failed to read stream: {exc}") from exc

        text = "".join(accumulated)
        if decoder.finish_reason == "length":
            logger.warning(
                "LLM stream stopped at the token ceiling",
                model=request.model,
                max_tokens=request.max_tokens,
            )
        logger.info(
            "LLM stream finished",
            model=request.model,
            deltas=len(accumulated),
            chars=len(text),
            finish_reason=decoder.finish_reason,
            skipped_frames=decoder.skipped_frames,
        )
        return text

    async def complete_chat(
        self,
        request: GenerationRequest,
        *,
        url: str,
        api_key: str,
    ) -> tuple[str, dict[str, int] | None]:
        """Send a regular chat completion request; returns ``(text, usage)``."""
        headers = _auth_headers(api_key)
        payload = request.with_stream(False).to_payload()
        self.request_count += 1
        try:
            response = await self._client.post(url, json=payload, headers=headers)
        except (httpx.InvalidURL, httpx.UnsupportedProtocol) as exc:
            raise ConfigError(f"Invalid API URL '{url}': {exc}") from exc
        except httpx.RequestError as exc:
            logger.error("LLM request transport failure", error=str(exc))
            raise TransportError(f"Request failed: {exc}") from exc

        if not response.is_success:
            logger.error(
                "LLM request rejected by upstream",
                status_code=response.status_code,
                body=response.text[:500],
            )
            raise UpstreamError(response.status_code, response.text)

        try:
            data: Any = response.json()
        except ValueError as exc:
            raise ResponseFormatError(f"Response is not JSON: {exc}") from exc

        choices = data.get("choices") if isinstance(data, dict) else None
        if not choices:
            logger.error(
                f"LLM ('{request.model}') Invalid response structure - missing choices despite 200 OK: {data}"
            )
            raise ResponseFormatError("No choices in response")

        choice = choices[0]
        message = choice.get("message") or {}
        raw_text = message.get("content") or ""
        if choice.get("finish_reason") == "length":
            logger.warning(
                "LLM response stopped at the token ceiling; returning it as is",
                model=request.model,
                max_tokens=request.max_tokens,
            )
        usage = data.get("usage")
        if not isinstance(usage, dict):
            usage = None
        self._log_llm_usage(request.model, usage)
        return raw_text, usage
