# tests/conftest.py
import json
import os
import sys
from collections.abc import AsyncIterator, Callable, Iterable

import pytest

# Ensure repository root is on PYTHONPATH for tests
repo_root = os.path.abspath(os.path.join(os.path.dirname(__file__), os.pardir))
if repo_root not in sys.path:
    sys.path.insert(0, repo_root)

# Placeholder secrets so settings load without a .env file
os.environ.setdefault("OPENAI_API_KEY", "test-key")
os.environ.setdefault("OPENAI_API_BASE", "http://fake-llm/v1")

import httpx  # noqa: E402
from core.generation_guard import GenerationCoordinator  # noqa: E402
from core.llm_interface import LLMService  # noqa: E402

API_URL = "http://fake-llm/v1/chat/completions"


def sse_frame(content: str | None = None, finish_reason: str | None = None) -> str:
    delta = {} if content is None else {"content": content}
    frame = {"choices": [{"delta": delta, "finish_reason": finish_reason}]}
    return f"data: {json.dumps(frame, ensure_ascii=False)}\n\n"


def sse_body(deltas: Iterable[str], finish_reason: str = "stop") -> str:
    frames = [sse_frame(d) for d in deltas]
    frames.append(sse_frame(finish_reason=finish_reason))
    frames.append("data: [DONE]\n\n")
    return "".join(frames)


async def chunked(chunks: Iterable[bytes]) -> AsyncIterator[bytes]:
    for chunk in chunks:
        yield chunk


def stream_response(deltas: Iterable[str], *, per_frame: bool = True) -> httpx.Response:
    """SSE response; one body chunk per frame unless ``per_frame`` is False."""
    body = sse_body(deltas)
    if per_frame:
        parts = [f"{part}\n\n".encode() for part in body.split("\n\n") if part]
        content = chunked(parts)
    else:
        content = chunked([body.encode()])
    return httpx.Response(
        200, headers={"content-type": "text/event-stream"}, content=content
    )


def request_json(request: httpx.Request) -> dict:
    return json.loads(request.content)


def user_message(request: httpx.Request) -> str:
    messages = request_json(request)["messages"]
    return next(m["content"] for m in messages if m["role"] == "user")


@pytest.fixture
def make_llm() -> Callable[[Callable[[httpx.Request], httpx.Response]], LLMService]:
    def factory(handler):
        return LLMService(timeout=5.0, transport=httpx.MockTransport(handler))

    return factory


@pytest.fixture
def coordinator() -> GenerationCoordinator:
    return GenerationCoordinator()
