import math

import pytest
from core.exceptions import ConfigError
from models.generation_models import (
    ChapterStreamRequest,
    GenerationRequest,
    OutlineRequest,
    TextModelConfig,
)
from pydantic import ValidationError


@pytest.mark.parametrize(
    "api_url, expected",
    [
        ("https://api.deepseek.com/v1", "https://api.deepseek.com/v1/chat/completions"),
        (" https://api.deepseek.com/v1/ ", "https://api.deepseek.com/v1/chat/completions"),
        (
            "https://proxy.example/v1/chat/completions/",
            "https://proxy.example/v1/chat/completions",
        ),
    ],
)
def test_chat_completions_url(api_url, expected):
    assert TextModelConfig(api_url=api_url).chat_completions_url() == expected


def test_temperature_is_clamped_or_falls_back():
    assert TextModelConfig(temperature=-1).normalized_temperature(0.7) == 0.0
    assert TextModelConfig(temperature=9).normalized_temperature(0.7) == 2.0
    assert TextModelConfig(temperature=1.1).normalized_temperature(0.7) == 1.1
    assert TextModelConfig().normalized_temperature(0.7) == 0.7
    assert TextModelConfig(temperature=math.nan).normalized_temperature(0.7) == 0.7


@pytest.mark.parametrize(
    "fields",
    [
        {"api_key": " "},
        {"api_key": "k", "api_url": ""},
        {"api_key": "k", "model": "  "},
        {"api_key": "k", "temperature": math.inf},
    ],
)
def test_validate_for_request_rejects_unusable_config(fields):
    with pytest.raises(ConfigError):
        TextModelConfig(**fields).validate_for_request()


def test_generation_request_payload_and_immutability():
    request = GenerationRequest.from_prompts(
        model="deepseek-chat",
        system_prompt="sys",
        user_prompt="usr",
        temperature=0.8,
        max_tokens=4000,
    )
    payload = request.to_payload()
    assert payload["stream"] is True
    assert payload["messages"] == [
        {"role": "system", "content": "sys"},
        {"role": "user", "content": "usr"},
    ]
    assert request.with_stream(False).to_payload()["stream"] is False
    assert request.stream is True
    with pytest.raises(ValidationError):
        request.max_tokens = 1


def test_request_models_reject_invalid_counts():
    with pytest.raises(ValidationError):
        OutlineRequest(
            title="t", genre="g", description="d", target_chapters=0, api_key="k"
        )
    with pytest.raises(ValidationError):
        ChapterStreamRequest(
            chapter_title="c", outline_goal="g", target_words=0, api_key="k"
        )
    with pytest.raises(ValidationError):
        GenerationRequest.from_prompts(
            model="m", system_prompt="s", user_prompt="u", temperature=0.5, max_tokens=0
        )
