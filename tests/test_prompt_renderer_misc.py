import prompt_renderer
import pytest
from jinja2 import DictLoader, Environment, StrictUndefined, UndefinedError
from pydantic import BaseModel


def test_render_prompt_with_custom_env(monkeypatch):
    env = Environment(
        loader=DictLoader({"greet.j2": "  Hello {{ name }}\n\n"}), autoescape=False
    )
    monkeypatch.setattr(prompt_renderer, "_env", env)
    result = prompt_renderer.render_prompt("greet.j2", {"name": "Bob"})
    assert result == "Hello Bob"


class Person(BaseModel):
    name: str


def test_render_prompt_with_pydantic_object(monkeypatch):
    env = Environment(
        loader=DictLoader({"greet.j2": "Hello {{ person.name }}"}), autoescape=False
    )
    monkeypatch.setattr(prompt_renderer, "_env", env)
    result = prompt_renderer.render_prompt("greet.j2", {"person": Person(name="Alice")})
    assert result == "Hello Alice"


@pytest.mark.parametrize(
    "value, expected",
    [(None, "（无）"), ("   ", "（无）"), (" 冲突 ", "冲突"), (3, "3")],
)
def test_or_placeholder_filter(value, expected):
    assert prompt_renderer._or_placeholder(value) == expected


def test_missing_variable_raises(monkeypatch):
    env = Environment(
        loader=DictLoader({"strict.j2": "{{ missing }}"}),
        undefined=StrictUndefined,
    )
    monkeypatch.setattr(prompt_renderer, "_env", env)
    with pytest.raises(UndefinedError):
        prompt_renderer.render_prompt("strict.j2", {})
