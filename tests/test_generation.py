from __future__ import annotations

from types import SimpleNamespace
from typing import Any

import httpx
import openai
import pytest

from termcoder.generation import (
    GenerationError,
    OpenAICompatibleGenerator,
    classify_failure,
)

_REQUEST = httpx.Request("POST", "https://example.invalid/v1/chat/completions")


def _status_error(cls: type[openai.APIStatusError], status: int, msg: str) -> Exception:
    return cls(msg, response=httpx.Response(status, request=_REQUEST), body=None)


class _FakeCompletions:
    def __init__(self, result: Any = None, error: Exception | None = None) -> None:
        self.result = result
        self.error = error
        self.calls: list[dict[str, Any]] = []

    def create(self, **kwargs: Any) -> Any:
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        return self.result


def _client(completions: _FakeCompletions) -> Any:
    return SimpleNamespace(chat=SimpleNamespace(completions=completions))


def _response(text: str | None) -> Any:
    message = SimpleNamespace(content=text)
    return SimpleNamespace(choices=[SimpleNamespace(message=message)])


def test_generate_sends_prompt_and_returns_text() -> None:
    completions = _FakeCompletions(result=_response("FILE: a.py"))
    gen = OpenAICompatibleGenerator("k", model="m-1", client=_client(completions))

    assert gen.generate("do it") == "FILE: a.py"
    assert completions.calls == [
        {"model": "m-1", "messages": [{"role": "user", "content": "do it"}]}
    ]


def test_generate_with_no_content_returns_empty_string() -> None:
    gen = OpenAICompatibleGenerator(
        "k", client=_client(_FakeCompletions(result=_response(None)))
    )
    assert gen.generate("x") == ""


def test_generate_without_choices_fails() -> None:
    gen = OpenAICompatibleGenerator(
        "k", client=_client(_FakeCompletions(result=SimpleNamespace(choices=[])))
    )
    with pytest.raises(GenerationError) as exc:
        gen.generate("x")
    assert exc.value.kind == "generic"


@pytest.mark.parametrize(
    ("error", "kind"),
    [
        (_status_error(openai.AuthenticationError, 401, "bad key"), "auth"),
        (_status_error(openai.PermissionDeniedError, 403, "denied"), "auth"),
        (_status_error(openai.RateLimitError, 429, "slow down"), "quota"),
        (openai.APIConnectionError(request=_REQUEST), "generic"),
    ],
)
def test_sdk_errors_are_wrapped_and_classified(error: Exception, kind: str) -> None:
    gen = OpenAICompatibleGenerator("k", client=_client(_FakeCompletions(error=error)))

    with pytest.raises(GenerationError) as exc:
        gen.generate("x")

    assert exc.value.kind == kind
    assert exc.value.__cause__ is error


@pytest.mark.parametrize(
    ("message", "kind"),
    [
        ("API key not valid. Please pass a valid API key.", "auth"),
        ("Unauthorized", "auth"),
        ("Resource has been exhausted (e.g. check quota).", "quota"),
        ("Request payload size exceeds the limit", "quota"),
        ("The input is too long", "quota"),
        ("Internal error", "generic"),
    ],
)
def test_classify_failure_by_message(message: str, kind: str) -> None:
    assert classify_failure(RuntimeError(message)) == kind


def test_generation_error_hint_follows_kind() -> None:
    assert "API key" in GenerationError("x", "auth").hint
    assert "context_budget" in GenerationError("x", "quota").hint
    assert "no files were changed" in GenerationError("x").hint
