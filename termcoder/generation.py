from __future__ import annotations

from typing import Literal, Protocol

import openai
from openai import OpenAI

from .config import DEFAULT_BASE_URL, DEFAULT_MODEL

FailureKind = Literal["auth", "quota", "generic"]

HINTS: dict[FailureKind, str] = {
    "auth": "Check the API key (environment variable or .env file).",
    "quota": (
        "Quota or size limit exceeded. Break the request down, lower "
        "context_budget, or exclude large files."
    ),
    "generic": "The generation service call failed; no files were changed.",
}


class GenerationError(Exception):
    """A failed generation call, classified for the operator."""

    def __init__(self, message: str, kind: FailureKind = "generic") -> None:
        super().__init__(message)
        self.kind: FailureKind = kind

    @property
    def hint(self) -> str:
        return HINTS[self.kind]


class Generator(Protocol):
    def generate(self, prompt: str) -> str: ...


def classify_failure(error: Exception) -> FailureKind:
    if isinstance(error, (openai.AuthenticationError, openai.PermissionDeniedError)):
        return "auth"
    if isinstance(error, openai.RateLimitError):
        return "quota"
    message = str(error).lower()
    if "api key" in message or "api_key" in message or "unauthorized" in message:
        return "auth"
    if any(word in message for word in ("quota", "limit", "too large", "too long")):
        return "quota"
    return "generic"


class OpenAICompatibleGenerator:
    """Single chat-completion call against an OpenAI-compatible endpoint.

    The default endpoint is Gemini's OpenAI compatibility layer. There is no
    retry and no timeout beyond the SDK's own.
    """

    def __init__(
        self,
        api_key: str,
        *,
        model: str = DEFAULT_MODEL,
        base_url: str = DEFAULT_BASE_URL,
        client: OpenAI | None = None,
    ) -> None:
        self.model = model
        self.client = client or OpenAI(api_key=api_key, base_url=base_url, max_retries=0)

    def generate(self, prompt: str) -> str:
        try:
            resp = self.client.chat.completions.create(
                model=self.model,
                messages=[{"role": "user", "content": prompt}],
            )
        except openai.OpenAIError as e:
            raise GenerationError(str(e), classify_failure(e)) from e
        if not resp.choices:
            raise GenerationError("Empty response from generation service")
        return resp.choices[0].message.content or ""
