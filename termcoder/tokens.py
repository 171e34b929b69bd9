from __future__ import annotations

import hashlib
from dataclasses import dataclass
from typing import Any

import tiktoken

_ENCODER_CACHE: dict[str, Any] = {}
_TOKEN_COUNT_CACHE: dict[tuple[str, str], int] = {}


def approx_token_count(text: str) -> int:
    # Rough heuristic: ~4 characters per token in English-ish source text.
    return (len(text) + 3) // 4 if text else 0


def _get_encoder(name: str) -> Any:
    enc = _ENCODER_CACHE.get(name)
    if enc is None:
        enc = tiktoken.get_encoding(name)
        _ENCODER_CACHE[name] = enc
    return enc


def _content_sha256(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


@dataclass(frozen=True)
class TokenCounter:
    """Exact token counts via tiktoken.

    ``count`` raises whatever tiktoken raises when the encoding cannot be
    loaded (unknown name, no network for the first download); callers fall
    back to ``approx_token_count``.
    """

    encoding: str = "o200k_base"

    def count(self, text: str) -> int:
        key = (self.encoding, _content_sha256(text))
        cached = _TOKEN_COUNT_CACHE.get(key)
        if cached is not None:
            return cached
        result = len(_get_encoder(self.encoding).encode(text))
        _TOKEN_COUNT_CACHE[key] = result
        return result


def format_top_files(file_tokens: dict[str, int], top_n: int) -> str:
    if top_n <= 0:
        return ""
    items = sorted(file_tokens.items(), key=lambda kv: kv[1], reverse=True)[:top_n]
    lines = ["Top files by tokens:"]
    for i, (path, n) in enumerate(items, 1):
        lines.append(f"{i:>2}. {path} ({n} tokens)")
    return "\n".join(lines)
