"""Pre-call token estimates for the plan limiter's token budget."""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

CHARS_PER_TOKEN = 4


def _content_chars(content: Any) -> int:
    """Character count of a message's content (plain text or a list of parts)."""
    if content is None:
        return 0
    if isinstance(content, str):
        return len(content)
    if isinstance(content, list):
        # Only text parts count; images and other attachments are ignored
        return sum(
            len(part) if isinstance(part, str) else len(str(part.get("text") or ""))
            for part in content
            if isinstance(part, str) or isinstance(part, dict)
        )
    return len(str(content))


def estimate_message_tokens(
    messages: Iterable[dict] | None,
    max_tokens: int | None = None,
    *,
    fallback_tokens: int = 100,
) -> int:
    """Estimate the token cost of an AI call before it is made.

    Prompt tokens are approximated as characters / 4. A positive max_tokens
    (the completion budget the client asked for) is added on top. When that
    yields nothing, fallback_tokens is used. The result is always >= 1.
    """
    prompt_chars = sum(
        _content_chars(message.get("content"))
        for message in messages or ()
        if isinstance(message, dict)
    )

    estimate = prompt_chars // CHARS_PER_TOKEN
    if max_tokens and max_tokens > 0:
        estimate += max_tokens

    return max(1, estimate if estimate > 0 else fallback_tokens)
