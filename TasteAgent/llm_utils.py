"""
Completion calls and model reply parsing.

Every reply from the completion service goes through parse_model_reply(),
which returns a ModelReply: either ok with the decoded JSON, or a failure
carrying the raw text and the reason. Callers decide whether a failure is
fatal (seed extraction, ecosystem analysis) or triggers a fallback (day
planning).
"""

import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from TasteAgent.config import COMPLETION_SETTINGS, Settings

logger = logging.getLogger(__name__)

_FENCE_PATTERN = re.compile(r"```(?:json)?", re.IGNORECASE)


@dataclass
class ModelReply:
    ok: bool
    data: Any = None
    raw: str = ""
    error: Optional[str] = None


def strip_code_fences(content: str) -> str:
    """Remove Markdown code fences (```json ... ```) around a JSON payload."""
    if not content:
        return ""
    return _FENCE_PATTERN.sub("", content).strip()


def parse_model_reply(content: Optional[str], expected: Optional[type] = None) -> ModelReply:
    """
    Decode a model reply as JSON.

    Args:
        content: Raw message content from the completion
        expected: list or dict; a decoded value of another type is a failure

    Returns:
        ModelReply with ok=True and the decoded data, or ok=False with the
        raw text and an error string
    """
    raw = content or ""
    cleaned = strip_code_fences(raw)

    if not cleaned:
        return ModelReply(ok=False, raw=raw, error="Empty model reply")

    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError as e:
        return ModelReply(ok=False, raw=raw, error=f"Invalid JSON: {e}")

    if expected is not None and not isinstance(data, expected):
        return ModelReply(
            ok=False,
            raw=raw,
            error=f"Expected JSON {expected.__name__}, got {type(data).__name__}"
        )

    return ModelReply(ok=True, data=data, raw=raw)


def request_completion(
    llm_client,
    settings: Settings,
    operation: str,
    messages: List[Dict[str, str]]
) -> str:
    """
    Issue one chat completion and return the message content.

    Transport errors from the client propagate to the caller; no retries.
    """
    options = COMPLETION_SETTINGS[operation]

    response = llm_client.chat.completions.create(
        model=settings.openai_model,
        messages=messages,
        temperature=options["temperature"],
        max_tokens=options["max_tokens"],
        timeout=settings.openai_timeout,
        operation=operation
    )

    content = response.choices[0].message.content or ""
    logger.debug(f"[{operation}] raw reply: {content[:500]}")
    return content
