"""
sdr_agent/llm/utils.py — Shared LLM helper utilities.

Provides:
  - render_messages()       : LangChain prompt → provider message dicts
  - parse_json_safely()     : robust JSON extraction from messy LLM text
  - truncate_for_context()  : safely trim long strings to fit LLM context window
"""

import json
import logging
import re
from typing import Any

from langchain_core.prompts import ChatPromptTemplate

logger = logging.getLogger(__name__)

# LangChain message type → provider role
_ROLE_BY_TYPE = {
    "system": "system",
    "human": "user",
    "ai": "assistant",
}


def render_messages(prompt: ChatPromptTemplate, **variables: Any) -> list[dict[str, str]]:
    """
    Format a ChatPromptTemplate and convert it to provider wire format.

    Returns:
        [{"role": "system" | "user" | "assistant", "content": "..."}, ...]
    """
    messages = prompt.format_messages(**variables)
    return [
        {"role": _ROLE_BY_TYPE.get(m.type, "user"), "content": str(m.content)}
        for m in messages
    ]


def parse_json_safely(text: str) -> dict[str, Any] | list[Any] | None:
    """
    Robustly extract and parse a JSON object or array from LLM output.

    Handles cases where the LLM wraps JSON in markdown code fences like:
        ```json
        { ... }
        ```

    Returns the parsed Python object, or None if parsing fails.
    """
    if not text:
        return None

    cleaned = re.sub(r"```(?:json)?\s*([\s\S]*?)```", r"\1", text.strip())
    cleaned = cleaned.strip()

    try:
        return json.loads(cleaned)
    except json.JSONDecodeError:
        pass

    # First {...} or [...] embedded in prose
    for pattern in (r"\{[\s\S]*\}", r"\[[\s\S]*\]"):
        match = re.search(pattern, cleaned)
        if match:
            try:
                return json.loads(match.group())
            except json.JSONDecodeError:
                continue

    logger.warning("Could not parse JSON from LLM output: %s", text[:200])
    return None


def truncate_for_context(text: str, max_chars: int = 2000) -> str:
    """
    Trim a string to max_chars to avoid exceeding LLM context window.
    Appends '...' if truncated.
    """
    if not text or len(text) <= max_chars:
        return text or ""
    return text[:max_chars] + "..."
