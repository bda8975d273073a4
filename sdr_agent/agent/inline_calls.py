"""
sdr_agent/agent/inline_calls.py — Recover tool calls the model wrote as text.

Some models answer with a pseudo call instead of a structured one:

    <function_call>{"action": "score_lead", "action input": {"companyName": "Acme"}}</function_call>

normalize_reply() turns such text into a synthetic ToolCall so the agent loop
handles it exactly like a structured call. Anything it cannot read is left
alone and ends up as the final answer.
"""

import json
import logging
import re
import uuid

from sdr_agent.llm.client import ProviderMessage, ToolCall
from sdr_agent.llm.utils import parse_json_safely

logger = logging.getLogger(__name__)

_INLINE_CALL = re.compile(r"<(function_call|tool_call)>\s*([\s\S]*?)\s*</\1>", re.IGNORECASE)

_NAME_KEYS = ("action", "name", "tool", "function")
_ARGUMENT_KEYS = ("action input", "action_input", "arguments", "parameters", "input")


def _synthetic_id() -> str:
    return f"call_{uuid.uuid4().hex[:24]}"


def _first_present(payload: dict, keys: tuple[str, ...]):
    for key in keys:
        if key in payload and payload[key] is not None:
            return payload[key]
    return None


def _to_tool_call(raw: str) -> ToolCall | None:
    payload = parse_json_safely(raw)
    if not isinstance(payload, dict):
        return None

    name = _first_present(payload, _NAME_KEYS)
    if not isinstance(name, str) or not name.strip():
        return None

    arguments = _first_present(payload, _ARGUMENT_KEYS)
    if arguments is None:
        arguments = "{}"
    elif not isinstance(arguments, str):
        arguments = json.dumps(arguments)

    return ToolCall(id=_synthetic_id(), name=name.strip(), arguments=arguments)


def extract_inline_calls(content: str) -> tuple[str, list[ToolCall]]:
    """
    Returns:
        (text with the recognised call blocks removed, recovered calls).
        If nothing is recognised the text is returned unchanged.
    """
    if not content:
        return content or "", []

    calls = []
    for match in _INLINE_CALL.finditer(content):
        call = _to_tool_call(match.group(2))
        if call is not None:
            calls.append(call)

    if not calls:
        return content, []

    remaining = _INLINE_CALL.sub("", content).strip()
    logger.info("Recovered %d inline tool call(s): %s", len(calls), [c.name for c in calls])
    return remaining, calls


def normalize_reply(reply: ProviderMessage) -> ProviderMessage:
    """Structured tool calls win; otherwise look for inline ones in the text."""
    if reply.tool_calls:
        return reply
    remaining, calls = extract_inline_calls(reply.content)
    if not calls:
        return reply
    return ProviderMessage(content=remaining, tool_calls=calls)
