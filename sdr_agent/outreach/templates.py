"""
sdr_agent/outreach/templates.py — Outreach message templates.

Each message type has a short base template with {{placeholders}}.
render_template() fills them from a lead; the LLM then personalises the
result (see sdr_agent/llm/assistant.py).
"""

import re
from dataclasses import dataclass
from typing import Any

MESSAGE_TYPES = ("introduction", "follow_up", "demo_request", "proposal")

MESSAGE_TEMPLATES = {
    "introduction": (
        "Hi {{contact_name}}, I noticed {{company_name}} is in the {{industry}} space. "
        "We help similar companies improve their sales efficiency..."
    ),
    "follow_up": (
        "Hi {{contact_name}}, Following up on our previous conversation about "
        "{{company_name}}'s sales challenges..."
    ),
    "demo_request": (
        "Hi {{contact_name}}, I'd love to show you how we can help {{company_name}} achieve..."
    ),
    "proposal": (
        "Hi {{contact_name}}, Based on our discussion about {{company_name}}'s needs..."
    ),
}

_PLACEHOLDER = re.compile(r"\{\{\s*(\w+)\s*\}\}")
_PLACEHOLDER_DEFAULTS = {"contact_name": "there", "company_name": "your company", "industry": "B2B"}


@dataclass
class RenderedMessage:
    """A filled template, ready to be personalised and stored."""
    message_type: str
    subject: str
    body: str


def render_template(message_type: str, lead: Any) -> RenderedMessage:
    """
    Fill the template for `message_type` from a lead's attributes.

    Unknown message types fall back to the introduction template. Empty
    placeholders get a neutral word instead of leaking braces.
    """
    if message_type not in MESSAGE_TEMPLATES:
        message_type = "introduction"

    def _fill(match: re.Match) -> str:
        value = getattr(lead, match.group(1), None)
        if value in (None, ""):
            return _PLACEHOLDER_DEFAULTS.get(match.group(1), "")
        return str(value)

    body = _PLACEHOLDER.sub(_fill, MESSAGE_TEMPLATES[message_type])
    company = getattr(lead, "company_name", None) or "your team"
    return RenderedMessage(
        message_type=message_type,
        subject=f"Reaching out to {company}",
        body=body,
    )
