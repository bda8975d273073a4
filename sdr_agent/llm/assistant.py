"""
sdr_agent/llm/assistant.py — Single-shot LLM helpers used by the tools.

Four public functions:
  personalize_message(llm, template, lead, context)  → str
  qualify_lead(llm, lead, rules)                     → QualificationResult
  summarize_conversation(llm, turns)                 → str | None
  enrich_company_data(llm, company_name, website)    → dict | None

Each one degrades gracefully when the provider fails; none of them raises
ProviderError to the caller.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Optional

from sdr_agent.llm.client import LLMClient, ProviderError
from sdr_agent.llm.prompt_templates import (
    COMPANY_ENRICHMENT_PROMPT,
    CONVERSATION_SUMMARY_PROMPT,
    LEAD_QUALIFICATION_PROMPT,
    MESSAGE_PERSONALIZATION_PROMPT,
)
from sdr_agent.llm.utils import parse_json_safely, render_messages, truncate_for_context

logger = logging.getLogger(__name__)

DEFAULT_QUALIFICATION_SCORE = 50


# ── Output dataclasses ────────────────────────────────────────────────────────

@dataclass
class QualificationResult:
    score: int                      # 0 – 100
    reasoning: str
    recommendations: list[str] = field(default_factory=list)
    raw_response: str = ""          # original LLM text (for debugging)


def _lead_field(lead: Any, name: str, default: str = "Not provided") -> str:
    value = lead.get(name) if isinstance(lead, dict) else getattr(lead, name, None)
    return default if value in (None, "") else str(value)


# ── 1. Message personalisation ────────────────────────────────────────────────

def personalize_message(llm: LLMClient, template: str, lead: Any, context: str = "") -> str:
    """
    Rewrite a filled outreach template for one lead.

    Returns:
        The personalised text, or the template unchanged if the provider fails
        or answers with nothing.
    """
    messages = render_messages(
        MESSAGE_PERSONALIZATION_PROMPT,
        template=template,
        company_name=_lead_field(lead, "company_name"),
        contact_name=_lead_field(lead, "contact_name"),
        industry=_lead_field(lead, "industry"),
        employees=_lead_field(lead, "employees"),
        notes=truncate_for_context(_lead_field(lead, "notes", "None"), max_chars=1000),
        context=context or "None",
    )

    try:
        text = llm.complete(messages)
    except ProviderError as e:
        logger.warning("Personalisation failed, using template as-is: %s", e)
        return template

    return text.strip() or template


# ── 2. Lead qualification ─────────────────────────────────────────────────────

def qualify_lead(llm: LLMClient, lead: Any, rules: Optional[str] = None) -> QualificationResult:
    """
    Ask the LLM for a 0–100 qualification score.

    Args:
        llm:   Provider client.
        lead:  Dict or object with company_name / contact_name / industry /
               employees / budget / notes.
        rules: Optional free-text scoring rules the model must follow.

    Returns:
        QualificationResult. Falls back to a neutral score of 50 when the
        provider fails or the reply cannot be parsed.
    """
    company = _lead_field(lead, "company_name", "Unknown")
    messages = render_messages(
        LEAD_QUALIFICATION_PROMPT,
        rules=rules or "Use your best judgement for a B2B SaaS product.",
        company_name=company,
        contact_name=_lead_field(lead, "contact_name"),
        industry=_lead_field(lead, "industry"),
        employees=_lead_field(lead, "employees"),
        budget=_lead_field(lead, "budget"),
        notes=truncate_for_context(_lead_field(lead, "notes", "None"), max_chars=1000),
    )

    logger.info("Qualifying lead with LLM: %s", company)

    try:
        raw_text = llm.complete(messages, temperature=0.1)
    except ProviderError as e:
        logger.warning("Qualification failed for %s: %s", company, e)
        return QualificationResult(
            score=DEFAULT_QUALIFICATION_SCORE,
            reasoning="Unable to complete AI analysis",
        )

    parsed = parse_json_safely(raw_text)
    if not isinstance(parsed, dict):
        logger.error("Qualification returned non-dict for %s: %s", company, raw_text[:200])
        return QualificationResult(
            score=DEFAULT_QUALIFICATION_SCORE,
            reasoning="LLM returned unparseable response.",
            raw_response=raw_text,
        )

    try:
        score = int(round(float(parsed.get("score", DEFAULT_QUALIFICATION_SCORE))))
    except (TypeError, ValueError):
        score = DEFAULT_QUALIFICATION_SCORE

    recommendations = parsed.get("recommendations", [])
    if not isinstance(recommendations, list):
        recommendations = []

    result = QualificationResult(
        score=max(0, min(100, score)),
        reasoning=str(parsed.get("reasoning", "")),
        recommendations=[str(r) for r in recommendations],
        raw_response=raw_text,
    )
    logger.info("Qualification result: score=%d for %s", result.score, company)
    return result


# ── 3. Conversation summary ───────────────────────────────────────────────────

def summarize_conversation(llm: LLMClient, turns: list[dict]) -> Optional[str]:
    """Short summary of the user/assistant turns, or None if the provider fails."""
    lines = [
        f"{t['role']}: {t.get('content') or ''}"
        for t in turns
        if t.get("role") in ("user", "assistant") and t.get("content")
    ]
    if not lines:
        return None

    messages = render_messages(
        CONVERSATION_SUMMARY_PROMPT,
        transcript=truncate_for_context("\n\n".join(lines), max_chars=6000),
    )
    try:
        return llm.complete(messages, temperature=0.3).strip() or None
    except ProviderError as e:
        logger.warning("Conversation summary failed: %s", e)
        return None


# ── 4. Company enrichment ─────────────────────────────────────────────────────

def enrich_company_data(llm: LLMClient, company_name: str, website: Optional[str] = None) -> Optional[dict]:
    """Research JSON for a company (industry, estimatedSize, ...), or None on failure."""
    messages = render_messages(
        COMPANY_ENRICHMENT_PROMPT,
        company_name=company_name,
        website=website or "Unknown",
    )
    try:
        raw_text = llm.complete(messages, temperature=0.3)
    except ProviderError as e:
        logger.warning("Enrichment failed for %s: %s", company_name, e)
        return None

    parsed = parse_json_safely(raw_text)
    if not isinstance(parsed, dict):
        logger.error("Enrichment returned non-dict for %s: %s", company_name, raw_text[:200])
        return None
    return parsed
