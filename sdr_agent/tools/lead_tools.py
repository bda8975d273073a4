"""
sdr_agent/tools/lead_tools.py — Executors for the tools that change a lead.

  score_lead         → upsert by email, parse criteria, score, persist
  rescore_lead       → save campaign criteria, score an existing lead against them
  update_lead_stage  → move a lead through the pipeline
  enrich_lead        → research the company, fill missing lead fields
  generate_message   → fill + personalise an outreach template, store a draft

Every executor takes (db, llm, params) and returns a JSON-safe dict.
Executors flush but never commit; the request transaction does that.
"""

import logging
import re
from typing import Any, Optional

from sqlalchemy.orm import Session

from sdr_agent.db import repository
from sdr_agent.db.models import Lead, LeadStage
from sdr_agent.llm.assistant import enrich_company_data, personalize_message
from sdr_agent.llm.client import LLMClient
from sdr_agent.outreach.templates import render_template
from sdr_agent.scoring import criteria_parser, engine
from sdr_agent.scoring.criteria_parser import ScoringRuleSet, ScoringWeights
from sdr_agent.scoring.industries import matches_any
from sdr_agent.tools.catalog import ToolError
from sdr_agent.tools.params import (
    EnrichLeadParams,
    GenerateMessageParams,
    RescoreLeadParams,
    ScoreLeadParams,
    UpdateLeadStageParams,
)

logger = logging.getLogger(__name__)

# Stages a fresh score may move a lead out of; later stages are owned by the rep
AUTO_ADVANCE_STAGES = (LeadStage.NEW, LeadStage.QUALIFIED, LeadStage.CONTACTED)


def require_lead(db: Session, lead_id: str) -> Lead:
    lead = repository.get_lead(db, lead_id)
    if lead is None:
        raise ToolError(f"Lead not found: {lead_id}")
    return lead


def lead_summary(lead: Lead) -> dict:
    """Compact JSON view of a lead for tool results."""
    return {
        "id": lead.id,
        "companyName": lead.company_name,
        "contactName": lead.contact_name,
        "email": lead.email,
        "industry": lead.industry,
        "employees": lead.employees,
        "budget": lead.budget,
        "score": lead.score,
        "stage": lead.stage.value if lead.stage else None,
        "lastContactedAt": lead.last_contacted_at.isoformat() if lead.last_contacted_at else None,
    }


def persist_breakdown(
    db: Session,
    lead: Lead,
    rules: ScoringRuleSet,
    criteria_label: str,
) -> engine.ScoreBreakdown:
    breakdown = engine.score(engine.LeadAttributes.from_lead(lead), rules)
    repository.record_score(
        db, lead, breakdown.score, breakdown.entries_as_dicts(), rules.snapshot(), criteria_label,
    )
    return breakdown


def resolve_rules(db: Session, criteria: Optional[str]) -> tuple[ScoringRuleSet, str]:
    """
    Rules to score with, and the label recorded in the score history.

    Explicit criteria text wins; otherwise the active saved criteria; otherwise
    the built-in defaults.
    """
    if criteria:
        return criteria_parser.parse(criteria), criteria
    active = repository.get_active_scoring_criteria(db)
    if active is not None:
        return ScoringRuleSet.from_snapshot(active.rules), active.name
    return criteria_parser.parse(None), "default criteria"


def auto_advance(db: Session, lead: Lead, score: int) -> Optional[LeadStage]:
    """Move an early-stage lead to the stage its score implies. Returns the old stage if moved."""
    if lead.stage not in AUTO_ADVANCE_STAGES:
        return None
    target = LeadStage(engine.stage_for_score(score))
    if target == lead.stage:
        return None
    return repository.update_lead_stage(
        db, lead, target, notes=f"Automatic update after scoring {score}/100", touch_contacted=False,
    )


# ── score_lead ────────────────────────────────────────────────────────────────

def score_lead(db: Session, llm: LLMClient, params: ScoreLeadParams) -> dict:
    rules, label = resolve_rules(db, params.criteria)

    lead = repository.upsert_lead(
        db,
        params.email,
        company_name=params.company_name,
        contact_name=params.contact_name,
        employees=params.employees,
        industry=params.industry,
        budget=params.budget,
        website=params.website,
        linkedin_url=params.linkedin_url,
        notes=params.notes,
    )

    breakdown = persist_breakdown(db, lead, rules, label)
    old_stage = auto_advance(db, lead, breakdown.score)

    result = {
        "leadId": lead.id,
        "companyName": lead.company_name,
        "score": breakdown.score,
        "breakdown": breakdown.entries_as_dicts(),
        "stage": lead.stage.value,
        "recommendation": engine.recommendation(breakdown.score),
    }
    if old_stage is not None:
        result["previousStage"] = old_stage.value
    return result


# ── rescore_lead ──────────────────────────────────────────────────────────────

def rules_for_campaign(params: RescoreLeadParams) -> ScoringRuleSet:
    """Rule set for a campaign: a category the campaign cares about gets a heavier weight."""
    targets = list(params.target_industries or [])
    return ScoringRuleSet(
        weights=ScoringWeights(
            size=30 if params.min_company_size else 20,
            industry=40 if targets else 20,
            intent=30 if params.min_budget else 20,
        ),
        min_employees=params.min_company_size or 0,
        target_industries=targets,
        min_budget=params.min_budget or 0,
        source_text=params.criteria_name,
    )


def rescore_lead(db: Session, llm: LLMClient, params: RescoreLeadParams) -> dict:
    lead = require_lead(db, params.lead_id)
    rules = rules_for_campaign(params)
    criteria = repository.create_scoring_criteria(
        db, params.criteria_name, rules.snapshot(), activate=params.set_active,
    )
    breakdown = persist_breakdown(db, lead, rules, params.criteria_name)

    meets = {
        "industry": not rules.target_industries or matches_any(rules.target_industries, lead.industry or ""),
        "budget": not rules.min_budget or (lead.budget or 0) >= rules.min_budget,
        "companySize": not rules.min_employees or (lead.employees or 0) >= rules.min_employees,
    }

    return {
        "leadId": lead.id,
        "companyName": lead.company_name,
        "criteriaId": criteria.id,
        "criteriaActive": criteria.is_active,
        "score": breakdown.score,
        "breakdown": breakdown.entries_as_dicts(),
        "meetsCustomCriteria": meets,
        "recommendation": (
            "High priority for this campaign" if all(meets.values())
            else "Does not meet campaign criteria"
        ),
    }


# ── update_lead_stage ─────────────────────────────────────────────────────────

def update_lead_stage(db: Session, llm: LLMClient, params: UpdateLeadStageParams) -> dict:
    lead = require_lead(db, params.lead_id)
    old_stage = repository.update_lead_stage(db, lead, params.stage, notes=params.notes)
    return {
        "leadId": lead.id,
        "companyName": lead.company_name,
        "oldStage": old_stage.value,
        "newStage": lead.stage.value,
        "message": f"{lead.company_name} is now in {lead.stage.value} stage.",
        "activityLogged": True,
    }


# ── generate_message ──────────────────────────────────────────────────────────

def generate_message(db: Session, llm: LLMClient, params: GenerateMessageParams) -> dict:
    lead = require_lead(db, params.lead_id)

    rendered = render_template(params.message_type, lead)
    personalized = personalize_message(llm, rendered.body, lead, params.context or "")

    message = repository.create_message(
        db,
        lead.id,
        content=rendered.body,
        personalized_content=personalized,
        subject=rendered.subject,
    )
    logger.info("Draft %s message %s created for lead %s", params.message_type, message.id, lead.id)

    return {
        "messageId": message.id,
        "leadName": lead.company_name,
        "messageType": rendered.message_type,
        "subject": rendered.subject,
        "content": personalized,
        "status": "Draft created - ready to send",
    }


# ── enrich_lead ───────────────────────────────────────────────────────────────

_HEADCOUNT = re.compile(r"(\d[\d,]*)\s*(?:[-–]|to)?\s*(\d[\d,]*)?")


def _headcount(value: Any) -> Optional[int]:
    """650 / "650" / "500-1,000 employees" (midpoint) → int; anything else → None."""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return int(value) if value >= 0 else None
    match = _HEADCOUNT.search(str(value or ""))
    if not match:
        return None
    low = int(match.group(1).replace(",", ""))
    if match.group(2):
        return engine.round_half_up((low + int(match.group(2).replace(",", ""))) / 2)
    return low


def enrichment_updates(lead: Lead, data: dict) -> dict:
    """Lead fields the research result can fill; values already on the lead are kept."""
    updates: dict[str, Any] = {}
    if not lead.industry and isinstance(data.get("industry"), str) and data["industry"].strip():
        updates["industry"] = data["industry"].strip()
    if lead.employees is None:
        updates["employees"] = _headcount(data.get("estimatedSize"))
    if not lead.company_size and data.get("estimatedSize") is not None:
        updates["company_size"] = str(data["estimatedSize"])[:64]
    return updates


def enrich_lead(db: Session, llm: LLMClient, params: EnrichLeadParams) -> dict:
    lead = require_lead(db, params.lead_id)

    data = enrich_company_data(llm, lead.company_name, lead.website)
    if data is None:
        raise ToolError(f"Could not enrich company data for {lead.company_name}")

    changed = repository.record_enrichment(db, lead, data, enrichment_updates(lead, data))
    return {
        "lead": lead_summary(lead),
        "updatedFields": changed,
        "enrichedData": data,
    }
