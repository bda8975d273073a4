"""
api/endpoints/lead_routes.py — Routes for browsing and working leads.

GET    /leads                   — List leads (filter by stage, text search)
GET    /leads/stats             — Totals, average score, counts by stage
GET    /leads/{id}              — Get a single lead
PATCH  /leads/{id}/stage        — Move a lead to another pipeline stage
POST   /leads/{id}/score        — Score a lead (given criteria, else the active saved criteria)
POST   /leads/{id}/enrich       — Research the company and fill in missing fields
GET    /leads/{id}/history      — Past scoring runs
GET    /leads/{id}/activities   — Activity log
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from api.deps import get_llm_client
from api.schemas import (
    ActivityOut,
    LeadOut,
    LeadScoreRequest,
    LeadStageUpdate,
    LeadStats,
    ScoreHistoryOut,
    ScoreResult,
)
from sdr_agent.db import repository
from sdr_agent.db.models import Lead, LeadStage
from sdr_agent.db.session import get_db
from sdr_agent.llm.assistant import enrich_company_data
from sdr_agent.llm.client import LLMClient
from sdr_agent.scoring import engine
from sdr_agent.tools.lead_tools import auto_advance, enrichment_updates, persist_breakdown, resolve_rules

logger = logging.getLogger(__name__)
router = APIRouter()


def _lead_or_404(db: Session, lead_id: str) -> Lead:
    lead = repository.get_lead(db, lead_id)
    if not lead:
        raise HTTPException(status_code=404, detail=f"Lead {lead_id} not found.")
    return lead


@router.get("/", response_model=list[LeadOut], summary="List leads")
def list_leads(
    stage: Optional[LeadStage] = Query(
        default=None,
        description="Filter by stage. Omit to return all leads.",
    ),
    search: Optional[str] = Query(default=None, description="Match company, contact or email"),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
):
    """Return leads ordered by score, highest first."""
    return repository.list_leads(db, stage=stage, search=search, limit=limit, offset=offset)


@router.get("/stats", response_model=LeadStats, summary="Lead totals by stage")
def lead_stats(db: Session = Depends(get_db)):
    return repository.lead_stats(db)


@router.get("/{lead_id}", response_model=LeadOut, summary="Get lead by ID")
def get_lead(lead_id: str, db: Session = Depends(get_db)):
    return _lead_or_404(db, lead_id)


@router.patch("/{lead_id}/stage", response_model=LeadOut, summary="Update lead stage")
def patch_lead_stage(
    lead_id: str,
    payload: LeadStageUpdate,
    db: Session = Depends(get_db),
):
    """
    Manually move a lead through the pipeline.
    Valid stages: NEW, QUALIFIED, CONTACTED, MEETING_SCHEDULED, PROPOSAL_SENT,
    NEGOTIATION, CLOSED_WON, CLOSED_LOST.
    """
    lead = _lead_or_404(db, lead_id)
    repository.update_lead_stage(db, lead, payload.stage, notes=payload.notes)
    logger.info("Lead %s stage updated to %s via API.", lead_id, payload.stage.value)
    return lead


@router.post("/{lead_id}/score", response_model=ScoreResult, summary="Score a lead")
def score_lead(
    lead_id: str,
    payload: LeadScoreRequest,
    db: Session = Depends(get_db),
):
    """
    Score a stored lead. Missing criteria fall back to the active saved criteria,
    then to the default weights (size 40, industry 30, intent 30). The score is saved to the lead's history
    and early-stage leads move to the stage the score implies.
    """
    lead = _lead_or_404(db, lead_id)
    rules, label = resolve_rules(db, payload.criteria)
    breakdown = persist_breakdown(db, lead, rules, label)
    auto_advance(db, lead, breakdown.score)
    return ScoreResult(
        score=breakdown.score,
        breakdown=breakdown.entries_as_dicts(),
        recommendation=engine.recommendation(breakdown.score),
        stage=lead.stage,
        lead_id=lead.id,
    )


@router.get("/{lead_id}/history", response_model=list[ScoreHistoryOut], summary="Scoring history")
def score_history(
    lead_id: str,
    limit: int = Query(default=20, ge=1, le=100),
    db: Session = Depends(get_db),
):
    _lead_or_404(db, lead_id)
    return repository.get_score_history(db, lead_id, limit=limit)


@router.get("/{lead_id}/activities", response_model=list[ActivityOut], summary="Activity log")
def lead_activities(
    lead_id: str,
    limit: int = Query(default=50, ge=1, le=200),
    db: Session = Depends(get_db),
):
    _lead_or_404(db, lead_id)
    return repository.get_activities(db, lead_id, limit=limit)


@router.post("/{lead_id}/enrich", response_model=LeadOut, summary="Enrich lead company data")
def enrich_lead(
    lead_id: str,
    db: Session = Depends(get_db),
    llm: LLMClient = Depends(get_llm_client),
):
    """Ask the provider about the lead's company; fill industry and size where they are missing."""
    lead = _lead_or_404(db, lead_id)
    data = enrich_company_data(llm, lead.company_name, lead.website)
    if data is None:
        raise HTTPException(status_code=500, detail="Failed to enrich lead")
    repository.record_enrichment(db, lead, data, enrichment_updates(lead, data))
    return lead
