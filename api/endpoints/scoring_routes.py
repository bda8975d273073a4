"""
api/endpoints/scoring_routes.py — Inspect the scoring engine without the agent.

POST   /scoring/parse      — Show the rule set a criteria string parses into
POST   /scoring/preview    — Score ad-hoc attributes without saving anything
GET    /scoring/analytics  — Score bands and per-industry averages
GET    /scoring/criteria   — Saved criteria, newest first
GET    /scoring/criteria/active          — The criteria used when none are given
POST   /scoring/criteria                 — Parse and save a named criteria set
PUT    /scoring/criteria/{id}/activate   — Make a saved set the default
"""

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from api.schemas import (
    CriteriaRequest,
    ScorePreviewRequest,
    ScoreResult,
    ScoringCriteriaCreate,
    ScoringCriteriaOut,
)
from sdr_agent.db import repository
from sdr_agent.db.session import get_db
from sdr_agent.scoring import criteria_parser, engine

router = APIRouter()


@router.post("/parse", summary="Parse scoring criteria")
def parse_criteria(payload: CriteriaRequest):
    """Return the weights, employee ranges, target industries and minimum budget found in the text."""
    return criteria_parser.parse(payload.criteria).snapshot()


@router.post("/preview", response_model=ScoreResult, summary="Preview a score")
def preview_score(payload: ScorePreviewRequest):
    rules = criteria_parser.parse(payload.criteria)
    breakdown = engine.score(
        engine.LeadAttributes(
            employees=payload.employees,
            industry=payload.industry,
            budget=payload.budget,
        ),
        rules,
    )
    return ScoreResult(
        score=breakdown.score,
        breakdown=breakdown.entries_as_dicts(),
        recommendation=engine.recommendation(breakdown.score),
        stage=engine.stage_for_score(breakdown.score),
    )


@router.get("/analytics", summary="Scoring analytics")
def scoring_analytics(db: Session = Depends(get_db)):
    stats = repository.lead_stats(db)
    return {
        "totalLeads": stats["total"],
        "averageScore": stats["average_score"],
        "scoreDistribution": repository.score_distribution(db),
        "industryPerformance": [
            {"industry": industry, "averageScore": round(avg, 1), "count": count}
            for industry, avg, count in repository.average_score_by_industry(db)
        ],
    }


# ── Saved criteria ────────────────────────────────────────────────────────────

@router.get("/criteria", response_model=list[ScoringCriteriaOut], summary="List saved criteria")
def list_criteria(db: Session = Depends(get_db)):
    return repository.list_scoring_criteria(db)


@router.get("/criteria/active", response_model=ScoringCriteriaOut, summary="Active criteria")
def active_criteria(db: Session = Depends(get_db)):
    """The saved set marked active, or the built-in defaults when none is."""
    active = repository.get_active_scoring_criteria(db)
    if active is not None:
        return active
    return ScoringCriteriaOut(name="Default", rules=criteria_parser.parse(None).snapshot(), is_active=True)


@router.post("/criteria", response_model=ScoringCriteriaOut, status_code=201, summary="Save criteria")
def create_criteria(payload: ScoringCriteriaCreate, db: Session = Depends(get_db)):
    rules = criteria_parser.parse(payload.criteria)
    return repository.create_scoring_criteria(
        db,
        payload.name,
        rules.snapshot(),
        criteria_text=payload.criteria,
        activate=payload.set_active,
    )


@router.put("/criteria/{criteria_id}/activate", response_model=ScoringCriteriaOut, summary="Activate criteria")
def activate_criteria(criteria_id: str, db: Session = Depends(get_db)):
    criteria = repository.get_scoring_criteria(db, criteria_id)
    if criteria is None:
        raise HTTPException(status_code=404, detail=f"Scoring criteria {criteria_id} not found.")
    return repository.activate_scoring_criteria(db, criteria)
