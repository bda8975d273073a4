"""
sdr_agent/db/repository.py — All database read/write operations.

Business logic should never write raw ORM queries directly — everything goes
through this module. Functions only flush; the caller's session owns the
transaction (see sdr_agent/db/session.py).
"""

import json
import logging
from datetime import timedelta
from typing import Any, Optional

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from sdr_agent.db.models import (
    Activity,
    ActivityType,
    Conversation,
    EvaluationResult,
    EvaluationTest,
    EvaluationType,
    Lead,
    LeadScoring,
    LeadStage,
    Message,
    MessageStatus,
    ScoringCriteria,
    utcnow,
)

logger = logging.getLogger(__name__)

CLOSED_STAGES = (LeadStage.CLOSED_WON, LeadStage.CLOSED_LOST)

# Lead columns a caller may set through upsert_lead / update_lead
LEAD_FIELDS = (
    "company_name", "contact_name", "phone", "website", "linkedin_url",
    "employees", "industry", "budget", "company_size", "notes",
)


# ── Lead ─────────────────────────────────────────────────────────────────────

def get_lead(db: Session, lead_id: str) -> Optional[Lead]:
    return db.get(Lead, lead_id)


def get_lead_by_email(db: Session, email: str) -> Optional[Lead]:
    return db.query(Lead).filter(Lead.email == email).first()


def upsert_lead(db: Session, email: str, **fields: Any) -> Lead:
    """
    Create the lead with this email, or update the existing one.

    Only fields passed with a non-None value overwrite stored data.
    """
    values = {k: v for k, v in fields.items() if k in LEAD_FIELDS and v is not None}
    lead = get_lead_by_email(db, email)

    if lead is None:
        lead = Lead(email=email, stage=LeadStage.NEW, score=0, **values)
        db.add(lead)
        db.flush()
        logger.info("Lead created: %s <%s>", lead.company_name, email)
    else:
        for key, value in values.items():
            setattr(lead, key, value)
        db.flush()
        logger.debug("Lead updated: %s <%s>", lead.company_name, email)

    return lead


def list_leads(
    db: Session,
    stage: Optional[LeadStage] = None,
    search: Optional[str] = None,
    limit: int = 50,
    offset: int = 0,
) -> list[Lead]:
    """Leads ordered by score (highest first), optionally filtered by stage or a text match."""
    query = db.query(Lead)
    if stage is not None:
        query = query.filter(Lead.stage == stage)
    if search:
        pattern = f"%{search}%"
        query = query.filter(or_(
            Lead.company_name.ilike(pattern),
            Lead.contact_name.ilike(pattern),
            Lead.email.ilike(pattern),
        ))
    return query.order_by(Lead.score.desc(), Lead.created_at.desc()).offset(offset).limit(limit).all()


def search_leads(
    db: Session,
    min_score: Optional[float] = None,
    max_score: Optional[float] = None,
    min_budget: Optional[float] = None,
    industry: Optional[str] = None,
    stage: Optional[LeadStage] = None,
    not_contacted_days: Optional[int] = None,
    limit: int = 20,
) -> list[Lead]:
    """Structured lead search used by the search_database tool."""
    query = db.query(Lead)
    if min_score is not None:
        query = query.filter(Lead.score >= min_score)
    if max_score is not None:
        query = query.filter(Lead.score <= max_score)
    if min_budget is not None:
        query = query.filter(Lead.budget >= min_budget)
    if industry:
        query = query.filter(Lead.industry.ilike(f"%{industry}%"))
    if stage is not None:
        query = query.filter(Lead.stage == stage)
    if not_contacted_days is not None:
        cutoff = utcnow() - timedelta(days=not_contacted_days)
        query = query.filter(or_(Lead.last_contacted_at.is_(None), Lead.last_contacted_at < cutoff))
    return query.order_by(Lead.score.desc()).limit(limit).all()


def find_similar_leads(
    db: Session,
    reference: Lead,
    industry: Optional[str] = None,
    employees_between: Optional[tuple[int, int]] = None,
    score_between: Optional[tuple[float, float]] = None,
    limit: int = 5,
) -> list[Lead]:
    """Open (not closed) leads other than the reference, matching the given similarity filters."""
    query = db.query(Lead).filter(Lead.id != reference.id, Lead.stage.notin_(CLOSED_STAGES))
    if industry:
        query = query.filter(Lead.industry.ilike(f"%{industry}%"))
    if employees_between:
        low, high = employees_between
        query = query.filter(Lead.employees >= low, Lead.employees <= high)
    if score_between:
        low, high = score_between
        query = query.filter(Lead.score >= low, Lead.score <= high)
    return query.order_by(Lead.score.desc()).limit(limit).all()


def get_best_closed_won_lead(db: Session) -> Optional[Lead]:
    return (
        db.query(Lead)
        .filter(Lead.stage == LeadStage.CLOSED_WON)
        .order_by(Lead.score.desc())
        .first()
    )


def update_lead_stage(
    db: Session,
    lead: Lead,
    stage: LeadStage,
    notes: Optional[str] = None,
    touch_contacted: bool = True,
) -> LeadStage:
    """
    Move a lead to a new stage and log a STAGE_CHANGED activity.

    Returns:
        The stage the lead was in before the change.
    """
    old_stage = lead.stage
    lead.stage = stage
    if touch_contacted:
        lead.last_contacted_at = utcnow()

    description = f"Stage changed from {old_stage.value} to {stage.value}."
    if notes:
        description = f"{description} {notes}"
    log_activity(
        db, lead.id, ActivityType.STAGE_CHANGED, description,
        meta={"from": old_stage.value, "to": stage.value, "notes": notes},
    )
    logger.info("Lead %s stage %s → %s", lead.id, old_stage.value, stage.value)
    return old_stage


def record_enrichment(db: Session, lead: Lead, enriched_data: dict, updates: dict) -> list[str]:
    """
    Store a company-research result on the lead and apply the derived field updates.

    Returns:
        The lead columns that were changed.
    """
    lead.enriched_data = enriched_data
    changed = []
    for key, value in updates.items():
        if key in LEAD_FIELDS and value is not None and getattr(lead, key) != value:
            setattr(lead, key, value)
            changed.append(key)

    log_activity(
        db, lead.id, ActivityType.LEAD_ENRICHED,
        f"Company data enriched ({', '.join(changed) or 'no field changes'})",
        meta={"updated": changed, "data": enriched_data},
    )
    db.flush()
    logger.info("Lead %s enriched, updated %s", lead.id, changed)
    return changed


# ── Scoring ──────────────────────────────────────────────────────────────────

def record_score(
    db: Session,
    lead: Lead,
    score: int,
    breakdown: list[dict],
    rules_snapshot: dict,
    criteria_label: str,
) -> LeadScoring:
    """
    Persist a scoring run: the lead's current score, a history row and a
    SCORE_UPDATED activity, all in the caller's transaction.
    """
    lead.score = score

    history = LeadScoring(
        lead_id=lead.id,
        score=score,
        details={"breakdown": breakdown, "rules": rules_snapshot},
        criteria_used=criteria_label[:255],
    )
    db.add(history)

    log_activity(
        db, lead.id, ActivityType.SCORE_UPDATED,
        f"Lead scored: {score}/100",
        meta={"breakdown": breakdown, "criteria": criteria_label},
    )
    db.flush()
    logger.info("Lead %s scored %d (%s)", lead.id, score, criteria_label)
    return history


def get_score_history(db: Session, lead_id: str, limit: int = 20) -> list[LeadScoring]:
    return (
        db.query(LeadScoring)
        .filter(LeadScoring.lead_id == lead_id)
        .order_by(LeadScoring.created_at.desc())
        .limit(limit)
        .all()
    )


def score_distribution(db: Session) -> dict[str, int]:
    """Lead counts per score band."""
    bands = {"80-100": (80, 101), "60-79": (60, 80), "40-59": (40, 60), "0-39": (0, 40)}
    return {
        label: db.query(func.count(Lead.id)).filter(Lead.score >= low, Lead.score < high).scalar() or 0
        for label, (low, high) in bands.items()
    }


def average_score_by_industry(db: Session) -> list[tuple[str, float, int]]:
    rows = (
        db.query(Lead.industry, func.avg(Lead.score), func.count(Lead.id))
        .filter(Lead.industry.isnot(None))
        .group_by(Lead.industry)
        .order_by(func.avg(Lead.score).desc())
        .all()
    )
    return [(industry, float(avg or 0), count) for industry, avg, count in rows]


# ── Scoring criteria ─────────────────────────────────────────────────────────

def create_scoring_criteria(
    db: Session,
    name: str,
    rules: dict,
    criteria_text: Optional[str] = None,
    activate: bool = False,
) -> ScoringCriteria:
    """Store a named rule set (a ScoringRuleSet snapshot), optionally making it the active one."""
    criteria = ScoringCriteria(name=name[:255], criteria_text=criteria_text, rules=rules, is_active=False)
    db.add(criteria)
    db.flush()
    if activate:
        activate_scoring_criteria(db, criteria)
    logger.info("Scoring criteria created: %r (active=%s)", name, criteria.is_active)
    return criteria


def get_scoring_criteria(db: Session, criteria_id: str) -> Optional[ScoringCriteria]:
    return db.get(ScoringCriteria, criteria_id)


def list_scoring_criteria(db: Session) -> list[ScoringCriteria]:
    return db.query(ScoringCriteria).order_by(ScoringCriteria.created_at.desc()).all()


def get_active_scoring_criteria(db: Session) -> Optional[ScoringCriteria]:
    return (
        db.query(ScoringCriteria)
        .filter(ScoringCriteria.is_active.is_(True))
        .order_by(ScoringCriteria.updated_at.desc())
        .first()
    )


def activate_scoring_criteria(db: Session, criteria: ScoringCriteria) -> ScoringCriteria:
    """Make `criteria` the only active rule set."""
    (
        db.query(ScoringCriteria)
        .filter(ScoringCriteria.is_active.is_(True), ScoringCriteria.id != criteria.id)
        .update({ScoringCriteria.is_active: False}, synchronize_session="fetch")
    )
    criteria.is_active = True
    db.flush()
    logger.info("Scoring criteria activated: %r", criteria.name)
    return criteria


# ── Activity ─────────────────────────────────────────────────────────────────

def log_activity(
    db: Session,
    lead_id: str,
    activity_type: ActivityType,
    description: str,
    meta: Optional[dict] = None,
) -> Activity:
    activity = Activity(lead_id=lead_id, type=activity_type, description=description, meta=meta)
    db.add(activity)
    db.flush()
    return activity


def get_activities(db: Session, lead_id: str, limit: int = 50) -> list[Activity]:
    return (
        db.query(Activity)
        .filter(Activity.lead_id == lead_id)
        .order_by(Activity.created_at.desc())
        .limit(limit)
        .all()
    )


# ── Message ──────────────────────────────────────────────────────────────────

def create_message(
    db: Session,
    lead_id: str,
    content: str,
    personalized_content: Optional[str] = None,
    subject: Optional[str] = None,
) -> Message:
    """Store an outreach draft."""
    message = Message(
        lead_id=lead_id,
        subject=subject,
        content=content,
        personalized_content=personalized_content,
        status=MessageStatus.DRAFT,
    )
    db.add(message)
    db.flush()
    return message


# ── Conversation ─────────────────────────────────────────────────────────────

def get_conversation(db: Session, conversation_id: str) -> Optional[Conversation]:
    return db.get(Conversation, conversation_id)


def save_conversation(
    db: Session,
    turns: list[dict],
    conversation_id: Optional[str] = None,
    lead_id: Optional[str] = None,
    summary: Optional[str] = None,
    meta: Optional[dict] = None,
) -> Conversation:
    """
    Write the full transcript. An existing conversation is updated in place;
    an unknown or missing id creates a new row (keeping the requested id).
    """
    content = json.dumps(turns)
    conversation = get_conversation(db, conversation_id) if conversation_id else None

    if conversation is None:
        conversation = Conversation(content=content, lead_id=lead_id, summary=summary, meta=meta)
        if conversation_id:
            conversation.id = conversation_id
        db.add(conversation)
    else:
        conversation.content = content
        conversation.meta = meta
        if lead_id:
            conversation.lead_id = lead_id
        if summary:
            conversation.summary = summary

    db.flush()
    return conversation


def list_conversations_for_lead(db: Session, lead_id: str, limit: int = 20) -> list[Conversation]:
    return (
        db.query(Conversation)
        .filter(Conversation.lead_id == lead_id)
        .order_by(Conversation.created_at.desc())
        .limit(limit)
        .all()
    )


def search_conversations(db: Session, text: str, limit: int = 10) -> list[Conversation]:
    return (
        db.query(Conversation)
        .filter(Conversation.content.ilike(f"%{text}%"))
        .order_by(Conversation.created_at.desc())
        .limit(limit)
        .all()
    )


# ── Pipeline ─────────────────────────────────────────────────────────────────

def stage_counts(db: Session) -> dict[LeadStage, int]:
    """Lead count for every stage (zero-filled, in pipeline order)."""
    rows = db.query(Lead.stage, func.count(Lead.id)).group_by(Lead.stage).all()
    counts = {stage: count for stage, count in rows}
    return {stage: counts.get(stage, 0) for stage in LeadStage}


def lead_stats(db: Session) -> dict:
    total = db.query(func.count(Lead.id)).scalar() or 0
    average = db.query(func.avg(Lead.score)).scalar()
    return {
        "total": total,
        "average_score": round(float(average), 1) if average is not None else 0.0,
        "by_stage": {stage.value: count for stage, count in stage_counts(db).items()},
    }


# ── Evaluation ───────────────────────────────────────────────────────────────

def create_evaluation_test(
    db: Session,
    name: str,
    input_data: list[dict],
    expected_output: list[dict],
    test_type: EvaluationType = EvaluationType.LEAD_QUALIFICATION,
) -> EvaluationTest:
    test = EvaluationTest(
        name=name,
        test_type=test_type,
        input_data=input_data,
        expected_output=expected_output,
    )
    db.add(test)
    db.flush()
    return test


def create_evaluation_result(
    db: Session,
    test_id: str,
    actual_output: dict,
    performance_score: float,
    execution_ms: int,
    recommendations: Optional[str] = None,
    prompt_version: str = "v1",
) -> EvaluationResult:
    result = EvaluationResult(
        test_id=test_id,
        prompt_version=prompt_version,
        actual_output=actual_output,
        performance_score=performance_score,
        execution_ms=execution_ms,
        recommendations=recommendations,
    )
    db.add(result)
    db.flush()
    return result
