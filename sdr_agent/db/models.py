"""
sdr_agent/db/models.py — SQLAlchemy ORM models for the SDR agent.

Tables:
  - Lead              → a prospect company + contact, with its current score and stage
  - LeadScoring       → score history (breakdown + rule snapshot per scoring run)
  - ScoringCriteria   → named, reusable rule sets; at most one is active
  - Activity          → append-only audit log per lead
  - Message           → outreach drafts generated for a lead
  - Conversation      → agent chat transcripts (JSON turns)
  - EvaluationTest    → stored scoring-evaluation scenarios
  - EvaluationResult  → outcome of one evaluation run
"""

import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import DeclarativeBase, relationship


# ── Base ─────────────────────────────────────────────────────────────────────

class Base(DeclarativeBase):
    pass


def _new_id() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


# ── Enums ────────────────────────────────────────────────────────────────────

class LeadStage(str, enum.Enum):
    """Pipeline stages, in pipeline order."""
    NEW = "NEW"
    QUALIFIED = "QUALIFIED"
    CONTACTED = "CONTACTED"
    MEETING_SCHEDULED = "MEETING_SCHEDULED"
    PROPOSAL_SENT = "PROPOSAL_SENT"
    NEGOTIATION = "NEGOTIATION"
    CLOSED_WON = "CLOSED_WON"
    CLOSED_LOST = "CLOSED_LOST"


class ActivityType(str, enum.Enum):
    EMAIL_SENT = "EMAIL_SENT"
    EMAIL_RECEIVED = "EMAIL_RECEIVED"
    CALL_MADE = "CALL_MADE"
    CALL_RECEIVED = "CALL_RECEIVED"
    MEETING_HELD = "MEETING_HELD"
    NOTE_ADDED = "NOTE_ADDED"
    STAGE_CHANGED = "STAGE_CHANGED"
    SCORE_UPDATED = "SCORE_UPDATED"
    LEAD_ENRICHED = "LEAD_ENRICHED"


class MessageStatus(str, enum.Enum):
    DRAFT = "DRAFT"
    SENT = "SENT"
    DELIVERED = "DELIVERED"
    OPENED = "OPENED"
    REPLIED = "REPLIED"
    BOUNCED = "BOUNCED"


class EvaluationType(str, enum.Enum):
    LEAD_QUALIFICATION = "LEAD_QUALIFICATION"
    SCORING_ACCURACY = "SCORING_ACCURACY"


# ── Models ───────────────────────────────────────────────────────────────────

class Lead(Base):
    __tablename__ = "leads"

    id = Column(String(36), primary_key=True, default=_new_id)
    email = Column(String(255), nullable=False, unique=True)
    company_name = Column(String(255), nullable=False)
    contact_name = Column(String(255), nullable=False, default="Unknown")
    phone = Column(String(64), nullable=True)
    website = Column(String(512), nullable=True)
    linkedin_url = Column(String(512), nullable=True)

    employees = Column(Integer, nullable=True)
    industry = Column(String(255), nullable=True)
    budget = Column(Float, nullable=True)
    company_size = Column(String(64), nullable=True)      # e.g. "51-200"
    notes = Column(Text, nullable=True)
    enriched_data = Column(JSON, nullable=True)           # last company research result

    score = Column(Float, default=0, nullable=False)      # 0 – 100
    stage = Column(Enum(LeadStage), default=LeadStage.NEW, nullable=False, index=True)

    last_contacted_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    # Relationships
    scorings = relationship("LeadScoring", back_populates="lead", cascade="all, delete-orphan")
    activities = relationship("Activity", back_populates="lead", cascade="all, delete-orphan")
    messages = relationship("Message", back_populates="lead", cascade="all, delete-orphan")
    conversations = relationship("Conversation", back_populates="lead", cascade="all, delete-orphan")

    def __repr__(self) -> str:
        return f"<Lead id={self.id} company={self.company_name!r} score={self.score} stage={self.stage}>"


class LeadScoring(Base):
    __tablename__ = "lead_scorings"

    id = Column(String(36), primary_key=True, default=_new_id)
    lead_id = Column(String(36), ForeignKey("leads.id", ondelete="CASCADE"), nullable=False, index=True)
    score = Column(Float, nullable=False)
    details = Column(JSON, nullable=False)                # {"breakdown": [...], "rules": {...}}
    criteria_used = Column(String(255), nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    lead = relationship("Lead", back_populates="scorings")

    def __repr__(self) -> str:
        return f"<LeadScoring lead_id={self.lead_id} score={self.score}>"


class ScoringCriteria(Base):
    __tablename__ = "scoring_criteria"

    id = Column(String(36), primary_key=True, default=_new_id)
    name = Column(String(255), nullable=False)
    criteria_text = Column(Text, nullable=True)           # natural language source, if any
    rules = Column(JSON, nullable=False)                  # ScoringRuleSet.snapshot()
    is_active = Column(Boolean, default=False, nullable=False, index=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    def __repr__(self) -> str:
        return f"<ScoringCriteria id={self.id} name={self.name!r} active={self.is_active}>"


class Activity(Base):
    __tablename__ = "activities"

    id = Column(String(36), primary_key=True, default=_new_id)
    lead_id = Column(String(36), ForeignKey("leads.id", ondelete="CASCADE"), nullable=False, index=True)
    type = Column(Enum(ActivityType), nullable=False, index=True)
    description = Column(Text, nullable=False)
    meta = Column("metadata", JSON, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    lead = relationship("Lead", back_populates="activities")

    def __repr__(self) -> str:
        return f"<Activity lead_id={self.lead_id} type={self.type}>"


class Message(Base):
    __tablename__ = "messages"

    id = Column(String(36), primary_key=True, default=_new_id)
    lead_id = Column(String(36), ForeignKey("leads.id", ondelete="CASCADE"), nullable=False, index=True)
    subject = Column(String(512), nullable=True)
    content = Column(Text, nullable=False)                # filled template
    personalized_content = Column(Text, nullable=True)    # LLM rewrite
    status = Column(Enum(MessageStatus), default=MessageStatus.DRAFT, nullable=False)
    sent_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    lead = relationship("Lead", back_populates="messages")

    def __repr__(self) -> str:
        return f"<Message id={self.id} lead_id={self.lead_id} status={self.status}>"


class Conversation(Base):
    __tablename__ = "conversations"

    id = Column(String(36), primary_key=True, default=_new_id)
    lead_id = Column(String(36), ForeignKey("leads.id", ondelete="CASCADE"), nullable=True, index=True)
    content = Column(Text, nullable=False)                # JSON list of turns
    summary = Column(Text, nullable=True)
    meta = Column("metadata", JSON, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    lead = relationship("Lead", back_populates="conversations")

    def __repr__(self) -> str:
        return f"<Conversation id={self.id} lead_id={self.lead_id}>"


class EvaluationTest(Base):
    __tablename__ = "evaluation_tests"

    id = Column(String(36), primary_key=True, default=_new_id)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    test_type = Column(Enum(EvaluationType), nullable=False)
    input_data = Column(JSON, nullable=False)
    expected_output = Column(JSON, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    results = relationship("EvaluationResult", back_populates="test", cascade="all, delete-orphan")

    def __repr__(self) -> str:
        return f"<EvaluationTest id={self.id} name={self.name!r}>"


class EvaluationResult(Base):
    __tablename__ = "evaluation_results"

    id = Column(String(36), primary_key=True, default=_new_id)
    test_id = Column(String(36), ForeignKey("evaluation_tests.id", ondelete="CASCADE"), nullable=False, index=True)
    prompt_version = Column(String(64), nullable=False)
    actual_output = Column(JSON, nullable=False)
    performance_score = Column(Float, nullable=False)     # accuracy, 0 – 100
    execution_ms = Column(Integer, nullable=False)
    recommendations = Column(Text, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    test = relationship("EvaluationTest", back_populates="results")

    def __repr__(self) -> str:
        return f"<EvaluationResult test_id={self.test_id} score={self.performance_score}>"
