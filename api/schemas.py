"""
api/schemas.py — Pydantic request/response models for all API endpoints.

These are the API contract — separate from DB ORM models so we can
control exactly what data is exposed over HTTP. JSON keys are camelCase
(the browser client's convention); Python attributes stay snake_case.
"""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from sdr_agent.db.models import ActivityType, LeadStage


class ApiModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


# ── Agent ─────────────────────────────────────────────────────────────────────

class ChatRequest(ApiModel):
    message: str = Field(..., min_length=1, description="The user's message")
    conversation_id: Optional[str] = Field(default=None, description="Continue this conversation")
    lead_id: Optional[str] = Field(default=None, description="Attach the conversation to a lead")


class ChatTurn(BaseModel):
    role: str
    content: Optional[str] = None
    tool_calls: Optional[list[dict]] = None


class ChatResponse(ApiModel):
    conversation_id: str
    messages: list[ChatTurn]
    error: Optional[str] = None


class ConversationOut(ApiModel):
    id: str
    lead_id: Optional[str] = None
    summary: Optional[str] = None
    metadata: Optional[dict] = Field(default=None, validation_alias="meta")
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class ConversationDetail(ApiModel):
    id: str
    messages: list[dict]


class ToolOut(ApiModel):
    name: str
    description: str
    parameters: dict


# ── Lead ─────────────────────────────────────────────────────────────────────

class LeadOut(ApiModel):
    id: str
    email: str
    company_name: str
    contact_name: str
    phone: Optional[str] = None
    website: Optional[str] = None
    linkedin_url: Optional[str] = None
    employees: Optional[int] = None
    industry: Optional[str] = None
    budget: Optional[float] = None
    company_size: Optional[str] = None
    notes: Optional[str] = None
    enriched_data: Optional[dict] = None
    score: float
    stage: LeadStage
    last_contacted_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class LeadStageUpdate(ApiModel):
    stage: LeadStage = Field(..., description="New pipeline stage")
    notes: Optional[str] = None


class LeadScoreRequest(ApiModel):
    criteria: Optional[str] = Field(
        default=None,
        description='Natural language scoring criteria, e.g. "500+ employees, SaaS, Budget >$200k"',
    )


class LeadStats(ApiModel):
    total: int
    average_score: float
    by_stage: dict[str, int]


class ActivityOut(ApiModel):
    id: str
    type: ActivityType
    description: str
    metadata: Optional[Any] = Field(default=None, validation_alias="meta")
    created_at: Optional[datetime] = None


class ScoreHistoryOut(ApiModel):
    id: str
    score: float
    criteria_used: str
    details: dict
    created_at: Optional[datetime] = None


# ── Scoring ───────────────────────────────────────────────────────────────────

class CriteriaRequest(ApiModel):
    criteria: str = Field(default="", description="Natural language scoring criteria")


class ScoringCriteriaCreate(ApiModel):
    name: str = Field(..., min_length=1, max_length=255)
    criteria: str = Field(..., min_length=1, description="Natural language scoring criteria")
    set_active: bool = Field(default=False, description="Make these the default criteria")


class ScoringCriteriaOut(ApiModel):
    id: Optional[str] = None
    name: str
    criteria_text: Optional[str] = None
    rules: dict
    is_active: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class ScorePreviewRequest(ApiModel):
    criteria: str = Field(default="")
    employees: Optional[int] = Field(default=None, ge=0)
    industry: Optional[str] = None
    budget: Optional[float] = Field(default=None, ge=0)


class BreakdownEntryOut(ApiModel):
    category: str
    points: float
    ceiling: float
    rationale: str


class ScoreResult(ApiModel):
    score: int
    breakdown: list[BreakdownEntryOut]
    recommendation: str
    stage: Optional[LeadStage] = None
    lead_id: Optional[str] = None
