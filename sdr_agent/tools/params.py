"""
sdr_agent/tools/params.py — Typed parameter records for every tool.

The provider sends camelCase keys ("companyName"); models accept both
camelCase and snake_case and expose snake_case attributes. The JSON schema
advertised to the provider is generated from these models by
tool_parameters_schema().
"""

import re
from typing import Annotated, Any, Literal, Optional

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from sdr_agent.db.models import LeadStage


class ToolParams(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
        str_strip_whitespace=True,
    )


def _normalize_stage(value: Any) -> Any:
    # "meeting scheduled" / "Meeting-Scheduled" → "MEETING_SCHEDULED"
    if isinstance(value, str):
        return re.sub(r"[\s-]+", "_", value.strip()).upper()
    return value


StageName = Annotated[LeadStage, BeforeValidator(_normalize_stage)]


# ── Lead tools ────────────────────────────────────────────────────────────────

class ScoreLeadParams(ToolParams):
    company_name: str = Field(..., min_length=1, description="Name of the company")
    contact_name: Optional[str] = Field(None, description="Name of the contact person")
    email: Optional[str] = Field(
        None, description="Email address of the contact (used to find an existing lead)"
    )
    employees: Optional[int] = Field(None, ge=0, description="Number of employees in the company")
    industry: Optional[str] = Field(None, description="Industry sector of the company")
    budget: Optional[float] = Field(None, ge=0, description="Estimated budget for the solution in USD")
    website: Optional[str] = Field(None, description="Company website URL")
    linkedin_url: Optional[str] = Field(None, description="LinkedIn profile or company page")
    notes: Optional[str] = Field(None, description="Free-form notes about the lead")
    criteria: Optional[str] = Field(
        None,
        description=(
            'Natural language scoring criteria (e.g. "500+ employees, Tech/SaaS, Budget >$200k"); '
            "omit to use the active saved criteria"
        ),
    )

    @model_validator(mode="after")
    def _derive_contact(self) -> "ScoreLeadParams":
        if not self.contact_name:
            self.contact_name = "Unknown"
        if not self.email:
            slug = re.sub(r"[^a-z0-9]+", "", self.company_name.lower()) or "lead"
            self.email = f"{slug}@temp.com"
        return self


class RescoreLeadParams(ToolParams):
    lead_id: str = Field(..., min_length=1, description="ID of the lead to rescore")
    criteria_name: str = Field("Custom criteria", description="Name for the custom criteria")
    target_industries: Optional[list[str]] = Field(
        None, description="List of target industries for this campaign"
    )
    min_budget: Optional[float] = Field(None, ge=0, description="Minimum budget requirement")
    min_company_size: Optional[int] = Field(None, ge=0, description="Minimum company size (employees)")
    set_active: bool = Field(
        True, description="Make these criteria the default for later scoring"
    )


class UpdateLeadStageParams(ToolParams):
    lead_id: str = Field(..., min_length=1, description="ID of the lead")
    stage: StageName = Field(..., description="New pipeline stage")
    notes: Optional[str] = Field(None, description="Optional notes about the stage change")


class EnrichLeadParams(ToolParams):
    lead_id: str = Field(..., min_length=1, description="ID of the lead to research")


class GenerateMessageParams(ToolParams):
    lead_id: str = Field(..., min_length=1, description="ID of the lead")
    message_type: Literal["introduction", "follow_up", "demo_request", "proposal"] = Field(
        "introduction", description="Type of message to generate"
    )
    context: Optional[str] = Field(None, description="Additional context for personalization")


# ── Insight tools ─────────────────────────────────────────────────────────────

class SearchFilters(ToolParams):
    min_score: Optional[float] = Field(None, ge=0, le=100)
    max_score: Optional[float] = Field(None, ge=0, le=100)
    min_budget: Optional[float] = Field(None, ge=0)
    industry: Optional[str] = None
    stage: Optional[StageName] = None
    not_contacted_days: Optional[int] = Field(None, ge=0)


class SearchDatabaseParams(ToolParams):
    query: str = Field(..., min_length=1, description="Natural language query to execute")
    entity_type: Literal["leads", "conversations", "all"] = Field(
        "leads", description="Type of entities to search"
    )
    filters: Optional[SearchFilters] = Field(
        None, description="Optional explicit filters; they override anything parsed from the query"
    )


class AnalyzePipelineParams(ToolParams):
    analysis_type: Literal["health", "bottlenecks", "conversion", "velocity", "forecast"] = Field(
        "health", description="Type of pipeline analysis to perform"
    )


class FindSimilarLeadsParams(ToolParams):
    reference_lead_id: Optional[str] = Field(
        None, description="ID of lead to use as reference (defaults to the best CLOSED_WON lead)"
    )
    similarity_type: Literal["industry", "size", "score", "all"] = Field(
        "all", description="Type of similarity to look for"
    )
    limit: int = Field(5, ge=1, le=50, description="Maximum number of similar leads to return")


class EvaluationLead(ToolParams):
    company_name: str = Field(..., min_length=1)
    contact_name: Optional[str] = None
    industry: Optional[str] = None
    employees: Optional[int] = Field(None, ge=0)
    budget: Optional[float] = Field(None, ge=0)
    notes: Optional[str] = None
    expected_score: float = Field(50, ge=0, le=100)


class EvaluateScoringParams(ToolParams):
    test_set_name: str = Field(..., min_length=1, description="Name for this evaluation test")
    test_leads: list[EvaluationLead] = Field(
        ..., min_length=1, description="Test leads with their expected scores"
    )
    criteria: Optional[str] = Field(
        None, description="Scoring rules the model should follow for every test lead"
    )


# ── Schema export ─────────────────────────────────────────────────────────────

def _clean_schema(node: Any, defs: dict) -> Any:
    if isinstance(node, list):
        return [_clean_schema(item, defs) for item in node]
    if not isinstance(node, dict):
        return node

    if "$ref" in node:
        target = defs[node["$ref"].rsplit("/", 1)[-1]]
        merged = {**target, **{k: v for k, v in node.items() if k != "$ref"}}
        return _clean_schema(merged, defs)

    all_of = node.get("allOf")
    if isinstance(all_of, list) and len(all_of) == 1:
        rest = {k: v for k, v in node.items() if k != "allOf"}
        return _clean_schema({**all_of[0], **rest}, defs)

    # Optional[X] → X; absence from "required" already marks it optional
    any_of = node.get("anyOf")
    if any_of:
        options = [o for o in any_of if o.get("type") != "null"]
        if len(options) == 1:
            rest = {k: v for k, v in node.items() if k != "anyOf"}
            return _clean_schema({**options[0], **rest}, defs)

    cleaned = {}
    for key, value in node.items():
        if key == "title" and isinstance(value, str):
            continue
        if key == "default" and value is None:
            continue
        cleaned[key] = _clean_schema(value, defs)
    return cleaned


def tool_parameters_schema(model: type[BaseModel]) -> dict:
    """Provider-facing JSON schema: camelCase keys, refs inlined, no titles."""
    schema = model.model_json_schema(by_alias=True)
    defs = schema.pop("$defs", {})
    return _clean_schema(schema, defs)
