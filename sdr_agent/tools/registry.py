"""
sdr_agent/tools/registry.py — Builds the tool catalog for one request.

    catalog = build_catalog(db, llm)

Executors are bound to the caller's session and provider client, so each
request (and each test) gets its own catalog.
"""

from functools import partial

from sqlalchemy.orm import Session

from sdr_agent.llm.client import LLMClient
from sdr_agent.tools import insight_tools, lead_tools
from sdr_agent.tools.catalog import ToolCatalog, ToolDefinition
from sdr_agent.tools.params import (
    AnalyzePipelineParams,
    EnrichLeadParams,
    EvaluateScoringParams,
    FindSimilarLeadsParams,
    GenerateMessageParams,
    RescoreLeadParams,
    ScoreLeadParams,
    SearchDatabaseParams,
    UpdateLeadStageParams,
)

# (name, description, parameter model, executor)
TOOL_SPECS = (
    (
        "score_lead",
        "Score a new or existing lead (matched by email) against natural-language criteria",
        ScoreLeadParams,
        lead_tools.score_lead,
    ),
    (
        "rescore_lead",
        "Re-score an existing lead with custom campaign criteria",
        RescoreLeadParams,
        lead_tools.rescore_lead,
    ),
    (
        "update_lead_stage",
        "Move a lead to a different pipeline stage",
        UpdateLeadStageParams,
        lead_tools.update_lead_stage,
    ),
    (
        "enrich_lead",
        "Research a lead's company and fill in missing details (industry, size)",
        EnrichLeadParams,
        lead_tools.enrich_lead,
    ),
    (
        "generate_message",
        "Generate a personalized outreach message for a lead (introduction, follow_up, demo_request, proposal)",
        GenerateMessageParams,
        lead_tools.generate_message,
    ),
    (
        "search_database",
        "Run a natural language query against leads and conversations",
        SearchDatabaseParams,
        insight_tools.search_database,
    ),
    (
        "analyze_pipeline",
        "Analyze pipeline health, bottlenecks, and conversion metrics",
        AnalyzePipelineParams,
        insight_tools.analyze_pipeline,
    ),
    (
        "find_similar_leads",
        "Find open leads similar to a reference lead or the best closed-won deal",
        FindSimilarLeadsParams,
        insight_tools.find_similar_leads,
    ),
    (
        "evaluate_scoring",
        "Evaluate LLM lead scoring accuracy on test leads with expected scores",
        EvaluateScoringParams,
        insight_tools.evaluate_scoring,
    ),
)


def build_catalog(db: Session, llm: LLMClient) -> ToolCatalog:
    catalog = ToolCatalog(session=db)
    for name, description, params_model, executor in TOOL_SPECS:
        catalog.register(
            ToolDefinition(name=name, description=description),
            partial(executor, db, llm),
            params_model,
        )
    return catalog
