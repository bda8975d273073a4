"""
sdr_agent/tools/insight_tools.py — Read-mostly tools: search, pipeline analytics,
similar leads and LLM scoring evaluation.
"""

import logging
import re
import time
from typing import Any, Callable

from sqlalchemy.orm import Session

from sdr_agent.db import repository
from sdr_agent.db.models import LeadStage
from sdr_agent.llm.assistant import qualify_lead
from sdr_agent.llm.client import LLMClient
from sdr_agent.scoring.industries import KNOWN_INDUSTRIES
from sdr_agent.tools.catalog import ToolError
from sdr_agent.tools.lead_tools import lead_summary, require_lead
from sdr_agent.tools.params import (
    AnalyzePipelineParams,
    EvaluateScoringParams,
    FindSimilarLeadsParams,
    SearchDatabaseParams,
)

logger = logging.getLogger(__name__)

EVALUATION_TOLERANCE = 10
SIMILAR_SCORE_RANGE = 10
BOTTLENECK_MIN_LEADS = 5


# ── Natural-language query parsing ────────────────────────────────────────────

_MULTIPLIERS = {"k": 1_000, "m": 1_000_000}

_SCORE_PATTERN = re.compile(
    r"score\s*(?:of\s*)?(>=|<=|>|<|=|above|over|below|under|at least|at most)\s*(\d+)",
    re.IGNORECASE,
)
_BUDGET_PATTERN = re.compile(
    r"budget\s*(?:of\s*)?(?:>=|>|=|over|above|at least)?\s*\$?(\d[\d,]*(?:\.\d+)?)\s*(k|m)?\b",
    re.IGNORECASE,
)
_INDUSTRY_PATTERN = re.compile(r"\b(" + "|".join(KNOWN_INDUSTRIES) + r")\b", re.IGNORECASE)
_NOT_CONTACTED_PATTERN = re.compile(
    r"(?:haven't|have not|hasn't|has not|not)\s+(?:been\s+)?contacted\s+(?:in|for)\s+(\d+)\s*(days?|weeks?)",
    re.IGNORECASE,
)

_LOWER_BOUND_OPERATORS = (">", ">=", "above", "over", "at least")
_UPPER_BOUND_OPERATORS = ("<", "<=", "below", "under", "at most")


def _score_filters(match: re.Match) -> dict:
    operator, value = match.group(1).lower(), float(match.group(2))
    if operator in _LOWER_BOUND_OPERATORS:
        return {"min_score": value}
    if operator in _UPPER_BOUND_OPERATORS:
        return {"max_score": value}
    return {"min_score": value, "max_score": value}


def _budget_filters(match: re.Match) -> dict:
    value = float(match.group(1).replace(",", ""))
    if match.group(2):
        value *= _MULTIPLIERS[match.group(2).lower()]
    return {"min_budget": value}


def _industry_filters(match: re.Match) -> dict:
    return {"industry": match.group(1)}


def _not_contacted_filters(match: re.Match) -> dict:
    days = int(match.group(1))
    if match.group(2).lower().startswith("week"):
        days *= 7
    return {"not_contacted_days": days}


_QUERY_TABLE: list[tuple[re.Pattern, Callable[[re.Match], dict]]] = [
    (_SCORE_PATTERN, _score_filters),
    (_BUDGET_PATTERN, _budget_filters),
    (_INDUSTRY_PATTERN, _industry_filters),
    (_NOT_CONTACTED_PATTERN, _not_contacted_filters),
]


def _stage_filter(query: str) -> dict:
    lowered = query.lower()
    # Longest names first so "closed won" is not read as something shorter
    for stage in sorted(LeadStage, key=lambda s: len(s.value), reverse=True):
        phrase = stage.value.lower().replace("_", " ")
        if re.search(rf"\b{re.escape(phrase)}\b", lowered):
            return {"stage": stage}
    return {}


def parse_natural_language_query(query: str) -> dict[str, Any]:
    """
    Turn "qualified SaaS leads with score > 70 that haven't been contacted
    in 2 weeks" into search filters:
        {"min_score": 70, "industry": "SaaS", "stage": QUALIFIED, "not_contacted_days": 14}

    Only recognised phrases produce filters; the first match of each kind wins.
    """
    filters: dict[str, Any] = {}
    for pattern, extract in _QUERY_TABLE:
        match = pattern.search(query or "")
        if match:
            filters.update(extract(match))
    # "not contacted in 2 weeks" is a recency filter, not the CONTACTED stage
    filters.update(_stage_filter(_NOT_CONTACTED_PATTERN.sub(" ", query or "")))
    return filters


def _search_summary(results: dict, query: str) -> str:
    parts = []
    leads = results.get("leads") or []
    if leads:
        average = sum(lead["score"] or 0 for lead in leads) / len(leads)
        parts.append(f"Found {len(leads)} leads matching your criteria")
        parts.append(f"Average score: {average:.1f}/100")
    conversations = results.get("conversations") or []
    if conversations:
        parts.append(f"Found {len(conversations)} relevant conversations")
    if not parts:
        return f'No results found for: "{query}"'
    return ". ".join(parts)


# ── search_database ───────────────────────────────────────────────────────────

def search_database(db: Session, llm: LLMClient, params: SearchDatabaseParams) -> dict:
    filters = parse_natural_language_query(params.query)
    if params.filters is not None:
        filters.update(params.filters.model_dump(exclude_none=True))

    results: dict[str, Any] = {}
    if params.entity_type in ("leads", "all"):
        leads = repository.search_leads(db, **filters)
        results["leads"] = [lead_summary(lead) for lead in leads]

    if params.entity_type in ("conversations", "all"):
        conversations = repository.search_conversations(db, params.query)
        results["conversations"] = [
            {
                "id": c.id,
                "leadId": c.lead_id,
                "summary": c.summary,
                "createdAt": c.created_at.isoformat() if c.created_at else None,
            }
            for c in conversations
        ]

    applied = {k: (v.value if isinstance(v, LeadStage) else v) for k, v in filters.items()}
    logger.info("search_database %r → filters=%s", params.query, applied)
    return {
        "filters": applied,
        **results,
        "summary": _search_summary(results, params.query),
    }


# ── analyze_pipeline ──────────────────────────────────────────────────────────

def _percent(numerator: int, denominator: int) -> str:
    return f"{numerator / denominator * 100:.1f}%" if denominator else "0%"


def _pipeline_insights(analysis: dict, counts: dict[LeadStage, int]) -> list[str]:
    total = analysis["totalLeads"]
    if total == 0:
        return ["No leads in pipeline - start adding leads to track metrics"]

    insights = []
    if analysis.get("bottlenecks"):
        top = analysis["bottlenecks"][0]
        insights.append(f"Major bottleneck at {top['stage']} stage with {top['leadsStuck']} leads")

    won, lost = counts[LeadStage.CLOSED_WON], counts[LeadStage.CLOSED_LOST]
    if "conversionRates" in analysis and won + lost:
        win_rate = won / (won + lost) * 100
        if win_rate < 20:
            insights.append("Low win rate - consider reviewing qualification criteria")
        elif win_rate > 50:
            insights.append("Strong win rate - current qualification process is effective")

    if counts[LeadStage.NEW] > total * 0.5:
        insights.append("Most leads are in NEW stage - increase outreach efforts")
    return insights


def analyze_pipeline(db: Session, llm: LLMClient, params: AnalyzePipelineParams) -> dict:
    counts = repository.stage_counts(db)
    analysis: dict[str, Any] = {
        "analysisType": params.analysis_type,
        "stageDistribution": [{"stage": s.value, "count": c} for s, c in counts.items()],
        "totalLeads": sum(counts.values()),
    }

    if params.analysis_type in ("health", "bottlenecks"):
        stuck = sorted(
            (
                (stage, count) for stage, count in counts.items()
                if count > BOTTLENECK_MIN_LEADS and stage not in repository.CLOSED_STAGES
            ),
            key=lambda item: item[1],
            reverse=True,
        )
        analysis["bottlenecks"] = [
            {
                "stage": stage.value,
                "leadsStuck": count,
                "recommendation": f"Review and contact {count} leads in {stage.value} stage",
            }
            for stage, count in stuck[:3]
        ]

    if params.analysis_type in ("health", "conversion"):
        won, lost = counts[LeadStage.CLOSED_WON], counts[LeadStage.CLOSED_LOST]
        analysis["conversionRates"] = {
            "qualifiedToWon": _percent(won, counts[LeadStage.QUALIFIED]),
            "winRate": _percent(won, won + lost),
        }

    if params.analysis_type == "health":
        analysis["averageScore"] = repository.lead_stats(db)["average_score"]

    analysis["insights"] = _pipeline_insights(analysis, counts)
    return analysis


# ── find_similar_leads ────────────────────────────────────────────────────────

def find_similar_leads(db: Session, llm: LLMClient, params: FindSimilarLeadsParams) -> dict:
    if params.reference_lead_id:
        reference = require_lead(db, params.reference_lead_id)
    else:
        reference = repository.get_best_closed_won_lead(db)
        if reference is None:
            raise ToolError("No reference lead found")

    kind = params.similarity_type
    filters: dict[str, Any] = {}
    if kind in ("industry", "all") and reference.industry:
        filters["industry"] = reference.industry
    if kind in ("size", "all") and reference.employees:
        filters["employees_between"] = (reference.employees // 2, reference.employees * 2)
    if kind in ("score", "all"):
        filters["score_between"] = (
            reference.score - SIMILAR_SCORE_RANGE,
            reference.score + SIMILAR_SCORE_RANGE,
        )

    similar = repository.find_similar_leads(db, reference, limit=params.limit, **filters)
    return {
        "referenceLead": {
            "id": reference.id,
            "company": reference.company_name,
            "score": reference.score,
        },
        "similarLeads": [lead_summary(lead) for lead in similar],
        "matchCriteria": kind,
    }


# ── evaluate_scoring ──────────────────────────────────────────────────────────

def evaluate_scoring(db: Session, llm: LLMClient, params: EvaluateScoringParams) -> dict:
    started = time.monotonic()
    leads = params.test_leads

    test = repository.create_evaluation_test(
        db,
        name=params.test_set_name,
        input_data=[lead.model_dump(by_alias=True, exclude_none=True) for lead in leads],
        expected_output=[
            {"companyName": lead.company_name, "expectedScore": lead.expected_score}
            for lead in leads
        ],
    )

    correct = 0
    overvalued, undervalued = [], []
    for lead in leads:
        result = qualify_lead(llm, lead, rules=params.criteria)
        row = {"lead": lead.company_name, "modelScore": result.score, "expected": lead.expected_score}
        if abs(result.score - lead.expected_score) <= EVALUATION_TOLERANCE:
            correct += 1
        elif result.score > lead.expected_score:
            overvalued.append(row)
        else:
            undervalued.append(row)

    insights = []
    if len(overvalued) > 2:
        insights.append(f"Model overvalues {len(overvalued)} of {len(leads)} test leads")
    if len(undervalued) > 2:
        insights.append(f"Model undervalues {len(undervalued)} of {len(leads)} test leads")

    accuracy = correct / len(leads) * 100
    repository.create_evaluation_result(
        db,
        test.id,
        actual_output={
            "total": len(leads),
            "correct": correct,
            "overvalued": overvalued,
            "undervalued": undervalued,
        },
        performance_score=accuracy,
        execution_ms=int((time.monotonic() - started) * 1000),
        recommendations=". ".join(insights) or None,
    )
    logger.info("Evaluation %r: %d/%d within tolerance", params.test_set_name, correct, len(leads))

    return {
        "testId": test.id,
        "accuracy": f"{correct}/{len(leads)} scored correctly",
        "accuracyPercent": round(accuracy, 1),
        "overvalued": overvalued[:3],
        "undervalued": undervalued[:3],
        "recommendation": insights[0] if insights else "Scoring performing well on this test set.",
    }
