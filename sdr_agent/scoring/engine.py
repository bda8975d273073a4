"""
sdr_agent/scoring/engine.py — Deterministic lead scoring.

score(lead, rules) returns a ScoreBreakdown with three entries, always in
this order: "Company Size", "Industry Fit", "Budget". Each entry's ceiling is
the matching category weight, and the final score is the sum of points
normalised to 0–100. Nothing here touches the database.
"""

import logging
import math
from dataclasses import dataclass
from typing import Any, Optional

from sdr_agent.scoring.criteria_parser import EmployeeRange, ScoringRuleSet
from sdr_agent.scoring.industries import is_high_value, matches_any

logger = logging.getLogger(__name__)

SIZE_CATEGORY = "Company Size"
INDUSTRY_CATEGORY = "Industry Fit"
BUDGET_CATEGORY = "Budget"

QUALIFIED_THRESHOLD = 80
NURTURE_THRESHOLD = 60

# (minimum employees, share of weight) used when the rules say nothing about size
_DEFAULT_SIZE_BANDS = ((500, 1.0), (100, 0.75), (50, 0.5), (0, 0.25))
_DEFAULT_BUDGET_BANDS = ((200_000, 1.0), (100_000, 0.75), (50_000, 0.5), (0, 0.25))


# ── Types ─────────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class LeadAttributes:
    employees: Optional[int] = None
    industry: Optional[str] = None
    budget: Optional[float] = None

    @classmethod
    def from_lead(cls, lead: Any) -> "LeadAttributes":
        """Build from any object exposing employees / industry / budget (e.g. a Lead row)."""
        return cls(
            employees=getattr(lead, "employees", None),
            industry=getattr(lead, "industry", None),
            budget=getattr(lead, "budget", None),
        )


@dataclass(frozen=True)
class BreakdownEntry:
    category: str
    points: float
    ceiling: float
    rationale: str

    def to_dict(self) -> dict:
        return {
            "category": self.category,
            "points": self.points,
            "ceiling": self.ceiling,
            "rationale": self.rationale,
        }


@dataclass(frozen=True)
class ScoreBreakdown:
    entries: tuple[BreakdownEntry, ...]

    @property
    def points_total(self) -> float:
        return sum(e.points for e in self.entries)

    @property
    def ceiling_total(self) -> float:
        return sum(e.ceiling for e in self.entries)

    @property
    def score(self) -> int:
        ceiling = self.ceiling_total
        if ceiling <= 0:
            return 0
        if ceiling == 100:
            raw = self.points_total
        else:
            raw = self.points_total / ceiling * 100
        return max(0, min(100, round_half_up(raw)))

    def entries_as_dicts(self) -> list[dict]:
        return [e.to_dict() for e in self.entries]

    def to_dict(self) -> dict:
        return {
            "score": self.score,
            "pointsTotal": self.points_total,
            "ceilingTotal": self.ceiling_total,
            "breakdown": self.entries_as_dicts(),
        }


# ── Helpers ───────────────────────────────────────────────────────────────────

def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _clamp(points: float, ceiling: float) -> float:
    return max(0, min(points, ceiling))


def _banded(value: float, bands: tuple[tuple[float, float], ...]) -> float:
    for minimum, share in bands:
        if value >= minimum:
            return share
    return bands[-1][1]


def _money(value: float) -> str:
    return f"${value:,.0f}"


# ── Company size ──────────────────────────────────────────────────────────────

def _range_label(rng: EmployeeRange) -> str:
    if rng.max is not None:
        return f"<{rng.max} employees"
    return f">={rng.min} employees"


def _size_fallback(employees: int, ranges: list[EmployeeRange], weight: float) -> tuple[float, str]:
    """Points for a headcount that none of the explicit ranges covers."""
    thresholds_above = [r for r in ranges if r.max is None and r.min > employees]
    bounded_below = [r for r in ranges if r.max is not None and r.max <= employees]

    above = min(thresholds_above, key=lambda r: r.min) if thresholds_above else None
    below = max(bounded_below, key=lambda r: r.max) if bounded_below else None

    if above and below:
        points = round_half_up((above.points + below.points) / 2)
        return points, (
            f"{employees} employees falls between {_range_label(below)} "
            f"and {_range_label(above)}"
        )
    if above:
        points = round_half_up(above.points * employees / above.min * 0.5)
        return points, f"{employees} employees is below the {_range_label(above)} threshold"

    points = round_half_up(weight * min(employees / 100, 1) * 0.3)
    return points, f"{employees} employees does not match any size range"


def _score_size(employees: Optional[int], rules: ScoringRuleSet) -> BreakdownEntry:
    weight = rules.weights.size

    if employees is None:
        return BreakdownEntry(SIZE_CATEGORY, 0, weight, "Employee count unknown")

    if rules.employee_ranges:
        ordered = sorted(
            rules.employee_ranges,
            key=lambda r: (-r.min, r.max if r.max is not None else math.inf),
        )
        matched = False
        points, rationale = 0.0, ""
        for rng in ordered:
            if rng.contains(employees):
                matched = True
                points = rng.points
                rationale = f"{employees} employees matches {_range_label(rng)}"
                break
        if not matched:
            points, rationale = _size_fallback(employees, ordered, weight)

    elif rules.min_employees > 0:
        if employees >= rules.min_employees:
            points = weight
            rationale = f"{employees} employees meets minimum of {rules.min_employees}"
        else:
            points = 0
            rationale = f"{employees} employees is below minimum of {rules.min_employees}"

    else:
        points = _banded(employees, _DEFAULT_SIZE_BANDS) * weight
        rationale = f"{employees} employees"

    return BreakdownEntry(SIZE_CATEGORY, _clamp(points, weight), weight, rationale)


# ── Industry ──────────────────────────────────────────────────────────────────

def _score_industry(industry: Optional[str], rules: ScoringRuleSet) -> BreakdownEntry:
    weight = rules.weights.industry

    if not industry:
        return BreakdownEntry(INDUSTRY_CATEGORY, 0, weight, "Industry unknown")

    if rules.target_industries:
        targets = ", ".join(rules.target_industries)
        if matches_any(rules.target_industries, industry):
            return BreakdownEntry(
                INDUSTRY_CATEGORY, weight, weight, f"{industry} matches target criteria"
            )
        return BreakdownEntry(
            INDUSTRY_CATEGORY, 0, weight,
            f"{industry} does not match target industries ({targets})",
        )

    share = 1.0 if is_high_value(industry) else 0.5
    return BreakdownEntry(INDUSTRY_CATEGORY, _clamp(share * weight, weight), weight, industry)


# ── Budget ────────────────────────────────────────────────────────────────────

def _score_budget(budget: Optional[float], rules: ScoringRuleSet) -> BreakdownEntry:
    weight = rules.weights.intent

    if budget is None:
        return BreakdownEntry(BUDGET_CATEGORY, 0, weight, "Budget unknown")

    if rules.min_budget > 0:
        if budget >= rules.min_budget:
            return BreakdownEntry(
                BUDGET_CATEGORY, weight, weight,
                f"{_money(budget)} exceeds minimum of {_money(rules.min_budget)}",
            )
        ratio = budget / rules.min_budget
        return BreakdownEntry(
            BUDGET_CATEGORY,
            _clamp(round_half_up(ratio * weight), weight),
            weight,
            f"{_money(budget)} is {round_half_up(ratio * 100)}% of target",
        )

    points = _banded(budget, _DEFAULT_BUDGET_BANDS) * weight
    return BreakdownEntry(BUDGET_CATEGORY, _clamp(points, weight), weight, _money(budget))


# ── Public API ────────────────────────────────────────────────────────────────

def score(lead: LeadAttributes, rules: ScoringRuleSet) -> ScoreBreakdown:
    """
    Score a lead against a rule set.

    Args:
        lead:  Employees / industry / budget; any of them may be None.
        rules: Output of criteria_parser.parse() or a hand-built ScoringRuleSet.

    Returns:
        An immutable ScoreBreakdown. breakdown.score is the 0–100 value.
    """
    breakdown = ScoreBreakdown(entries=(
        _score_size(lead.employees, rules),
        _score_industry(lead.industry, rules),
        _score_budget(lead.budget, rules),
    ))
    logger.debug(
        "Scored lead: points=%s ceiling=%s score=%d",
        breakdown.points_total, breakdown.ceiling_total, breakdown.score,
    )
    return breakdown


def recommendation(final_score: int) -> str:
    if final_score >= QUALIFIED_THRESHOLD:
        return "High potential - strong candidate for immediate outreach"
    if final_score >= NURTURE_THRESHOLD:
        return "Qualified lead - nurture with targeted content"
    return "Low priority - continue monitoring"


def stage_for_score(final_score: int) -> str:
    """Pipeline stage name a freshly scored lead belongs in."""
    if final_score >= QUALIFIED_THRESHOLD:
        return "QUALIFIED"
    if final_score >= NURTURE_THRESHOLD:
        return "CONTACTED"
    return "NEW"
