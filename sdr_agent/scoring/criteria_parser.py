"""
sdr_agent/scoring/criteria_parser.py — Turns free-text qualification rules into a ScoringRuleSet.

Example input:
    "Size=40%, Industry=30%, Intent=30%. >500 employees = 40 points,
     under 50 employees = 5 points. Targeting SaaS/Fintech companies, Budget >$200k"

Each extraction step is an ordered table of (pattern, extractor) pairs.
Earlier rows take priority; adding a new phrasing means adding a row.
parse() never raises: anything it cannot read falls back to the defaults.
"""

import logging
import re
from dataclasses import asdict, dataclass, field
from typing import Callable, Optional

from sdr_agent.scoring.industries import KNOWN_INDUSTRIES

logger = logging.getLogger(__name__)

DEFAULT_SIZE_WEIGHT = 40
DEFAULT_INDUSTRY_WEIGHT = 30
DEFAULT_INTENT_WEIGHT = 30

DEFAULT_OVER_POINTS = 40      # ">N employees" with no explicit points
DEFAULT_UNDER_POINTS = 5      # "<N employees" with no explicit points
MEDIUM_TIER_POINTS = 25


# ── Rule set ──────────────────────────────────────────────────────────────────

@dataclass
class ScoringWeights:
    size: int = DEFAULT_SIZE_WEIGHT
    industry: int = DEFAULT_INDUSTRY_WEIGHT
    intent: int = DEFAULT_INTENT_WEIGHT

    @property
    def ceiling(self) -> int:
        return self.size + self.industry + self.intent


@dataclass
class EmployeeRange:
    """A size rule: `min <= employees` (open range) or `employees < max` (bounded)."""
    min: int
    max: Optional[int] = None
    points: float = DEFAULT_OVER_POINTS

    def contains(self, employees: int) -> bool:
        if self.max is not None:
            return employees < self.max
        return employees >= self.min


@dataclass
class ScoringRuleSet:
    weights: ScoringWeights = field(default_factory=ScoringWeights)
    employee_ranges: list[EmployeeRange] = field(default_factory=list)
    min_employees: int = 0
    target_industries: list[str] = field(default_factory=list)
    min_budget: float = 0
    source_text: str = ""

    def snapshot(self) -> dict:
        """JSON-safe copy of the rules, stored alongside every persisted score."""
        data = asdict(self)
        data["weights"]["ceiling"] = self.weights.ceiling
        return data

    @classmethod
    def from_snapshot(cls, data: dict) -> "ScoringRuleSet":
        """Rebuild a rule set stored with snapshot(); missing keys fall back to the defaults."""
        weights = {k: v for k, v in (data.get("weights") or {}).items() if k != "ceiling"}
        return cls(
            weights=ScoringWeights(**weights),
            employee_ranges=[EmployeeRange(**r) for r in data.get("employee_ranges") or []],
            min_employees=data.get("min_employees") or 0,
            target_industries=list(data.get("target_industries") or []),
            min_budget=data.get("min_budget") or 0,
            source_text=data.get("source_text") or "",
        )


# ── Helpers ───────────────────────────────────────────────────────────────────

_MULTIPLIERS = {"k": 1_000, "m": 1_000_000}

# A number that is really money or a percentage, not a headcount
_NOT_A_HEADCOUNT = r"(?![\d,]*\s*(?:%|\$|[km]\b))"


def _to_number(raw: str) -> float:
    return float(raw.replace(",", ""))


def _to_int(raw: str) -> int:
    return int(_to_number(raw))


def _with_suffix(raw: str, suffix: Optional[str]) -> float:
    value = _to_number(raw)
    if suffix:
        value *= _MULTIPLIERS[suffix.lower()]
    return value


def _clean_number(value: float) -> float:
    return int(value) if float(value).is_integer() else value


# ── 1. Weights ────────────────────────────────────────────────────────────────

_CATEGORY_KEYWORDS = {
    "size": r"(?:company\s+size|size)",
    "industry": r"industry",
    "intent": r"(?:intent|budget)",
}

_PERCENT_WEIGHT = r"\b{kw}[\s=:]+(\d{{1,3}})\s*%"
_POINT_WEIGHT = r"\b{kw}[\s=:]+(\d{{1,3}})(?![\d,.]|\s*%|\s*[km]\b|\s*\+?\s*employees)"


def _weight_table(template: str) -> list[tuple[str, re.Pattern]]:
    return [
        (category, re.compile(template.format(kw=kw), re.IGNORECASE))
        for category, kw in _CATEGORY_KEYWORDS.items()
    ]


_PERCENT_WEIGHT_TABLE = _weight_table(_PERCENT_WEIGHT)
_POINT_WEIGHT_TABLE = _weight_table(_POINT_WEIGHT)


def _extract_weights(text: str) -> ScoringWeights:
    """Percentages win; bare point values are read only when no percentage is present."""
    weights = ScoringWeights()

    for table in (_PERCENT_WEIGHT_TABLE, _POINT_WEIGHT_TABLE):
        found = False
        for category, pattern in table:
            match = pattern.search(text)
            if not match:
                continue
            value = int(match.group(1))
            if 0 < value <= 100:
                setattr(weights, category, value)
                found = True
        if found:
            break

    return weights


# ── 2. Employee ranges ────────────────────────────────────────────────────────

_OVER_PATTERN = re.compile(
    r"(?:>=?|\bover\b|\babove\b)\s*(\d[\d,]*)" + _NOT_A_HEADCOUNT, re.IGNORECASE
)
_UNDER_PATTERN = re.compile(
    r"(?:<=?|\bunder\b|\bbelow\b)\s*(\d[\d,]*)" + _NOT_A_HEADCOUNT, re.IGNORECASE
)
_BARE_MINIMUM_PATTERN = re.compile(r"(\d[\d,]*)\s*\+?\s*employees", re.IGNORECASE)

_CLAUSE_END = re.compile(r"[,;.\n]")

# "budget >= 150,000": the threshold belongs to the budget rule, not to size
_MONEY_CLAUSE = re.compile(r"\b(?:budget|revenue|spend|deal\s+size)\b[^,;.\n]*$", re.IGNORECASE)

# Point value for a range, read from the clause that follows its threshold
_POINT_TABLE: list[tuple[re.Pattern, Callable[[re.Match], float]]] = [
    (
        re.compile(r"(\d+)\s*[-–]\s*(\d+)\s*(?:points?|pts)\b", re.IGNORECASE),
        lambda m: (int(m.group(1)) + int(m.group(2))) / 2,
    ),
    (
        re.compile(r"(\d+(?:\.\d+)?)\s*(?:points?|pts)\b", re.IGNORECASE),
        lambda m: float(m.group(1)),
    ),
    (
        re.compile(r"(\d+)\s*[-–]\s*(\d+)"),
        lambda m: (int(m.group(1)) + int(m.group(2))) / 2,
    ),
    (re.compile(r"\bmedium\b", re.IGNORECASE), lambda m: MEDIUM_TIER_POINTS),
    (re.compile(r"\bhigh\b", re.IGNORECASE), lambda m: DEFAULT_OVER_POINTS),
]


def _clause_after(text: str, position: int) -> str:
    rest = text[position:]
    end = _CLAUSE_END.search(rest)
    return rest[: end.start()] if end else rest


def _is_money_threshold(text: str, position: int) -> bool:
    return bool(_MONEY_CLAUSE.search(text[:position]))


def _points_for(clause: str, default: float) -> float:
    for pattern, extract in _POINT_TABLE:
        match = pattern.search(clause)
        if match:
            return _clean_number(extract(match))
    return default


def _extract_employee_ranges(text: str) -> list[EmployeeRange]:
    ranges: list[EmployeeRange] = []

    for match in _OVER_PATTERN.finditer(text):
        if _is_money_threshold(text, match.start()):
            continue
        threshold = _to_int(match.group(1))
        points = _points_for(_clause_after(text, match.end()), DEFAULT_OVER_POINTS)
        ranges.append(EmployeeRange(min=threshold, points=points))
        logger.debug("Parsed size range: >=%d employees -> %s points", threshold, points)

    for match in _UNDER_PATTERN.finditer(text):
        if _is_money_threshold(text, match.start()):
            continue
        threshold = _to_int(match.group(1))
        points = _points_for(_clause_after(text, match.end()), DEFAULT_UNDER_POINTS)
        ranges.append(EmployeeRange(min=0, max=threshold, points=points))
        logger.debug("Parsed size range: <%d employees -> %s points", threshold, points)

    return ranges


def _extract_min_employees(text: str) -> int:
    match = _BARE_MINIMUM_PATTERN.search(text)
    return _to_int(match.group(1)) if match else 0


# ── 3. Industries ─────────────────────────────────────────────────────────────

_CONTEXT_PATTERN = re.compile(
    r"\b(?:in|for|targeting)\s+([A-Za-z/,&\s-]+?)\s+(?:industry|industries|sectors?|companies)\b",
    re.IGNORECASE,
)
_LABELLED_LIST_PATTERN = re.compile(
    r"\bindustr(?:y|ies)\s*[:=]\s*([A-Za-z][A-Za-z/,&\s-]*)", re.IGNORECASE
)
_SLASH_LIST_PATTERN = re.compile(r"\b([A-Za-z]+(?:/[A-Za-z]+)+)\b")
_VOCABULARY_PATTERN = re.compile(
    r"\b(" + "|".join(KNOWN_INDUSTRIES) + r")\b", re.IGNORECASE
)

_LIST_SEPARATORS = re.compile(r"[,/&]|\s+or\s+|\s+and\s+", re.IGNORECASE)
_LEADING_FILLER = re.compile(
    r"^(?:(?:the|a|an|companies|company|businesses|in|for|targeting)\s+)+", re.IGNORECASE
)
_NOT_AN_INDUSTRY = {
    "size", "company size", "industry", "industries", "intent", "budget",
    "employees", "points", "pts", "score",
}


def _split_industry_list(raw: str) -> list[str]:
    tokens = []
    for part in _LIST_SEPARATORS.split(raw):
        token = _LEADING_FILLER.sub("", part.strip()).strip(" -")
        if len(token) < 2 or token.lower() in _NOT_AN_INDUSTRY:
            continue
        tokens.append(token)
    return tokens


def _from_context(text: str) -> list[str]:
    found = []
    for match in _CONTEXT_PATTERN.finditer(text):
        found.extend(_split_industry_list(match.group(1)))
    return found


def _from_lists(text: str) -> list[str]:
    found = []
    for match in _LABELLED_LIST_PATTERN.finditer(text):
        found.extend(_split_industry_list(match.group(1)))
    for match in _SLASH_LIST_PATTERN.finditer(text):
        found.extend(_split_industry_list(match.group(1)))
    return found


def _from_vocabulary(text: str) -> list[str]:
    return [m.group(1) for m in _VOCABULARY_PATTERN.finditer(text)]


_INDUSTRY_TABLE: list[Callable[[str], list[str]]] = [
    _from_context,
    _from_lists,
    _from_vocabulary,
]


def _dedupe(items: list[str]) -> list[str]:
    seen: set[str] = set()
    unique = []
    for item in items:
        key = item.lower()
        if key not in seen:
            seen.add(key)
            unique.append(item)
    return unique


def _extract_industries(text: str) -> list[str]:
    for extractor in _INDUSTRY_TABLE:
        industries = _dedupe(extractor(text))
        if industries:
            return industries
    return []


# ── 4. Budget ─────────────────────────────────────────────────────────────────

_AMOUNT = r"(\d[\d,]*(?:\.\d+)?)"

_BUDGET_TABLE: list[re.Pattern] = [
    # Budget > $200k / Budget >= 200,000 / budget: $1.5m
    re.compile(
        r"\bbudget\s*(?:>=|=>|≥|>|=|:)+\s*\$?\s*" + _AMOUNT + r"(k|m)?\b(?![\d,]*\s*%)",
        re.IGNORECASE,
    ),
    # >$200k
    re.compile(r">\s*\$?\s*" + _AMOUNT + r"(k|m)\b", re.IGNORECASE),
    # 200k budget
    re.compile(r"\$?" + _AMOUNT + r"(k|m)\s+budget\b", re.IGNORECASE),
    # budget of at least $200k
    re.compile(r"\bbudget\b.*?\$?" + _AMOUNT + r"(k|m)\b", re.IGNORECASE),
    # $200k anywhere
    re.compile(r"\$?" + _AMOUNT + r"(k|m)\b", re.IGNORECASE),
]


def _extract_min_budget(text: str) -> float:
    for pattern in _BUDGET_TABLE:
        match = pattern.search(text)
        if match:
            budget = _clean_number(_with_suffix(match.group(1), match.group(2)))
            logger.debug("Parsed budget %s from %r", budget, match.group(0))
            return budget
    return 0


# ── Public API ────────────────────────────────────────────────────────────────

def parse(text: Optional[str]) -> ScoringRuleSet:
    """
    Parse natural-language scoring criteria.

    Args:
        text: Free text such as "500+ employees, Tech/SaaS, Budget >$200k".
              None or "" yields the default rule set.

    Returns:
        A ScoringRuleSet. Weights default to size 40 / industry 30 / intent 30
        and are only replaced for the categories the text actually names.
    """
    text = text or ""
    if not isinstance(text, str):
        text = str(text)

    ranges = _extract_employee_ranges(text)
    rules = ScoringRuleSet(
        weights=_extract_weights(text),
        employee_ranges=ranges,
        min_employees=0 if ranges else _extract_min_employees(text),
        target_industries=_extract_industries(text),
        min_budget=_extract_min_budget(text),
        source_text=text,
    )

    logger.debug(
        "Parsed criteria: weights=%s ranges=%d min_employees=%d industries=%s min_budget=%s",
        rules.weights, len(rules.employee_ranges), rules.min_employees,
        rules.target_industries, rules.min_budget,
    )
    return rules
