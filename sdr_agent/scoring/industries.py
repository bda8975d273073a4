"""
sdr_agent/scoring/industries.py — Industry vocabulary shared by the parser and the engine.

  KNOWN_INDUSTRIES    : words the criteria parser recognises on their own
  INDUSTRY_SYNONYMS   : synonym classes used when matching a lead's industry
  HIGH_VALUE_PATTERN  : industries that earn full weight when no targets are set
"""

import re

KNOWN_INDUSTRIES = (
    "SaaS",
    "Tech",
    "Technology",
    "Finance",
    "Financial",
    "Healthcare",
    "Retail",
    "Manufacturing",
    "Software",
)

INDUSTRY_SYNONYMS: dict[str, tuple[str, ...]] = {
    "tech": ("technology", "tech", "technical"),
    "technology": ("technology", "tech", "technical"),
    "saas": ("saas", "software", "software as a service"),
    "software": ("software", "saas"),
    "finance": ("finance", "financial", "fintech", "banking"),
    "financial": ("finance", "financial", "fintech", "banking"),
    "healthcare": ("healthcare", "health", "medical", "pharma"),
    "health": ("healthcare", "health", "medical"),
    "retail": ("retail", "ecommerce", "e-commerce"),
    "ecommerce": ("retail", "ecommerce", "e-commerce"),
}

HIGH_VALUE_PATTERN = re.compile(r"saas|tech|software", re.IGNORECASE)


def _variations(industry: str) -> tuple[str, ...]:
    key = industry.strip().lower()
    return INDUSTRY_SYNONYMS.get(key, (key,))


def industries_match(target: str, industry: str) -> bool:
    """
    True if a lead's industry satisfies one target industry.

    Matches when the two are equal ignoring case, or when their synonym
    classes overlap ("SaaS" vs "Software", "Tech" vs "Technology").
    """
    if not target or not industry:
        return False
    if target.strip().lower() == industry.strip().lower():
        return True
    lead_variations = _variations(industry)
    return any(v in lead_variations for v in _variations(target))


def matches_any(targets: list[str], industry: str) -> bool:
    """True if the industry matches at least one of the targets."""
    return any(industries_match(t, industry) for t in targets)


def is_high_value(industry: str) -> bool:
    return bool(industry) and HIGH_VALUE_PATTERN.search(industry) is not None
