"""
tests/test_tools.py — Tool executors against an in-memory database.

The LLM client is a MagicMock; only generate_message and evaluate_scoring
talk to it.
"""

import json
from datetime import timedelta
from unittest.mock import MagicMock

import pytest

from sdr_agent.db import repository
from sdr_agent.db.models import (
    Activity,
    ActivityType,
    EvaluationResult,
    EvaluationTest,
    Lead,
    LeadStage,
    Message,
    utcnow,
)
from sdr_agent.llm.client import ProviderError
from sdr_agent.scoring.criteria_parser import ScoringRuleSet
from sdr_agent.tools.insight_tools import parse_natural_language_query
from sdr_agent.tools.registry import build_catalog


@pytest.fixture
def llm():
    return MagicMock()


@pytest.fixture
def catalog(db, llm):
    return build_catalog(db, llm)


def add_lead(db, company, stage=LeadStage.NEW, score=0, **fields):
    slug = company.lower().replace(" ", "")
    lead = repository.upsert_lead(db, f"{slug}@example.com", company_name=company, **fields)
    lead.stage = stage
    lead.score = score
    db.flush()
    return lead


# ── score_lead ────────────────────────────────────────────────────────────────

class TestScoreLead:
    def test_scores_and_persists_new_lead(self, db, catalog):
        result = catalog.execute("score_lead", {
            "companyName": "Acme Corp",
            "employees": 650,
            "industry": "SaaS",
            "budget": 250000,
            "criteria": "500+ employees, Tech/SaaS, Budget >$200k",
        })

        assert result.success is True
        data = result.data
        assert data["score"] == 100
        assert data["stage"] == "QUALIFIED"
        assert data["previousStage"] == "NEW"
        assert data["recommendation"].startswith("High potential")
        assert [e["category"] for e in data["breakdown"]] == ["Company Size", "Industry Fit", "Budget"]

        lead = repository.get_lead(db, data["leadId"])
        assert lead.email == "acmecorp@temp.com"
        assert lead.contact_name == "Unknown"
        assert lead.score == 100
        assert lead.stage == LeadStage.QUALIFIED

        history = repository.get_score_history(db, lead.id)
        assert len(history) == 1
        assert history[0].details["rules"]["min_budget"] == 200000
        types = {a.type for a in repository.get_activities(db, lead.id)}
        assert types == {ActivityType.SCORE_UPDATED, ActivityType.STAGE_CHANGED}

    def test_auto_advance_does_not_touch_last_contacted(self, db, catalog):
        result = catalog.execute("score_lead", {"companyName": "Acme", "employees": 650, "industry": "SaaS"})
        lead = repository.get_lead(db, result.data["leadId"])
        assert lead.last_contacted_at is None

    def test_same_email_updates_existing_lead(self, db, catalog):
        catalog.execute("score_lead", {"companyName": "Acme", "email": "jo@acme.com", "employees": 20})
        result = catalog.execute("score_lead", {"companyName": "Acme", "email": "jo@acme.com", "employees": 900})

        assert db.query(Lead).count() == 1
        lead = repository.get_lead(db, result.data["leadId"])
        assert lead.employees == 900
        assert len(repository.get_score_history(db, lead.id)) == 2

    def test_mid_score_advances_to_contacted(self, db, catalog):
        result = catalog.execute("score_lead", {"companyName": "Acme", "employees": 100, "industry": "SaaS"})
        # 30 + 30 + 0
        assert result.data["score"] == 60
        assert result.data["stage"] == "CONTACTED"
        lead = repository.get_lead(db, result.data["leadId"])
        assert lead.last_contacted_at is None

    def test_low_score_stays_new(self, db, catalog):
        result = catalog.execute("score_lead", {"companyName": "Tiny Shop", "employees": 5, "industry": "Retail"})
        # 10 + 15 + 0
        assert result.data["score"] == 25
        assert result.data["stage"] == "NEW"
        assert "previousStage" not in result.data

    def test_late_stage_is_not_auto_advanced(self, db, catalog):
        lead = add_lead(db, "Big Deal", stage=LeadStage.NEGOTIATION)
        result = catalog.execute("score_lead", {"companyName": "Big Deal", "email": lead.email, "employees": 5})
        assert result.data["stage"] == "NEGOTIATION"
        assert lead.stage == LeadStage.NEGOTIATION

    def test_without_criteria_uses_active_saved_criteria(self, db, catalog):
        rules = ScoringRuleSet(target_industries=["Retail"], min_employees=1, source_text="Retail push")
        repository.create_scoring_criteria(db, "Retail push", rules.snapshot(), activate=True)

        result = catalog.execute("score_lead", {"companyName": "Tiny Shop", "employees": 5, "industry": "Retail"})

        # 40 + 30 + 0
        assert result.data["score"] == 70
        history = repository.get_score_history(db, result.data["leadId"])
        assert history[0].criteria_used == "Retail push"
        assert history[0].details["rules"] == rules.snapshot()

    def test_explicit_criteria_override_active_criteria(self, db, catalog):
        rules = ScoringRuleSet(target_industries=["Retail"], min_employees=1)
        repository.create_scoring_criteria(db, "Retail push", rules.snapshot(), activate=True)

        result = catalog.execute("score_lead", {
            "companyName": "Tiny Shop", "employees": 5, "industry": "Retail", "criteria": "SaaS",
        })

        history = repository.get_score_history(db, result.data["leadId"])
        assert history[0].criteria_used == "SaaS"
        assert history[0].details["rules"]["target_industries"] != ["Retail"]

    def test_missing_company_name_is_rejected(self, catalog):
        result = catalog.execute("score_lead", {"employees": 100})
        assert result.success is False
        assert "Invalid parameters" in result.error


# ── rescore_lead ──────────────────────────────────────────────────────────────

class TestRescoreLead:
    def test_campaign_criteria(self, db, catalog):
        lead = add_lead(db, "Shop Co", employees=300, industry="Retail", budget=50000)

        result = catalog.execute("rescore_lead", {
            "leadId": lead.id,
            "criteriaName": "Q3 SaaS push",
            "targetIndustries": ["SaaS"],
            "minBudget": 100000,
        })

        data = result.data
        # (15 + 0 + 15) / 90
        assert data["score"] == 33
        assert data["meetsCustomCriteria"] == {"industry": False, "budget": False, "companySize": True}
        assert data["recommendation"] == "Does not meet campaign criteria"
        assert repository.get_score_history(db, lead.id)[0].criteria_used == "Q3 SaaS push"

    def test_all_criteria_met(self, db, catalog):
        lead = add_lead(db, "Cloud Co", employees=800, industry="Software", budget=300000)
        result = catalog.execute("rescore_lead", {
            "leadId": lead.id,
            "targetIndustries": ["SaaS"],
            "minBudget": 100000,
            "minCompanySize": 500,
        })
        assert result.data["score"] == 100
        assert result.data["recommendation"] == "High priority for this campaign"

    def test_campaign_criteria_are_saved_and_activated(self, db, catalog):
        lead = add_lead(db, "Shop Co", employees=300, industry="Retail")

        result = catalog.execute("rescore_lead", {
            "leadId": lead.id,
            "criteriaName": "Q3 SaaS push",
            "targetIndustries": ["SaaS"],
        })

        active = repository.get_active_scoring_criteria(db)
        assert active.id == result.data["criteriaId"]
        assert result.data["criteriaActive"] is True
        assert active.name == "Q3 SaaS push"
        assert active.rules["target_industries"] == ["SaaS"]
        assert active.rules["weights"] == {"size": 20, "industry": 40, "intent": 20, "ceiling": 80}

    def test_set_active_false_keeps_previous_default(self, db, catalog):
        lead = add_lead(db, "Shop Co", employees=300, industry="Retail")
        first = catalog.execute("rescore_lead", {"leadId": lead.id, "criteriaName": "Default push"})
        second = catalog.execute("rescore_lead", {
            "leadId": lead.id, "criteriaName": "Trial", "setActive": False,
        })

        assert second.data["criteriaActive"] is False
        assert repository.get_active_scoring_criteria(db).id == first.data["criteriaId"]
        assert len(repository.list_scoring_criteria(db)) == 2

    def test_unknown_lead(self, catalog):
        result = catalog.execute("rescore_lead", {"leadId": "missing"})
        assert result.to_dict() == {"success": False, "error": "Lead not found: missing"}


# ── update_lead_stage ─────────────────────────────────────────────────────────

class TestUpdateLeadStage:
    def test_moves_stage_and_logs_activity(self, db, catalog):
        lead = add_lead(db, "Acme")

        result = catalog.execute("update_lead_stage", {
            "leadId": lead.id,
            "stage": "meeting scheduled",
            "notes": "Demo booked for Tuesday",
        })

        assert result.data["oldStage"] == "NEW"
        assert result.data["newStage"] == "MEETING_SCHEDULED"
        assert lead.stage == LeadStage.MEETING_SCHEDULED
        assert lead.last_contacted_at is not None
        activity = db.query(Activity).filter(Activity.type == ActivityType.STAGE_CHANGED).one()
        assert "Demo booked for Tuesday" in activity.description
        assert activity.meta["to"] == "MEETING_SCHEDULED"

    def test_invalid_stage(self, db, catalog):
        lead = add_lead(db, "Acme")
        result = catalog.execute("update_lead_stage", {"leadId": lead.id, "stage": "ON_HOLD"})
        assert result.success is False
        assert lead.stage == LeadStage.NEW


# ── enrich_lead ───────────────────────────────────────────────────────────────

class TestEnrichLead:
    def test_fills_missing_fields_and_logs_activity(self, db, catalog, llm):
        lead = add_lead(db, "Acme", website="https://acme.io")
        research = {
            "industry": "SaaS",
            "estimatedSize": "200-500 employees",
            "location": "Berlin",
            "description": "Billing software",
        }
        llm.complete.return_value = json.dumps(research)

        result = catalog.execute("enrich_lead", {"leadId": lead.id})

        assert result.success is True
        assert result.data["updatedFields"] == ["industry", "employees", "company_size"]
        assert lead.industry == "SaaS"
        assert lead.employees == 350
        assert lead.company_size == "200-500 employees"
        assert lead.enriched_data == research
        activity = db.query(Activity).filter(Activity.type == ActivityType.LEAD_ENRICHED).one()
        assert activity.meta["updated"] == ["industry", "employees", "company_size"]

    def test_known_values_are_kept(self, db, catalog, llm):
        lead = add_lead(db, "Acme", industry="Fintech", employees=80)
        llm.complete.return_value = json.dumps({"industry": "Banking", "estimatedSize": 1200})

        result = catalog.execute("enrich_lead", {"leadId": lead.id})

        assert result.data["updatedFields"] == ["company_size"]
        assert lead.industry == "Fintech"
        assert lead.employees == 80
        assert lead.company_size == "1200"

    def test_provider_failure_changes_nothing(self, db, catalog, llm):
        lead = add_lead(db, "Acme")
        llm.complete.side_effect = ProviderError("provider down")

        result = catalog.execute("enrich_lead", {"leadId": lead.id})

        assert result.to_dict() == {"success": False, "error": "Could not enrich company data for Acme"}
        assert lead.enriched_data is None
        assert db.query(Activity).filter(Activity.type == ActivityType.LEAD_ENRICHED).count() == 0

    def test_unknown_lead(self, catalog, llm):
        result = catalog.execute("enrich_lead", {"leadId": "missing"})
        assert result.error == "Lead not found: missing"
        llm.complete.assert_not_called()


# ── generate_message ──────────────────────────────────────────────────────────

class TestGenerateMessage:
    def test_personalised_draft_is_stored(self, db, catalog, llm):
        lead = add_lead(db, "Acme", contact_name="Jo", industry="SaaS")
        llm.complete.return_value = "Hi Jo, tailored note for Acme."

        result = catalog.execute("generate_message", {"leadId": lead.id, "messageType": "demo_request"})

        assert result.data["content"] == "Hi Jo, tailored note for Acme."
        assert result.data["subject"] == "Reaching out to Acme"
        message = db.get(Message, result.data["messageId"])
        assert message.content.startswith("Hi Jo, I'd love to show you how we can help Acme")
        assert message.personalized_content == "Hi Jo, tailored note for Acme."

    def test_falls_back_to_template_when_provider_fails(self, db, catalog, llm):
        lead = add_lead(db, "Acme", contact_name="Jo", industry="SaaS")
        llm.complete.side_effect = ProviderError("provider down")

        result = catalog.execute("generate_message", {"leadId": lead.id})

        assert result.success is True
        assert result.data["messageType"] == "introduction"
        assert result.data["content"].startswith("Hi Jo, I noticed Acme is in the SaaS space.")


# ── search_database ───────────────────────────────────────────────────────────

class TestSearchDatabase:
    def test_parse_natural_language_query(self):
        filters = parse_natural_language_query(
            "qualified SaaS leads with score > 70 that haven't been contacted in 2 weeks"
        )
        assert filters == {
            "min_score": 70.0,
            "industry": "SaaS",
            "stage": LeadStage.QUALIFIED,
            "not_contacted_days": 14,
        }

    def test_not_contacted_phrase_is_not_a_stage(self):
        assert parse_natural_language_query("leads not contacted in 10 days") == {"not_contacted_days": 10}

    def test_budget_and_closed_won(self):
        filters = parse_natural_language_query("closed won deals with budget over $150k")
        assert filters == {"min_budget": 150000.0, "stage": LeadStage.CLOSED_WON}

    def test_search_leads(self, db, catalog):
        add_lead(db, "High SaaS", score=85, industry="SaaS")
        add_lead(db, "Low SaaS", score=40, industry="SaaS")
        add_lead(db, "High Retail", score=90, industry="Retail")

        result = catalog.execute("search_database", {"query": "SaaS leads with score above 70"})

        companies = [lead["companyName"] for lead in result.data["leads"]]
        assert companies == ["High SaaS"]
        assert result.data["filters"] == {"min_score": 70.0, "industry": "SaaS"}
        assert result.data["summary"].startswith("Found 1 leads")

    def test_explicit_filters_override_query(self, db, catalog):
        add_lead(db, "High SaaS", score=85, industry="SaaS", stage=LeadStage.QUALIFIED)
        result = catalog.execute("search_database", {
            "query": "SaaS leads",
            "filters": {"stage": "closed won"},
        })
        assert result.data["leads"] == []
        assert result.data["filters"]["stage"] == "CLOSED_WON"

    def test_recently_contacted_excluded(self, db, catalog):
        fresh = add_lead(db, "Fresh", score=50)
        fresh.last_contacted_at = utcnow() - timedelta(days=1)
        stale = add_lead(db, "Stale", score=50)
        stale.last_contacted_at = utcnow() - timedelta(days=30)
        db.flush()

        result = catalog.execute("search_database", {"query": "leads not contacted in 7 days"})
        assert [lead["companyName"] for lead in result.data["leads"]] == ["Stale"]

    def test_conversations(self, db, catalog):
        repository.save_conversation(db, [{"role": "user", "content": "Tell me about Globex"}])
        result = catalog.execute("search_database", {"query": "Globex", "entityType": "conversations"})
        assert len(result.data["conversations"]) == 1
        assert "leads" not in result.data

    def test_no_results(self, catalog):
        result = catalog.execute("search_database", {"query": "anything", "entityType": "all"})
        assert result.data["summary"] == 'No results found for: "anything"'


# ── analyze_pipeline ──────────────────────────────────────────────────────────

class TestAnalyzePipeline:
    def test_empty_pipeline(self, catalog):
        result = catalog.execute("analyze_pipeline", {})
        assert result.data["totalLeads"] == 0
        assert result.data["insights"] == ["No leads in pipeline - start adding leads to track metrics"]
        assert len(result.data["stageDistribution"]) == len(LeadStage)

    def test_bottleneck_and_new_stage_insight(self, db, catalog):
        for i in range(6):
            add_lead(db, f"Lead {i}", score=50)
        add_lead(db, "Winner", stage=LeadStage.CLOSED_WON, score=90)

        data = catalog.execute("analyze_pipeline", {"analysisType": "health"}).data

        assert data["totalLeads"] == 7
        assert data["bottlenecks"][0]["stage"] == "NEW"
        assert data["bottlenecks"][0]["leadsStuck"] == 6
        assert data["conversionRates"]["winRate"] == "100.0%"
        assert data["averageScore"] == pytest.approx(55.7)
        assert "Major bottleneck at NEW stage with 6 leads" in data["insights"]
        assert "Most leads are in NEW stage - increase outreach efforts" in data["insights"]

    def test_conversion_only(self, db, catalog):
        add_lead(db, "Won", stage=LeadStage.CLOSED_WON)
        add_lead(db, "Lost 1", stage=LeadStage.CLOSED_LOST)
        add_lead(db, "Lost 2", stage=LeadStage.CLOSED_LOST)
        add_lead(db, "Lost 3", stage=LeadStage.CLOSED_LOST)
        add_lead(db, "Lost 4", stage=LeadStage.CLOSED_LOST)
        add_lead(db, "Lost 5", stage=LeadStage.CLOSED_LOST)

        data = catalog.execute("analyze_pipeline", {"analysisType": "conversion"}).data

        assert "bottlenecks" not in data
        assert data["conversionRates"]["winRate"] == "16.7%"
        assert "Low win rate - consider reviewing qualification criteria" in data["insights"]


# ── find_similar_leads ────────────────────────────────────────────────────────

class TestFindSimilarLeads:
    def test_no_reference(self, catalog):
        result = catalog.execute("find_similar_leads", {})
        assert result.error == "No reference lead found"

    def test_uses_best_closed_won_lead(self, db, catalog):
        add_lead(db, "Won Big", stage=LeadStage.CLOSED_WON, score=85, industry="SaaS", employees=400)
        add_lead(db, "Lookalike", score=80, industry="SaaS", employees=300)
        add_lead(db, "Too Small", score=80, industry="SaaS", employees=50)
        add_lead(db, "Wrong Industry", score=80, industry="Retail", employees=300)

        data = catalog.execute("find_similar_leads", {}).data

        assert data["referenceLead"]["company"] == "Won Big"
        assert [lead["companyName"] for lead in data["similarLeads"]] == ["Lookalike"]
        assert data["matchCriteria"] == "all"

    def test_industry_only(self, db, catalog):
        reference = add_lead(db, "Ref", score=85, industry="SaaS", employees=400)
        add_lead(db, "Too Small", score=20, industry="SaaS", employees=50)

        data = catalog.execute("find_similar_leads", {
            "referenceLeadId": reference.id,
            "similarityType": "industry",
        }).data

        assert [lead["companyName"] for lead in data["similarLeads"]] == ["Too Small"]


# ── evaluate_scoring ──────────────────────────────────────────────────────────

class TestEvaluateScoring:
    def test_accuracy_and_persistence(self, db, catalog, llm):
        llm.complete.side_effect = [
            json.dumps({"score": 72, "reasoning": "Good fit", "recommendations": []}),
            json.dumps({"score": 95, "reasoning": "Great fit", "recommendations": []}),
        ]

        result = catalog.execute("evaluate_scoring", {
            "testSetName": "smoke",
            "testLeads": [
                {"companyName": "Acme", "industry": "SaaS", "expectedScore": 70},
                {"companyName": "Shop", "industry": "Retail", "expectedScore": 50},
            ],
        })

        data = result.data
        assert data["accuracy"] == "1/2 scored correctly"
        assert data["accuracyPercent"] == 50.0
        assert data["overvalued"] == [{"lead": "Shop", "modelScore": 95, "expected": 50}]
        assert data["undervalued"] == []

        assert db.query(EvaluationTest).count() == 1
        stored = db.query(EvaluationResult).one()
        assert stored.performance_score == 50.0
        assert stored.actual_output["correct"] == 1

    def test_provider_failure_uses_neutral_score(self, catalog, llm):
        llm.complete.side_effect = ProviderError("down")
        result = catalog.execute("evaluate_scoring", {
            "testSetName": "fallback",
            "testLeads": [{"companyName": "Acme"}],
        })
        # default expected score 50 and neutral model score 50
        assert result.data["accuracy"] == "1/1 scored correctly"

    def test_requires_test_leads(self, catalog):
        result = catalog.execute("evaluate_scoring", {"testSetName": "empty", "testLeads": []})
        assert result.success is False
