"""
tests/test_db.py — Unit tests for the repository and database layer.

Uses an in-memory SQLite database (via the `db` fixture in conftest.py) so
no real PostgreSQL connection is required. Tests run fast and fully in isolation.
"""

from sdr_agent.db import repository
from sdr_agent.db.models import ActivityType, Conversation, Lead, LeadStage


def make_lead(db, email="jo@acme.com", company="Acme Corp", **fields) -> Lead:
    return repository.upsert_lead(db, email, company_name=company, **fields)


# ── Lead ─────────────────────────────────────────────────────────────────────

class TestUpsertLead:
    def test_creates_new_lead(self, db):
        lead = make_lead(db, employees=120)
        assert lead.id is not None
        assert lead.stage == LeadStage.NEW
        assert lead.score == 0
        assert lead.contact_name == "Unknown"
        assert lead.employees == 120

    def test_updates_existing_lead_by_email(self, db):
        first = make_lead(db, industry="Retail")
        second = make_lead(db, industry="SaaS", budget=50000)
        assert first.id == second.id
        assert second.industry == "SaaS"
        assert db.query(Lead).count() == 1

    def test_none_values_do_not_overwrite(self, db):
        make_lead(db, industry="SaaS")
        lead = make_lead(db, industry=None)
        assert lead.industry == "SaaS"

    def test_unknown_fields_are_ignored(self, db):
        lead = make_lead(db, stage=LeadStage.CLOSED_WON, score=99)
        assert lead.stage == LeadStage.NEW
        assert lead.score == 0


class TestListLeads:
    def test_orders_by_score_and_filters(self, db):
        low = make_lead(db, "a@low.com", "Low Co")
        high = make_lead(db, "b@high.com", "High Co")
        low.score, high.score = 20, 90
        high.stage = LeadStage.QUALIFIED
        db.flush()

        assert [lead.company_name for lead in repository.list_leads(db)] == ["High Co", "Low Co"]
        assert repository.list_leads(db, stage=LeadStage.QUALIFIED) == [high]
        assert repository.list_leads(db, search="low") == [low]
        assert repository.list_leads(db, limit=1, offset=1) == [low]


# ── Stage / score ─────────────────────────────────────────────────────────────

class TestStageAndScore:
    def test_update_stage_logs_activity(self, db):
        lead = make_lead(db)
        old = repository.update_lead_stage(db, lead, LeadStage.CONTACTED, notes="Called")

        assert old == LeadStage.NEW
        assert lead.stage == LeadStage.CONTACTED
        assert lead.last_contacted_at is not None
        (activity,) = repository.get_activities(db, lead.id)
        assert activity.type == ActivityType.STAGE_CHANGED
        assert activity.description == "Stage changed from NEW to CONTACTED. Called"

    def test_record_score(self, db):
        lead = make_lead(db)
        breakdown = [{"category": "Budget", "points": 30, "ceiling": 30, "rationale": "ok"}]

        repository.record_score(db, lead, 72, breakdown, {"min_budget": 0}, "custom rules")

        assert lead.score == 72
        (history,) = repository.get_score_history(db, lead.id)
        assert history.criteria_used == "custom rules"
        assert history.details == {"breakdown": breakdown, "rules": {"min_budget": 0}}
        (activity,) = repository.get_activities(db, lead.id)
        assert activity.type == ActivityType.SCORE_UPDATED
        assert activity.description == "Lead scored: 72/100"


# ── Conversation ─────────────────────────────────────────────────────────────

class TestConversation:
    def test_creates_and_updates_in_place(self, db):
        turns = [{"role": "user", "content": "Hi"}]
        created = repository.save_conversation(db, turns, meta={"messageCount": 1})

        turns.append({"role": "assistant", "content": "Hello"})
        updated = repository.save_conversation(db, turns, conversation_id=created.id, meta={"messageCount": 2})

        assert updated.id == created.id
        assert db.query(Conversation).count() == 1
        assert updated.meta == {"messageCount": 2}
        assert '"Hello"' in updated.content

    def test_unknown_id_keeps_requested_id(self, db):
        conversation = repository.save_conversation(db, [], conversation_id="client-chosen-id")
        assert conversation.id == "client-chosen-id"
        assert repository.get_conversation(db, "client-chosen-id") is conversation

    def test_lead_is_attached_later(self, db):
        lead = make_lead(db)
        conversation = repository.save_conversation(db, [])
        repository.save_conversation(db, [], conversation_id=conversation.id, lead_id=lead.id)
        assert repository.list_conversations_for_lead(db, lead.id) == [conversation]


# ── Pipeline ─────────────────────────────────────────────────────────────────

class TestPipeline:
    def test_stage_counts_zero_filled(self, db):
        make_lead(db)
        counts = repository.stage_counts(db)
        assert list(counts) == list(LeadStage)
        assert counts[LeadStage.NEW] == 1
        assert counts[LeadStage.CLOSED_WON] == 0

    def test_lead_stats(self, db):
        a = make_lead(db, "a@x.com", "A")
        b = make_lead(db, "b@x.com", "B")
        a.score, b.score = 80, 61
        db.flush()

        stats = repository.lead_stats(db)

        assert stats["total"] == 2
        assert stats["average_score"] == 70.5
        assert stats["by_stage"]["NEW"] == 2

    def test_empty_stats(self, db):
        assert repository.lead_stats(db)["average_score"] == 0.0

    def test_score_distribution_and_industries(self, db):
        a = make_lead(db, "a@x.com", "A", industry="SaaS")
        b = make_lead(db, "b@x.com", "B", industry="SaaS")
        c = make_lead(db, "c@x.com", "C", industry="Retail")
        a.score, b.score, c.score = 100, 70, 10
        db.flush()

        assert repository.score_distribution(db) == {"80-100": 1, "60-79": 1, "40-59": 0, "0-39": 1}
        assert repository.average_score_by_industry(db) == [("SaaS", 85.0, 2), ("Retail", 10.0, 1)]

    def test_best_closed_won_lead(self, db):
        assert repository.get_best_closed_won_lead(db) is None
        lead = make_lead(db)
        lead.stage = LeadStage.CLOSED_WON
        db.flush()
        assert repository.get_best_closed_won_lead(db) is lead


# ── Enrichment ────────────────────────────────────────────────────────────────

class TestEnrichment:
    def test_record_enrichment_applies_only_changed_lead_fields(self, db):
        lead = make_lead(db, industry="SaaS")
        data = {"industry": "SaaS", "location": "Berlin"}

        changed = repository.record_enrichment(
            db, lead, data, {"industry": "SaaS", "employees": 40, "score": 99, "company_size": None},
        )

        assert changed == ["employees"]
        assert lead.employees == 40
        assert lead.score == 0
        assert lead.enriched_data == data
        activity = next(a for a in repository.get_activities(db, lead.id) if a.type == ActivityType.LEAD_ENRICHED)
        assert activity.description == "Company data enriched (employees)"


# ── Scoring criteria ──────────────────────────────────────────────────────────

class TestScoringCriteria:
    RULES = {"weights": {"size": 40, "industry": 30, "intent": 30, "ceiling": 100}}

    def test_no_active_criteria_by_default(self, db):
        repository.create_scoring_criteria(db, "Draft", self.RULES)
        assert repository.get_active_scoring_criteria(db) is None

    def test_only_one_criteria_is_active(self, db):
        first = repository.create_scoring_criteria(db, "First", self.RULES, activate=True)
        second = repository.create_scoring_criteria(db, "Second", self.RULES, activate=True)

        assert second.is_active is True
        assert first.is_active is False
        assert repository.get_active_scoring_criteria(db).id == second.id

        repository.activate_scoring_criteria(db, first)
        assert repository.get_active_scoring_criteria(db).id == first.id
        assert [c.name for c in repository.list_scoring_criteria(db) if c.is_active] == ["First"]

    def test_unknown_id(self, db):
        assert repository.get_scoring_criteria(db, "missing") is None
