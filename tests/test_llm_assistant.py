"""
tests/test_llm_assistant.py — Unit tests for the LLM helpers and single-shot prompts.

Tests helpers and output parsing WITHOUT making real provider calls.
The single-shot prompts get a mocked
client so tests stay fast and free.
"""

import json
from unittest.mock import MagicMock

from sdr_agent.llm.assistant import (
    enrich_company_data,
    personalize_message,
    qualify_lead,
    summarize_conversation,
)
from sdr_agent.llm.client import ProviderError, ProviderHTTPError
from sdr_agent.llm.prompt_templates import LEAD_QUALIFICATION_PROMPT
from sdr_agent.llm.utils import parse_json_safely, render_messages, truncate_for_context


# ── parse_json_safely ─────────────────────────────────────────────────────────

class TestParseJsonSafely:
    def test_parses_clean_json_object(self):
        text = '{"score": 85, "reasoning": "Large SaaS company"}'
        assert parse_json_safely(text) == {"score": 85, "reasoning": "Large SaaS company"}

    def test_strips_markdown_code_fence(self):
        text = '```json\n{"key": "value"}\n```'
        assert parse_json_safely(text) == {"key": "value"}

    def test_extracts_json_from_surrounding_text(self):
        text = 'Here is the result:\n{"score": 75}\nDone.'
        assert parse_json_safely(text) == {"score": 75}

    def test_returns_none_for_invalid_json(self):
        assert parse_json_safely("This is not JSON at all.") is None

    def test_returns_none_for_none(self):
        assert parse_json_safely(None) is None


# ── truncate_for_context ──────────────────────────────────────────────────────

class TestTruncateForContext:
    def test_short_string_unchanged(self):
        assert truncate_for_context("Short text", max_chars=100) == "Short text"

    def test_long_string_truncated(self):
        result = truncate_for_context("a" * 3000, max_chars=2000)
        assert len(result) == 2003  # 2000 chars + "..."
        assert result.endswith("...")

    def test_none_returns_empty(self):
        assert truncate_for_context(None, max_chars=100) == ""


# ── render_messages ───────────────────────────────────────────────────────────

class TestRenderMessages:
    def test_roles_are_provider_roles(self):
        messages = render_messages(
            LEAD_QUALIFICATION_PROMPT,
            rules="Prefer SaaS",
            company_name="Acme",
            contact_name="Jo",
            industry="SaaS",
            employees="650",
            budget="250000",
            notes="None",
        )
        assert [m["role"] for m in messages] == ["system", "user"]
        assert "Prefer SaaS" in messages[1]["content"]
        assert "Company: Acme" in messages[1]["content"]


# ── qualify_lead (mocked LLM) ─────────────────────────────────────────────────

class TestQualifyLead:
    def test_valid_response(self):
        llm = MagicMock()
        llm.complete.return_value = json.dumps({
            "score": 82,
            "reasoning": "Growing SaaS team with budget.",
            "recommendations": ["Book a demo", "Send case study"],
        })

        result = qualify_lead(llm, {"company_name": "TechCorp", "industry": "SaaS", "employees": 400})

        assert result.score == 82
        assert result.reasoning == "Growing SaaS team with budget."
        assert result.recommendations == ["Book a demo", "Send case study"]

    def test_score_is_clamped(self):
        llm = MagicMock()
        llm.complete.return_value = '{"score": 140, "reasoning": "!!"}'
        assert qualify_lead(llm, {"company_name": "Hype Inc"}).score == 100

    def test_malformed_response_returns_neutral_score(self):
        llm = MagicMock()
        llm.complete.return_value = "Sorry, I cannot help."

        result = qualify_lead(llm, {"company_name": "BadCo"})

        assert result.score == 50
        assert result.raw_response == "Sorry, I cannot help."

    def test_provider_failure_returns_neutral_score(self):
        llm = MagicMock()
        llm.complete.side_effect = ProviderHTTPError(503, "unavailable")

        result = qualify_lead(llm, {"company_name": "DownCo"})

        assert result.score == 50
        assert result.reasoning == "Unable to complete AI analysis"


# ── personalize_message / summarize_conversation ──────────────────────────────

class TestPersonalizeMessage:
    def test_returns_llm_text(self):
        llm = MagicMock()
        llm.complete.return_value = "  Hi Jo, quick note.  "
        assert personalize_message(llm, "Hi {{contact_name}}", {"company_name": "Acme"}) == "Hi Jo, quick note."

    def test_empty_reply_keeps_template(self):
        llm = MagicMock()
        llm.complete.return_value = "   "
        assert personalize_message(llm, "Hi there", {"company_name": "Acme"}) == "Hi there"

    def test_provider_failure_keeps_template(self):
        llm = MagicMock()
        llm.complete.side_effect = ProviderError("down")
        assert personalize_message(llm, "Hi there", {"company_name": "Acme"}) == "Hi there"

    def test_filled_template_is_sent_to_the_provider(self):
        llm = MagicMock()
        llm.complete.return_value = "Hi Jo"
        personalize_message(llm, "Hi Jo, saw Acme is hiring.", {"company_name": "Acme"}, context="Met at SaaStr")
        prompt = llm.complete.call_args[0][0][-1]["content"]
        assert "Hi Jo, saw Acme is hiring." in prompt
        assert "Met at SaaStr" in prompt


class TestSummarizeConversation:
    def test_summary(self):
        llm = MagicMock()
        llm.complete.return_value = "User scored Acme at 100."
        turns = [
            {"role": "user", "content": "Score Acme"},
            {"role": "tool", "tool_call_id": "x", "content": "{}"},
            {"role": "assistant", "content": "Acme scored 100."},
        ]
        assert summarize_conversation(llm, turns) == "User scored Acme at 100."
        prompt = llm.complete.call_args[0][0][-1]["content"]
        assert "user: Score Acme" in prompt
        assert "tool:" not in prompt

    def test_nothing_to_summarize(self):
        llm = MagicMock()
        assert summarize_conversation(llm, []) is None
        llm.complete.assert_not_called()

    def test_provider_failure(self):
        llm = MagicMock()
        llm.complete.side_effect = ProviderError("down")
        assert summarize_conversation(llm, [{"role": "user", "content": "Hi"}]) is None


class TestEnrichCompanyData:
    def test_returns_parsed_research(self):
        llm = MagicMock()
        llm.complete.return_value = '```json\n{"industry": "SaaS", "estimatedSize": 250}\n```'

        data = enrich_company_data(llm, "Acme", "https://acme.io")

        assert data == {"industry": "SaaS", "estimatedSize": 250}
        prompt = llm.complete.call_args[0][0][-1]["content"]
        assert "Company: Acme" in prompt
        assert "Website: https://acme.io" in prompt

    def test_missing_website(self):
        llm = MagicMock()
        llm.complete.return_value = "{}"
        enrich_company_data(llm, "Acme")
        assert "Website: Unknown" in llm.complete.call_args[0][0][-1]["content"]

    def test_non_object_reply(self):
        llm = MagicMock()
        llm.complete.return_value = '["SaaS"]'
        assert enrich_company_data(llm, "Acme") is None

    def test_provider_failure(self):
        llm = MagicMock()
        llm.complete.side_effect = ProviderHTTPError(503, "unavailable")
        assert enrich_company_data(llm, "Acme") is None
