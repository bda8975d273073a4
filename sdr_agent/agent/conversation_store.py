"""
sdr_agent/agent/conversation_store.py — Loads and saves agent transcripts.

Turns are stored as one JSON array per conversation, in order:
    {"role": "user" | "assistant" | "tool", "content": str,
     "tool_calls"?: [...], "tool_call_id"?: str}
"""

import json
import logging
from typing import Callable, Optional

from sqlalchemy.orm import Session

from sdr_agent.db import repository
from sdr_agent.db.models import Conversation

logger = logging.getLogger(__name__)

Summarizer = Callable[[list[dict]], Optional[str]]


def conversation_metadata(turns: list[dict]) -> dict:
    user_turns = [t for t in turns if t.get("role") == "user"]
    return {
        "messageCount": len(turns),
        "hasToolCalls": any(t.get("tool_calls") for t in turns),
        "lastUserMessage": user_turns[-1].get("content") if user_turns else None,
    }


def decode_turns(conversation: Conversation) -> list[dict]:
    turns = json.loads(conversation.content or "[]")
    return turns if isinstance(turns, list) else []


class SqlConversationStore:
    def __init__(self, db: Session, summarizer: Optional[Summarizer] = None):
        self.db = db
        self.summarizer = summarizer

    def load(self, conversation_id: Optional[str]) -> list[dict]:
        """Ordered turns of a stored conversation; unknown ids give an empty history."""
        if not conversation_id:
            return []
        conversation = repository.get_conversation(self.db, conversation_id)
        if conversation is None:
            logger.info("Conversation %s not found, starting a new one", conversation_id)
            return []
        return decode_turns(conversation)

    def save(
        self,
        turns: list[dict],
        conversation_id: Optional[str] = None,
        lead_id: Optional[str] = None,
    ) -> str:
        """Write the whole transcript and return the conversation id."""
        summary = self.summarizer(turns) if self.summarizer else None
        conversation = repository.save_conversation(
            self.db,
            turns,
            conversation_id=conversation_id,
            lead_id=lead_id,
            summary=summary,
            meta=conversation_metadata(turns),
        )
        logger.debug("Saved conversation %s (%d turns)", conversation.id, len(turns))
        return conversation.id

    def list_for_lead(self, lead_id: str) -> list[Conversation]:
        return repository.list_conversations_for_lead(self.db, lead_id)
