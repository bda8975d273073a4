"""
api/deps.py — FastAPI dependencies shared by the routers.

Each request gets its own DB session, tool catalog and orchestrator; only
the provider client (an HTTP connection pool) is shared.
"""

from functools import lru_cache

from fastapi import Depends
from sqlalchemy.orm import Session

from sdr_agent.agent.conversation_store import SqlConversationStore
from sdr_agent.agent.orchestrator import AgentOrchestrator
from sdr_agent.config import settings
from sdr_agent.db.session import get_db
from sdr_agent.llm.assistant import summarize_conversation
from sdr_agent.llm.client import LLMClient
from sdr_agent.tools.catalog import ToolCatalog
from sdr_agent.tools.registry import build_catalog


@lru_cache(maxsize=1)
def get_llm_client() -> LLMClient:
    return LLMClient()


def get_catalog(
    db: Session = Depends(get_db),
    llm: LLMClient = Depends(get_llm_client),
) -> ToolCatalog:
    return build_catalog(db, llm)


def get_conversation_store(
    db: Session = Depends(get_db),
    llm: LLMClient = Depends(get_llm_client),
) -> SqlConversationStore:
    summarizer = None
    if settings.summarize_conversations:
        summarizer = lambda turns: summarize_conversation(llm, turns)  # noqa: E731
    return SqlConversationStore(db, summarizer=summarizer)


def get_orchestrator(
    llm: LLMClient = Depends(get_llm_client),
    catalog: ToolCatalog = Depends(get_catalog),
    store: SqlConversationStore = Depends(get_conversation_store),
) -> AgentOrchestrator:
    return AgentOrchestrator(llm, catalog, store)
