"""
api/endpoints/agent_routes.py — Chat with the SDR agent.

POST   /agent/chat                          — Send a message, get the agent's reply
GET    /agent/conversations/{id}            — Full transcript of a conversation
GET    /agent/lead/{lead_id}/conversations  — Conversations attached to a lead
GET    /agent/tools                         — Tools the agent can call
"""

import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from api.deps import get_catalog, get_conversation_store, get_orchestrator
from api.schemas import ChatRequest, ChatResponse, ConversationDetail, ConversationOut, ToolOut
from sdr_agent.agent.conversation_store import SqlConversationStore
from sdr_agent.agent.orchestrator import AgentOrchestrator
from sdr_agent.db import repository
from sdr_agent.db.session import get_db
from sdr_agent.llm.client import ProviderError
from sdr_agent.tools.catalog import ToolCatalog

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/chat", response_model=ChatResponse, response_model_exclude_none=True, summary="Chat with the agent")
def chat(
    payload: ChatRequest,
    db: Session = Depends(get_db),
    orchestrator: AgentOrchestrator = Depends(get_orchestrator),
):
    """
    Run one agent turn. Tool calls requested by the model are executed before
    the reply is returned; only the final assistant message is included.

    Any provider or database failure rolls the whole request back.
    """
    if payload.lead_id and repository.get_lead(db, payload.lead_id) is None:
        raise HTTPException(status_code=404, detail=f"Lead {payload.lead_id} not found.")

    try:
        reply = orchestrator.run(
            payload.message,
            conversation_id=payload.conversation_id,
            lead_id=payload.lead_id,
        )
    except (ProviderError, SQLAlchemyError):
        logger.exception("Agent chat failed (conversation=%s)", payload.conversation_id)
        raise HTTPException(status_code=500, detail="Failed to process chat")

    return ChatResponse(
        conversation_id=reply.conversation_id,
        messages=reply.messages,
        error=reply.error,
    )


@router.get("/conversations/{conversation_id}", response_model=ConversationDetail, summary="Get a conversation")
def get_conversation(
    conversation_id: str,
    store: SqlConversationStore = Depends(get_conversation_store),
):
    if repository.get_conversation(store.db, conversation_id) is None:
        raise HTTPException(status_code=404, detail=f"Conversation {conversation_id} not found.")
    return ConversationDetail(id=conversation_id, messages=store.load(conversation_id))


@router.get("/lead/{lead_id}/conversations", response_model=list[ConversationOut], summary="Conversations for a lead")
def lead_conversations(
    lead_id: str,
    store: SqlConversationStore = Depends(get_conversation_store),
):
    return store.list_for_lead(lead_id)


@router.get("/tools", response_model=list[ToolOut], summary="List agent tools")
def list_tools(catalog: ToolCatalog = Depends(get_catalog)):
    return [
        ToolOut(name=d.name, description=d.description, parameters=d.parameters)
        for d in catalog.list()
    ]
