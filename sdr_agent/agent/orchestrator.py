"""
sdr_agent/agent/orchestrator.py — The tool-calling agent loop.

    AWAITING_PROVIDER ──(tool calls)──▶ TOOL_CALLS_REQUESTED ──▶ EXECUTING_TOOLS ─┐
           ▲                                                                      │
           └──────────────────────────────────────────────────────────────────────┘
    AWAITING_PROVIDER ──(plain text)──▶ FINALIZING ──▶ DONE

One run() handles one user message: load history, loop with the provider
until it answers in plain text (or the round limit is hit), persist the
transcript, return the final assistant turn.
"""

import enum
import json
import logging
from dataclasses import dataclass, field
from typing import Optional

from sdr_agent.agent.conversation_store import SqlConversationStore
from sdr_agent.agent.inline_calls import normalize_reply
from sdr_agent.config import settings
from sdr_agent.llm.client import LLMClient, ProviderMessage, ToolCall
from sdr_agent.llm.prompt_templates import AGENT_SYSTEM_PROMPT
from sdr_agent.llm.utils import render_messages
from sdr_agent.tools.catalog import ToolCatalog, ToolExecutionResult

logger = logging.getLogger(__name__)

MAX_ITERATIONS_ERROR = "max_iterations_exceeded"
MAX_ITERATIONS_FALLBACK = (
    "I wasn't able to finish this request within the allowed number of steps. "
    "Here is where I got to; please narrow the request or ask me to continue."
)

# Keys the provider accepts on a conversation turn
_TURN_KEYS = ("role", "content", "tool_calls", "tool_call_id")


class AgentState(str, enum.Enum):
    AWAITING_PROVIDER = "awaiting_provider"
    TOOL_CALLS_REQUESTED = "tool_calls_requested"
    EXECUTING_TOOLS = "executing_tools"
    FINALIZING = "finalizing"
    DONE = "done"


@dataclass
class AgentReply:
    conversation_id: str
    messages: list[dict] = field(default_factory=list)   # the final assistant turn only
    error: Optional[str] = None


class AgentOrchestrator:
    def __init__(
        self,
        llm: LLMClient,
        catalog: ToolCatalog,
        store: SqlConversationStore,
        max_iterations: Optional[int] = None,
    ):
        self.llm = llm
        self.catalog = catalog
        self.store = store
        self.max_iterations = max_iterations or settings.max_agent_iterations

    def run(
        self,
        message: str,
        conversation_id: Optional[str] = None,
        lead_id: Optional[str] = None,
    ) -> AgentReply:
        """
        Process one user message.

        Raises:
            ProviderError: the provider failed after retries. Nothing is saved
                by this method in that case; the caller rolls back.
        """
        history = self.store.load(conversation_id)
        history.append({"role": "user", "content": message})

        state = AgentState.AWAITING_PROVIDER
        reply = ProviderMessage()
        rounds = 0
        error = None

        while state != AgentState.DONE:
            if state == AgentState.AWAITING_PROVIDER:
                reply = self._ask_provider(history)
                state = AgentState.TOOL_CALLS_REQUESTED if reply.tool_calls else AgentState.FINALIZING

            elif state == AgentState.TOOL_CALLS_REQUESTED:
                if rounds >= self.max_iterations:
                    logger.warning(
                        "Agent hit %d tool rounds; stopping with a partial answer", self.max_iterations
                    )
                    error = MAX_ITERATIONS_ERROR
                    reply = ProviderMessage(content=reply.content or MAX_ITERATIONS_FALLBACK)
                    state = AgentState.FINALIZING
                    continue
                rounds += 1
                history.append(reply.to_turn())
                state = AgentState.EXECUTING_TOOLS

            elif state == AgentState.EXECUTING_TOOLS:
                for call in reply.tool_calls:
                    history.append(self._execute(call))
                state = AgentState.AWAITING_PROVIDER

            elif state == AgentState.FINALIZING:
                history.append({"role": "assistant", "content": reply.content})
                state = AgentState.DONE

        saved_id = self.store.save(history, conversation_id=conversation_id, lead_id=lead_id)
        logger.info(
            "Agent run finished: conversation=%s rounds=%d turns=%d", saved_id, rounds, len(history)
        )
        return AgentReply(conversation_id=saved_id, messages=[history[-1]], error=error)

    def _system_turns(self) -> list[dict]:
        return render_messages(AGENT_SYSTEM_PROMPT, tool_descriptions=self.catalog.describe())

    def _ask_provider(self, history: list[dict]) -> ProviderMessage:
        turns = [{k: t[k] for k in _TURN_KEYS if k in t} for t in history]
        reply = self.llm.chat(
            self._system_turns() + turns,
            tools=self.catalog.to_provider_format(),
        )
        return normalize_reply(reply)

    def _execute(self, call: ToolCall) -> dict:
        """Run one tool call and wrap the result as a `tool` turn."""
        try:
            arguments = json.loads(call.arguments) if call.arguments.strip() else {}
        except json.JSONDecodeError as e:
            result = ToolExecutionResult(
                success=False, error=f"Arguments for '{call.name}' are not valid JSON: {e.msg}"
            )
        else:
            if isinstance(arguments, dict):
                result = self.catalog.execute(call.name, arguments)
            else:
                result = ToolExecutionResult(
                    success=False, error=f"Arguments for '{call.name}' must be a JSON object"
                )

        logger.info("Tool %s (%s) → success=%s", call.name, call.id, result.success)
        return {
            "role": "tool",
            "tool_call_id": call.id,
            "content": json.dumps(result.to_dict(), default=str),
        }
