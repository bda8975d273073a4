"""
scripts/chat.py — Talk to the SDR agent from the terminal.

Each message runs in its own transaction, exactly like one POST /agent/chat.

Usage:
    python scripts/chat.py "Score Acme Corp, 650 employees, SaaS, budget $250k"
    python scripts/chat.py --conversation-id <id>        # interactive, resume
    python scripts/chat.py --lead-id <id>                # attach to a lead
"""

import argparse
import logging
import sys
import os
from typing import Optional

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

logging.basicConfig(
    level=logging.WARNING,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

# ── Imports ───────────────────────────────────────────────────────────────────

from sdr_agent.agent.conversation_store import SqlConversationStore
from sdr_agent.agent.orchestrator import AgentOrchestrator, AgentReply
from sdr_agent.db.session import get_session
from sdr_agent.llm.client import LLMClient, ProviderError
from sdr_agent.tools.registry import build_catalog


# ── Helpers ───────────────────────────────────────────────────────────────────

def send(llm: LLMClient, message: str, conversation_id: Optional[str], lead_id: Optional[str]) -> AgentReply:
    with get_session() as db:
        orchestrator = AgentOrchestrator(llm, build_catalog(db, llm), SqlConversationStore(db))
        return orchestrator.run(message, conversation_id=conversation_id, lead_id=lead_id)


def _print_reply(reply: AgentReply) -> None:
    for turn in reply.messages:
        print(f"\n🤖 {turn.get('content') or ''}\n")
    if reply.error:
        print(f"⚠️  {reply.error}")


# ── Entry point ───────────────────────────────────────────────────────────────

def main():
    parser = argparse.ArgumentParser(description="AI SDR Agent — terminal chat")
    parser.add_argument("message", nargs="?", help="Send one message and exit")
    parser.add_argument("--conversation-id", default=None, help="Continue an existing conversation")
    parser.add_argument("--lead-id", default=None, help="Attach the conversation to a lead")
    args = parser.parse_args()

    llm = LLMClient()
    conversation_id = args.conversation_id

    if args.message:
        try:
            reply = send(llm, args.message, conversation_id, args.lead_id)
        except ProviderError as exc:
            logger.error("Chat failed: %s", exc)
            sys.exit(1)
        _print_reply(reply)
        print(f"   conversation: {reply.conversation_id}")
        return

    print("Type a message, or 'exit' to quit.")
    while True:
        try:
            message = input("you> ").strip()
        except (EOFError, KeyboardInterrupt):
            print()
            break
        if not message:
            continue
        if message.lower() in {"exit", "quit"}:
            break
        try:
            reply = send(llm, message, conversation_id, args.lead_id)
        except ProviderError as exc:
            print(f"❌ {exc}")
            continue
        conversation_id = reply.conversation_id
        _print_reply(reply)


if __name__ == "__main__":
    main()
