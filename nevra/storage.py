"""
Chat persistence collaborator.

The pipeline only needs three calls. Failures are logged and never abort a
user-visible turn.
"""

import logging
import threading
import uuid
from typing import Dict, List, Optional, Protocol

from nevra.schemas import ConversationTurn


logger = logging.getLogger(__name__)


class ChatStore(Protocol):
    def create_session(self, user_id: str, mode: str, provider: str, title: str) -> str:
        ...

    def save_message(self, session_id: str, role: str, text: str,
                     code: Optional[str] = None, images: Optional[List[str]] = None) -> None:
        ...

    def get_session_messages(self, session_id: str) -> List[ConversationTurn]:
        ...


class InMemoryChatStore:
    """Process-local ChatStore."""

    def __init__(self):
        self._lock = threading.Lock()
        self._sessions: Dict[str, Dict[str, str]] = {}
        self._messages: Dict[str, List[ConversationTurn]] = {}

    def create_session(self, user_id: str, mode: str, provider: str, title: str) -> str:
        session_id = uuid.uuid4().hex
        with self._lock:
            self._sessions[session_id] = {
                "user_id": user_id, "mode": mode, "provider": provider, "title": title,
            }
            self._messages[session_id] = []
        return session_id

    def save_message(self, session_id: str, role: str, text: str,
                     code: Optional[str] = None, images: Optional[List[str]] = None) -> None:
        with self._lock:
            if session_id not in self._messages:
                raise KeyError(f"Unknown session: {session_id}")
            self._messages[session_id].append(
                ConversationTurn(role=role, text=text, code=code, images=images or [])
            )

    def get_session_messages(self, session_id: str) -> List[ConversationTurn]:
        with self._lock:
            return list(self._messages.get(session_id, []))

    def get_session(self, session_id: str) -> Optional[Dict[str, str]]:
        return self._sessions.get(session_id)


def ensure_remote_session(store: Optional[ChatStore], session, user_id: str, title: str) -> Optional[str]:
    """Create the persisted session on first use; returns its id or None on failure."""
    if store is None:
        return None
    if session.remote_id is None:
        try:
            session.remote_id = store.create_session(
                user_id, session.mode.value, session.provider_id, title[:80]
            )
        except Exception:
            logger.warning("Could not create persisted chat session", exc_info=True)
            return None
    return session.remote_id


def persist_turn(store: Optional[ChatStore], remote_id: Optional[str], turn: ConversationTurn) -> bool:
    """Save one turn; returns False (after logging) if the store failed."""
    if store is None or remote_id is None:
        return False
    try:
        store.save_message(remote_id, turn.role, turn.text, code=turn.code, images=turn.images or None)
    except Exception:
        logger.warning("Could not persist %s message", turn.role, exc_info=True)
        return False
    return True
