"""
Chat session context.

One ChatSession holds everything a conversation mutates: mode, provider,
rolling history, project store and the latest preview. It is created on a
new chat, mutated by each turn and torn down on a session switch.
"""

import logging
import threading
import uuid
from collections import deque
from contextlib import contextmanager
from typing import Iterator, List, Optional, Union

from nevra.errors import TurnInProgressError
from nevra.project_store import VirtualProjectStore
from nevra.providers import FREE_DEFAULT_PROVIDER_ID
from nevra.schemas import ConversationTurn, Framework, GenerationMode, MultiFile, SingleFile


logger = logging.getLogger(__name__)

DEFAULT_HISTORY_CAP = 20


class ChatSession:
    """Mutable per-conversation state, mutated only inside turn()."""

    def __init__(
        self,
        session_id: Optional[str] = None,
        mode: GenerationMode = GenerationMode.TUTOR,
        provider_id: str = FREE_DEFAULT_PROVIDER_ID,
        framework: Framework = Framework.HTML,
        history_cap: int = DEFAULT_HISTORY_CAP,
        user_id: str = "anonymous",
    ):
        self.session_id = session_id or uuid.uuid4().hex
        self.user_id = user_id
        self.mode = GenerationMode(mode)
        self.provider_id = provider_id
        self.framework = Framework(framework)
        self.history: deque = deque(maxlen=history_cap)
        self.store = VirtualProjectStore()
        self.artifact: Optional[Union[SingleFile, MultiFile]] = None
        self.preview = None
        self.preview_id: Optional[str] = None
        self.remote_id: Optional[str] = None
        self.closed = False
        self._turn_lock = threading.Lock()

    @property
    def has_artifact(self) -> bool:
        return self.artifact is not None

    @property
    def busy(self) -> bool:
        return self._turn_lock.locked()

    def history_snapshot(self) -> List[ConversationTurn]:
        """Copy of the rolling history, oldest first."""
        return list(self.history)

    def append_turn(self, turn: ConversationTurn) -> None:
        self.history.append(turn)

    @contextmanager
    def turn(self) -> Iterator["ChatSession"]:
        """
        Serialize turns: the body runs only if no other turn is in flight.

        Raises:
            TurnInProgressError: If a turn is already running
        """
        if self.closed:
            raise TurnInProgressError("Session has been torn down")
        if not self._turn_lock.acquire(blocking=False):
            raise TurnInProgressError("A generation is already in progress for this session")
        try:
            yield self
        finally:
            self._turn_lock.release()

    def teardown(self, registry=None) -> None:
        """Discard all session state and dispose its previews."""
        self.history.clear()
        self.store.clear()
        self.artifact = None
        self.preview = None
        self.preview_id = None
        if registry is not None:
            disposed = registry.teardown_session(self.session_id)
            logger.debug("Disposed %d preview(s) for session %s", disposed, self.session_id)
        self.closed = True
