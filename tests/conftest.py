"""
Pytest configuration for the Nevra test suite.

Provides:
- ScriptedBackend: a ChatBackend that replays canned payloads or errors
- Fixtures for sessions, orchestrators, renderers and registries
"""

from typing import Callable, List, Union

import pytest

from nevra.orchestrator import ProviderOrchestrator
from nevra.sandbox.registry import PreviewRegistry
from nevra.sandbox.renderer import SandboxRenderer
from nevra.schemas import BackendCall, BackendPayload, ConversationTurn
from nevra.session import ChatSession
from nevra.storage import InMemoryChatStore
from nevra.usage import UsageLedger


HTML_DOCUMENT = "<!DOCTYPE html><html><body><h1>Hi</h1></body></html>"

Step = Union[str, BackendPayload, Exception, Callable[[BackendCall], BackendPayload]]


class ScriptedBackend:
    """Replays one scripted step per call; the last step repeats."""

    def __init__(self, *steps: Step):
        self.steps: List[Step] = list(steps)
        self.calls: List[BackendCall] = []

    def complete(self, call: BackendCall) -> BackendPayload:
        self.calls.append(call)
        step = self.steps[min(len(self.calls), len(self.steps)) - 1]
        if isinstance(step, Exception):
            raise step
        if callable(step):
            return step(call)
        if isinstance(step, BackendPayload):
            return step
        return BackendPayload(content=step)

    @property
    def providers_called(self) -> List[str]:
        return [call.provider.id for call in self.calls]


def make_turn(role: str = "user", text: str = "hello", code: str = None) -> ConversationTurn:
    return ConversationTurn(role=role, text=text, code=code)


@pytest.fixture
def scripted_backend():
    """Factory for scripted backends."""
    return ScriptedBackend


@pytest.fixture
def make_orchestrator():
    """Build an orchestrator around a scripted backend."""
    def _make(*steps: Step):
        backend = ScriptedBackend(*steps)
        return ProviderOrchestrator(backend), backend
    return _make


@pytest.fixture
def session():
    return ChatSession(session_id="session-1")


@pytest.fixture
def renderer():
    return SandboxRenderer()


@pytest.fixture
def registry():
    return PreviewRegistry(ttl_minutes=15)


@pytest.fixture
def chat_store():
    return InMemoryChatStore()


@pytest.fixture
def usage():
    return UsageLedger()
