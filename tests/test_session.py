"""Tests for session context, chat persistence and usage accounting."""

import pytest

from nevra.errors import TurnInProgressError
from nevra.sandbox.renderer import PreviewDocument
from nevra.schemas import ConversationTurn, GenerationMode, SingleFile
from nevra.session import ChatSession
from nevra.storage import ensure_remote_session, persist_turn
from nevra.usage import UsageLedger
from tests.conftest import make_turn


class TestChatSession:
    """Session lifecycle."""

    def test_defaults(self, session):
        assert session.mode == GenerationMode.TUTOR
        assert session.provider_id == "deepseek"
        assert session.has_artifact is False
        assert session.busy is False

    def test_history_is_capped(self):
        session = ChatSession(history_cap=3)
        for i in range(5):
            session.append_turn(make_turn(text=str(i)))
        assert [t.text for t in session.history_snapshot()] == ["2", "3", "4"]

    def test_snapshot_is_a_copy(self, session):
        session.append_turn(make_turn())
        snapshot = session.history_snapshot()
        snapshot.clear()
        assert len(session.history) == 1

    def test_turn_is_exclusive(self, session):
        with session.turn():
            assert session.busy is True
            with pytest.raises(TurnInProgressError):
                with session.turn():
                    pass
        assert session.busy is False

    def test_turn_lock_released_on_error(self, session):
        with pytest.raises(RuntimeError):
            with session.turn():
                raise RuntimeError("boom")
        with session.turn():
            pass

    def test_teardown_clears_state_and_previews(self, session, registry):
        artifact = SingleFile(content="<html></html>", text="ok")
        session.store.apply_artifact(artifact)
        session.artifact = artifact
        session.append_turn(make_turn())
        registry.register(session.session_id, PreviewDocument("passthrough", "<html></html>", "html"))

        session.teardown(registry)
        assert len(session.store) == 0
        assert len(session.history) == 0
        assert session.artifact is None
        assert registry.get_by_session(session.session_id) is None
        assert session.closed is True


class TestChatStore:
    """In-memory persistence and the pipeline wrappers."""

    def test_round_trip(self, chat_store):
        session_id = chat_store.create_session("u1", "tutor", "deepseek", "title")
        chat_store.save_message(session_id, "user", "hi")
        chat_store.save_message(session_id, "assistant", "hello", code="<p></p>")
        messages = chat_store.get_session_messages(session_id)
        assert [m.text for m in messages] == ["hi", "hello"]
        assert messages[1].code == "<p></p>"

    def test_unknown_session(self, chat_store):
        with pytest.raises(KeyError):
            chat_store.save_message("missing", "user", "hi")
        assert chat_store.get_session_messages("missing") == []

    def test_ensure_remote_session_is_idempotent(self, chat_store, session):
        first = ensure_remote_session(chat_store, session, "u1", "x" * 200)
        second = ensure_remote_session(chat_store, session, "u1", "other")
        assert first == second
        assert len(chat_store.get_session(first)["title"]) == 80

    def test_no_store(self, session):
        assert ensure_remote_session(None, session, "u1", "t") is None
        assert persist_turn(None, "id", make_turn()) is False

    def test_persist_to_unknown_session_is_swallowed(self, chat_store):
        assert persist_turn(chat_store, "missing", make_turn()) is False

    def test_persist_turn(self, chat_store):
        session_id = chat_store.create_session("u1", "tutor", "deepseek", "t")
        turn = ConversationTurn(role="user", text="hi", images=["data:image/png;base64,AA"])
        assert persist_turn(chat_store, session_id, turn) is True
        assert chat_store.get_session_messages(session_id)[0].images == turn.images


class TestUsageLedger:
    """Per-provider charging."""

    def test_record(self):
        ledger = UsageLedger()
        assert ledger.record("openai") == 10
        assert ledger.record("openai") == 20
        assert ledger.requests("openai") == 2
        assert ledger.total("deepseek") == 0
        assert ledger.snapshot() == {"openai": 20}

    def test_custom_cost(self):
        ledger = UsageLedger(cost_per_request=3)
        ledger.record("gemini")
        assert ledger.total("gemini") == 3
