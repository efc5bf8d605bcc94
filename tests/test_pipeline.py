"""Tests for the turn pipeline and its LangGraph workflow."""

from unittest.mock import Mock

import pytest

from nevra.errors import NetworkError, ProjectStoreError, TurnInProgressError, UpstreamQuotaError, UpstreamTimeoutError
from nevra.graph import build_graph, format_failure_reply, route_after_generate
from nevra.orchestrator import CancellationToken
from nevra.pipeline import apply_edit, handle_send
from nevra.schemas import (
    BackendPayload,
    Framework,
    GenerationMode,
    GenerationOutcome,
    ProjectFile,
    SingleFile,
    TextReply,
)
from nevra.session import ChatSession
from tests.conftest import HTML_DOCUMENT


BUILD_REPLY = f"Sure!\n```html\n{HTML_DOCUMENT}\n```"


@pytest.fixture
def send(renderer, registry, chat_store, usage, make_orchestrator):
    """handle_send bound to test collaborators; returns (send, backend) for scripted steps."""
    def _bind(*steps):
        orchestrator, backend = make_orchestrator(*steps)

        def _send(session, text, **kwargs):
            kwargs.setdefault("chat_store", chat_store)
            return handle_send(
                session,
                text,
                orchestrator=orchestrator,
                renderer=renderer,
                registry=registry,
                usage=usage,
                **kwargs,
            )
        return _send, backend
    return _bind


class TestTutorTurn:
    """Prose turns."""

    def test_question_gets_text_reply(self, session, send, usage):
        run, backend = send("A closure captures its scope.")
        result = run(session, "what is a closure?")

        assert result["mode"] == GenerationMode.TUTOR
        assert result["reply"] == "A closure captures its scope."
        assert result["code"] is None
        assert result["preview"] is None
        assert result["provider"] == "deepseek"
        assert result["substituted"] is False
        assert len(session.store) == 0
        assert [t.role for t in session.history] == ["user", "assistant"]
        assert usage.total("deepseek") == 10

    def test_history_is_sent_on_next_turn(self, session, send):
        run, backend = send("answer")
        run(session, "what is a closure?")
        run(session, "why does it matter?")
        assert [t.text for t in backend.calls[1].history] == ["what is a closure?", "answer"]


class TestBuilderTurn:
    """Code-producing turns."""

    def test_build_populates_store_and_preview(self, session, send, registry):
        run, _ = send(BUILD_REPLY)
        result = run(session, "build a landing page for a bakery")

        assert result["mode"] == GenerationMode.BUILDER
        assert result["reply"] == "Generated app successfully."
        assert result["code"].startswith("<!DOCTYPE html>")
        assert result["preview"].kind == "passthrough"
        assert session.mode == GenerationMode.BUILDER
        assert session.store.entry_path == "index.html"
        assert registry.get_by_session(session.session_id).preview_id == session.preview_id
        assert session.history[-1].code == result["code"]

    def test_rebuilds_keep_one_registered_preview(self, session, send, registry):
        run, _ = send(BUILD_REPLY)
        for _ in range(3):
            run(session, "build a landing page for a bakery")
        assert [e.preview_id for e in registry.get_all()] == [session.preview_id]

    def test_edit_command_stays_in_builder(self, session, send):
        run, backend = send(BUILD_REPLY)
        run(session, "build a landing page for a bakery")
        result = run(session, "ubah warna jadi biru")
        assert result["mode"] == GenerationMode.BUILDER
        assert backend.calls[1].mode == GenerationMode.BUILDER

    def test_multi_file_project(self, send):
        session = ChatSession(framework=Framework.REACT)
        payload = BackendPayload(
            files=[
                ProjectFile(path="package.json", content="{}"),
                ProjectFile(path="src/App.tsx", content="export default function App() { return <div />; }"),
            ],
            entry="src/App.tsx",
            framework="react",
        )
        run, backend = send(payload)
        result = run(session, "build a todo app")

        assert [f.path for f in session.store.get_all()] == ["package.json", "src/App.tsx"]
        assert result["preview"].kind == "component"
        assert result["code"].startswith("export default function App()")
        assert "multi-file" in backend.calls[0].prompt

    def test_new_build_replaces_old_files(self, send):
        session = ChatSession(framework=Framework.REACT)
        first = BackendPayload(files=[
            ProjectFile(path="src/App.tsx", content="export default function App() {}"),
            ProjectFile(path="src/Old.tsx", content="export function Old() {}"),
        ])
        second = BackendPayload(files=[ProjectFile(path="src/App.tsx", content="export default function App() {}")])
        run, _ = send(first, second)
        run(session, "build a todo app")
        run(session, "build a notes app")
        assert [f.path for f in session.store.get_all()] == ["src/App.tsx"]

    def test_no_code_degrades_without_touching_store(self, session, send):
        run, _ = send(BUILD_REPLY, "I could not build that, sorry about it.")
        run(session, "build a landing page for a bakery")
        before = session.store.to_dict()
        preview = session.preview

        result = run(session, "build a website for my cat")
        assert result["reply"] == "I could not build that, sorry about it."
        assert session.store.to_dict() == before
        assert session.preview is preview


class TestModeOverride:
    """User-selected mode instead of classification."""

    def test_builder_override_on_a_question(self, session, send):
        run, backend = send(BUILD_REPLY)
        result = run(session, "what is a closure?", mode_override=GenerationMode.BUILDER)
        assert result["mode"] == GenerationMode.BUILDER
        assert backend.calls[0].mode == GenerationMode.BUILDER
        assert session.mode == GenerationMode.BUILDER

    def test_tutor_override_on_a_build_request(self, session, send):
        run, backend = send("Start with the layout, then the styles.")
        result = run(session, "build a landing page for a bakery", mode_override=GenerationMode.TUTOR)
        assert result["mode"] == GenerationMode.TUTOR
        assert backend.calls[0].mode == GenerationMode.TUTOR

    def test_no_override_classifies(self, session, send):
        run, _ = send(BUILD_REPLY)
        assert run(session, "build a landing page for a bakery", mode_override=None)["mode"] == GenerationMode.BUILDER


class TestEditorSave:
    """Saving editor changes back into the project."""

    def test_save_updates_store_and_preview(self, session, send, renderer, registry):
        run, _ = send(BUILD_REPLY)
        run(session, "build a landing page for a bakery")
        old_preview_id = session.preview_id
        edited = HTML_DOCUMENT.replace("</body>", "<p>Open on Sundays</p></body>")

        document = apply_edit(session, "index.html", edited, renderer=renderer, registry=registry)

        assert session.store.get_file("index.html").content == edited
        assert "Open on Sundays" in document.html
        assert session.preview is document
        assert session.preview_id != old_preview_id
        assert [e.preview_id for e in registry.get_all()] == [session.preview_id]

    def test_save_component_file(self, send, renderer, registry):
        session = ChatSession(framework=Framework.REACT)
        run, _ = send(BackendPayload(files=[
            ProjectFile(path="src/App.tsx", content="export default function App() { return <p>old</p>; }"),
        ]))
        run(session, "build a todo app")

        document = apply_edit(
            session, "src/App.tsx", "export default () => <p>new</p>;", renderer=renderer, registry=registry
        )
        assert document.kind == "component"
        assert "const App = () =>" in document.html

    def test_save_unknown_file(self, session, renderer, registry):
        with pytest.raises(ProjectStoreError):
            apply_edit(session, "missing.html", "x", renderer=renderer, registry=registry)

    def test_save_during_turn_rejected(self, session, renderer, registry):
        session.store.add_file("index.html", HTML_DOCUMENT)
        with session.turn():
            with pytest.raises(TurnInProgressError):
                apply_edit(session, "index.html", "x", renderer=renderer, registry=registry)


class TestFailures:
    """Exhausted ladders and provider substitution."""

    def test_exhausted_ladder_keeps_artifact(self, session, send, usage):
        run, _ = send(BUILD_REPLY, UpstreamQuotaError("insufficient credits"))
        run(session, "build a landing page for a bakery")
        before = session.store.to_dict()
        preview = session.preview

        result = run(session, "build a website for a cafe")
        assert result["provider"] is None
        assert result["errors"] == ["insufficient credits"]
        assert "Switching to a different provider" in result["reply"]
        assert len(result["attempts"]) == 2
        assert session.store.to_dict() == before
        assert session.preview is preview
        assert session.history[-1].role == "assistant"
        assert usage.requests("deepseek") == 1

    def test_substitution_is_reported_and_charged(self, send, usage):
        session = ChatSession(provider_id="anthropic")
        run, _ = send(UpstreamTimeoutError("slow"), "answer")
        result = run(session, "what is a closure?")
        assert result["provider"] == "openai"
        assert result["substituted"] is True
        assert usage.total("openai") == 10
        assert usage.total("anthropic") == 0

    def test_cancellation(self, session, send):
        token = CancellationToken()
        token.cancel()
        run, backend = send("never")
        result = run(session, "what is a closure?", cancel_token=token)
        assert result["reply"] == "Generation was cancelled."
        assert backend.calls == []


class TestTurnDiscipline:
    """Input validation and serialized turns."""

    def test_empty_message_rejected(self, session, send):
        run, _ = send("x")
        with pytest.raises(ValueError):
            run(session, "   ")

    def test_image_only_message_allowed(self, session, send):
        run, backend = send("It is a cat.")
        run(session, "", images=["data:image/png;base64,AAAA"])
        assert backend.calls[0].images == ["data:image/png;base64,AAAA"]

    def test_concurrent_turn_rejected(self, session, send):
        run, _ = send("x")
        with session.turn():
            with pytest.raises(TurnInProgressError):
                run(session, "what is a closure?")

    def test_torn_down_session_rejected(self, session, send, registry):
        run, _ = send("x")
        session.teardown(registry)
        with pytest.raises(TurnInProgressError):
            run(session, "hello")


class TestPersistence:
    """Opportunistic chat persistence."""

    def test_turns_are_persisted(self, session, send, chat_store):
        run, _ = send("answer")
        run(session, "what is a closure?")
        messages = chat_store.get_session_messages(session.remote_id)
        assert [(m.role, m.text) for m in messages] == [("user", "what is a closure?"), ("assistant", "answer")]
        assert chat_store.get_session(session.remote_id)["title"] == "what is a closure?"

    def test_store_failure_does_not_abort_turn(self, session, send):
        broken = Mock()
        broken.create_session.side_effect = RuntimeError("db down")
        run, _ = send("answer")
        result = run(session, "what is a closure?", chat_store=broken)
        assert result["reply"] == "answer"
        assert session.remote_id is None

    def test_save_failure_does_not_abort_turn(self, session, send):
        flaky = Mock()
        flaky.create_session.return_value = "remote-1"
        flaky.save_message.side_effect = RuntimeError("db down")
        run, _ = send("answer")
        assert run(session, "what is a closure?", chat_store=flaky)["reply"] == "answer"
        assert flaky.save_message.call_count == 2


class TestGraph:
    """Graph wiring and routing."""

    def test_graph_compiles(self):
        assert build_graph().compile() is not None

    def test_route_on_failure(self):
        assert route_after_generate({"failure": NetworkError("down")}) == "error_reply"

    def test_route_on_artifact(self):
        outcome = GenerationOutcome(
            result=SingleFile(content="<html></html>", text="ok"), provider="deepseek", requested_provider="deepseek"
        )
        assert route_after_generate({"failure": None, "outcome": outcome}) == "apply_artifact"

    def test_route_on_text(self):
        outcome = GenerationOutcome(result=TextReply(text="hi"), provider="deepseek", requested_provider="deepseek")
        assert route_after_generate({"failure": None, "outcome": outcome}) == "end"

    def test_failure_reply_suggestions(self):
        reply = format_failure_reply(NetworkError("connection refused"))
        assert "could not be reached" in reply
        assert "connection refused" in reply
        assert "Rephrasing" in reply
        assert "Trying again" in reply
