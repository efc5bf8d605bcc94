"""
Entry point for one chat turn.

Provides the wrapper that runs the LangGraph workflow for a session and
commits the turn (history, persistence, usage) once the graph finishes,
plus the save path for edits made in the code editor.
"""

import logging
from typing import Any, Dict, List, Optional

from nevra.graph import get_graph, publish_preview
from nevra.orchestrator import get_orchestrator
from nevra.sandbox.registry import get_registry
from nevra.sandbox.renderer import get_renderer
from nevra.schemas import ConversationTurn
from nevra.state import GraphState, create_initial_state
from nevra.storage import ensure_remote_session, persist_turn
from nevra.usage import get_usage_ledger


logger = logging.getLogger(__name__)


# =============================================================================
# GRAPH-BASED ORCHESTRATION
# =============================================================================

def run_graph(
    session,
    user_input: str,
    images: Optional[List[str]] = None,
    orchestrator=None,
    renderer=None,
    registry=None,
    cancel_token=None,
    mode_override=None,
) -> GraphState:
    """
    Run the LangGraph workflow for one turn.

    Args:
        session: ChatSession the turn belongs to
        user_input: The user's message
        images: Attached images as data URIs
        orchestrator: ProviderOrchestrator (defaults to the global one)
        renderer: SandboxRenderer (defaults to the global one)
        registry: PreviewRegistry (defaults to the global one)
        cancel_token: Optional CancellationToken
        mode_override: GenerationMode chosen by the user, or None to classify

    Returns:
        The final GraphState
    """
    initial_state = create_initial_state(
        user_input=user_input,
        session=session,
        orchestrator=orchestrator or get_orchestrator(),
        renderer=renderer or get_renderer(),
        registry=registry or get_registry(),
        images=images,
        cancel_token=cancel_token,
        mode_override=mode_override,
    )

    graph = get_graph()
    return graph.invoke(initial_state)


def handle_send(
    session,
    text: str,
    images: Optional[List[str]] = None,
    orchestrator=None,
    renderer=None,
    registry=None,
    chat_store=None,
    usage=None,
    cancel_token=None,
    mode_override=None,
) -> Dict[str, Any]:
    """
    Run one user turn end to end.

    The session is locked for the duration of the turn. On success the
    project store and preview are replaced; on an exhausted ladder they are
    left untouched and the reply explains what went wrong.

    Args:
        session: ChatSession to run the turn in
        text: The user's message
        images: Attached images as data URIs
        orchestrator: ProviderOrchestrator override
        renderer: SandboxRenderer override
        registry: PreviewRegistry override
        chat_store: Optional ChatStore for persistence
        usage: UsageLedger override
        cancel_token: Optional CancellationToken
        mode_override: Forces tutor or builder for this turn instead of classifying

    Returns:
        Dict with mode, reply, code, provider, substituted, attempts, preview, errors

    Raises:
        ValueError: If both the text and the images are empty
        TurnInProgressError: If the session is already running a turn
    """
    text = (text or "").strip()
    images = list(images or [])
    if not text and not images:
        raise ValueError("Message must not be empty")

    with session.turn():
        result = run_graph(
            session,
            text,
            images=images,
            orchestrator=orchestrator,
            renderer=renderer,
            registry=registry,
            cancel_token=cancel_token,
            mode_override=mode_override,
        )

        mode = result["mode"]
        outcome = result.get("outcome")
        reply = result.get("reply") or ""
        code = result.get("code")

        session.mode = mode
        user_turn = ConversationTurn(role="user", text=text, images=images)
        assistant_turn = ConversationTurn(role="assistant", text=reply, code=code)
        session.append_turn(user_turn)
        session.append_turn(assistant_turn)

        remote_id = ensure_remote_session(chat_store, session, session.user_id, text or "Image prompt")
        persist_turn(chat_store, remote_id, user_turn)
        persist_turn(chat_store, remote_id, assistant_turn)

        provider = None
        substituted = False
        if outcome is not None:
            provider = outcome.provider
            substituted = outcome.substituted
            (usage or get_usage_ledger()).record(provider)
            if substituted:
                logger.info("Turn served by %s instead of %s", provider, outcome.requested_provider)

    return {
        "mode": mode,
        "reply": reply,
        "code": code,
        "provider": provider,
        "substituted": substituted,
        "attempts": result.get("attempts", []),
        "preview": result.get("preview"),
        "errors": result.get("errors", []),
    }


def apply_edit(session, path: str, content: str, renderer=None, registry=None):
    """
    Save an editor change to one project file and refresh the preview.

    Args:
        session: ChatSession whose store holds the file
        path: Path of the edited file
        content: New file content
        renderer: SandboxRenderer override
        registry: PreviewRegistry override

    Returns:
        The new PreviewDocument

    Raises:
        ProjectStoreError: If the file does not exist
        TurnInProgressError: If the session is running a turn
    """
    with session.turn():
        session.store.update_content(path, content)
        document, _ = publish_preview(session, renderer or get_renderer(), registry or get_registry())
    logger.info("Saved edit to %s for session %s", path, session.session_id)
    return document
