"""
LangGraph implementation of one chat turn.

Nodes:
- route_mode: Picks tutor or builder for the turn
- generate: Runs the provider ladder and normalizes the output
- apply_artifact: Clears and repopulates the project store
- render_preview: Renders and registers the sandboxed preview
- error_reply: Turns an exhausted ladder into a plain-language reply
"""

import logging
from typing import Literal

from langgraph.graph import StateGraph, END

from nevra.classifier import is_edit_command, match_rule, resolve_mode
from nevra.errors import GenerationCancelledError, UpstreamError
from nevra.schemas import GenerationMode, GenerationRequest, MultiFile, SingleFile, is_code_artifact
from nevra.state import GraphState


logger = logging.getLogger(__name__)

FAILURE_SUMMARIES = {
    "quota": "the AI providers are out of credits or the request was too large",
    "timeout": "the AI provider took too long to respond",
    "network": "the AI service could not be reached",
    "malformed": "the AI service sent back a response I could not read",
    "empty": "the AI service sent back an empty response",
    "rejected": "the AI service rejected the request",
}


def format_failure_reply(error: Exception) -> str:
    """Plain-language assistant message for a failed turn."""
    if isinstance(error, GenerationCancelledError):
        return "Generation was cancelled."

    category = getattr(error, "category", "upstream")
    summary = FAILURE_SUMMARIES.get(category, "something went wrong while contacting the AI service")
    lines = [
        f"Sorry, I couldn't complete that request because {summary}.",
        "",
        f"Details: {error}",
        "",
        "You can try:",
        "- Rephrasing your request or making it shorter",
        "- Switching to a different provider",
        "- Trying again in a moment",
    ]
    return "\n".join(lines)


# =============================================================================
# GRAPH NODES
# =============================================================================

def route_mode(state: GraphState) -> GraphState:
    """Resolve the mode for this turn from the text and the session context."""
    session = state["session"]
    text = state["user_input"]

    override = state.get("mode_override")
    if override is not None:
        state["mode"] = GenerationMode(override)
        state["mode_reason"] = "override"
        logger.info("Turn routed to %s (override)", state["mode"].value)
        return state

    mode = resolve_mode(text, session.mode, session.has_artifact)
    if session.mode == GenerationMode.BUILDER and session.has_artifact and is_edit_command(text):
        reason = "edit_command"
    else:
        rule = match_rule(text)
        reason = rule.name if rule else "default"

    state["mode"] = mode
    state["mode_reason"] = reason
    logger.info("Turn routed to %s (%s)", mode.value, reason)
    return state


def generate_node(state: GraphState) -> GraphState:
    """Run the request through the provider ladder."""
    session = state["session"]
    request = GenerationRequest(
        prompt=state["user_input"],
        history=session.history_snapshot(),
        mode=state["mode"],
        provider=session.provider_id,
        images=state.get("images", []),
        framework=session.framework,
    )

    try:
        outcome = state["orchestrator"].generate(request, cancel_token=state.get("cancel_token"))
    except (UpstreamError, GenerationCancelledError) as e:
        state["failure"] = e
        state["attempts"] = list(getattr(e, "attempts", []))
        state["errors"] = state.get("errors", []) + [str(e)]
        return state

    state["outcome"] = outcome
    state["attempts"] = list(outcome.attempts)
    state["reply"] = outcome.result.text
    return state


def apply_artifact_node(state: GraphState) -> GraphState:
    """Replace the project store contents with the new artifact."""
    session = state["session"]
    artifact = state["outcome"].result

    session.store.apply_artifact(artifact)
    session.artifact = artifact

    if isinstance(artifact, SingleFile):
        state["code"] = artifact.source or artifact.content
    else:
        entry = session.store.get_entry_file()
        state["code"] = entry.content if entry else None
    return state


def publish_preview(session, renderer, registry):
    """Render the session's store and make it the session's registered preview."""
    artifact = session.artifact
    framework = artifact.framework.value if isinstance(artifact, MultiFile) else "html"

    document = renderer.render_store(session.store, framework)
    registry.cleanup_expired()
    registry.cleanup_stale_entries()
    entry = registry.register(session.session_id, document)

    session.preview = document
    session.preview_id = entry.preview_id
    logger.info("Rendered %s preview %s", document.kind, entry.preview_id)
    return document, entry


def render_preview_node(state: GraphState) -> GraphState:
    """Render the entry file and register the preview for the session."""
    document, entry = publish_preview(state["session"], state["renderer"], state["registry"])
    state["preview"] = document
    state["preview_id"] = entry.preview_id
    return state


def error_reply_node(state: GraphState) -> GraphState:
    """Explain a failed turn to the user."""
    state["reply"] = format_failure_reply(state["failure"])
    return state


# =============================================================================
# ROUTING LOGIC
# =============================================================================

def route_after_generate(state: GraphState) -> Literal["apply_artifact", "error_reply", "end"]:
    """Route on the generation outcome."""
    if state.get("failure") is not None:
        return "error_reply"
    if is_code_artifact(state["outcome"].result):
        return "apply_artifact"
    return "end"


# =============================================================================
# BUILD THE GRAPH
# =============================================================================

def build_graph() -> StateGraph:
    """Build and return the turn state graph."""
    graph = StateGraph(GraphState)

    graph.add_node("route_mode", route_mode)
    graph.add_node("generate", generate_node)
    graph.add_node("apply_artifact", apply_artifact_node)
    graph.add_node("render_preview", render_preview_node)
    graph.add_node("error_reply", error_reply_node)

    graph.set_entry_point("route_mode")
    graph.add_edge("route_mode", "generate")

    graph.add_conditional_edges(
        "generate",
        route_after_generate,
        {
            "apply_artifact": "apply_artifact",
            "error_reply": "error_reply",
            "end": END,
        }
    )

    graph.add_edge("apply_artifact", "render_preview")
    graph.add_edge("render_preview", END)
    graph.add_edge("error_reply", END)

    return graph


# Global compiled graph instance
_compiled_graph = None


def get_graph():
    """Get or create the global compiled graph instance."""
    global _compiled_graph
    if _compiled_graph is None:
        _compiled_graph = build_graph().compile()
    return _compiled_graph
