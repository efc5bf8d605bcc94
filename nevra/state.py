"""
State definitions for the LangGraph turn workflow.
"""

from typing import Any, List, Optional, TypedDict

from nevra.schemas import Attempt, GenerationMode, GenerationOutcome


class GraphState(TypedDict, total=False):
    """
    Typed state dictionary for one user turn.

    This state is passed between nodes and updated as the graph executes.
    Collaborators (session, orchestrator, renderer, registry) ride along so
    nodes stay free of globals.
    """
    # User input
    user_input: str
    images: List[str]

    # Collaborators
    session: Any  # ChatSession
    orchestrator: Any  # ProviderOrchestrator
    renderer: Any  # SandboxRenderer
    registry: Any  # PreviewRegistry
    cancel_token: Any  # Optional[CancellationToken]

    # Mode resolution
    mode_override: Optional[GenerationMode]
    mode: Optional[GenerationMode]
    mode_reason: Optional[str]

    # Generation
    outcome: Optional[GenerationOutcome]
    attempts: List[Attempt]
    failure: Optional[Exception]

    # Outputs
    reply: Optional[str]
    code: Optional[str]
    preview: Any  # Optional[PreviewDocument]
    preview_id: Optional[str]

    # Error tracking
    errors: List[str]


def create_initial_state(
    user_input: str,
    session,
    orchestrator,
    renderer,
    registry,
    images: Optional[List[str]] = None,
    cancel_token=None,
    mode_override: Optional[GenerationMode] = None,
) -> GraphState:
    """
    Create an initial state for the graph.

    Args:
        user_input: The user's message
        session: ChatSession the turn belongs to
        orchestrator: ProviderOrchestrator used for generation
        renderer: SandboxRenderer for previews
        registry: PreviewRegistry that tracks rendered previews
        images: Attached images as data URIs
        cancel_token: Optional CancellationToken
        mode_override: Mode picked by the user; skips classification when set

    Returns:
        Initialized GraphState
    """
    return GraphState(
        user_input=user_input,
        images=list(images or []),
        session=session,
        orchestrator=orchestrator,
        renderer=renderer,
        registry=registry,
        cancel_token=cancel_token,
        mode_override=mode_override,
        mode=None,
        mode_reason=None,
        outcome=None,
        attempts=[],
        failure=None,
        reply=None,
        code=None,
        preview=None,
        preview_id=None,
        errors=[],
    )
