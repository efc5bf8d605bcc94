"""
Sandbox module for previewing generated code in an isolated iframe.

Components:
- preprocess: Strip module and type syntax before in-browser compilation
- harness: Build self-contained HTML documents around generated code
- renderer: Pick the preview kind and embed it in a sandboxed iframe
- registry: Track previews per session with TTL
"""

from nevra.sandbox.preprocess import (
    Preprocessor,
    PreprocessorChain,
    RegexTypeStripper,
    ModuleSyntaxStripper,
    default_chain,
)
from nevra.sandbox.renderer import (
    PreviewDocument,
    SandboxRenderer,
    SANDBOX_PERMISSIONS,
    embed_iframe,
    get_renderer,
)
from nevra.sandbox.registry import (
    PreviewEntry,
    PreviewRegistry,
    get_registry,
    get_session_preview,
    cleanup_expired,
)

__all__ = [
    # Preprocess
    "Preprocessor",
    "PreprocessorChain",
    "RegexTypeStripper",
    "ModuleSyntaxStripper",
    "default_chain",
    # Renderer
    "PreviewDocument",
    "SandboxRenderer",
    "SANDBOX_PERMISSIONS",
    "embed_iframe",
    "get_renderer",
    # Registry
    "PreviewEntry",
    "PreviewRegistry",
    "get_registry",
    "get_session_preview",
    "cleanup_expired",
]
