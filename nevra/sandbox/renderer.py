"""
Sandbox Renderer - turn an entry file into an isolated, addressable preview
document.

Rendering is a pure function of its inputs: the same entry content and
framework always produce the same document.
"""

import hashlib
import html
import logging
from dataclasses import dataclass, asdict
from pathlib import PurePosixPath
from typing import Dict, List, Optional, Sequence
from urllib.parse import quote

from nevra.markup import has_error_signature, is_full_document, looks_like_component
from nevra.sandbox.harness import (
    build_component_document,
    build_error_document,
    build_placeholder_document,
    wrap_markup_document,
)
from nevra.sandbox.preprocess import Preprocessor, default_chain


logger = logging.getLogger(__name__)

# Exactly the affordances generated UIs need; no allow-same-origin
SANDBOX_PERMISSIONS = ("allow-scripts", "allow-forms", "allow-modals", "allow-popups")

COMPONENT_EXTENSIONS = (".tsx", ".jsx", ".ts", ".js")
DATA_URI_PREFIX = "data:text/html;charset=utf-8,"

# Entry points that bootstrap rather than define UI; never inlined as siblings
_BOOTSTRAP_FILES = {"main.tsx", "main.jsx", "index.tsx", "index.jsx", "layout.tsx", "layout.jsx"}


# =============================================================================
# DATA CLASSES
# =============================================================================

@dataclass(frozen=True)
class PreviewDocument:
    """A rendered, self-contained preview document."""
    kind: str  # "passthrough", "component", "markup", "placeholder", "error"
    html: str
    framework: str
    entry_path: Optional[str] = None

    def data_uri(self) -> str:
        """The document as an addressable data: URI."""
        return DATA_URI_PREFIX + quote(self.html, safe="-_.!~*'()")

    def digest(self) -> str:
        return hashlib.sha256(self.html.encode("utf-8")).hexdigest()[:16]

    def to_dict(self) -> Dict:
        data = asdict(self)
        data["digest"] = self.digest()
        return data


# =============================================================================
# RENDERER
# =============================================================================

class SandboxRenderer:
    """Produces preview documents from entry file content."""

    def __init__(self, preprocessor: Optional[Preprocessor] = None):
        self.preprocessor = preprocessor or default_chain()

    def render(
        self,
        entry_content: Optional[str],
        framework: str = "html",
        entry_path: Optional[str] = None,
        extra_sources: Sequence[str] = (),
    ) -> PreviewDocument:
        """
        Render entry content into a preview document.

        Args:
            entry_content: Content of the entry file
            framework: Project framework ("html", "react", "nextjs", "vite")
            entry_path: Path of the entry file, used to recognise component sources
            extra_sources: Sibling component sources to inline before the entry

        Returns:
            PreviewDocument
        """
        framework = getattr(framework, "value", framework) or "html"
        content = (entry_content or "").strip()

        if not content:
            return PreviewDocument("placeholder", build_placeholder_document(), framework, entry_path)

        if has_error_signature(content):
            logger.info("Entry content carries an error signature; rendering error document")
            return PreviewDocument("error", build_error_document(), framework, entry_path)

        if is_full_document(content):
            return PreviewDocument("passthrough", content, framework, entry_path)

        if self._is_component_source(content, framework, entry_path):
            document = build_component_document(
                content,
                preprocessor=self.preprocessor,
                extra_sources=extra_sources,
                title=PurePosixPath(entry_path).name if entry_path else "Preview",
            )
            return PreviewDocument("component", document, framework, entry_path)

        return PreviewDocument("markup", wrap_markup_document(content), framework, entry_path)

    def render_store(self, store, framework: str = "html") -> PreviewDocument:
        """
        Render the entry file of a VirtualProjectStore.

        Sibling component files are inlined ahead of the entry so multi-file
        React projects can mount without a bundler.
        """
        entry = store.get_entry_file()
        if entry is None:
            return self.render("", framework)

        extras: List[str] = []
        if entry.path.endswith(COMPONENT_EXTENSIONS):
            for project_file in store.get_all():
                name = PurePosixPath(project_file.path).name
                if (
                    project_file.path != entry.path
                    and project_file.kind == "component"
                    and project_file.path.endswith((".tsx", ".jsx"))
                    and name not in _BOOTSTRAP_FILES
                ):
                    extras.append(project_file.content)

        return self.render(entry.content, framework, entry_path=entry.path, extra_sources=extras)

    @staticmethod
    def _is_component_source(content: str, framework: str, entry_path: Optional[str]) -> bool:
        if entry_path and entry_path.endswith(COMPONENT_EXTENSIONS):
            return True
        if framework != "html":
            return True
        return looks_like_component(content)


def embed_iframe(document: PreviewDocument, height: int = 640, title: str = "Preview") -> str:
    """
    Markup for embedding a preview in an isolated iframe.

    The frame gets an opaque origin, so generated code cannot reach the host
    page's state, cookies or storage.
    """
    return (
        f'<iframe title="{html.escape(title)}" '
        f'sandbox="{" ".join(SANDBOX_PERMISSIONS)}" '
        f'src="{html.escape(document.data_uri())}" '
        f'style="width:100%;height:{int(height)}px;border:0;border-radius:8px;background:#fff;">'
        f"</iframe>"
    )


# Global renderer instance
_renderer: Optional[SandboxRenderer] = None


def get_renderer() -> SandboxRenderer:
    """Get the global renderer instance."""
    global _renderer
    if _renderer is None:
        _renderer = SandboxRenderer()
    return _renderer
