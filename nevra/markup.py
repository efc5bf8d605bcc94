"""
Shared markup heuristics used by the extractor and the sandbox renderer.
"""

import html
import re


# Substrings that identify an error-styled fragment emitted in place of real output.
# Styling classes alone never count: generated pages use red text too.
ERROR_MARKERS = (
    "<!-- Error Generating Code -->",
    "ANTHROPIC Error",
    "OpenRouter API Error",
    "This operation was aborted",
)

_DOCUMENT_START_RE = re.compile(r"^\s*(?:<!--[\s\S]*?-->\s*)*<(?:!doctype\s+html|html)\b", re.IGNORECASE)
_MARKUP_ROOT_RE = re.compile(r"<(?:!doctype\s+html|html|body|head)\b", re.IGNORECASE)
_MARKUP_SHAPE_RE = re.compile(
    r"<(?:!doctype|html|body|div|main|section|header|nav|footer|h[1-6]|p|span|button|form|ul|table)\b",
    re.IGNORECASE,
)
_COMPONENT_RE = re.compile(
    r"(?:\bexport\s+default\b"
    r"|\bexport\s+(?:function|const)\s+[A-Z]\w*"
    r"|\bfunction\s+[A-Z]\w*\s*\("
    r"|\bconst\s+[A-Z]\w*\s*(?::[^=\n]+)?=\s*(?:\(|function|React\.))"
)
_TAG_RE = re.compile(r"<[^>]+>")
_COMMENT_RE = re.compile(r"<!--[\s\S]*?-->")


def has_error_signature(text: str) -> bool:
    """True if the text carries a known error-fragment marker."""
    return bool(text) and any(marker in text for marker in ERROR_MARKERS)


def is_full_document(text: str) -> bool:
    """True if the text is already a complete HTML document."""
    return bool(text) and _DOCUMENT_START_RE.search(text) is not None


def has_markup_root(text: str) -> bool:
    return bool(text) and _MARKUP_ROOT_RE.search(text) is not None


def looks_like_markup(text: str) -> bool:
    return bool(text) and _MARKUP_SHAPE_RE.search(text) is not None


def looks_like_component(text: str) -> bool:
    """True for component-style source (exported function/const) without a document root."""
    return bool(text) and not has_markup_root(text) and _COMPONENT_RE.search(text) is not None


def error_markup_to_text(text: str) -> str:
    """Reduce an error-styled fragment to readable plain text."""
    stripped = _COMMENT_RE.sub(" ", text or "")
    stripped = re.sub(r"<br\s*/?>|</(?:p|li|div|h[1-6])>", "\n", stripped, flags=re.IGNORECASE)
    stripped = _TAG_RE.sub(" ", stripped)
    stripped = html.unescape(stripped)
    lines = [re.sub(r"[ \t]+", " ", line).strip() for line in stripped.splitlines()]
    return "\n".join(line for line in lines if line)
