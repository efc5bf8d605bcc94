"""
Response Normalizer - turn raw backend output into a TextReply or a code
artifact.

extract() never raises. Anything that cannot be turned into a usable
artifact degrades to a TextReply carrying the most readable fragment
available, and a reply is never empty.
"""

import logging
import re
from typing import Optional, Tuple, Union

from nevra.errors import EmptyArtifactError, ErrorSignatureDetected, ExtractionError
from nevra.llm.json_parsing import normalize_framework
from nevra.markup import (
    error_markup_to_text,
    has_error_signature,
    has_markup_root,
    looks_like_component,
    looks_like_markup,
)
from nevra.sandbox.harness import build_component_document, wrap_markup_document
from nevra.schemas import (
    BackendPayload,
    GenerationMode,
    GenerationResult,
    MultiFile,
    ProjectFile,
    SingleFile,
    TextReply,
)


logger = logging.getLogger(__name__)

CANNED_SUCCESS_TEXT = "Generated app successfully."
EMPTY_REPLY_TEXT = (
    "I apologize, but I received an empty response from the AI service. "
    "Please try rephrasing your question, switching to a different provider, or trying again."
)
NO_CODE_TEXT = "No valid code found in the response. Please try rephrasing your request."
ERROR_FRAGMENT_TEXT = "The AI service returned an error instead of a result."

# A single short line left beside a code block is a lead-in ("Sure!"), not prose
LEAD_IN_MAX_WORDS = 8

PREFERRED_ENTRY_SUFFIXES = ("App.tsx", "App.jsx", "main.tsx", "index.tsx")

_ANY_FENCE_RE = re.compile(r"```[^\n`]*\n?[\s\S]*?```")
_INLINE_CODE_RE = re.compile(r"`([^`\n]+)`")
_FENCE_RE = re.compile(r"```([^\n`]*)\n?([\s\S]*?)```")
CODE_FENCE_TAGS = {"", "html", "xml", "jsx", "tsx", "react", "javascript", "js", "typescript", "ts"}
_RAW_DOCUMENT_RES = (
    re.compile(r"<!DOCTYPE[\s\S]*?</html>", re.IGNORECASE),
    re.compile(r"<html[\s\S]*?</html>", re.IGNORECASE),
    re.compile(r"<body[\s\S]*?</body>", re.IGNORECASE),
)
_OPEN_BODY_RE = re.compile(r"<body[^>]*>[\s\S]*", re.IGNORECASE)


# =============================================================================
# TUTOR MODE
# =============================================================================

def _collapse_blank_lines(text: str) -> str:
    lines = [line.rstrip() for line in text.splitlines()]
    return re.sub(r"\n{3,}", "\n\n", "\n".join(lines)).strip()


def extract_prose(raw: str) -> TextReply:
    """Strip code from a tutor-mode reply and return the remaining prose."""
    if not raw or not raw.strip():
        return TextReply(text=EMPTY_REPLY_TEXT)

    if has_error_signature(raw):
        return TextReply(text=error_markup_to_text(raw) or ERROR_FRAGMENT_TEXT)

    prose = _ANY_FENCE_RE.sub("", raw)
    prose = _INLINE_CODE_RE.sub(r"\1", prose)
    prose = _collapse_blank_lines(prose)
    if not prose:
        # Nothing but code; better to show it than nothing
        prose = raw.strip()
    return TextReply(text=prose)


# =============================================================================
# BUILDER MODE
# =============================================================================

def _reply_text(remainder: str) -> str:
    remainder = _collapse_blank_lines(remainder)
    if not remainder:
        return CANNED_SUCCESS_TEXT
    if "\n" not in remainder and len(remainder.split()) <= LEAD_IN_MAX_WORDS:
        return CANNED_SUCCESS_TEXT
    return remainder


def find_code(text: str) -> Optional[Tuple[str, str]]:
    """
    Locate code in a text blob.

    Strategies, in order: a fenced block with an HTML/React-ish or absent
    language tag, a raw document span, then a body span wrapped into a
    minimal document. Empty or non-markup spans fall through to the next
    strategy.

    Returns:
        (code, remainder) or None
    """
    for match in _FENCE_RE.finditer(text):
        if match.group(1).strip().lower() not in CODE_FENCE_TAGS:
            continue
        code = match.group(2).strip()
        if code and (looks_like_markup(code) or looks_like_component(code)):
            return code, text[:match.start()] + text[match.end():]

    for pattern in _RAW_DOCUMENT_RES:
        match = pattern.search(text)
        if match and match.group(0).strip():
            code = match.group(0).strip()
            if pattern is _RAW_DOCUMENT_RES[2]:
                code = wrap_markup_document(code)
            return code, text[:match.start()] + text[match.end():]

    if "<" in text and ">" in text:
        match = _OPEN_BODY_RE.search(text)
        if match and re.sub(r"<body[^>]*>", "", match.group(0), flags=re.IGNORECASE).strip():
            return wrap_markup_document(match.group(0)), text[:match.start()]

    return None


def _resolve_entry(files, declared: Optional[str]) -> str:
    paths = [f.path for f in files]
    if declared and declared in paths:
        return declared
    for suffix in PREFERRED_ENTRY_SUFFIXES:
        for path in paths:
            if path.endswith(suffix):
                return path
    return paths[0]


def extract_multi_file(payload: BackendPayload) -> MultiFile:
    """
    Validate a structured multi-file payload.

    Raises:
        ErrorSignatureDetected: If any file carries an error fragment
        EmptyArtifactError: If no file has usable content
    """
    files = []
    for project_file in payload.files or []:
        if not project_file.path.strip():
            continue
        if has_error_signature(project_file.content):
            raise ErrorSignatureDetected(f"error fragment in {project_file.path}")
        if not project_file.content.strip():
            logger.warning("Dropping empty file from multi-file payload: %s", project_file.path)
            continue
        files.append(ProjectFile(
            path=project_file.path.strip(),
            content=project_file.content.strip(),
            kind=project_file.kind,
        ))

    if not files:
        raise EmptyArtifactError("multi-file payload has no files with content")

    framework = normalize_framework(payload.framework)
    return MultiFile(
        files=files,
        entry_path=_resolve_entry(files, payload.entry),
        framework=framework,
        text=f"Generated {len(files)} file(s) for {framework} project.",
    )


def extract_single_file(text: str) -> SingleFile:
    """
    Extract a single executable document from a text blob.

    Raises:
        ErrorSignatureDetected: If the text is an error fragment
        EmptyArtifactError: If no markup-shaped code is found
    """
    if has_error_signature(text):
        raise ErrorSignatureDetected("backend returned an error fragment")

    found = find_code(text)
    if found is None:
        raise EmptyArtifactError("no code found in response")
    code, remainder = found

    source = None
    if looks_like_component(code):
        source = code
        code = build_component_document(code)
    elif not has_markup_root(code):
        code = wrap_markup_document(code)

    return SingleFile(content=code, source=source, text=_reply_text(remainder))


def _degrade(raw: str, error: ExtractionError) -> TextReply:
    logger.info("Builder extraction degraded to text: %s", error)
    if isinstance(error, ErrorSignatureDetected):
        text = error_markup_to_text(raw) if raw else ""
        return TextReply(text=text or ERROR_FRAGMENT_TEXT, failure=error.failure)
    text = raw.strip() if raw else ""
    return TextReply(text=text or NO_CODE_TEXT, failure=error.failure)


# =============================================================================
# ENTRY POINT
# =============================================================================

def extract(raw: Union[str, BackendPayload, None], mode) -> GenerationResult:
    """
    Normalize backend output for the given mode.

    Args:
        raw: Raw text or a BackendPayload
        mode: GenerationMode (or its string value)

    Returns:
        TextReply, SingleFile or MultiFile
    """
    payload = raw if isinstance(raw, BackendPayload) else BackendPayload(content=raw or "")
    mode = GenerationMode(getattr(mode, "value", mode))

    if mode == GenerationMode.TUTOR:
        if payload.is_multi_file:
            paths = ", ".join(f.path for f in payload.files or [])
            return TextReply(text=f"The response contained project files: {paths}" if paths else EMPTY_REPLY_TEXT)
        return extract_prose(payload.content or "")

    text = payload.content or ""
    try:
        if payload.is_multi_file:
            return extract_multi_file(payload)
        if not text.strip():
            raise EmptyArtifactError("empty response")
        return extract_single_file(text)
    except ExtractionError as e:
        if payload.is_multi_file and not text:
            text = "\n\n".join(f.content for f in payload.files or [])
        return _degrade(text, e)
