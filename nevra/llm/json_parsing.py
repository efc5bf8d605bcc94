"""
Robust JSON recovery for model output, and detection of multi-file payloads.
"""

import json
import re
from typing import Any, Dict, List, Optional

from nevra.schemas import FILE_KINDS, BackendPayload, ProjectFile


class JSONParseError(Exception):
    """Raised when JSON parsing fails even after repair attempts."""
    pass


FRAMEWORK_ALIASES = {
    "next": "nextjs",
    "nextjs": "nextjs",
    "next.js": "nextjs",
    "vite": "vite",
    "react": "react",
    "html": "html",
}
DEFAULT_MULTI_FILE_FRAMEWORK = "react"

_MULTI_FILE_HINT = re.compile(r'"(type"\s*:\s*"multi-file|files"\s*:\s*\[)')


def parse_json_robust(text: str) -> Dict[str, Any]:
    """
    Parse JSON with multiple repair strategies.

    Args:
        text: Raw text that should contain a JSON object

    Returns:
        Parsed JSON dictionary

    Raises:
        JSONParseError: If all parsing attempts fail
    """
    candidates = [text, _extract_json_block(text)]
    bounded = _extract_json_boundaries(candidates[-1])
    candidates.append(bounded)
    candidates.append(_repair_json(bounded))

    last_error: Optional[Exception] = None
    for candidate in candidates:
        try:
            parsed = json.loads(candidate)
        except json.JSONDecodeError as e:
            last_error = e
            continue
        if isinstance(parsed, dict):
            return parsed
        last_error = ValueError(f"expected a JSON object, got {type(parsed).__name__}")

    raise JSONParseError(
        f"Failed to parse JSON from model response. Error: {last_error}\n"
        f"Response preview: {text[:500]}..."
    )


def _extract_json_block(text: str) -> str:
    """Extract JSON from markdown code blocks."""
    matches = re.findall(r"```(?:json)?\s*\n?(.*?)\n?```", text, re.DOTALL)
    if matches:
        return matches[0].strip()
    return text


def _extract_json_boundaries(text: str) -> str:
    """Extract content between first { and last }."""
    first_brace = text.find("{")
    last_brace = text.rfind("}")

    if first_brace != -1 and last_brace != -1 and last_brace > first_brace:
        return text[first_brace:last_brace + 1]

    return text


def _repair_json(text: str) -> str:
    """Apply common JSON repairs."""
    repaired = text

    # Smart quotes
    repaired = repaired.replace("“", '"').replace("”", '"')
    repaired = repaired.replace("‘", "'").replace("’", "'")

    # Trailing commas before } or ]
    repaired = re.sub(r",\s*([}\]])", r"\1", repaired)

    # Control characters except \n, \r, \t
    repaired = re.sub(r"[\x00-\x08\x0b\x0c\x0e-\x1f]", "", repaired)

    return repaired


def normalize_framework(value: Optional[str]) -> str:
    if not value:
        return DEFAULT_MULTI_FILE_FRAMEWORK
    return FRAMEWORK_ALIASES.get(str(value).strip().lower(), DEFAULT_MULTI_FILE_FRAMEWORK)


def _coerce_files(raw_files: Any) -> List[ProjectFile]:
    files = []
    if not isinstance(raw_files, list):
        return files
    for item in raw_files:
        if not isinstance(item, dict):
            continue
        path = item.get("path")
        content = item.get("content")
        if not isinstance(path, str) or not isinstance(content, str):
            continue
        kind = item.get("type") or item.get("kind")
        files.append(ProjectFile(
            path=path.strip(),
            content=content,
            kind=kind if kind in FILE_KINDS else "other",
        ))
    return files


def parse_backend_content(content: str) -> BackendPayload:
    """
    Turn raw backend content into a BackendPayload.

    Content that carries a multi-file JSON object becomes a structured
    payload; everything else is passed through as single-file/prose content.
    """
    if not content or not _MULTI_FILE_HINT.search(content):
        return BackendPayload(content=content)

    try:
        data = parse_json_robust(content)
    except JSONParseError:
        return BackendPayload(content=content)

    if data.get("type") != "multi-file" and not isinstance(data.get("files"), list):
        return BackendPayload(content=content)

    return BackendPayload(
        files=_coerce_files(data.get("files")),
        entry=data.get("entry") if isinstance(data.get("entry"), str) else None,
        framework=normalize_framework(data.get("framework")),
    )
