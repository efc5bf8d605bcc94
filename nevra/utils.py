"""
Utility helpers for downloads and the code viewer.
"""

import io
import re
import zipfile
from pathlib import PurePosixPath
from typing import Dict


def make_zip_bytes(files: Dict[str, str], root: str = "") -> bytes:
    """
    Create an in-memory ZIP archive from a mapping of path to content.

    Args:
        files: Mapping of file paths to file contents
        root: Optional folder name every file is placed under

    Returns:
        Bytes of the ZIP archive
    """
    buffer = io.BytesIO()
    prefix = f"{root.strip('/')}/" if root.strip("/") else ""

    with zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as zf:
        for path, content in files.items():
            normalized_path = path.replace("\\", "/").lstrip("/")
            zf.writestr(prefix + normalized_path, content)

    return buffer.getvalue()


# Syntax-highlighting language per extension, for the file viewer
EXTENSION_LANGUAGE_MAP = {
    ".html": "html",
    ".htm": "html",
    ".css": "css",
    ".scss": "scss",
    ".sass": "sass",
    ".less": "less",
    ".js": "javascript",
    ".mjs": "javascript",
    ".cjs": "javascript",
    ".jsx": "jsx",
    ".ts": "typescript",
    ".tsx": "tsx",
    ".json": "json",
    ".md": "markdown",
    ".svg": "xml",
    ".xml": "xml",
    ".yaml": "yaml",
    ".yml": "yaml",
    ".txt": "text",
}

FILENAME_LANGUAGE_MAP = {
    ".gitignore": "text",
    ".env": "text",
    ".env.example": "text",
    ".env.local": "text",
}


def guess_language_from_filename(path: str) -> str:
    """
    Guess the language of a file for syntax highlighting.

    Returns:
        Language name, defaults to "text"
    """
    name = PurePosixPath(path.replace("\\", "/")).name
    if name in FILENAME_LANGUAGE_MAP:
        return FILENAME_LANGUAGE_MAP[name]
    return EXTENSION_LANGUAGE_MAP.get(PurePosixPath(name).suffix.lower(), "text")


def safe_project_name(prompt: str) -> str:
    """
    Derive a download-safe project name from a prompt.
    """
    name = re.sub(r"\s+", "_", (prompt or "")[:50].strip())
    name = re.sub(r"[^\w\-]", "", name).strip("_")
    return name.lower() or "nevra_project"
