"""
Virtual Project Store - in-memory multi-file project with one entry file.

Invariant: once set, the entry always references a file in the store.
Applying a new artifact clears the store and repopulates it wholesale.
"""

import logging
from pathlib import PurePosixPath
from typing import Dict, List, Optional

from nevra.errors import ProjectStoreError
from nevra.schemas import FILE_KINDS, MultiFile, ProjectFile, SingleFile
from nevra.utils import make_zip_bytes


logger = logging.getLogger(__name__)

SINGLE_FILE_PATH = "index.html"

_CONFIG_NAMES = {
    "package.json", "tsconfig.json", "vite.config.ts", "vite.config.js", "next.config.js",
    "next.config.mjs", "tailwind.config.js", "tailwind.config.ts", "postcss.config.js", "index.html",
}
_STYLE_SUFFIXES = (".css", ".scss", ".sass", ".less")
_PAGE_NAMES = {"page.tsx", "page.jsx", "layout.tsx", "layout.jsx", "app.tsx", "app.jsx"}


def normalize_path(path: str) -> str:
    """Normalize separators and strip leading slashes."""
    normalized = (path or "").strip().replace("\\", "/").lstrip("/")
    if not normalized:
        raise ProjectStoreError("File path must not be empty")
    return normalized


def infer_kind(path: str) -> str:
    """Guess a file's role from its path."""
    name = PurePosixPath(path).name
    lower = name.lower()
    if lower in _CONFIG_NAMES or lower.endswith((".json", ".config.js", ".config.ts")):
        return "config"
    if lower.endswith(_STYLE_SUFFIXES):
        return "style"
    if lower in _PAGE_NAMES or lower.endswith((".html", ".htm")) or "/pages/" in f"/{path}":
        return "page"
    if lower.endswith((".tsx", ".jsx")):
        return "component"
    return "other"


class VirtualProjectStore:
    """Ordered path -> ProjectFile mapping with a designated entry file."""

    def __init__(self):
        self._files: Dict[str, ProjectFile] = {}
        self._entry_path: Optional[str] = None

    def __len__(self) -> int:
        return len(self._files)

    def __contains__(self, path: str) -> bool:
        return self.has_file(path)

    @property
    def entry_path(self) -> Optional[str]:
        return self._entry_path

    def clear(self) -> None:
        self._files = {}
        self._entry_path = None

    def add_file(self, path: str, content: str, kind: Optional[str] = None) -> ProjectFile:
        """Create or overwrite a file."""
        path = normalize_path(path)
        if kind is not None and kind not in FILE_KINDS:
            raise ProjectStoreError(f"Unknown file kind: {kind}")
        project_file = ProjectFile(path=path, content=content, kind=kind or infer_kind(path))
        self._files[path] = project_file
        return project_file

    def has_file(self, path: str) -> bool:
        try:
            return normalize_path(path) in self._files
        except ProjectStoreError:
            return False

    def get_file(self, path: str) -> Optional[ProjectFile]:
        try:
            return self._files.get(normalize_path(path))
        except ProjectStoreError:
            return None

    def get_all(self) -> List[ProjectFile]:
        return list(self._files.values())

    def get_entry_file(self) -> Optional[ProjectFile]:
        if self._entry_path is None:
            return None
        return self._files.get(self._entry_path)

    def set_entry(self, path: str) -> None:
        path = normalize_path(path)
        if path not in self._files:
            raise ProjectStoreError(f"Cannot set entry to missing file: {path}")
        self._entry_path = path

    def clear_entry(self) -> None:
        self._entry_path = None

    def delete_file(self, path: str) -> ProjectFile:
        """
        Delete a file.

        Raises:
            ProjectStoreError: If the file is missing, or is the entry file
                (reassign or clear the entry first)
        """
        path = normalize_path(path)
        if path not in self._files:
            raise ProjectStoreError(f"No such file: {path}")
        if path == self._entry_path:
            raise ProjectStoreError(
                f"Cannot delete entry file {path}; reassign or clear the entry first"
            )
        return self._files.pop(path)

    def rename(self, old_path: str, new_path: str) -> ProjectFile:
        """Rename a file in place, keeping its position and carrying the entry along."""
        old_path = normalize_path(old_path)
        new_path = normalize_path(new_path)
        if old_path not in self._files:
            raise ProjectStoreError(f"No such file: {old_path}")
        if old_path == new_path:
            return self._files[old_path]
        if new_path in self._files:
            raise ProjectStoreError(f"File already exists: {new_path}")

        renamed = {}
        for path, project_file in self._files.items():
            if path == old_path:
                project_file = project_file.model_copy(update={"path": new_path})
                path = new_path
            renamed[path] = project_file
        self._files = renamed
        if self._entry_path == old_path:
            self._entry_path = new_path
        return self._files[new_path]

    def update_content(self, path: str, content: str) -> ProjectFile:
        """Replace a file's content, as the editor does for live edits."""
        existing = self.get_file(path)
        if existing is None:
            raise ProjectStoreError(f"No such file: {path}")
        updated = existing.model_copy(update={"content": content})
        self._files[existing.path] = updated
        return updated

    def apply_artifact(self, artifact) -> None:
        """Clear the store and repopulate it from a code artifact."""
        self.clear()
        if isinstance(artifact, SingleFile):
            self.add_file(SINGLE_FILE_PATH, artifact.content, "page")
            self.set_entry(SINGLE_FILE_PATH)
        elif isinstance(artifact, MultiFile):
            for project_file in artifact.files:
                self.add_file(project_file.path, project_file.content, project_file.kind)
            self.set_entry(artifact.entry_path)
        else:
            raise ProjectStoreError(f"Not a code artifact: {type(artifact).__name__}")
        logger.debug("Project store repopulated with %d file(s), entry=%s", len(self), self._entry_path)

    def to_dict(self) -> Dict[str, str]:
        return {path: f.content for path, f in self._files.items()}

    def to_zip(self) -> bytes:
        return make_zip_bytes(self.to_dict())
