"""
Preview Registry - track rendered preview documents per session with TTL.

Responsibilities:
- Store the active preview for each session
- Replace a session's preview when a new one is registered
- Expire previews after their TTL and dispose them on session teardown
"""

import threading
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Dict, List, Optional

from nevra.sandbox.renderer import PreviewDocument


# =============================================================================
# CONFIGURATION
# =============================================================================

# Default TTL for previews (15 minutes)
DEFAULT_TTL_MINUTES = 15


# =============================================================================
# DATA CLASSES
# =============================================================================

@dataclass
class PreviewEntry:
    """A registered preview and its lifetime."""
    preview_id: str
    session_id: str
    document: PreviewDocument
    created_at: datetime
    ttl_minutes: int
    status: str = "active"  # "active", "replaced", "expired", "disposed"
    metadata: Dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> Dict:
        return {
            "preview_id": self.preview_id,
            "session_id": self.session_id,
            "kind": self.document.kind,
            "digest": self.document.digest(),
            "created_at": self.created_at.isoformat(),
            "ttl_minutes": self.ttl_minutes,
            "status": self.status,
        }

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        """Check if the preview has exceeded its TTL."""
        now = now or datetime.now()
        return now > self.created_at + timedelta(minutes=self.ttl_minutes)

    def time_remaining(self, now: Optional[datetime] = None) -> int:
        """Get remaining time in seconds."""
        now = now or datetime.now()
        remaining = (self.created_at + timedelta(minutes=self.ttl_minutes) - now).total_seconds()
        return max(0, int(remaining))

    def time_remaining_formatted(self, now: Optional[datetime] = None) -> str:
        """Get remaining time as formatted string."""
        seconds = self.time_remaining(now)
        return f"{seconds // 60}m {seconds % 60}s"


# =============================================================================
# REGISTRY CLASS
# =============================================================================

class PreviewRegistry:
    """
    Registry of rendered previews.

    Thread-safe operations for:
    - Registering and replacing previews
    - Lookup by preview id or session
    - TTL-based cleanup and session teardown
    """

    def __init__(self, ttl_minutes: int = DEFAULT_TTL_MINUTES):
        self.ttl_minutes = ttl_minutes
        self._lock = threading.Lock()
        self._entries: Dict[str, PreviewEntry] = {}

    def register(self, session_id: str, document: PreviewDocument,
                 now: Optional[datetime] = None) -> PreviewEntry:
        """Register a preview, replacing the session's previous one."""
        entry = PreviewEntry(
            preview_id=uuid.uuid4().hex,
            session_id=session_id,
            document=document,
            created_at=now or datetime.now(),
            ttl_minutes=self.ttl_minutes,
        )
        with self._lock:
            replaced = [pid for pid, e in self._entries.items() if e.session_id == session_id]
            for preview_id in replaced:
                self._entries.pop(preview_id).status = "replaced"
            self._entries[entry.preview_id] = entry
        return entry

    def get(self, preview_id: str, now: Optional[datetime] = None) -> Optional[PreviewEntry]:
        """Get an active preview by id; expired previews are not returned."""
        with self._lock:
            entry = self._entries.get(preview_id)
            if entry is None or entry.status != "active":
                return None
            if entry.is_expired(now):
                entry.status = "expired"
                return None
            return entry

    def get_by_session(self, session_id: str, now: Optional[datetime] = None) -> Optional[PreviewEntry]:
        """Get the active preview for a session."""
        with self._lock:
            for entry in self._entries.values():
                if entry.session_id == session_id and entry.status == "active":
                    if entry.is_expired(now):
                        entry.status = "expired"
                        return None
                    return entry
        return None

    def get_all(self) -> List[PreviewEntry]:
        return list(self._entries.values())

    def get_active(self) -> List[PreviewEntry]:
        return [e for e in self._entries.values() if e.status == "active"]

    def cleanup_expired(self, now: Optional[datetime] = None) -> List[str]:
        """
        Mark expired previews.

        Returns:
            List of expired preview IDs
        """
        expired = []
        with self._lock:
            for entry in self._entries.values():
                if entry.status == "active" and entry.is_expired(now):
                    entry.status = "expired"
                    expired.append(entry.preview_id)
        return expired

    def teardown_session(self, session_id: str) -> int:
        """
        Dispose every preview belonging to a session.

        Returns:
            Number of previews removed
        """
        with self._lock:
            doomed = [pid for pid, e in self._entries.items() if e.session_id == session_id]
            for preview_id in doomed:
                self._entries.pop(preview_id).status = "disposed"
        return len(doomed)

    def cleanup_stale_entries(self) -> int:
        """Remove entries that are no longer active."""
        with self._lock:
            stale = [pid for pid, e in self._entries.items() if e.status != "active"]
            for preview_id in stale:
                self._entries.pop(preview_id)
        return len(stale)


# =============================================================================
# MODULE-LEVEL FUNCTIONS
# =============================================================================

_registry: Optional[PreviewRegistry] = None


def get_registry() -> PreviewRegistry:
    """Get the global registry instance."""
    global _registry
    if _registry is None:
        from nevra.config import ConfigError, get_config
        try:
            ttl = get_config().preview_ttl_minutes
        except ConfigError:
            ttl = DEFAULT_TTL_MINUTES
        _registry = PreviewRegistry(ttl_minutes=ttl)
    return _registry


def get_session_preview(session_id: str) -> Optional[PreviewEntry]:
    """Get the active preview for a session."""
    return get_registry().get_by_session(session_id)


def cleanup_expired() -> List[str]:
    """Expire previews past their TTL."""
    return get_registry().cleanup_expired()
