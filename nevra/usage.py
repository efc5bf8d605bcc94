"""
Usage accounting per provider.
"""

import threading
from typing import Dict, Optional

from nevra.providers import REQUEST_COST


class UsageLedger:
    """Charges a fixed cost per served request to the provider that served it."""

    def __init__(self, cost_per_request: int = REQUEST_COST):
        self.cost_per_request = cost_per_request
        self._lock = threading.Lock()
        self._units: Dict[str, int] = {}
        self._requests: Dict[str, int] = {}

    def record(self, provider_id: str) -> int:
        """Charge one request; returns the provider's new total."""
        with self._lock:
            self._units[provider_id] = self._units.get(provider_id, 0) + self.cost_per_request
            self._requests[provider_id] = self._requests.get(provider_id, 0) + 1
            return self._units[provider_id]

    def total(self, provider_id: str) -> int:
        return self._units.get(provider_id, 0)

    def requests(self, provider_id: str) -> int:
        return self._requests.get(provider_id, 0)

    def snapshot(self) -> Dict[str, int]:
        with self._lock:
            return dict(self._units)


_ledger: Optional[UsageLedger] = None


def get_usage_ledger() -> UsageLedger:
    """Get or create the global usage ledger."""
    global _ledger
    if _ledger is None:
        _ledger = UsageLedger()
    return _ledger
