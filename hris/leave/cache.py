"""Leave engine cache-bust notifications.

A version counter plus listener registry. Every leave mutation calls
``invalidate`` so views holding balances know to re-fetch. This drives
freshness only; balances are always recomputable from request history.
"""

from __future__ import annotations

import logging
import threading
import uuid
from typing import Callable, Optional

logger = logging.getLogger(__name__)

Listener = Callable[[int, Optional[uuid.UUID]], None]


class LeaveEngineCache:
    """Version counter with subscribe/unsubscribe listeners."""

    def __init__(self) -> None:
        self._version = 0
        self._employee_versions: dict[uuid.UUID, int] = {}
        self._all_version = 0
        self._listeners: list[Listener] = []
        self._lock = threading.Lock()

    @property
    def version(self) -> int:
        return self._version

    def version_for(self, employee_id: uuid.UUID) -> int:
        """Version at which this employee's balances last changed (0 if never)."""
        return max(self._all_version, self._employee_versions.get(employee_id, 0))

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register ``listener(version, employee_id)``; returns an unsubscribe callable."""
        with self._lock:
            self._listeners.append(listener)

        def _unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return _unsubscribe

    def invalidate(self, employee_id: Optional[uuid.UUID] = None) -> int:
        """Bump the version and notify listeners. ``None`` means every employee."""
        with self._lock:
            self._version += 1
            version = self._version
            if employee_id is not None:
                self._employee_versions[employee_id] = version
            else:
                self._all_version = version
                self._employee_versions.clear()
            listeners = list(self._listeners)

        for listener in listeners:
            try:
                listener(version, employee_id)
            except Exception:
                # One broken view must not block the others
                logger.exception("Leave cache listener %r failed", listener)
        return version

    def reset(self) -> None:
        with self._lock:
            self._version = 0
            self._all_version = 0
            self._employee_versions.clear()
            self._listeners.clear()


leave_engine_cache = LeaveEngineCache()
