# variant_tagger/services/cooldown.py
import threading
from abc import ABC, abstractmethod

from .. import config
from ..utils.logger import debug

class CooldownStore(ABC):
    """Admission gate: one in-flight reconciliation per variant id.

    In-memory for a single process; a shared cache can implement the same two
    calls for multi-instance deployments.
    """

    @abstractmethod
    def admit(self, variant_id: str) -> bool:
        """Insert-if-absent. False means the id is cooling down and must be skipped."""

    @abstractmethod
    def expire(self, variant_id: str) -> None:
        """Drop the entry now (no-op if absent)."""


class InMemoryCooldownStore(CooldownStore):
    def __init__(self, window_sec: float = config.COOLDOWN_SEC):
        self.window_sec = window_sec
        self._lock = threading.Lock()
        self._timers: dict[str, threading.Timer] = {}

    def admit(self, variant_id: str) -> bool:
        with self._lock:
            if variant_id in self._timers:
                debug(f"skip {variant_id}: cooling down", "cooldown")
                return False
            timer = threading.Timer(self.window_sec, self._on_timer)
            timer.args = (variant_id, timer)
            timer.daemon = True
            self._timers[variant_id] = timer
        timer.start()
        return True

    def _on_timer(self, variant_id: str, timer: threading.Timer) -> None:
        # only drop the entry this timer was armed for
        with self._lock:
            if self._timers.get(variant_id) is timer:
                del self._timers[variant_id]

    def expire(self, variant_id: str) -> None:
        with self._lock:
            timer = self._timers.pop(variant_id, None)
        if timer is not None:
            timer.cancel()

    def __contains__(self, variant_id: str) -> bool:
        with self._lock:
            return variant_id in self._timers

    def __len__(self) -> int:
        with self._lock:
            return len(self._timers)

    def clear(self) -> None:
        with self._lock:
            timers, self._timers = list(self._timers.values()), {}
        for t in timers:
            t.cancel()
