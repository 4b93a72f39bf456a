"""Network connection state tracking for the bridge."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from enum import Enum, auto

log = logging.getLogger(__name__)

VERSION = "v2.0.0"
BRIDGE_NAME = "RV-Bridge"
DEFAULT_CHECK_INTERVAL_MS = 500


class HSStatus(Enum):
    """Connection status reported by the accessory server."""

    WIFI_NEEDED = auto()
    WIFI_CONNECTING = auto()
    PAIRING_NEEDED = auto()
    PAIRED = auto()


class Millis64:
    """Extends a wrapping 32-bit millisecond counter to 64 bits."""

    def __init__(self) -> None:
        self._low = 0
        self._high = 0

    def update(self, low32: int) -> int:
        """Feed the current 32-bit reading; return the 64-bit time."""
        low32 &= 0xFFFFFFFF
        if low32 < self._low:
            self._high += 1
        self._low = low32
        return (self._high << 32) | low32


def _monotonic_ms() -> int:
    return time.monotonic_ns() // 1_000_000


class WifiMonitor:
    """Tracks the network link and notices reconnections the server does not report."""

    def __init__(
        self,
        clock: Callable[[], int] = _monotonic_ms,
        check_interval_ms: int = DEFAULT_CHECK_INTERVAL_MS,
    ) -> None:
        self.clock = clock
        self.check_interval_ms = check_interval_ms
        self.connected = False
        self.had_connection = False
        self._next_check = 0

    def status_changed(self, status: HSStatus) -> None:
        if status == HSStatus.WIFI_CONNECTING:
            self.connected = False
            if self.had_connection:
                log.warning("WIFI: lost connection")

    def ready(self) -> None:
        self.connected = True
        self.had_connection = True
        log.info("WIFI: ready")

    def verify(self, is_connected: Callable[[], bool]) -> bool:
        """Check the link after a loss, at most once per interval; return connectivity."""
        if self.had_connection and not self.connected:
            now = self.clock()
            if now >= self._next_check:
                if is_connected():
                    self.ready()
                self._next_check = now + self.check_interval_ms
        return self.connected