"""Append-only, timestamped status log shown to the user."""

from datetime import datetime
from typing import Callable, List, Optional

from srt_translator.logger import get_logger

logger = get_logger(__name__)

ALERT_MARKERS = ("Error", "Failed")


class StatusLog:
    """Ordered list of ``[HH:MM:SS] message`` entries, oldest first."""

    def __init__(self, clock: Optional[Callable[[], datetime]] = None):
        self._entries: List[str] = []
        self._clock = clock or datetime.now

    def append(self, message: str) -> str:
        timestamp = self._clock().strftime("%H:%M:%S")
        entry = f"[{timestamp}] {message}"
        self._entries.append(entry)
        if any(marker in message for marker in ALERT_MARKERS):
            logger.warning(message)
        else:
            logger.info(message)
        return entry

    def entries(self) -> List[str]:
        return list(self._entries)

    def has_alerts(self) -> bool:
        """True when any entry reports an error or failure."""
        return any(marker in entry for entry in self._entries for marker in ALERT_MARKERS)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
