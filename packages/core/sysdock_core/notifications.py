"""Bounded, deduplicated notification log fed by the alert engine."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Callable


class Severity(str, Enum):
    INFO = "info"
    WARNING = "warning"
    CRITICAL = "critical"


def severity_for_message(message: str) -> Severity:
    text = message.lower()
    if "critically" in text:
        return Severity.CRITICAL
    if "high" in text:
        return Severity.WARNING
    return Severity.INFO


@dataclass(frozen=True)
class NotificationEntry:
    id: str
    message: str
    severity: Severity
    timestamp: datetime
    read: bool = False


class NotificationCenter:
    """Newest-first log of alert messages, unique by message text.

    Entries outlive the alert that produced them; they leave only through
    ``dismiss`` or ``clear``, after which the same message may be logged again.
    """

    def __init__(self, limit: int = 10, clock: Callable[[], datetime] | None = None) -> None:
        self.limit = max(1, int(limit))
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._entries: list[NotificationEntry] = []

    def notify(self, message: str, severity: Severity | None = None) -> NotificationEntry | None:
        if any(e.message == message for e in self._entries):
            return None
        entry = NotificationEntry(
            id=uuid.uuid4().hex,
            message=message,
            severity=severity or severity_for_message(message),
            timestamp=self._clock(),
        )
        self._entries.insert(0, entry)
        del self._entries[self.limit:]
        return entry

    def entries(self) -> list[NotificationEntry]:
        return list(self._entries)

    def mark_all_read(self) -> None:
        self._entries = [replace(e, read=True) if not e.read else e for e in self._entries]

    def dismiss(self, entry_id: str) -> bool:
        before = len(self._entries)
        self._entries = [e for e in self._entries if e.id != entry_id]
        return len(self._entries) != before

    def clear(self) -> None:
        self._entries = []

    @property
    def unread_count(self) -> int:
        return sum(1 for e in self._entries if not e.read)

    def __len__(self) -> int:
        return len(self._entries)
