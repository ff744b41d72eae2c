"""
Internal diagnostics channel

Collects defects that must be loud but must not crash the UI thread, such as
a focus lock acquire that found a foreign holder. Every record is logged at
ERROR and kept in a bounded buffer so a debug view or a test can read it.

Usage:
    diagnostics = Diagnostics()
    diagnostics.report("lock_conflict", requested="t2", holder="t1")
    diagnostics.records("lock_conflict")
"""

import logging
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from actionengine.models import Clock, utcnow

logger = logging.getLogger(__name__)

# Maximum records kept to prevent unbounded memory growth
MAX_RECORDS = 200


@dataclass(frozen=True)
class DiagnosticRecord:
    code: str
    at: datetime
    details: dict[str, Any] = field(default_factory=dict)


class Diagnostics:
    def __init__(self, clock: Clock = utcnow, max_records: int = MAX_RECORDS) -> None:
        self._clock = clock
        self._records: deque[DiagnosticRecord] = deque(maxlen=max_records)

    def report(self, code: str, **details: Any) -> DiagnosticRecord:
        record = DiagnosticRecord(code=code, at=self._clock(), details=details)
        self._records.append(record)
        logger.error(f"Diagnostic '{code}': {details}")
        return record

    def records(self, code: str | None = None) -> list[DiagnosticRecord]:
        if code is None:
            return list(self._records)
        return [r for r in self._records if r.code == code]

    def clear(self) -> None:
        self._records.clear()

    def __len__(self) -> int:
        return len(self._records)
