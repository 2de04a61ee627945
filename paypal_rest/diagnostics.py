"""Thread-confined capture of the most recent raw request and response.

Each thread sees only what it recorded itself. Values persist until the same
thread records again; they are never cleared otherwise.
"""

from __future__ import annotations

import threading
from enum import Enum


class DiagnosticKind(str, Enum):
    REQUEST = "request"
    RESPONSE = "response"


class DiagnosticsStore:
    """Per-thread slots for the last payload sent and body received.

    No locking: threading.local gives every thread its own attribute
    namespace, and a slot is only ever written by its owner.
    """

    def __init__(self) -> None:
        self._local = threading.local()

    def record(self, kind: DiagnosticKind, value: str | None) -> None:
        setattr(self._local, DiagnosticKind(kind).value, value)

    def get(self, kind: DiagnosticKind) -> str | None:
        """Most recent value recorded by this thread, or None if there is none."""
        return getattr(self._local, DiagnosticKind(kind).value, None)

    @property
    def last_request(self) -> str | None:
        return self.get(DiagnosticKind.REQUEST)

    @property
    def last_response(self) -> str | None:
        return self.get(DiagnosticKind.RESPONSE)
