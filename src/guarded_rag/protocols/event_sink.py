"""Protocol for the observability sink receiving pipeline events."""

from __future__ import annotations

from typing import Protocol

from guarded_rag.observability.events import ObservabilityEvent


class EventSink(Protocol):
    def emit(self, event: ObservabilityEvent) -> None:
        """Fire-and-forget; callers never depend on the outcome."""
        ...
