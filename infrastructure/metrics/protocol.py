"""MetricsSink protocol — services depend on this, not the concrete implementation."""

from typing import Any, Protocol


class MetricsSink(Protocol):
    def track_event(
        self, category: str, outcome: str, dimensions: dict[str, Any]
    ) -> None: ...
