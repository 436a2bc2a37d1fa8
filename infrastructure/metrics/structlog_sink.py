"""structlog-backed MetricsSink.

Events are emitted as ``otp_metric`` log lines so they can be picked up by
whatever ships the JSON logs. Tracking is fire-and-forget: a failure here is
logged and never reaches the caller.
"""

from typing import Any, Optional

from structlog.stdlib import BoundLogger

from shared.logging import get_logger

log = get_logger(__name__)


class StructlogMetricsSink:
    def __init__(self, logger: Optional[BoundLogger] = None) -> None:
        self._log = logger or log

    def track_event(
        self, category: str, outcome: str, dimensions: dict[str, Any]
    ) -> None:
        try:
            self._log.info(
                "otp_metric", category=category, outcome=outcome, **dimensions
            )
        except Exception as e:
            log.warning(
                "otp_metric_dropped",
                category=category,
                error=str(e),
                error_type=type(e).__name__,
            )
