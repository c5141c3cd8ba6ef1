"""Error containment for the polling pipeline."""

import logging
import time
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, List, Optional

from .exceptions import ChargerSyncError


class ErrorAggregator:
    """Collects and reports on error patterns."""

    def __init__(self, max_errors: int = 100) -> None:
        """Initialize error aggregator."""
        self.max_errors = max_errors
        self.errors: List[Dict[str, Any]] = []
        self.logger = logging.getLogger("chargeamps_sync.error_aggregator")

    def record_error(
        self,
        error: Exception,
        context: Optional[str] = None,
        operation: Optional[str] = None,
    ) -> None:
        """Record an error with context."""
        error_info = {
            "timestamp": time.time(),
            "error_type": type(error).__name__,
            "message": str(error),
            "context": context,
            "operation": operation,
        }

        self.errors.append(error_info)

        if len(self.errors) > self.max_errors:
            self.errors = self.errors[-self.max_errors :]

    def get_error_summary(self, last_minutes: int = 60) -> Dict[str, Any]:
        """Get summary of errors from the last N minutes."""
        cutoff_time = time.time() - (last_minutes * 60)
        recent_errors = [e for e in self.errors if e["timestamp"] >= cutoff_time]

        error_types: Dict[str, Dict[str, Any]] = {}
        for error in recent_errors:
            info = error_types.setdefault(
                error["error_type"],
                {"count": 0, "last_occurrence": 0.0, "operations": []},
            )
            info["count"] += 1
            info["last_occurrence"] = error["timestamp"]
            if error["operation"] and error["operation"] not in info["operations"]:
                info["operations"].append(error["operation"])

        return {
            "total_errors": len(recent_errors),
            "error_types": error_types,
            "time_window_minutes": last_minutes,
        }

    def log_error_summary(self, last_minutes: int = 60) -> None:
        """Log error summary."""
        summary = self.get_error_summary(last_minutes)
        if summary["total_errors"] == 0:
            return

        self.logger.info(
            f"Error summary (last {last_minutes} minutes): "
            f"{summary['total_errors']} errors"
        )
        for error_type, info in summary["error_types"].items():
            operations = ", ".join(info["operations"]) or "N/A"
            self.logger.info(
                f"  {error_type}: {info['count']} occurrences, stages: {operations}"
            )


@asynccontextmanager
async def guarded_stage(
    name: str,
    logger: logging.Logger,
    aggregator: Optional[ErrorAggregator] = None,
    context: Optional[str] = None,
    errors: Optional[List[str]] = None,
) -> AsyncIterator[None]:
    """Run one pipeline stage, containing any failure it raises.

    A failing stage is logged and recorded, and control returns to the
    caller so that the next stage still runs. Cancellation is not contained.

    Args:
        name: Stage name used in logs and in the aggregator.
        logger: Logger of the calling component.
        aggregator: Where to record the failure, if anywhere.
        context: Free-form context, typically the device id.
        errors: Per-cycle list that receives a short description.
    """
    try:
        yield
    except ChargerSyncError as e:
        logger.error(f"Stage '{name}' failed: {e}")
        if aggregator is not None:
            aggregator.record_error(e, context=context, operation=name)
        if errors is not None:
            errors.append(f"{name}: {e}")
    except Exception as e:
        logger.exception(f"Stage '{name}' failed unexpectedly: {e}")
        if aggregator is not None:
            aggregator.record_error(e, context=context, operation=name)
        if errors is not None:
            errors.append(f"{name}: {type(e).__name__}: {e}")
