"""ADLAUNCH — Publish Flow Logger.

Correlation-tracked structured logging for the publish pipeline. A logger is
created by the caller for one publish attempt and passed explicitly to
everything that runs on behalf of that attempt.
"""

import time
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Protocol

from adlaunch.core.errors import ExternalAPIError
from adlaunch.core.logging import get_logger

CATEGORY = "PublishFlow"
SENSITIVE_KEYS = ("token", "access_token", "password", "secret", "key", "auth")
REDACTED = "REDACTED"


def sanitize(data: Dict[str, Any]) -> Dict[str, Any]:
    """Redact credential-looking values, recursing into nested dicts.

    Long strings keep their first and last four characters so tokens stay
    distinguishable in logs. Lists are not walked.
    """
    sanitized: Dict[str, Any] = {}
    for key, value in data.items():
        lower_key = str(key).lower()
        if any(term in lower_key for term in SENSITIVE_KEYS):
            if isinstance(value, str) and len(value) > 8:
                sanitized[key] = f"{value[:4]}…{value[-4:]}"
            else:
                sanitized[key] = REDACTED
        elif isinstance(value, dict):
            sanitized[key] = sanitize(value)
        else:
            sanitized[key] = value
    return sanitized


class LogSink(Protocol):
    """Destination for publish events."""

    def info(self, category: str, message: str, context: Dict[str, Any]) -> None: ...

    def warn(self, category: str, message: str, context: Dict[str, Any]) -> None: ...

    def error(self, category: str, message: str, context: Dict[str, Any]) -> None: ...


class StructuredLogSink:
    """Default sink — writes events through the JSON logger."""

    def __init__(self, name: str = "publish"):
        self._logger = get_logger(name)

    def _extra(self, category: str, context: Dict[str, Any]) -> Dict[str, Any]:
        return {
            "category": category,
            "correlation_id": context.get("correlation_id"),
            "campaign_id": context.get("campaign_id"),
            "stage": context.get("stage"),
            "operation": context.get("operation"),
            "elapsed_ms": context.get("elapsed_ms"),
            "context": context,
        }

    def info(self, category: str, message: str, context: Dict[str, Any]) -> None:
        self._logger.info(message, extra=self._extra(category, context))

    def warn(self, category: str, message: str, context: Dict[str, Any]) -> None:
        self._logger.warning(message, extra=self._extra(category, context))

    def error(self, category: str, message: str, context: Dict[str, Any]) -> None:
        self._logger.error(message, extra=self._extra(category, context))


class PublishLogger:
    """Structured logger for one publish attempt."""

    def __init__(
        self,
        campaign_id: str,
        correlation_id: Optional[str] = None,
        sink: Optional[LogSink] = None,
    ):
        self.campaign_id = campaign_id
        self.correlation_id = correlation_id or str(uuid.uuid4())
        self.sink: LogSink = sink or StructuredLogSink()
        self._start = time.monotonic()
        self._stage_timers: Dict[str, float] = {}

    @staticmethod
    def sanitize(data: Dict[str, Any]) -> Dict[str, Any]:
        return sanitize(data)

    def elapsed_ms(self) -> int:
        return int((time.monotonic() - self._start) * 1000)

    def _context(self, extra: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        context = {
            "correlation_id": self.correlation_id,
            "campaign_id": self.campaign_id,
            "elapsed_ms": self.elapsed_ms(),
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
        if extra:
            context.update(sanitize(extra))
        return context

    # ── Stages ──

    def stage_start(self, stage: str, **context: Any) -> None:
        self._stage_timers[stage] = time.monotonic()
        self.sink.info(
            CATEGORY,
            f"Stage {stage} started",
            self._context({"stage": stage, "operation": "stage_start", **context}),
        )

    def stage_complete(self, stage: str, **context: Any) -> None:
        started = self._stage_timers.pop(stage, None)
        duration = int((time.monotonic() - started) * 1000) if started is not None else None
        self.sink.info(
            CATEGORY,
            f"Stage {stage} completed",
            self._context(
                {
                    "stage": stage,
                    "operation": "stage_complete",
                    "duration_ms": duration,
                    **context,
                }
            ),
        )

    # ── Outbound calls ──

    def api_call(self, endpoint: str, method: str, **context: Any) -> None:
        self.sink.info(
            CATEGORY,
            f"Meta API call: {method} {endpoint}",
            self._context(
                {"operation": "api_call", "endpoint": endpoint, "method": method, **context}
            ),
        )

    def api_response(
        self, endpoint: str, status: int, duration_ms: int, **context: Any
    ) -> None:
        emit = self.sink.warn if status >= 400 or status == 0 else self.sink.info
        emit(
            CATEGORY,
            f"Meta API response: {status} from {endpoint}",
            self._context(
                {
                    "operation": "api_response",
                    "endpoint": endpoint,
                    "status": status,
                    "duration_ms": duration_ms,
                    **context,
                }
            ),
        )

    def retry(
        self,
        operation: str,
        attempt: int,
        max_attempts: int,
        delay_ms: int,
        reason: Optional[str] = None,
    ) -> None:
        self.sink.warn(
            CATEGORY,
            f"Retrying {operation} (attempt {attempt}/{max_attempts})",
            self._context(
                {
                    "operation": "retry",
                    "retry_operation": operation,
                    "attempt": attempt,
                    "max_attempts": max_attempts,
                    "delay_ms": delay_ms,
                    "reason": reason,
                }
            ),
        )

    # ── Problems ──

    def validation_failure(self, field: str, error: str, **context: Any) -> None:
        self.sink.warn(
            CATEGORY,
            f"Validation failed for {field}: {error}",
            self._context(
                {
                    "operation": "validation_failure",
                    "field": field,
                    "validation_error": error,
                    **context,
                }
            ),
        )

    def warning(self, message: str, **context: Any) -> None:
        self.sink.warn(CATEGORY, message, self._context({"operation": "warning", **context}))

    def error(self, error: BaseException, stage: str, **context: Any) -> None:
        error_context: Dict[str, Any] = {
            "operation": "error",
            "stage": stage,
            "error_name": type(error).__name__,
            "error_message": str(error),
            **context,
        }
        if isinstance(error, ExternalAPIError):
            error_context.update(error.diagnostics())
            error_context.update(error.classify().as_dict())
        self.sink.error(CATEGORY, str(error), self._context(error_context))

    def critical(self, message: str, error: Optional[BaseException] = None, **context: Any) -> None:
        critical_context: Dict[str, Any] = {
            "operation": "critical_error",
            "critical": True,
            **context,
        }
        if error is not None:
            critical_context["error_name"] = type(error).__name__
            critical_context["error_message"] = str(error)
        self.sink.error(CATEGORY, f"CRITICAL: {message}", self._context(critical_context))

    # ── Summary ──

    def publish_success(
        self, external_campaign_id: str, external_adset_id: str, external_ad_ids: List[str]
    ) -> None:
        self.sink.info(
            CATEGORY,
            "Campaign published successfully",
            self._context(
                {
                    "operation": "publish_success",
                    "total_duration_ms": self.elapsed_ms(),
                    "external_campaign_id": external_campaign_id,
                    "external_adset_id": external_adset_id,
                    "external_ad_ids": external_ad_ids,
                    "ad_count": len(external_ad_ids),
                }
            ),
        )

    def publish_failure(self, stage: str, reason: str, **context: Any) -> None:
        self.sink.error(
            CATEGORY,
            "Campaign publish failed",
            self._context(
                {
                    "operation": "publish_failure",
                    "total_duration_ms": self.elapsed_ms(),
                    "failed_stage": stage,
                    "failure_reason": reason,
                    **context,
                }
            ),
        )

    def child(self, operation: str) -> "PublishLogger":
        """Logger for a sub-operation sharing this attempt's correlation id and clock."""
        child = PublishLogger(self.campaign_id, self.correlation_id, self.sink)
        child._start = self._start
        self.sink.info(
            CATEGORY,
            f"Creating child logger for {operation}",
            self._context({"operation": "child_logger_created", "child_operation": operation}),
        )
        return child
