"""ADLAUNCH — Publish Error Taxonomy.

Every failure raised by the publish pipeline derives from ``PublishError`` so
API routes can translate them in one place. All of them are scoped to a
single campaign; nothing here is process-fatal.

Meta errors are additionally classified by code and subcode into a category,
a severity and a user-facing message.
"""

from dataclasses import dataclass
from typing import Any, Optional

# Meta code ranges
RATE_LIMIT_CODES = (4, 17, 32, 613)
SERVER_CODES = (1, 2)
INVALID_PARAMETER_CODE = 100


@dataclass(frozen=True)
class ErrorMessage:
    title: str
    user_message: str
    suggested_action: str
    help_link: Optional[str] = None


ERROR_MESSAGES: dict[str, ErrorMessage] = {
    "validation_error": ErrorMessage(
        "Validation Error",
        "Some required fields are missing or invalid. Please review your ad details and try again.",
        "Edit your ad to fix validation issues, then republish.",
        "https://www.facebook.com/business/help/402876963841254",
    ),
    "policy_violation": ErrorMessage(
        "Policy Violation",
        "Your ad doesn't meet Meta's advertising policies.",
        "Review Meta's advertising policies, edit your ad to comply, then resubmit for review.",
        "https://www.facebook.com/policies/ads/",
    ),
    "payment_required": ErrorMessage(
        "Payment Method Required",
        "A valid payment method is required to publish ads.",
        "Add a payment method in Meta Business Settings, then retry publishing.",
        "https://www.facebook.com/business/help/448633038995435",
    ),
    "token_expired": ErrorMessage(
        "Connection Expired",
        "Your Facebook connection has expired or been revoked. Please reconnect your account.",
        "Reconnect Meta in settings to authorize access again, then retry publishing.",
    ),
    "api_error": ErrorMessage(
        "API Error",
        "Meta's advertising API encountered an error. This is usually temporary.",
        "Wait a few minutes and try again. If the problem persists, contact support.",
        "https://developers.facebook.com/support/",
    ),
}


@dataclass(frozen=True)
class ErrorClassification:
    """How a Meta error should be reported and whether it is worth retrying."""

    code: str
    category: str
    severity: str
    recoverable: bool = True

    @property
    def retryable(self) -> bool:
        """Only rate limits and server faults clear up without user action."""
        return self.category in ("rate_limit", "server")

    @property
    def message(self) -> ErrorMessage:
        return ERROR_MESSAGES[self.code]

    def as_dict(self) -> dict[str, Any]:
        return {
            "error_type": self.code,
            "error_category": self.category,
            "error_severity": self.severity,
            "recoverable": self.recoverable,
            "retryable": self.retryable,
        }


AUTHENTICATION = ErrorClassification("token_expired", "authentication", "high")
AUTHORIZATION = ErrorClassification("policy_violation", "authorization", "high")
RATE_LIMIT = ErrorClassification("api_error", "rate_limit", "medium")
PAYMENT = ErrorClassification("payment_required", "payment", "high")
POLICY = ErrorClassification("policy_violation", "policy", "high")
VALIDATION = ErrorClassification("validation_error", "validation", "medium")
SERVER = ErrorClassification("api_error", "server", "medium")


def classify_meta_error(
    code: Optional[int], subcode: Optional[int] = None, message: str = ""
) -> ErrorClassification:
    """Map a Meta error code/subcode (falling back to the message) to a classification."""
    for value in (subcode, code):
        if value is not None and 1487000 <= value < 1488000:
            return POLICY

    if code is not None:
        if code == INVALID_PARAMETER_CODE or 80000 <= code < 81000:
            return VALIDATION
        if 100 <= code < 200:
            return AUTHENTICATION
        if 200 <= code < 300:
            return AUTHORIZATION
        if code in RATE_LIMIT_CODES:
            return RATE_LIMIT
        if 2650 <= code < 2700:
            return PAYMENT
        if code in SERVER_CODES or code >= 500:
            return SERVER

    text = message.lower()
    if "token" in text:
        return AUTHENTICATION
    if "payment" in text:
        return PAYMENT
    if "policy" in text or "violat" in text:
        return POLICY
    return SERVER


class PublishError(Exception):
    """Base exception for the publish subsystem."""

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details: dict[str, Any] = details or {}


class ConfigurationError(PublishError):
    """Stored publish configuration is missing or malformed."""


class PlatformConnectionError(PublishError):
    """No usable Meta connection (credential, token or ad account) for the campaign."""


class NotPublishedError(PublishError):
    """Pause/resume requested before a successful publish."""


class ExternalAPIError(PublishError):
    """Raised when the Meta API returns an error or an unusable response.

    The platform diagnostic fields are explicit and optional; they are only
    populated when the error envelope carried them.
    """

    def __init__(
        self,
        message: str,
        status_code: int = 0,
        error_code: Optional[int] = None,
        error_subcode: Optional[int] = None,
        fbtrace_id: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message, details)
        self.status_code = status_code
        self.error_code = error_code
        self.error_subcode = error_subcode
        self.fbtrace_id = fbtrace_id

    def classify(self) -> ErrorClassification:
        return classify_meta_error(self.error_code, self.error_subcode, self.message)

    @property
    def category(self) -> str:
        return self.classify().category

    @property
    def recoverable(self) -> bool:
        return self.classify().recoverable

    def diagnostics(self) -> dict[str, Any]:
        """Platform diagnostic fields that are set, keyed for logging."""
        fields = {
            "status_code": self.status_code or None,
            "meta_error_code": self.error_code,
            "meta_error_subcode": self.error_subcode,
            "fbtrace_id": self.fbtrace_id,
        }
        return {k: v for k, v in fields.items() if v is not None}


class MalformedResponseError(ExternalAPIError):
    """A 2xx response whose body is not a JSON object."""


class RetryExhaustedError(PublishError):
    """Internal API call still failing after the retry budget was spent."""

    def __init__(self, message: str, attempts: int, last_error: Any = None):
        super().__init__(message, {"attempts": attempts})
        self.attempts = attempts
        self.last_error = last_error
