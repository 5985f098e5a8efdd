"""Deterministic failure classification for retry policy and task labels."""

from __future__ import annotations

from dataclasses import dataclass

from studio_queue.queue.errors import ApiError, GenerationError
from studio_queue.queue.models import FailureClass

FAILURE_CLASSIFIER_VERSION = 1

TRANSIENT_STATUS_CODES: frozenset[int] = frozenset({429, 503})
VALIDATION_STATUS_CODES: frozenset[int] = frozenset({400})

FAILURE_LABELS: dict[FailureClass, str] = {
    FailureClass.CONFIG_ERROR: "missing API key",
    FailureClass.TRANSIENT: "quota exceeded",
    FailureClass.SAFETY_BLOCKED: "blocked by safety filters",
    FailureClass.VALIDATION_ERROR: "invalid configuration",
    FailureClass.NO_RESULT: "no image generated",
    FailureClass.VIDEO_GENERATION_ERROR: "video generation error",
    FailureClass.DOWNLOAD_ERROR: "download failed",
    FailureClass.UNKNOWN: "failed",
}

_TRANSIENT_PATTERNS: tuple[str, ...] = (
    "resource_exhausted",
    "resource has been exhausted",
    "too many requests",
    "service unavailable",
    "429",
    "503",
)
_SAFETY_PATTERNS: tuple[str, ...] = (
    "safety",
    "prohibited_content",
)
_VALIDATION_PATTERNS: tuple[str, ...] = (
    "invalid_argument",
    "invalid argument",
    "400",
)


@dataclass(slots=True)
class FailureClassification:
    """Normalized failure classification result."""

    failure_class: FailureClass
    reason_code: str
    matched_rule: str
    matched_pattern: str | None

    @property
    def label(self) -> str:
        return FAILURE_LABELS[self.failure_class]

    def to_event_details(self) -> dict[str, object]:
        """Serialize classifier diagnostics for queue events."""

        return {
            "classifier_version": FAILURE_CLASSIFIER_VERSION,
            "failure_class": self.failure_class.value,
            "reason_code": self.reason_code,
            "matched_rule": self.matched_rule,
            "matched_pattern": self.matched_pattern,
        }


def classify_failure(error: BaseException) -> FailureClassification:
    """Classify any handler exception into a deterministic failure class."""

    if isinstance(error, GenerationError):
        return FailureClassification(
            failure_class=error.failure_class,
            reason_code=error.failure_class.value,
            matched_rule="typed_error",
            matched_pattern=None,
        )

    status_code = _status_code(error)
    if status_code in TRANSIENT_STATUS_CODES:
        return FailureClassification(
            failure_class=FailureClass.TRANSIENT,
            reason_code=f"http_{status_code}",
            matched_rule="transient_status_code",
            matched_pattern=None,
        )

    haystack = _normalize_text(error)
    pattern = _first_match(haystack, _TRANSIENT_PATTERNS)
    if pattern is not None:
        return FailureClassification(
            failure_class=FailureClass.TRANSIENT,
            reason_code="transient_message",
            matched_rule="transient_message",
            matched_pattern=pattern,
        )

    if status_code in VALIDATION_STATUS_CODES:
        return FailureClassification(
            failure_class=FailureClass.VALIDATION_ERROR,
            reason_code=f"http_{status_code}",
            matched_rule="validation_status_code",
            matched_pattern=None,
        )

    pattern = _first_match(haystack, _SAFETY_PATTERNS)
    if pattern is not None:
        return FailureClassification(
            failure_class=FailureClass.SAFETY_BLOCKED,
            reason_code="safety_message",
            matched_rule="safety_message",
            matched_pattern=pattern,
        )

    pattern = _first_match(haystack, _VALIDATION_PATTERNS)
    if pattern is not None:
        return FailureClassification(
            failure_class=FailureClass.VALIDATION_ERROR,
            reason_code="validation_message",
            matched_rule="validation_message",
            matched_pattern=pattern,
        )

    return FailureClassification(
        failure_class=FailureClass.UNKNOWN,
        reason_code=type(error).__name__,
        matched_rule="fallback_unknown",
        matched_pattern=None,
    )


def is_transient(error: BaseException) -> bool:
    """Whether a failed call may be retried after a backoff delay.

    Transient means a 429/503 status code or a quota/overload message,
    whichever is present; the same rules label the task "quota exceeded".
    """

    return classify_failure(error).failure_class == FailureClass.TRANSIENT


def _status_code(error: BaseException) -> int | None:
    if isinstance(error, ApiError):
        return error.status_code
    for attribute in ("status_code", "status", "code"):
        value = getattr(error, attribute, None)
        if isinstance(value, int) and not isinstance(value, bool):
            return value
    return None


def _normalize_text(error: BaseException) -> str:
    status = getattr(error, "status", None)
    text = str(error)
    if isinstance(status, str):
        text = f"{status}\n{text}"
    return text.lower()


def _first_match(haystack: str, patterns: tuple[str, ...]) -> str | None:
    for pattern in patterns:
        if pattern in haystack:
            return pattern
    return None
