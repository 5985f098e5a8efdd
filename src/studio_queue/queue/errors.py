"""Exceptions raised by handlers, the API adapter and the task queue."""

from __future__ import annotations

from studio_queue.queue.models import FailureClass, TaskStatus


class GenerationError(Exception):
    """Base class for failures that already know their classification."""

    failure_class: FailureClass = FailureClass.UNKNOWN


class MissingCredentialError(GenerationError):
    failure_class = FailureClass.CONFIG_ERROR


class SafetyBlockedError(GenerationError):
    failure_class = FailureClass.SAFETY_BLOCKED


class NoResultError(GenerationError):
    failure_class = FailureClass.NO_RESULT


class InvalidRequestError(GenerationError):
    failure_class = FailureClass.VALIDATION_ERROR


class VideoGenerationError(GenerationError):
    failure_class = FailureClass.VIDEO_GENERATION_ERROR


class DownloadError(GenerationError):
    failure_class = FailureClass.DOWNLOAD_ERROR


class ApiError(Exception):
    """Error reported by the external generation API or asset host."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        status: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.status = status

    def __str__(self) -> str:
        parts = [str(self.status_code)] if self.status_code is not None else []
        if self.status:
            parts.append(self.status)
        parts.append(self.message)
        return " ".join(parts)


class InvalidTransitionError(RuntimeError):
    """Raised when a status write would violate the task lifecycle."""

    def __init__(self, task_id: str, status_from: TaskStatus, status_to: TaskStatus) -> None:
        super().__init__(
            f"Illegal status transition for task {task_id}: "
            f"{status_from.value} -> {status_to.value}",
        )
        self.task_id = task_id
        self.status_from = status_from
        self.status_to = status_to


class UnknownTaskError(KeyError):
    """Raised when a status write targets a task no longer in the queue."""
