"""Kind-specific task handlers."""

from studio_queue.queue.handlers.base import HandlerContext, TaskHandler
from studio_queue.queue.handlers.image import ImageTaskHandler
from studio_queue.queue.handlers.video import VideoTaskHandler

__all__ = [
    "HandlerContext",
    "ImageTaskHandler",
    "TaskHandler",
    "VideoTaskHandler",
]
