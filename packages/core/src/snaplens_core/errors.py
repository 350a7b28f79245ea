"""Error types raised by the review-session engine.

Validation errors (InvalidSelection, ThreadNotFound, ConcurrentRequest) are
raised synchronously by the call that triggered them, before any state is
touched. ModelRequestFailed is raised by model clients and only ever reaches
a thread through SessionManager.on_error.
"""

from __future__ import annotations


class ReviewError(Exception):
    """Base class for every error the engine raises."""


class InvalidSelection(ReviewError, ValueError):
    """The selection range is empty, out of bounds, or the context size is negative."""


class ThreadNotFound(ReviewError, KeyError):
    """No thread with the given id exists in the session."""

    def __init__(self, thread_id):
        super().__init__(thread_id)
        self.thread_id = thread_id

    def __str__(self) -> str:
        return f"Review thread not found: {self.thread_id}"


class ConcurrentRequest(ReviewError):
    """A request is already in flight for this thread."""

    def __init__(self, thread_id):
        super().__init__(f"Review thread {thread_id} is already awaiting a response")
        self.thread_id = thread_id


class ModelRequestFailed(ReviewError):
    """The model backend failed terminally (after the client's own retries)."""
