"""Review threads: an append-only conversation anchored to one code selection.

Status machine::

    IDLE ──submit──▶ AWAITING_RESPONSE ──success──▶ IDLE
                           │
                           └──error──▶ FAILED ──retry──▶ AWAITING_RESPONSE

AWAITING_RESPONSE means exactly one request is in flight. mark_awaiting() is
the gate that enforces it, so it runs under the thread's own lock.
"""

from __future__ import annotations

import itertools
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum

from snaplens_core.errors import ConcurrentRequest
from snaplens_core.parser import CodeBlock, ParsedResponse, Severity
from snaplens_core.selection import CodeSelection

_comment_ids = itertools.count(1)
_thread_ids = itertools.count(1)


class Author(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


class ThreadStatus(str, Enum):
    IDLE = "idle"
    AWAITING_RESPONSE = "awaiting_response"
    FAILED = "failed"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class ReviewComment:
    """One turn of a review conversation. Never edited once created."""

    author: Author
    body: str
    severity: Severity = Severity.NONE
    code_suggestion: CodeBlock | None = None
    created_at: datetime = field(default_factory=_utcnow)
    id: int = field(default_factory=lambda: next(_comment_ids))

    @classmethod
    def user(cls, body: str) -> ReviewComment:
        return cls(author=Author.USER, body=body)

    @classmethod
    def assistant(cls, parsed: ParsedResponse) -> ReviewComment:
        return cls(
            author=Author.ASSISTANT,
            body=parsed.body,
            severity=parsed.severity,
            code_suggestion=parsed.code_suggestion,
        )


class ReviewThread:
    """A single review conversation. Owns its selection; comments are append-only."""

    def __init__(self, thread_id: int, file_id: str, selection: CodeSelection):
        self.id = thread_id
        self.file_id = file_id
        self.selection = selection
        self.resolved = False
        self.failure_reason: str | None = None
        self._comments: list[ReviewComment] = []
        self._status = ThreadStatus.IDLE
        self._lock = threading.Lock()

    @classmethod
    def create(cls, file_id: str, selection: CodeSelection, initial_question: str | None = None) -> ReviewThread:
        thread = cls(next(_thread_ids), file_id, selection)
        if initial_question:
            thread.append(ReviewComment.user(initial_question))
        return thread

    def __repr__(self) -> str:
        return f"ReviewThread(id={self.id}, selection={self.selection.summary()!r}, status={self.status.value})"

    @property
    def status(self) -> ThreadStatus:
        return self._status

    @property
    def comments(self) -> tuple[ReviewComment, ...]:
        """Snapshot of the conversation, oldest first."""
        with self._lock:
            return tuple(self._comments)

    def append(self, comment: ReviewComment) -> None:
        with self._lock:
            self._comments.append(comment)

    # ------------------------------------------------------------------ #
    # Status transitions                                                   #
    # ------------------------------------------------------------------ #

    def mark_awaiting(self) -> None:
        with self._lock:
            if self._status is ThreadStatus.AWAITING_RESPONSE:
                raise ConcurrentRequest(self.id)
            self._status = ThreadStatus.AWAITING_RESPONSE
            self.failure_reason = None

    def mark_idle(self) -> None:
        with self._lock:
            self._status = ThreadStatus.IDLE

    def mark_failed(self, reason: str) -> None:
        with self._lock:
            self._status = ThreadStatus.FAILED
            self.failure_reason = reason

    # ------------------------------------------------------------------ #
    # Queries                                                              #
    # ------------------------------------------------------------------ #

    def resolve(self) -> None:
        self.resolved = True

    def last_severity(self) -> Severity:
        for comment in reversed(self.comments):
            if comment.severity is not Severity.NONE:
                return comment.severity
        return Severity.NONE

    def has_suggestions(self) -> bool:
        return any(c.code_suggestion is not None for c in self.comments)
