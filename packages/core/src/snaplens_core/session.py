"""Review-session orchestration.

The SessionManager owns no global state: the file → threads mapping lives in
a ReviewSession that is injected (or created empty) and cleared when the
panel or editor shuts down.

Request flow for one thread:

    start_review / continue_thread / retry
        → thread.mark_awaiting()           (rejects a second in-flight request)
        → build_review_prompt()
        → executor.submit(client.submit)    (returns immediately)
    … worker thread …
        → on_response → parse() → Assistant comment → mark_idle()
        → on_error    → mark_failed(reason)

Only one request is ever in flight per thread, so replies on a thread are
applied in the order their requests were sent without a separate queue.
Every dispatch carries a token; a completion whose token is no longer the
thread's in-flight request (already settled through on_response / on_error,
or superseded by a newer request) is dropped.
"""

from __future__ import annotations

import itertools
import logging
import threading
import time
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from dataclasses import dataclass, field

from snaplens_core.config import ReviewSettings
from snaplens_core.errors import ModelRequestFailed, ThreadNotFound
from snaplens_core.events import EventBus, SessionEvent
from snaplens_core.parser import parse
from snaplens_core.prompts import build_review_prompt
from snaplens_core.providers.anthropic import AnthropicClient
from snaplens_core.providers.base import BaseModelClient
from snaplens_core.providers.openai import OpenAIClient
from snaplens_core.selection import CodeSelection, capture
from snaplens_core.thread import ReviewComment, ReviewThread

logger = logging.getLogger(__name__)


def get_client(config: dict) -> BaseModelClient:
    model = config["model"]
    if model == "anthropic":
        return AnthropicClient(api_key=config["anthropic_api_key"])
    if model == "openai":
        return OpenAIClient(api_key=config["openai_api_key"])
    raise ValueError(f"Unknown model provider: {model!r}. Choose 'anthropic' or 'openai'.")


@dataclass
class _Request:
    """The one request in flight on a thread."""

    token: int
    done: threading.Event = field(default_factory=threading.Event)
    future: Future | None = None


class ReviewSession:
    """Every live review thread, grouped by file in creation order."""

    def __init__(self):
        self._by_file: dict[str, list[ReviewThread]] = {}
        self._by_id: dict[int, ReviewThread] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._by_id)

    def add(self, thread: ReviewThread) -> None:
        with self._lock:
            self._by_file.setdefault(thread.file_id, []).append(thread)
            self._by_id[thread.id] = thread

    def get(self, thread_id: int) -> ReviewThread:
        with self._lock:
            thread = self._by_id.get(thread_id)
        if thread is None:
            raise ThreadNotFound(thread_id)
        return thread

    def threads_for(self, file_id: str) -> list[ReviewThread]:
        with self._lock:
            return list(self._by_file.get(file_id, ()))

    def file_ids(self) -> list[str]:
        with self._lock:
            return list(self._by_file)

    def clear(self) -> None:
        with self._lock:
            self._by_file.clear()
            self._by_id.clear()


class SessionManager:
    """Routes user actions into model requests and applies replies to threads."""

    def __init__(
        self,
        client: BaseModelClient,
        session: ReviewSession | None = None,
        settings: ReviewSettings | None = None,
        executor: Executor | None = None,
    ):
        self.client = client
        self.session = session if session is not None else ReviewSession()
        self.settings = settings or ReviewSettings()
        self.events = EventBus()
        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(
            max_workers=self.settings.max_workers, thread_name_prefix="snaplens-request"
        )
        # Per-thread custom prompt given to start_review; falls back to settings.
        self._custom_prompts: dict[int, str] = {}
        self._in_flight: dict[int, _Request] = {}
        self._in_flight_lock = threading.Lock()
        self._request_ids = itertools.count(1)

    def __enter__(self) -> SessionManager:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    # ------------------------------------------------------------------ #
    # Inbound actions                                                      #
    # ------------------------------------------------------------------ #

    def review_selection(
        self,
        buffer_text: str,
        selection_range: tuple[int, int],
        file_id: str,
        language: str = "",
        user_text: str | None = None,
        context_lines: int | None = None,
        custom_prompt: str | None = None,
    ) -> int:
        """Capture ``selection_range`` from a buffer and start a review of it."""
        if context_lines is None:
            context_lines = self.settings.context_lines
        selection = capture(buffer_text, selection_range, context_lines, file_id, language)
        return self.start_review(file_id, selection, user_text=user_text, custom_prompt=custom_prompt)

    def start_review(
        self,
        file_id: str,
        selection: CodeSelection,
        user_text: str | None = None,
        custom_prompt: str | None = None,
    ) -> int:
        """Open a new thread on ``selection`` and send the first request.

        Returns the thread id right away; the reply is applied later by
        on_response / on_error.
        """
        thread = ReviewThread.create(file_id, selection, initial_question=user_text)
        if custom_prompt is not None:
            self._custom_prompts[thread.id] = custom_prompt
        self.session.add(thread)
        self._publish(SessionEvent.THREAD_CREATED, thread)
        if thread.comments:
            self._publish(SessionEvent.COMMENT_APPENDED, thread)

        thread.mark_awaiting()
        self._publish(SessionEvent.STATUS_CHANGED, thread)
        prompt = build_review_prompt(
            selection,
            request=user_text,
            custom_prompt=self._custom_prompt_for(thread.id),
        )
        self._dispatch(thread, prompt)
        return thread.id

    def continue_thread(self, thread_id: int, user_text: str) -> None:
        """Append a follow-up question and send the whole conversation.

        Raises ThreadNotFound or ConcurrentRequest without touching the thread.
        """
        thread = self.session.get(thread_id)
        if not user_text or not user_text.strip():
            raise ValueError("A follow-up question must not be empty.")
        thread.mark_awaiting()
        self._publish(SessionEvent.STATUS_CHANGED, thread)

        # Nothing is in flight past mark_awaiting(), so the history is stable.
        history = thread.comments
        thread.append(ReviewComment.user(user_text))
        self._publish(SessionEvent.COMMENT_APPENDED, thread)

        prompt = build_review_prompt(
            thread.selection,
            history=history,
            request=user_text,
            custom_prompt=self._custom_prompt_for(thread.id),
        )
        self._dispatch(thread, prompt)

    def retry(self, thread_id: int) -> None:
        """Resend the conversation as it stands, typically after a failure."""
        thread = self.session.get(thread_id)
        thread.mark_awaiting()
        self._publish(SessionEvent.STATUS_CHANGED, thread)
        prompt = build_review_prompt(
            thread.selection,
            history=thread.comments,
            custom_prompt=self._custom_prompt_for(thread.id),
        )
        self._dispatch(thread, prompt)

    def resolve_thread(self, thread_id: int) -> None:
        thread = self.session.get(thread_id)
        thread.resolve()
        self._publish(SessionEvent.THREAD_RESOLVED, thread)

    # ------------------------------------------------------------------ #
    # Completion entry points (pool callbacks or a client adapter)        #
    # ------------------------------------------------------------------ #

    def on_response(self, thread_id: int, raw_text: str) -> None:
        """Settle the request in flight on ``thread_id`` with a reply.

        Dropped with a warning when nothing is in flight for the thread.
        """
        self._settle(thread_id, None, "response", lambda thread: self._apply_response(thread, raw_text))

    def on_error(self, thread_id: int, error: BaseException) -> None:
        """Settle the request in flight on ``thread_id`` as failed."""
        self._settle(thread_id, None, "error", lambda thread: self._apply_error(thread, error))

    # ------------------------------------------------------------------ #
    # Queries and lifecycle                                                #
    # ------------------------------------------------------------------ #

    def list_threads(self, file_id: str) -> list[ReviewThread]:
        return self.session.threads_for(file_id)

    def get_thread(self, thread_id: int) -> ReviewThread:
        return self.session.get(thread_id)

    def wait(self, thread_id: int | None = None, timeout: float | None = None) -> bool:
        """Block until in-flight requests (or just ``thread_id``'s) are applied.

        Returns False if ``timeout`` seconds pass first.
        """
        with self._in_flight_lock:
            if thread_id is None:
                events = [request.done for request in self._in_flight.values()]
            else:
                request = self._in_flight.get(thread_id)
                events = [request.done] if request is not None else []

        deadline = None if timeout is None else time.monotonic() + timeout
        for event in events:
            remaining = None if deadline is None else max(0.0, deadline - time.monotonic())
            if not event.wait(remaining):
                return False
        return True

    def clear(self) -> None:
        """Drop every thread. Replies still in flight are discarded on arrival."""
        self.session.clear()
        self._custom_prompts.clear()
        self.events.publish(SessionEvent.SESSION_CLEARED)

    def close(self) -> None:
        self.clear()
        if self._owns_executor:
            self._executor.shutdown(wait=False, cancel_futures=True)

    # ------------------------------------------------------------------ #
    # Internals                                                            #
    # ------------------------------------------------------------------ #

    def _custom_prompt_for(self, thread_id: int) -> str | None:
        return self._custom_prompts.get(thread_id, self.settings.custom_prompt)

    def _dispatch(self, thread: ReviewThread, prompt: str) -> None:
        request = _Request(token=next(self._request_ids))
        with self._in_flight_lock:
            self._in_flight[thread.id] = request

        logger.debug("Dispatching request %s for thread %s (%d chars)", request.token, thread.id, len(prompt))
        try:
            request.future = self._executor.submit(self.client.submit, prompt)
        except RuntimeError as e:
            # Executor already shut down; record it on the thread like any backend error.
            failure = ModelRequestFailed(str(e))
            self._settle(thread.id, request.token, "error", lambda t: self._apply_error(t, failure))
            return
        request.future.add_done_callback(lambda f: self._complete(thread.id, request.token, f))

    def _complete(self, thread_id: int, token: int, future: Future) -> None:
        if future.cancelled():
            failure = ModelRequestFailed("Request was cancelled.")
            self._settle(thread_id, token, "cancellation", lambda t: self._apply_error(t, failure))
            return
        error = future.exception()
        if error is not None:
            self._settle(thread_id, token, "error", lambda t: self._apply_error(t, error))
        else:
            self._settle(thread_id, token, "response", lambda t: self._apply_response(t, future.result()))

    def _claim(self, thread_id: int, token: int | None) -> _Request | None:
        """Take the in-flight request for ``thread_id``; ``token`` None matches any."""
        with self._in_flight_lock:
            request = self._in_flight.get(thread_id)
            if request is None or (token is not None and request.token != token):
                return None
            del self._in_flight[thread_id]
            return request

    def _settle(self, thread_id: int, token: int | None, what: str, apply) -> None:
        request = self._claim(thread_id, token)
        if request is None:
            logger.warning("Dropping %s for thread %s: no matching request in flight", what, thread_id)
            return
        if token is None and request.future is not None:
            # Settled from outside the pool: its own completion is now stale.
            request.future.cancel()
        try:
            thread = self._live_thread(thread_id, what)
            if thread is not None:
                apply(thread)
        finally:
            request.done.set()

    def _apply_response(self, thread: ReviewThread, raw_text: str) -> None:
        parsed = parse(raw_text, self.settings.severity_policy)
        if parsed.is_degraded:
            logger.debug("Thread %s: reply has no severity keyword or code block", thread.id)
        thread.append(ReviewComment.assistant(parsed))
        self._publish(SessionEvent.COMMENT_APPENDED, thread)
        thread.mark_idle()
        self._publish(SessionEvent.STATUS_CHANGED, thread)

    def _apply_error(self, thread: ReviewThread, error: BaseException) -> None:
        reason = str(error) or error.__class__.__name__
        logger.warning("Review request for thread %s failed: %s", thread.id, reason)
        thread.mark_failed(reason)
        self._publish(SessionEvent.STATUS_CHANGED, thread)

    def _live_thread(self, thread_id: int, what: str) -> ReviewThread | None:
        try:
            return self.session.get(thread_id)
        except ThreadNotFound:
            logger.warning("Dropping %s for thread %s: thread no longer exists", what, thread_id)
            return None

    def _publish(self, kind: SessionEvent, thread: ReviewThread) -> None:
        self.events.publish(kind, file_id=thread.file_id, thread_id=thread.id)
