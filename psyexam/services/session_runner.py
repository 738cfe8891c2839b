"""Practice session runner.

Drives one session over an immutable working set: one answer per question,
forward/back navigation, optional countdown and in-place editing of the set
behind the current question.
"""
from __future__ import annotations

import enum
import logging
import math
import threading
import time
from collections.abc import Callable

from psyexam.models.context import RequestContext
from psyexam.models.exam import ExamFilters, ExamSummary, FlattenedQuestion, SessionView
from psyexam.models.question_sets import QuestionSet
from psyexam.services.question_store import (
    QuestionSetStore,
    SetNotFoundError,
    StoreError,
)
from psyexam.services.scoring import score_session
from psyexam.services.selection import SelectionResult, flatten_question

logger = logging.getLogger(__name__)

Clock = Callable[[], float]


class EditFetchError(Exception):
    """Raised when the set behind a question cannot be loaded for editing."""


class EditSaveError(Exception):
    """Raised when saving an in-session edit fails."""


class FinishReason(str, enum.Enum):
    COMPLETED = "completed"
    TIMEOUT = "timeout"
    EMPTY = "empty"


class CountdownTimer:
    """Whole-second countdown measured on a monotonic clock."""

    def __init__(self, total_seconds: int, clock: Clock = time.monotonic) -> None:
        self.total_seconds = total_seconds
        self.remaining_seconds = total_seconds
        self._clock = clock
        self._last_sync: float | None = None

    @property
    def running(self) -> bool:
        return self._last_sync is not None

    @property
    def expired(self) -> bool:
        return self.remaining_seconds <= 0

    def start(self) -> None:
        if not self.running:
            self._last_sync = self._clock()

    def stop(self) -> None:
        self.sync()
        self._last_sync = None

    def tick(self) -> int:
        """Consume one second."""
        if self.remaining_seconds > 0:
            self.remaining_seconds -= 1
        return self.remaining_seconds

    def sync(self) -> int:
        """Consume the whole seconds elapsed since the last sync."""
        if self._last_sync is None:
            return self.remaining_seconds
        elapsed = math.floor(self._clock() - self._last_sync)
        if elapsed > 0:
            self.remaining_seconds = max(0, self.remaining_seconds - elapsed)
            self._last_sync += elapsed
        return self.remaining_seconds


class ExamSession:
    """
    State of one practice session.

    The session starts in the loading state; ``load`` installs the resolved
    working set. The answer map only ever gains entries.
    Request handlers run on a thread pool; every state change holds ``lock``.
    """

    def __init__(
        self,
        session_id: str,
        context: RequestContext,
        filters: ExamFilters,
        clock: Clock = time.monotonic,
    ) -> None:
        self.session_id = session_id
        self.context = context
        self.filters = filters
        self.questions: list[FlattenedQuestion] = []
        self.answers: dict[str, int] = {}
        self.current_index = 0
        self.loading = True
        self.finished = False
        self.finish_reason: FinishReason | None = None
        self.fetch_error: str | None = None
        self._clock = clock
        self.timer: CountdownTimer | None = None
        if filters.time_limit_minutes:
            self.timer = CountdownTimer(filters.time_limit_minutes * 60, clock)
        self.last_activity = clock()
        self.lock = threading.RLock()

    def load(self, result: SelectionResult) -> None:
        """Install the working set and start the countdown."""
        with self.lock:
            self.questions = list(result.questions)
            self.fetch_error = result.fetch_error
            self.loading = False
            self.touch()
            if not self.questions:
                self._finish(FinishReason.EMPTY)
                return
            if self.timer is not None:
                self.timer.start()

    def touch(self) -> None:
        self.last_activity = self._clock()

    # Navigation

    @property
    def current_question(self) -> FlattenedQuestion | None:
        if not self.questions:
            return None
        return self.questions[self.current_index]

    @property
    def is_last(self) -> bool:
        return bool(self.questions) and self.current_index == len(self.questions) - 1

    def is_answered(self, question_id: str) -> bool:
        return question_id in self.answers

    @property
    def current_answered(self) -> bool:
        question = self.current_question
        return question is not None and self.is_answered(question.id)

    @property
    def can_advance(self) -> bool:
        return not self.finished and self.current_answered

    @property
    def can_retreat(self) -> bool:
        return self.current_index > 0

    def select_answer(self, option_index: int) -> bool:
        """Record the first answer for the current question. Later calls are no-ops."""
        with self.lock:
            self.sync_timer()
            question = self.current_question
            if self.finished or question is None or self.is_answered(question.id):
                return False
            self.answers[question.id] = option_index
            return True

    def advance(self) -> None:
        """Next question, or finish when already on the last one."""
        with self.lock:
            self.sync_timer()
            if self.finished:
                return
            if self.current_index < len(self.questions) - 1:
                self.current_index += 1
            else:
                self._finish(FinishReason.COMPLETED)

    def advance_if_answered(self) -> bool:
        """
        Advance only when the current question is answered or the session
        is already over. Returns False when the move is refused.
        """
        with self.lock:
            self.sync_timer()
            if not self.finished and not self.current_answered:
                return False
            self.advance()
            return True

    def retreat(self) -> None:
        """Previous question. Earlier answers stay locked."""
        with self.lock:
            self.sync_timer()
            if self.finished:
                return
            if self.current_index > 0:
                self.current_index -= 1

    # Timer

    def tick(self) -> None:
        """One-second timer callback."""
        with self.lock:
            if self.timer is None or self.finished or self.loading:
                return
            self.timer.tick()
            if self.timer.expired:
                self._finish(FinishReason.TIMEOUT)

    def sync_timer(self) -> None:
        """Apply wall-clock time elapsed since the last sync."""
        with self.lock:
            if self.timer is None or self.finished or self.loading:
                return
            self.timer.sync()
            if self.timer.expired:
                self._finish(FinishReason.TIMEOUT)

    @property
    def remaining_seconds(self) -> int | None:
        if self.timer is None:
            return None
        return self.timer.remaining_seconds

    def _finish(self, reason: FinishReason) -> None:
        if self.finished:
            return
        self.finished = True
        self.finish_reason = reason
        if self.timer is not None and self.timer.running:
            self.timer.stop()
        logger.info(
            f"Session {self.session_id} finished ({reason.value}): "
            f"{len(self.answers)}/{len(self.questions)} answered"
        )

    # Editing

    def begin_edit(self, store: QuestionSetStore) -> QuestionSet | None:
        """Fetch a fresh copy of the set behind the current question."""
        question = self.current_question
        if question is None:
            return None
        try:
            return store.fetch_set_by_id(question.parent_id)
        except StoreError as e:
            logger.error(f"Failed to fetch question set {question.parent_id} for editing: {e}")
            raise EditFetchError("Failed to load the question for editing") from e

    def apply_edit(
        self,
        store: QuestionSetStore,
        patch: dict[str, object],
        set_id: str | None = None,
    ) -> int:
        """
        Save an edit of a set and refresh the session entries it backs.

        Returns the number of refreshed entries. A failed save leaves the
        session untouched; a failed refresh after a successful save is
        logged and leaves the entries as they were.

        Raises:
            SetNotFoundError: The set was deleted meanwhile
            ValueError: The edited set breaks an authoring rule
            EditSaveError: The store failed to save
        """
        with self.lock:
            if set_id is None:
                question = self.current_question
                if question is None:
                    raise EditSaveError("No question to edit")
                set_id = question.parent_id

            try:
                store.save_set_edits(set_id, patch)
            except SetNotFoundError:
                logger.warning(f"Question set {set_id} no longer exists; edit dropped")
                raise
            except StoreError as e:
                logger.error(f"Failed to save question set {set_id}: {e}")
                raise EditSaveError("Failed to save the question") from e

            try:
                refreshed = store.fetch_set_by_id(set_id)
            except StoreError as e:
                logger.error(f"Failed to refresh question set {set_id} after edit: {e}")
                return 0
            if refreshed is None:
                return 0
            return self.merge_refreshed_set(refreshed)

    def merge_refreshed_set(self, question_set: QuestionSet) -> int:
        """
        Replace entries backed by ``question_set`` at their original index,
        keeping their session ids. Entries whose index no longer exists in
        the set are left stale.
        """
        refreshed = 0
        with self.lock:
            for position, entry in enumerate(self.questions):
                if entry.parent_id != question_set.id:
                    continue
                index = entry.original_index
                if 0 <= index < len(question_set.questions):
                    self.questions[position] = flatten_question(
                        question_set, index, entry.id
                    )
                    refreshed += 1
                else:
                    logger.warning(
                        f"Question {entry.id} no longer exists in set {question_set.id}; "
                        "keeping the previous version"
                    )
        return refreshed

    # Rendering

    def summary(self) -> ExamSummary | None:
        """Score of a finished session, None while it is still running."""
        with self.lock:
            self.sync_timer()
            if not self.finished:
                return None
            return score_session(self.questions, self.answers)

    def status(self) -> str:
        if self.loading:
            return "loading"
        if self.finish_reason == FinishReason.EMPTY:
            return "empty"
        if self.finished:
            return "finished"
        return "active"

    def view(self) -> SessionView:
        with self.lock:
            return self._render()

    def _render(self) -> SessionView:
        self.sync_timer()
        question = None if self.finished else self.current_question
        total = len(self.questions)
        progress = round((self.current_index + 1) / total * 100) if total else 0
        return SessionView(
            session_id=self.session_id,
            status=self.status(),
            finish_reason=self.finish_reason.value if self.finish_reason else None,
            fetch_error=self.fetch_error,
            current_index=self.current_index,
            total_questions=total,
            progress=progress,
            current_question=question,
            selected_answer=self.answers.get(question.id) if question else None,
            is_answered=question is not None and self.is_answered(question.id),
            can_advance=self.can_advance,
            can_retreat=self.can_retreat and not self.finished,
            is_last=self.is_last,
            remaining_seconds=self.remaining_seconds,
            answered_count=len(self.answers),
        )
