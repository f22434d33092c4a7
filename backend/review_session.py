"""Client side of smart review: the backend seam and the session state machine."""
import enum
import uuid
from contextlib import contextmanager
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeoutError
from dataclasses import dataclass
from typing import Callable, List, Optional, Protocol

from loguru import logger
from sqlalchemy.exc import SQLAlchemyError

from backend import smart_review
from backend.config import settings
from backend.database import SessionLocal
from backend.exceptions import (
    InvalidItemReferenceError,
    ReviewExhaustedError,
    ReviewIneligibleError,
    SmartReviewError,
    TransientReviewError,
)
from backend.models import ReviewDifficulty
from backend.schemas import ReviewItem, SmartReviewStats


class ReviewBackend(Protocol):
    """The three operations a review session needs from the server"""

    def get_stats(self, course_id: int) -> SmartReviewStats: ...

    def get_next_item(
        self, course_id: int, new_pass: bool = False, request_id: Optional[str] = None
    ) -> ReviewItem: ...

    def rate_item(
        self, item_id: int, difficulty: ReviewDifficulty, request_id: Optional[str] = None
    ) -> ReviewItem: ...


class LocalReviewBackend:
    """Runs review operations for one student against the database, one session per call"""

    def __init__(self, student_id: int, session_factory=None, strategy=None):
        self.student_id = student_id
        self.session_factory = session_factory or SessionLocal
        self.strategy = strategy

    def get_stats(self, course_id):
        return self._run(smart_review.get_stats, course_id)

    def get_next_item(self, course_id, new_pass=False, request_id=None):
        return self._run(
            smart_review.get_next_item,
            course_id,
            new_pass=new_pass,
            strategy=self.strategy,
            request_id=request_id,
        )

    def rate_item(self, item_id, difficulty, request_id=None):
        return self._run(smart_review.rate_item, item_id, difficulty, request_id=request_id)

    def _run(self, operation, *args, **kwargs):
        db = self.session_factory()
        try:
            return operation(db, self.student_id, *args, **kwargs)
        except SQLAlchemyError as e:
            db.rollback()
            logger.exception(f"Database error in {operation.__name__}")
            raise TransientReviewError() from e
        finally:
            db.close()


class SessionState(str, enum.Enum):
    IDLE = "IDLE"
    REVIEWING = "REVIEWING"


@dataclass
class Notice:
    """User-facing message produced by a session action"""
    level: str  # "info", "warning" or "error"
    message: str


class ReviewSessionController:
    """
    Drives the show -> reveal -> rate -> next loop for one course.

    Every action issues at most one request at a time and waits for it;
    actions arriving while a request is in flight are ignored. Failures
    never escape: they become notices and leave the session consistent.

    Each fetch and each rating carries a request id that is kept until the
    request gets an answer, so a retry after a timeout is recognised by the
    backend instead of being applied twice.
    """

    def __init__(
        self,
        backend: ReviewBackend,
        course_id: int,
        timeout: Optional[float] = None,
        on_stats_refresh: Optional[Callable[[SmartReviewStats], None]] = None,
    ):
        self.backend = backend
        self.course_id = course_id
        self.timeout = settings.request_timeout_seconds if timeout is None else timeout
        self.on_stats_refresh = on_stats_refresh

        self.state = SessionState.IDLE
        self.current_item: Optional[ReviewItem] = None
        self.session_count = 0
        self.answer_revealed = False
        self.item_rated = False
        self.is_submitting = False
        self.stats: Optional[SmartReviewStats] = None
        self.notices: List[Notice] = []

        self._fetch_id: Optional[str] = None
        self._rating_id: Optional[str] = None

    # ------------------------------------------------------------------
    # Derived state

    @property
    def can_start(self) -> bool:
        return (
            self.state == SessionState.IDLE
            and not self.is_submitting
            and self.stats is not None
            and len(self.stats.completed_chapters) > 0
        )

    @property
    def can_rate(self) -> bool:
        if self.state != SessionState.REVIEWING or self.is_submitting:
            return False
        return self.answer_revealed or not self.current_item.requires_reveal

    @property
    def total_reviewed(self) -> int:
        return self.stats.total_items_reviewed if self.stats else 0

    def pop_notices(self) -> List[Notice]:
        notices, self.notices = self.notices, []
        return notices

    # ------------------------------------------------------------------
    # Actions

    def refresh_stats(self) -> SmartReviewStats:
        """Reload chapter statistics; on failure fall back to an empty state"""
        try:
            self.stats = self._call(self.backend.get_stats, self.course_id)
        except SmartReviewError as e:
            logger.warning(f"Could not load review stats for course {self.course_id}: {e.message}")
            self._notify("error", e.message)
            self.stats = SmartReviewStats()
        if self.on_stats_refresh:
            self.on_stats_refresh(self.stats)
        return self.stats

    def start(self) -> bool:
        """Start a new pass; returns True when a first item is on screen"""
        if not self.can_start:
            logger.debug("Start ignored: no unlocked chapter or session already running")
            return False

        with self._submitting():
            try:
                item = self._fetch(new_pass=True)
            except ReviewExhaustedError as e:
                self._notify("info", e.message)
                return False
            except SmartReviewError as e:
                self._notify("error", e.message)
                return False

            self._show(item, session_count=1)
            logger.info(f"Review session started on course {self.course_id}")
            return True

    def reveal(self) -> None:
        """Show the flashcard answer, which unlocks the rating buttons"""
        if self.state == SessionState.REVIEWING:
            self.answer_revealed = True

    def rate(self, difficulty: ReviewDifficulty) -> bool:
        """Rate the current item then move on; returns True when the session advanced"""
        if not self.can_rate:
            if self.state == SessionState.REVIEWING and not self.is_submitting:
                self._notify("warning", "Reveal the answer before rating")
            return False

        with self._submitting():
            # Already recorded when only the following fetch failed
            if not self.item_rated:
                if self._rating_id is None:
                    self._rating_id = uuid.uuid4().hex
                try:
                    self._call(
                        self.backend.rate_item,
                        self.current_item.id,
                        ReviewDifficulty(difficulty),
                        request_id=self._rating_id,
                    )
                except InvalidItemReferenceError as e:
                    # The item is gone, retrying it cannot succeed
                    self._notify("error", e.message)
                    return self._advance()
                except SmartReviewError as e:
                    self._notify("error", e.message)
                    return False
                self.item_rated = True

            return self._advance()

    def skip(self) -> bool:
        """Move on without rating"""
        if self.state != SessionState.REVIEWING or self.is_submitting:
            return False
        with self._submitting():
            return self._advance()

    def exit(self) -> None:
        """Leave the session at any time"""
        if self.state == SessionState.REVIEWING:
            logger.info(f"Review session left after {self.session_count} items")
        self._end()

    # ------------------------------------------------------------------
    # Internals

    def _advance(self) -> bool:
        try:
            item = self._fetch()
        except ReviewExhaustedError as e:
            self._notify("info", e.message)
            self._end()
            return True
        except ReviewIneligibleError as e:
            self._notify("warning", e.message)
            self._end()
            return True
        except SmartReviewError as e:
            self._notify("error", e.message)
            return False

        self._show(item, session_count=self.session_count + 1)
        return True

    def _fetch(self, new_pass: bool = False) -> ReviewItem:
        """Get the next item, reusing the request id of a fetch that never answered"""
        if self._fetch_id is None:
            self._fetch_id = uuid.uuid4().hex
        try:
            item = self._call(
                self.backend.get_next_item,
                self.course_id,
                new_pass=new_pass,
                request_id=self._fetch_id,
            )
        except TransientReviewError:
            raise
        except SmartReviewError:
            self._fetch_id = None
            raise
        self._fetch_id = None
        return item

    def _show(self, item: ReviewItem, session_count: int) -> None:
        self.state = SessionState.REVIEWING
        self.current_item = item
        self.session_count = session_count
        self.answer_revealed = False
        self.item_rated = False
        self._rating_id = None

    def _end(self) -> None:
        self.state = SessionState.IDLE
        self.current_item = None
        self.answer_revealed = False
        self.item_rated = False
        self.is_submitting = False
        self._fetch_id = None
        self._rating_id = None
        self.refresh_stats()

    def _notify(self, level: str, message: str) -> None:
        self.notices.append(Notice(level=level, message=message))

    def _call(self, operation, *args, **kwargs):
        """Run a backend call, turning a timeout into a retryable failure"""
        if not self.timeout:
            return operation(*args, **kwargs)

        executor = ThreadPoolExecutor(max_workers=1)
        future = executor.submit(operation, *args, **kwargs)
        try:
            return future.result(timeout=self.timeout)
        except FutureTimeoutError as e:
            logger.warning(f"{operation.__name__} timed out after {self.timeout}s")
            raise TransientReviewError("The server is taking too long, please retry") from e
        finally:
            executor.shutdown(wait=False)

    @contextmanager
    def _submitting(self):
        self.is_submitting = True
        try:
            yield
        finally:
            self.is_submitting = False
