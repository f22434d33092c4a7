"""Tests for the review session state machine."""
import threading
import time

import pytest

from backend import smart_review
from backend.database import Base
from backend.exceptions import (
    InvalidItemReferenceError,
    ReviewExhaustedError,
    ReviewIneligibleError,
    TransientReviewError,
)
from backend.crud import count_review_events, get_review_item, get_review_progress
from backend.models import ReviewDifficulty, SmartReviewItem
from backend.review_session import LocalReviewBackend, ReviewSessionController, SessionState
from backend.schemas import (
    ActivityReviewItem,
    ChapterStats,
    FlashcardPayload,
    FlashcardReviewItem,
    LearningActivityPayload,
    ModuleSummary,
    SmartReviewStats,
)
from backend.selection import OrderedStrategy

MODULE = ModuleSummary(id=1, title="Chapter 1", order=1)


def flashcard_item(item_id):
    return FlashcardReviewItem(
        id=item_id,
        course_id=1,
        module_id=1,
        times_served=0,
        probability_weight=1.0,
        module=MODULE,
        flashcard=FlashcardPayload(id=item_id, front=f"Q{item_id}", back=f"A{item_id}"),
    )


def activity_item(item_id):
    return ActivityReviewItem(
        id=item_id,
        course_id=1,
        module_id=1,
        times_served=0,
        probability_weight=1.0,
        module=MODULE,
        learning_activity=LearningActivityPayload(id=item_id, title="Match terms", activity_type="matching"),
    )


def unlocked_stats(total_reviewed=0):
    return SmartReviewStats(
        total_items_reviewed=total_reviewed,
        chapter_stats=[ChapterStats(
            module_id=1, module_title="Chapter 1", module_order=1,
            flashcards_reviewed=0, activities_reviewed=0,
            total_flashcards=3, total_activities=0,
        )],
        completed_chapters=[1],
    )


class FakeBackend:
    """Scripted backend; queued results are returned or raised in order"""

    def __init__(self, stats=None, items=(), rate_results=()):
        self.stats = stats if stats is not None else unlocked_stats()
        self.items = list(items)
        self.rate_results = list(rate_results)
        self.calls = []
        self.request_ids = []

    def get_stats(self, course_id):
        self.calls.append(("get_stats", course_id))
        if isinstance(self.stats, Exception):
            raise self.stats
        return self.stats

    def get_next_item(self, course_id, new_pass=False, request_id=None):
        self.calls.append(("get_next_item", course_id, new_pass))
        self.request_ids.append(("get_next_item", request_id))
        result = self.items.pop(0) if self.items else ReviewExhaustedError()
        if isinstance(result, Exception):
            raise result
        return result

    def rate_item(self, item_id, difficulty, request_id=None):
        self.calls.append(("rate_item", item_id, difficulty))
        self.request_ids.append(("rate_item", request_id))
        result = self.rate_results.pop(0) if self.rate_results else None
        if isinstance(result, Exception):
            raise result
        return result

    def count(self, name):
        return sum(1 for call in self.calls if call[0] == name)


def make_controller(backend, **kwargs):
    controller = ReviewSessionController(backend, course_id=1, timeout=0, **kwargs)
    controller.refresh_stats()
    return controller


class TestStart:
    def test_zero_unlocked_chapters_never_starts(self):
        backend = FakeBackend(stats=SmartReviewStats(), items=[flashcard_item(1)])
        controller = make_controller(backend)

        assert not controller.can_start
        assert controller.start() is False
        assert controller.state == SessionState.IDLE
        assert backend.count("get_next_item") == 0

    def test_start_without_stats_issues_no_call(self):
        backend = FakeBackend(items=[flashcard_item(1)])
        controller = ReviewSessionController(backend, course_id=1, timeout=0)

        assert controller.start() is False
        assert backend.calls == []

    def test_start_shows_first_item(self):
        backend = FakeBackend(items=[flashcard_item(1)])
        controller = make_controller(backend)

        assert controller.start() is True
        assert controller.state == SessionState.REVIEWING
        assert controller.current_item.id == 1
        assert controller.session_count == 1
        assert ("get_next_item", 1, True) in backend.calls

    def test_start_ineligible_stays_idle(self):
        backend = FakeBackend(items=[ReviewIneligibleError()])
        controller = make_controller(backend)

        assert controller.start() is False
        assert controller.state == SessionState.IDLE
        assert [n.level for n in controller.pop_notices()] == ["error"]

    def test_start_exhausted_is_informational(self):
        controller = make_controller(FakeBackend(items=[]))

        assert controller.start() is False
        notices = controller.pop_notices()
        assert notices[0].level == "info"

    def test_stats_failure_falls_back_to_empty_state(self):
        controller = make_controller(FakeBackend(stats=TransientReviewError()))

        assert controller.stats == SmartReviewStats()
        assert not controller.can_start
        assert controller.pop_notices()[0].level == "error"

    def test_stats_refresh_callback(self):
        seen = []
        make_controller(FakeBackend(), on_stats_refresh=seen.append)
        assert seen == [unlocked_stats()]


class TestRating:
    def test_flashcard_needs_reveal(self):
        backend = FakeBackend(items=[flashcard_item(1), flashcard_item(2)])
        controller = make_controller(backend)
        controller.start()

        assert not controller.can_rate
        assert controller.rate(ReviewDifficulty.EASY) is False
        assert backend.count("rate_item") == 0
        assert controller.pop_notices()[0].level == "warning"

        controller.reveal()
        assert controller.rate(ReviewDifficulty.EASY) is True
        assert controller.current_item.id == 2
        assert not controller.answer_revealed

    def test_activity_rated_without_reveal(self):
        backend = FakeBackend(items=[activity_item(1), activity_item(2)])
        controller = make_controller(backend)
        controller.start()

        assert controller.can_rate
        assert controller.rate(ReviewDifficulty.HARD) is True
        assert ("rate_item", 1, ReviewDifficulty.HARD) in backend.calls

    def test_session_count_grows_by_one_per_new_item(self):
        backend = FakeBackend(items=[activity_item(i) for i in range(1, 6)])
        controller = make_controller(backend)
        controller.start()

        counts = [controller.session_count]
        for action in ["rate", "skip", "rate", "skip"]:
            if action == "rate":
                controller.rate(ReviewDifficulty.MEDIUM)
            else:
                controller.skip()
            counts.append(controller.session_count)

        assert counts == [1, 2, 3, 4, 5]

    def test_failed_rating_keeps_current_item(self):
        backend = FakeBackend(
            items=[activity_item(1), activity_item(2)],
            rate_results=[TransientReviewError("Network error")],
        )
        controller = make_controller(backend)
        controller.start()

        assert controller.rate(ReviewDifficulty.EASY) is False
        assert controller.state == SessionState.REVIEWING
        assert controller.current_item.id == 1
        assert controller.session_count == 1
        assert controller.pop_notices()[0].message == "Network error"
        assert backend.count("get_next_item") == 1

        # Retrying the same item succeeds
        assert controller.rate(ReviewDifficulty.EASY) is True
        assert controller.current_item.id == 2

    def test_retried_rating_reuses_its_request_id(self):
        backend = FakeBackend(
            items=[activity_item(1), activity_item(2), activity_item(3)],
            rate_results=[TransientReviewError()],
        )
        controller = make_controller(backend)
        controller.start()

        assert controller.rate(ReviewDifficulty.EASY) is False
        assert controller.rate(ReviewDifficulty.EASY) is True
        controller.rate(ReviewDifficulty.EASY)

        first, retry, next_item = [rid for name, rid in backend.request_ids if name == "rate_item"]
        assert first == retry
        assert next_item != first

    def test_failed_fetch_after_rating_does_not_rate_again(self):
        backend = FakeBackend(items=[activity_item(1), TransientReviewError(), activity_item(2)])
        controller = make_controller(backend)
        controller.start()

        assert controller.rate(ReviewDifficulty.EASY) is False
        assert controller.current_item.id == 1
        assert controller.item_rated

        assert controller.rate(ReviewDifficulty.EASY) is True
        assert controller.current_item.id == 2
        assert not controller.item_rated
        assert backend.count("rate_item") == 1
        fetches = [rid for name, rid in backend.request_ids if name == "get_next_item"]
        assert fetches[1] == fetches[2]
        assert fetches[0] != fetches[1]

    def test_invalid_item_fetches_a_fresh_one(self):
        backend = FakeBackend(
            items=[activity_item(1), activity_item(2)],
            rate_results=[InvalidItemReferenceError()],
        )
        controller = make_controller(backend)
        controller.start()

        assert controller.rate(ReviewDifficulty.EASY) is True
        assert controller.current_item.id == 2
        assert controller.pop_notices()[0].level == "error"

    def test_exhaustion_ends_session_and_refreshes_stats(self):
        backend = FakeBackend(items=[activity_item(1)])
        controller = make_controller(backend)
        controller.start()
        stats_calls = backend.count("get_stats")

        assert controller.rate(ReviewDifficulty.EASY) is True
        assert controller.state == SessionState.IDLE
        assert controller.current_item is None
        assert backend.count("get_stats") == stats_calls + 1
        assert controller.pop_notices()[0].level == "info"

    def test_rate_is_ignored_while_submitting(self):
        controller = None

        class ReentrantBackend(FakeBackend):
            def rate_item(self, item_id, difficulty, request_id=None):
                # A second click while the first request is in flight
                assert controller.rate(ReviewDifficulty.EASY) is False
                return super().rate_item(item_id, difficulty, request_id)

        backend = ReentrantBackend(items=[activity_item(1), activity_item(2)])
        controller = make_controller(backend)
        controller.start()

        controller.rate(ReviewDifficulty.EASY)
        assert backend.count("rate_item") == 1
        assert not controller.is_submitting


class TestSkipAndExit:
    def test_skip_bypasses_rating(self):
        backend = FakeBackend(items=[flashcard_item(1), flashcard_item(2)])
        controller = make_controller(backend)
        controller.start()

        assert controller.skip() is True
        assert controller.current_item.id == 2
        assert backend.count("rate_item") == 0

    def test_skip_failure_stays_on_item(self):
        backend = FakeBackend(items=[flashcard_item(1), TransientReviewError()])
        controller = make_controller(backend)
        controller.start()

        assert controller.skip() is False
        assert controller.current_item.id == 1
        assert controller.session_count == 1

    def test_skip_when_idle(self):
        controller = make_controller(FakeBackend())
        assert controller.skip() is False

    def test_exit_returns_to_idle_and_refreshes(self):
        backend = FakeBackend(items=[flashcard_item(1)])
        controller = make_controller(backend)
        controller.start()

        controller.exit()
        assert controller.state == SessionState.IDLE
        assert backend.count("get_stats") == 2
        # Idle is re-enterable
        backend.items = [flashcard_item(3)]
        assert controller.start() is True


class TestTimeout:
    def test_hanging_request_becomes_retryable_notice(self):
        class SlowBackend(FakeBackend):
            def get_next_item(self, course_id, new_pass=False, request_id=None):
                time.sleep(0.5)
                return flashcard_item(1)

        controller = ReviewSessionController(SlowBackend(), course_id=1, timeout=0.05)
        controller.refresh_stats()

        assert controller.start() is False
        assert controller.state == SessionState.IDLE
        assert not controller.is_submitting
        assert "too long" in controller.pop_notices()[0].message

    def test_rating_retried_after_timeout_is_recorded_once(self, seed_course, session_factory, db):
        seeded = seed_course(chapters=[(2, 0)])
        backend = HeldBackend(seeded.student_id, session_factory, hold="rate_item")
        controller = ReviewSessionController(backend, course_id=seeded.course_id, timeout=0.5)
        controller.refresh_stats()
        controller.start()
        item_id = controller.current_item.id
        controller.reveal()

        assert controller.rate(ReviewDifficulty.EASY) is False
        assert "too long" in controller.pop_notices()[0].message
        assert controller.current_item.id == item_id

        assert controller.rate(ReviewDifficulty.EASY) is True
        backend.release.set()
        assert backend.finished.wait(5)

        db.expire_all()
        assert get_review_item(db, item_id).times_served == 1
        assert count_review_events(db, seeded.student_id, seeded.course_id) == 1
        assert get_review_progress(db, seeded.student_id, seeded.course_id).total_items_reviewed == 1

    def test_fetch_retried_after_timeout_keeps_the_pass_complete(
        self, seed_course, session_factory, db
    ):
        seeded = seed_course(chapters=[(2, 0)])
        backend = HeldBackend(seeded.student_id, session_factory, hold="get_next_item")
        controller = ReviewSessionController(backend, course_id=seeded.course_id, timeout=0.5)
        controller.refresh_stats()

        assert controller.start() is False
        assert controller.start() is True
        first = controller.current_item.id
        backend.release.set()
        assert backend.finished.wait(5)

        db.expire_all()
        assert get_review_progress(db, seeded.student_id, seeded.course_id).current_pass == 2
        served = db.query(SmartReviewItem).filter(SmartReviewItem.last_served_pass == 2).all()
        assert [item.id for item in served] == [first]

        seen = []
        while controller.state == SessionState.REVIEWING:
            seen.append(controller.current_item.id)
            controller.skip()
        assert sorted(seen) == sorted(i.id for i in db.query(SmartReviewItem).all())


class HeldBackend(LocalReviewBackend):
    """Holds the first call of one operation until released, like a stalled request"""

    def __init__(self, student_id, session_factory, hold):
        super().__init__(student_id, session_factory)
        self.hold = hold
        self.held = False
        self.release = threading.Event()
        self.finished = threading.Event()

    def get_next_item(self, course_id, new_pass=False, request_id=None):
        return self._maybe_hold(
            "get_next_item", super().get_next_item, course_id, new_pass, request_id
        )

    def rate_item(self, item_id, difficulty, request_id=None):
        return self._maybe_hold("rate_item", super().rate_item, item_id, difficulty, request_id)

    def _maybe_hold(self, name, operation, *args):
        if name != self.hold or self.held:
            return operation(*args)
        self.held = True
        self.release.wait(5)
        try:
            return operation(*args)
        finally:
            self.finished.set()


class TestWithDatabase:
    def test_walkthrough_of_one_chapter(self, seed_course, session_factory):
        seeded = seed_course(chapters=[(3, 0)])
        backend = LocalReviewBackend(seeded.student_id, session_factory, strategy=OrderedStrategy())
        controller = ReviewSessionController(backend, course_id=seeded.course_id, timeout=0)
        controller.refresh_stats()

        assert controller.start()
        fronts = []
        while controller.state == SessionState.REVIEWING:
            fronts.append(controller.current_item.flashcard.front)
            controller.reveal()
            controller.rate(ReviewDifficulty.EASY)

        assert fronts == ["Q1.1", "Q1.2", "Q1.3"]
        assert controller.session_count == 3
        chapter = controller.stats.chapter_stats[0]
        assert (chapter.flashcards_reviewed, chapter.total_flashcards) == (3, 3)
        assert controller.stats.total_items_reviewed == 3

    def test_rated_item_comes_back_with_history(self, seed_course, session_factory):
        seeded = seed_course(chapters=[(1, 0)])
        backend = LocalReviewBackend(seeded.student_id, session_factory)
        controller = ReviewSessionController(backend, course_id=seeded.course_id, timeout=0)
        controller.refresh_stats()

        controller.start()
        controller.reveal()
        controller.rate(ReviewDifficulty.EASY)
        assert controller.state == SessionState.IDLE

        controller.start()
        assert controller.current_item.times_served == 1
        assert controller.current_item.last_difficulty == ReviewDifficulty.EASY

    def test_unenrolled_student_sees_empty_dashboard(self, seed_course, session_factory):
        seeded = seed_course(enroll=False)
        backend = LocalReviewBackend(seeded.student_id, session_factory)
        controller = ReviewSessionController(backend, course_id=seeded.course_id, timeout=0)

        stats = controller.refresh_stats()
        assert stats.chapter_stats == []
        assert not controller.can_start

    def test_database_errors_become_transient(self, seed_course, session_factory, engine):
        seeded = seed_course()
        backend = LocalReviewBackend(seeded.student_id, session_factory)
        Base.metadata.drop_all(bind=engine)

        with pytest.raises(TransientReviewError):
            backend.get_stats(seeded.course_id)

    def test_local_backend_matches_service(self, seed_course, session_factory, db):
        seeded = seed_course(chapters=[(2, 1)])
        backend = LocalReviewBackend(seeded.student_id, session_factory)
        assert backend.get_stats(seeded.course_id) == smart_review.get_stats(
            db, seeded.student_id, seeded.course_id
        )
