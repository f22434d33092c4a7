"""Smart review service: chapter statistics, next-item selection and ratings.

Every function takes the database session and the student explicitly and
raises a :class:`backend.exceptions.SmartReviewError` subclass on failure.
Reads never write; `get_next_item` and `rate_item` commit their changes in
a single transaction.
"""
from datetime import datetime
from typing import List, Optional

from loguru import logger
from sqlalchemy.orm import Session

from backend.config import settings
from backend.crud import (
    add_missing_review_items,
    add_review_event,
    count_content_by_module,
    count_reviewed_items,
    get_course,
    get_enrollment,
    get_flashcards,
    get_learned_module_ids,
    get_learning_activities,
    get_modules,
    get_or_create_review_progress,
    get_review_event_by_request,
    get_review_item,
    get_review_items,
    get_review_progress as load_review_progress,
)
from backend.exceptions import (
    CourseAccessDeniedError,
    CourseNotFoundError,
    InvalidItemReferenceError,
    ReviewExhaustedError,
    ReviewIneligibleError,
)
from backend.models import (
    Flashcard,
    LearningActivity,
    ReviewDifficulty,
    SmartReviewItem,
    SmartReviewProgress,
    SmartReviewType,
)
from backend.schemas import (
    ActivityReviewItem,
    ChapterStats,
    FlashcardPayload,
    FlashcardReviewItem,
    LearningActivityPayload,
    ModuleSummary,
    ReviewItem,
    ReviewProgress,
    SmartReviewStats,
)
from backend.selection import SelectionStrategy, difficulty_weight, get_selection_strategy


def require_enrollment(db: Session, student_id: int, course_id: int) -> None:
    """Raise unless the course exists and the student is enrolled in it"""
    if not get_course(db, course_id):
        raise CourseNotFoundError(f"Course {course_id} not found")
    if not get_enrollment(db, student_id, course_id):
        raise CourseAccessDeniedError()


def get_unlocked_module_ids(db: Session, student_id: int, course_id: int) -> List[int]:
    """
    Get IDs of modules whose content is open for review, in module order.

    A module is unlocked once the student marks it as learned. With
    `always_unlock_first_module` the first module by order is unlocked too.
    """
    modules = get_modules(db, course_id)
    if not modules:
        return []

    unlocked = set(get_learned_module_ids(db, student_id, course_id))
    if settings.always_unlock_first_module:
        first = next((m for m in modules if m.order == 1), modules[0])
        unlocked.add(first.id)

    return [m.id for m in modules if m.id in unlocked]


def get_stats(db: Session, student_id: int, course_id: int) -> SmartReviewStats:
    """Per-chapter review coverage, unlocked chapters and lifetime review count"""
    require_enrollment(db, student_id, course_id)

    modules = get_modules(db, course_id)
    unlocked_ids = get_unlocked_module_ids(db, student_id, course_id)
    reviewed = count_reviewed_items(db, student_id, course_id)
    flashcard_counts = count_content_by_module(db, Flashcard, course_id, unlocked_ids)
    activity_counts = count_content_by_module(db, LearningActivity, course_id, unlocked_ids)

    chapter_stats = [
        ChapterStats(
            module_id=module.id,
            module_title=module.title,
            module_order=module.order,
            flashcards_reviewed=reviewed.get((module.id, SmartReviewType.FLASHCARD), 0),
            activities_reviewed=reviewed.get((module.id, SmartReviewType.ACTIVITY), 0),
            total_flashcards=flashcard_counts.get(module.id, 0),
            total_activities=activity_counts.get(module.id, 0),
        )
        for module in modules
        if module.id in unlocked_ids
    ]

    progress = load_review_progress(db, student_id, course_id)
    return SmartReviewStats(
        total_items_reviewed=progress.total_items_reviewed if progress else 0,
        chapter_stats=chapter_stats,
        completed_chapters=unlocked_ids,
    )


def get_review_progress(db: Session, student_id: int, course_id: int) -> ReviewProgress:
    """Lifetime counter and last served item, for resuming a session"""
    require_enrollment(db, student_id, course_id)
    progress = load_review_progress(db, student_id, course_id)
    if not progress:
        return ReviewProgress(total_items_reviewed=0, last_item_id=None, current_pass=1)
    return ReviewProgress(
        total_items_reviewed=progress.total_items_reviewed,
        last_item_id=progress.last_item_id,
        current_pass=progress.current_pass,
    )


def get_next_item(
    db: Session,
    student_id: int,
    course_id: int,
    new_pass: bool = False,
    strategy: Optional[SelectionStrategy] = None,
    request_id: Optional[str] = None,
) -> ReviewItem:
    """
    Pick the next item to review from unlocked chapters.

    Args:
        new_pass: Start a new sweep so every eligible item is a candidate again
        strategy: Selection strategy (defaults to the configured one)
        request_id: Client id of this fetch; repeating the id of the last
            served fetch returns the same item again without using another one

    Raises:
        ReviewIneligibleError: no chapter is unlocked
        ReviewExhaustedError: every eligible item was already served this pass
    """
    require_enrollment(db, student_id, course_id)

    unlocked_ids = get_unlocked_module_ids(db, student_id, course_id)
    if not unlocked_ids:
        logger.info(f"Student {student_id} has no unlocked chapters in course {course_id}")
        raise ReviewIneligibleError()

    created = add_missing_review_items(
        db,
        student_id,
        course_id,
        get_flashcards(db, course_id, unlocked_ids),
        get_learning_activities(db, course_id, unlocked_ids),
    )
    if created:
        logger.debug(f"Added {created} new review items for student {student_id}")

    progress = get_or_create_review_progress(db, student_id, course_id)
    if request_id and progress.last_request_id == request_id:
        replayed = get_review_item(db, progress.last_item_id) if progress.last_item_id else None
        if (
            replayed
            and replayed.module_id in unlocked_ids
            and replayed.last_served_pass == progress.current_pass
        ):
            db.commit()
            logger.debug(f"Fetch {request_id} already served item {replayed.id}, sending it again")
            return to_review_item(replayed)

    if new_pass:
        progress.current_pass += 1
        logger.info(
            f"Student {student_id} started review pass {progress.current_pass} in course {course_id}"
        )

    pool = get_review_items(db, student_id, course_id, unlocked_ids)
    candidates = [item for item in pool if item.last_served_pass < progress.current_pass]
    if not candidates:
        db.commit()
        logger.info(
            f"Review pass {progress.current_pass} exhausted for student {student_id} "
            f"({len(pool)} items)"
        )
        raise ReviewExhaustedError()

    strategy = strategy or get_selection_strategy()
    selected = strategy.select(candidates)

    selected.last_served_pass = progress.current_pass
    selected.last_served_at = datetime.utcnow()
    progress.last_item_id = selected.id
    progress.last_request_id = request_id
    db.commit()
    db.refresh(selected)

    logger.debug(
        f"Served item {selected.id} ({selected.item_type.value}) to student {student_id}, "
        f"{len(candidates) - 1} left in pass {progress.current_pass}"
    )
    return to_review_item(selected)


def rate_item(
    db: Session,
    student_id: int,
    item_id: int,
    difficulty: ReviewDifficulty,
    request_id: Optional[str] = None,
) -> ReviewItem:
    """
    Record a difficulty rating on an item.

    Sets the item's last difficulty and weight, counts one more exposure,
    appends a review event and bumps the lifetime counter. A rating whose
    `request_id` is already recorded changes nothing.
    """
    difficulty = ReviewDifficulty(difficulty)
    item = get_review_item(db, item_id)
    if not item or item.student_id != student_id:
        raise InvalidItemReferenceError()
    if not get_enrollment(db, student_id, item.course_id):
        raise InvalidItemReferenceError()
    if item.flashcard is None and item.learning_activity is None:
        raise InvalidItemReferenceError("This item's content no longer exists")
    if request_id and get_review_event_by_request(db, request_id):
        logger.info(f"Rating {request_id} on item {item.id} already recorded")
        return to_review_item(item)

    item.last_difficulty = difficulty
    item.probability_weight = difficulty_weight(difficulty)
    item.times_served = SmartReviewItem.times_served + 1
    add_review_event(db, item, difficulty, request_id=request_id)

    progress = get_or_create_review_progress(db, student_id, item.course_id)
    progress.total_items_reviewed = SmartReviewProgress.total_items_reviewed + 1
    progress.last_item_id = item.id

    db.commit()
    db.refresh(item)
    logger.info(
        f"Student {student_id} rated item {item.id} {difficulty.value} "
        f"(served {item.times_served} times)"
    )
    return to_review_item(item)


def to_review_item(item: SmartReviewItem) -> ReviewItem:
    """Resolve a review row into its flashcard or activity payload"""
    common = dict(
        id=item.id,
        course_id=item.course_id,
        module_id=item.module_id,
        times_served=item.times_served,
        last_difficulty=item.last_difficulty,
        probability_weight=item.probability_weight,
        last_served_at=item.last_served_at,
        module=ModuleSummary.model_validate(item.module),
    )
    if item.item_type == SmartReviewType.FLASHCARD:
        return FlashcardReviewItem(
            flashcard=FlashcardPayload.model_validate(item.flashcard),
            **common,
        )
    return ActivityReviewItem(
        learning_activity=LearningActivityPayload.model_validate(item.learning_activity),
        **common,
    )
