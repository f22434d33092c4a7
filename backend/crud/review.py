from sqlalchemy import func
from sqlalchemy.orm import Session
from backend.models import (
    Flashcard,
    LearningActivity,
    ReviewEvent,
    SmartReviewItem,
    SmartReviewProgress,
    SmartReviewType,
)
from typing import Dict, List, Optional, Tuple

def get_review_item(db: Session, item_id: int) -> Optional[SmartReviewItem]:
    return db.query(SmartReviewItem).filter(SmartReviewItem.id == item_id).first()

def get_review_items(
    db: Session,
    student_id: int,
    course_id: int,
    module_ids: Optional[List[int]] = None
) -> List[SmartReviewItem]:
    """Get a student's review items for a course, optionally limited to some modules"""
    query = db.query(SmartReviewItem).filter(
        SmartReviewItem.student_id == student_id,
        SmartReviewItem.course_id == course_id
    )
    if module_ids is not None:
        query = query.filter(SmartReviewItem.module_id.in_(module_ids))
    return query.order_by(SmartReviewItem.id).all()

def add_missing_review_items(
    db: Session,
    student_id: int,
    course_id: int,
    flashcards: List[Flashcard],
    activities: List[LearningActivity]
) -> int:
    """
    Create review items for content the student has no item for yet.
    
    Returns:
        Number of items created (not committed)
    """
    existing = get_review_items(db, student_id, course_id)
    seen_flashcards = {i.flashcard_id for i in existing if i.flashcard_id}
    seen_activities = {i.learning_activity_id for i in existing if i.learning_activity_id}

    created = 0
    for flashcard in flashcards:
        if flashcard.id in seen_flashcards:
            continue
        db.add(SmartReviewItem(
            student_id=student_id,
            course_id=course_id,
            module_id=flashcard.module_id,
            item_type=SmartReviewType.FLASHCARD,
            flashcard_id=flashcard.id,
            times_served=0,
            probability_weight=1.0,
            last_served_pass=0
        ))
        created += 1
    for activity in activities:
        if activity.id in seen_activities:
            continue
        db.add(SmartReviewItem(
            student_id=student_id,
            course_id=course_id,
            module_id=activity.module_id,
            item_type=SmartReviewType.ACTIVITY,
            learning_activity_id=activity.id,
            times_served=0,
            probability_weight=1.0,
            last_served_pass=0
        ))
        created += 1
    if created:
        db.flush()
    return created

def count_reviewed_items(
    db: Session,
    student_id: int,
    course_id: int
) -> Dict[Tuple[int, SmartReviewType], int]:
    """Count items served and rated at least once, keyed by (module_id, item_type)"""
    rows = db.query(
        SmartReviewItem.module_id,
        SmartReviewItem.item_type,
        func.count(SmartReviewItem.id)
    ).filter(
        SmartReviewItem.student_id == student_id,
        SmartReviewItem.course_id == course_id,
        SmartReviewItem.times_served > 0
    ).group_by(SmartReviewItem.module_id, SmartReviewItem.item_type).all()
    return {(module_id, item_type): count for module_id, item_type, count in rows}

def count_content_by_module(db: Session, model, course_id: int, module_ids: List[int]) -> Dict[int, int]:
    """Count flashcards or activities per module"""
    if not module_ids:
        return {}
    rows = db.query(model.module_id, func.count(model.id)).filter(
        model.course_id == course_id,
        model.module_id.in_(module_ids)
    ).group_by(model.module_id).all()
    return {module_id: count for module_id, count in rows}

def get_review_progress(db: Session, student_id: int, course_id: int) -> Optional[SmartReviewProgress]:
    return db.query(SmartReviewProgress).filter(
        SmartReviewProgress.student_id == student_id,
        SmartReviewProgress.course_id == course_id
    ).first()

def get_or_create_review_progress(db: Session, student_id: int, course_id: int) -> SmartReviewProgress:
    """Get the progress row, creating it (not committed) when missing"""
    progress = get_review_progress(db, student_id, course_id)
    if not progress:
        progress = SmartReviewProgress(
            student_id=student_id,
            course_id=course_id,
            total_items_reviewed=0,
            current_pass=1
        )
        db.add(progress)
        db.flush()
    return progress

def add_review_event(
    db: Session,
    item: SmartReviewItem,
    difficulty,
    request_id: Optional[str] = None
) -> ReviewEvent:
    """Append a rating event (not committed)"""
    event = ReviewEvent(
        student_id=item.student_id,
        course_id=item.course_id,
        item_id=item.id,
        difficulty=difficulty,
        request_id=request_id
    )
    db.add(event)
    return event

def get_review_event_by_request(db: Session, request_id: str) -> Optional[ReviewEvent]:
    return db.query(ReviewEvent).filter(ReviewEvent.request_id == request_id).first()

def count_review_events(db: Session, student_id: int, course_id: int) -> int:
    return db.query(func.count(ReviewEvent.id)).filter(
        ReviewEvent.student_id == student_id,
        ReviewEvent.course_id == course_id
    ).scalar() or 0
