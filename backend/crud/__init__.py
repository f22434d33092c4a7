from backend.crud.student import create_student, get_student
from backend.crud.course import (
    create_course,
    get_course,
    add_module,
    get_module,
    get_modules,
    add_flashcard,
    add_learning_activity,
    get_flashcards,
    get_learning_activities
)
from backend.crud.enrollment import (
    enroll_student,
    get_enrollment,
    set_module_status,
    get_learned_module_ids
)
from backend.crud.review import (
    get_review_item,
    get_review_items,
    add_missing_review_items,
    count_reviewed_items,
    count_content_by_module,
    get_review_progress,
    get_or_create_review_progress,
    add_review_event,
    get_review_event_by_request,
    count_review_events
)

__all__ = [
    "create_student",
    "get_student",
    "create_course",
    "get_course",
    "add_module",
    "get_module",
    "get_modules",
    "add_flashcard",
    "add_learning_activity",
    "get_flashcards",
    "get_learning_activities",
    "enroll_student",
    "get_enrollment",
    "set_module_status",
    "get_learned_module_ids",
    "get_review_item",
    "get_review_items",
    "add_missing_review_items",
    "count_reviewed_items",
    "count_content_by_module",
    "get_review_progress",
    "get_or_create_review_progress",
    "add_review_event",
    "get_review_event_by_request",
    "count_review_events",
]
