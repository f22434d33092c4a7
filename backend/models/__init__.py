from backend.models.enums import LearnStatus, SmartReviewType, ReviewDifficulty
from backend.models.student import Student
from backend.models.course import Course, Module
from backend.models.content import Flashcard, LearningActivity
from backend.models.enrollment import Enrollment, ModuleProgress
from backend.models.review import SmartReviewItem, ReviewEvent, SmartReviewProgress

__all__ = [
    "LearnStatus",
    "SmartReviewType",
    "ReviewDifficulty",
    "Student",
    "Course",
    "Module",
    "Flashcard",
    "LearningActivity",
    "Enrollment",
    "ModuleProgress",
    "SmartReviewItem",
    "ReviewEvent",
    "SmartReviewProgress"
]
