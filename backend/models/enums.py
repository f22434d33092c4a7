import enum


class LearnStatus(str, enum.Enum):
    """Per-student completion state of a module"""
    NOT_STARTED = "NOT_STARTED"
    IN_PROGRESS = "IN_PROGRESS"
    LEARNED = "LEARNED"


class SmartReviewType(str, enum.Enum):
    FLASHCARD = "FLASHCARD"
    ACTIVITY = "ACTIVITY"


class ReviewDifficulty(str, enum.Enum):
    """Student self-assessment after seeing an item"""
    EASY = "EASY"
    MEDIUM = "MEDIUM"
    HARD = "HARD"
