"""Errors raised by the smart review service.

Every error carries a user-facing message; the session controller turns
them into notices instead of letting them reach the rendering layer.
"""


class SmartReviewError(Exception):
    """Base class for smart review failures."""

    default_message = "Smart review failed"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message


class CourseNotFoundError(SmartReviewError):
    """The course id does not reference an existing course."""

    default_message = "Course not found"


class CourseAccessDeniedError(SmartReviewError):
    """The student is not enrolled in the course."""

    default_message = "You are not enrolled in this course"


class ReviewIneligibleError(SmartReviewError):
    """No chapter is unlocked, so review cannot start."""

    default_message = "No chapters available for review"


class ReviewExhaustedError(SmartReviewError):
    """Every eligible item has been shown in the current pass."""

    default_message = "You have reviewed every available item"


class InvalidItemReferenceError(SmartReviewError):
    """The item does not exist or belongs to someone else."""

    default_message = "Item not found"


class TransientReviewError(SmartReviewError):
    """Network, database or timeout failure; safe to retry."""

    default_message = "Something went wrong, please try again"
