from pydantic import BaseModel, Field
from typing import Annotated, Any, List, Literal, Optional, Union
from datetime import datetime

from backend.models.enums import ReviewDifficulty, SmartReviewType

class StudentCreate(BaseModel):
    """Schema for creating a student"""
    name: str
    email: Optional[str] = None

class CourseCreate(BaseModel):
    """Schema for creating a course"""
    title: str

class ModuleCreate(BaseModel):
    """Schema for adding a module to a course"""
    course_id: int
    title: str
    order: int

class FlashcardCreate(BaseModel):
    """Schema for adding a flashcard to a module"""
    module_id: int
    front: str
    back: str

class LearningActivityCreate(BaseModel):
    """Schema for adding a learning activity to a module"""
    module_id: int
    title: str
    activity_type: str
    instructions: Optional[str] = None
    content: Optional[Any] = None


# Review read models

class ChapterStats(BaseModel):
    """Review coverage of one unlocked module"""
    module_id: int
    module_title: str
    module_order: int
    flashcards_reviewed: int
    activities_reviewed: int
    total_flashcards: int
    total_activities: int

    @property
    def items_reviewed(self) -> int:
        return self.flashcards_reviewed + self.activities_reviewed

    @property
    def total_items(self) -> int:
        return self.total_flashcards + self.total_activities

class SmartReviewStats(BaseModel):
    total_items_reviewed: int = 0
    chapter_stats: List[ChapterStats] = Field(default_factory=list)
    completed_chapters: List[int] = Field(default_factory=list)

class ReviewProgress(BaseModel):
    """Position of a student in the review loop, used to resume"""
    total_items_reviewed: int
    last_item_id: Optional[int] = None
    current_pass: int

class ModuleSummary(BaseModel):
    id: int
    title: str
    order: int

    class Config:
        from_attributes = True

class FlashcardPayload(BaseModel):
    id: int
    front: str
    back: str

    class Config:
        from_attributes = True

class LearningActivityPayload(BaseModel):
    id: int
    title: str
    activity_type: str
    instructions: Optional[str] = None
    content: Optional[Any] = None

    class Config:
        from_attributes = True

class ReviewItemBase(BaseModel):
    """Fields shared by every reviewable item"""
    id: int
    course_id: int
    module_id: int
    times_served: int
    last_difficulty: Optional[ReviewDifficulty] = None
    probability_weight: float
    last_served_at: Optional[datetime] = None
    module: ModuleSummary

class FlashcardReviewItem(ReviewItemBase):
    item_type: Literal[SmartReviewType.FLASHCARD] = SmartReviewType.FLASHCARD
    flashcard: FlashcardPayload

    @property
    def requires_reveal(self) -> bool:
        return True

class ActivityReviewItem(ReviewItemBase):
    item_type: Literal[SmartReviewType.ACTIVITY] = SmartReviewType.ACTIVITY
    learning_activity: LearningActivityPayload

    @property
    def requires_reveal(self) -> bool:
        return False

ReviewItem = Annotated[
    Union[FlashcardReviewItem, ActivityReviewItem],
    Field(discriminator="item_type"),
]
