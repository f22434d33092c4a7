from sqlalchemy import (
    Column, Integer, Float, String, DateTime, Enum, ForeignKey, CheckConstraint, UniqueConstraint
)
from sqlalchemy.orm import relationship
from datetime import datetime
from backend.database import Base
from backend.models.enums import ReviewDifficulty, SmartReviewType

class SmartReviewItem(Base):
    """Exposure and difficulty state of one flashcard or activity for one student"""
    __tablename__ = "smart_review_items"
    __table_args__ = (
        CheckConstraint(
            "(flashcard_id IS NOT NULL AND learning_activity_id IS NULL) OR "
            "(flashcard_id IS NULL AND learning_activity_id IS NOT NULL)",
            name="ck_review_item_single_source",
        ),
        UniqueConstraint("student_id", "flashcard_id", name="uq_review_item_flashcard"),
        UniqueConstraint("student_id", "learning_activity_id", name="uq_review_item_activity"),
    )
    
    id = Column(Integer, primary_key=True, index=True)
    student_id = Column(Integer, ForeignKey("students.id", ondelete="CASCADE"), nullable=False, index=True)
    course_id = Column(Integer, ForeignKey("courses.id", ondelete="CASCADE"), nullable=False, index=True)
    module_id = Column(Integer, ForeignKey("modules.id", ondelete="CASCADE"), nullable=False)
    item_type = Column(Enum(SmartReviewType), nullable=False)
    flashcard_id = Column(Integer, ForeignKey("flashcards.id", ondelete="CASCADE"))
    learning_activity_id = Column(Integer, ForeignKey("learning_activities.id", ondelete="CASCADE"))
    
    times_served = Column(Integer, nullable=False, default=0)
    last_difficulty = Column(Enum(ReviewDifficulty))
    probability_weight = Column(Float, nullable=False, default=1.0)
    last_served_at = Column(DateTime)
    last_served_pass = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, default=datetime.utcnow)
    
    student = relationship("Student", back_populates="review_items")
    module = relationship("Module")
    flashcard = relationship("Flashcard")
    learning_activity = relationship("LearningActivity")
    events = relationship("ReviewEvent", back_populates="item")


class ReviewEvent(Base):
    """Append-only record of one difficulty rating"""
    __tablename__ = "review_events"
    
    id = Column(Integer, primary_key=True, index=True)
    student_id = Column(Integer, ForeignKey("students.id", ondelete="CASCADE"), nullable=False, index=True)
    course_id = Column(Integer, ForeignKey("courses.id", ondelete="CASCADE"), nullable=False, index=True)
    item_id = Column(Integer, ForeignKey("smart_review_items.id", ondelete="SET NULL"))
    difficulty = Column(Enum(ReviewDifficulty), nullable=False)
    request_id = Column(String(64), unique=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    
    item = relationship("SmartReviewItem", back_populates="events")


class SmartReviewProgress(Base):
    """Lifetime review counter and pass position per student and course"""
    __tablename__ = "smart_review_progress"
    __table_args__ = (UniqueConstraint("student_id", "course_id", name="uq_review_progress_student_course"),)
    
    id = Column(Integer, primary_key=True, index=True)
    student_id = Column(Integer, ForeignKey("students.id", ondelete="CASCADE"), nullable=False)
    course_id = Column(Integer, ForeignKey("courses.id", ondelete="CASCADE"), nullable=False)
    total_items_reviewed = Column(Integer, nullable=False, default=0)
    last_item_id = Column(Integer)
    current_pass = Column(Integer, nullable=False, default=1)
    last_request_id = Column(String(64))
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
