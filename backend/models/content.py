from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, JSON
from sqlalchemy.orm import relationship
from datetime import datetime
from backend.database import Base

class Flashcard(Base):
    """Question/answer card attached to a module"""
    __tablename__ = "flashcards"
    
    id = Column(Integer, primary_key=True, index=True)
    course_id = Column(Integer, ForeignKey("courses.id", ondelete="CASCADE"), nullable=False, index=True)
    module_id = Column(Integer, ForeignKey("modules.id", ondelete="CASCADE"), nullable=False, index=True)
    front = Column(Text, nullable=False)
    back = Column(Text, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    
    module = relationship("Module", back_populates="flashcards")


class LearningActivity(Base):
    """Exercise attached to a module (quiz, matching, open question, ...)"""
    __tablename__ = "learning_activities"
    
    id = Column(Integer, primary_key=True, index=True)
    course_id = Column(Integer, ForeignKey("courses.id", ondelete="CASCADE"), nullable=False, index=True)
    module_id = Column(Integer, ForeignKey("modules.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String, nullable=False)
    activity_type = Column(String, nullable=False)  # "quiz", "matching", "short_answer", ...
    instructions = Column(Text)
    content = Column(JSON)
    created_at = Column(DateTime, default=datetime.utcnow)
    
    module = relationship("Module", back_populates="learning_activities")
