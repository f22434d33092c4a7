from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from datetime import datetime
from backend.database import Base

class Course(Base):
    """Course made of ordered modules"""
    __tablename__ = "courses"
    
    id = Column(Integer, primary_key=True, index=True)
    title = Column(String, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    
    modules = relationship("Module", back_populates="course", order_by="Module.order")
    enrollments = relationship("Enrollment", back_populates="course")


class Module(Base):
    """Ordered unit of a course, shown to students as a chapter"""
    __tablename__ = "modules"
    __table_args__ = (UniqueConstraint("course_id", "order", name="uq_module_course_order"),)
    
    id = Column(Integer, primary_key=True, index=True)
    course_id = Column(Integer, ForeignKey("courses.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String, nullable=False)
    order = Column(Integer, nullable=False)
    
    course = relationship("Course", back_populates="modules")
    flashcards = relationship("Flashcard", back_populates="module")
    learning_activities = relationship("LearningActivity", back_populates="module")
