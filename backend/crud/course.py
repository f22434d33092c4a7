from sqlalchemy.orm import Session
from backend.models import Course, Module, Flashcard, LearningActivity
from backend.schemas import CourseCreate, ModuleCreate, FlashcardCreate, LearningActivityCreate
from typing import List, Optional

def create_course(db: Session, course: CourseCreate) -> Course:
    """Create a new course"""
    db_course = Course(**course.model_dump())
    db.add(db_course)
    db.commit()
    db.refresh(db_course)
    return db_course

def get_course(db: Session, course_id: int) -> Optional[Course]:
    """Get course by ID"""
    return db.query(Course).filter(Course.id == course_id).first()

def add_module(db: Session, module: ModuleCreate) -> Module:
    """Add a module at the given position of its course"""
    db_module = Module(**module.model_dump())
    db.add(db_module)
    db.commit()
    db.refresh(db_module)
    return db_module

def get_module(db: Session, module_id: int) -> Optional[Module]:
    return db.query(Module).filter(Module.id == module_id).first()

def get_modules(db: Session, course_id: int) -> List[Module]:
    """Get all modules of a course in display order"""
    return db.query(Module).filter(
        Module.course_id == course_id
    ).order_by(Module.order).all()

def add_flashcard(db: Session, flashcard: FlashcardCreate) -> Flashcard:
    """Add a flashcard to a module; the course is taken from the module"""
    module = get_module(db, flashcard.module_id)
    if not module:
        raise ValueError(f"Module {flashcard.module_id} not found")
    db_flashcard = Flashcard(course_id=module.course_id, **flashcard.model_dump())
    db.add(db_flashcard)
    db.commit()
    db.refresh(db_flashcard)
    return db_flashcard

def add_learning_activity(db: Session, activity: LearningActivityCreate) -> LearningActivity:
    """Add a learning activity to a module; the course is taken from the module"""
    module = get_module(db, activity.module_id)
    if not module:
        raise ValueError(f"Module {activity.module_id} not found")
    db_activity = LearningActivity(course_id=module.course_id, **activity.model_dump())
    db.add(db_activity)
    db.commit()
    db.refresh(db_activity)
    return db_activity

def get_flashcards(db: Session, course_id: int, module_ids: List[int]) -> List[Flashcard]:
    """Get flashcards of the given modules"""
    if not module_ids:
        return []
    return db.query(Flashcard).filter(
        Flashcard.course_id == course_id,
        Flashcard.module_id.in_(module_ids)
    ).order_by(Flashcard.id).all()

def get_learning_activities(db: Session, course_id: int, module_ids: List[int]) -> List[LearningActivity]:
    """Get learning activities of the given modules"""
    if not module_ids:
        return []
    return db.query(LearningActivity).filter(
        LearningActivity.course_id == course_id,
        LearningActivity.module_id.in_(module_ids)
    ).order_by(LearningActivity.id).all()
