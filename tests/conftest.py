"""
Pytest configuration and fixtures.

Each test gets its own in-memory SQLite database; `seed_course` builds a
course with chapters, flashcards and activities and enrolls a student.
"""
import os
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List

# Keep the module-level engine off the project database file
os.environ.setdefault("DATABASE_URL", "sqlite://")

PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from backend.config import settings
from backend.crud import (
    add_flashcard,
    add_learning_activity,
    add_module,
    create_course,
    create_student,
    enroll_student,
    set_module_status,
)
from backend.database import init_db
from backend.models import LearnStatus
from backend.schemas import (
    CourseCreate,
    FlashcardCreate,
    LearningActivityCreate,
    ModuleCreate,
    StudentCreate,
)


@dataclass
class SeededCourse:
    student_id: int
    course_id: int
    module_ids: List[int]
    flashcard_ids: Dict[int, List[int]] = field(default_factory=dict)
    activity_ids: Dict[int, List[int]] = field(default_factory=dict)


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture(autouse=True)
def default_settings(monkeypatch):
    """Pin settings that tests rely on, whatever the local .env says"""
    monkeypatch.setattr(settings, "selection_strategy", "coverage")
    monkeypatch.setattr(settings, "always_unlock_first_module", False)
    monkeypatch.setattr(settings, "easy_weight", 0.5)
    monkeypatch.setattr(settings, "medium_weight", 1.0)
    monkeypatch.setattr(settings, "hard_weight", 1.3)
    monkeypatch.setattr(settings, "request_timeout_seconds", 0)


@pytest.fixture
def seed_course(db):
    """
    Factory building a course for one enrolled student.

    Args:
        chapters: list of (flashcard_count, activity_count) per chapter
        learned: 1-based chapter numbers to mark as learned
        enroll: enroll the student in the course
    """
    def _seed(chapters=((3, 0),), learned=(1,), enroll=True) -> SeededCourse:
        student = create_student(db, StudentCreate(name="Alice", email=None))
        course = create_course(db, CourseCreate(title="Networking Basics"))
        seeded = SeededCourse(student_id=student.id, course_id=course.id, module_ids=[])

        for order, (flashcards, activities) in enumerate(chapters, start=1):
            module = add_module(db, ModuleCreate(course_id=course.id, title=f"Chapter {order}", order=order))
            seeded.module_ids.append(module.id)
            seeded.flashcard_ids[module.id] = [
                add_flashcard(db, FlashcardCreate(
                    module_id=module.id, front=f"Q{order}.{n}", back=f"A{order}.{n}"
                )).id
                for n in range(1, flashcards + 1)
            ]
            seeded.activity_ids[module.id] = [
                add_learning_activity(db, LearningActivityCreate(
                    module_id=module.id,
                    title=f"Activity {order}.{n}",
                    activity_type="quiz",
                    instructions="Pick the right answer",
                    content={"choices": ["a", "b"], "answer": "a"},
                )).id
                for n in range(1, activities + 1)
            ]

        if enroll:
            enroll_student(db, student.id, course.id)
        for chapter in learned:
            set_module_status(db, student.id, seeded.module_ids[chapter - 1], LearnStatus.LEARNED)
        return seeded

    return _seed
