from sqlalchemy.orm import Session
from backend.models import Enrollment, Module, ModuleProgress, LearnStatus
from typing import List, Optional

def enroll_student(db: Session, student_id: int, course_id: int) -> Enrollment:
    """Enroll a student in a course; enrolling twice returns the existing row"""
    enrollment = get_enrollment(db, student_id, course_id)
    if enrollment:
        return enrollment
    enrollment = Enrollment(student_id=student_id, course_id=course_id)
    db.add(enrollment)
    db.commit()
    db.refresh(enrollment)
    return enrollment

def get_enrollment(db: Session, student_id: int, course_id: int) -> Optional[Enrollment]:
    return db.query(Enrollment).filter(
        Enrollment.student_id == student_id,
        Enrollment.course_id == course_id
    ).first()

def set_module_status(
    db: Session,
    student_id: int,
    module_id: int,
    learn_status: LearnStatus
) -> ModuleProgress:
    """Create or update a student's completion state for a module"""
    module = db.query(Module).filter(Module.id == module_id).first()
    if not module:
        raise ValueError(f"Module {module_id} not found")

    progress = db.query(ModuleProgress).filter(
        ModuleProgress.student_id == student_id,
        ModuleProgress.module_id == module_id
    ).first()
    if progress:
        progress.learn_status = learn_status
    else:
        progress = ModuleProgress(
            student_id=student_id,
            course_id=module.course_id,
            module_id=module_id,
            learn_status=learn_status
        )
        db.add(progress)
    db.commit()
    db.refresh(progress)
    return progress

def get_learned_module_ids(db: Session, student_id: int, course_id: int) -> List[int]:
    """Get IDs of modules the student marked as learned"""
    rows = db.query(ModuleProgress.module_id).filter(
        ModuleProgress.student_id == student_id,
        ModuleProgress.course_id == course_id,
        ModuleProgress.learn_status == LearnStatus.LEARNED
    ).all()
    return [row.module_id for row in rows]
