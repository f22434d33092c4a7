import sys
import json
import typer
from loguru import logger
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from typing import Optional

from backend.config import settings
from backend.database import SessionLocal, init_db, reset_db as drop_and_recreate
from backend.crud import (
    create_student, get_student, create_course, get_course, add_module, add_flashcard,
    add_learning_activity, enroll_student, set_module_status
)
from backend.exceptions import SmartReviewError
from backend.models import LearnStatus, ReviewDifficulty
from backend.review_session import LocalReviewBackend, ReviewSessionController, SessionState
from backend.schemas import (
    StudentCreate, CourseCreate, ModuleCreate, FlashcardCreate, LearningActivityCreate
)
from backend.selection import available_strategies, get_selection_strategy
from backend import smart_review

app = typer.Typer(help="Smart Review CLI - spaced review of flashcards and activities from completed chapters")
console = Console()

NOTICE_STYLES = {"info": "cyan", "warning": "yellow", "error": "red"}

RATING_KEYS = {
    "1": ReviewDifficulty.EASY,
    "2": ReviewDifficulty.MEDIUM,
    "3": ReviewDifficulty.HARD,
}
RATING_PROMPT = "Rate: [1] easy, [2] medium, [3] hard, [s] skip, [q] quit"

@app.callback()
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logs")):
    """Configure logging"""
    logger.remove()
    logger.add(
        sys.stderr,
        level="DEBUG" if verbose else settings.log_level,
        format="<dim>{time:HH:mm:ss}</dim> | <level>{level: <8}</level> | {message}",
    )

@app.command()
def init():
    """Initialize database tables"""
    init_db()
    console.print("[green]✓[/green] Database initialized successfully!")

@app.command()
def reset_db():
    """Delete all data and reinitialize database (WARNING: irreversible!)"""
    confirm = typer.confirm("⚠️  This will DELETE ALL DATA. Are you sure?")
    if not confirm:
        console.print("[yellow]Cancelled.[/yellow]")
        return

    console.print("[yellow]Dropping and recreating all tables...[/yellow]")
    drop_and_recreate()
    console.print("[green]✓[/green] Database reset complete! All data deleted.")

@app.command("create-student")
def create_student_cmd(
    name: str = typer.Option(..., prompt="Student name"),
    email: Optional[str] = typer.Option(None, help="Student email")
):
    """Create a new student"""
    db = SessionLocal()
    try:
        student = create_student(db, StudentCreate(name=name, email=email))
        console.print(f"[green]✓[/green] Student created! ID: {student.id}")
    finally:
        db.close()

@app.command("create-course")
def create_course_cmd(title: str = typer.Option(..., prompt="Course title")):
    """Create a new course"""
    db = SessionLocal()
    try:
        course = create_course(db, CourseCreate(title=title))
        console.print(f"[green]✓[/green] Course created! ID: {course.id}")
    finally:
        db.close()

@app.command("add-module")
def add_module_cmd(
    course_id: int = typer.Option(..., prompt="Course ID"),
    title: str = typer.Option(..., prompt="Chapter title"),
    order: int = typer.Option(..., prompt="Chapter number")
):
    """Add a chapter to a course"""
    db = SessionLocal()
    try:
        module = add_module(db, ModuleCreate(course_id=course_id, title=title, order=order))
        console.print(f"[green]✓[/green] Chapter {module.order} added! Module ID: {module.id}")
    finally:
        db.close()

@app.command("add-flashcard")
def add_flashcard_cmd(
    module_id: int = typer.Option(..., prompt="Module ID"),
    front: str = typer.Option(..., prompt="Question"),
    back: str = typer.Option(..., prompt="Answer")
):
    """Add a flashcard to a chapter"""
    db = SessionLocal()
    try:
        flashcard = add_flashcard(db, FlashcardCreate(module_id=module_id, front=front, back=back))
        console.print(f"[green]✓[/green] Flashcard added! ID: {flashcard.id}")
    except ValueError as e:
        console.print(f"[red]✗[/red] {e}")
    finally:
        db.close()

@app.command("add-activity")
def add_activity_cmd(
    module_id: int = typer.Option(..., prompt="Module ID"),
    title: str = typer.Option(..., prompt="Activity title"),
    activity_type: str = typer.Option("short_answer", help="Activity type (quiz, matching, short_answer, ...)"),
    instructions: Optional[str] = typer.Option(None, help="Instructions shown to the student"),
    content: Optional[str] = typer.Option(None, help="Activity content as JSON")
):
    """Add a learning activity to a chapter"""
    db = SessionLocal()
    try:
        activity = add_learning_activity(db, LearningActivityCreate(
            module_id=module_id,
            title=title,
            activity_type=activity_type,
            instructions=instructions,
            content=json.loads(content) if content else None
        ))
        console.print(f"[green]✓[/green] Activity added! ID: {activity.id}")
    except (ValueError, json.JSONDecodeError) as e:
        console.print(f"[red]✗[/red] {e}")
    finally:
        db.close()

@app.command()
def enroll(
    student_id: int = typer.Option(..., prompt="Student ID"),
    course_id: int = typer.Option(..., prompt="Course ID")
):
    """Enroll a student in a course"""
    db = SessionLocal()
    try:
        if not get_student(db, student_id):
            console.print(f"[red]✗[/red] Student {student_id} not found")
            return
        if not get_course(db, course_id):
            console.print(f"[red]✗[/red] Course {course_id} not found")
            return
        enroll_student(db, student_id, course_id)
        console.print(f"[green]✓[/green] Student {student_id} enrolled in course {course_id}")
    finally:
        db.close()

@app.command("set-module-status")
def set_module_status_cmd(
    student_id: int = typer.Option(..., prompt="Student ID"),
    module_id: int = typer.Option(..., prompt="Module ID"),
    status: LearnStatus = typer.Option(LearnStatus.LEARNED, help="Chapter status")
):
    """Mark a chapter as learned (unlocks it for review), in progress or not started"""
    db = SessionLocal()
    try:
        progress = set_module_status(db, student_id, module_id, status)
        console.print(f"[green]✓[/green] Module {module_id} is now {progress.learn_status.value}")
    except ValueError as e:
        console.print(f"[red]✗[/red] {e}")
    finally:
        db.close()

@app.command()
def stats(
    student_id: int = typer.Option(..., prompt="Student ID"),
    course_id: int = typer.Option(..., prompt="Course ID")
):
    """Show review statistics per unlocked chapter"""
    db = SessionLocal()
    try:
        review_stats = smart_review.get_stats(db, student_id, course_id)
    except SmartReviewError as e:
        console.print(f"[red]✗[/red] {e.message}")
        return
    finally:
        db.close()

    console.print(f"\n[bold]Smart Review - course {course_id}[/bold]")
    console.print(f"  Items reviewed (lifetime): {review_stats.total_items_reviewed}")

    if not review_stats.chapter_stats:
        console.print("[yellow]Complete a chapter to unlock smart review.[/yellow]")
        return

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Chapter", style="cyan")
    table.add_column("Title", style="green")
    table.add_column("Flashcards", justify="right")
    table.add_column("Activities", justify="right")

    for chapter in review_stats.chapter_stats:
        table.add_row(
            str(chapter.module_order),
            chapter.module_title,
            f"{chapter.flashcards_reviewed}/{chapter.total_flashcards}",
            f"{chapter.activities_reviewed}/{chapter.total_activities}"
        )

    console.print(table)

@app.command()
def progress(
    student_id: int = typer.Option(..., prompt="Student ID"),
    course_id: int = typer.Option(..., prompt="Course ID")
):
    """Show where the student left off"""
    db = SessionLocal()
    try:
        review_progress = smart_review.get_review_progress(db, student_id, course_id)
        console.print(f"  Items reviewed: {review_progress.total_items_reviewed}")
        console.print(f"  Current pass: {review_progress.current_pass}")
        console.print(f"  Last item: {review_progress.last_item_id or '-'}")
    except SmartReviewError as e:
        console.print(f"[red]✗[/red] {e.message}")
    finally:
        db.close()

@app.command()
def review(
    student_id: int = typer.Option(..., prompt="Student ID"),
    course_id: int = typer.Option(..., prompt="Course ID"),
    strategy: Optional[str] = typer.Option(
        None, help=f"Selection strategy ({', '.join(available_strategies())})"
    )
):
    """Run an interactive smart review session"""
    try:
        selection = get_selection_strategy(strategy)
    except ValueError as e:
        console.print(f"[red]✗[/red] {e}")
        raise typer.Exit(code=1)

    controller = ReviewSessionController(
        LocalReviewBackend(student_id, strategy=selection),
        course_id
    )
    controller.refresh_stats()
    _print_notices(controller)

    if not controller.can_start:
        console.print("[yellow]Complete at least one chapter to start a review.[/yellow]")
        return

    controller.start()
    _print_notices(controller)

    while controller.state == SessionState.REVIEWING:
        _show_item(controller)

        if controller.current_item.requires_reveal and not controller.answer_revealed:
            choice = typer.prompt("[enter] reveal answer, [s] skip, [q] quit", default="", show_default=False)
            if choice.lower() == "q":
                controller.exit()
                break
            if choice.lower() == "s":
                controller.skip()
                _print_notices(controller)
                continue
            controller.reveal()
        if controller.current_item.requires_reveal:
            console.print(Panel(controller.current_item.flashcard.back, title="Answer", border_style="green"))

        choice = typer.prompt(RATING_PROMPT).strip().lower()
        while choice not in RATING_KEYS and choice not in ("s", "q"):
            console.print("[yellow]Unknown choice[/yellow]")
            choice = typer.prompt(RATING_PROMPT).strip().lower()

        if choice == "q":
            controller.exit()
        elif choice == "s":
            controller.skip()
        else:
            controller.rate(RATING_KEYS[choice])
        _print_notices(controller)

    _print_notices(controller)
    console.print(f"\n[green]✓[/green] Session over. Total reviewed: {controller.total_reviewed}")

def _show_item(controller: ReviewSessionController):
    item = controller.current_item
    header = (
        f"Session: {controller.session_count} | Total: {controller.total_reviewed + controller.session_count}"
        f" | {item.module.title}"
    )
    seen = f"Seen {item.times_served} times"
    if item.last_difficulty:
        seen += f" • Last rating: {item.last_difficulty.value.lower()}"

    if item.requires_reveal:
        body = item.flashcard.front
        title = "Flashcard"
    else:
        activity = item.learning_activity
        body = activity.title
        if activity.instructions:
            body += f"\n\n{activity.instructions}"
        if activity.content:
            body += f"\n\n{json.dumps(activity.content, indent=2, ensure_ascii=False)}"
        title = f"Activity ({activity.activity_type})"

    console.print(f"\n[dim]{header}[/dim]")
    console.print(Panel(body, title=title, subtitle=seen, border_style="cyan"))

def _print_notices(controller: ReviewSessionController):
    for notice in controller.pop_notices():
        style = NOTICE_STYLES.get(notice.level, "white")
        console.print(f"[{style}]{notice.message}[/{style}]")

if __name__ == "__main__":
    app()
