"""Read-only data access for the report pipeline.

Each public method opens its own short-lived session from the session
factory, so the aggregator can issue independent reads concurrently from
worker threads. Methods return plain records (never ORM instances) so nothing
outlives its session.
"""

from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import func as sa_func, or_, select
from sqlalchemy.orm import Session, sessionmaker

from app.models.assignment import Assignment, StudentAssignment
from app.models.course import Course, student_courses
from app.models.goal import Goal
from app.models.student import Student, parent_students
from app.models.teacher import Teacher
from app.models.user import User, UserRole
from app.services.report_period import ReportPeriod


DEFAULT_SUBJECT = "Genel"
SUBMITTED_STATUSES = ("submitted", "graded", "late")


@dataclass(frozen=True)
class PersonRecord:
    id: int
    first_name: str
    last_name: str
    email: str
    role: str | None = None
    class_name: str | None = None


@dataclass(frozen=True)
class AssignmentRecord:
    id: int
    title: str
    subject: str
    max_grade: float
    due_date: datetime | None
    created_at: datetime | None


@dataclass(frozen=True)
class SubmissionRecord:
    assignment_id: int
    status: str
    grade: float | None
    submitted_at: datetime | None


@dataclass(frozen=True)
class GoalRecord:
    title: str
    description: str
    status: str
    progress: int
    target_date: datetime | None
    created_at: datetime | None
    completed_at: datetime | None


class ReportDataSource:
    """SQLAlchemy-backed student, assignment, submission and goal lookups."""

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    # ------------------------------------------------------------------
    # Identity
    # ------------------------------------------------------------------

    def get_student(self, student_id: int) -> PersonRecord | None:
        """Student identity plus the name of their (first) class. Inactive users count as absent."""
        with self.session_factory() as db:
            row = (
                db.query(Student, User)
                .join(User, Student.user_id == User.id)
                .filter(Student.id == student_id)
                .first()
            )
            if not row:
                return None
            student, user = row
            if not user.is_active:
                return None
            class_name = _first_class_name(db, student.id)
            return PersonRecord(
                id=student.id,
                first_name=user.first_name,
                last_name=user.last_name,
                email=user.email,
                role=UserRole.STUDENT.value,
                class_name=class_name,
            )

    def get_user(self, user_id: int) -> PersonRecord | None:
        with self.session_factory() as db:
            user = db.query(User).filter(User.id == user_id).first()
            if not user:
                return None
            return _person(user)

    def get_owning_teacher(self, student_id: int) -> PersonRecord | None:
        """The teacher of the student's first class that has one assigned."""
        with self.session_factory() as db:
            user = (
                db.query(User)
                .join(Teacher, Teacher.user_id == User.id)
                .join(Course, Course.teacher_id == Teacher.id)
                .join(student_courses, student_courses.c.course_id == Course.id)
                .filter(student_courses.c.student_id == student_id)
                .order_by(Course.id)
                .first()
            )
            return _person(user) if user else None

    def can_view_student(self, viewer_id: int, student_id: int) -> bool:
        """Whether ``viewer_id`` may see ``student_id``'s data.

        Access is granted when any of the following is true:
          - viewer is ADMIN
          - viewer is the student
          - viewer (parent) is linked to the student
          - viewer (teacher) teaches a class the student belongs to
        """
        with self.session_factory() as db:
            viewer = db.query(User).filter(User.id == viewer_id).first()
            if not viewer or not viewer.is_active:
                return False

            if viewer.has_role(UserRole.ADMIN):
                return True

            if viewer.has_role(UserRole.STUDENT):
                own = db.query(Student.id).filter(
                    Student.id == student_id, Student.user_id == viewer.id,
                ).first()
                return own is not None

            if viewer.has_role(UserRole.PARENT):
                link = db.query(parent_students).filter(
                    parent_students.c.parent_id == viewer.id,
                    parent_students.c.student_id == student_id,
                ).first()
                return link is not None

            if viewer.has_role(UserRole.TEACHER):
                in_class = (
                    db.query(student_courses.c.student_id)
                    .join(Course, Course.id == student_courses.c.course_id)
                    .join(Teacher, Teacher.id == Course.teacher_id)
                    .filter(
                        student_courses.c.student_id == student_id,
                        Teacher.user_id == viewer.id,
                    )
                    .first()
                )
                return in_class is not None

            return False

    # ------------------------------------------------------------------
    # Coursework
    # ------------------------------------------------------------------

    def list_assignments(self, student_id: int, period: ReportPeriod) -> list[AssignmentRecord]:
        """Assignments given to the student directly or through class membership.

        An assignment belongs to the period by its due date, or by its creation
        date when it has no due date. Newest first.
        """
        with self.session_factory() as db:
            enrolled = select(student_courses.c.course_id).where(
                student_courses.c.student_id == student_id,
            )
            effective_date = sa_func.coalesce(Assignment.due_date, Assignment.created_at)
            rows = (
                db.query(Assignment, Course.name)
                .outerjoin(Course, Assignment.course_id == Course.id)
                .filter(
                    or_(
                        Assignment.student_id == student_id,
                        Assignment.course_id.in_(enrolled),
                    ),
                    effective_date >= period.start,
                    effective_date <= period.end,
                )
                .order_by(effective_date.desc(), Assignment.id.desc())
                .all()
            )
            return [
                AssignmentRecord(
                    id=a.id,
                    title=a.title or "Untitled assignment",
                    subject=course_name or DEFAULT_SUBJECT,
                    max_grade=a.max_points or 100.0,
                    due_date=a.due_date,
                    created_at=a.created_at,
                )
                for a, course_name in rows
            ]

    def list_submissions(self, student_id: int, assignment_ids: list[int]) -> list[SubmissionRecord]:
        """The student's turned-in submissions for the given assignments."""
        if not assignment_ids:
            return []
        with self.session_factory() as db:
            rows = (
                db.query(StudentAssignment)
                .filter(
                    StudentAssignment.student_id == student_id,
                    StudentAssignment.assignment_id.in_(assignment_ids),
                    StudentAssignment.status.in_(SUBMITTED_STATUSES),
                )
                .order_by(StudentAssignment.assignment_id)
                .all()
            )
            return [
                SubmissionRecord(
                    assignment_id=sa.assignment_id,
                    status=sa.status,
                    grade=sa.grade,
                    submitted_at=sa.submitted_at,
                )
                for sa in rows
            ]

    def list_goals(self, student_id: int, period: ReportPeriod) -> list[GoalRecord]:
        """Goals created within the period, newest first."""
        with self.session_factory() as db:
            goals = (
                db.query(Goal)
                .filter(
                    Goal.student_id == student_id,
                    Goal.created_at >= period.start,
                    Goal.created_at <= period.end,
                )
                .order_by(Goal.created_at.desc(), Goal.id.desc())
                .all()
            )
            return [
                GoalRecord(
                    title=g.title or "Untitled goal",
                    description=g.description or "",
                    status=g.status or "pending",
                    progress=g.progress or 0,
                    target_date=g.target_date,
                    created_at=g.created_at,
                    completed_at=g.completed_at,
                )
                for g in goals
            ]


def _person(user: User) -> PersonRecord:
    return PersonRecord(
        id=user.id,
        first_name=user.first_name,
        last_name=user.last_name,
        email=user.email,
        role=user.role.value if user.role else None,
    )


def _first_class_name(db: Session, student_id: int) -> str | None:
    row = (
        db.query(Course.name)
        .join(student_courses, student_courses.c.course_id == Course.id)
        .filter(student_courses.c.student_id == student_id)
        .order_by(Course.id)
        .first()
    )
    return row[0] if row else None
