import os
import tempfile
from datetime import datetime, timedelta

import pytest

# Configure the app before anything imports app.core.config. Reads run in
# worker threads, so the database is a file rather than :memory:.
_DB_DIR = tempfile.mkdtemp(prefix="reports-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_DB_DIR, 'test.db')}"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["ENVIRONMENT"] = "test"
os.environ["REPORT_RETRY_DELAY_SECONDS"] = "0"

from fastapi.testclient import TestClient  # noqa: E402

from app.db.database import Base, SessionLocal, engine  # noqa: E402
from app.main import app  # noqa: E402
from app.services.report_data_source import (  # noqa: E402
    AssignmentRecord,
    GoalRecord,
    PersonRecord,
    SubmissionRecord,
)

FIXED_NOW = datetime(2026, 10, 19, 12, 0, 0)


@pytest.fixture(scope="session", autouse=True)
def _schema():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="session")
def db_session(_schema):
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(scope="session")
def client(_schema):
    return TestClient(app)


@pytest.fixture()
def fixed_clock():
    return lambda: FIXED_NOW


# ---------------------------------------------------------------------------
# In-memory data source for failure injection
# ---------------------------------------------------------------------------

class FakeReportSource:
    """Same interface as ReportDataSource, backed by lists.

    ``fail[step] = n`` makes the next ``n`` calls of that read raise.
    """

    def __init__(self):
        self.student = PersonRecord(
            id=1, first_name="Ayşe", last_name="Yılmaz", email="ayse@example.com",
            role="student", class_name="Mathematics",
        )
        self.users = {
            7: PersonRecord(id=7, first_name="Mehmet", last_name="Demir", email="mehmet@example.com", role="teacher"),
            9: PersonRecord(id=9, first_name="Fatma", last_name="Yılmaz", email="fatma@example.com", role="parent"),
        }
        self.owner = self.users[7]
        self.allowed = {7, 9}

        subjects = ["Mathematics"] * 6 + ["Science"] * 4
        self.assignments = [
            AssignmentRecord(
                id=i,
                title=f"Homework {i}",
                subject=subjects[i - 1],
                max_grade=100.0,
                due_date=FIXED_NOW - timedelta(days=i),
                created_at=FIXED_NOW - timedelta(days=i + 3),
            )
            for i in range(1, 11)
        ]
        grades = {1: 70.0, 2: 75.0, 3: 80.0, 4: 85.0, 5: 90.0}
        self.submissions = [
            SubmissionRecord(
                assignment_id=i,
                status="graded" if i in grades else "submitted",
                grade=grades.get(i),
                submitted_at=FIXED_NOW - timedelta(days=i, hours=2),
            )
            for i in range(1, 9)
        ]
        self.goals = [
            GoalRecord(
                title="Read 10 books", description="One book every two weeks", status="in_progress",
                progress=40, target_date=FIXED_NOW + timedelta(days=60),
                created_at=FIXED_NOW - timedelta(days=5), completed_at=None,
            ),
            GoalRecord(
                title="Finish fractions unit", description="", status="completed",
                progress=100, target_date=FIXED_NOW - timedelta(days=2),
                created_at=FIXED_NOW - timedelta(days=40), completed_at=FIXED_NOW - timedelta(days=3),
            ),
        ]
        self.fail: dict[str, int] = {}
        self.calls: dict[str, int] = {}

    def _hit(self, step):
        self.calls[step] = self.calls.get(step, 0) + 1
        remaining = self.fail.get(step, 0)
        if remaining:
            self.fail[step] = remaining - 1
            raise ConnectionError(f"{step} read unavailable")

    def get_student(self, student_id):
        self._hit("student")
        return self.student if self.student and student_id == self.student.id else None

    def get_user(self, user_id):
        self._hit("viewer")
        return self.users.get(user_id)

    def get_owning_teacher(self, student_id):
        self._hit("teacher")
        return self.owner

    def can_view_student(self, viewer_id, student_id):
        self._hit("access")
        return viewer_id in self.allowed

    def list_assignments(self, student_id, period):
        self._hit("assignments")
        return [a for a in self.assignments if period.contains(a.due_date or a.created_at)]

    def list_submissions(self, student_id, assignment_ids):
        self._hit("submissions")
        return [s for s in self.submissions if s.assignment_id in assignment_ids]

    def list_goals(self, student_id, period):
        self._hit("goals")
        return [g for g in self.goals if period.contains(g.created_at)]


@pytest.fixture()
def fake_source():
    return FakeReportSource()


@pytest.fixture()
def fixed_period():
    from app.services.report_period import ReportPeriod
    return ReportPeriod.default(now=FIXED_NOW)


# ---------------------------------------------------------------------------
# Database fixtures
# ---------------------------------------------------------------------------

@pytest.fixture(scope="session")
def report_world(db_session):
    """A teacher's class with one student, their guardian and ten assignments in the last weeks."""
    from sqlalchemy import insert

    from app.core.utils import utcnow
    from app.models.assignment import Assignment, StudentAssignment
    from app.models.course import Course, student_courses
    from app.models.goal import Goal
    from app.models.student import RelationshipType, Student, parent_students
    from app.models.teacher import Teacher
    from app.models.user import User, UserRole

    now = utcnow()

    teacher_user = User(email="rw_teacher@test.com", first_name="Mehmet", last_name="Demir", role=UserRole.TEACHER)
    other_teacher_user = User(email="rw_other_teacher@test.com", first_name="Zeynep", last_name="Kaya", role=UserRole.TEACHER)
    parent = User(email="rw_parent@test.com", first_name="Fatma", last_name="Yılmaz", role=UserRole.PARENT)
    outsider = User(email="rw_outsider@test.com", first_name="Ali", last_name="Çelik", role=UserRole.PARENT)
    admin = User(email="rw_admin@test.com", first_name="Admin", last_name="User", role=UserRole.ADMIN)
    student_user = User(email="rw_student@test.com", first_name="Ayşe", last_name="Yılmaz", role=UserRole.STUDENT)
    inactive_user = User(email="rw_inactive@test.com", first_name="Old", last_name="Account", role=UserRole.STUDENT, is_active=False)
    db_session.add_all([teacher_user, other_teacher_user, parent, outsider, admin, student_user, inactive_user])
    db_session.flush()

    teacher = Teacher(user_id=teacher_user.id)
    other_teacher = Teacher(user_id=other_teacher_user.id)
    student = Student(user_id=student_user.id, grade_level=7)
    inactive_student = Student(user_id=inactive_user.id)
    db_session.add_all([teacher, other_teacher, student, inactive_student])
    db_session.flush()

    math = Course(name="Mathematics", teacher_id=teacher.id)
    science = Course(name="Science", teacher_id=teacher.id)
    history = Course(name="History", teacher_id=other_teacher.id)
    db_session.add_all([math, science, history])
    db_session.flush()

    db_session.execute(insert(student_courses).values(student_id=student.id, course_id=math.id))
    db_session.execute(insert(student_courses).values(student_id=student.id, course_id=science.id))
    db_session.execute(insert(parent_students).values(
        parent_id=parent.id, student_id=student.id, relationship_type=RelationshipType.MOTHER,
    ))

    # Ten in-period assignments: 6 Mathematics, 3 Science, 1 direct
    targets = [math.id] * 6 + [science.id] * 3 + [None]
    assignments = []
    for i, course_id in enumerate(targets, start=1):
        assignments.append(Assignment(
            title=f"Homework {i}",
            course_id=course_id,
            student_id=None if course_id else student.id,
            max_points=100.0,
            due_date=now - timedelta(days=i),
            created_at=now - timedelta(days=i + 3),
        ))
    # Not counted: another class, and an assignment outside the period
    assignments.append(Assignment(title="History essay", course_id=history.id, due_date=now - timedelta(days=2), created_at=now - timedelta(days=4)))
    assignments.append(Assignment(title="Old worksheet", course_id=math.id, due_date=now - timedelta(days=200), created_at=now - timedelta(days=210)))
    db_session.add_all(assignments)
    db_session.flush()

    grades = [70.0, 75.0, 80.0, 85.0, 90.0]
    for i, a in enumerate(assignments[:8]):
        graded = i < 5
        db_session.add(StudentAssignment(
            student_id=student.id,
            assignment_id=a.id,
            status="graded" if graded else "submitted",
            grade=grades[i] if graded else None,
            submitted_at=a.due_date - timedelta(hours=3),
        ))
    db_session.add(StudentAssignment(student_id=student.id, assignment_id=assignments[8].id, status="pending"))

    db_session.add_all([
        Goal(student_id=student.id, title="Read 10 books", status="in_progress", progress=40,
             created_at=now - timedelta(days=5)),
        Goal(student_id=student.id, title="Finish fractions", status="completed", progress=100,
             created_at=now - timedelta(days=30), completed_at=now - timedelta(days=1)),
    ])
    db_session.commit()

    return {
        "teacher_user": teacher_user,
        "other_teacher_user": other_teacher_user,
        "parent": parent,
        "outsider": outsider,
        "admin": admin,
        "student_user": student_user,
        "student": student,
        "inactive_student": inactive_student,
        "assignments": assignments,
    }


def auth_headers(user) -> dict:
    from app.core.security import create_access_token
    return {"Authorization": f"Bearer {create_access_token(user.id)}"}


@pytest.fixture()
def auth():
    return auth_headers
