"""Performance snapshot schemas.

The snapshot is the only value passed from the data side of the report
pipeline to the renderer, and it is also returned verbatim by the JSON
endpoint. Field names serialize in camelCase (``model_dump(by_alias=True)``).
"""

from datetime import datetime
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

MONTHS_IN_PROGRESS = 6
MAX_LISTED_ITEMS = 5

Percent = Annotated[int, Field(ge=0, le=100)]
Count = Annotated[int, Field(ge=0)]


class SnapshotModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )


# --- Identity ---

class StudentIdentity(SnapshotModel):
    id: int
    first_name: str
    last_name: str
    email: str
    class_name: str | None = None

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


class TeacherIdentity(SnapshotModel):
    id: int
    first_name: str
    last_name: str
    email: str

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


class PeriodInfo(SnapshotModel):
    start: datetime
    end: datetime


# --- Metrics ---

class PerformanceMetrics(SnapshotModel):
    assignment_completion: Percent
    grading_rate: Percent
    average_grade: Percent
    goals_progress: Percent
    overall_performance: Percent


class AssignmentStatistics(SnapshotModel):
    total_assignments: Count
    submitted_assignments: Count
    graded_assignments: Count
    pending_assignments: Count
    total_goals: Count
    completed_goals: Count


class SubjectStat(SnapshotModel):
    name: str
    total_assignments: Count
    completed_assignments: Count
    average_grade: Percent


class MonthlyProgress(SnapshotModel):
    month: str
    assignments_completed: Count
    goals_achieved: Count
    average_grade: Percent


class AssignmentSummary(SnapshotModel):
    title: str
    subject: str
    due_date: datetime | None = None
    status: Literal["pending", "submitted", "graded", "late"]
    grade: float | None = None
    max_grade: float


class GoalSummary(SnapshotModel):
    title: str
    description: str = ""
    target_date: datetime | None = None
    status: Literal["pending", "in_progress", "completed", "cancelled"]
    progress: Percent


class Insights(SnapshotModel):
    strengths: tuple[str, ...] = ()
    areas_for_improvement: tuple[str, ...] = ()
    recommendations: tuple[str, ...] = ()


# --- Snapshot ---

class PerformanceSnapshot(SnapshotModel):
    student: StudentIdentity
    teacher: TeacherIdentity
    period: PeriodInfo
    performance: PerformanceMetrics
    statistics: AssignmentStatistics
    subjects: tuple[SubjectStat, ...]
    monthly_progress: tuple[MonthlyProgress, ...]
    recent_assignments: tuple[AssignmentSummary, ...] = Field(default=(), max_length=MAX_LISTED_ITEMS)
    goals: tuple[GoalSummary, ...] = Field(default=(), max_length=MAX_LISTED_ITEMS)
    insights: Insights
    generated_at: datetime

    @field_validator("subjects")
    @classmethod
    def _subjects_not_empty(cls, value):
        if not value:
            raise ValueError("subjects must contain at least one entry")
        return value

    @field_validator("monthly_progress")
    @classmethod
    def _six_months(cls, value):
        if len(value) != MONTHS_IN_PROGRESS:
            raise ValueError(f"monthly_progress must have exactly {MONTHS_IN_PROGRESS} entries")
        return value


class ReportRequest(BaseModel):
    """Optional date window for POST report generation."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    start_date: str | None = None
    end_date: str | None = None
