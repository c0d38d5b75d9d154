"""Pure derivations used to build performance snapshots.

Nothing here touches the database or the clock; callers pass ``now`` in so
that two runs over the same records produce identical output.

Rounding is half-up (62.5 -> 63) and every percentage is clamped to
[0, 100], whatever the inputs.
"""

import math
from datetime import datetime

from app.schemas.report import (
    MONTHS_IN_PROGRESS,
    AssignmentStatistics,
    AssignmentSummary,
    GoalSummary,
    Insights,
    MonthlyProgress,
    PerformanceMetrics,
    SubjectStat,
)
from app.services.report_data_source import (
    DEFAULT_SUBJECT,
    AssignmentRecord,
    GoalRecord,
    SubmissionRecord,
)

MONTH_LABELS = (
    "Jan", "Feb", "Mar", "Apr", "May", "Jun",
    "Jul", "Aug", "Sep", "Oct", "Nov", "Dec",
)

STRENGTH_THRESHOLD = 80
IMPROVEMENT_THRESHOLD = 60

# Weights of the composite overall score
COMPLETION_WEIGHT = 0.4
GRADING_RATE_WEIGHT = 0.3
AVERAGE_GRADE_WEIGHT = 0.3

GOAL_STATUSES = ("pending", "in_progress", "completed", "cancelled")


# ---------------------------------------------------------------------------
# Numeric helpers
# ---------------------------------------------------------------------------

def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def clamp_percent(value: float) -> int:
    if value is None or math.isnan(value):
        return 0
    return max(0, min(100, round_half_up(value)))


def percentage(part: int, whole: int) -> int:
    """``part / whole`` as a rounded, clamped percentage; 0 when ``whole`` is 0."""
    if not whole:
        return 0
    return clamp_percent(part / whole * 100)


def mean_percent(values: list[float]) -> int:
    """Unweighted mean of raw grades, rounded and clamped. 0 for no values."""
    if not values:
        return 0
    return clamp_percent(sum(values) / len(values))


def is_graded(submission: SubmissionRecord) -> bool:
    grade = submission.grade
    return grade is not None and not math.isnan(grade)


# ---------------------------------------------------------------------------
# Headline metrics
# ---------------------------------------------------------------------------

def compute_statistics(
    assignments: list[AssignmentRecord],
    submissions: list[SubmissionRecord],
    goals: list[GoalRecord],
) -> AssignmentStatistics:
    total = len(assignments)
    submitted = len(submissions)
    return AssignmentStatistics(
        total_assignments=total,
        submitted_assignments=submitted,
        graded_assignments=sum(1 for s in submissions if is_graded(s)),
        pending_assignments=max(0, total - submitted),
        total_goals=len(goals),
        completed_goals=sum(1 for g in goals if g.status == "completed"),
    )


def compute_performance(
    statistics: AssignmentStatistics,
    submissions: list[SubmissionRecord],
) -> PerformanceMetrics:
    """Completion, grading rate, average grade, goal progress and the overall score.

    The average grade is the plain mean of ``grade`` values; ``max_grade`` is
    not used to normalize it.
    """
    completion = percentage(statistics.submitted_assignments, statistics.total_assignments)
    grading_rate = percentage(statistics.graded_assignments, statistics.submitted_assignments)
    average_grade = mean_percent([s.grade for s in submissions if is_graded(s)])
    goals_progress = percentage(statistics.completed_goals, statistics.total_goals)
    overall = clamp_percent(
        completion * COMPLETION_WEIGHT
        + grading_rate * GRADING_RATE_WEIGHT
        + average_grade * AVERAGE_GRADE_WEIGHT
    )
    return PerformanceMetrics(
        assignment_completion=completion,
        grading_rate=grading_rate,
        average_grade=average_grade,
        goals_progress=goals_progress,
        overall_performance=overall,
    )


def placeholder_subjects() -> tuple[SubjectStat, ...]:
    return (
        SubjectStat(name=DEFAULT_SUBJECT, total_assignments=0, completed_assignments=0, average_grade=0),
    )


def compute_subjects(
    assignments: list[AssignmentRecord],
    submissions: list[SubmissionRecord],
) -> tuple[SubjectStat, ...]:
    """Per-subject totals, completed counts and average grade, in first-seen order."""
    groups: dict[str, dict] = {}
    subject_by_assignment: dict[int, str] = {}

    for a in assignments:
        subject = a.subject or DEFAULT_SUBJECT
        subject_by_assignment[a.id] = subject
        if subject not in groups:
            groups[subject] = {"total": 0, "completed": 0, "grades": []}
        groups[subject]["total"] += 1

    for s in submissions:
        subject = subject_by_assignment.get(s.assignment_id)
        if subject is None:
            continue
        groups[subject]["completed"] += 1
        if is_graded(s):
            groups[subject]["grades"].append(s.grade)

    if not groups:
        return placeholder_subjects()

    return tuple(
        SubjectStat(
            name=name,
            total_assignments=data["total"],
            completed_assignments=data["completed"],
            average_grade=mean_percent(data["grades"]),
        )
        for name, data in groups.items()
    )


# ---------------------------------------------------------------------------
# Monthly progress
# ---------------------------------------------------------------------------

def month_windows(now: datetime, count: int = MONTHS_IN_PROGRESS) -> list[tuple[datetime, datetime, str]]:
    """``count`` calendar months ending with the month of ``now``, oldest first.

    Each entry is ``(start, end, label)`` with ``end`` exclusive.
    """
    windows = []
    for offset in range(count - 1, -1, -1):
        index = now.year * 12 + (now.month - 1) - offset
        year, month = divmod(index, 12)
        start = datetime(year, month + 1, 1)
        next_year, next_month = divmod(index + 1, 12)
        end = datetime(next_year, next_month + 1, 1)
        windows.append((start, end, f"{MONTH_LABELS[month]} {year}"))
    return windows


def empty_monthly_progress(now: datetime) -> tuple[MonthlyProgress, ...]:
    return tuple(
        MonthlyProgress(month=label, assignments_completed=0, goals_achieved=0, average_grade=0)
        for _start, _end, label in month_windows(now)
    )


def compute_monthly_progress(
    assignments: list[AssignmentRecord],
    submissions: list[SubmissionRecord],
    goals: list[GoalRecord],
    now: datetime,
) -> tuple[MonthlyProgress, ...]:
    """Six month buckets ending at the current month.

    Assignments are counted by creation date, goals by completion date, and
    grades by submission date.
    """
    entries = []
    for start, end, label in month_windows(now):
        created = sum(
            1 for a in assignments
            if a.created_at is not None and start <= a.created_at < end
        )
        achieved = sum(
            1 for g in goals
            if g.status == "completed" and g.completed_at is not None and start <= g.completed_at < end
        )
        grades = [
            s.grade for s in submissions
            if is_graded(s) and s.submitted_at is not None and start <= s.submitted_at < end
        ]
        entries.append(MonthlyProgress(
            month=label,
            assignments_completed=created,
            goals_achieved=achieved,
            average_grade=mean_percent(grades),
        ))
    return tuple(entries)


# ---------------------------------------------------------------------------
# Lists
# ---------------------------------------------------------------------------

def assignment_status(assignment: AssignmentRecord, submission: SubmissionRecord | None) -> str:
    if submission is None:
        return "pending"
    if is_graded(submission):
        return "graded"
    if submission.status == "late":
        return "late"
    if assignment.due_date and submission.submitted_at and submission.submitted_at > assignment.due_date:
        return "late"
    return "submitted"


def summarize_assignments(
    assignments: list[AssignmentRecord],
    submissions: list[SubmissionRecord],
    limit: int = 5,
) -> tuple[AssignmentSummary, ...]:
    """The ``limit`` most recent assignments (input is newest first) with their status."""
    by_assignment = {s.assignment_id: s for s in submissions}
    summaries = []
    for a in assignments[:limit]:
        submission = by_assignment.get(a.id)
        summaries.append(AssignmentSummary(
            title=a.title,
            subject=a.subject,
            due_date=a.due_date,
            status=assignment_status(a, submission),
            grade=submission.grade if submission is not None and is_graded(submission) else None,
            max_grade=a.max_grade,
        ))
    return tuple(summaries)


def summarize_goals(goals: list[GoalRecord], limit: int = 5) -> tuple[GoalSummary, ...]:
    return tuple(
        GoalSummary(
            title=g.title,
            description=g.description,
            target_date=g.target_date,
            status=g.status if g.status in GOAL_STATUSES else "pending",
            progress=clamp_percent(g.progress),
        )
        for g in goals[:limit]
    )


# ---------------------------------------------------------------------------
# Insights
# ---------------------------------------------------------------------------

# (metric field, label, recommendation when strong, recommendation when weak)
_METRIC_RULES = (
    (
        "assignment_completion",
        "Assignment completion",
        "Keep the current homework routine; it is working well.",
        "Set up a weekly study plan so assignments are turned in on time.",
    ),
    (
        "average_grade",
        "Average grade",
        "Offer enrichment work to keep the student challenged.",
        "Arrange extra support sessions to raise the average grade.",
    ),
)


def derive_insights(
    performance: PerformanceMetrics,
    statistics: AssignmentStatistics,
    subjects: tuple[SubjectStat, ...],
) -> Insights:
    """Threshold rules: >= 80 is a strength, < 60 needs improvement.

    A metric with no underlying data (no assignments, no grades) is not judged.
    """
    strengths: list[str] = []
    areas: list[str] = []
    recommendations: list[str] = []

    has_data = {
        "assignment_completion": statistics.total_assignments > 0,
        "average_grade": statistics.graded_assignments > 0,
    }

    for field, label, keep_up, improve in _METRIC_RULES:
        if not has_data[field]:
            continue
        value = getattr(performance, field)
        if value >= STRENGTH_THRESHOLD:
            strengths.append(f"{label} is strong ({value}%)")
            recommendations.append(keep_up)
        elif value < IMPROVEMENT_THRESHOLD:
            areas.append(f"{label} is below expectations ({value}%)")
            recommendations.append(improve)

    for subject in subjects:
        if not subject.total_assignments:
            continue
        rate = percentage(subject.completed_assignments, subject.total_assignments)
        if rate >= STRENGTH_THRESHOLD:
            strengths.append(f"Consistent work in {subject.name} ({rate}% completed)")
        elif rate < IMPROVEMENT_THRESHOLD:
            areas.append(f"Completion in {subject.name} ({rate}%)")
            recommendations.append(f"Spend more study time on {subject.name} assignments.")

    if statistics.total_goals > statistics.completed_goals:
        recommendations.append("Break open goals into smaller weekly milestones.")

    if not recommendations:
        recommendations.append("Continue regular study to maintain the current performance.")

    return Insights(
        strengths=tuple(strengths),
        areas_for_improvement=tuple(areas),
        recommendations=tuple(recommendations),
    )


def generic_insights() -> Insights:
    """Guidance that does not depend on any student data."""
    return Insights(
        strengths=("Detailed performance data was not available for this period.",),
        areas_for_improvement=("Review this report again once recent coursework has been recorded.",),
        recommendations=(
            "Keep a regular weekly study schedule.",
            "Check upcoming assignment due dates together every week.",
            "Please try generating the report again later for up-to-date figures.",
        ),
    )
