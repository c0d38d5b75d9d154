"""Student performance aggregation.

Reads a student's assignments, submissions and goals for a report period and
derives a normalized ``PerformanceSnapshot``. Independent reads run
concurrently; every individual read is retried with linear backoff before the
aggregation as a whole gives up with ``DataCollectionError``.
"""

import asyncio
import logging
from datetime import datetime
from typing import Callable

from app.core.config import settings
from app.core.errors import DataCollectionError, NotFoundError, ValidationError
from app.core.utils import utcnow
from app.schemas.report import (
    MAX_LISTED_ITEMS,
    PerformanceSnapshot,
    PeriodInfo,
    StudentIdentity,
    TeacherIdentity,
)
from app.services.report_data_source import PersonRecord, ReportDataSource
from app.services.report_metrics import (
    compute_monthly_progress,
    compute_performance,
    compute_statistics,
    compute_subjects,
    derive_insights,
    summarize_assignments,
    summarize_goals,
)
from app.services.report_period import ReportPeriod

logger = logging.getLogger(__name__)


def parse_id(value, name: str) -> int:
    """Accept a positive int or a string of digits; anything else is a ``ValidationError``."""
    if isinstance(value, bool):
        raise ValidationError(f"Invalid {name}: {value!r}")
    if isinstance(value, int):
        parsed = value
    elif isinstance(value, str) and value.strip().isdigit():
        parsed = int(value.strip())
    else:
        raise ValidationError(f"Invalid {name}: {value!r}")
    if parsed <= 0:
        raise ValidationError(f"Invalid {name}: {value!r}")
    return parsed


def check_period(period: ReportPeriod) -> None:
    if not isinstance(period, ReportPeriod):
        raise ValidationError("A report period is required")
    if period.start >= period.end:
        raise ValidationError("Start date must be before end date")


def student_identity(person: PersonRecord) -> StudentIdentity:
    return StudentIdentity(
        id=person.id,
        first_name=person.first_name,
        last_name=person.last_name,
        email=person.email,
        class_name=person.class_name,
    )


def teacher_identity(person: PersonRecord) -> TeacherIdentity:
    return TeacherIdentity(
        id=person.id,
        first_name=person.first_name,
        last_name=person.last_name,
        email=person.email,
    )


def pick_teacher(viewer: PersonRecord | None, owner: PersonRecord | None) -> PersonRecord | None:
    """The viewer when they are a teacher, else the owning teacher, else the viewer."""
    if viewer is not None and viewer.role == "teacher":
        return viewer
    return owner or viewer


async def gather_reads(*aws):
    """Like ``asyncio.gather``, but the first failure cancels the reads still running."""
    tasks = [asyncio.ensure_future(aw) for aw in aws]
    try:
        return await asyncio.gather(*tasks)
    except BaseException:
        for task in tasks:
            if not task.done():
                task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise


class ReportAggregator:
    """Builds a snapshot from live data. One instance per request."""

    def __init__(
        self,
        source: ReportDataSource,
        *,
        max_attempts: int | None = None,
        retry_delay: float | None = None,
        clock: Callable[[], datetime] = utcnow,
        recent_limit: int | None = None,
        goals_limit: int | None = None,
    ):
        self.source = source
        self.max_attempts = max(1, max_attempts or settings.report_retry_attempts)
        self.retry_delay = settings.report_retry_delay_seconds if retry_delay is None else retry_delay
        self.clock = clock
        self.recent_limit = min(recent_limit or settings.report_recent_assignments_limit, MAX_LISTED_ITEMS)
        self.goals_limit = min(goals_limit or settings.report_goals_limit, MAX_LISTED_ITEMS)

    async def aggregate(self, student_id, viewer_id, period: ReportPeriod) -> PerformanceSnapshot:
        """Collect and derive the snapshot for ``student_id`` as seen by ``viewer_id``.

        Raises ``ValidationError`` for malformed ids or periods, ``NotFoundError``
        when the student is unknown or not visible to the viewer, and
        ``DataCollectionError`` when a read keeps failing.
        """
        student_id = parse_id(student_id, "student_id")
        viewer_id = parse_id(viewer_id, "viewer_id")
        check_period(period)

        logger.info(f"Aggregating report data | student={student_id} | viewer={viewer_id}")

        student, viewer, allowed = await gather_reads(
            self._read("student", self.source.get_student, student_id),
            self._read("viewer", self.source.get_user, viewer_id),
            self._read("access", self.source.can_view_student, viewer_id, student_id),
        )
        if student is None:
            raise NotFoundError(f"Student {student_id} not found")
        if not allowed:
            # Indistinguishable from a missing student
            raise NotFoundError(f"Student {student_id} not found")

        owner, assignments, goals = await gather_reads(
            self._read("teacher", self.source.get_owning_teacher, student_id),
            self._read("assignments", self.source.list_assignments, student_id, period),
            self._read("goals", self.source.list_goals, student_id, period),
        )
        submissions = await self._read(
            "submissions",
            self.source.list_submissions,
            student_id,
            [a.id for a in assignments],
        )

        teacher = pick_teacher(viewer, owner)
        if teacher is None:
            raise NotFoundError(f"No teacher or viewer identity for student {student_id}")

        now = self.clock()
        statistics = compute_statistics(assignments, submissions, goals)
        performance = compute_performance(statistics, submissions)
        subjects = compute_subjects(assignments, submissions)

        snapshot = PerformanceSnapshot(
            student=student_identity(student),
            teacher=teacher_identity(teacher),
            period=PeriodInfo(start=period.start, end=period.end),
            performance=performance,
            statistics=statistics,
            subjects=subjects,
            monthly_progress=compute_monthly_progress(assignments, submissions, goals, now),
            recent_assignments=summarize_assignments(assignments, submissions, self.recent_limit),
            goals=summarize_goals(goals, self.goals_limit),
            insights=derive_insights(performance, statistics, subjects),
            generated_at=now,
        )

        logger.info(
            f"Report data aggregated | student={student_id} | "
            f"assignments={statistics.total_assignments} | goals={statistics.total_goals}"
        )
        return snapshot

    async def _read(self, step: str, fn, *args):
        """Run a blocking read in a worker thread, retrying with linear backoff."""
        last_error: Exception | None = None
        for attempt in range(1, self.max_attempts + 1):
            try:
                return await asyncio.to_thread(fn, *args)
            except (ValidationError, NotFoundError):
                raise
            except Exception as e:
                last_error = e
                logger.warning(
                    f"Report read failed | step={step} | attempt={attempt}/{self.max_attempts} | error={e}"
                )
                if attempt < self.max_attempts and self.retry_delay > 0:
                    await asyncio.sleep(self.retry_delay * attempt)
        raise DataCollectionError(step, cause=last_error, attempts=self.max_attempts)
