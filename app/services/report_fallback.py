"""Data-empty snapshots for when aggregation cannot complete.

The synthesized snapshot has the same shape as an aggregated one: zeroed
counts, a single placeholder subject, six zero-valued months labelled from the
current date, and generic guidance. Only the student's identity and the
viewer's access to it are required.
"""

import asyncio
import logging
from datetime import datetime
from typing import Callable

from app.core.errors import NotFoundError, ValidationError
from app.core.utils import utcnow
from app.schemas.report import (
    AssignmentStatistics,
    PerformanceMetrics,
    PerformanceSnapshot,
    PeriodInfo,
    TeacherIdentity,
)
from app.services.report_aggregator import (
    check_period,
    gather_reads,
    parse_id,
    pick_teacher,
    student_identity,
    teacher_identity,
)
from app.services.report_data_source import ReportDataSource
from app.services.report_metrics import (
    empty_monthly_progress,
    generic_insights,
    placeholder_subjects,
)
from app.services.report_period import ReportPeriod

logger = logging.getLogger(__name__)

UNKNOWN_TEACHER = TeacherIdentity(id=0, first_name="Teacher", last_name="", email="")


class FallbackSynthesizer:
    def __init__(self, source: ReportDataSource, *, clock: Callable[[], datetime] = utcnow):
        self.source = source
        self.clock = clock

    async def synthesize(self, student_id, viewer_id, period: ReportPeriod) -> PerformanceSnapshot:
        """Zeroed snapshot for the student. ``NotFoundError`` if identity cannot be resolved."""
        student_id = parse_id(student_id, "student_id")
        viewer_id = parse_id(viewer_id, "viewer_id")
        check_period(period)

        # The aggregator may have failed before it checked access
        try:
            student, allowed = await gather_reads(
                asyncio.to_thread(self.source.get_student, student_id),
                asyncio.to_thread(self.source.can_view_student, viewer_id, student_id),
            )
        except (ValidationError, NotFoundError):
            raise
        except Exception as e:
            logger.error(f"Fallback identity lookup failed | student={student_id} | error={e}")
            raise NotFoundError(f"Student {student_id} could not be resolved") from e
        if student is None or not allowed:
            raise NotFoundError(f"Student {student_id} not found")

        teacher = await self._teacher(student_id, viewer_id)
        now = self.clock()

        logger.info(f"Synthesized fallback report data | student={student_id}")
        return PerformanceSnapshot(
            student=student_identity(student),
            teacher=teacher,
            period=PeriodInfo(start=period.start, end=period.end),
            performance=PerformanceMetrics(
                assignment_completion=0,
                grading_rate=0,
                average_grade=0,
                goals_progress=0,
                overall_performance=0,
            ),
            statistics=AssignmentStatistics(
                total_assignments=0,
                submitted_assignments=0,
                graded_assignments=0,
                pending_assignments=0,
                total_goals=0,
                completed_goals=0,
            ),
            subjects=placeholder_subjects(),
            monthly_progress=empty_monthly_progress(now),
            recent_assignments=(),
            goals=(),
            insights=generic_insights(),
            generated_at=now,
        )

    async def _teacher(self, student_id: int, viewer_id: int) -> TeacherIdentity:
        """Best effort: a lookup failure yields a placeholder rather than an error."""
        try:
            viewer, owner = await gather_reads(
                asyncio.to_thread(self.source.get_user, viewer_id),
                asyncio.to_thread(self.source.get_owning_teacher, student_id),
            )
        except Exception as e:
            logger.warning(f"Fallback teacher lookup failed | student={student_id} | error={e}")
            return UNKNOWN_TEACHER
        person = pick_teacher(viewer, owner)
        return teacher_identity(person) if person else UNKNOWN_TEACHER
