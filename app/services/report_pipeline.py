"""Aggregate-or-fallback composition and rendering entry points."""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Literal

from app.core.config import settings
from app.core.errors import DataCollectionError, NotFoundError
from app.core.utils import utcnow
from app.schemas.report import PerformanceSnapshot
from app.services.report_aggregator import ReportAggregator
from app.services.report_data_source import ReportDataSource
from app.services.report_fallback import FallbackSynthesizer
from app.services.report_period import ReportPeriod
from app.services.report_renderer import ReportRenderer

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SnapshotResult:
    snapshot: PerformanceSnapshot
    source: Literal["aggregated", "fallback"]


async def build_snapshot(
    source: ReportDataSource,
    student_id,
    viewer_id,
    period: ReportPeriod,
    *,
    timeout: float | None = None,
    fallback_timeout: float | None = None,
    max_attempts: int | None = None,
    retry_delay: float | None = None,
    clock: Callable[[], datetime] = utcnow,
) -> SnapshotResult:
    """Aggregate the snapshot, falling back to a synthesized one when data is unavailable.

    ``ValidationError`` and ``NotFoundError`` are never masked. A data collection
    failure or a timeout switches to the fallback synthesizer.
    """
    timeout = settings.report_timeout_seconds if timeout is None else timeout
    fallback_timeout = settings.report_fallback_timeout_seconds if fallback_timeout is None else fallback_timeout

    aggregator = ReportAggregator(source, max_attempts=max_attempts, retry_delay=retry_delay, clock=clock)
    try:
        snapshot = await asyncio.wait_for(
            aggregator.aggregate(student_id, viewer_id, period), timeout=timeout,
        )
        return SnapshotResult(snapshot=snapshot, source="aggregated")
    except DataCollectionError as e:
        logger.error(f"Report aggregation failed, using fallback | student={student_id} | {e}")
    except asyncio.TimeoutError:
        logger.error(f"Report aggregation timed out after {timeout}s, using fallback | student={student_id}")

    synthesizer = FallbackSynthesizer(source, clock=clock)
    try:
        snapshot = await asyncio.wait_for(
            synthesizer.synthesize(student_id, viewer_id, period), timeout=fallback_timeout,
        )
    except asyncio.TimeoutError:
        raise NotFoundError(f"Student {student_id} could not be resolved") from None
    return SnapshotResult(snapshot=snapshot, source="fallback")


def render_snapshot(snapshot: PerformanceSnapshot) -> bytes:
    """Render ``snapshot`` to PDF bytes with a fresh renderer."""
    return ReportRenderer(product_label=settings.report_product_label).render(snapshot)
