"""
API routes for student progress reports.

Raw snapshot data is served as JSON; the rendered document is served as a PDF
attachment. Both go through the aggregate-or-fallback pipeline, so a degraded
data source still yields a complete (if data-empty) report.
"""

import logging
from typing import Optional
from urllib.parse import quote

from fastapi import APIRouter, Depends, Query, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse, Response
from sqlalchemy.orm import sessionmaker

from app.api.deps import require_report_viewer
from app.core.config import settings
from app.core.rate_limit import limiter
from app.db.database import get_session_factory
from app.models.user import User
from app.schemas.report import PerformanceSnapshot, ReportRequest
from app.services.report_data_source import ReportDataSource
from app.services.report_period import ReportPeriod
from app.services.report_pipeline import SnapshotResult, build_snapshot, render_snapshot
from app.services.report_renderer import report_filename

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/reports", tags=["Reports"])


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _metadata_headers(result: SnapshotResult, current_user: User) -> dict[str, str]:
    snapshot = result.snapshot
    return {
        "X-Report-Generated-At": snapshot.generated_at.isoformat(),
        "X-Student-ID": str(snapshot.student.id),
        "X-Requested-By": str(current_user.id),
        "X-Report-Source": result.source,
        "Cache-Control": "no-store",
    }


async def _snapshot(
    student_id: str,
    start_date: Optional[str],
    end_date: Optional[str],
    current_user: User,
    session_factory: sessionmaker,
) -> SnapshotResult:
    period = ReportPeriod.from_params(start_date, end_date)
    source = ReportDataSource(session_factory)
    result = await build_snapshot(source, student_id, current_user.id, period)
    logger.info(
        f"Report snapshot ready | student={result.snapshot.student.id} "
        f"| user={current_user.id} | source={result.source}"
    )
    return result


def _content_disposition(filename: str) -> str:
    # Header values are latin-1; non-ASCII names go through RFC 5987 encoding
    quoted = quote(filename)
    if quoted != filename:
        return f"attachment; filename*=utf-8''{quoted}"
    return f'attachment; filename="{filename}"'


async def _pdf_response(result: SnapshotResult, current_user: User) -> Response:
    snapshot: PerformanceSnapshot = result.snapshot
    pdf = await run_in_threadpool(render_snapshot, snapshot)
    headers = _metadata_headers(result, current_user)
    headers["Content-Disposition"] = _content_disposition(report_filename(snapshot))
    return Response(content=pdf, media_type="application/pdf", headers=headers)


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.get("/students/{student_id}/data")
async def get_report_data(
    student_id: str,
    start_date: Optional[str] = Query(None, description="YYYY-MM-DD or ISO datetime"),
    end_date: Optional[str] = Query(None, description="YYYY-MM-DD or ISO datetime"),
    current_user: User = Depends(require_report_viewer),
    session_factory: sessionmaker = Depends(get_session_factory),
):
    """Performance snapshot for a student as camelCase JSON."""
    result = await _snapshot(student_id, start_date, end_date, current_user, session_factory)
    return JSONResponse(
        content=result.snapshot.model_dump(mode="json", by_alias=True),
        headers=_metadata_headers(result, current_user),
    )


@router.get("/students/{student_id}/pdf")
@limiter.limit(settings.report_pdf_rate_limit)
async def download_report_pdf(
    request: Request,
    student_id: str,
    start_date: Optional[str] = Query(None, description="YYYY-MM-DD or ISO datetime"),
    end_date: Optional[str] = Query(None, description="YYYY-MM-DD or ISO datetime"),
    current_user: User = Depends(require_report_viewer),
    session_factory: sessionmaker = Depends(get_session_factory),
):
    """Rendered PDF report for the given (or default 90-day) period."""
    result = await _snapshot(student_id, start_date, end_date, current_user, session_factory)
    return await _pdf_response(result, current_user)


@router.post("/students/{student_id}/pdf")
@limiter.limit(settings.report_pdf_rate_limit)
async def generate_report_pdf(
    request: Request,
    student_id: str,
    body: ReportRequest,
    current_user: User = Depends(require_report_viewer),
    session_factory: sessionmaker = Depends(get_session_factory),
):
    """Rendered PDF report for the period given in the request body."""
    result = await _snapshot(student_id, body.start_date, body.end_date, current_user, session_factory)
    return await _pdf_response(result, current_user)
