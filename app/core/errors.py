"""Report pipeline error kinds and their HTTP rendering.

Every error carries an ``error_code`` that is returned next to ``detail``:

    {"detail": "start date must be before end date", "error_code": "REPORT_INVALID_INPUT"}

``DataCollectionError`` is normally absorbed by the pipeline (it triggers the
fallback snapshot); the handler only sees it if a caller bypasses the pipeline.
"""

from fastapi import Request, status
from fastapi.responses import JSONResponse


REPORT_INVALID_INPUT = "REPORT_INVALID_INPUT"
REPORT_NOT_FOUND = "REPORT_NOT_FOUND"
REPORT_DATA_UNAVAILABLE = "REPORT_DATA_UNAVAILABLE"
REPORT_RENDER_FAILED = "REPORT_RENDER_FAILED"


class ReportError(Exception):
    """Base class for report pipeline failures."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    error_code = REPORT_RENDER_FAILED

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class ValidationError(ReportError):
    """Malformed identifier or invalid/inverted date range."""

    status_code = status.HTTP_400_BAD_REQUEST
    error_code = REPORT_INVALID_INPUT


class NotFoundError(ReportError):
    """Student missing, not visible to the caller, or identity unresolvable."""

    status_code = status.HTTP_404_NOT_FOUND
    error_code = REPORT_NOT_FOUND


class DataCollectionError(ReportError):
    """A data source read failed on every retry attempt."""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    error_code = REPORT_DATA_UNAVAILABLE

    def __init__(self, step: str, cause: BaseException | None = None, attempts: int = 0):
        message = f"Data collection failed at step '{step}'"
        if attempts:
            message += f" after {attempts} attempt(s)"
        if cause is not None:
            message += f": {cause}"
        super().__init__(message)
        self.step = step
        self.cause = cause
        self.attempts = attempts


class RenderError(ReportError):
    """The document could not be produced."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    error_code = REPORT_RENDER_FAILED


def report_error_handler(_request: Request, exc: ReportError) -> JSONResponse:
    """Exception handler registered on the FastAPI app."""
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail, "error_code": exc.error_code},
    )
