import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from app.api.routes import reports
from app import models  # noqa: F401  (registers tables on Base)
from app.core.config import settings
from app.core.errors import ReportError, report_error_handler
from app.core.logging_config import setup_logging
from app.core.middleware import RequestTimingMiddleware, SecurityHeadersMiddleware
from app.core.rate_limit import limiter
from app.db.database import Base, engine

setup_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Development convenience; production schemas are owned by the main product
    if settings.environment != "production":
        Base.metadata.create_all(bind=engine)
    logger.info(f"{settings.app_name} started | environment={settings.environment}")
    yield


app = FastAPI(title=settings.app_name, lifespan=lifespan)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
app.add_exception_handler(ReportError, report_error_handler)

app.add_middleware(RequestTimingMiddleware)
app.add_middleware(SecurityHeadersMiddleware)

app.include_router(reports.router, prefix="/api")


@app.get("/health")
def health():
    return {"status": "healthy"}
