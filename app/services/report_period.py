"""Report date window parsing and validation."""

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone

from app.core.config import settings
from app.core.errors import ValidationError
from app.core.utils import utcnow


@dataclass(frozen=True)
class ReportPeriod:
    """Inclusive [start, end] window, naive UTC. ``start`` must precede ``end``."""

    start: datetime
    end: datetime

    def __post_init__(self):
        if not isinstance(self.start, datetime) or not isinstance(self.end, datetime):
            raise ValidationError("Report period bounds must be datetimes")
        if self.start >= self.end:
            raise ValidationError("Start date must be before end date")

    @classmethod
    def default(cls, now: datetime | None = None, days: int | None = None) -> "ReportPeriod":
        """The last ``days`` days (settings.report_default_days) ending at ``now``."""
        end = now or utcnow()
        return cls(start=end - timedelta(days=days or settings.report_default_days), end=end)

    @classmethod
    def from_params(
        cls,
        start: str | None,
        end: str | None,
        now: datetime | None = None,
    ) -> "ReportPeriod":
        """Build a period from optional ISO date/datetime strings supplied by the caller."""
        now = now or utcnow()
        end_dt = _parse_bound(end, "end_date", end_of_day=True) if end else now
        if start:
            start_dt = _parse_bound(start, "start_date", end_of_day=False)
        else:
            start_dt = end_dt - timedelta(days=settings.report_default_days)
        return cls(start=start_dt, end=end_dt)

    def contains(self, moment: datetime | None) -> bool:
        return moment is not None and self.start <= moment <= self.end


def _parse_bound(value: str, name: str, end_of_day: bool) -> datetime:
    raw = value.strip()
    try:
        if len(raw) == 10:
            day = date.fromisoformat(raw)
            return datetime.combine(day, time.max if end_of_day else time.min)
        parsed = datetime.fromisoformat(raw.replace("Z", "+00:00"))
    except ValueError:
        raise ValidationError(f"Invalid {name}: {value!r} (expected YYYY-MM-DD or ISO datetime)") from None

    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed
