"""PDF rendering of performance snapshots.

Rendering happens in two passes. The layout pass walks the snapshot section by
section and places every line on a page through a ``RenderCursor``; nothing is
drawn yet, so the total page count is known when it finishes. The paint pass
then draws each buffered page with reportlab and stamps ``Page i / N`` plus the
product label in the footer.

All lines share one line height, so a document of ``n`` lines always takes
``ceil(n / lines_per_page)`` pages.
"""

import io
import logging
import textwrap
from dataclasses import dataclass, field
from datetime import datetime

from reportlab.lib.pagesizes import A4
from reportlab.pdfgen import canvas

from app.core.errors import RenderError
from app.core.utils import safe_filename_part
from app.schemas.report import PerformanceSnapshot

logger = logging.getLogger(__name__)

PAGE_WIDTH, PAGE_HEIGHT = A4

LEFT_MARGIN = 50
TOP_MARGIN = 56
LINE_HEIGHT = 14
# Lowest offset (from the top edge) a content line may reach; the rest is footer
PAGE_CAPACITY = TOP_MARGIN + 50 * LINE_HEIGHT
FOOTER_Y = 32

BODY_FONT = "Helvetica"
BOLD_FONT = "Helvetica-Bold"
TABLE_FONT = "Courier"
TABLE_BOLD_FONT = "Courier-Bold"
TITLE_SIZE = 15
HEADING_SIZE = 12
BODY_SIZE = 10
TABLE_SIZE = 9
FOOTER_SIZE = 8

NAME_MAX_CHARS = 15
WRAP_WIDTH = 95

# (x offset, width in characters) for name + three numeric columns
TABLE_COLUMNS = ((LEFT_MARGIN, 18), (170, 12), (250, 12), (330, 12))


def truncate(text: str, limit: int = NAME_MAX_CHARS) -> str:
    """``text`` cut to ``limit`` characters plus ``...`` when it is longer."""
    text = text or ""
    if len(text) <= limit:
        return text
    return text[:limit] + "..."


def report_filename(snapshot: PerformanceSnapshot) -> str:
    student = snapshot.student
    first = safe_filename_part(student.first_name)
    last = safe_filename_part(student.last_name)
    return f"report_{first}_{last}_{snapshot.generated_at:%Y-%m-%d}.pdf"


def _date(value: datetime | None) -> str:
    return value.strftime("%Y-%m-%d") if value else "-"


def _grade(value: float | None) -> str:
    if value is None:
        return "-"
    return f"{value:g}"


@dataclass(frozen=True)
class TextRun:
    x: float
    text: str
    font: str
    size: int


@dataclass
class Page:
    number: int
    lines: list[tuple[float, list[TextRun]]] = field(default_factory=list)


class RenderCursor:
    """Current page and vertical offset (measured down from the top edge)."""

    def __init__(
        self,
        line_height: float = LINE_HEIGHT,
        top_margin: float = TOP_MARGIN,
        capacity: float = PAGE_CAPACITY,
    ):
        if top_margin + line_height > capacity:
            raise RenderError("Page capacity cannot hold a single line")
        self.line_height = line_height
        self.top_margin = top_margin
        self.capacity = capacity
        self.pages: list[Page] = [Page(number=1)]
        self.offset = top_margin

    @property
    def page(self) -> int:
        return len(self.pages)

    @property
    def lines_per_page(self) -> int:
        return int((self.capacity - self.top_margin) // self.line_height)

    def emit(self, runs: list[TextRun]) -> None:
        if self.offset + self.line_height > self.capacity:
            self.pages.append(Page(number=len(self.pages) + 1))
            self.offset = self.top_margin
        self.pages[-1].lines.append((self.offset, runs))
        self.offset += self.line_height


class ReportLayout:
    """Places every line of a snapshot onto pages without drawing anything."""

    def __init__(self, snapshot: PerformanceSnapshot, cursor: RenderCursor | None = None):
        self.snapshot = snapshot
        self.cursor = cursor or RenderCursor()
        self.line_count = 0
        self._build()

    @property
    def pages(self) -> list[Page]:
        return self.cursor.pages

    @property
    def page_count(self) -> int:
        return len(self.cursor.pages)

    @property
    def lines_per_page(self) -> int:
        return self.cursor.lines_per_page

    def footer(self, page_number: int) -> str:
        return f"Page {page_number} / {self.page_count}"

    # ------------------------------------------------------------------
    # Primitive emitters
    # ------------------------------------------------------------------

    def emit_line(self, text: str = "", font: str = BODY_FONT, size: int = BODY_SIZE, indent: int = 0) -> None:
        self.emit_runs([TextRun(LEFT_MARGIN + indent, text, font, size)])

    def emit_runs(self, runs: list[TextRun]) -> None:
        self.cursor.emit(runs)
        self.line_count += 1

    def emit_wrapped(self, text: str, indent: int = 0, prefix: str = "") -> None:
        width = WRAP_WIDTH - indent // 5 - len(prefix)
        lines = textwrap.wrap(text, width=max(20, width)) or [""]
        for i, line in enumerate(lines):
            lead = prefix if i == 0 else " " * len(prefix)
            self.emit_line(lead + line, indent=indent)

    def emit_section(self, title: str, lines: list[str] = ()) -> None:
        self.emit_line(title, font=BOLD_FONT, size=HEADING_SIZE)
        for line in lines:
            self.emit_wrapped(line)

    def emit_table_row(self, cells: tuple[str, str, str, str], bold: bool = False) -> None:
        font = TABLE_BOLD_FONT if bold else TABLE_FONT
        runs = []
        for i, ((x, width), value) in enumerate(zip(TABLE_COLUMNS, cells)):
            text = value.ljust(width) if i == 0 else value.rjust(width)
            runs.append(TextRun(x, text, font, TABLE_SIZE))
        self.emit_runs(runs)

    def emit_list(self, items, placeholder: str, indent: int = 10) -> None:
        if not items:
            self.emit_line(placeholder, indent=indent)
            return
        for item in items:
            self.emit_wrapped(item, indent=indent, prefix="- ")

    # ------------------------------------------------------------------
    # Sections, in document order
    # ------------------------------------------------------------------

    def _build(self) -> None:
        self._header()
        self._identity()
        self._performance()
        self._statistics()
        self._subjects()
        self._monthly()
        self._recent_assignments()
        self._goals()
        self._insights()

    def _header(self) -> None:
        s = self.snapshot
        self.emit_line("Student Performance Report", font=BOLD_FONT, size=TITLE_SIZE)
        self.emit_line(f"Generated: {s.generated_at:%Y-%m-%d %H:%M} UTC")
        self.emit_line(f"Period: {_date(s.period.start)} - {_date(s.period.end)}")
        self.emit_line()

    def _identity(self) -> None:
        student, teacher = self.snapshot.student, self.snapshot.teacher
        teacher_line = teacher.full_name or "-"
        if teacher.email:
            teacher_line += f" ({teacher.email})"
        self.emit_section("Student Information", [
            f"Student: {student.full_name}",
            f"Email: {student.email}",
            f"Class: {student.class_name or '-'}",
            f"Teacher: {teacher_line}",
        ])
        self.emit_line()

    def _performance(self) -> None:
        p = self.snapshot.performance
        self.emit_section("Performance Summary", [
            f"Overall performance: {p.overall_performance}%",
            f"Assignment completion: {p.assignment_completion}%",
            f"Grading rate: {p.grading_rate}%",
            f"Average grade: {p.average_grade}%",
            f"Goals progress: {p.goals_progress}%",
        ])
        self.emit_line()

    def _statistics(self) -> None:
        st = self.snapshot.statistics
        self.emit_section("Statistics", [
            f"Total assignments: {st.total_assignments}",
            f"Submitted: {st.submitted_assignments}",
            f"Graded: {st.graded_assignments}",
            f"Pending: {st.pending_assignments}",
            f"Goals: {st.completed_goals} of {st.total_goals} completed",
        ])
        self.emit_line()

    def _subjects(self) -> None:
        self.emit_section("Subjects")
        self.emit_table_row(("Subject", "Assignments", "Completed", "Avg grade"), bold=True)
        for subject in self.snapshot.subjects:
            self.emit_table_row((
                truncate(subject.name),
                str(subject.total_assignments),
                str(subject.completed_assignments),
                f"{subject.average_grade}%",
            ))
        self.emit_line()

    def _monthly(self) -> None:
        self.emit_section("Monthly Progress")
        self.emit_table_row(("Month", "Assignments", "Goals", "Avg grade"), bold=True)
        for month in self.snapshot.monthly_progress:
            self.emit_table_row((
                truncate(month.month),
                str(month.assignments_completed),
                str(month.goals_achieved),
                f"{month.average_grade}%",
            ))
        self.emit_line()

    def _recent_assignments(self) -> None:
        self.emit_section("Recent Assignments")
        items = []
        for a in self.snapshot.recent_assignments:
            line = f"{a.title} ({a.subject}) | due {_date(a.due_date)} | {a.status}"
            if a.grade is not None:
                line += f" | {_grade(a.grade)}/{_grade(a.max_grade)}"
            items.append(line)
        self.emit_list(items, "No assignments in this period.")
        self.emit_line()

    def _goals(self) -> None:
        self.emit_section("Goals")
        if not self.snapshot.goals:
            self.emit_list([], "No goals recorded in this period.")
        for g in self.snapshot.goals:
            status = g.status.replace("_", " ")
            self.emit_wrapped(
                f"{g.title} | {status} | {g.progress}% | target {_date(g.target_date)}",
                indent=10, prefix="- ",
            )
            if g.description:
                self.emit_wrapped(g.description, indent=22)
        self.emit_line()

    def _insights(self) -> None:
        insights = self.snapshot.insights
        self.emit_section("Insights")
        self.emit_line("Strengths", font=BOLD_FONT)
        self.emit_list(list(insights.strengths), "None noted.")
        self.emit_line("Areas for improvement", font=BOLD_FONT)
        self.emit_list(list(insights.areas_for_improvement), "None noted.")
        self.emit_line("Recommendations", font=BOLD_FONT)
        self.emit_list(list(insights.recommendations), "None noted.")


class ReportRenderer:
    """Renders one snapshot to PDF bytes. Instances are not reusable."""

    def __init__(self, product_label: str = "ClassBridge Learning Platform"):
        self.product_label = product_label
        self._used = False

    def render(self, snapshot: PerformanceSnapshot) -> bytes:
        if self._used:
            raise RenderError("ReportRenderer instances render a single document")
        self._used = True

        try:
            layout = ReportLayout(snapshot)
            pdf = self._paint(layout, snapshot)
        except RenderError:
            raise
        except Exception as e:
            logger.error(f"PDF rendering failed | student={snapshot.student.id} | error={e}")
            raise RenderError(f"Failed to render report: {e}") from e

        logger.info(
            f"Rendered report PDF | student={snapshot.student.id} | "
            f"pages={layout.page_count} | bytes={len(pdf)}"
        )
        return pdf

    def _paint(self, layout: ReportLayout, snapshot: PerformanceSnapshot) -> bytes:
        buffer = io.BytesIO()
        c = canvas.Canvas(buffer, pagesize=A4, invariant=1, pageCompression=0)
        c.setTitle(f"Performance Report - {snapshot.student.full_name}")
        c.setAuthor(self.product_label)

        for page in layout.pages:
            for offset, runs in page.lines:
                y = PAGE_HEIGHT - offset
                for run in runs:
                    if not run.text:
                        continue
                    c.setFont(run.font, run.size)
                    c.drawString(run.x, y, run.text)

            c.setFont(BODY_FONT, FOOTER_SIZE)
            c.drawString(LEFT_MARGIN, FOOTER_Y, self.product_label)
            c.drawRightString(PAGE_WIDTH - LEFT_MARGIN, FOOTER_Y, layout.footer(page.number))
            c.showPage()

        c.save()
        return buffer.getvalue()
