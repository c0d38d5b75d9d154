from app.schemas.report import (
    StudentIdentity, TeacherIdentity, PeriodInfo,
    PerformanceMetrics, AssignmentStatistics, SubjectStat, MonthlyProgress,
    AssignmentSummary, GoalSummary, Insights,
    PerformanceSnapshot, ReportRequest,
)

__all__ = [
    "StudentIdentity", "TeacherIdentity", "PeriodInfo",
    "PerformanceMetrics", "AssignmentStatistics", "SubjectStat", "MonthlyProgress",
    "AssignmentSummary", "GoalSummary", "Insights",
    "PerformanceSnapshot", "ReportRequest",
]
