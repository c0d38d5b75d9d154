from app.models.user import User, UserRole
from app.models.student import Student, parent_students
from app.models.teacher import Teacher
from app.models.course import Course, student_courses
from app.models.assignment import Assignment, StudentAssignment
from app.models.goal import Goal

__all__ = [
    "User",
    "UserRole",
    "Student",
    "parent_students",
    "Teacher",
    "Course",
    "student_courses",
    "Assignment",
    "StudentAssignment",
    "Goal",
]
