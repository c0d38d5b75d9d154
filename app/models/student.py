import enum

from sqlalchemy import Column, Integer, String, ForeignKey, Table, Enum
from sqlalchemy.orm import relationship

from app.db.database import Base


class RelationshipType(str, enum.Enum):
    MOTHER = "mother"
    FATHER = "father"
    GUARDIAN = "guardian"
    OTHER = "other"


# Guardianship link: a parent user may view the linked student's reports
parent_students = Table(
    "parent_students",
    Base.metadata,
    Column("parent_id", Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
    Column("student_id", Integer, ForeignKey("students.id", ondelete="CASCADE"), primary_key=True),
    Column("relationship_type", Enum(RelationshipType), default=RelationshipType.GUARDIAN),
)


class Student(Base):
    __tablename__ = "students"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False)
    grade_level = Column(Integer, nullable=True)
    school_name = Column(String(255), nullable=True)

    user = relationship("User")
    courses = relationship("Course", secondary="student_courses", back_populates="students")
