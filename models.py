from sqlmodel import SQLModel, Field, Relationship
from sqlalchemy import UniqueConstraint
from typing import List, Optional
from datetime import date, datetime
from decimal import Decimal
from enum import Enum

from pydantic import BaseModel


class DepartmentType(str, Enum):
    SCIENCE = "SCIENCE"
    ARTS = "ARTS"
    COMMERCE = "COMMERCE"
    ENGINEERING = "ENGINEERING"
    MEDICAL = "MEDICAL"
    LAW = "LAW"


class CourseLevel(str, Enum):
    BEGINNER = "BEGINNER"
    INTERMEDIATE = "INTERMEDIATE"
    ADVANCED = "ADVANCED"
    EXPERT = "EXPERT"


class StudentStatus(str, Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"
    GRADUATED = "GRADUATED"
    SUSPENDED = "SUSPENDED"
    EXPELLED = "EXPELLED"


class EnrollmentStatus(str, Enum):
    """Lifecycle of an enrollment; ACTIVE is the only non-terminal state"""
    ACTIVE = "ACTIVE"
    COMPLETED = "COMPLETED"
    DROPPED = "DROPPED"
    WITHDRAWN = "WITHDRAWN"
    FAILED = "FAILED"


class Guardian(BaseModel):
    """Guardian details embedded in a student row"""
    name: Optional[str] = None
    email: Optional[str] = None
    mobile: Optional[str] = None


class Department(SQLModel, table=True):
    """Department model for database"""
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(index=True, max_length=100)
    code: str = Field(unique=True, index=True, max_length=10)
    address: Optional[str] = Field(default=None, max_length=255)
    head_of_department: Optional[str] = Field(default=None, max_length=100)
    department_type: Optional[DepartmentType] = None
    is_active: bool = Field(default=True)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    courses: List["Course"] = Relationship(back_populates="department")


class Course(SQLModel, table=True):
    """Course model for database"""
    id: Optional[int] = Field(default=None, primary_key=True)
    title: str = Field(index=True, max_length=200)
    course_code: str = Field(unique=True, index=True, max_length=20)
    description: Optional[str] = Field(default=None)
    credit_hours: Optional[Decimal] = Field(default=None, max_digits=3, decimal_places=1)
    course_level: Optional[CourseLevel] = None
    is_active: bool = Field(default=True)
    department_id: int = Field(foreign_key="department.id", index=True)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    department: Optional[Department] = Relationship(back_populates="courses")
    enrollments: List["Enrollment"] = Relationship(back_populates="course")


class Student(SQLModel, table=True):
    """Student model for database; guardian details live in the guardian_* columns"""
    id: Optional[int] = Field(default=None, primary_key=True)
    first_name: str = Field(index=True, max_length=50)
    last_name: str = Field(index=True, max_length=50)
    email: str = Field(unique=True, index=True, max_length=100)
    student_id_number: Optional[str] = Field(default=None, unique=True, max_length=20)
    date_of_birth: Optional[date] = None
    admission_date: Optional[date] = Field(default=None, index=True)
    student_status: StudentStatus = Field(default=StudentStatus.ACTIVE)
    gpa: Optional[Decimal] = Field(default=None, max_digits=4, decimal_places=2)
    is_active: bool = Field(default=True)
    guardian_name: Optional[str] = Field(default=None, max_length=100)
    guardian_email: Optional[str] = Field(default=None, max_length=100)
    guardian_mobile: Optional[str] = Field(default=None, max_length=20)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    enrollments: List["Enrollment"] = Relationship(back_populates="student")

    @property
    def guardian(self) -> Optional[Guardian]:
        if not (self.guardian_name or self.guardian_email or self.guardian_mobile):
            return None
        return Guardian(name=self.guardian_name, email=self.guardian_email, mobile=self.guardian_mobile)

    def set_guardian(self, guardian: Optional[Guardian]) -> None:
        """Replace the embedded guardian as a whole"""
        self.guardian_name = guardian.name if guardian else None
        self.guardian_email = guardian.email if guardian else None
        self.guardian_mobile = guardian.mobile if guardian else None


class Enrollment(SQLModel, table=True):
    """Enrollment model linking students and courses for one semester offering"""
    __table_args__ = (
        UniqueConstraint("student_id", "course_id", "semester", "academic_year", name="enrollment_unique"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    student_id: int = Field(foreign_key="student.id", index=True)
    course_id: int = Field(foreign_key="course.id", index=True)
    enrollment_date: date = Field(default_factory=date.today, index=True)
    semester: str = Field(max_length=20)
    academic_year: int
    enrollment_status: EnrollmentStatus = Field(default=EnrollmentStatus.ACTIVE)
    grade: Optional[str] = Field(default=None, max_length=5)
    grade_points: Optional[Decimal] = Field(default=None, max_digits=4, decimal_places=2)
    attendance_percentage: Optional[Decimal] = Field(default=None, max_digits=5, decimal_places=2)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    student: Optional[Student] = Relationship(back_populates="enrollments")
    course: Optional[Course] = Relationship(back_populates="enrollments")
