from pydantic import BaseModel, EmailStr, Field
from typing import List, Optional
from datetime import date, datetime
from decimal import Decimal

from models import CourseLevel, DepartmentType, EnrollmentStatus, StudentStatus


# Department Schemas
class DepartmentBase(BaseModel):
    """Base schema for department with common attributes"""
    name: str = Field(..., min_length=1, max_length=100, description="Department name")
    code: str = Field(..., min_length=1, max_length=10, description="Unique department code, e.g. CS")
    address: Optional[str] = Field(None, max_length=255, description="Department address")
    head_of_department: Optional[str] = Field(None, max_length=100, description="Head of department")
    department_type: Optional[DepartmentType] = Field(None, description="Department category")


class DepartmentCreate(DepartmentBase):
    """Schema for creating a new department"""
    pass


class DepartmentUpdate(BaseModel):
    """Schema for updating a department (all fields optional, code is immutable)"""
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    address: Optional[str] = Field(None, max_length=255)
    head_of_department: Optional[str] = Field(None, max_length=100)
    department_type: Optional[DepartmentType] = None


class DepartmentResponse(DepartmentBase):
    """Schema for department response"""
    id: int
    is_active: bool
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class DepartmentSummary(BaseModel):
    department_id: int
    name: str
    code: str
    course_count: int
    active_course_count: int


class CourseTransfer(BaseModel):
    """Move courses from one department to another"""
    to_department_id: int
    course_ids: List[int] = Field(..., min_length=1)


class HeadAssignment(BaseModel):
    department_ids: List[int] = Field(..., min_length=1)
    heads: List[str] = Field(..., min_length=1)


# Course Schemas
class CourseBase(BaseModel):
    """Base schema for course with common attributes"""
    title: str = Field(..., min_length=1, max_length=200, description="Course title")
    course_code: str = Field(..., min_length=1, max_length=20, description="Unique course code, e.g. CS101")
    description: Optional[str] = Field(None, description="Course description")
    credit_hours: Optional[Decimal] = Field(
        None, ge=0, max_digits=3, decimal_places=1, description="Credit hours, one decimal place"
    )
    course_level: Optional[CourseLevel] = Field(None, description="Course level")


class CourseCreate(CourseBase):
    """Schema for creating a new course"""
    department_id: int = Field(..., description="Owning department ID")


class CourseUpdate(BaseModel):
    """Schema for updating a course (all fields optional)"""
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    credit_hours: Optional[Decimal] = Field(None, ge=0, max_digits=3, decimal_places=1)
    course_level: Optional[CourseLevel] = None
    department_id: Optional[int] = None


class CourseResponse(CourseBase):
    """Schema for course response"""
    id: int
    department_id: int
    is_active: bool
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class DepartmentWithCoursesCreate(DepartmentCreate):
    """Create a department together with its initial courses"""
    courses: List[CourseBase] = Field(default_factory=list)


# Student Schemas
class GuardianSchema(BaseModel):
    """Guardian embedded in a student"""
    name: str = Field(..., min_length=2, max_length=100, description="Guardian name")
    email: Optional[EmailStr] = Field(None, description="Guardian email")
    mobile: Optional[str] = Field(
        None, max_length=20, pattern=r"^[+]?[(]?[\d\s\-()]{7,15}$", description="Guardian mobile number"
    )

    class Config:
        from_attributes = True


class StudentBase(BaseModel):
    """Base schema for student with common attributes"""
    first_name: str = Field(..., min_length=1, max_length=50, description="Student's first name")
    last_name: str = Field(..., min_length=1, max_length=50, description="Student's last name")
    email: EmailStr = Field(..., description="Student's email address")
    student_id_number: Optional[str] = Field(None, max_length=20, description="External student ID")
    date_of_birth: Optional[date] = Field(None, description="Date of birth")
    admission_date: Optional[date] = Field(None, description="Admission date")
    student_status: StudentStatus = Field(StudentStatus.ACTIVE, description="Student status")
    guardian: Optional[GuardianSchema] = None


class StudentCreate(StudentBase):
    """Schema for creating a new student"""
    gpa: Optional[Decimal] = Field(None, ge=0, le=4, max_digits=4, decimal_places=2, description="Initial GPA")


class StudentUpdate(BaseModel):
    """Schema for updating a student (all fields optional)"""
    first_name: Optional[str] = Field(None, min_length=1, max_length=50)
    last_name: Optional[str] = Field(None, min_length=1, max_length=50)
    email: Optional[EmailStr] = None
    student_status: Optional[StudentStatus] = None
    guardian: Optional[GuardianSchema] = None


class StudentResponse(StudentBase):
    """Schema for student response"""
    id: int
    gpa: Optional[Decimal] = None
    is_active: bool
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class StudentPage(BaseModel):
    items: List[StudentResponse]
    total: int
    page: int
    size: int


# Enrollment Schemas
class EnrollmentBase(BaseModel):
    """Base schema for enrollment with common attributes"""
    student_id: int = Field(..., description="Student ID")
    course_id: int = Field(..., description="Course ID")
    semester: str = Field(..., min_length=1, max_length=20, description="Semester label, e.g. Fall 2024")
    academic_year: int = Field(..., ge=1900, le=2999, description="Academic year")


class EnrollmentCreate(EnrollmentBase):
    """Schema for enrolling a student in a course offering"""
    pass


class MultiEnrollmentCreate(BaseModel):
    """Schema for enrolling one student in several courses at once"""
    course_ids: List[int] = Field(..., min_length=1)
    semester: str = Field(..., min_length=1, max_length=20)
    academic_year: int = Field(..., ge=1900, le=2999)


class GradeUpdate(BaseModel):
    """Schema for posting a grade"""
    grade: str = Field(..., min_length=1, max_length=5, description="Letter grade (e.g., A, B+, C)")
    grade_points: Decimal = Field(..., ge=0, le=4, description="Grade points between 0.0 and 4.0")


class AttendanceUpdate(BaseModel):
    attendance_percentage: Decimal = Field(..., ge=0, le=100)


class BulkGradeRequest(BaseModel):
    semester: str = Field(..., min_length=1, max_length=20)
    academic_year: int = Field(..., ge=1900, le=2999)


class BulkGradeResult(BaseModel):
    semester: str
    academic_year: int
    graded: int


class EnrollmentResponse(EnrollmentBase):
    """Schema for enrollment response"""
    id: int
    enrollment_date: date
    enrollment_status: EnrollmentStatus
    grade: Optional[str] = None
    grade_points: Optional[Decimal] = None
    attendance_percentage: Optional[Decimal] = None

    class Config:
        from_attributes = True
