from fastapi import FastAPI, Depends, Query, status, Request
from fastapi.responses import JSONResponse
from sqlmodel import Session
from typing import List, Optional
from datetime import date
from decimal import Decimal
import logging
import sys
from sqlalchemy.exc import SQLAlchemyError

from config import get_settings
from database import create_db_and_tables, engine, get_session
from exceptions import ServiceError
from models import DepartmentType, EnrollmentStatus, StudentStatus
from schemas import (
    DepartmentCreate, DepartmentUpdate, DepartmentResponse, DepartmentSummary,
    DepartmentWithCoursesCreate, CourseTransfer, HeadAssignment,
    CourseCreate, CourseUpdate, CourseResponse,
    StudentCreate, StudentUpdate, StudentResponse, StudentPage,
    EnrollmentCreate, EnrollmentResponse, MultiEnrollmentCreate, GradeUpdate,
    AttendanceUpdate, BulkGradeRequest, BulkGradeResult,
)
from seed import seed_database
from services import CourseService, DepartmentService, EnrollmentService, StudentService

settings = get_settings()

# Configure logging
log_handlers = [logging.StreamHandler(sys.stdout)]
if settings.log_file:
    log_handlers.append(logging.FileHandler(settings.log_file))
logging.basicConfig(
    level=settings.log_level,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=log_handlers
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Student Course Management API",
    description="Manage departments, courses, students and enrollments, including grading and GPA tracking",
    version="2.0.0"
)


def get_department_service(session: Session = Depends(get_session)) -> DepartmentService:
    return DepartmentService(session)


def get_course_service(session: Session = Depends(get_session)) -> CourseService:
    return CourseService(session)


def get_student_service(session: Session = Depends(get_session)) -> StudentService:
    return StudentService(session)


def get_enrollment_service(session: Session = Depends(get_session)) -> EnrollmentService:
    return EnrollmentService(session)


def to_student_response(student) -> StudentResponse:
    return StudentResponse.model_validate(student)


# Global exception handlers
@app.exception_handler(ServiceError)
async def service_exception_handler(request: Request, exc: ServiceError):
    """Map service errors to their HTTP status"""
    logger.warning(f"{type(exc).__name__} on {request.method} {request.url.path}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


@app.exception_handler(SQLAlchemyError)
async def sqlalchemy_exception_handler(request: Request, exc: SQLAlchemyError):
    """Handle database-related errors"""
    logger.error(f"Database error: {str(exc)}", exc_info=True)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "A database error occurred. Please try again later."}
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Handle all uncaught exceptions"""
    logger.error(f"Unexpected error: {str(exc)}", exc_info=True)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "An unexpected error occurred. Please contact support."}
    )


@app.on_event("startup")
def on_startup():
    """Create database tables on startup and optionally seed demo data"""
    try:
        logger.info("Starting application...")
        create_db_and_tables()
        logger.info("Database tables created successfully")
        if settings.seed_database:
            with Session(engine) as session:
                seed_database(session)
    except Exception as e:
        logger.error(f"Failed to initialize database: {str(e)}", exc_info=True)
        raise


@app.get("/", tags=["Root"])
async def read_root():
    """Root endpoint"""
    logger.info("Root endpoint accessed")
    return {
        "message": "Welcome to Student Course Management API",
        "docs": "/docs",
        "redoc": "/redoc"
    }


# ============= DEPARTMENT ENDPOINTS =============

@app.post("/api/departments", response_model=DepartmentResponse, status_code=status.HTTP_201_CREATED, tags=["Departments"])
def create_department(department: DepartmentCreate, service: DepartmentService = Depends(get_department_service)):
    """Create a new department"""
    return service.create(department)


@app.post("/api/departments/with-courses", response_model=DepartmentResponse, status_code=status.HTTP_201_CREATED, tags=["Departments"])
def create_department_with_courses(department: DepartmentWithCoursesCreate, service: DepartmentService = Depends(get_department_service)):
    """Create a department together with its initial courses"""
    return service.create_with_courses(department)


@app.post("/api/departments/batch", response_model=List[DepartmentResponse], status_code=status.HTTP_201_CREATED, tags=["Departments"])
def create_departments_batch(departments: List[DepartmentCreate], service: DepartmentService = Depends(get_department_service)):
    """Create several departments; a single failure rejects the whole batch"""
    return service.create_batch(departments)


@app.get("/api/departments", response_model=List[DepartmentResponse], tags=["Departments"])
def read_departments(page: int = Query(0, ge=0), size: int = Query(100, ge=1, le=500), service: DepartmentService = Depends(get_department_service)):
    """Get all departments with pagination"""
    logger.info(f"Fetching departments with page={page}, size={size}")
    return service.list(skip=page * size, limit=size)


@app.get("/api/departments/active", response_model=List[DepartmentResponse], tags=["Departments"])
def read_active_departments(service: DepartmentService = Depends(get_department_service)):
    return service.list_active()


@app.get("/api/departments/search", response_model=List[DepartmentResponse], tags=["Departments"])
def search_departments(search: str = Query(..., min_length=1), service: DepartmentService = Depends(get_department_service)):
    """Search departments by name, code or head of department"""
    return service.search(search)


@app.get("/api/departments/summaries", response_model=List[DepartmentSummary], tags=["Departments"])
def read_department_summaries(service: DepartmentService = Depends(get_department_service)):
    return service.summaries()


@app.get("/api/departments/stats", tags=["Departments"])
def read_department_stats(service: DepartmentService = Depends(get_department_service)):
    """Total and active department counts"""
    return service.statistics()


@app.get("/api/departments/type/{department_type}", response_model=List[DepartmentResponse], tags=["Departments"])
def read_departments_by_type(department_type: DepartmentType, page: int = Query(0, ge=0), size: int = Query(100, ge=1, le=500), service: DepartmentService = Depends(get_department_service)):
    return service.list_by_type(department_type, skip=page * size, limit=size)


@app.put("/api/departments/heads", response_model=List[DepartmentResponse], tags=["Departments"])
def update_department_heads(assignment: HeadAssignment, service: DepartmentService = Depends(get_department_service)):
    """Assign new heads to several departments at once"""
    return service.update_heads(assignment.department_ids, assignment.heads)


@app.get("/api/departments/{department_id}", response_model=DepartmentResponse, tags=["Departments"])
def read_department(department_id: int, service: DepartmentService = Depends(get_department_service)):
    """Get a specific department by ID"""
    return service.get(department_id)


@app.put("/api/departments/{department_id}", response_model=DepartmentResponse, tags=["Departments"])
def update_department(department_id: int, department_update: DepartmentUpdate, service: DepartmentService = Depends(get_department_service)):
    """Update a department's information"""
    return service.update(department_id, department_update)


@app.delete("/api/departments/{department_id}", status_code=status.HTTP_204_NO_CONTENT, tags=["Departments"])
def delete_department(department_id: int, service: DepartmentService = Depends(get_department_service)):
    """Soft delete a department that has no active courses"""
    service.delete(department_id)
    return None


@app.post("/api/departments/{department_id}/transfer-courses", response_model=List[CourseResponse], tags=["Departments"])
def transfer_department_courses(department_id: int, transfer: CourseTransfer, service: DepartmentService = Depends(get_department_service)):
    """Move courses from this department to another one"""
    return service.transfer_courses(department_id, transfer.to_department_id, transfer.course_ids)


# ============= COURSE ENDPOINTS =============

@app.post("/api/courses", response_model=CourseResponse, status_code=status.HTTP_201_CREATED, tags=["Courses"])
def create_course(course: CourseCreate, service: CourseService = Depends(get_course_service)):
    """Create a new course"""
    return service.create(course)


@app.get("/api/courses", response_model=List[CourseResponse], tags=["Courses"])
def read_courses(page: int = Query(0, ge=0), size: int = Query(100, ge=1, le=500), service: CourseService = Depends(get_course_service)):
    """Get all courses with pagination"""
    logger.info(f"Fetching courses with page={page}, size={size}")
    return service.list(skip=page * size, limit=size)


@app.get("/api/courses/active", response_model=List[CourseResponse], tags=["Courses"])
def read_active_courses(service: CourseService = Depends(get_course_service)):
    """Get active courses ordered by title"""
    return service.list_active()


@app.get("/api/courses/search", response_model=List[CourseResponse], tags=["Courses"])
def search_courses(search: str = Query(..., min_length=1), service: CourseService = Depends(get_course_service)):
    """Search courses by title, code or description"""
    return service.search(search)


@app.get("/api/courses/stats", tags=["Courses"])
def read_course_stats(service: CourseService = Depends(get_course_service)):
    return service.statistics()


@app.get("/api/courses/credit-hours", response_model=List[CourseResponse], tags=["Courses"])
def read_courses_by_credit_hours(min_credits: Decimal = Query(..., ge=0), max_credits: Decimal = Query(..., ge=0), service: CourseService = Depends(get_course_service)):
    return service.list_by_credit_hours(min_credits, max_credits)


@app.get("/api/courses/code/{course_code}", response_model=CourseResponse, tags=["Courses"])
def read_course_by_code(course_code: str, service: CourseService = Depends(get_course_service)):
    return service.get_by_code(course_code)


@app.get("/api/courses/department/{department_id}", response_model=List[CourseResponse], tags=["Courses"])
def read_department_courses(department_id: int, service: CourseService = Depends(get_course_service)):
    return service.list_by_department(department_id)


@app.get("/api/courses/{course_id}", response_model=CourseResponse, tags=["Courses"])
def read_course(course_id: int, service: CourseService = Depends(get_course_service)):
    """Get a specific course by ID"""
    return service.get(course_id)


@app.put("/api/courses/{course_id}", response_model=CourseResponse, tags=["Courses"])
def update_course(course_id: int, course_update: CourseUpdate, service: CourseService = Depends(get_course_service)):
    """Update a course's information, including reassignment to another department"""
    return service.update(course_id, course_update)


@app.patch("/api/courses/{course_id}/activate", response_model=CourseResponse, tags=["Courses"])
def activate_course(course_id: int, service: CourseService = Depends(get_course_service)):
    return service.activate(course_id)


@app.patch("/api/courses/{course_id}/deactivate", response_model=CourseResponse, tags=["Courses"])
def deactivate_course(course_id: int, service: CourseService = Depends(get_course_service)):
    return service.deactivate(course_id)


@app.patch("/api/courses/{course_id}/department/{department_id}", response_model=CourseResponse, tags=["Courses"])
def transfer_course(course_id: int, department_id: int, service: CourseService = Depends(get_course_service)):
    """Move a course to another department"""
    return service.transfer(course_id, department_id)


@app.delete("/api/courses/{course_id}", status_code=status.HTTP_204_NO_CONTENT, tags=["Courses"])
def delete_course(course_id: int, service: CourseService = Depends(get_course_service)):
    """Soft delete a course"""
    service.delete(course_id)
    return None


@app.get("/api/courses/{course_id}/enrollments", response_model=List[EnrollmentResponse], tags=["Enrollments"])
def read_course_enrollments(course_id: int, service: EnrollmentService = Depends(get_enrollment_service)):
    """Get all enrollments for a specific course"""
    return service.list_for_course(course_id)


# ============= STUDENT ENDPOINTS =============

@app.post("/api/students", response_model=StudentResponse, status_code=status.HTTP_201_CREATED, tags=["Students"])
def create_student(student: StudentCreate, service: StudentService = Depends(get_student_service)):
    """Create a new student"""
    return to_student_response(service.create(student))


@app.post("/api/students/batch", response_model=List[StudentResponse], status_code=status.HTTP_201_CREATED, tags=["Students"])
def create_students_batch(students: List[StudentCreate], service: StudentService = Depends(get_student_service)):
    """Create several students; a single duplicate rejects the whole batch"""
    return [to_student_response(s) for s in service.create_batch(students)]


@app.get("/api/students", response_model=List[StudentResponse], tags=["Students"])
def read_students(page: int = Query(0, ge=0), size: int = Query(100, ge=1, le=500), service: StudentService = Depends(get_student_service)):
    """Get all students with pagination"""
    logger.info(f"Fetching students with page={page}, size={size}")
    return [to_student_response(s) for s in service.list(skip=page * size, limit=size)]


@app.get("/api/students/active", response_model=StudentPage, tags=["Students"])
def read_active_students(page: int = Query(0, ge=0), size: int = Query(10, ge=1, le=500), service: StudentService = Depends(get_student_service)):
    """Get active students, ordered by first name"""
    students, total = service.page_active(page, size)
    return StudentPage(items=[to_student_response(s) for s in students], total=total, page=page, size=size)


@app.get("/api/students/search", response_model=List[StudentResponse], tags=["Students"])
def search_students(
    first_name: Optional[str] = None,
    last_name: Optional[str] = None,
    email: Optional[str] = None,
    status: Optional[StudentStatus] = None,
    min_gpa: Optional[Decimal] = Query(None, ge=0, le=4),
    max_gpa: Optional[Decimal] = Query(None, ge=0, le=4),
    service: StudentService = Depends(get_student_service),
):
    """Search students by any combination of criteria"""
    students = service.search(first_name, last_name, email, status, min_gpa, max_gpa)
    return [to_student_response(s) for s in students]


@app.get("/api/students/stats", tags=["Students"])
def read_student_stats(service: StudentService = Depends(get_student_service)):
    return service.statistics()


@app.get("/api/students/{student_id}", response_model=StudentResponse, tags=["Students"])
def read_student(student_id: int, service: StudentService = Depends(get_student_service)):
    """Get a specific student by ID, including inactive ones"""
    return to_student_response(service.get(student_id))


@app.put("/api/students/{student_id}", response_model=StudentResponse, tags=["Students"])
def update_student(student_id: int, student_update: StudentUpdate, service: StudentService = Depends(get_student_service)):
    """Update a student's information"""
    return to_student_response(service.update(student_id, student_update))


@app.patch("/api/students/{student_id}/activate", response_model=StudentResponse, tags=["Students"])
def activate_student(student_id: int, service: StudentService = Depends(get_student_service)):
    return to_student_response(service.activate(student_id))


@app.patch("/api/students/{student_id}/deactivate", response_model=StudentResponse, tags=["Students"])
def deactivate_student(student_id: int, service: StudentService = Depends(get_student_service)):
    return to_student_response(service.deactivate(student_id))


@app.delete("/api/students/{student_id}", status_code=status.HTTP_204_NO_CONTENT, tags=["Students"])
def delete_student(student_id: int, service: StudentService = Depends(get_student_service)):
    """Soft delete a student (marks as inactive)"""
    service.delete(student_id)
    return None


@app.get("/api/students/{student_id}/enrollments", response_model=List[EnrollmentResponse], tags=["Enrollments"])
def read_student_enrollments(student_id: int, service: EnrollmentService = Depends(get_enrollment_service)):
    """Get all enrollments for a specific student"""
    return service.list_for_student(student_id)


@app.post("/api/students/{student_id}/enroll-multiple", response_model=List[EnrollmentResponse], status_code=status.HTTP_201_CREATED, tags=["Enrollments"])
def enroll_student_in_multiple(student_id: int, request: MultiEnrollmentCreate, service: EnrollmentService = Depends(get_enrollment_service)):
    """Enroll a student in several courses; all enrollments are created or none"""
    return service.enroll_in_multiple(student_id, request.course_ids, request.semester, request.academic_year)


@app.post("/api/students/{student_id}/recompute-gpa", response_model=StudentResponse, tags=["Students"])
def recompute_student_gpa(
    student_id: int,
    enrollment_service: EnrollmentService = Depends(get_enrollment_service),
    student_service: StudentService = Depends(get_student_service),
):
    """Recompute a student's GPA from their graded enrollments"""
    enrollment_service.recompute_gpa(student_id)
    return to_student_response(student_service.get(student_id))


# ============= ENROLLMENT ENDPOINTS =============

@app.post("/api/enrollments", response_model=EnrollmentResponse, status_code=status.HTTP_201_CREATED, tags=["Enrollments"])
def create_enrollment(enrollment: EnrollmentCreate, service: EnrollmentService = Depends(get_enrollment_service)):
    """Enroll a student in a course for a semester"""
    return service.enroll(enrollment.student_id, enrollment.course_id, enrollment.semester, enrollment.academic_year)


@app.get("/api/enrollments", response_model=List[EnrollmentResponse], tags=["Enrollments"])
def read_enrollments(page: int = Query(0, ge=0), size: int = Query(100, ge=1, le=500), service: EnrollmentService = Depends(get_enrollment_service)):
    """Get all enrollments with pagination"""
    logger.info(f"Fetching enrollments with page={page}, size={size}")
    return service.list(skip=page * size, limit=size)


@app.get("/api/enrollments/active", response_model=List[EnrollmentResponse], tags=["Enrollments"])
def read_active_enrollments(service: EnrollmentService = Depends(get_enrollment_service)):
    return service.list_by_status(EnrollmentStatus.ACTIVE)


@app.get("/api/enrollments/graded", response_model=List[EnrollmentResponse], tags=["Enrollments"])
def read_graded_enrollments(service: EnrollmentService = Depends(get_enrollment_service)):
    return service.list_graded()


@app.get("/api/enrollments/search", response_model=List[EnrollmentResponse], tags=["Enrollments"])
def search_enrollments(
    student_id: Optional[int] = None,
    course_id: Optional[int] = None,
    semester: Optional[str] = None,
    academic_year: Optional[int] = None,
    status: Optional[EnrollmentStatus] = None,
    service: EnrollmentService = Depends(get_enrollment_service),
):
    return service.search(
        student_id=student_id,
        course_id=course_id,
        semester=semester,
        academic_year=academic_year,
        status=status,
    )


@app.get("/api/enrollments/stats", tags=["Enrollments"])
def read_enrollment_stats(academic_year: int, service: EnrollmentService = Depends(get_enrollment_service)):
    """Per-course enrollment statistics for an academic year"""
    return service.course_statistics(academic_year)


@app.get("/api/enrollments/top-students", tags=["Enrollments"])
def read_top_students(academic_year: int, service: EnrollmentService = Depends(get_enrollment_service)):
    """Students ranked by average grade points over their graded enrollments of a year"""
    return service.top_students_by_grade(academic_year)


@app.get("/api/enrollments/most-active", tags=["Enrollments"])
def read_most_active_students(academic_year: int, limit: int = Query(10, ge=1, le=100), service: EnrollmentService = Depends(get_enrollment_service)):
    return service.most_active_students(academic_year, limit)


@app.get("/api/enrollments/low-attendance", response_model=List[EnrollmentResponse], tags=["Enrollments"])
def read_low_attendance_enrollments(min_attendance: Decimal = Query(Decimal("75"), ge=0, le=100), service: EnrollmentService = Depends(get_enrollment_service)):
    """Active enrollments with attendance below the threshold"""
    return service.list_low_attendance(min_attendance)


@app.get("/api/enrollments/check", tags=["Enrollments"])
def check_enrollment(student_id: int, course_id: int, semester: str, academic_year: int, service: EnrollmentService = Depends(get_enrollment_service)):
    """Whether a student is enrolled in a course for the given semester"""
    return {"enrolled": service.is_enrolled(student_id, course_id, semester, academic_year)}


@app.get("/api/enrollments/date-range", response_model=List[EnrollmentResponse], tags=["Enrollments"])
def read_enrollments_between(start_date: date, end_date: date, service: EnrollmentService = Depends(get_enrollment_service)):
    return service.list_between(start_date, end_date)


@app.get("/api/enrollments/department/{department_id}", response_model=List[EnrollmentResponse], tags=["Enrollments"])
def read_department_enrollments(department_id: int, semester: str, service: EnrollmentService = Depends(get_enrollment_service)):
    """Enrollments in a department's courses for one semester"""
    return service.list_for_department_and_semester(department_id, semester)


@app.put("/api/enrollments/bulk-grade-update", response_model=BulkGradeResult, tags=["Enrollments"])
def bulk_grade_update(request: BulkGradeRequest, service: EnrollmentService = Depends(get_enrollment_service)):
    """Grade every ungraded enrollment of a semester from its attendance"""
    graded = service.bulk_grade_update(request.semester, request.academic_year)
    return BulkGradeResult(semester=request.semester, academic_year=request.academic_year, graded=graded)


@app.get("/api/enrollments/{enrollment_id}", response_model=EnrollmentResponse, tags=["Enrollments"])
def read_enrollment(enrollment_id: int, service: EnrollmentService = Depends(get_enrollment_service)):
    """Get a specific enrollment by ID"""
    return service.get(enrollment_id)


@app.put("/api/enrollments/{enrollment_id}/grade", response_model=EnrollmentResponse, tags=["Enrollments"])
def post_enrollment_grade(enrollment_id: int, grade_update: GradeUpdate, service: EnrollmentService = Depends(get_enrollment_service)):
    """Post a grade and recompute the student's GPA"""
    return service.post_grade(enrollment_id, grade_update.grade, grade_update.grade_points)


@app.put("/api/enrollments/{enrollment_id}/attendance", response_model=EnrollmentResponse, tags=["Enrollments"])
def update_enrollment_attendance(enrollment_id: int, attendance: AttendanceUpdate, service: EnrollmentService = Depends(get_enrollment_service)):
    return service.update_attendance(enrollment_id, attendance.attendance_percentage)


@app.patch("/api/enrollments/{enrollment_id}/drop", response_model=EnrollmentResponse, tags=["Enrollments"])
def drop_enrollment(enrollment_id: int, service: EnrollmentService = Depends(get_enrollment_service)):
    """Drop an enrollment; the student's GPA is left as is"""
    return service.drop(enrollment_id)


@app.delete("/api/enrollments/{enrollment_id}", status_code=status.HTTP_204_NO_CONTENT, tags=["Enrollments"])
def delete_enrollment(enrollment_id: int, service: EnrollmentService = Depends(get_enrollment_service)):
    """Permanently delete an enrollment (administrative cleanup)"""
    service.delete(enrollment_id)
    return None
