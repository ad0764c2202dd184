"""Business operations over the repositories.

Every write runs inside exactly one ``unit_of_work``: it either commits as a
whole or leaves the database untouched. Errors are raised as the
``exceptions.ServiceError`` family so the API layer can map them to status
codes without inspecting storage errors.
"""
import logging
import time
from datetime import date, datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, List, Optional, Sequence, Tuple

from sqlmodel import Session

from config import Settings, get_settings
from database import unit_of_work
from exceptions import (
    CapacityExceededError,
    ConflictError,
    InvalidStateError,
    NotFoundError,
    OperationTimeoutError,
    ValidationFailedError,
)
from models import (
    Course,
    Department,
    DepartmentType,
    Enrollment,
    EnrollmentStatus,
    Guardian,
    Student,
    StudentStatus,
)
from repositories import (
    CourseRepository,
    DepartmentRepository,
    EnrollmentRepository,
    StudentRepository,
)
from schemas import (
    CourseCreate,
    CourseUpdate,
    DepartmentCreate,
    DepartmentUpdate,
    DepartmentWithCoursesCreate,
    StudentCreate,
    StudentUpdate,
)

logger = logging.getLogger(__name__)

TWO_PLACES = Decimal("0.01")
MIN_GRADE_POINTS = Decimal("0")
MAX_GRADE_POINTS = Decimal("4")

# (minimum attendance %, letter, grade points), checked top to bottom
ATTENDANCE_GRADE_STEPS = (
    (Decimal("90"), "A", Decimal("4.0")),
    (Decimal("80"), "B", Decimal("3.0")),
    (Decimal("70"), "C", Decimal("2.0")),
    (Decimal("60"), "D", Decimal("1.0")),
)
FAILING_GRADE = ("F", Decimal("0.0"))
NO_ATTENDANCE_GRADE = ("C", Decimal("2.0"))


def grade_for_attendance(attendance: Optional[Decimal]) -> Tuple[str, Decimal]:
    """Letter grade and grade points derived from an attendance percentage"""
    if attendance is None:
        return NO_ATTENDANCE_GRADE
    for threshold, letter, points in ATTENDANCE_GRADE_STEPS:
        if attendance >= threshold:
            return letter, points
    return FAILING_GRADE


def _touch(entity) -> None:
    entity.updated_at = datetime.utcnow()


class EnrollmentService:
    """Enrollment lifecycle and the GPA rule.

    An enrollment starts ACTIVE and moves to COMPLETED when a positive grade
    is posted, or to DROPPED when the student withdraws. Posting a grade
    recomputes the owning student's GPA in the same transaction.
    """

    def __init__(self, session: Session, settings: Optional[Settings] = None):
        self.session = session
        self.settings = settings or get_settings()
        self.enrollments = EnrollmentRepository(session)
        self.students = StudentRepository(session)
        self.courses = CourseRepository(session)
        self.departments = DepartmentRepository(session)

    # ----- lookups -----

    def get(self, enrollment_id: int) -> Enrollment:
        enrollment = self.enrollments.find_by_id(enrollment_id)
        if enrollment is None:
            raise NotFoundError("Enrollment", enrollment_id)
        return enrollment

    def list(self, skip: int = 0, limit: int = 100) -> List[Enrollment]:
        return self.enrollments.find_all(skip=skip, limit=limit)

    def list_for_student(self, student_id: int) -> List[Enrollment]:
        if not self.students.exists_by_id(student_id):
            raise NotFoundError("Student", student_id)
        return self.enrollments.find_by_student(student_id)

    def list_for_course(self, course_id: int) -> List[Enrollment]:
        if not self.courses.exists_by_id(course_id):
            raise NotFoundError("Course", course_id)
        return self.enrollments.find_by_course(course_id)

    def list_by_status(self, status: EnrollmentStatus) -> List[Enrollment]:
        return self.enrollments.find_by_status(status)

    def list_graded(self) -> List[Enrollment]:
        return self.enrollments.find_graded()

    def list_between(self, start: date, end: date) -> List[Enrollment]:
        if start > end:
            raise ValidationFailedError("Start date must not be after end date")
        return self.enrollments.find_by_enrollment_date_between(start, end)

    def search(self, **criteria) -> List[Enrollment]:
        return self.enrollments.search(**criteria)

    def is_enrolled(self, student_id: int, course_id: int, semester: str, academic_year: int) -> bool:
        self._require_student(student_id)
        self._require_course(course_id)
        return self.enrollments.find_by_tuple(student_id, course_id, semester, academic_year) is not None

    def course_statistics(self, academic_year: int) -> List[Dict]:
        return self.enrollments.course_statistics(academic_year)

    def top_students_by_grade(self, academic_year: int) -> List[Dict]:
        return self.enrollments.student_performance(academic_year)

    def most_active_students(self, academic_year: int, limit: int = 10) -> List[Dict]:
        if limit < 1:
            raise ValidationFailedError("Limit must be at least 1")
        return self.enrollments.most_active_students(academic_year, limit)

    def list_low_attendance(self, min_attendance: Decimal) -> List[Enrollment]:
        """Active enrollments whose attendance is below the threshold, lowest first"""
        if min_attendance < 0 or min_attendance > 100:
            raise ValidationFailedError("Attendance threshold must be between 0 and 100")
        return self.enrollments.find_low_attendance(min_attendance)

    def list_for_department_and_semester(self, department_id: int, semester: str) -> List[Enrollment]:
        if not self.departments.exists_by_id(department_id):
            raise NotFoundError("Department", department_id)
        return self.enrollments.find_by_department_and_semester(department_id, semester)

    # ----- enrollment -----

    def enroll(self, student_id: int, course_id: int, semester: str, academic_year: int) -> Enrollment:
        """Enroll a student in one course offering"""
        logger.info(f"Enrolling student {student_id} in course {course_id} for {semester} {academic_year}")
        with unit_of_work(self.session):
            student = self._require_student(student_id)
            course = self._require_course(course_id)
            enrollment = self._create_enrollment(student, course, semester, academic_year)
        self.session.refresh(enrollment)
        logger.info(f"Enrollment created successfully with ID: {enrollment.id}")
        return enrollment

    def enroll_in_multiple(
        self, student_id: int, course_ids: Sequence[int], semester: str, academic_year: int
    ) -> List[Enrollment]:
        """Enroll a student in several courses; either every enrollment is created or none is"""
        logger.info(f"Enrolling student {student_id} in courses {list(course_ids)} for {semester} {academic_year}")
        capacity = self.settings.course_capacity
        created = []
        with unit_of_work(self.session):
            student = self._require_student(student_id)
            for course_id in course_ids:
                course = self._require_course(course_id)
                active = self.enrollments.count_active_for_offering(course_id, semester, academic_year)
                if active >= capacity:
                    logger.warning(f"Course {course_id} is full ({active}/{capacity}) for {semester} {academic_year}")
                    raise CapacityExceededError(f"Course is full: {course.title}")
                created.append(self._create_enrollment(student, course, semester, academic_year))
        for enrollment in created:
            self.session.refresh(enrollment)
        logger.info(f"Student {student_id} enrolled in {len(created)} courses")
        return created

    def _create_enrollment(self, student: Student, course: Course, semester: str, academic_year: int) -> Enrollment:
        if not semester or not semester.strip():
            raise ValidationFailedError("Semester is required")
        existing = self.enrollments.find_by_tuple(student.id, course.id, semester, academic_year)
        if existing is not None:
            logger.warning(
                f"Student {student.id} already enrolled in course {course.id} for {semester} {academic_year}"
            )
            raise ConflictError("Student is already enrolled in this course for the given semester")
        enrollment = Enrollment(
            student_id=student.id,
            course_id=course.id,
            semester=semester,
            academic_year=academic_year,
            enrollment_date=date.today(),
            enrollment_status=EnrollmentStatus.ACTIVE,
            attendance_percentage=Decimal("0"),
        )
        return self.enrollments.save(enrollment)

    # ----- grading -----

    def post_grade(self, enrollment_id: int, grade: str, grade_points: Decimal) -> Enrollment:
        """Record a grade and recompute the student's GPA in the same transaction"""
        logger.info(f"Posting grade {grade} ({grade_points}) for enrollment {enrollment_id}")
        with unit_of_work(self.session):
            enrollment = self.get(enrollment_id)
            self._apply_grade(enrollment, grade, grade_points)
            self._recompute_gpa(enrollment.student_id)
        self.session.refresh(enrollment)
        return enrollment

    def _apply_grade(self, enrollment: Enrollment, grade: str, grade_points: Decimal) -> None:
        if not grade or not grade.strip():
            raise ValidationFailedError("Grade is required")
        grade_points = Decimal(str(grade_points))
        if grade_points < MIN_GRADE_POINTS or grade_points > MAX_GRADE_POINTS:
            raise ValidationFailedError("Grade points must be between 0.0 and 4.0")
        enrollment.grade = grade.strip()
        enrollment.grade_points = grade_points.quantize(TWO_PLACES, rounding=ROUND_HALF_UP)
        if grade_points > 0:
            enrollment.enrollment_status = EnrollmentStatus.COMPLETED
        _touch(enrollment)
        self.enrollments.save(enrollment)

    def recompute_gpa(self, student_id: int) -> Optional[Decimal]:
        """Recompute and store a student's GPA; returns None when nothing is graded"""
        with unit_of_work(self.session):
            gpa = self._recompute_gpa(student_id)
        return gpa

    def _recompute_gpa(self, student_id: int) -> Optional[Decimal]:
        # Row lock first so concurrent grade posts for one student apply one after another
        student = self.students.lock(student_id)
        if student is None:
            raise NotFoundError("Student", student_id)
        average = self.enrollments.average_grade_points(student_id)
        if average is None:
            logger.info(f"Student {student_id} has no graded enrollments, GPA left unchanged")
            return None
        gpa = average.quantize(TWO_PLACES, rounding=ROUND_HALF_UP)
        self.students.update_gpa(student, gpa)
        logger.info(f"GPA for student {student_id} recomputed: {gpa}")
        return gpa

    def bulk_grade_update(self, semester: str, academic_year: int) -> int:
        """Grade every ungraded enrollment of a term from its attendance.

        Runs as one transaction bounded by the configured timeout; on timeout
        or any error nothing is committed.
        """
        timeout = self.settings.bulk_operation_timeout
        deadline = time.monotonic() + timeout
        logger.info(f"Bulk grade update started for {semester} {academic_year}")
        graded = 0
        with unit_of_work(self.session):
            for enrollment in self.enrollments.find_ungraded_for_term(semester, academic_year):
                if time.monotonic() > deadline:
                    logger.error(f"Bulk grade update for {semester} {academic_year} exceeded {timeout}s")
                    raise OperationTimeoutError(f"Bulk grade update exceeded {timeout} seconds and was rolled back")
                letter, points = grade_for_attendance(enrollment.attendance_percentage)
                self._apply_grade(enrollment, letter, points)
                self._recompute_gpa(enrollment.student_id)
                graded += 1
        logger.info(f"Bulk grade update graded {graded} enrollments for {semester} {academic_year}")
        return graded

    # ----- other transitions -----

    def drop(self, enrollment_id: int) -> Enrollment:
        """Mark an enrollment as dropped; the student's GPA is not recomputed"""
        logger.info(f"Dropping enrollment {enrollment_id}")
        return self.update_status(enrollment_id, EnrollmentStatus.DROPPED)

    def update_status(self, enrollment_id: int, status: EnrollmentStatus) -> Enrollment:
        with unit_of_work(self.session):
            enrollment = self.get(enrollment_id)
            enrollment.enrollment_status = status
            _touch(enrollment)
            self.enrollments.save(enrollment)
        self.session.refresh(enrollment)
        return enrollment

    def update_attendance(self, enrollment_id: int, attendance_percentage: Decimal) -> Enrollment:
        attendance_percentage = Decimal(str(attendance_percentage))
        if attendance_percentage < 0 or attendance_percentage > 100:
            raise ValidationFailedError("Attendance percentage must be between 0 and 100")
        with unit_of_work(self.session):
            enrollment = self.get(enrollment_id)
            enrollment.attendance_percentage = attendance_percentage.quantize(TWO_PLACES, rounding=ROUND_HALF_UP)
            _touch(enrollment)
            self.enrollments.save(enrollment)
        self.session.refresh(enrollment)
        return enrollment

    def delete(self, enrollment_id: int) -> None:
        """Physically remove an enrollment (administrative cleanup)"""
        logger.info(f"Deleting enrollment {enrollment_id}")
        with unit_of_work(self.session):
            if not self.enrollments.delete_by_id(enrollment_id):
                raise NotFoundError("Enrollment", enrollment_id)
        logger.info(f"Enrollment deleted successfully: {enrollment_id}")

    # ----- helpers -----

    def _require_student(self, student_id: int) -> Student:
        student = self.students.find_by_id(student_id)
        if student is None:
            logger.warning(f"Student not found: {student_id}")
            raise NotFoundError("Student", student_id)
        return student

    def _require_course(self, course_id: int) -> Course:
        course = self.courses.find_by_id(course_id)
        if course is None:
            logger.warning(f"Course not found: {course_id}")
            raise NotFoundError("Course", course_id)
        return course


class StudentService:
    def __init__(self, session: Session):
        self.session = session
        self.students = StudentRepository(session)

    def get(self, student_id: int) -> Student:
        student = self.students.find_by_id(student_id)
        if student is None:
            raise NotFoundError("Student", student_id)
        return student

    def list(self, skip: int = 0, limit: int = 100) -> List[Student]:
        return self.students.find_all(skip=skip, limit=limit)

    def page_active(self, page: int = 0, size: int = 10) -> Tuple[List[Student], int]:
        if page < 0 or size < 1:
            raise ValidationFailedError("Page must be >= 0 and size must be >= 1")
        return self.students.page_active(page, size)

    def search(
        self,
        first_name: Optional[str] = None,
        last_name: Optional[str] = None,
        email: Optional[str] = None,
        status: Optional[StudentStatus] = None,
        min_gpa: Optional[Decimal] = None,
        max_gpa: Optional[Decimal] = None,
    ) -> List[Student]:
        if min_gpa is not None and max_gpa is not None and min_gpa > max_gpa:
            raise ValidationFailedError("min_gpa must not exceed max_gpa")
        return self.students.search(first_name, last_name, email, status, min_gpa, max_gpa)

    def create(self, data: StudentCreate) -> Student:
        logger.info(f"Creating student with email: {data.email}")
        with unit_of_work(self.session):
            self._check_unique(data.email, data.student_id_number)
            student = self.students.save(self._build(data))
        self.session.refresh(student)
        logger.info(f"Student created successfully with ID: {student.id}")
        return student

    def create_batch(self, items: Sequence[StudentCreate]) -> List[Student]:
        """Create several students; any duplicate rejects the whole batch"""
        logger.info(f"Creating batch of {len(items)} students")
        emails = [item.email for item in items]
        if len(set(emails)) != len(emails):
            raise ConflictError("Batch contains duplicate emails")
        with unit_of_work(self.session):
            for item in items:
                self._check_unique(item.email, item.student_id_number)
            students = self.students.save_all(self._build(item) for item in items)
        for student in students:
            self.session.refresh(student)
        return students

    def update(self, student_id: int, data: StudentUpdate) -> Student:
        logger.info(f"Updating student with ID: {student_id}")
        with unit_of_work(self.session):
            student = self.get(student_id)
            changes = data.model_dump(exclude_unset=True, exclude={"guardian"})
            new_email = changes.get("email")
            if new_email and new_email != student.email and self.students.find_by_email(new_email):
                logger.warning(f"Attempted to update with existing email: {new_email}")
                raise ConflictError("Email already registered")
            for key, value in changes.items():
                if value is not None:
                    setattr(student, key, value)
            if "guardian" in data.model_fields_set:
                student.set_guardian(Guardian(**data.guardian.model_dump()) if data.guardian else None)
            _touch(student)
            self.students.save(student)
        self.session.refresh(student)
        logger.info(f"Student updated successfully: {student.id}")
        return student

    def delete(self, student_id: int) -> Student:
        """Soft delete: the student stays retrievable with is_active False"""
        logger.info(f"Soft deleting student with ID: {student_id}")
        return self._set_active(student_id, False)

    def activate(self, student_id: int) -> Student:
        return self._set_active(student_id, True)

    def deactivate(self, student_id: int) -> Student:
        return self._set_active(student_id, False)

    def statistics(self) -> Dict:
        total = self.students.count()
        active = self.students.count_active()
        return {
            "total_students": total,
            "active_students": active,
            "inactive_students": total - active,
            "enrollment_statistics": self.students.enrollment_counts(),
        }

    def _set_active(self, student_id: int, active: bool) -> Student:
        with unit_of_work(self.session):
            student = self.get(student_id)
            student.is_active = active
            _touch(student)
            self.students.save(student)
        self.session.refresh(student)
        return student

    def _check_unique(self, email: str, student_id_number: Optional[str]) -> None:
        if self.students.find_by_email(email):
            logger.warning(f"Attempted to create student with existing email: {email}")
            raise ConflictError(f"Email already exists: {email}")
        if student_id_number and self.students.find_by_student_id_number(student_id_number):
            logger.warning(f"Attempted to create student with existing student ID number: {student_id_number}")
            raise ConflictError(f"Student ID number already exists: {student_id_number}")

    @staticmethod
    def _build(data: StudentCreate) -> Student:
        student = Student(**data.model_dump(exclude={"guardian"}))
        if data.guardian is not None:
            student.set_guardian(Guardian(**data.guardian.model_dump()))
        return student


class DepartmentService:
    def __init__(self, session: Session):
        self.session = session
        self.departments = DepartmentRepository(session)
        self.courses = CourseRepository(session)

    def get(self, department_id: int) -> Department:
        department = self.departments.find_by_id(department_id)
        if department is None:
            raise NotFoundError("Department", department_id)
        return department

    def list(self, skip: int = 0, limit: int = 100) -> List[Department]:
        return self.departments.find_all(skip=skip, limit=limit)

    def list_active(self) -> List[Department]:
        return self.departments.find_active()

    def list_by_type(self, department_type: DepartmentType, skip: int = 0, limit: int = 100) -> List[Department]:
        return self.departments.find_by_type(department_type, skip=skip, limit=limit)

    def search(self, keyword: str) -> List[Department]:
        return self.departments.search(keyword)

    def summaries(self) -> List[Dict]:
        return self.departments.summaries()

    def statistics(self) -> Dict:
        return {
            "total_departments": self.departments.count(),
            "active_departments": self.departments.count_active(),
        }

    def create(self, data: DepartmentCreate) -> Department:
        logger.info(f"Creating department: {data.code}")
        with unit_of_work(self.session):
            department = self._create(data)
        self.session.refresh(department)
        logger.info(f"Department created successfully with ID: {department.id}")
        return department

    def create_with_courses(self, data: DepartmentWithCoursesCreate) -> Department:
        logger.info(f"Creating department {data.code} with {len(data.courses)} courses")
        with unit_of_work(self.session):
            department = self._create(data)
            for item in data.courses:
                if self.courses.find_by_code(item.course_code):
                    raise ConflictError(f"Course code already exists: {item.course_code}")
                self.courses.save(Course(**item.model_dump(), department_id=department.id))
        self.session.refresh(department)
        return department

    def create_batch(self, items: Sequence[DepartmentCreate]) -> List[Department]:
        with unit_of_work(self.session):
            departments = [self._create(item) for item in items]
        for department in departments:
            self.session.refresh(department)
        return departments

    def _create(self, data: DepartmentCreate) -> Department:
        if not data.name or not data.name.strip():
            raise ValidationFailedError("Invalid department name")
        if self.departments.find_by_code(data.code):
            logger.warning(f"Attempted to create department with existing code: {data.code}")
            raise ConflictError(f"Department code already exists: {data.code}")
        return self.departments.save(Department(**data.model_dump(include=set(DepartmentCreate.model_fields))))

    def update(self, department_id: int, data: DepartmentUpdate) -> Department:
        logger.info(f"Updating department with ID: {department_id}")
        with unit_of_work(self.session):
            department = self.get(department_id)
            for key, value in data.model_dump(exclude_unset=True).items():
                if value is not None:
                    setattr(department, key, value)
            _touch(department)
            self.departments.save(department)
        self.session.refresh(department)
        return department

    def delete(self, department_id: int) -> Department:
        """Soft delete, refused while the department still has active courses"""
        logger.info(f"Soft deleting department with ID: {department_id}")
        with unit_of_work(self.session):
            department = self.get(department_id)
            if self.courses.find_active_by_department(department_id):
                logger.warning(f"Department {department_id} still has active courses")
                raise InvalidStateError(
                    "Cannot delete department with active courses. Please deactivate or reassign courses first."
                )
            department.is_active = False
            _touch(department)
            self.departments.save(department)
        self.session.refresh(department)
        return department

    def transfer_courses(self, from_department_id: int, to_department_id: int, course_ids: Sequence[int]) -> List[Course]:
        """Move courses between departments; all move or none do"""
        logger.info(f"Transferring courses {list(course_ids)} from {from_department_id} to {to_department_id}")
        moved = []
        with unit_of_work(self.session):
            self.get(from_department_id)
            target = self.get(to_department_id)
            for course_id in course_ids:
                course = self.courses.find_by_id(course_id)
                if course is None:
                    raise NotFoundError("Course", course_id)
                if course.department_id != from_department_id:
                    raise ValidationFailedError(f"Course does not belong to source department: {course_id}")
                course.department_id = target.id
                _touch(course)
                moved.append(self.courses.save(course))
        for course in moved:
            self.session.refresh(course)
        return moved

    def update_heads(self, department_ids: Sequence[int], heads: Sequence[str]) -> List[Department]:
        if len(department_ids) != len(heads):
            raise ValidationFailedError("Department IDs and heads count mismatch")
        updated = []
        with unit_of_work(self.session):
            for department_id, head in zip(department_ids, heads):
                department = self.get(department_id)
                department.head_of_department = head
                _touch(department)
                updated.append(self.departments.save(department))
        for department in updated:
            self.session.refresh(department)
        return updated


class CourseService:
    def __init__(self, session: Session):
        self.session = session
        self.courses = CourseRepository(session)
        self.departments = DepartmentRepository(session)

    def get(self, course_id: int) -> Course:
        course = self.courses.find_by_id(course_id)
        if course is None:
            raise NotFoundError("Course", course_id)
        return course

    def get_by_code(self, course_code: str) -> Course:
        course = self.courses.find_by_code(course_code)
        if course is None:
            raise NotFoundError(f"Course with code {course_code}")
        return course

    def list(self, skip: int = 0, limit: int = 100) -> List[Course]:
        return self.courses.find_all(skip=skip, limit=limit)

    def list_active(self) -> List[Course]:
        return self.courses.find_active()

    def list_by_department(self, department_id: int) -> List[Course]:
        if not self.departments.exists_by_id(department_id):
            raise NotFoundError("Department", department_id)
        return self.courses.find_by_department(department_id)

    def list_by_credit_hours(self, min_credits: Decimal, max_credits: Decimal) -> List[Course]:
        if min_credits > max_credits:
            raise ValidationFailedError("min_credits must not exceed max_credits")
        return self.courses.find_by_credit_hours_between(min_credits, max_credits)

    def search(self, term: str) -> List[Course]:
        return self.courses.search(term)

    def statistics(self) -> Dict:
        by_department = {}
        for department in self.departments.find_all():
            average = self.courses.average_credit_hours(department.id)
            by_department[department.code] = None if average is None else float(average.quantize(TWO_PLACES))
        return {
            "total_courses": self.courses.count(),
            "active_courses": self.courses.count_active(),
            "average_credit_hours_by_department": by_department,
        }

    def create(self, data: CourseCreate) -> Course:
        logger.info(f"Creating course: {data.course_code}")
        with unit_of_work(self.session):
            if not self.departments.exists_by_id(data.department_id):
                logger.warning(f"Department not found: {data.department_id}")
                raise NotFoundError("Department", data.department_id)
            if self.courses.find_by_code(data.course_code):
                logger.warning(f"Attempted to create course with existing code: {data.course_code}")
                raise ConflictError(f"Course code already exists: {data.course_code}")
            course = self.courses.save(Course(**data.model_dump()))
        self.session.refresh(course)
        logger.info(f"Course created successfully with ID: {course.id}")
        return course

    def update(self, course_id: int, data: CourseUpdate) -> Course:
        logger.info(f"Updating course with ID: {course_id}")
        with unit_of_work(self.session):
            course = self.get(course_id)
            changes = data.model_dump(exclude_unset=True)
            department_id = changes.get("department_id")
            if department_id is not None and not self.departments.exists_by_id(department_id):
                raise NotFoundError("Department", department_id)
            for key, value in changes.items():
                if value is not None:
                    setattr(course, key, value)
            _touch(course)
            self.courses.save(course)
        self.session.refresh(course)
        return course

    def transfer(self, course_id: int, department_id: int) -> Course:
        return self.update(course_id, CourseUpdate(department_id=department_id))

    def activate(self, course_id: int) -> Course:
        return self._set_active(course_id, True)

    def deactivate(self, course_id: int) -> Course:
        return self._set_active(course_id, False)

    def delete(self, course_id: int) -> Course:
        """Soft delete; existing enrollments are left in place"""
        logger.info(f"Soft deleting course with ID: {course_id}")
        return self._set_active(course_id, False)

    def _set_active(self, course_id: int, active: bool) -> Course:
        with unit_of_work(self.session):
            course = self.get(course_id)
            course.is_active = active
            _touch(course)
            self.courses.save(course)
        self.session.refresh(course)
        return course
