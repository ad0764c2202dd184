from dataclasses import replace
from datetime import date, timedelta
from decimal import Decimal

import pytest
from sqlmodel import Session

from config import get_settings
from database import unit_of_work
from exceptions import (
    CapacityExceededError,
    ConflictError,
    InvalidStateError,
    NotFoundError,
    OperationTimeoutError,
    ValidationFailedError,
)
from models import Enrollment, EnrollmentStatus, Student, StudentStatus
from repositories import EnrollmentRepository, StudentRepository
from schemas import (
    CourseBase,
    CourseCreate,
    DepartmentCreate,
    DepartmentUpdate,
    DepartmentWithCoursesCreate,
    GuardianSchema,
    StudentCreate,
    StudentUpdate,
)
from services import (
    CourseService,
    DepartmentService,
    EnrollmentService,
    StudentService,
    grade_for_attendance,
)


def make_department(session: Session, code: str = "CS", name: str = "Computer Science"):
    return DepartmentService(session).create(DepartmentCreate(name=name, code=code))


def make_course(session: Session, department_id: int, code: str = "CS101", title: str = "Intro to Programming"):
    return CourseService(session).create(
        CourseCreate(title=title, course_code=code, credit_hours=Decimal("3.0"), department_id=department_id)
    )


def make_student(session: Session, email: str = "jane@example.com", first_name: str = "Jane", **extra):
    return StudentService(session).create(
        StudentCreate(first_name=first_name, last_name="Doe", email=email, **extra)
    )


def enrollment_count(session: Session) -> int:
    return EnrollmentRepository(session).count()


@pytest.fixture(name="catalog")
def catalog_fixture(session: Session):
    """One department with two courses and one student"""
    department = make_department(session)
    course = make_course(session, department.id)
    other_course = make_course(session, department.id, code="CS201", title="Data Structures")
    student = make_student(session)
    return department, course, other_course, student


# ============= ENROLL =============

def test_enroll_creates_active_enrollment(session: Session, catalog):
    _, course, _, student = catalog
    enrollment = EnrollmentService(session).enroll(student.id, course.id, "Fall 2024", 2024)

    assert enrollment.id is not None
    assert enrollment.enrollment_status == EnrollmentStatus.ACTIVE
    assert enrollment.attendance_percentage == Decimal("0")
    assert enrollment.grade is None


def test_enroll_duplicate_tuple_conflicts(session: Session, catalog):
    _, course, _, student = catalog
    service = EnrollmentService(session)
    service.enroll(student.id, course.id, "Fall 2024", 2024)

    with pytest.raises(ConflictError):
        service.enroll(student.id, course.id, "Fall 2024", 2024)
    assert enrollment_count(session) == 1


def test_enroll_same_course_other_term_is_allowed(session: Session, catalog):
    _, course, _, student = catalog
    service = EnrollmentService(session)
    service.enroll(student.id, course.id, "Fall 2024", 2024)
    service.enroll(student.id, course.id, "Spring 2025", 2025)

    assert enrollment_count(session) == 2


def test_enroll_missing_course_creates_nothing(session: Session, catalog):
    _, _, _, student = catalog
    with pytest.raises(NotFoundError) as exc_info:
        EnrollmentService(session).enroll(student.id, 9999, "Fall 2024", 2024)

    assert "Course" in str(exc_info.value)
    assert enrollment_count(session) == 0


def test_enroll_missing_student(session: Session, catalog):
    _, course, _, _ = catalog
    with pytest.raises(NotFoundError) as exc_info:
        EnrollmentService(session).enroll(9999, course.id, "Fall 2024", 2024)
    assert "Student" in str(exc_info.value)


def test_storage_level_duplicate_becomes_conflict(session: Session, catalog):
    """A writer that skipped the application check is stopped by the unique constraint"""
    _, course, _, student = catalog
    EnrollmentService(session).enroll(student.id, course.id, "Fall 2024", 2024)

    with pytest.raises(ConflictError) as exc_info:
        with unit_of_work(session):
            session.add(Enrollment(student_id=student.id, course_id=course.id, semester="Fall 2024", academic_year=2024))
            session.flush()

    message = str(exc_info.value).lower()
    assert "enrollment_unique" not in message
    assert "unique constraint" not in message
    assert enrollment_count(session) == 1


# ============= ENROLL IN MULTIPLE =============

def test_enroll_in_multiple_creates_all(session: Session, catalog):
    _, course, other_course, student = catalog
    created = EnrollmentService(session).enroll_in_multiple(student.id, [course.id, other_course.id], "Fall 2024", 2024)

    assert len(created) == 2
    assert all(e.enrollment_status == EnrollmentStatus.ACTIVE for e in created)
    assert enrollment_count(session) == 2


def test_enroll_in_multiple_with_missing_course_rolls_back(session: Session, catalog):
    _, course, _, student = catalog
    with pytest.raises(NotFoundError):
        EnrollmentService(session).enroll_in_multiple(student.id, [course.id, 9999], "Fall 2024", 2024)

    assert enrollment_count(session) == 0


def test_enroll_in_multiple_repeated_course_rolls_back(session: Session, catalog):
    _, course, _, student = catalog
    with pytest.raises(ConflictError):
        EnrollmentService(session).enroll_in_multiple(student.id, [course.id, course.id], "Fall 2024", 2024)

    assert enrollment_count(session) == 0


def test_enroll_in_multiple_capacity_exceeded_rolls_back(session: Session, catalog):
    _, course, other_course, student = catalog
    classmate = make_student(session, email="john@example.com", first_name="John")
    settings = replace(get_settings(), course_capacity=1)
    EnrollmentService(session, settings=settings).enroll(classmate.id, other_course.id, "Fall 2024", 2024)

    with pytest.raises(CapacityExceededError) as exc_info:
        EnrollmentService(session, settings=settings).enroll_in_multiple(
            student.id, [course.id, other_course.id], "Fall 2024", 2024
        )

    assert "Data Structures" in str(exc_info.value)
    assert enrollment_count(session) == 1


def test_capacity_counts_only_active_enrollments_of_the_offering(session: Session, catalog):
    _, course, _, student = catalog
    classmate = make_student(session, email="john@example.com", first_name="John")
    settings = replace(get_settings(), course_capacity=1)
    service = EnrollmentService(session, settings=settings)
    dropped = service.enroll(classmate.id, course.id, "Fall 2024", 2024)
    service.drop(dropped.id)

    created = service.enroll_in_multiple(student.id, [course.id], "Fall 2024", 2024)
    assert len(created) == 1


# ============= POST GRADE / GPA =============

def test_post_positive_grade_completes_enrollment_and_sets_gpa(session: Session, catalog):
    _, course, _, student = catalog
    service = EnrollmentService(session)
    enrollment = service.enroll(student.id, course.id, "Fall 2024", 2024)

    graded = service.post_grade(enrollment.id, "A", Decimal("4.0"))

    assert graded.enrollment_status == EnrollmentStatus.COMPLETED
    assert graded.grade == "A"
    assert graded.grade_points == Decimal("4.00")
    session.refresh(student)
    assert student.gpa == Decimal("4.00")


def test_post_zero_grade_leaves_status_active(session: Session, catalog):
    _, course, _, student = catalog
    service = EnrollmentService(session)
    enrollment = service.enroll(student.id, course.id, "Fall 2024", 2024)

    graded = service.post_grade(enrollment.id, "F", Decimal("0"))

    assert graded.enrollment_status == EnrollmentStatus.ACTIVE
    session.refresh(student)
    assert student.gpa == Decimal("0.00")


def test_gpa_is_mean_of_graded_enrollments(session: Session, catalog):
    _, course, other_course, student = catalog
    service = EnrollmentService(session)
    first = service.enroll(student.id, course.id, "Fall 2024", 2024)
    second = service.enroll(student.id, other_course.id, "Fall 2024", 2024)

    service.post_grade(first.id, "A", Decimal("4.0"))
    service.post_grade(second.id, "B+", Decimal("3.3"))

    session.refresh(student)
    assert student.gpa == Decimal("3.65")


def test_gpa_mean_rounds_half_up(session: Session, catalog):
    _, course, other_course, student = catalog
    service = EnrollmentService(session)
    first = service.enroll(student.id, course.id, "Fall 2024", 2024)
    second = service.enroll(student.id, other_course.id, "Fall 2024", 2024)

    service.post_grade(first.id, "B+", Decimal("3.30"))
    service.post_grade(second.id, "B+", Decimal("3.31"))

    session.refresh(student)
    assert student.gpa == Decimal("3.31")


def test_student_lock_rereads_committed_row(session: Session, catalog):
    _, _, _, student = catalog
    assert student.gpa is None

    with Session(session.get_bind()) as other:
        row = other.get(Student, student.id)
        row.gpa = Decimal("1.50")
        other.add(row)
        other.commit()

    locked = StudentRepository(session).lock(student.id)
    assert locked is student
    assert locked.gpa == Decimal("1.50")


def test_post_grade_overwrites_gpa_written_elsewhere(session: Session, catalog):
    _, course, _, student = catalog
    service = EnrollmentService(session)
    enrollment = service.enroll(student.id, course.id, "Fall 2024", 2024)
    assert student.gpa is None

    with Session(session.get_bind()) as other:
        row = other.get(Student, student.id)
        row.gpa = Decimal("1.50")
        other.add(row)
        other.commit()

    service.post_grade(enrollment.id, "A-", Decimal("3.70"))

    session.refresh(student)
    assert student.gpa == Decimal("3.70")
    with Session(session.get_bind()) as other:
        assert other.get(Student, student.id).gpa == Decimal("3.70")


def test_ungraded_enrollments_do_not_count_towards_gpa(session: Session, catalog):
    _, course, other_course, student = catalog
    service = EnrollmentService(session)
    first = service.enroll(student.id, course.id, "Fall 2024", 2024)
    service.enroll(student.id, other_course.id, "Fall 2024", 2024)

    service.post_grade(first.id, "B", Decimal("3.0"))

    session.refresh(student)
    assert student.gpa == Decimal("3.00")


def test_recompute_without_graded_enrollments_is_noop(session: Session, catalog):
    _, course, _, student = catalog
    service = EnrollmentService(session)
    service.enroll(student.id, course.id, "Fall 2024", 2024)

    assert service.recompute_gpa(student.id) is None
    session.refresh(student)
    assert student.gpa is None


def test_recompute_keeps_existing_gpa_when_nothing_graded(session: Session):
    student = make_student(session, gpa=Decimal("3.20"))

    assert EnrollmentService(session).recompute_gpa(student.id) is None
    session.refresh(student)
    assert student.gpa == Decimal("3.20")


def test_recompute_is_idempotent(session: Session, catalog):
    _, course, _, student = catalog
    service = EnrollmentService(session)
    enrollment = service.enroll(student.id, course.id, "Fall 2024", 2024)
    service.post_grade(enrollment.id, "B", Decimal("3.0"))

    assert service.recompute_gpa(student.id) == Decimal("3.00")
    assert service.recompute_gpa(student.id) == Decimal("3.00")


def test_post_grade_missing_enrollment(session: Session):
    with pytest.raises(NotFoundError):
        EnrollmentService(session).post_grade(9999, "A", Decimal("4.0"))


def test_post_grade_out_of_range_is_rejected(session: Session, catalog):
    _, course, _, student = catalog
    service = EnrollmentService(session)
    enrollment = service.enroll(student.id, course.id, "Fall 2024", 2024)

    with pytest.raises(ValidationFailedError):
        service.post_grade(enrollment.id, "A", Decimal("4.5"))
    assert service.get(enrollment.id).grade is None


# ============= DROP / DELETE =============

def test_drop_sets_status_and_keeps_gpa(session: Session, catalog):
    _, course, _, student = catalog
    service = EnrollmentService(session)
    enrollment = service.enroll(student.id, course.id, "Fall 2024", 2024)
    service.post_grade(enrollment.id, "A", Decimal("4.0"))

    dropped = service.drop(enrollment.id)

    assert dropped.enrollment_status == EnrollmentStatus.DROPPED
    assert dropped.grade == "A"
    session.refresh(student)
    assert student.gpa == Decimal("4.00")


def test_drop_missing_enrollment(session: Session):
    with pytest.raises(NotFoundError):
        EnrollmentService(session).drop(9999)


def test_hard_delete_enrollment(session: Session, catalog):
    _, course, _, student = catalog
    service = EnrollmentService(session)
    enrollment = service.enroll(student.id, course.id, "Fall 2024", 2024)

    service.delete(enrollment.id)

    assert enrollment_count(session) == 0
    with pytest.raises(NotFoundError):
        service.delete(enrollment.id)


# ============= BULK GRADE UPDATE =============

@pytest.mark.parametrize(
    "attendance, expected",
    [
        (Decimal("100"), ("A", Decimal("4.0"))),
        (Decimal("90"), ("A", Decimal("4.0"))),
        (Decimal("89.99"), ("B", Decimal("3.0"))),
        (Decimal("80"), ("B", Decimal("3.0"))),
        (Decimal("70"), ("C", Decimal("2.0"))),
        (Decimal("60"), ("D", Decimal("1.0"))),
        (Decimal("59.99"), ("F", Decimal("0.0"))),
        (None, ("C", Decimal("2.0"))),
    ],
)
def test_grade_for_attendance(attendance, expected):
    assert grade_for_attendance(attendance) == expected


def test_bulk_grade_update_grades_term_and_recomputes_gpa(session: Session, catalog):
    _, course, other_course, student = catalog
    service = EnrollmentService(session)
    first = service.enroll(student.id, course.id, "Fall 2024", 2024)
    second = service.enroll(student.id, other_course.id, "Fall 2024", 2024)
    other_term = service.enroll(student.id, course.id, "Spring 2025", 2025)
    service.update_attendance(first.id, Decimal("95"))
    service.update_attendance(second.id, Decimal("85"))

    graded = service.bulk_grade_update("Fall 2024", 2024)

    assert graded == 2
    assert service.get(first.id).grade == "A"
    assert service.get(second.id).grade == "B"
    assert service.get(first.id).enrollment_status == EnrollmentStatus.COMPLETED
    assert service.get(other_term.id).grade is None
    session.refresh(student)
    assert student.gpa == Decimal("3.50")


def test_bulk_grade_update_skips_already_graded(session: Session, catalog):
    _, course, other_course, student = catalog
    service = EnrollmentService(session)
    first = service.enroll(student.id, course.id, "Fall 2024", 2024)
    service.enroll(student.id, other_course.id, "Fall 2024", 2024)
    service.post_grade(first.id, "A", Decimal("4.0"))

    assert service.bulk_grade_update("Fall 2024", 2024) == 1
    assert service.get(first.id).grade == "A"


def test_bulk_grade_update_null_attendance_defaults_to_c(session: Session, catalog):
    _, course, _, student = catalog
    with unit_of_work(session):
        EnrollmentRepository(session).save(
            Enrollment(student_id=student.id, course_id=course.id, semester="Fall 2024", academic_year=2024)
        )

    assert EnrollmentService(session).bulk_grade_update("Fall 2024", 2024) == 1
    session.refresh(student)
    assert student.gpa == Decimal("2.00")


def test_bulk_grade_update_timeout_rolls_back(session: Session, catalog):
    _, course, _, student = catalog
    enrollment = EnrollmentService(session).enroll(student.id, course.id, "Fall 2024", 2024)
    settings = replace(get_settings(), bulk_operation_timeout=-1)

    with pytest.raises(OperationTimeoutError):
        EnrollmentService(session, settings=settings).bulk_grade_update("Fall 2024", 2024)

    assert EnrollmentService(session).get(enrollment.id).grade is None


# ============= STUDENTS =============

def test_create_student_duplicate_email_conflicts(session: Session):
    make_student(session)
    with pytest.raises(ConflictError):
        make_student(session)


def test_create_student_duplicate_student_id_number_conflicts(session: Session):
    make_student(session, student_id_number="STU001")
    with pytest.raises(ConflictError):
        make_student(session, email="other@example.com", student_id_number="STU001")


def test_student_guardian_is_embedded(session: Session):
    guardian = GuardianSchema(name="John Doe Sr", email="sr@example.com", mobile="+1 555 0100")
    student = make_student(session, guardian=guardian)

    assert student.guardian_name == "John Doe Sr"
    assert student.guardian.mobile == "+1 555 0100"

    updated = StudentService(session).update(student.id, StudentUpdate(guardian=None))
    assert updated.guardian is None


def test_soft_delete_student_remains_retrievable(session: Session):
    student = make_student(session)
    service = StudentService(session)

    service.delete(student.id)

    fetched = service.get(student.id)
    assert fetched.is_active is False


def test_update_student_email_taken(session: Session):
    make_student(session)
    other = make_student(session, email="john@example.com", first_name="John")

    with pytest.raises(ConflictError):
        StudentService(session).update(other.id, StudentUpdate(email="jane@example.com"))


def test_create_student_batch_is_all_or_nothing(session: Session):
    make_student(session)
    batch = [
        StudentCreate(first_name="A", last_name="One", email="a@example.com"),
        StudentCreate(first_name="B", last_name="Two", email="jane@example.com"),
    ]
    with pytest.raises(ConflictError):
        StudentService(session).create_batch(batch)

    assert len(StudentService(session).list()) == 1


def test_search_students_by_gpa_and_status(session: Session):
    make_student(session, gpa=Decimal("3.80"))
    make_student(session, email="john@example.com", first_name="John", gpa=Decimal("2.10"))
    make_student(session, email="sam@example.com", first_name="Sam", student_status=StudentStatus.GRADUATED)
    service = StudentService(session)

    assert [s.first_name for s in service.search(min_gpa=Decimal("3.0"))] == ["Jane"]
    assert [s.first_name for s in service.search(status=StudentStatus.GRADUATED)] == ["Sam"]
    with pytest.raises(ValidationFailedError):
        service.search(min_gpa=Decimal("3.0"), max_gpa=Decimal("2.0"))


# ============= DEPARTMENTS AND COURSES =============

def test_delete_department_with_active_course_is_refused(session: Session, catalog):
    department, _, _, _ = catalog
    service = DepartmentService(session)

    with pytest.raises(InvalidStateError):
        service.delete(department.id)
    assert service.get(department.id).is_active is True


def test_delete_department_after_courses_deactivated(session: Session, catalog):
    department, course, other_course, _ = catalog
    CourseService(session).deactivate(course.id)
    CourseService(session).delete(other_course.id)

    deleted = DepartmentService(session).delete(department.id)
    assert deleted.is_active is False


def test_create_department_duplicate_code(session: Session):
    make_department(session)
    with pytest.raises(ConflictError):
        make_department(session, name="Computing")


def test_update_department(session: Session):
    department = make_department(session)
    updated = DepartmentService(session).update(department.id, DepartmentUpdate(head_of_department="Dr. Ada"))
    assert updated.head_of_department == "Dr. Ada"
    assert updated.name == "Computer Science"


def test_create_department_with_courses_rolls_back_on_duplicate_code(session: Session, catalog):
    data = DepartmentWithCoursesCreate(
        name="Mathematics",
        code="MATH",
        courses=[
            CourseBase(title="Calculus", course_code="MATH101"),
            CourseBase(title="Clash", course_code="CS101"),
        ],
    )
    with pytest.raises(ConflictError):
        DepartmentService(session).create_with_courses(data)

    assert [d.code for d in DepartmentService(session).list()] == ["CS"]


def test_transfer_courses_requires_source_ownership(session: Session, catalog):
    department, course, _, _ = catalog
    math = make_department(session, code="MATH", name="Mathematics")
    physics = make_department(session, code="PHY", name="Physics")
    service = DepartmentService(session)

    with pytest.raises(ValidationFailedError):
        service.transfer_courses(math.id, physics.id, [course.id])

    moved = service.transfer_courses(department.id, math.id, [course.id])
    assert moved[0].department_id == math.id


def test_update_heads_length_mismatch(session: Session, catalog):
    department, _, _, _ = catalog
    with pytest.raises(ValidationFailedError):
        DepartmentService(session).update_heads([department.id], ["Dr. A", "Dr. B"])


def test_create_course_requires_department(session: Session):
    with pytest.raises(NotFoundError):
        make_course(session, 9999)


def test_course_soft_delete_keeps_enrollments(session: Session, catalog):
    _, course, _, student = catalog
    EnrollmentService(session).enroll(student.id, course.id, "Fall 2024", 2024)

    deleted = CourseService(session).delete(course.id)

    assert deleted.is_active is False
    assert enrollment_count(session) == 1


# ============= LOOKUPS AND REPORTS =============

def test_is_enrolled(session: Session, catalog):
    _, course, other_course, student = catalog
    service = EnrollmentService(session)
    service.enroll(student.id, course.id, "Fall 2024", 2024)

    assert service.is_enrolled(student.id, course.id, "Fall 2024", 2024) is True
    assert service.is_enrolled(student.id, course.id, "Spring 2025", 2025) is False
    assert service.is_enrolled(student.id, other_course.id, "Fall 2024", 2024) is False
    with pytest.raises(NotFoundError):
        service.is_enrolled(student.id, 9999, "Fall 2024", 2024)


def test_list_between_enrollment_dates(session: Session, catalog):
    _, course, _, student = catalog
    service = EnrollmentService(session)
    enrollment = service.enroll(student.id, course.id, "Fall 2024", 2024)
    today = date.today()

    assert [e.id for e in service.list_between(today - timedelta(days=1), today)] == [enrollment.id]
    assert service.list_between(today + timedelta(days=1), today + timedelta(days=7)) == []
    with pytest.raises(ValidationFailedError):
        service.list_between(today, today - timedelta(days=1))


def test_low_attendance_lists_only_active_enrollments(session: Session, catalog):
    _, course, other_course, student = catalog
    service = EnrollmentService(session)
    low = service.enroll(student.id, course.id, "Fall 2024", 2024)
    dropped = service.enroll(student.id, other_course.id, "Fall 2024", 2024)
    service.update_attendance(low.id, Decimal("55"))
    service.drop(dropped.id)

    assert [e.id for e in service.list_low_attendance(Decimal("75"))] == [low.id]
    with pytest.raises(ValidationFailedError):
        service.list_low_attendance(Decimal("120"))


def test_enrollments_for_department_and_semester(session: Session, catalog):
    department, course, _, student = catalog
    other_department = make_department(session, code="MATH", name="Mathematics")
    math = make_course(session, other_department.id, code="MATH101", title="Calculus")
    service = EnrollmentService(session)
    cs_fall = service.enroll(student.id, course.id, "Fall 2024", 2024)
    service.enroll(student.id, course.id, "Spring 2025", 2025)
    service.enroll(student.id, math.id, "Fall 2024", 2024)

    assert [e.id for e in service.list_for_department_and_semester(department.id, "Fall 2024")] == [cs_fall.id]
    with pytest.raises(NotFoundError):
        service.list_for_department_and_semester(9999, "Fall 2024")


def test_most_active_students_rejects_bad_limit(session: Session):
    with pytest.raises(ValidationFailedError):
        EnrollmentService(session).most_active_students(2024, limit=0)


def test_department_statistics(session: Session):
    make_department(session)
    other = make_department(session, code="MATH", name="Mathematics")
    DepartmentService(session).delete(other.id)

    assert DepartmentService(session).statistics() == {"total_departments": 2, "active_departments": 1}
