"""Data access for departments, courses, students and enrollments.

Repositories wrap a SQLModel session and hold no business rules. Writes are
flushed but never committed here; committing belongs to the unit of work the
calling service opens, so storage-level constraint failures surface at flush
or commit time and are translated by ``database.unit_of_work``.
"""
from datetime import date, datetime
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Tuple

from sqlalchemy import case, func, or_
from sqlmodel import Session, select

from models import (
    Course,
    Department,
    DepartmentType,
    Enrollment,
    EnrollmentStatus,
    Student,
    StudentStatus,
)


class BaseRepository:
    """Lookups and writes shared by every entity"""
    model = None

    def __init__(self, session: Session):
        self.session = session

    def find_by_id(self, entity_id: int):
        return self.session.get(self.model, entity_id)

    def find_all(self, skip: int = 0, limit: Optional[int] = None) -> list:
        statement = select(self.model).order_by(self.model.id).offset(skip)
        if limit is not None:
            statement = statement.limit(limit)
        return list(self.session.exec(statement).all())

    def exists_by_id(self, entity_id: int) -> bool:
        return self.find_by_id(entity_id) is not None

    def count(self) -> int:
        return self.session.exec(select(func.count()).select_from(self.model)).one()

    def save(self, entity):
        self.session.add(entity)
        self.session.flush()
        return entity

    def save_all(self, entities: Iterable) -> list:
        entities = list(entities)
        self.session.add_all(entities)
        self.session.flush()
        return entities

    def delete_by_id(self, entity_id: int) -> bool:
        entity = self.find_by_id(entity_id)
        if entity is None:
            return False
        self.session.delete(entity)
        self.session.flush()
        return True


class DepartmentRepository(BaseRepository):
    model = Department

    def find_by_code(self, code: str) -> Optional[Department]:
        return self.session.exec(select(Department).where(Department.code == code)).first()

    def find_active(self) -> List[Department]:
        statement = select(Department).where(Department.is_active == True).order_by(Department.name)  # noqa: E712
        return list(self.session.exec(statement).all())

    def find_by_type(self, department_type: DepartmentType, skip: int = 0, limit: int = 100) -> List[Department]:
        statement = (
            select(Department)
            .where(Department.department_type == department_type)
            .order_by(Department.id)
            .offset(skip)
            .limit(limit)
        )
        return list(self.session.exec(statement).all())

    def search(self, keyword: str) -> List[Department]:
        pattern = f"%{keyword}%"
        statement = select(Department).where(
            or_(
                Department.name.ilike(pattern),
                Department.code.ilike(pattern),
                Department.head_of_department.ilike(pattern),
            )
        ).order_by(Department.id)
        return list(self.session.exec(statement).all())

    def count_active(self) -> int:
        statement = select(func.count()).select_from(Department).where(Department.is_active == True)  # noqa: E712
        return self.session.exec(statement).one()

    def summaries(self) -> List[Dict]:
        """Every department with its total and active course counts"""
        statement = (
            select(
                Department.id,
                Department.name,
                Department.code,
                func.count(Course.id),
                func.coalesce(func.sum(case((Course.is_active == True, 1), else_=0)), 0),  # noqa: E712
            )
            .join(Course, Course.department_id == Department.id, isouter=True)
            .group_by(Department.id, Department.name, Department.code)
            .order_by(Department.id)
        )
        return [
            {
                "department_id": row[0],
                "name": row[1],
                "code": row[2],
                "course_count": row[3],
                "active_course_count": row[4],
            }
            for row in self.session.exec(statement).all()
        ]


class CourseRepository(BaseRepository):
    model = Course

    def find_by_code(self, course_code: str) -> Optional[Course]:
        return self.session.exec(select(Course).where(Course.course_code == course_code)).first()

    def find_by_department(self, department_id: int) -> List[Course]:
        statement = select(Course).where(Course.department_id == department_id).order_by(Course.id)
        return list(self.session.exec(statement).all())

    def find_active_by_department(self, department_id: int) -> List[Course]:
        statement = select(Course).where(
            Course.department_id == department_id,
            Course.is_active == True,  # noqa: E712
        )
        return list(self.session.exec(statement).all())

    def find_active(self) -> List[Course]:
        statement = select(Course).where(Course.is_active == True).order_by(Course.title)  # noqa: E712
        return list(self.session.exec(statement).all())

    def find_by_credit_hours_between(self, min_credits: Decimal, max_credits: Decimal) -> List[Course]:
        statement = select(Course).where(
            Course.credit_hours >= min_credits,
            Course.credit_hours <= max_credits,
        ).order_by(Course.id)
        return list(self.session.exec(statement).all())

    def search(self, term: str) -> List[Course]:
        pattern = f"%{term}%"
        statement = select(Course).where(
            or_(
                Course.title.ilike(pattern),
                Course.course_code.ilike(pattern),
                Course.description.ilike(pattern),
            )
        ).order_by(Course.id)
        return list(self.session.exec(statement).all())

    def count_active(self) -> int:
        statement = select(func.count()).select_from(Course).where(Course.is_active == True)  # noqa: E712
        return self.session.exec(statement).one()

    def average_credit_hours(self, department_id: int) -> Optional[Decimal]:
        statement = select(func.avg(Course.credit_hours)).where(Course.department_id == department_id)
        value = self.session.exec(statement).one()
        return None if value is None else Decimal(str(value))


class StudentRepository(BaseRepository):
    model = Student

    def find_by_email(self, email: str) -> Optional[Student]:
        return self.session.exec(select(Student).where(Student.email == email)).first()

    def find_by_student_id_number(self, student_id_number: str) -> Optional[Student]:
        statement = select(Student).where(Student.student_id_number == student_id_number)
        return self.session.exec(statement).first()

    def lock(self, student_id: int) -> Optional[Student]:
        """Load a student with a row lock held until the transaction ends.

        Backends without row locks (SQLite) ignore FOR UPDATE and serialise
        writers at database level instead.
        """
        statement = (
            select(Student)
            .where(Student.id == student_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return self.session.exec(statement).first()

    def count_active(self) -> int:
        statement = select(func.count()).select_from(Student).where(Student.is_active == True)  # noqa: E712
        return self.session.exec(statement).one()

    def update_gpa(self, student: Student, gpa: Decimal) -> Student:
        student.gpa = gpa
        student.updated_at = datetime.utcnow()
        return self.save(student)

    def page_active(self, page: int, size: int) -> Tuple[List[Student], int]:
        criteria = (Student.student_status == StudentStatus.ACTIVE, Student.is_active == True)  # noqa: E712
        total = self.session.exec(select(func.count()).select_from(Student).where(*criteria)).one()
        statement = (
            select(Student)
            .where(*criteria)
            .order_by(Student.first_name, Student.id)
            .offset(page * size)
            .limit(size)
        )
        return list(self.session.exec(statement).all()), total

    def search(
        self,
        first_name: Optional[str] = None,
        last_name: Optional[str] = None,
        email: Optional[str] = None,
        status: Optional[StudentStatus] = None,
        min_gpa: Optional[Decimal] = None,
        max_gpa: Optional[Decimal] = None,
    ) -> List[Student]:
        statement = select(Student)
        if first_name:
            statement = statement.where(Student.first_name.ilike(f"%{first_name}%"))
        if last_name:
            statement = statement.where(Student.last_name.ilike(f"%{last_name}%"))
        if email:
            statement = statement.where(Student.email.ilike(f"%{email}%"))
        if status is not None:
            statement = statement.where(Student.student_status == status)
        if min_gpa is not None:
            statement = statement.where(Student.gpa >= min_gpa)
        if max_gpa is not None:
            statement = statement.where(Student.gpa <= max_gpa)
        return list(self.session.exec(statement.order_by(Student.id)).all())

    def enrollment_counts(self) -> List[Dict]:
        statement = (
            select(Student.id, Student.first_name, Student.last_name, func.count(Enrollment.id))
            .join(Enrollment, Enrollment.student_id == Student.id, isouter=True)
            .group_by(Student.id, Student.first_name, Student.last_name)
            .order_by(Student.id)
        )
        return [
            {
                "student_id": row[0],
                "student_name": f"{row[1]} {row[2]}",
                "enrollment_count": row[3],
            }
            for row in self.session.exec(statement).all()
        ]


class EnrollmentRepository(BaseRepository):
    model = Enrollment

    def find_by_tuple(self, student_id: int, course_id: int, semester: str, academic_year: int) -> Optional[Enrollment]:
        statement = select(Enrollment).where(
            Enrollment.student_id == student_id,
            Enrollment.course_id == course_id,
            Enrollment.semester == semester,
            Enrollment.academic_year == academic_year,
        )
        return self.session.exec(statement).first()

    def find_by_student(self, student_id: int) -> List[Enrollment]:
        statement = select(Enrollment).where(Enrollment.student_id == student_id).order_by(Enrollment.id)
        return list(self.session.exec(statement).all())

    def find_by_course(self, course_id: int) -> List[Enrollment]:
        statement = select(Enrollment).where(Enrollment.course_id == course_id).order_by(Enrollment.id)
        return list(self.session.exec(statement).all())

    def find_by_status(self, status: EnrollmentStatus) -> List[Enrollment]:
        statement = select(Enrollment).where(Enrollment.enrollment_status == status).order_by(Enrollment.id)
        return list(self.session.exec(statement).all())

    def find_graded(self) -> List[Enrollment]:
        statement = select(Enrollment).where(Enrollment.grade.is_not(None)).order_by(Enrollment.id)
        return list(self.session.exec(statement).all())

    def find_by_enrollment_date_between(self, start: date, end: date) -> List[Enrollment]:
        statement = select(Enrollment).where(
            Enrollment.enrollment_date >= start,
            Enrollment.enrollment_date <= end,
        ).order_by(Enrollment.id)
        return list(self.session.exec(statement).all())

    def find_ungraded_for_term(self, semester: str, academic_year: int) -> List[Enrollment]:
        statement = select(Enrollment).where(
            Enrollment.semester == semester,
            Enrollment.academic_year == academic_year,
            Enrollment.grade.is_(None),
        ).order_by(Enrollment.id)
        return list(self.session.exec(statement).all())

    def count_active_for_offering(self, course_id: int, semester: str, academic_year: int) -> int:
        statement = select(func.count()).select_from(Enrollment).where(
            Enrollment.course_id == course_id,
            Enrollment.semester == semester,
            Enrollment.academic_year == academic_year,
            Enrollment.enrollment_status == EnrollmentStatus.ACTIVE,
        )
        return self.session.exec(statement).one()

    def average_grade_points(self, student_id: int) -> Optional[Decimal]:
        """Mean grade points over the student's graded enrollments, or None if there are none"""
        # Averaged in Python: SQL AVG comes back as a float rounded to the column scale
        statement = select(Enrollment.grade_points).where(
            Enrollment.student_id == student_id,
            Enrollment.grade.is_not(None),
            Enrollment.grade_points.is_not(None),
        )
        points = [Decimal(str(value)) for value in self.session.exec(statement).all()]
        if not points:
            return None
        return sum(points, Decimal("0")) / len(points)

    def search(
        self,
        student_id: Optional[int] = None,
        course_id: Optional[int] = None,
        semester: Optional[str] = None,
        academic_year: Optional[int] = None,
        status: Optional[EnrollmentStatus] = None,
    ) -> List[Enrollment]:
        statement = select(Enrollment)
        if student_id is not None:
            statement = statement.where(Enrollment.student_id == student_id)
        if course_id is not None:
            statement = statement.where(Enrollment.course_id == course_id)
        if semester is not None:
            statement = statement.where(Enrollment.semester == semester)
        if academic_year is not None:
            statement = statement.where(Enrollment.academic_year == academic_year)
        if status is not None:
            statement = statement.where(Enrollment.enrollment_status == status)
        return list(self.session.exec(statement.order_by(Enrollment.id)).all())

    def course_statistics(self, academic_year: int) -> List[Dict]:
        statement = (
            select(
                Course.title,
                Course.course_code,
                func.count(Enrollment.id),
                func.sum(case((Enrollment.enrollment_status == EnrollmentStatus.COMPLETED, 1), else_=0)),
                func.avg(Enrollment.grade_points),
                func.sum(case((Enrollment.grade_points >= 2, 1), else_=0)),
            )
            .join(Course, Course.id == Enrollment.course_id)
            .where(Enrollment.academic_year == academic_year)
            .group_by(Course.id, Course.title, Course.course_code)
            .order_by(func.count(Enrollment.id).desc(), Course.id)
        )
        stats = []
        for title, code, total, completed, average, passed in self.session.exec(statement).all():
            stats.append({
                "course_title": title,
                "course_code": code,
                "enrollment_count": total,
                "completed_count": completed or 0,
                "average_grade": None if average is None else round(float(average), 2),
                "pass_rate": round((passed or 0) * 100.0 / total, 2) if total else 0.0,
            })
        return stats

    def student_performance(self, academic_year: int) -> List[Dict]:
        """Graded enrollment count and mean grade points per student for a year, best first"""
        statement = (
            select(
                Student.id,
                Student.first_name,
                Student.last_name,
                Student.email,
                func.count(Enrollment.id),
                func.avg(Enrollment.grade_points),
            )
            .join(Student, Student.id == Enrollment.student_id)
            .where(Enrollment.academic_year == academic_year, Enrollment.grade.is_not(None))
            .group_by(Student.id, Student.first_name, Student.last_name, Student.email)
            .order_by(func.avg(Enrollment.grade_points).desc(), Student.id)
        )
        return [
            {
                "student_id": student_id,
                "student_name": f"{first_name} {last_name}",
                "student_email": email,
                "total_enrollments": total,
                "average_grade": None if average is None else round(float(average), 2),
            }
            for student_id, first_name, last_name, email, total, average in self.session.exec(statement).all()
        ]

    def most_active_students(self, academic_year: int, limit: int) -> List[Dict]:
        statement = (
            select(Student.id, Student.first_name, Student.last_name, func.count(Enrollment.id))
            .join(Student, Student.id == Enrollment.student_id)
            .where(Enrollment.academic_year == academic_year)
            .group_by(Student.id, Student.first_name, Student.last_name)
            .order_by(func.count(Enrollment.id).desc(), Student.id)
            .limit(limit)
        )
        return [
            {
                "student_id": row[0],
                "student_name": f"{row[1]} {row[2]}",
                "total_enrollments": row[3],
            }
            for row in self.session.exec(statement).all()
        ]

    def find_low_attendance(self, min_attendance: Decimal) -> List[Enrollment]:
        statement = select(Enrollment).where(
            Enrollment.attendance_percentage < min_attendance,
            Enrollment.enrollment_status == EnrollmentStatus.ACTIVE,
        ).order_by(Enrollment.attendance_percentage, Enrollment.id)
        return list(self.session.exec(statement).all())

    def find_by_department_and_semester(self, department_id: int, semester: str) -> List[Enrollment]:
        statement = (
            select(Enrollment)
            .join(Course, Course.id == Enrollment.course_id)
            .where(Course.department_id == department_id, Enrollment.semester == semester)
            .order_by(Enrollment.id)
        )
        return list(self.session.exec(statement).all())
