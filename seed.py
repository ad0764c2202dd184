import logging
from datetime import date
from decimal import Decimal

from sqlmodel import Session

from database import unit_of_work
from models import (
    Course,
    CourseLevel,
    Department,
    DepartmentType,
    Enrollment,
    EnrollmentStatus,
    Guardian,
    Student,
)
from repositories import CourseRepository, DepartmentRepository, EnrollmentRepository, StudentRepository

logger = logging.getLogger(__name__)


def seed_database(session: Session) -> bool:
    """Insert a small demo data set into an empty database.

    Returns False without touching anything when departments already exist.
    """
    departments = DepartmentRepository(session)
    if departments.count() > 0:
        logger.info("Database already contains data. Skipping initialization.")
        return False

    logger.info("Starting database initialization...")
    with unit_of_work(session):
        cs, math, english = departments.save_all([
            Department(
                name="Computer Science",
                code="CS",
                address="123 Tech Building",
                head_of_department="Dr. John Smith",
                department_type=DepartmentType.ENGINEERING,
            ),
            Department(
                name="Mathematics",
                code="MATH",
                address="456 Science Hall",
                head_of_department="Dr. Sarah Johnson",
                department_type=DepartmentType.SCIENCE,
            ),
            Department(
                name="English Literature",
                code="ENG",
                address="789 Arts Center",
                head_of_department="Dr. Michael Brown",
                department_type=DepartmentType.ARTS,
            ),
        ])

        cs101, cs201, math101, eng101 = CourseRepository(session).save_all([
            Course(
                title="Introduction to Programming",
                course_code="CS101",
                description="Fundamentals of programming using Python",
                credit_hours=Decimal("3.0"),
                course_level=CourseLevel.BEGINNER,
                department_id=cs.id,
            ),
            Course(
                title="Data Structures",
                course_code="CS201",
                description="Lists, trees, graphs and hash tables",
                credit_hours=Decimal("4.0"),
                course_level=CourseLevel.INTERMEDIATE,
                department_id=cs.id,
            ),
            Course(
                title="Calculus I",
                course_code="MATH101",
                description="Limits, derivatives and integrals",
                credit_hours=Decimal("4.0"),
                course_level=CourseLevel.BEGINNER,
                department_id=math.id,
            ),
            Course(
                title="World Literature",
                course_code="ENG101",
                credit_hours=Decimal("3.0"),
                course_level=CourseLevel.BEGINNER,
                department_id=english.id,
            ),
        ])

        alice = Student(
            first_name="Alice",
            last_name="Johnson",
            email="alice.johnson@university.edu",
            student_id_number="STU001",
            date_of_birth=date(2002, 3, 15),
            admission_date=date(2022, 9, 1),
        )
        alice.set_guardian(Guardian(name="Robert Johnson", email="robert.johnson@example.com", mobile="+1-555-0101"))
        bob = Student(
            first_name="Bob",
            last_name="Williams",
            email="bob.williams@university.edu",
            student_id_number="STU002",
            date_of_birth=date(2001, 7, 22),
            admission_date=date(2021, 9, 1),
        )
        bob.set_guardian(Guardian(name="Linda Williams", mobile="+1-555-0102"))
        alice, bob = StudentRepository(session).save_all([alice, bob])

        EnrollmentRepository(session).save_all([
            Enrollment(student_id=alice.id, course_id=cs101.id, semester="Fall 2024", academic_year=2024,
                       attendance_percentage=Decimal("95.00")),
            Enrollment(student_id=alice.id, course_id=math101.id, semester="Fall 2024", academic_year=2024,
                       attendance_percentage=Decimal("82.50")),
            Enrollment(student_id=bob.id, course_id=cs201.id, semester="Fall 2024", academic_year=2024,
                       attendance_percentage=Decimal("71.00")),
            Enrollment(student_id=bob.id, course_id=eng101.id, semester="Spring 2025", academic_year=2025,
                       enrollment_status=EnrollmentStatus.ACTIVE),
        ])
    logger.info("Database initialization completed successfully!")
    return True
