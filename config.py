import os
from dataclasses import dataclass
from functools import lru_cache

from dotenv import load_dotenv


@dataclass(frozen=True)
class Settings:
    """Application settings read from the environment"""
    database_url: str
    sql_echo: bool
    log_level: str
    log_file: str
    course_capacity: int
    bulk_operation_timeout: float
    seed_database: bool


def _as_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


@lru_cache()
def get_settings() -> Settings:
    """Get application configuration from environment variables"""
    load_dotenv()
    return Settings(
        database_url=os.getenv("DATABASE_URL", "sqlite:///./student_course.db"),
        sql_echo=_as_bool(os.getenv("SQL_ECHO", "False")),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        log_file=os.getenv("LOG_FILE", "api.log"),
        course_capacity=int(os.getenv("COURSE_CAPACITY", 30)),
        bulk_operation_timeout=float(os.getenv("BULK_OPERATION_TIMEOUT", 30)),
        seed_database=_as_bool(os.getenv("SEED_DATABASE", "False")),
    )
