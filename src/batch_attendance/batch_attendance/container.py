from __future__ import annotations

from dataclasses import dataclass

from .attendance.mysql_attendance_repository import MySQLAttendanceRepository
from .attendance.repository import AttendanceRepository
from .attendance.service import AttendanceService
from .audit.mysql_audit_sink import MySQLAuditSink
from .audit.sink import AuditTrail
from .batches.mysql_batch_repository import MySQLBatchRepository
from .batches.repository import BatchRepository
from .batches.service import BatchService
from .classrooms.mysql_classroom_repository import MySQLClassroomRepository
from .classrooms.repository import ClassroomRepository
from .core.constants import DEFAULT_AUTO_LOCK_HOURS, DEFAULT_PAGE_LIMIT
from .daily_updates.mysql_daily_update_repository import MySQLDailyUpdateRepository
from .daily_updates.repository import DailyUpdateRepository
from .daily_updates.service import DailyUpdateService
from .database.connection import DBConfig, DatabaseConnection, TransactionManager
from .stats.service import StatisticsService
from .users.mysql_user_repository import MySQLUserRepository
from .users.repository import UserRepository


@dataclass(frozen=True)
class Container:
    users_repo: UserRepository
    batches_repo: BatchRepository
    classrooms_repo: ClassroomRepository
    attendance_repo: AttendanceRepository
    daily_updates_repo: DailyUpdateRepository

    attendance_service: AttendanceService
    daily_update_service: DailyUpdateService
    batch_service: BatchService
    stats_service: StatisticsService

    page_limit: int = DEFAULT_PAGE_LIMIT


def wire_services(
    *,
    users_repo: UserRepository,
    batches_repo: BatchRepository,
    classrooms_repo: ClassroomRepository,
    attendance_repo: AttendanceRepository,
    daily_updates_repo: DailyUpdateRepository,
    transactions: TransactionManager | None = None,
    audit: AuditTrail | None = None,
    auto_lock_hours: int = DEFAULT_AUTO_LOCK_HOURS,
    page_limit: int = DEFAULT_PAGE_LIMIT,
) -> Container:
    """Build the services over any set of repositories (MySQL or in-memory)."""

    attendance_service = AttendanceService(
        attendance_repo,
        daily_updates_repo,
        batches_repo,
        classrooms_repo,
        transactions=transactions,
        audit=audit,
        auto_lock_hours=auto_lock_hours,
    )
    daily_update_service = DailyUpdateService(
        daily_updates_repo,
        attendance_repo,
        batches_repo,
        users_repo,
        transactions=transactions,
        audit=audit,
        auto_lock_hours=auto_lock_hours,
    )
    batch_service = BatchService(
        batches_repo,
        users_repo,
        attendance_repo,
        transactions=transactions,
        audit=audit,
        auto_lock_hours=auto_lock_hours,
    )
    stats_service = StatisticsService(batches_repo, attendance_repo)

    return Container(
        users_repo=users_repo,
        batches_repo=batches_repo,
        classrooms_repo=classrooms_repo,
        attendance_repo=attendance_repo,
        daily_updates_repo=daily_updates_repo,
        attendance_service=attendance_service,
        daily_update_service=daily_update_service,
        batch_service=batch_service,
        stats_service=stats_service,
        page_limit=int(page_limit),
    )


def build_container(
    *,
    db_config: dict,
    auto_lock_hours: int = DEFAULT_AUTO_LOCK_HOURS,
    page_limit: int = DEFAULT_PAGE_LIMIT,
) -> Container:
    config = DBConfig(
        host=str(db_config["host"]),
        port=int(db_config.get("port", 3306)),
        user=str(db_config["user"]),
        password=str(db_config["password"]),
        database=str(db_config["database"]),
    )
    conn = DatabaseConnection(config)

    return wire_services(
        users_repo=MySQLUserRepository(conn),
        batches_repo=MySQLBatchRepository(conn),
        classrooms_repo=MySQLClassroomRepository(conn),
        attendance_repo=MySQLAttendanceRepository(conn),
        daily_updates_repo=MySQLDailyUpdateRepository(conn),
        transactions=TransactionManager(conn),
        audit=AuditTrail(MySQLAuditSink(conn)),
        auto_lock_hours=auto_lock_hours,
        page_limit=page_limit,
    )
