from __future__ import annotations

from enum import Enum


class Role(str, Enum):
    """User roles used for authorization."""

    ADMIN = "ADMIN"
    MANAGER = "MANAGER"
    TEAM_LEADER = "TEAM_LEADER"
    TRAINER = "TRAINER"
    TA = "TA"
    LEARNER = "LEARNER"


class BatchStatus(str, Enum):
    PLANNING = "PLANNING"
    ONGOING = "ONGOING"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class AttendanceStatus(str, Enum):
    """Per-learner status stored on an attendance entry."""

    PRESENT = "PRESENT"
    ABSENT = "ABSENT"
    LATE = "LATE"
    HALF_DAY = "HALF_DAY"
    LEAVE = "LEAVE"
    HOLIDAY = "HOLIDAY"


class LearnerPerformance(str, Enum):
    EXCELLENT = "EXCELLENT"
    GOOD = "GOOD"
    AVERAGE = "AVERAGE"
    NEEDS_IMPROVEMENT = "NEEDS_IMPROVEMENT"
    POOR = "POOR"


class Mood(str, Enum):
    """Overall mood of the day reported by the trainer."""

    EXCELLENT = "EXCELLENT"
    GOOD = "GOOD"
    NEUTRAL = "NEUTRAL"
    CHALLENGING = "CHALLENGING"
    DIFFICULT = "DIFFICULT"


class ChallengeType(str, Enum):
    TECHNICAL = "TECHNICAL"
    CONTENT = "CONTENT"
    LEARNER = "LEARNER"
    INFRASTRUCTURE = "INFRASTRUCTURE"
    SCHEDULE = "SCHEDULE"
    OTHER = "OTHER"


class Severity(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


class ChallengeStatus(str, Enum):
    OPEN = "OPEN"
    IN_PROGRESS = "IN_PROGRESS"
    RESOLVED = "RESOLVED"
    ESCALATED = "ESCALATED"


class DailyUpdateStatus(str, Enum):
    DRAFT = "DRAFT"
    PUBLISHED = "PUBLISHED"
    ARCHIVED = "ARCHIVED"


class AuditAction(str, Enum):
    CREATE = "CREATE"
    UPDATE = "UPDATE"
    ATTENDANCE_MARK = "ATTENDANCE_MARK"
    ATTENDANCE_UPDATE = "ATTENDANCE_UPDATE"
    ATTENDANCE_LOCK = "ATTENDANCE_LOCK"
    BATCH_ASSIGNMENT = "BATCH_ASSIGNMENT"
    DAILY_UPDATE_CREATE = "DAILY_UPDATE_CREATE"
    DAILY_UPDATE_UPDATE = "DAILY_UPDATE_UPDATE"


class AuditEntity(str, Enum):
    USER = "USER"
    BATCH = "BATCH"
    ATTENDANCE = "ATTENDANCE"
    DAILY_UPDATE = "DAILY_UPDATE"
    CLASSROOM = "CLASSROOM"


# Roles that may appear in a daily update's visibility set.
VISIBILITY_ROLES = frozenset({Role.MANAGER, Role.TEAM_LEADER, Role.TRAINER, Role.TA})
DEFAULT_VISIBILITY = (Role.MANAGER, Role.TEAM_LEADER)
