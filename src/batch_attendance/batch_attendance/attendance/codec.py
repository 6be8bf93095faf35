from __future__ import annotations

from datetime import date, datetime
from typing import Any, Iterable, Optional

from ..common.validators import parse_optional_date_field, parse_optional_int
from ..core.exceptions import ValidationError
from .model import AttendanceEntry, AttendanceRecord, Assignment, CoveredTopic, DailyDigest


def _iso(value: Optional[date | datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def topic_to_dict(t: CoveredTopic) -> dict:
    return {"topic": t.topic, "description": t.description, "duration": t.duration_minutes}


def topic_from_dict(d: dict) -> CoveredTopic:
    if not isinstance(d, dict):
        raise ValidationError("Each covered topic must be an object")
    return CoveredTopic(
        topic=str(d.get("topic") or "").strip(),
        description=d.get("description"),
        duration_minutes=parse_optional_int(d.get("duration"), "Topic duration"),
    )


def topics_from_list(items: Optional[Iterable[dict]]) -> tuple[CoveredTopic, ...]:
    return tuple(topic_from_dict(i) for i in (items or []))


def assignment_to_dict(a: Assignment) -> dict:
    return {"title": a.title, "dueDate": _iso(a.due_date), "description": a.description}


def assignment_from_dict(d: dict) -> Assignment:
    if not isinstance(d, dict):
        raise ValidationError("Each assignment must be an object")
    return Assignment(
        title=str(d.get("title") or "").strip(),
        due_date=parse_optional_date_field(d.get("dueDate"), "Assignment due date"),
        description=d.get("description"),
    )


def assignments_from_list(items: Optional[Iterable[dict]]) -> tuple[Assignment, ...]:
    return tuple(assignment_from_dict(i) for i in (items or []))


def digest_to_dict(d: DailyDigest) -> dict:
    return {
        "coveredTopics": [topic_to_dict(t) for t in d.covered_topics],
        "trainerRemarks": d.trainer_remarks,
        "assignmentsGiven": [assignment_to_dict(a) for a in d.assignments_given],
        "learnerPerformance": d.learner_performance.value,
        "issuesDescription": d.issues_description,
    }


def entry_to_dict(e: AttendanceEntry) -> dict:
    return {
        "learner": e.learner_id,
        "status": e.status.value,
        "remarks": e.remarks,
        "markedBy": e.marked_by,
        "markedAt": _iso(e.marked_at),
    }


def record_to_dict(r: AttendanceRecord) -> dict[str, Any]:
    return {
        "id": r.attendance_id,
        "batch": r.batch_id,
        "date": _iso(r.work_date),
        "classroom": r.classroom_id,
        "attendanceRecords": [entry_to_dict(e) for e in r.entries],
        "dailyUpdate": digest_to_dict(r.digest),
        "sessionStartTime": _iso(r.session_start),
        "sessionEndTime": _iso(r.session_end),
        "sessionDuration": f"{r.session_duration_hours:.2f}",
        "presentCount": r.present_count,
        "absentCount": r.absent_count,
        "attendancePercentage": r.attendance_percentage,
        "isLocked": r.is_locked,
        "lockedAt": _iso(r.locked_at),
        "lockedBy": r.locked_by,
        "createdBy": r.created_by,
        "updatedBy": r.updated_by,
        "createdAt": _iso(r.created_at),
        "updatedAt": _iso(r.updated_at),
    }
