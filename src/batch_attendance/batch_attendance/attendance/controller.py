from __future__ import annotations

from typing import Optional

from flask import Flask, g

from ..access.policy import ALL_ROLES, ATTENDANCE_EDITOR_ROLES, MARKER_ROLES
from ..common.validators import parse_date, parse_enum, parse_int, parse_optional_datetime
from ..common.web import json_body, ok, query_date, query_int, roles_required
from ..container import Container
from ..core.enums import AttendanceStatus, LearnerPerformance, Role
from ..core.exceptions import ValidationError
from ..daily_updates.codec import draft_from_dict
from .codec import assignments_from_list, digest_to_dict, record_to_dict, topics_from_list
from .model import DigestPatch, EntryInput
from .service import AttendanceFilter, LearnerAttendanceReport


def _entries(items) -> Optional[list[EntryInput]]:
    if items is None:
        return None
    if not isinstance(items, list):
        raise ValidationError("Attendance records must be a list")

    out: list[EntryInput] = []
    for item in items:
        if not isinstance(item, dict):
            raise ValidationError("Each attendance record must be an object")
        status = item.get("status")
        out.append(
            EntryInput(
                learner_id=parse_int(item.get("learner"), "Learner"),
                status=parse_enum(AttendanceStatus, status, "Status") if status is not None else AttendanceStatus.ABSENT,
                remarks=item.get("remarks"),
            )
        )
    return out


def _digest_patch(data) -> Optional[DigestPatch]:
    """``dailyUpdate`` payload -> patch; keys left out are not touched."""

    if data is None:
        return None
    if not isinstance(data, dict):
        raise ValidationError("Daily update must be an object")

    performance = data.get("learnerPerformance")
    return DigestPatch(
        covered_topics=topics_from_list(data["coveredTopics"]) if data.get("coveredTopics") is not None else None,
        trainer_remarks=data.get("trainerRemarks"),
        assignments_given=(
            assignments_from_list(data["assignmentsGiven"]) if data.get("assignmentsGiven") is not None else None
        ),
        learner_performance=(
            parse_enum(LearnerPerformance, performance, "Learner performance") if performance else None
        ),
        issues_description=data.get("issuesDescription"),
        daily_update=draft_from_dict(data) if data.get("dailySummary") is not None else None,
    )


def _report_to_dict(report: LearnerAttendanceReport) -> dict:
    s = report.statistics
    return {
        "learner": report.learner_id,
        "attendance": [
            {
                "date": row.work_date.isoformat(),
                "batch": row.batch_id,
                "classroom": row.classroom_id,
                "status": row.status.value,
                "remarks": row.remarks,
                "recorded": row.recorded,
                "dailyUpdate": digest_to_dict(row.digest),
            }
            for row in report.rows
        ],
        "statistics": {
            "totalDays": s.total_days,
            "presentDays": s.present_days,
            "absentDays": s.absent_days,
            "lateDays": s.late_days,
            "halfDays": s.half_days,
            "attendancePercentage": s.attendance_percentage,
        },
    }


def register(app: Flask, container: Container) -> None:
    svc = container.attendance_service

    @app.route("/api/attendance", methods=["POST"], endpoint="mark_attendance")
    @roles_required(MARKER_ROLES)
    def mark_attendance():
        data = json_body()
        if data.get("batch") is None or not data.get("date") or data.get("classroom") is None:
            raise ValidationError("Batch, date and classroom are required")
        entries = _entries(data.get("attendanceRecords"))

        record = svc.mark_attendance(
            g.principal,
            batch_id=parse_int(data["batch"], "Batch"),
            work_date=parse_date(data["date"], "Date"),
            classroom_id=parse_int(data["classroom"], "Classroom"),
            entries=entries,
            session_start=parse_optional_datetime(data.get("sessionStartTime"), "Session start time"),
            session_end=parse_optional_datetime(data.get("sessionEndTime"), "Session end time"),
            digest=_digest_patch(data.get("dailyUpdate")),
        )
        return ok(record_to_dict(record), status=201, message="Attendance marked successfully")

    @app.route("/api/attendance", methods=["GET"], endpoint="list_attendance")
    @roles_required(ALL_ROLES)
    def list_attendance():
        limit = query_int("limit") or container.page_limit
        page = max(1, query_int("page") or 1)
        records = svc.list_attendance(
            g.principal,
            AttendanceFilter(
                batch_id=query_int("batch"),
                on_date=query_date("date"),
                start_date=query_date("startDate"),
                end_date=query_date("endDate"),
                limit=limit,
                offset=(page - 1) * limit,
            ),
        )
        return ok([record_to_dict(r) for r in records], count=len(records), page=page)

    @app.route("/api/attendance/<int:attendance_id>", methods=["GET"], endpoint="get_attendance")
    @roles_required(ALL_ROLES)
    def get_attendance(attendance_id: int):
        return ok(record_to_dict(svc.get_attendance(g.principal, attendance_id)))

    @app.route("/api/attendance/<int:attendance_id>", methods=["PUT"], endpoint="update_attendance")
    @roles_required(ATTENDANCE_EDITOR_ROLES)
    def update_attendance(attendance_id: int):
        data = json_body()
        record = svc.update_attendance(
            g.principal,
            attendance_id,
            entries=_entries(data.get("attendanceRecords")),
            digest_patch=_digest_patch(data.get("dailyUpdate")),
            session_start=parse_optional_datetime(data.get("sessionStartTime"), "Session start time"),
            session_end=parse_optional_datetime(data.get("sessionEndTime"), "Session end time"),
        )
        return ok(record_to_dict(record), message="Attendance updated successfully")

    @app.route("/api/attendance/<int:attendance_id>/lock", methods=["POST"], endpoint="lock_attendance")
    @roles_required({Role.ADMIN})
    def lock_attendance(attendance_id: int):
        record = svc.lock_attendance(g.principal, attendance_id)
        return ok(record_to_dict(record), message="Attendance locked successfully")

    @app.route("/api/attendance/learner/<int:learner_id>", methods=["GET"], endpoint="learner_attendance")
    @roles_required(ALL_ROLES)
    def learner_attendance(learner_id: int):
        report = svc.get_learner_attendance(
            g.principal,
            learner_id,
            start_date=query_date("startDate"),
            end_date=query_date("endDate"),
            batch_id=query_int("batch"),
        )
        return ok(_report_to_dict(report))
