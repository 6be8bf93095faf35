from __future__ import annotations

from typing import Optional

from flask import Flask, g, request

from ..access.policy import ALL_ROLES, BATCH_CREATOR_ROLES, BATCH_OVERSIGHT_ROLES
from ..attendance.codec import record_to_dict
from ..common.datetime_utils import now_local
from ..common.validators import parse_date, parse_enum, parse_int, parse_optional_date_field
from ..common.web import json_body, ok, query_date, roles_required
from ..container import Container
from ..core.enums import BatchStatus
from ..core.exceptions import ValidationError
from ..stats.service import BatchStats
from .codec import batch_to_dict


def _learner_ids(value) -> Optional[list[int]]:
    if value is None:
        return None
    if not isinstance(value, list):
        raise ValidationError("learners must be a list")
    return [parse_int(v, "Learner") for v in value]


def _stats_to_dict(stats: BatchStats) -> dict:
    b = stats.batch
    return {
        "batch": {
            "id": b.batch_id,
            "name": b.name,
            "code": b.code,
            "status": b.status.value,
            "progress": stats.progress,
            "durationDays": stats.duration_days,
            "startDate": b.start_date.isoformat(),
            "endDate": b.end_date.isoformat(),
        },
        "attendanceStats": [{"status": s.value, "count": n} for s, n in stats.status_counts.items()],
        "learnerAttendance": [
            {
                "learner": la.learner_id,
                "totalDays": la.total_days,
                "presentDays": la.present_days,
                "attendancePercentage": la.attendance_percentage,
            }
            for la in stats.learners
        ],
        "averageAttendance": stats.average_attendance,
        "summary": {
            "totalLearners": stats.total_learners,
            "daysCompleted": stats.days_completed,
            "totalDuration": stats.duration_days,
            "recordedDays": stats.total_records,
        },
    }


def register(app: Flask, container: Container) -> None:
    svc = container.batch_service

    @app.route("/api/batches", methods=["POST"], endpoint="create_batch")
    @roles_required(BATCH_CREATOR_ROLES)
    def create_batch():
        data = json_body()
        if not data.get("startDate") or not data.get("endDate"):
            raise ValidationError("Start date and end date are required")
        status = data.get("status")

        batch = svc.create_batch(
            g.principal,
            code=data.get("code"),
            name=data.get("name"),
            client_name=data.get("clientName"),
            description=data.get("description"),
            start_date=parse_date(data["startDate"], "Start date"),
            end_date=parse_date(data["endDate"], "End date"),
            learner_ids=_learner_ids(data.get("learners")) or [],
            status=parse_enum(BatchStatus, status, "Status") if status else BatchStatus.PLANNING,
        )
        return ok(batch_to_dict(batch, today=now_local().date()), status=201, message="Batch created successfully")

    @app.route("/api/batches", methods=["GET"], endpoint="list_batches")
    @roles_required(ALL_ROLES)
    def list_batches():
        status = request.args.get("status")
        batches = svc.list_batches(
            g.principal,
            status=parse_enum(BatchStatus, status, "Status") if status else None,
            search=request.args.get("search"),
        )
        today = now_local().date()
        return ok([batch_to_dict(b, today=today) for b in batches], count=len(batches))

    @app.route("/api/batches/<int:batch_id>", methods=["GET"], endpoint="get_batch")
    @roles_required(ALL_ROLES)
    def get_batch(batch_id: int):
        return ok(batch_to_dict(svc.get_batch(g.principal, batch_id), today=now_local().date()))

    @app.route("/api/batches/<int:batch_id>", methods=["PUT"], endpoint="update_batch")
    @roles_required(BATCH_CREATOR_ROLES)
    def update_batch(batch_id: int):
        data = json_body()
        status = data.get("status")
        batch = svc.update_batch(
            g.principal,
            batch_id,
            name=data.get("name"),
            client_name=data.get("clientName"),
            description=data.get("description"),
            start_date=parse_optional_date_field(data.get("startDate"), "Start date"),
            end_date=parse_optional_date_field(data.get("endDate"), "End date"),
            status=parse_enum(BatchStatus, status, "Status") if status else None,
            learner_ids=_learner_ids(data.get("learners")),
        )
        return ok(batch_to_dict(batch, today=now_local().date()), message="Batch updated successfully")

    @app.route("/api/batches/<int:batch_id>/stats", methods=["GET"], endpoint="batch_stats")
    @roles_required(ALL_ROLES)
    def batch_stats(batch_id: int):
        return ok(_stats_to_dict(container.stats_service.batch_stats(g.principal, batch_id)))

    @app.route("/api/batches/<int:batch_id>/attendance", methods=["GET"], endpoint="batch_attendance")
    @roles_required(BATCH_OVERSIGHT_ROLES)
    def batch_attendance(batch_id: int):
        records = svc.get_batch_attendance(
            g.principal,
            batch_id,
            start_date=query_date("startDate"),
            end_date=query_date("endDate"),
        )
        return ok([record_to_dict(r) for r in records], count=len(records))
