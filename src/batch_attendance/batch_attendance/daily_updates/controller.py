from __future__ import annotations

from flask import Flask, g, request

from ..access.policy import ALL_ROLES, ATTENDANCE_EDITOR_ROLES, BATCH_OVERSIGHT_ROLES, FEEDBACK_ROLES, MARKER_ROLES
from ..attendance.codec import record_to_dict
from ..common.validators import parse_date, parse_int
from ..common.web import json_body, ok, query_date, query_int, roles_required
from ..container import Container
from ..core.enums import Role
from ..core.exceptions import ValidationError
from ..stats.aggregator import DailyUpdateSummary
from .codec import draft_from_dict, update_to_dict
from .service import DailyUpdateFilter


def _summary_to_dict(s: DailyUpdateSummary) -> dict:
    return {
        "totalUpdates": s.total_updates,
        "moodStats": s.mood_stats,
        "challengeTypes": s.challenge_types,
        "averageCompletion": s.average_completion,
        "recentUpdates": [update_to_dict(u) for u in s.recent_updates],
    }


def register(app: Flask, container: Container) -> None:
    svc = container.daily_update_service

    @app.route("/api/daily-updates", methods=["POST"], endpoint="create_daily_update")
    @roles_required(MARKER_ROLES)
    def create_daily_update():
        data = json_body()
        if data.get("batch") is None or not data.get("date"):
            raise ValidationError("Batch and date are required")

        update = svc.create_daily_update(
            g.principal,
            batch_id=parse_int(data["batch"], "Batch"),
            work_date=parse_date(data["date"], "Date"),
            draft=draft_from_dict(data),
        )
        return ok(update_to_dict(update), status=201, message="Daily update created successfully")

    @app.route("/api/daily-updates", methods=["GET"], endpoint="list_daily_updates")
    @roles_required(ALL_ROLES)
    def list_daily_updates():
        limit = query_int("limit") or container.page_limit
        page = max(1, query_int("page") or 1)
        updates = svc.list_daily_updates(
            g.principal,
            DailyUpdateFilter(
                batch_id=query_int("batch"),
                start_date=query_date("startDate"),
                end_date=query_date("endDate"),
                search=request.args.get("search"),
                limit=limit,
                offset=(page - 1) * limit,
            ),
        )
        return ok([update_to_dict(u) for u in updates], count=len(updates), page=page)

    @app.route("/api/daily-updates/<int:update_id>", methods=["GET"], endpoint="get_daily_update")
    @roles_required(ALL_ROLES)
    def get_daily_update(update_id: int):
        view = svc.get_daily_update(g.principal, update_id)
        data = update_to_dict(view.update)
        data["attendance"] = record_to_dict(view.attendance) if view.attendance else None
        return ok(data)

    @app.route("/api/daily-updates/<int:update_id>", methods=["PUT"], endpoint="update_daily_update")
    @roles_required(ATTENDANCE_EDITOR_ROLES)
    def update_daily_update(update_id: int):
        update = svc.update_daily_update(g.principal, update_id, draft_from_dict(json_body()))
        return ok(update_to_dict(update), message="Daily update updated successfully")

    @app.route("/api/daily-updates/<int:update_id>/feedback", methods=["POST"], endpoint="add_daily_update_feedback")
    @roles_required(FEEDBACK_ROLES)
    def add_feedback(update_id: int):
        data = json_body()
        suggestions = data.get("suggestions")
        if suggestions is not None and not isinstance(suggestions, list):
            raise ValidationError("suggestions must be a list")
        rating = data.get("rating")

        update = svc.add_feedback(
            g.principal,
            update_id,
            comment=data.get("comment"),
            suggestions=[str(s) for s in suggestions or []],
            rating=parse_int(rating, "Rating") if rating is not None else None,
        )
        return ok(update_to_dict(update), message="Feedback added successfully")

    @app.route("/api/daily-updates/batch/<int:batch_id>/summary", methods=["GET"], endpoint="daily_update_summary")
    @roles_required(BATCH_OVERSIGHT_ROLES)
    def batch_summary(batch_id: int):
        summary = svc.summarize_batch(
            g.principal,
            batch_id,
            start_date=query_date("startDate"),
            end_date=query_date("endDate"),
        )
        return ok(_summary_to_dict(summary))

    @app.route("/api/daily-updates/<int:update_id>/resync", methods=["POST"], endpoint="resync_daily_update")
    @roles_required({Role.ADMIN})
    def resync(update_id: int):
        record = svc.resync_attendance_digest(g.principal, update_id)
        if record is None:
            return ok(None, message="No attendance recorded for this date; nothing to resync")
        return ok(record_to_dict(record), message="Attendance digest resynced")
