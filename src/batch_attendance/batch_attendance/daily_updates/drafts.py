from __future__ import annotations

from dataclasses import replace
from datetime import date, datetime

from ..common.validators import require_in_range, require_max_length, require_non_empty
from ..core.constants import MAX_DAILY_SUMMARY_LENGTH
from ..core.enums import DEFAULT_VISIBILITY, VISIBILITY_ROLES, DailyUpdateStatus, Mood
from ..core.exceptions import ValidationError
from .model import DailyUpdate, DailyUpdateDraft


def validate_draft(draft: DailyUpdateDraft, *, require_summary: bool) -> DailyUpdateDraft:
    """Check a draft and return it with the summary trimmed."""

    summary = draft.daily_summary
    if require_summary or summary is not None:
        summary = require_non_empty(summary, "Daily summary")
        require_max_length(summary, "Daily summary", MAX_DAILY_SUMMARY_LENGTH)

    require_in_range(draft.completion_percentage, "Completion percentage", 0, 100)

    if draft.visibility is not None:
        invalid = set(draft.visibility) - VISIBILITY_ROLES
        if invalid:
            names = ", ".join(sorted(r.value for r in invalid))
            raise ValidationError(f"Visibility cannot include: {names}")

    return replace(draft, daily_summary=summary)


def new_update(draft: DailyUpdateDraft, *, batch_id: int, work_date: date, posted_by: int, now: datetime) -> DailyUpdate:
    draft = validate_draft(draft, require_summary=True)
    return DailyUpdate(
        update_id=0,
        batch_id=int(batch_id),
        work_date=work_date,
        posted_by=int(posted_by),
        daily_summary=draft.daily_summary,
        topics_covered=draft.topics_covered or (),
        learner_highlights=draft.learner_highlights or (),
        challenges=draft.challenges or (),
        overall_mood=draft.overall_mood or Mood.NEUTRAL,
        completion_percentage=float(draft.completion_percentage or 0),
        visibility=frozenset(draft.visibility) if draft.visibility is not None else frozenset(DEFAULT_VISIBILITY),
        status=draft.status or DailyUpdateStatus.PUBLISHED,
        created_at=now,
        updated_at=now,
    )


def apply_draft(update: DailyUpdate, draft: DailyUpdateDraft, *, now: datetime) -> DailyUpdate:
    """Patch semantics: only fields set on the draft change."""

    draft = validate_draft(draft, require_summary=False)
    changes = {}
    for name in (
        "daily_summary",
        "topics_covered",
        "learner_highlights",
        "challenges",
        "overall_mood",
        "status",
    ):
        value = getattr(draft, name)
        if value is not None:
            changes[name] = value
    if draft.completion_percentage is not None:
        changes["completion_percentage"] = float(draft.completion_percentage)
    if draft.visibility is not None:
        changes["visibility"] = frozenset(draft.visibility)
    return replace(update, updated_at=now, **changes)


def changed_fields(before: DailyUpdate, after: DailyUpdate) -> list[str]:
    return [
        name
        for name in (
            "daily_summary",
            "topics_covered",
            "learner_highlights",
            "challenges",
            "overall_mood",
            "completion_percentage",
            "visibility",
            "status",
        )
        if getattr(before, name) != getattr(after, name)
    ]


def touches_projection(before: DailyUpdate, after: DailyUpdate) -> bool:
    return any(
        getattr(before, name) != getattr(after, name)
        for name in ("daily_summary", "topics_covered", "overall_mood", "challenges")
    )
