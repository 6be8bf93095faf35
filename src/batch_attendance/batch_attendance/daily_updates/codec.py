from __future__ import annotations

from typing import Any, Iterable, Optional

from ..attendance.codec import topic_to_dict, topics_from_list
from ..common.validators import parse_enum, parse_optional_int, require_in_range
from ..core.enums import ChallengeStatus, ChallengeType, DailyUpdateStatus, Mood, Role, Severity
from ..core.exceptions import ValidationError
from .model import Challenge, DailyUpdate, DailyUpdateDraft, Feedback, LearnerHighlight


def _opt_enum(enum_cls, value, field_name: str):
    if value in (None, ""):
        return None
    return parse_enum(enum_cls, value, field_name)


def highlight_to_dict(h: LearnerHighlight) -> dict:
    return {
        "learner": h.learner_id,
        "achievement": h.achievement,
        "improvementArea": h.improvement_area,
        "remarks": h.remarks,
    }


def highlight_from_dict(d: dict) -> LearnerHighlight:
    if not isinstance(d, dict):
        raise ValidationError("Each learner highlight must be an object")
    return LearnerHighlight(
        learner_id=parse_optional_int(d.get("learner"), "Highlight learner"),
        achievement=d.get("achievement"),
        improvement_area=d.get("improvementArea"),
        remarks=d.get("remarks"),
    )


def highlights_from_list(items: Optional[Iterable[dict]]) -> tuple[LearnerHighlight, ...]:
    return tuple(highlight_from_dict(i) for i in (items or []))


def challenge_to_dict(c: Challenge) -> dict:
    return {
        "type": c.type.value,
        "description": c.description,
        "severity": c.severity.value if c.severity else None,
        "resolution": c.resolution,
        "status": c.status.value if c.status else None,
    }


def challenge_from_dict(d: dict) -> Challenge:
    if not isinstance(d, dict):
        raise ValidationError("Each challenge must be an object")
    return Challenge(
        type=_opt_enum(ChallengeType, d.get("type"), "Challenge type") or ChallengeType.OTHER,
        description=d.get("description"),
        severity=_opt_enum(Severity, d.get("severity"), "Challenge severity"),
        resolution=d.get("resolution"),
        status=_opt_enum(ChallengeStatus, d.get("status"), "Challenge status"),
    )


def challenges_from_list(items: Optional[Iterable[dict]]) -> tuple[Challenge, ...]:
    return tuple(challenge_from_dict(i) for i in (items or []))


def feedback_to_dict(f: Feedback) -> dict:
    return {
        "givenBy": f.given_by,
        "comment": f.comment,
        "suggestions": list(f.suggestions),
        "rating": f.rating,
        "givenAt": f.given_at.isoformat(),
    }


def update_to_dict(u: DailyUpdate) -> dict[str, Any]:
    return {
        "id": u.update_id,
        "batch": u.batch_id,
        "date": u.work_date.isoformat(),
        "postedBy": u.posted_by,
        "dailySummary": u.daily_summary,
        "topicsCovered": [topic_to_dict(t) for t in u.topics_covered],
        "learnerHighlights": [highlight_to_dict(h) for h in u.learner_highlights],
        "challenges": [challenge_to_dict(c) for c in u.challenges],
        "overallMood": u.overall_mood.value,
        "completionPercentage": u.completion_percentage,
        "visibility": sorted(r.value for r in u.visibility),
        "status": u.status.value,
        "feedback": [feedback_to_dict(f) for f in u.feedback],
        "createdAt": u.created_at.isoformat(),
        "updatedAt": u.updated_at.isoformat() if u.updated_at else None,
    }


def _optional_list(d: dict, key: str) -> Optional[list]:
    value = d.get(key)
    if value is None:
        return None
    if not isinstance(value, list):
        raise ValidationError(f"{key} must be a list")
    return value


def draft_from_dict(d: dict) -> DailyUpdateDraft:
    """Request payload -> draft. Keys left out stay None (patch semantics)."""

    topics = _optional_list(d, "topicsCovered")
    highlights = _optional_list(d, "learnerHighlights")
    challenges = _optional_list(d, "challenges")
    visibility = _optional_list(d, "visibility")

    completion = d.get("completionPercentage")
    if completion in (None, ""):
        completion = None
    else:
        completion = float(require_in_range(completion, "Completion percentage", 0, 100))

    return DailyUpdateDraft(
        daily_summary=d.get("dailySummary"),
        topics_covered=topics_from_list(topics) if topics is not None else None,
        learner_highlights=highlights_from_list(highlights) if highlights is not None else None,
        challenges=challenges_from_list(challenges) if challenges is not None else None,
        overall_mood=_opt_enum(Mood, d.get("overallMood"), "Overall mood"),
        completion_percentage=completion,
        visibility=frozenset(parse_enum(Role, v, "Visibility") for v in visibility) if visibility is not None else None,
        status=_opt_enum(DailyUpdateStatus, d.get("status"), "Status"),
    )
