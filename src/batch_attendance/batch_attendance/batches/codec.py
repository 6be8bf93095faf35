from __future__ import annotations

from datetime import date
from typing import Any

from .model import Batch


def batch_to_dict(b: Batch, *, today: date) -> dict[str, Any]:
    return {
        "id": b.batch_id,
        "code": b.code,
        "name": b.name,
        "clientName": b.client_name,
        "description": b.description,
        "startDate": b.start_date.isoformat(),
        "endDate": b.end_date.isoformat(),
        "status": b.status.value,
        "learners": sorted(b.learner_ids),
        "createdBy": b.created_by,
        "durationDays": b.duration_days,
        "progress": b.progress(today),
        "createdAt": b.created_at.isoformat() if b.created_at else None,
        "updatedAt": b.updated_at.isoformat() if b.updated_at else None,
    }
