from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from coupon_engine.models.activity import Activity


logger = logging.getLogger(__name__)

CATEGORY_COUPON = "coupon"


def log_activity(
    db: Session,
    *,
    user_id: str,
    activity_type: str,
    description: str,
    category: str = CATEGORY_COUPON,
    metadata: dict[str, Any] | None = None,
) -> bool:
    enriched = dict(metadata or {})
    enriched["timestamp"] = datetime.now(timezone.utc).isoformat()
    try:
        db.add(
            Activity(
                user_id=user_id,
                activity_type=activity_type,
                category=category,
                description=description,
                activity_metadata=enriched,
            )
        )
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("activity.log.error user_id=%s activity_type=%s", user_id, activity_type)
        return False
    return True
