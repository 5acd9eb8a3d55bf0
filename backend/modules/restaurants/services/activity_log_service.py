# backend/modules/restaurants/services/activity_log_service.py

from typing import Any, Dict, List, Optional
import logging

from sqlalchemy.orm import Session

from core.config import settings
from ..models.restaurant_models import ActivityLog

logger = logging.getLogger(__name__)

DEFAULT_LOG_LIMIT = 100


class ActivityLogService:
    """Audit trail of admin actions at a restaurant"""

    def __init__(self, db: Session):
        self.db = db

    def record(
        self,
        restaurant_id: int,
        action: str,
        user_id: Optional[int] = None,
        target_type: Optional[str] = None,
        target_id: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
        commit: bool = True,
    ) -> ActivityLog:
        entry = ActivityLog(
            restaurant_id=restaurant_id,
            user_id=user_id,
            action=action,
            target_type=target_type,
            target_id=target_id,
            details=details,
        )
        self.db.add(entry)
        if commit:
            self.db.commit()
            self.db.refresh(entry)
        else:
            self.db.flush()

        logger.debug(f"Activity '{action}' recorded for restaurant {restaurant_id}")
        return entry

    def list_logs(self, restaurant_id: int, limit: Optional[int] = None) -> List[ActivityLog]:
        limit = min(limit or DEFAULT_LOG_LIMIT, settings.activity_log_max_limit)
        return (
            self.db.query(ActivityLog)
            .filter(ActivityLog.restaurant_id == restaurant_id)
            .order_by(ActivityLog.created_at.desc(), ActivityLog.id.desc())
            .limit(limit)
            .all()
        )
