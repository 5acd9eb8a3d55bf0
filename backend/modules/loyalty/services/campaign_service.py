# backend/modules/loyalty/services/campaign_service.py

from typing import Any, Dict, List
import logging

from sqlalchemy.orm import Session

from core.error_handling import NotFoundError, ConflictError
from ..models.voucher_models import Campaign, CampaignStatus

logger = logging.getLogger(__name__)

STATUS_ORDER = [
    CampaignStatus.SCHEDULED.value,
    CampaignStatus.ACTIVE.value,
    CampaignStatus.COMPLETED.value,
]


class CampaignService:
    def __init__(self, db: Session):
        self.db = db

    def list_campaigns(self, restaurant_id: int) -> List[Campaign]:
        return (
            self.db.query(Campaign)
            .filter(Campaign.restaurant_id == restaurant_id)
            .order_by(Campaign.created_at.desc(), Campaign.id.desc())
            .all()
        )

    def get_campaign(self, restaurant_id: int, campaign_id: int) -> Campaign:
        campaign = (
            self.db.query(Campaign)
            .filter(Campaign.id == campaign_id, Campaign.restaurant_id == restaurant_id)
            .first()
        )
        if not campaign:
            raise NotFoundError("Campaign", campaign_id)
        return campaign

    def create_campaign(self, restaurant_id: int, data: Dict[str, Any]) -> Campaign:
        campaign = Campaign(
            restaurant_id=restaurant_id,
            name=data["name"],
            voucher_title=data["voucher_title"],
            target_audience=getattr(data.get("target_audience"), "value", data.get("target_audience"))
            or "all",
            message=data.get("message"),
            scheduled_for=data.get("scheduled_for"),
            status=CampaignStatus.SCHEDULED.value,
        )
        self.db.add(campaign)
        self.db.commit()
        self.db.refresh(campaign)
        logger.info(f"Created campaign {campaign.id} for restaurant {restaurant_id}")
        return campaign

    def update_status(self, restaurant_id: int, campaign_id: int, new_status: str) -> Campaign:
        """Move a campaign forward: scheduled, then active, then completed."""
        new_status = getattr(new_status, "value", new_status)
        campaign = self.get_campaign(restaurant_id, campaign_id)

        if STATUS_ORDER.index(new_status) <= STATUS_ORDER.index(campaign.status):
            raise ConflictError(
                f"Cannot change campaign status from {campaign.status} to {new_status}",
                details={"current_status": campaign.status, "requested_status": new_status},
            )

        campaign.status = new_status
        self.db.commit()
        self.db.refresh(campaign)
        logger.info(f"Campaign {campaign.id} is now {new_status}")
        return campaign
