# backend/modules/restaurants/services/stats_service.py

from collections import defaultdict
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from typing import Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from core.mixins import utcnow
from core.query_logger import log_query_performance
from modules.loyalty.models import Transaction, Voucher, VoucherType, PointsBalance

STATS_WINDOW_DAYS = 30
UNKNOWN_VOUCHER_TYPE = "Unknown Type"


class StatsService:
    """Dashboard figures for a restaurant, optionally narrowed to one branch"""

    def __init__(self, db: Session):
        self.db = db

    def get_recent_transactions(
        self, restaurant_id: int, branch_id: Optional[int] = None, days: int = STATS_WINDOW_DAYS
    ) -> List[Transaction]:
        since = utcnow() - timedelta(days=days)
        query = self.db.query(Transaction).filter(
            Transaction.restaurant_id == restaurant_id,
            Transaction.transaction_date >= since,
        )
        if branch_id is not None:
            query = query.filter(Transaction.branch_id == branch_id)
        return query.order_by(Transaction.transaction_date.desc()).all()

    def get_restaurant_stats(self, restaurant_id: int, branch_id: Optional[int] = None) -> Dict:
        with log_query_performance(f"restaurant_stats_{restaurant_id}"):
            return self._collect_stats(restaurant_id, branch_id)

    def _collect_stats(self, restaurant_id: int, branch_id: Optional[int]) -> Dict:
        recent = self.get_recent_transactions(restaurant_id, branch_id)

        redeemed_query = self.db.query(func.count(Voucher.id)).filter(
            Voucher.restaurant_id == restaurant_id, Voucher.is_redeemed.is_(True)
        )
        if branch_id is not None:
            redeemed_query = redeemed_query.filter(Voucher.redeemed_branch_id == branch_id)

        registered = (
            self.db.query(func.count(func.distinct(PointsBalance.diner_id)))
            .filter(PointsBalance.restaurant_id == restaurant_id)
            .scalar()
        )

        return {
            "diners_last_30_days": len({t.diner_id for t in recent}),
            "total_spent": float(sum((Decimal(t.amount_spent) for t in recent), Decimal("0"))),
            "vouchers_redeemed": redeemed_query.scalar() or 0,
            "total_registered_diners": registered or 0,
        }

    def get_revenue_by_date_range(
        self,
        restaurant_id: int,
        start_date: date,
        end_date: date,
        branch_id: Optional[int] = None,
    ) -> List[Dict]:
        """Daily spend totals, one entry per day including days without sales."""
        if end_date < start_date:
            start_date, end_date = end_date, start_date

        query = self.db.query(Transaction.transaction_date, Transaction.amount_spent).filter(
            Transaction.restaurant_id == restaurant_id,
            Transaction.transaction_date >= datetime.combine(start_date, time.min),
            Transaction.transaction_date < datetime.combine(end_date + timedelta(days=1), time.min),
        )
        if branch_id is not None:
            query = query.filter(Transaction.branch_id == branch_id)

        totals: Dict[date, Decimal] = defaultdict(Decimal)
        for transaction_date, amount in query:
            totals[transaction_date.date()] += Decimal(amount)

        days = (end_date - start_date).days
        return [
            {"date": day, "amount": float(totals.get(day, Decimal("0")))}
            for day in (start_date + timedelta(days=offset) for offset in range(days + 1))
        ]

    def get_voucher_redemptions_by_type(
        self,
        restaurant_id: int,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        branch_id: Optional[int] = None,
    ) -> List[Dict]:
        type_name = func.coalesce(VoucherType.name, UNKNOWN_VOUCHER_TYPE)
        query = (
            self.db.query(type_name.label("voucher_type_name"), func.count(Voucher.id).label("count"))
            .outerjoin(VoucherType, Voucher.voucher_type_id == VoucherType.id)
            .filter(Voucher.restaurant_id == restaurant_id, Voucher.is_redeemed.is_(True))
        )
        if start_date and end_date:
            query = query.filter(Voucher.redeemed_at >= start_date, Voucher.redeemed_at <= end_date)
        if branch_id is not None:
            query = query.filter(Voucher.redeemed_branch_id == branch_id)

        rows = query.group_by(type_name).order_by(func.count(Voucher.id).desc()).all()
        return [{"voucher_type_name": row.voucher_type_name, "count": row.count} for row in rows]
