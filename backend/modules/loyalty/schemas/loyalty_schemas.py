# backend/modules/loyalty/schemas/loyalty_schemas.py

"""
Schemas for accrual, balances and diner transaction history.
"""

from typing import List, Optional
from datetime import datetime
from decimal import Decimal
from pydantic import BaseModel, ConfigDict, Field, field_validator


# ========== Transactions ==========

class TransactionCreate(BaseModel):
    """Spend recorded by staff for a known diner"""
    diner_id: int
    restaurant_id: int
    amount_spent: Decimal = Field(..., ge=0)
    bill_id: Optional[str] = Field(None, max_length=64)
    branch_id: Optional[int] = None


class TransactionByPhoneCreate(BaseModel):
    """Spend recorded at the till by looking the diner up by phone"""
    phone: str = Field(..., min_length=1, max_length=32)
    amount_spent: Decimal = Field(..., ge=0)
    bill_id: Optional[str] = Field(None, max_length=64)
    branch_id: Optional[int] = None

    @field_validator("phone")
    @classmethod
    def validate_phone(cls, v):
        if not v.strip():
            raise ValueError("phone cannot be blank")
        return v


class TransactionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    diner_id: int
    restaurant_id: int
    branch_id: Optional[int] = None
    bill_id: Optional[str] = None
    amount_spent: Decimal
    points_earned: int
    visit_recorded: bool
    transaction_date: datetime


class BalanceResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    diner_id: int
    restaurant_id: int
    branch_id: Optional[int] = None
    current_points: int
    total_points_earned: int
    current_visits: int
    total_visits: int
    points_credits: int
    visit_credits: int
    available_voucher_credits: int
    total_voucher_credits_earned: int
    total_vouchers_generated: int


class TransactionResultResponse(BaseModel):
    transaction: TransactionResponse
    balance: BalanceResponse
    points_earned: int
    credits_earned: int
    points_credits_earned: int
    visit_credits_earned: int
    points_until_next_credit: Optional[int] = None
    visits_until_next_credit: Optional[int] = None


class DinerBalanceResponse(BalanceResponse):
    """Balance enriched with the restaurant's programme settings"""
    branch_name: Optional[str] = None
    restaurant_name: str
    restaurant_color: Optional[str] = None
    voucher_earning_mode: str
    points_per_currency: int
    points_threshold: int
    visit_threshold: int
    points_until_next_credit: int


class DinerTransactionResponse(BaseModel):
    id: int
    restaurant_id: int
    restaurant_name: str
    branch_id: Optional[int] = None
    bill_id: Optional[str] = None
    amount_spent: Decimal
    points_earned: int
    visit_recorded: bool
    transaction_date: datetime


class RestaurantTransactionResponse(BaseModel):
    id: int
    diner_id: int
    diner_name: Optional[str] = None
    diner_phone: Optional[str] = None
    branch_id: Optional[int] = None
    bill_id: Optional[str] = None
    amount_spent: Decimal
    points_earned: int
    visit_recorded: bool
    transaction_date: datetime


class DinerTransactionList(BaseModel):
    transactions: List[DinerTransactionResponse]
    total: int
