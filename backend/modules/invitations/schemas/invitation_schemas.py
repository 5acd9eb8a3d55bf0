# backend/modules/invitations/schemas/invitation_schemas.py

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from typing import Optional, Literal
from datetime import date, datetime

GENDERS = Literal["male", "female", "other", "prefer_not_to_say"]
AGE_RANGES = Literal["18-29", "30-39", "40-49", "50-59", "60+"]


class InvitationCreate(BaseModel):
    phone: str = Field(..., min_length=1, max_length=32)


class InvitationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    restaurant_id: int
    phone: str
    token: str
    status: str
    expires_at: datetime
    diner_id: Optional[int] = None
    consumed_at: Optional[datetime] = None
    created_at: datetime


class InvitationCreatedResponse(BaseModel):
    success: bool = True
    sms_sent: bool
    sms_error: Optional[str] = None
    registration_link: str
    invitation: InvitationResponse
    message: str


class InvitationLookupResponse(BaseModel):
    valid: bool = True
    phone: str
    restaurant_id: int
    restaurant_name: str
    expires_at: datetime


class DinerRegistration(BaseModel):
    token: str = Field(..., min_length=1)
    email: EmailStr
    name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    gender: GENDERS
    age_range: AGE_RANGES
    province: str = Field(..., min_length=1, max_length=64)
    password: Optional[str] = Field(None, min_length=8, max_length=128)
    terms_accepted: bool
    privacy_accepted: bool

    @field_validator("terms_accepted")
    @classmethod
    def require_terms(cls, v):
        if not v:
            raise ValueError("You must accept the Terms & Conditions")
        return v

    @field_validator("privacy_accepted")
    @classmethod
    def require_privacy(cls, v):
        if not v:
            raise ValueError("You must accept the Privacy Policy")
        return v


class RegisteredDiner(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    email: str
    name: Optional[str] = None
    last_name: Optional[str] = None
    phone: Optional[str] = None


class RegistrationResponse(BaseModel):
    success: bool = True
    user: RegisteredDiner
    welcome_voucher_code: Optional[str] = None
    access_token: str
    token_type: str = "bearer"
    message: str = "Registration successful! Welcome to the rewards program."


class RegistrationsPerDay(BaseModel):
    date: date
    count: int
