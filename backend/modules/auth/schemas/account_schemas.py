# backend/modules/auth/schemas/account_schemas.py

from pydantic import BaseModel, EmailStr, Field, model_validator
from typing import Optional
from datetime import datetime


class ForgotPasswordRequest(BaseModel):
    email: EmailStr


class ResetPasswordRequest(BaseModel):
    token: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=8, max_length=128)
    confirm_password: str

    @model_validator(mode="after")
    def passwords_match(self):
        if self.new_password != self.confirm_password:
            raise ValueError("Passwords do not match")
        return self


class ConfirmDeletionRequest(BaseModel):
    token: str = Field(..., min_length=1)
    reason: Optional[str] = Field(None, max_length=255)


class MessageResponse(BaseModel):
    success: bool = True
    message: str


class DeletionConfirmedResponse(MessageResponse):
    archived_at: datetime
