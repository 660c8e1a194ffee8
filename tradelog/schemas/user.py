"""Pydantic schemas for registration and login."""

from datetime import datetime
import re

from pydantic import BaseModel, Field, field_validator

_USERNAME_RE = re.compile(r"^[A-Za-z0-9_.-]+$")
_PIN_RE = re.compile(r"^\d{4}$")


class UserCreate(BaseModel):
    username: str = Field(min_length=3, max_length=50)
    pin: str

    @field_validator("username")
    @classmethod
    def _validate_username(cls, value: str) -> str:
        text = value.strip()
        if not _USERNAME_RE.fullmatch(text):
            raise ValueError("may only contain letters, digits, '.', '_' and '-'")
        return text

    @field_validator("pin")
    @classmethod
    def _validate_pin(cls, value: str) -> str:
        if not _PIN_RE.fullmatch(value):
            raise ValueError("must be exactly 4 digits")
        return value


class LoginRequest(BaseModel):
    username: str
    pin: str


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"


class UserRead(BaseModel):
    id: int
    username: str
    is_active: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class WebhookTokenResponse(BaseModel):
    token: str
    url_path: str
