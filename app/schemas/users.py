from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator

Role = Literal["citizen", "admin", "superadmin"]
ROLES: tuple[str, ...] = ("citizen", "admin", "superadmin")
STAFF_ROLES: frozenset[str] = frozenset({"admin", "superadmin"})
# bcrypt only looks at the first 72 bytes.
MAX_PASSWORD_BYTES = 72


class UserCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    email: str = Field(min_length=3, max_length=255)
    password: str = Field(min_length=1)
    role: Role = "citizen"

    @field_validator("name")
    @classmethod
    def normalize_name(cls, value: str) -> str:
        cleaned = value.strip()
        if not cleaned:
            raise ValueError("This field is required")
        return cleaned

    @field_validator("password")
    @classmethod
    def check_password_size(cls, value: str) -> str:
        if len(value.encode("utf-8")) > MAX_PASSWORD_BYTES:
            raise ValueError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes")
        return value

    @field_validator("email")
    @classmethod
    def normalize_email(cls, value: str) -> str:
        cleaned = value.strip().lower()
        if "@" not in cleaned:
            raise ValueError("A valid email is required")
        return cleaned


class UserResponse(BaseModel):
    id: int
    name: str
    email: str
    role: Role
    email_verified: bool = False
    created_at: Optional[datetime] = None
