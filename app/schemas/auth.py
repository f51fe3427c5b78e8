from typing import Optional

from pydantic import BaseModel, Field

from app.schemas.users import UserResponse


class RegisterRequest(BaseModel):
    name: str = Field(default="", max_length=100)
    email: str = Field(default="", max_length=255)
    password: str = Field(default="")


class VerifyOtpRequest(BaseModel):
    email: str = Field(default="", max_length=255)
    otp: str = Field(default="", max_length=16)


class EmailRequest(BaseModel):
    email: str = Field(default="", max_length=255)


class LoginRequest(BaseModel):
    email: str = Field(default="", max_length=255)
    password: str = Field(default="")


class ResetPasswordRequest(BaseModel):
    email: str = Field(default="", max_length=255)
    otp: str = Field(default="", max_length=16)
    new_password: str = Field(default="", alias="newPassword")

    model_config = {"populate_by_name": True}


class ProfileUpdateRequest(BaseModel):
    name: str = Field(default="", max_length=100)


class MessageResponse(BaseModel):
    ok: bool = True
    message: str
    expires_in_seconds: Optional[int] = None


class AuthResponse(BaseModel):
    message: Optional[str] = None
    user: UserResponse
    token: str
    token_type: str = "bearer"
    expires_in_seconds: int
