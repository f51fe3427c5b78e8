from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Literal, Union

OtpPurpose = Literal["register", "reset"]

PURPOSE_REGISTER: OtpPurpose = "register"
PURPOSE_RESET: OtpPurpose = "reset"


@dataclass(frozen=True)
class RegisterPayload:
    name: str
    email: str
    password_hash: str


@dataclass(frozen=True)
class ResetPayload:
    user_id: int


OtpPayload = Union[RegisterPayload, ResetPayload]


def dump_payload(payload: OtpPayload) -> dict:
    if isinstance(payload, RegisterPayload):
        return {"kind": PURPOSE_REGISTER, **asdict(payload)}
    if isinstance(payload, ResetPayload):
        return {"kind": PURPOSE_RESET, **asdict(payload)}
    raise TypeError(f"Unsupported OTP payload: {type(payload).__name__}")


def load_payload(data: dict) -> OtpPayload:
    kind = data.get("kind")
    if kind == PURPOSE_REGISTER:
        return RegisterPayload(
            name=data["name"],
            email=data["email"],
            password_hash=data["password_hash"],
        )
    if kind == PURPOSE_RESET:
        return ResetPayload(user_id=int(data["user_id"]))
    raise ValueError(f"Unknown OTP payload kind: {kind!r}")


@dataclass(frozen=True)
class OtpRecord:
    id: int
    contact: str
    purpose: OtpPurpose
    otp_hash: str
    expires_at: datetime
    attempts: int
    payload: OtpPayload
    created_at: datetime
