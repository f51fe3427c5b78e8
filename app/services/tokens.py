from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import jwt

from app.config import Settings, settings


class TokenError(ValueError):
    pass


@dataclass(frozen=True)
class SessionTokenData:
    user_id: int
    role: str


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TokenIssuer:
    def __init__(self, config: Settings) -> None:
        self._config = config

    @property
    def expires_in_seconds(self) -> int:
        return self._config.jwt_expires_days * 86400

    def create_session_token(self, user_id: int, role: str) -> str:
        if not self._config.jwt_secret:
            raise TokenError("JWT secret is not configured")
        now = _utcnow()
        expires_at = now + timedelta(seconds=self.expires_in_seconds)
        payload = {
            "sub": str(user_id),
            "role": role,
            "type": "access",
            "iat": int(now.timestamp()),
            "exp": int(expires_at.timestamp()),
        }
        return jwt.encode(
            payload, self._config.jwt_secret, algorithm=self._config.jwt_algorithm
        )

    def decode_session_token(self, token: str) -> SessionTokenData:
        if not token:
            raise TokenError("Token is missing")
        try:
            payload = jwt.decode(
                token,
                self._config.jwt_secret,
                algorithms=[self._config.jwt_algorithm],
            )
        except jwt.ExpiredSignatureError as exc:
            raise TokenError("Token has expired") from exc
        except jwt.InvalidTokenError as exc:
            raise TokenError("Invalid token") from exc
        if payload.get("type") != "access":
            raise TokenError("Invalid token type")
        role = payload.get("role")
        if not role:
            raise TokenError("Token role is missing")
        return SessionTokenData(user_id=_parse_subject(payload), role=role)


def _parse_subject(payload: dict) -> int:
    subject = payload.get("sub")
    if not subject:
        raise TokenError("Token subject is missing")
    try:
        return int(subject)
    except (TypeError, ValueError) as exc:
        raise TokenError("Invalid token subject") from exc


token_issuer = TokenIssuer(settings)
