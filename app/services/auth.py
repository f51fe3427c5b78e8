"""OTP-gated registration, login and password reset.

Every operation either returns a result or raises a ``WorkflowError`` subclass
from ``app.services.errors``; routers translate those into HTTP responses.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
import logging
import secrets

from app.config import Settings, settings
from app.schemas.otp import (
    PURPOSE_REGISTER,
    PURPOSE_RESET,
    OtpRecord,
    RegisterPayload,
    ResetPayload,
)
from app.schemas.users import MAX_PASSWORD_BYTES, UserResponse
from app.services.email import EmailSendError, NotificationSender, notification_sender
from app.services.errors import (
    AlreadyRegisteredError,
    CodeExpiredError,
    ConflictError,
    DeliveryFailedError,
    InternalError,
    InvalidCodeError,
    InvalidCredentialsError,
    InvalidInputError,
    NoPendingRequestError,
    NotFoundError,
    TooManyAttemptsError,
)
from app.services.hashing import CredentialHasher, hasher
from app.services.otp import OtpLedger, otp_ledger
from app.services.tokens import TokenError, TokenIssuer, token_issuer
from app.services.users import UserConflictError, UserStore, normalize_email, user_store

LOGGER = logging.getLogger(__name__)

RESET_REQUEST_MESSAGE = "If this email exists, an OTP has been sent."


@dataclass(frozen=True)
class AuthResult:
    user: UserResponse
    token: str
    expires_in_seconds: int


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _require(**fields: str) -> None:
    missing = [name for name, value in fields.items() if not value or not value.strip()]
    if missing:
        raise InvalidInputError(f"{', '.join(missing)} required")


def _check_email(email: str) -> str:
    normalized = normalize_email(email)
    if "@" not in normalized:
        raise InvalidInputError("A valid email is required")
    return normalized


def _check_password(password: str) -> None:
    if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise InvalidInputError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes")


class CredentialWorkflow:
    def __init__(
        self,
        *,
        users: UserStore,
        ledger: OtpLedger,
        sender: NotificationSender,
        credential_hasher: CredentialHasher,
        tokens: TokenIssuer,
        config: Settings,
    ) -> None:
        self._users = users
        self._ledger = ledger
        self._sender = sender
        self._hasher = credential_hasher
        self._tokens = tokens
        self._config = config

    @property
    def otp_ttl_seconds(self) -> int:
        return self._config.otp_ttl_seconds

    # Registration

    def request_registration(self, name: str, email: str, password: str) -> str:
        _require(name=name, email=email, password=password)
        contact = _check_email(email)
        _check_password(password)
        if self._users.find_by_email(contact) is not None:
            raise AlreadyRegisteredError()

        code = self._generate_code()
        payload = RegisterPayload(
            name=name.strip(),
            email=contact,
            password_hash=self._hasher.hash(password),
        )
        self._ledger.put(
            contact,
            PURPOSE_REGISTER,
            self._hasher.hash(code),
            self._expiry(),
            payload,
        )
        LOGGER.info("Registration OTP issued for %s", contact)
        self._deliver(
            contact,
            "Your Registration OTP",
            f"Your OTP is {code}. It expires in {self._config.otp_ttl_minutes} minutes.",
        )
        return "OTP sent to email"

    def confirm_registration(self, email: str, code: str) -> AuthResult:
        _require(email=email, otp=code)
        contact = normalize_email(email)
        record = self._ledger.find_latest_active(contact, PURPOSE_REGISTER)
        self._verify_code(record, code)

        payload = record.payload
        if not isinstance(payload, RegisterPayload):
            raise InternalError("Registration payload missing")
        self._consume(record)
        if self._users.find_by_email(payload.email) is not None:
            raise AlreadyRegisteredError()
        try:
            user = self._users.create(
                name=payload.name,
                email=payload.email,
                password_hash=payload.password_hash,
                role="citizen",
                email_verified=True,
            )
        except UserConflictError as exc:
            LOGGER.warning("Concurrent registration detected for %s", contact)
            raise ConflictError() from exc
        LOGGER.info("Registered user id=%s email=%s", user.id, user.email)
        return self._issue(user)

    def resend_registration_otp(self, email: str) -> str:
        _require(email=email)
        contact = normalize_email(email)
        record = self._ledger.find_latest_active(contact, PURPOSE_REGISTER)
        if record is None:
            raise NoPendingRequestError("No pending registration")

        code = self._generate_code()
        if self._ledger.refresh(record.id, self._hasher.hash(code), self._expiry()) is None:
            raise NoPendingRequestError("No pending registration")
        LOGGER.info("Registration OTP re-issued for %s", contact)
        self._deliver(contact, "Your OTP (Resent)", f"Your OTP is {code}.")
        return "OTP resent"

    # Login

    def login(self, email: str, password: str) -> AuthResult:
        _require(email=email, password=password)
        user = self._users.find_by_email(email)
        if user is None:
            raise NotFoundError()
        stored_hash = self._users.get_password_hash(user.id)
        if not self._hasher.verify(password, stored_hash or ""):
            LOGGER.warning("Invalid password for %s", user.email)
            raise InvalidCredentialsError()
        return self._issue(user)

    # Password reset

    def request_password_reset(self, email: str) -> str:
        _require(email=email)
        contact = normalize_email(email)
        user = self._users.find_by_email(contact)
        if user is None:
            LOGGER.info("Password reset requested for unknown email %s", contact)
            # Same bcrypt cost as issuing a real code.
            self._hasher.hash(self._generate_code())
            return RESET_REQUEST_MESSAGE

        code = self._generate_code()
        self._ledger.put(
            contact,
            PURPOSE_RESET,
            self._hasher.hash(code),
            self._expiry(),
            ResetPayload(user_id=user.id),
        )
        LOGGER.info("Password reset OTP issued for %s", contact)
        self._deliver(
            contact,
            "Password Reset OTP",
            f"Your password reset OTP is {code}. "
            f"It expires in {self._config.otp_ttl_minutes} minutes.",
        )
        return RESET_REQUEST_MESSAGE

    def confirm_password_reset(self, email: str, code: str, new_password: str) -> AuthResult:
        _require(email=email, otp=code, newPassword=new_password)
        _check_password(new_password)
        contact = normalize_email(email)
        record = self._ledger.find_latest_active(contact, PURPOSE_RESET)
        self._verify_code(record, code)

        payload = record.payload
        if not isinstance(payload, ResetPayload):
            raise InternalError("Reset payload missing")
        password_hash = self._hasher.hash(new_password)
        self._consume(record)
        try:
            user = self._users.save_password(payload.user_id, password_hash)
        except ValueError as exc:
            raise NotFoundError() from exc
        LOGGER.info("Password reset for user id=%s", user.id)
        return self._issue(user)

    # Shared steps

    def _verify_code(self, record: OtpRecord | None, code: str) -> None:
        if record is None:
            raise NoPendingRequestError()
        max_attempts = self._config.max_otp_attempts
        if record.attempts >= max_attempts:
            raise TooManyAttemptsError()
        if record.expires_at <= _utcnow():
            raise CodeExpiredError()
        attempts = self._ledger.reserve_attempt(record.id, max_attempts)
        if attempts is None:
            if not self._ledger.exists(record.id):
                raise NoPendingRequestError()
            raise TooManyAttemptsError()
        if not self._hasher.verify(str(code).strip(), record.otp_hash):
            LOGGER.warning(
                "Invalid %s OTP for %s (attempt %s)",
                record.purpose,
                record.contact,
                attempts,
            )
            raise InvalidCodeError()

    def _consume(self, record: OtpRecord) -> None:
        # Whoever deletes the record owns the code.
        if not self._ledger.delete(record.id):
            raise NoPendingRequestError()

    def _deliver(self, contact: str, subject: str, body: str) -> None:
        try:
            self._sender.send(contact, subject, body)
        except EmailSendError as exc:
            LOGGER.error("OTP delivery to %s failed: %s", contact, exc)
            raise DeliveryFailedError() from exc

    def _issue(self, user: UserResponse) -> AuthResult:
        try:
            token = self._tokens.create_session_token(user.id, user.role)
        except TokenError as exc:
            raise InternalError(str(exc)) from exc
        return AuthResult(
            user=user,
            token=token,
            expires_in_seconds=self._tokens.expires_in_seconds,
        )

    def _expiry(self) -> datetime:
        return _utcnow() + timedelta(seconds=self._config.otp_ttl_seconds)

    def _generate_code(self) -> str:
        length = self._config.otp_length
        return str(secrets.randbelow(10**length)).zfill(length)


credential_workflow = CredentialWorkflow(
    users=user_store,
    ledger=otp_ledger,
    sender=notification_sender,
    credential_hasher=hasher,
    tokens=token_issuer,
    config=settings,
)
