"""
Pytest configuration and shared fixtures.

The app reads its configuration at import time, so the environment is set up
here before anything from ``app`` is imported. Every test gets a fresh
in-memory SQLite schema.
"""

import os
import re
import threading
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["JWT_SECRET"] = "test-secret-key-that-is-long-enough-for-hs256"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["NOTIFICATION_BACKEND"] = "log"
os.environ["OTP_RATE_LIMIT"] = "5"
os.environ["OTP_RATE_WINDOW_SECONDS"] = "900"
os.environ.pop("SEED_EMAIL", None)
os.environ.pop("SEED_PASSWORD", None)

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import delete, func, select, update

from app.config import Settings, settings
from app.database import Base, engine, init_db, session_scope
from app.models.otp import OtpEntry
from app.models.user import UserEntry
from app.services.auth import CredentialWorkflow
from app.services.email import EmailSendError
from app.services.hashing import CredentialHasher
from app.services.otp import OtpLedger
from app.services.rate_limit import otp_rate_limiter
from app.services.tokens import TokenIssuer
from app.services.users import UserStore

CODE_PATTERN = re.compile(r"OTP is (\d+)")


class RecordingSender:
    """Notification sender that keeps every message in memory."""

    def __init__(self) -> None:
        self.messages: list[tuple[str, str, str]] = []
        self.fail = False

    def send(self, contact: str, subject: str, body: str) -> None:
        if self.fail:
            raise EmailSendError("SMTP unavailable")
        self.messages.append((contact, subject, body))

    def last_code(self, contact: str) -> str:
        for to, _, body in reversed(self.messages):
            if to == contact:
                match = CODE_PATTERN.search(body)
                if match:
                    return match.group(1)
        raise AssertionError(f"No OTP was sent to {contact}")


def wrong_code(code: str) -> str:
    return "0" * len(code) if code != "0" * len(code) else "1" * len(code)


def count_users() -> int:
    with session_scope() as session:
        return session.execute(select(func.count(UserEntry.id))).scalar_one()


def count_otp_records(contact: str | None = None) -> int:
    stmt = select(func.count(OtpEntry.id))
    if contact is not None:
        stmt = stmt.where(OtpEntry.contact == contact)
    with session_scope() as session:
        return session.execute(stmt).scalar_one()


def expire_otp_records(contact: str) -> None:
    past = datetime.now(timezone.utc) - timedelta(minutes=1)
    with session_scope() as session:
        session.execute(
            update(OtpEntry).where(OtpEntry.contact == contact).values(expires_at=past)
        )


def otp_attempts(contact: str) -> int:
    with session_scope() as session:
        return session.execute(
            select(OtpEntry.attempts).where(OtpEntry.contact == contact)
        ).scalar_one()


def delete_user(user_id: int) -> None:
    with session_scope() as session:
        session.execute(delete(UserEntry).where(UserEntry.id == user_id))


@pytest.fixture(autouse=True)
def fresh_database():
    init_db()
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    otp_rate_limiter.reset()
    yield
    otp_rate_limiter.reset()


@pytest.fixture
def outbox() -> RecordingSender:
    return RecordingSender()


@pytest.fixture
def config() -> Settings:
    return settings


@pytest.fixture
def user_store() -> UserStore:
    return UserStore()


@pytest.fixture
def ledger() -> OtpLedger:
    return OtpLedger()


@pytest.fixture
def fast_hasher() -> CredentialHasher:
    return CredentialHasher(rounds=4)


@pytest.fixture
def tokens(config) -> TokenIssuer:
    return TokenIssuer(config)


@pytest.fixture
def workflow(user_store, ledger, outbox, fast_hasher, tokens, config) -> CredentialWorkflow:
    return CredentialWorkflow(
        users=user_store,
        ledger=ledger,
        sender=outbox,
        credential_hasher=fast_hasher,
        tokens=tokens,
        config=config,
    )


@pytest.fixture
def client(workflow, monkeypatch) -> TestClient:
    from app.main import app

    monkeypatch.setattr("app.routers.auth.credential_workflow", workflow)
    return TestClient(app)


@pytest.fixture
def citizen(user_store, fast_hasher):
    return user_store.create(
        name="Ann",
        email="ann@x.com",
        password_hash=fast_hasher.hash("pw123456"),
        role="citizen",
        email_verified=True,
    )


@pytest.fixture
def admin(user_store, fast_hasher):
    return user_store.create(
        name="Root",
        email="root@x.com",
        password_hash=fast_hasher.hash("adminpass"),
        role="superadmin",
        email_verified=True,
    )


def auth_header(tokens: TokenIssuer, user) -> dict:
    return {"Authorization": f"Bearer {tokens.create_session_token(user.id, user.role)}"}


@pytest.fixture
def serialized_storage(monkeypatch):
    """Run each storage call alone.

    In-memory SQLite shares one connection between threads, so concurrent
    sessions would otherwise commit or roll back each other's work.
    """
    lock = threading.RLock()

    @contextmanager
    def locked_scope():
        with lock:
            with session_scope() as session:
                yield session

    monkeypatch.setattr("app.services.otp.session_scope", locked_scope)
    monkeypatch.setattr("app.services.users.session_scope", locked_scope)
