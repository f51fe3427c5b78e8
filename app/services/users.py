from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from app.database import session_scope
from app.models.user import UserEntry
from app.schemas.users import ROLES, UserResponse


class UserConflictError(ValueError):
    pass


def normalize_email(email: str) -> str:
    return email.strip().lower()


class UserStore:
    def find_by_email(self, email: str) -> UserResponse | None:
        key = normalize_email(email)
        with session_scope() as session:
            entry = session.execute(
                select(UserEntry).where(UserEntry.email == key)
            ).scalar_one_or_none()
            if entry is None:
                return None
            return self._to_response(entry)

    def get(self, user_id: int) -> UserResponse | None:
        with session_scope() as session:
            entry = session.get(UserEntry, user_id)
            if entry is None:
                return None
            return self._to_response(entry)

    def get_password_hash(self, user_id: int) -> str | None:
        with session_scope() as session:
            entry = session.get(UserEntry, user_id)
            if entry is None:
                return None
            return entry.password_hash

    def create(
        self,
        *,
        name: str,
        email: str,
        password_hash: str,
        role: str = "citizen",
        email_verified: bool = False,
    ) -> UserResponse:
        if role not in ROLES:
            raise ValueError(f"Unknown role: {role}")
        now = datetime.now(timezone.utc)
        try:
            with session_scope() as session:
                entry = UserEntry(
                    name=name.strip(),
                    email=normalize_email(email),
                    password_hash=password_hash,
                    role=role,
                    email_verified=email_verified,
                    created_at=now,
                    updated_at=now,
                )
                session.add(entry)
                session.flush()
                return self._to_response(entry)
        except IntegrityError as exc:
            raise UserConflictError("Email already in use") from exc

    def save_password(self, user_id: int, password_hash: str) -> UserResponse:
        with session_scope() as session:
            entry = session.get(UserEntry, user_id)
            if entry is None:
                raise ValueError("User not found")
            entry.password_hash = password_hash
            entry.updated_at = datetime.now(timezone.utc)
            session.flush()
            return self._to_response(entry)

    def update_name(self, user_id: int, name: str) -> UserResponse:
        with session_scope() as session:
            entry = session.get(UserEntry, user_id)
            if entry is None:
                raise ValueError("User not found")
            entry.name = name.strip()
            entry.updated_at = datetime.now(timezone.utc)
            session.flush()
            return self._to_response(entry)

    def _to_response(self, entry: UserEntry) -> UserResponse:
        return UserResponse(
            id=entry.id,
            name=entry.name,
            email=entry.email,
            role=entry.role or "citizen",
            email_verified=bool(entry.email_verified),
            created_at=entry.created_at,
        )


user_store = UserStore()
