from datetime import datetime, timezone
import logging

from sqlalchemy import delete, select, update

from app.database import session_scope
from app.models.otp import OtpEntry
from app.schemas.otp import OtpPayload, OtpPurpose, OtpRecord, dump_payload, load_payload

LOGGER = logging.getLogger(__name__)


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes even for timezone-aware columns.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class OtpLedger:
    def put(
        self,
        contact: str,
        purpose: OtpPurpose,
        otp_hash: str,
        expires_at: datetime,
        payload: OtpPayload,
    ) -> OtpRecord:
        now = datetime.now(timezone.utc)
        with session_scope() as session:
            session.execute(delete(OtpEntry).where(OtpEntry.expires_at <= now))
            session.execute(
                delete(OtpEntry).where(
                    OtpEntry.contact == contact,
                    OtpEntry.purpose == purpose,
                )
            )
            entry = OtpEntry(
                contact=contact,
                purpose=purpose,
                otp_hash=otp_hash,
                expires_at=expires_at,
                attempts=0,
                payload=dump_payload(payload),
                created_at=now,
            )
            session.add(entry)
            session.flush()
            return self._to_record(entry)

    def find_latest_active(self, contact: str, purpose: OtpPurpose) -> OtpRecord | None:
        with session_scope() as session:
            entry = (
                session.execute(
                    select(OtpEntry)
                    .where(OtpEntry.contact == contact, OtpEntry.purpose == purpose)
                    .order_by(OtpEntry.id.desc())
                    .limit(1)
                )
                .scalars()
                .first()
            )
            if entry is None:
                return None
            return self._to_record(entry)

    def reserve_attempt(self, record_id: int, max_attempts: int) -> int | None:
        """Count one verification attempt unless the record is already exhausted.

        The check and the increment happen in a single UPDATE so concurrent
        guesses can never push the counter past ``max_attempts``. Returns the
        new attempt count, or None when nothing was reserved.
        """
        with session_scope() as session:
            result = session.execute(
                update(OtpEntry)
                .where(OtpEntry.id == record_id, OtpEntry.attempts < max_attempts)
                .values(attempts=OtpEntry.attempts + 1)
            )
            if result.rowcount == 0:
                return None
            return session.execute(
                select(OtpEntry.attempts).where(OtpEntry.id == record_id)
            ).scalar_one_or_none()

    def exists(self, record_id: int) -> bool:
        with session_scope() as session:
            return session.get(OtpEntry, record_id) is not None

    def refresh(self, record_id: int, otp_hash: str, expires_at: datetime) -> OtpRecord | None:
        with session_scope() as session:
            entry = session.get(OtpEntry, record_id)
            if entry is None:
                return None
            entry.otp_hash = otp_hash
            entry.expires_at = expires_at
            entry.attempts = 0
            session.flush()
            return self._to_record(entry)

    def delete(self, record_id: int) -> bool:
        with session_scope() as session:
            result = session.execute(delete(OtpEntry).where(OtpEntry.id == record_id))
            return result.rowcount > 0

    def delete_all_for(self, contact: str, purpose: OtpPurpose) -> int:
        with session_scope() as session:
            result = session.execute(
                delete(OtpEntry).where(
                    OtpEntry.contact == contact,
                    OtpEntry.purpose == purpose,
                )
            )
            return result.rowcount

    def purge_expired(self) -> int:
        now = datetime.now(timezone.utc)
        with session_scope() as session:
            result = session.execute(delete(OtpEntry).where(OtpEntry.expires_at <= now))
        if result.rowcount:
            LOGGER.info("Purged %s expired OTP record(s)", result.rowcount)
        return result.rowcount

    def _to_record(self, entry: OtpEntry) -> OtpRecord:
        return OtpRecord(
            id=entry.id,
            contact=entry.contact,
            purpose=entry.purpose,
            otp_hash=entry.otp_hash,
            expires_at=_as_utc(entry.expires_at),
            attempts=entry.attempts or 0,
            payload=load_payload(entry.payload),
            created_at=_as_utc(entry.created_at),
        )


otp_ledger = OtpLedger()
