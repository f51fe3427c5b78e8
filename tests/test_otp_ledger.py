from datetime import datetime, timedelta, timezone

import pytest

from app.database import session_scope
from app.models.otp import OtpEntry
from app.schemas.otp import (
    PURPOSE_REGISTER,
    PURPOSE_RESET,
    RegisterPayload,
    ResetPayload,
    dump_payload,
    load_payload,
)
from conftest import count_otp_records


def _in(minutes: int) -> datetime:
    return datetime.now(timezone.utc) + timedelta(minutes=minutes)


PAYLOAD = RegisterPayload(name="Ann", email="ann@x.com", password_hash="hash")


class TestPut:

    def test_returns_fresh_record(self, ledger):
        record = ledger.put("ann@x.com", PURPOSE_REGISTER, "h1", _in(5), PAYLOAD)

        assert record.id is not None
        assert record.contact == "ann@x.com"
        assert record.purpose == PURPOSE_REGISTER
        assert record.attempts == 0
        assert record.payload == PAYLOAD

    def test_supersedes_same_contact_and_purpose(self, ledger):
        ledger.put("ann@x.com", PURPOSE_REGISTER, "h1", _in(5), PAYLOAD)
        second = ledger.put("ann@x.com", PURPOSE_REGISTER, "h2", _in(5), PAYLOAD)

        assert count_otp_records("ann@x.com") == 1
        assert ledger.find_latest_active("ann@x.com", PURPOSE_REGISTER).id == second.id

    def test_keeps_other_purpose(self, ledger):
        ledger.put("ann@x.com", PURPOSE_REGISTER, "h1", _in(5), PAYLOAD)
        ledger.put("ann@x.com", PURPOSE_RESET, "h2", _in(5), ResetPayload(user_id=7))

        assert count_otp_records("ann@x.com") == 2

    def test_purges_expired_rows(self, ledger):
        ledger.put("old@x.com", PURPOSE_REGISTER, "h1", _in(-1), PAYLOAD)
        ledger.put("ann@x.com", PURPOSE_REGISTER, "h2", _in(5), PAYLOAD)

        assert count_otp_records("old@x.com") == 0


class TestFindLatestActive:

    def test_missing(self, ledger):
        assert ledger.find_latest_active("ann@x.com", PURPOSE_REGISTER) is None

    def test_prefers_most_recent_duplicate(self, ledger):
        """Should pick the newest row when a race left duplicates behind."""
        now = datetime.now(timezone.utc)
        with session_scope() as session:
            for otp_hash in ("first", "second"):
                session.add(
                    OtpEntry(
                        contact="ann@x.com",
                        purpose=PURPOSE_REGISTER,
                        otp_hash=otp_hash,
                        expires_at=_in(5),
                        attempts=0,
                        payload=dump_payload(PAYLOAD),
                        created_at=now,
                    )
                )
                session.flush()

        assert ledger.find_latest_active("ann@x.com", PURPOSE_REGISTER).otp_hash == "second"

    def test_expiry_is_timezone_aware(self, ledger):
        ledger.put("ann@x.com", PURPOSE_REGISTER, "h1", _in(5), PAYLOAD)

        record = ledger.find_latest_active("ann@x.com", PURPOSE_REGISTER)
        assert record.expires_at.tzinfo is not None
        assert record.expires_at > datetime.now(timezone.utc)


class TestMutations:

    def test_reserve_attempt(self, ledger):
        record = ledger.put("ann@x.com", PURPOSE_REGISTER, "h1", _in(5), PAYLOAD)

        assert ledger.reserve_attempt(record.id, 5) == 1
        assert ledger.reserve_attempt(record.id, 5) == 2
        assert ledger.find_latest_active("ann@x.com", PURPOSE_REGISTER).attempts == 2

    def test_reserve_attempt_stops_at_limit(self, ledger):
        """Should refuse to count past the limit and leave the counter alone."""
        record = ledger.put("ann@x.com", PURPOSE_REGISTER, "h1", _in(5), PAYLOAD)

        assert ledger.reserve_attempt(record.id, 2) == 1
        assert ledger.reserve_attempt(record.id, 2) == 2
        assert ledger.reserve_attempt(record.id, 2) is None
        assert ledger.find_latest_active("ann@x.com", PURPOSE_REGISTER).attempts == 2

    def test_reserve_attempt_missing(self, ledger):
        assert ledger.reserve_attempt(999, 5) is None

    def test_exists(self, ledger):
        record = ledger.put("ann@x.com", PURPOSE_REGISTER, "h1", _in(5), PAYLOAD)

        assert ledger.exists(record.id) is True
        ledger.delete(record.id)
        assert ledger.exists(record.id) is False

    def test_refresh_resets_attempts(self, ledger):
        record = ledger.put("ann@x.com", PURPOSE_REGISTER, "h1", _in(5), PAYLOAD)
        ledger.reserve_attempt(record.id, 5)

        refreshed = ledger.refresh(record.id, "h2", _in(10))

        assert refreshed.attempts == 0
        assert refreshed.otp_hash == "h2"
        assert refreshed.payload == PAYLOAD

    def test_refresh_missing(self, ledger):
        assert ledger.refresh(999, "h", _in(5)) is None

    def test_delete(self, ledger):
        record = ledger.put("ann@x.com", PURPOSE_REGISTER, "h1", _in(5), PAYLOAD)

        assert ledger.delete(record.id) is True
        assert ledger.delete(record.id) is False
        assert ledger.find_latest_active("ann@x.com", PURPOSE_REGISTER) is None

    def test_delete_all_for(self, ledger):
        ledger.put("ann@x.com", PURPOSE_REGISTER, "h1", _in(5), PAYLOAD)
        ledger.put("ann@x.com", PURPOSE_RESET, "h2", _in(5), ResetPayload(user_id=1))

        assert ledger.delete_all_for("ann@x.com", PURPOSE_REGISTER) == 1
        assert ledger.find_latest_active("ann@x.com", PURPOSE_RESET) is not None

    def test_purge_expired(self, ledger):
        ledger.put("ann@x.com", PURPOSE_REGISTER, "h1", _in(5), PAYLOAD)
        ledger.put("old@x.com", PURPOSE_REGISTER, "h2", _in(-5), PAYLOAD)

        assert ledger.purge_expired() == 1
        assert count_otp_records() == 1


class TestPayloads:

    def test_reset_payload_from_json(self):
        assert load_payload({"kind": "reset", "user_id": "12"}) == ResetPayload(user_id=12)

    def test_register_payload_is_tagged(self):
        assert dump_payload(PAYLOAD)["kind"] == "register"

    def test_unknown_kind(self):
        with pytest.raises(ValueError):
            load_payload({"kind": "login"})
