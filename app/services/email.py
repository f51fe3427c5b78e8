from __future__ import annotations

import base64
import json
import logging
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Optional, Protocol
from urllib.error import HTTPError, URLError
from urllib.parse import urlencode
from urllib.request import Request, urlopen

from app.config import Settings, settings

LOGGER = logging.getLogger(__name__)

GMAIL_SEND_ENDPOINT = "https://gmail.googleapis.com/gmail/v1/users/me/messages/send"
GOOGLE_TOKEN_URI = "https://oauth2.googleapis.com/token"


class EmailSendError(RuntimeError):
    pass


class NotificationSender(Protocol):
    def send(self, contact: str, subject: str, body: str) -> None: ...


class LogNotificationSender:
    """Writes messages to the log instead of delivering them."""

    def send(self, contact: str, subject: str, body: str) -> None:
        LOGGER.warning("[email simulated] to=%s subject=%s body=%s", contact, subject, body)


class GmailNotificationSender:
    """Plain-text mail through the Gmail REST API using a stored OAuth token."""

    def __init__(
        self,
        sender: str,
        token_file: str = "",
        credentials_file: str = "",
        timeout: float = 10,
    ) -> None:
        root = Path(__file__).resolve().parents[2]
        self._sender = sender
        self._token_path = Path(token_file) if token_file else root / "credentials" / "token.json"
        self._credentials_path = (
            Path(credentials_file)
            if credentials_file
            else root / "credentials" / "credentials.json"
        )
        self._timeout = timeout

    def send(self, contact: str, subject: str, body: str) -> None:
        if not self._sender:
            raise EmailSendError("Email sender is not configured")
        raw_message = build_raw_message(self._sender, contact, subject, body)
        token = self._access_token()
        request = Request(
            GMAIL_SEND_ENDPOINT,
            data=json.dumps({"raw": raw_message}).encode("utf-8"),
            headers={
                "Authorization": f"Bearer {token}",
                "Content-Type": "application/json",
            },
            method="POST",
        )
        try:
            with urlopen(request, timeout=self._timeout) as response:
                response.read()
        except HTTPError as exc:
            error_body = exc.read().decode("utf-8", errors="replace")
            LOGGER.error("Gmail API error to=%s response=%s", contact, error_body)
            raise EmailSendError("Failed to send email") from exc
        except URLError as exc:
            LOGGER.error("Gmail API unreachable to=%s reason=%s", contact, exc.reason)
            raise EmailSendError("Failed to reach Gmail API") from exc
        LOGGER.info("Email sent to=%s subject=%s", contact, subject)

    def _access_token(self) -> str:
        token_data = _load_json(self._token_path)
        token = token_data.get("token")
        expiry = _parse_expiry(token_data.get("expiry"))
        if token and expiry and expiry > datetime.now(timezone.utc) + timedelta(minutes=1):
            return token

        refresh_token = token_data.get("refresh_token")
        if not refresh_token:
            raise EmailSendError("Gmail refresh token is missing")
        client_id, client_secret = self._client_details(token_data)
        request = Request(
            token_data.get("token_uri") or GOOGLE_TOKEN_URI,
            data=urlencode(
                {
                    "client_id": client_id,
                    "client_secret": client_secret,
                    "refresh_token": refresh_token,
                    "grant_type": "refresh_token",
                }
            ).encode("utf-8"),
            method="POST",
        )
        try:
            with urlopen(request, timeout=self._timeout) as response:
                data = json.loads(response.read().decode("utf-8"))
        except HTTPError as exc:
            error_body = exc.read().decode("utf-8", errors="replace")
            LOGGER.error("Gmail token refresh error: %s", error_body)
            raise EmailSendError("Failed to refresh Gmail token") from exc
        except URLError as exc:
            raise EmailSendError("Failed to reach Gmail token endpoint") from exc

        access_token = data.get("access_token")
        if not access_token:
            raise EmailSendError("Gmail token refresh did not return an access token")
        expires_in = int(data.get("expires_in", 3600))
        token_data["token"] = access_token
        token_data["expiry"] = (
            datetime.now(timezone.utc) + timedelta(seconds=expires_in)
        ).isoformat()
        self._token_path.write_text(json.dumps(token_data), encoding="utf-8")
        return access_token

    def _client_details(self, token_data: dict[str, Any]) -> tuple[str, str]:
        client_id = token_data.get("client_id")
        client_secret = token_data.get("client_secret")
        if client_id and client_secret:
            return client_id, client_secret
        credentials = _load_json(self._credentials_path)
        installed = credentials.get("installed", {})
        client_id = installed.get("client_id") or credentials.get("client_id")
        client_secret = installed.get("client_secret") or credentials.get("client_secret")
        if not client_id or not client_secret:
            raise EmailSendError("Gmail client credentials are missing")
        return client_id, client_secret


def build_raw_message(sender: str, recipient: str, subject: str, body: str) -> str:
    lines = [
        f"From: {sender}",
        f"To: {recipient}",
        f"Subject: {subject}",
        "MIME-Version: 1.0",
        "Content-Type: text/plain; charset=utf-8",
        "",
        body,
    ]
    # Gmail API expects base64url-encoded RFC 2822 content.
    return base64.urlsafe_b64encode("\r\n".join(lines).encode("utf-8")).decode("ascii")


def build_notification_sender(config: Settings) -> NotificationSender:
    if config.notification_backend == "gmail":
        return GmailNotificationSender(
            config.otp_email_sender,
            token_file=config.gmail_token_file,
            credentials_file=config.gmail_credentials_file,
        )
    if config.notification_backend != "log":
        raise ValueError(f"Unknown notification backend: {config.notification_backend}")
    return LogNotificationSender()


def _parse_expiry(raw_value: Optional[str]) -> Optional[datetime]:
    if not raw_value:
        return None
    try:
        parsed = datetime.fromisoformat(raw_value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed


def _load_json(path: Path) -> dict[str, Any]:
    if not path.exists():
        raise EmailSendError(f"Missing Gmail file: {path}")
    with path.open("r", encoding="utf-8") as handle:
        return json.load(handle)


notification_sender = build_notification_sender(settings)
