import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: bool = False) -> bool:
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    return raw_value.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_list(name: str, default: str) -> tuple[str, ...]:
    raw_value = os.getenv(name, default)
    return tuple(item.strip() for item in raw_value.split(",") if item.strip())


@dataclass(frozen=True)
class Settings:
    jwt_secret: str = os.getenv("JWT_SECRET", "")
    jwt_algorithm: str = os.getenv("ALGORITHM", "HS256")
    jwt_expires_days: int = int(os.getenv("JWT_EXPIRES_DAYS", "7"))
    otp_length: int = int(os.getenv("OTP_LENGTH", "6"))
    otp_ttl_minutes: int = int(os.getenv("OTP_TTL_MINUTES", "5"))
    max_otp_attempts: int = int(os.getenv("MAX_OTP_ATTEMPTS", "5"))
    bcrypt_rounds: int = int(os.getenv("BCRYPT_ROUNDS", "10"))
    otp_rate_limit: int = int(os.getenv("OTP_RATE_LIMIT", "5"))
    otp_rate_window_seconds: int = int(os.getenv("OTP_RATE_WINDOW_SECONDS", "900"))
    otp_rate_limit_enabled: bool = _env_bool("OTP_RATE_LIMIT_ENABLED", True)
    notification_backend: str = os.getenv("NOTIFICATION_BACKEND", "log").strip().lower()
    otp_email_sender: str = (
        os.getenv("OTP_EMAIL_SENDER")
        or os.getenv("GMAIL_SENDER")
        or os.getenv("EMAIL_USER", "")
    )
    gmail_token_file: str = os.getenv("GMAIL_TOKEN_FILE", "")
    gmail_credentials_file: str = os.getenv("GMAIL_CREDENTIALS_FILE", "")
    cors_origins: tuple[str, ...] = field(
        default_factory=lambda: _env_list(
            "CORS_ORIGINS", "http://localhost:5173,http://127.0.0.1:5173"
        )
    )
    log_level: str = os.getenv("LOG_LEVEL", "INFO").upper()
    seed_email: str = os.getenv("SEED_EMAIL", "").strip().lower()
    seed_password: str = os.getenv("SEED_PASSWORD", "")
    seed_name: str = os.getenv("SEED_NAME", "Super Admin").strip()

    @property
    def otp_ttl_seconds(self) -> int:
        return self.otp_ttl_minutes * 60


settings = Settings()
