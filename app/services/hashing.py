import bcrypt

from app.config import settings


class CredentialHasher:
    """bcrypt hashing for passwords and OTP codes alike."""

    def __init__(self, rounds: int = 10) -> None:
        self._rounds = rounds

    def hash(self, secret: str) -> str:
        salt = bcrypt.gensalt(rounds=self._rounds)
        return bcrypt.hashpw(secret.encode("utf-8"), salt).decode("utf-8")

    def verify(self, secret: str, hashed: str) -> bool:
        if not secret or not hashed:
            return False
        try:
            return bcrypt.checkpw(secret.encode("utf-8"), hashed.encode("utf-8"))
        except ValueError:
            # Malformed stored hash.
            return False


hasher = CredentialHasher(settings.bcrypt_rounds)
