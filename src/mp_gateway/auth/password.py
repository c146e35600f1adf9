"""Password hashing using bcrypt.

The plain password is first run through HMAC-SHA256 keyed by the configured
salt, then the hex digest is bcrypt-hashed. The digest is always 64 ASCII
bytes, which keeps it under bcrypt's 72-byte input limit.

The salt is handed in by the caller (loaded once by Settings); this module
reads no configuration of its own.
"""

import hashlib
import hmac

import bcrypt


class PasswordHasher:
    def __init__(self, salt: str) -> None:
        if not salt:
            raise ValueError("PasswordHasher requires a non-empty salt")
        self._key = salt.encode("utf-8")

    def _peppered(self, plain: str) -> bytes:
        digest = hmac.new(self._key, plain.encode("utf-8"), hashlib.sha256).hexdigest()
        return digest.encode("ascii")

    def hash(self, plain: str) -> str:
        """Hash a plain-text password. Returns a utf-8 bcrypt hash string."""
        hashed_bytes: bytes = bcrypt.hashpw(self._peppered(plain), bcrypt.gensalt())
        return hashed_bytes.decode("utf-8")

    def verify(self, plain: str, hashed: str) -> bool:
        return bcrypt.checkpw(self._peppered(plain), hashed.encode("utf-8"))
