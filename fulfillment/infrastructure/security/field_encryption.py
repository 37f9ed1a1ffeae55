"""
Field-level encryption for sensitive payment identifiers.

Values are encrypted with Fernet before they reach the database. A keyed
HMAC of the plaintext is stored alongside so rows can be looked up and
kept unique without decrypting every candidate.
"""
import base64
import hashlib
import hmac
import logging
from typing import Optional

from cryptography.fernet import Fernet, InvalidToken
from sqlalchemy import Text
from sqlalchemy.types import TypeDecorator

logger = logging.getLogger(__name__)


class FieldCipher:
    """Fernet cipher plus lookup hashing derived from one secret."""

    def __init__(self, secret: str):
        if not secret:
            raise ValueError("Field encryption secret must not be empty")
        raw = secret.encode("utf-8")
        self._fernet = Fernet(base64.urlsafe_b64encode(hashlib.sha256(raw).digest()))
        self._hash_key = hashlib.sha256(b"lookup:" + raw).digest()

    def encrypt(self, value: str) -> str:
        return self._fernet.encrypt(value.encode("utf-8")).decode("ascii")

    def decrypt(self, token: str) -> str:
        """
        Decrypt a stored token.

        Raises:
            InvalidToken: If the token was not produced with this secret
        """
        return self._fernet.decrypt(token.encode("ascii")).decode("utf-8")

    def lookup_hash(self, value: str) -> str:
        """Deterministic HMAC-SHA256 hex digest used for equality lookups."""
        return hmac.new(self._hash_key, value.encode("utf-8"), hashlib.sha256).hexdigest()


_cipher: Optional[FieldCipher] = None


def configure_field_cipher(secret: str) -> FieldCipher:
    """Install the process-wide cipher (called at startup and by tests)."""
    global _cipher
    _cipher = FieldCipher(secret)
    return _cipher


def get_field_cipher() -> FieldCipher:
    """Return the process-wide cipher, creating it from settings on first use."""
    global _cipher
    if _cipher is None:
        from fulfillment.settings.modules.security_settings import SecuritySettings

        _cipher = FieldCipher(SecuritySettings().field_encryption_secret)
    return _cipher


def lookup_hash(value: str) -> str:
    return get_field_cipher().lookup_hash(value)


class EncryptedString(TypeDecorator):
    """String column transparently encrypted at rest."""

    impl = Text
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        return get_field_cipher().encrypt(str(value))

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        try:
            return get_field_cipher().decrypt(value)
        except InvalidToken:
            logger.error("Failed to decrypt an encrypted column; check FIELD_ENCRYPTION_SECRET")
            raise
