"""
Secrets handling for Syncboard.

CRITICAL SECURITY REQUIREMENTS:
- Provider credentials (OAuth tokens, WooCommerce consumer keys) are stored
  encrypted in external_tokens, never in plaintext
- All encrypt/decrypt operations MUST use this module
- Any variable name containing token/secret/key/password MUST be redacted
  from logs, including connector configs sent to the sync platform

Encryption uses Fernet with a key derived from ENCRYPTION_KEY.

Usage:
    from src.platform.secrets import encrypt_secret, decrypt_secret, redact_secrets

    encrypted = await encrypt_secret(consumer_secret)
    consumer_secret = await decrypt_secret(encrypted)

    logger.info("Destination config", extra={"config": redact_secrets(config)})
"""

import base64
import hashlib
import logging
import os
import re
from typing import Any, Optional

from cryptography.fernet import Fernet, InvalidToken

logger = logging.getLogger(__name__)

SECRET_PATTERNS = [
    re.compile(r"(api[_-]?key)", re.IGNORECASE),
    re.compile(r"(api[_-]?secret)", re.IGNORECASE),
    re.compile(r"(consumer[_-]?key)", re.IGNORECASE),
    re.compile(r"(consumer[_-]?secret)", re.IGNORECASE),
    re.compile(r"(access[_-]?token)", re.IGNORECASE),
    re.compile(r"(refresh[_-]?token)", re.IGNORECASE),
    re.compile(r"(developer[_-]?token)", re.IGNORECASE),
    re.compile(r"(password)", re.IGNORECASE),
    re.compile(r"(client[_-]?secret)", re.IGNORECASE),
    re.compile(r"(auth[_-]?token)", re.IGNORECASE),
    re.compile(r"(encryption[_-]?key)", re.IGNORECASE),
    re.compile(r"(jwt[_-]?secret)", re.IGNORECASE),
    re.compile(r"(database[_-]?url)", re.IGNORECASE),
    re.compile(r"(credentials)", re.IGNORECASE),
]

SECRET_VALUE_PATTERNS = [
    re.compile(r"(Bearer\s+[a-zA-Z0-9._-]+)"),
    re.compile(r"(ck_[a-fA-F0-9]{32,})"),  # WooCommerce consumer keys
    re.compile(r"(cs_[a-fA-F0-9]{32,})"),  # WooCommerce consumer secrets
    re.compile(r"(ya29\.[a-zA-Z0-9._-]{20,})"),  # Google access tokens
    re.compile(r"(1//[a-zA-Z0-9._-]{20,})"),  # Google refresh tokens
    re.compile(r"(EAA[a-zA-Z0-9]{20,})"),  # Meta access tokens
]

REDACTED_VALUE = "[REDACTED]"

_KEY_DERIVATION_SALT = b"syncboard-credentials-salt"


class EncryptionError(Exception):
    """Raised when encryption/decryption operations fail."""
    pass


class SecretsManager:
    """
    Fernet encryption keyed from ENCRYPTION_KEY.

    The key is derived lazily and re-derived whenever ENCRYPTION_KEY
    changes, so a rotated key takes effect without a restart.
    """

    def __init__(self):
        self._source_key: Optional[str] = None
        self._fernet: Optional[Fernet] = None

    def _get_fernet(self) -> Fernet:
        encryption_key = os.getenv("ENCRYPTION_KEY")
        if not encryption_key:
            raise EncryptionError("ENCRYPTION_KEY is not configured")

        if self._fernet is None or encryption_key != self._source_key:
            derived_key = hashlib.pbkdf2_hmac(
                "sha256",
                encryption_key.encode(),
                _KEY_DERIVATION_SALT,
                100000,
                dklen=32,
            )
            self._fernet = Fernet(base64.urlsafe_b64encode(derived_key))
            self._source_key = encryption_key
            logger.info("Credential encryption initialized")

        return self._fernet

    async def encrypt(self, plaintext: str) -> str:
        """
        Encrypt a plaintext string.

        Raises:
            ValueError: If plaintext is empty
            EncryptionError: If no key is configured
        """
        if not plaintext:
            raise ValueError("Cannot encrypt empty string")

        encrypted = self._get_fernet().encrypt(plaintext.encode("utf-8"))
        return encrypted.decode("utf-8")

    async def decrypt(self, ciphertext: str) -> str:
        """
        Decrypt a string produced by encrypt().

        Raises:
            ValueError: If ciphertext is empty
            EncryptionError: If the key is missing or does not match
        """
        if not ciphertext:
            raise ValueError("Cannot decrypt empty string")

        try:
            decrypted = self._get_fernet().decrypt(ciphertext.encode("utf-8"))
        except InvalidToken:
            raise EncryptionError("Invalid ciphertext or wrong encryption key")
        return decrypted.decode("utf-8")


_secrets_manager = SecretsManager()


async def encrypt_secret(plaintext: str) -> str:
    """Encrypt a secret for storage."""
    return await _secrets_manager.encrypt(plaintext)


async def decrypt_secret(ciphertext: str) -> str:
    """Decrypt a stored secret."""
    return await _secrets_manager.decrypt(ciphertext)


async def encrypt_optional(plaintext: Optional[str]) -> Optional[str]:
    """Encrypt when a value is present, pass None through."""
    if not plaintext:
        return None
    return await encrypt_secret(plaintext)


async def decrypt_optional(ciphertext: Optional[str]) -> Optional[str]:
    if not ciphertext:
        return None
    return await decrypt_secret(ciphertext)


def is_secret_key(key: str) -> bool:
    """Check if a dictionary key likely contains a secret."""
    return any(pattern.search(key) for pattern in SECRET_PATTERNS)


def redact_value(value: Any) -> Any:
    """Redact known secret value shapes from a string."""
    if not isinstance(value, str):
        return value

    result = value
    for pattern in SECRET_VALUE_PATTERNS:
        result = pattern.sub(REDACTED_VALUE, result)
    return result


def redact_secrets(data: Any, _depth: int = 0) -> Any:
    """
    Recursively redact secrets from a data structure.

    Use this before logging any data that might contain secrets.

    Usage:
        safe_config = redact_secrets({"password": "hunter2", "host": "db"})
    """
    if _depth > 10:
        return data

    if isinstance(data, dict):
        result = {}
        for key, value in data.items():
            if is_secret_key(str(key)):
                result[key] = REDACTED_VALUE
            else:
                result[key] = redact_secrets(value, _depth + 1)
        return result

    if isinstance(data, list):
        return [redact_secrets(item, _depth + 1) for item in data]

    if isinstance(data, str):
        return redact_value(data)

    return data


def mask_secret(secret: Optional[str], visible_chars: int = 4) -> str:
    """
    Mask a secret showing only the last few characters.

    Returns:
        Masked string like "****abcd"
    """
    if not secret or len(secret) <= visible_chars:
        return "*" * max(len(secret) if secret else 0, 4)

    return "*" * (len(secret) - visible_chars) + secret[-visible_chars:]


class SecretRedactingFilter(logging.Filter):
    """
    Logging filter that redacts secrets from log records.

    Usage:
        handler.addFilter(SecretRedactingFilter())
    """

    def filter(self, record: logging.LogRecord) -> bool:
        if isinstance(record.msg, str):
            record.msg = redact_value(record.msg)

        if record.args:
            if isinstance(record.args, dict):
                record.args = redact_secrets(record.args)
            elif isinstance(record.args, tuple):
                record.args = tuple(
                    redact_value(arg) if isinstance(arg, str) else arg
                    for arg in record.args
                )

        # extra={} fields land on the record itself
        for key, value in list(record.__dict__.items()):
            if key in ("msg", "args"):
                continue
            if is_secret_key(key):
                setattr(record, key, REDACTED_VALUE)
            elif isinstance(value, (dict, list)):
                setattr(record, key, redact_secrets(value))

        return True


def validate_encryption_configured() -> bool:
    return bool(os.getenv("ENCRYPTION_KEY"))
