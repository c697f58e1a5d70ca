"""
Platform-level modules for sessions and security.

This package contains:
- session_context: Session identity from the auth provider's JWT
- secrets: Secrets management and encryption
"""

from src.platform.session_context import (
    SessionContext,
    SessionContextMiddleware,
    decode_session_token,
    get_optional_session_context,
    get_session_context,
)

from src.platform.secrets import (
    EncryptionError,
    encrypt_secret,
    decrypt_secret,
    encrypt_optional,
    decrypt_optional,
    redact_secrets,
    mask_secret,
    is_secret_key,
    SecretRedactingFilter,
    validate_encryption_configured,
)

__all__ = [
    # Session context
    "SessionContext",
    "SessionContextMiddleware",
    "decode_session_token",
    "get_optional_session_context",
    "get_session_context",
    # Secrets
    "EncryptionError",
    "encrypt_secret",
    "decrypt_secret",
    "encrypt_optional",
    "decrypt_optional",
    "redact_secrets",
    "mask_secret",
    "is_secret_key",
    "SecretRedactingFilter",
    "validate_encryption_configured",
]
