"""
Reversible encoding for integration secrets (ads-platform token, AI key).

Stored values look like ``enc:<payload>``. With ENCRYPTION_KEY configured the
payload is a Fernet token from the `cryptography` package. Without a key
(development only) the payload is URL-safe base64 so local setups work with
no extra configuration; production refuses to run without a key.
"""

import base64
import binascii
import logging
from cryptography.fernet import Fernet, InvalidToken
from adpulse.config import get_settings
from adpulse.errors import DecodeError

logger = logging.getLogger(__name__)

PREFIX = "enc:"

_fernet = None
_NO_KEY_WARNING_EMITTED = False


def _get_fernet() -> Fernet | None:
    """Lazy-init the Fernet instance from the configured key."""
    global _fernet, _NO_KEY_WARNING_EMITTED
    if _fernet is not None:
        return _fernet

    settings = get_settings()
    key = settings.encryption_key

    if not key:
        if settings.is_production:
            raise RuntimeError(
                "ENCRYPTION_KEY must be set in production. "
                "Generate one with: python -c \"from cryptography.fernet import Fernet; print(Fernet.generate_key().decode())\""
            )
        if not _NO_KEY_WARNING_EMITTED:
            logger.warning(
                "ENCRYPTION_KEY not set — integration secrets are only base64-obscured. "
                "This is acceptable for local development only."
            )
            _NO_KEY_WARNING_EMITTED = True
        return None

    try:
        _fernet = Fernet(key.encode() if isinstance(key, str) else key)
    except Exception as exc:
        raise RuntimeError(f"Invalid ENCRYPTION_KEY: {exc}") from exc

    return _fernet


def reset_fernet() -> None:
    """Drop the cached Fernet instance (settings changed, tests)."""
    global _fernet
    _fernet = None


def encode_secret(plaintext: str) -> str:
    """Encode a secret for storage."""
    f = _get_fernet()
    if f is None:
        payload = base64.urlsafe_b64encode(plaintext.encode()).decode()
    else:
        payload = f.encrypt(plaintext.encode()).decode()
    return PREFIX + payload


def decode_secret(encoded: str) -> str:
    """
    Decode a stored secret.
    Raises DecodeError when the value is not in the ``enc:`` format or the
    payload cannot be decoded with the current key.
    """
    if not isinstance(encoded, str) or not encoded.startswith(PREFIX):
        raise DecodeError("Secret is not in the expected encoded format")
    payload = encoded[len(PREFIX):]
    f = _get_fernet()
    try:
        if f is None:
            return base64.urlsafe_b64decode(payload.encode()).decode()
        return f.decrypt(payload.encode()).decode()
    except (InvalidToken, binascii.Error, UnicodeDecodeError, ValueError) as exc:
        raise DecodeError(f"Secret payload could not be decoded: {type(exc).__name__}") from exc
