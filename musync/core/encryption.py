"""Fernet encryption for platform OAuth tokens at rest.

``EncryptedText`` encrypts on write and decrypts on read, so models and
adapters only ever see plaintext tokens. New values are always written with
``TOKEN_ENCRYPTION_KEY``. Keys listed in ``TOKEN_ENCRYPTION_PREVIOUS_KEYS``
still decrypt, so the key can be rotated without a data migration. Outside
production an ephemeral key is generated when none is set.
"""

import logging

import sqlalchemy as sa
from cryptography.fernet import Fernet, InvalidToken, MultiFernet

logger = logging.getLogger(__name__)

_cipher: MultiFernet | None = None

# Every Fernet token starts with the base64 of its version byte.
_TOKEN_PREFIX = "gAAAAA"


def _get_cipher() -> MultiFernet:
    global _cipher  # noqa: PLW0603
    if _cipher is None:
        from musync.core.config import get_settings

        settings = get_settings()
        key = settings.token_encryption_key
        if not key:
            key = Fernet.generate_key().decode()
            logger.warning("TOKEN_ENCRYPTION_KEY not set - tokens use an ephemeral key")
        previous = [k.strip() for k in settings.token_encryption_previous_keys.split(",")]
        _cipher = MultiFernet([Fernet(k.encode()) for k in [key, *previous] if k])
    return _cipher


def encrypt_token(plaintext: str | None) -> str | None:
    if plaintext is None:
        return None
    return _get_cipher().encrypt(plaintext.encode()).decode()


def decrypt_token(stored: str | None) -> str | None:
    """Decrypt a stored token with the current or any previous key.

    Values that are not Fernet tokens (rows written before encryption was
    enabled) come back unchanged, as do tokens no configured key can open.
    """
    if stored is None or not stored.startswith(_TOKEN_PREFIX):
        return stored
    try:
        return _get_cipher().decrypt(stored.encode()).decode()
    except InvalidToken:
        logger.error("Stored token could not be decrypted with any configured key")
        return stored


def reset_cipher() -> None:
    """Drop the cached cipher so the next call re-reads the keys."""
    global _cipher  # noqa: PLW0603
    _cipher = None


class EncryptedText(sa.types.TypeDecorator):
    """Text column holding a Fernet-encrypted value."""

    impl = sa.Text
    cache_ok = True

    def process_bind_param(self, value: str | None, dialect: sa.Dialect) -> str | None:
        return encrypt_token(value)

    def process_result_value(self, value: str | None, dialect: sa.Dialect) -> str | None:
        return decrypt_token(value)
