"""
Token vault: symmetric encryption of OAuth credentials at rest.

Tokens are stored as an *envelope* ``"<ivHex>:<cipherHex>"`` produced with
AES-256-CBC and PKCS7 padding.  Every call to :meth:`TokenVault.encrypt`
draws a fresh random IV, so encrypting the same token twice never yields
the same envelope.

Behaviour without key material: the vault is *disabled* and passes values
through untouched.  That means tokens are stored in plaintext, so a
WARNING is logged when the vault is built.  Deployments that set
``require_encryption`` refuse to start instead.

Decryption is deliberately lenient:

- a value without the ``:`` separator is treated as legacy plaintext
  (rows written before encryption was introduced) and returned as-is;
- a value that cannot be decrypted (corrupt envelope, wrong key) is
  returned unchanged so the caller can detect it with
  :meth:`TokenVault.looks_encrypted` and fail the post rather than crash
  the batch.

Neither plaintext nor envelopes are ever passed to the logger.
"""

import logging
import os
import re
from typing import Optional

from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from src.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

SEPARATOR = ":"
IV_LENGTH = 16  # bytes, AES block size
KEY_LENGTH = 32  # bytes, AES-256

_ENVELOPE_RE = re.compile(r"^[0-9a-fA-F]{32}:(?:[0-9a-fA-F]{32})+$")


class TokenVault:
    """Encrypt and decrypt OAuth tokens.

    Args:
        key_hex: 64 hex characters (32 bytes) of key material, or ``None``
            / empty to disable encryption.
        require_key: When ``True``, a missing key is a configuration error
            instead of a warning.

    Raises:
        ConfigurationError: If the key is malformed, or missing while
            ``require_key`` is set.

    Usage::

        vault = TokenVault(os.environ["TOKEN_ENCRYPTION_KEY"])
        envelope = vault.encrypt("ya29.a0Af...")
        token = vault.decrypt(envelope)
    """

    def __init__(self, key_hex: Optional[str], require_key: bool = False) -> None:
        key_hex = (key_hex or "").strip()

        if not key_hex:
            if require_key:
                raise ConfigurationError(
                    "TOKEN_ENCRYPTION_KEY is required but not configured"
                )
            self._key: Optional[bytes] = None
            logger.warning(
                "[VAULT] No encryption key configured: OAuth tokens will be "
                "stored and read as PLAINTEXT. Set TOKEN_ENCRYPTION_KEY "
                "(64 hex chars) before running in production."
            )
            return

        try:
            key = bytes.fromhex(key_hex)
        except ValueError as exc:
            raise ConfigurationError(
                "TOKEN_ENCRYPTION_KEY must be hex-encoded"
            ) from exc

        if len(key) != KEY_LENGTH:
            raise ConfigurationError(
                f"TOKEN_ENCRYPTION_KEY must decode to {KEY_LENGTH} bytes "
                f"({KEY_LENGTH * 2} hex chars), got {len(key)} bytes"
            )

        self._key = key

    @property
    def enabled(self) -> bool:
        """``True`` when key material is configured."""
        return self._key is not None

    # ------------------------------------------------------------------
    # Encrypt / decrypt
    # ------------------------------------------------------------------

    def encrypt(self, plaintext: str) -> str:
        """Encrypt *plaintext* into an ``ivHex:cipherHex`` envelope.

        Returns *plaintext* unchanged when the vault is disabled.
        """
        if self._key is None:
            return plaintext

        iv = os.urandom(IV_LENGTH)
        padder = padding.PKCS7(algorithms.AES.block_size).padder()
        padded = padder.update(plaintext.encode("utf-8")) + padder.finalize()

        encryptor = Cipher(algorithms.AES(self._key), modes.CBC(iv)).encryptor()
        ciphertext = encryptor.update(padded) + encryptor.finalize()

        return f"{iv.hex()}{SEPARATOR}{ciphertext.hex()}"

    def decrypt(self, value: Optional[str]) -> Optional[str]:
        """Decrypt an envelope back to plaintext.

        Returns the input unchanged when it is empty, has no separator
        (legacy plaintext), the vault is disabled, or decryption fails.
        """
        if not value:
            return value

        if SEPARATOR not in value:
            return value

        if self._key is None:
            return value

        iv_hex, _, cipher_hex = value.partition(SEPARATOR)

        try:
            iv = bytes.fromhex(iv_hex)
            ciphertext = bytes.fromhex(cipher_hex)
            decryptor = Cipher(algorithms.AES(self._key), modes.CBC(iv)).decryptor()
            padded = decryptor.update(ciphertext) + decryptor.finalize()
            unpadder = padding.PKCS7(algorithms.AES.block_size).unpadder()
            plaintext = unpadder.update(padded) + unpadder.finalize()
            return plaintext.decode("utf-8")
        except ValueError as exc:
            # UnicodeDecodeError is a ValueError subclass too.
            logger.error(
                "[VAULT] Token decryption failed (%s); returning envelope unchanged",
                type(exc).__name__,
            )
            return value

    # ------------------------------------------------------------------
    # Inspection
    # ------------------------------------------------------------------

    @staticmethod
    def looks_encrypted(value: Optional[str]) -> bool:
        """Return ``True`` if *value* has the shape of an envelope."""
        return bool(value) and _ENVELOPE_RE.match(value) is not None


# =============================================================================
# PUBLIC API
# =============================================================================

__all__ = [
    "TokenVault",
    "SEPARATOR",
]
