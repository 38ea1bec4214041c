"""Symmetric encryption of feedback free text.

Uses Fernet (AES-128-CBC with HMAC-SHA256 and a random IV per token). The
key is generated once and kept in the local-only storage tier, so it never
follows the user to another device.
"""

from typing import Optional

from cryptography.fernet import Fernet, InvalidToken
from loguru import logger

from credibility_feedback.data_management.kv_store import KeyValueStore
from credibility_feedback.errors import EncryptionUnavailable, StorageUnavailable


class FeedbackCipher:
    """
    Encrypts and decrypts free text with a persisted Fernet key.

    Attributes:
        key_name: Storage key holding the base64 Fernet key
    """

    key_name = "encryption:key"

    def __init__(self, store: KeyValueStore, auto_generate: bool = True):
        """
        Initialize the cipher.

        Args:
            store: Local-only tier that holds the key
            auto_generate: Create and persist a key when none exists yet
        """
        self._store = store
        self._auto_generate = auto_generate
        self._fernet: Optional[Fernet] = None
        self.logger = logger.bind(component="FeedbackCipher")

    async def _load(self) -> Fernet:
        if self._fernet is not None:
            return self._fernet

        try:
            stored = await self._store.get(self.key_name)
            if stored is None:
                if not self._auto_generate:
                    raise EncryptionUnavailable("no encryption key stored")
                stored = Fernet.generate_key().decode("ascii")
                await self._store.set(self.key_name, stored)
                self.logger.info("Generated new feedback encryption key")
            self._fernet = Fernet(stored.encode("ascii"))
        except StorageUnavailable as e:
            raise EncryptionUnavailable(f"encryption key unavailable: {e}") from e
        except ValueError as e:
            raise EncryptionUnavailable("stored encryption key is malformed") from e

        return self._fernet

    async def available(self) -> bool:
        """True when a key is loaded or can be loaded."""
        try:
            await self._load()
            return True
        except EncryptionUnavailable:
            return False

    async def encrypt(self, plaintext: str) -> str:
        """
        Encrypt text into a Fernet token.

        Raises:
            EncryptionUnavailable: No key could be loaded or created, or the
                text is not encodable as UTF-8 (lone surrogates)
        """
        fernet = await self._load()
        try:
            data = plaintext.encode("utf-8")
        except UnicodeEncodeError as e:
            raise EncryptionUnavailable(f"text is not valid UTF-8 at position {e.start}") from e
        return fernet.encrypt(data).decode("ascii")

    async def decrypt(self, token: str) -> str:
        """
        Decrypt a Fernet token.

        Raises:
            EncryptionUnavailable: No key, or the token was not produced by it
        """
        fernet = await self._load()
        try:
            return fernet.decrypt(token.encode("ascii")).decode("utf-8")
        except InvalidToken as e:
            raise EncryptionUnavailable("ciphertext does not match the stored key") from e


__all__ = ["FeedbackCipher"]
