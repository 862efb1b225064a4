"""Symmetric encryption for secrets stored in the settings store."""

from __future__ import annotations

import logging
import os

from cryptography.fernet import Fernet, InvalidToken


logger = logging.getLogger(__name__)

SECRET_KEY_ENV = "HOUSEHOLD_AI_SECRET_KEY"


class SecretCipher:
    """Fernet wrapper used to keep credentials encrypted at rest."""

    def __init__(self, key: bytes | str) -> None:
        if isinstance(key, str):
            key = key.encode("utf-8")
        self._fernet = Fernet(key)

    @classmethod
    def generate(cls) -> "SecretCipher":
        return cls(Fernet.generate_key())

    @classmethod
    def from_env(cls, env_var: str = SECRET_KEY_ENV) -> "SecretCipher":
        key = os.getenv(env_var)
        if not key:
            raise ValueError(f"Missing {env_var}; generate one with Fernet.generate_key()")
        return cls(key)

    def encrypt(self, value: str) -> str:
        return self._fernet.encrypt(value.encode("utf-8")).decode("ascii")

    def decrypt(self, token: str) -> str | None:
        """Return the plaintext, or None when the token was not produced by this key."""
        try:
            return self._fernet.decrypt(token.encode("ascii")).decode("utf-8")
        except (InvalidToken, UnicodeEncodeError):
            logger.warning("Stored secret could not be decrypted; treating as unset")
            return None
