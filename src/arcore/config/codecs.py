"""Settings for attribute hashing and encryption."""

from __future__ import annotations

import os
from dataclasses import dataclass

from .env import env_int, require_env_vars

DEFAULT_HASH_ITERATIONS = 390_000


@dataclass(frozen=True, slots=True)
class CodecConfig:
    """Holds the Fernet key used for encryptable attributes and the PBKDF2 cost."""

    encryption_key: str | None = None
    hash_iterations: int = DEFAULT_HASH_ITERATIONS

    def require_encryption_key(self) -> str:
        if self.encryption_key:
            return self.encryption_key
        return require_env_vars(["ARCORE_ENCRYPTION_KEY"])["ARCORE_ENCRYPTION_KEY"]


def get_codec_config() -> CodecConfig:
    return CodecConfig(
        encryption_key=os.getenv("ARCORE_ENCRYPTION_KEY") or None,
        hash_iterations=env_int("ARCORE_HASH_ITERATIONS", DEFAULT_HASH_ITERATIONS),
    )
