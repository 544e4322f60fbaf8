"""Attribute hashing, encryption, JSON and slug helpers."""

from __future__ import annotations

import base64
import hmac
import json
import os
from functools import cached_property
from typing import TYPE_CHECKING, Final

from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC
from slugify import slugify

from arcore.config import CodecConfig, ConfigurationError, get_codec_config

HASH_PREFIX: Final[str] = "pbkdf2_sha256"
SALT_BYTES: Final[int] = 16


def _b64(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).decode("ascii")


class AttributeCodec:
    def __init__(self, config: CodecConfig | None = None) -> None:
        self.config = config or get_codec_config()

    @cached_property
    def _fernet(self) -> Fernet:
        key = self.config.require_encryption_key()
        try:
            return Fernet(key)
        except ValueError as exc:
            raise ConfigurationError("ARCORE_ENCRYPTION_KEY is not a valid Fernet key") from exc

    def _derive(self, value: str, salt: bytes, iterations: int) -> bytes:
        kdf = PBKDF2HMAC(algorithm=hashes.SHA256(), length=32, salt=salt, iterations=iterations)
        return kdf.derive(value.encode("utf-8"))

    def hash(self, value: str) -> str:
        salt = os.urandom(SALT_BYTES)
        iterations = self.config.hash_iterations
        digest = self._derive(value, salt, iterations)
        return f"{HASH_PREFIX}${iterations}${_b64(salt)}${_b64(digest)}"

    def is_hashed(self, value: str) -> bool:
        return value.startswith(f"{HASH_PREFIX}$") and value.count("$") == 3  # noqa: PLR2004

    def verify(self, value: str, hashed: str) -> bool:
        if not self.is_hashed(hashed):
            return False
        _, iterations, salt, digest = hashed.split("$")
        candidate = self._derive(value, base64.urlsafe_b64decode(salt), int(iterations))
        return hmac.compare_digest(_b64(candidate), digest)

    def encrypt(self, value: object) -> str:
        payload = json.dumps(value, default=str).encode("utf-8")
        return self._fernet.encrypt(payload).decode("ascii")

    def decrypt(self, value: str) -> object:
        try:
            payload = self._fernet.decrypt(value.encode("ascii"))
        except InvalidToken as exc:
            raise ConfigurationError("Encrypted attribute could not be decrypted") from exc
        return json.loads(payload)

    def encode_json(self, value: object) -> str:
        return json.dumps(value, default=str, separators=(",", ":"))

    def decode_json(self, value: str) -> object:
        return json.loads(value)

    def slugify(self, value: str) -> str:
        return slugify(value)


if TYPE_CHECKING:
    from arcore.ports.codecs import Codec

    _codec_check: Codec = AttributeCodec(CodecConfig())
