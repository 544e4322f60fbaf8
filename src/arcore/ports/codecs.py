"""Attribute encoding collaborator contract."""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class Codec(Protocol):
    def hash(self, value: str) -> str: ...

    def is_hashed(self, value: str) -> bool: ...

    def encrypt(self, value: object) -> str: ...

    def decrypt(self, value: str) -> object: ...

    def encode_json(self, value: object) -> str: ...

    def decode_json(self, value: str) -> object: ...

    def slugify(self, value: str) -> str: ...
