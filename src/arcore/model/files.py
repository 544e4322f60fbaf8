"""Stored file records reached through attachment relations."""

from __future__ import annotations

from typing import ClassVar, Final

from arcore.model.descriptors import FILE_MODEL_NAME
from arcore.model.entity import Model

PUBLIC_PREFIX: Final[str] = "uploads/public"
PROTECTED_PREFIX: Final[str] = "uploads/protected"


class File(Model):
    """A stored file owned polymorphically through ``attachment_type``/``attachment_id``.

    ``field`` holds the owner's relation name so one owner can carry several
    attachment relations. Whether a file is exposed publicly is decided when
    it is bound and only affects :attr:`access_path`.
    """

    morph_class: ClassVar[str] = FILE_MODEL_NAME
    timestamps: ClassVar[bool] = True

    @property
    def is_public(self) -> bool:
        return bool(self.get("is_public", True))

    @property
    def access_path(self) -> str:
        prefix = PUBLIC_PREFIX if self.is_public else PROTECTED_PREFIX
        disk_name = self.get("disk_name") or self.get("file_name") or ""
        return f"{prefix}/{disk_name}"
