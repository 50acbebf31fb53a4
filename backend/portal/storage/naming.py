"""
naming.py — Storage Naming Conventions

Purpose:
- Folders are not a storage primitive: a folder is the key prefix
  "{folder}/" inside a container, and a blob lives at "{folder}/{blobName}".
- Model Folder and blob names as validated values so every path built from
  request input is checked once, here, instead of sliced ad hoc.

Validation (both folder and blob names):
- non-empty after stripping
- no "/" or "\\" (a folder is exactly one level)
- not "." or ".."
- no control characters
"""

from dataclasses import dataclass

from portal.core.errors import ValidationError

DELIMITER = "/"
MAX_NAME_LENGTH = 512


def _check_segment(value: object, kind: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{kind} name must be a non-empty string")
    if len(value) > MAX_NAME_LENGTH:
        raise ValidationError(f"{kind} name is too long")
    if "/" in value or "\\" in value:
        raise ValidationError(f"{kind} name must not contain path separators")
    if value.strip() in (".", ".."):
        raise ValidationError(f"{kind} name must not be a relative path segment")
    if any(ord(ch) < 32 or ord(ch) == 127 for ch in value):
        raise ValidationError(f"{kind} name must not contain control characters")
    return value


def validate_container_name(value: object) -> str:
    return _check_segment(value, "Container")


@dataclass(frozen=True)
class Folder:
    """A validated folder name inside a container."""

    name: str

    def __post_init__(self):
        _check_segment(self.name, "Folder")

    @property
    def prefix(self) -> str:
        return f"{self.name}{DELIMITER}"

    def key_for(self, blob_name: str) -> str:
        """Full object key for a blob inside this folder."""
        return f"{self.prefix}{validate_blob_name(blob_name)}"

    def relative_name(self, key: str) -> str:
        """Strip this folder's prefix from a full object key."""
        if key.startswith(self.prefix):
            return key[len(self.prefix):]
        return key

    @classmethod
    def from_prefix(cls, prefix: str) -> "Folder":
        """Build from a listing prefix such as 'Patient_Data_001/'."""
        return cls(prefix[:-1] if prefix.endswith(DELIMITER) else prefix)

    def __str__(self) -> str:
        return self.name


def validate_blob_name(value: object) -> str:
    return _check_segment(value, "Blob")
