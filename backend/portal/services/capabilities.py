"""
capabilities.py — Capability Issuer

Purpose:
- Mint short-lived presigned URLs for exactly one (container, blob) pair.
- Derive the permission set from the caller's role.

Permission sets:
- admin          → read, create, write, delete
- doctor / nurse → read, create, write
- anything else  → read

Each permission maps to the S3 operation a presigned URL can carry:
- read           → GET    (get_object)
- create, write  → PUT    (put_object)
- delete         → DELETE (delete_object)

Validity is fixed at one hour from issuance and cannot be renewed; callers
go back through the access gate for a new capability.

This module does NOT check authorization. Call it only after
AccessGate.require_access() has passed.
"""

import datetime
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, FrozenSet

from portal.services.policy import Role, parse_role
from portal.storage.object_store import ObjectStore

CAPABILITY_TTL = datetime.timedelta(hours=1)


class Permission(str, Enum):
    READ = "read"
    CREATE = "create"
    WRITE = "write"
    DELETE = "delete"


ROLE_PERMISSIONS: Dict[Role, FrozenSet[Permission]] = {
    Role.ADMIN: frozenset(Permission),
    Role.DOCTOR: frozenset({Permission.READ, Permission.CREATE, Permission.WRITE}),
    Role.NURSE: frozenset({Permission.READ, Permission.CREATE, Permission.WRITE}),
    Role.ASSISTANT: frozenset({Permission.READ}),
}
_READ_ONLY = frozenset({Permission.READ})

# Ordered so URL keys come out deterministic
_OPERATIONS = (
    ("read", "get_object", frozenset({Permission.READ})),
    ("upload", "put_object", frozenset({Permission.CREATE, Permission.WRITE})),
    ("delete", "delete_object", frozenset({Permission.DELETE})),
)


def permissions_for(role: object) -> FrozenSet[Permission]:
    parsed = parse_role(role)
    if parsed is None:
        return _READ_ONLY
    return ROLE_PERMISSIONS.get(parsed, _READ_ONLY)


def _utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


@dataclass(frozen=True)
class Capability:
    container: str
    blob_key: str
    permissions: FrozenSet[Permission]
    issued_at: datetime.datetime
    expires_at: datetime.datetime
    urls: Dict[str, str] = field(default_factory=dict)

    @property
    def url(self) -> str:
        """The read URL; every capability carries read."""
        return self.urls["read"]

    def to_dict(self) -> dict:
        return {
            "sasUrl": self.url,
            "permissions": sorted(p.value for p in self.permissions),
            "expiresAt": self.expires_at.isoformat(),
            "urls": dict(self.urls),
        }


class CapabilityIssuer:
    def __init__(self, object_store: ObjectStore, clock: Callable[[], datetime.datetime] = _utcnow):
        self._object_store = object_store
        self._clock = clock

    def issue(self, container: str, blob_key: str, role: object) -> Capability:
        permissions = permissions_for(role)
        issued_at = self._clock()
        expires_in = int(CAPABILITY_TTL.total_seconds())

        urls: Dict[str, str] = {}
        for name, client_method, needs in _OPERATIONS:
            if permissions & needs:
                urls[name] = self._object_store.presign(client_method, container, blob_key, expires_in)

        return Capability(
            container=container,
            blob_key=blob_key,
            permissions=permissions,
            issued_at=issued_at,
            expires_at=issued_at + CAPABILITY_TTL,
            urls=urls,
        )
