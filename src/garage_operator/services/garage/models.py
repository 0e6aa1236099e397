"""Models for Garage Admin API payloads."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass
class Permissions:
    """Read/write/owner permission triple of a key on a bucket."""

    read: bool = False
    write: bool = False
    owner: bool = False

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> Permissions:
        data = data or {}
        return cls(
            read=bool(data.get("read", False)),
            write=bool(data.get("write", False)),
            owner=bool(data.get("owner", False)),
        )

    def to_dict(self) -> dict[str, bool]:
        return {"read": self.read, "write": self.write, "owner": self.owner}

    def is_empty(self) -> bool:
        return not (self.read or self.write or self.owner)


@dataclass
class BucketQuotas:
    """Bucket quotas; ``None`` means unlimited."""

    max_size: int | None = None
    max_objects: int | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> BucketQuotas:
        data = data or {}
        return cls(max_size=data.get("maxSize"), max_objects=data.get("maxObjects"))

    def to_dict(self) -> dict[str, int | None]:
        return {"maxSize": self.max_size, "maxObjects": self.max_objects}


@dataclass
class BucketKeyPermission:
    """A key entry in a bucket's permission list."""

    access_key_id: str
    name: str = ""
    permissions: Permissions = field(default_factory=Permissions)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> BucketKeyPermission:
        return cls(
            access_key_id=data.get("accessKeyId", ""),
            name=data.get("name", ""),
            permissions=Permissions.from_dict(data.get("permissions")),
        )


@dataclass
class Bucket:
    """A Garage bucket as returned by the Admin API."""

    id: str
    global_aliases: list[str] = field(default_factory=list)
    local_aliases: list[dict[str, Any]] = field(default_factory=list)
    keys: list[BucketKeyPermission] = field(default_factory=list)
    quotas: BucketQuotas = field(default_factory=BucketQuotas)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Bucket:
        return cls(
            id=data.get("id", ""),
            global_aliases=list(data.get("globalAliases") or []),
            local_aliases=list(data.get("localAliases") or []),
            keys=[BucketKeyPermission.from_dict(k) for k in data.get("keys") or []],
            quotas=BucketQuotas.from_dict(data.get("quotas")),
        )

    def key_permission(self, access_key_id: str) -> BucketKeyPermission | None:
        """Return the permission entry for ``access_key_id`` if the key is granted on this bucket."""
        for entry in self.keys:
            if entry.access_key_id == access_key_id:
                return entry
        return None


@dataclass
class Key:
    """A Garage access key.

    ``secret_access_key`` is only populated in the response to a create call.
    """

    access_key_id: str
    name: str = ""
    secret_access_key: str | None = None
    create_bucket: bool = False

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Key:
        return cls(
            access_key_id=data.get("accessKeyId", ""),
            name=data.get("name", ""),
            secret_access_key=data.get("secretAccessKey") or None,
            create_bucket=bool((data.get("permissions") or {}).get("createBucket", False)),
        )


@dataclass
class KeyInfo:
    """Summary entry returned by key listing and search."""

    id: str
    name: str

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> KeyInfo:
        return cls(id=data.get("id") or data.get("accessKeyId", ""), name=data.get("name", ""))
