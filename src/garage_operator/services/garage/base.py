"""Garage Admin API interface."""

from __future__ import annotations

from typing import Any, Protocol

from .models import Bucket, BucketQuotas, Key, Permissions


class GarageAPI(Protocol):
    """Protocol defining the Garage Admin API operations used by the operator."""

    def create_bucket(self, global_alias: str | None = None, local_alias: dict[str, str] | None = None) -> Bucket:
        """Create a bucket."""
        ...

    def get_bucket_by_id(self, bucket_id: str) -> Bucket:
        """Get a bucket by its ID."""
        ...

    def get_bucket_by_alias(self, global_alias: str) -> Bucket:
        """Get a bucket by one of its global aliases."""
        ...

    def update_bucket(self, bucket_id: str, quotas: BucketQuotas) -> Bucket:
        """Update bucket quotas."""
        ...

    def delete_bucket(self, bucket_id: str) -> None:
        """Delete a bucket."""
        ...

    def create_key(self, name: str) -> Key:
        """Create an access key. Only this response carries the secret."""
        ...

    def get_key_by_id(self, access_key_id: str) -> Key:
        """Get a key by its access key ID."""
        ...

    def search_key_by_name(self, name: str) -> Key | None:
        """Find a key whose name is exactly ``name``."""
        ...

    def update_key(self, access_key_id: str, allow: dict[str, bool] | None = None,
                   deny: dict[str, bool] | None = None) -> Key:
        """Allow or deny global key permissions."""
        ...

    def delete_key(self, access_key_id: str) -> None:
        """Delete a key."""
        ...

    def grant_access(self, bucket_id: str, access_key_id: str, permissions: Permissions) -> Bucket:
        """Allow a key the given permissions on a bucket."""
        ...

    def revoke_access(self, bucket_id: str, access_key_id: str,
                      permissions: Permissions | None = None) -> Bucket:
        """Deny a key the given permissions (all by default) on a bucket."""
        ...

    def check_health(self) -> dict[str, Any]:
        """Probe the admin endpoint."""
        ...

    def close(self) -> None:
        """Release the underlying connection."""
        ...
