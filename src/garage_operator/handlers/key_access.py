"""Handler for KeyAccess CRD."""

from __future__ import annotations

import os
from typing import Any

import kopf

from ..constants import (
    API_GROUP_VERSION,
    KIND_BUCKET,
    KIND_KEY,
    KIND_KEY_ACCESS,
    PLURAL_BUCKETS,
    PLURAL_KEY_ACCESSES,
    PLURAL_KEYS,
)
from ..models import ExternalCreation, ExternalObservation, ExternalUpdate, ManagedResource, Reference
from ..services.garage.base import GarageAPI
from ..services.garage.client import GarageAPIError, GarageClient
from ..services.garage.models import Permissions
from ..utils.errors import ReferenceResolutionError, ResourceTypeMismatchError, wrap_error
from ..utils.references import resolve_reference
from .base import RETRY_BACKOFF_SECONDS, ManagedHandler
from .shared import object_lock, release_object_lock

RESYNC_INTERVAL_SECONDS = float(os.getenv("RESYNC_INTERVAL_SECONDS", "60"))


class KeyAccessExternal:
    """External client for the permission edge between a bucket and a key.

    The edge exists only when both identifiers resolve and the bucket lists
    the key among its authorized keys.
    """

    def __init__(self, api: GarageAPI, k8s_api: Any):
        self.api = api
        self.k8s_api = k8s_api

    def _check(self, resource: ManagedResource) -> None:
        if resource.kind != KIND_KEY_ACCESS:
            raise ResourceTypeMismatchError(KIND_KEY_ACCESS, resource.kind)

    def resolve_bucket_id(self, resource: ManagedResource) -> str:
        return resolve_reference(
            self.k8s_api,
            resource.for_provider.get("bucketId"),
            Reference.from_dict(resource.for_provider.get("bucketIdRef"), resource.namespace),
            KIND_BUCKET,
            PLURAL_BUCKETS,
            "id",
        )

    def resolve_access_key_id(self, resource: ManagedResource) -> str:
        return resolve_reference(
            self.k8s_api,
            resource.for_provider.get("accessKeyId"),
            Reference.from_dict(resource.for_provider.get("accessKeyIdRef"), resource.namespace),
            KIND_KEY,
            PLURAL_KEYS,
            "accessKeyId",
        )

    def _resolve(self, resource: ManagedResource) -> tuple[str, str]:
        return self.resolve_bucket_id(resource), self.resolve_access_key_id(resource)

    def observe(self, resource: ManagedResource) -> ExternalObservation:
        self._check(resource)
        bucket_id, access_key_id = self._resolve(resource)
        if not bucket_id or not access_key_id:
            return ExternalObservation(resource_exists=False)

        try:
            bucket = self.api.get_bucket_by_id(bucket_id)
        except GarageAPIError:
            return ExternalObservation(resource_exists=False)

        entry = bucket.key_permission(access_key_id)
        if entry is None:
            return ExternalObservation(resource_exists=False)

        resource.at_provider.update({
            "bucketId": bucket_id,
            "accessKeyId": access_key_id,
            "permissions": entry.permissions.to_dict(),
        })
        wanted = Permissions.from_dict(resource.for_provider.get("permissions"))
        return ExternalObservation(resource_exists=True, resource_up_to_date=entry.permissions == wanted)

    def create(self, resource: ManagedResource) -> ExternalCreation:
        self._check(resource)
        bucket_id, access_key_id = self._resolve(resource)
        if not bucket_id or not access_key_id:
            raise ValueError("cannot grant key access: bucketId and accessKeyId must be set")

        wanted = Permissions.from_dict(resource.for_provider.get("permissions"))
        if wanted.is_empty():
            raise ValueError("cannot grant key access: permissions must allow at least one of read, write or owner")
        try:
            self.api.grant_access(bucket_id, access_key_id, wanted)
        except GarageAPIError as e:
            raise wrap_error("cannot grant key access", e) from e

        resource.at_provider.update({
            "bucketId": bucket_id,
            "accessKeyId": access_key_id,
            "permissions": wanted.to_dict(),
        })
        return ExternalCreation()

    def update(self, resource: ManagedResource) -> ExternalUpdate:
        """Allow every declared permission and deny the ones currently held but no longer declared."""
        self._check(resource)
        bucket_id = resource.at_provider.get("bucketId")
        access_key_id = resource.at_provider.get("accessKeyId")
        if not bucket_id or not access_key_id:
            return ExternalUpdate()

        wanted = Permissions.from_dict(resource.for_provider.get("permissions"))
        if wanted.is_empty():
            raise ValueError("cannot update key access: permissions must allow at least one of read, write or owner")
        current = Permissions.from_dict(resource.at_provider.get("permissions"))
        to_deny = Permissions(
            read=current.read and not wanted.read,
            write=current.write and not wanted.write,
            owner=current.owner and not wanted.owner,
        )
        try:
            self.api.grant_access(bucket_id, access_key_id, wanted)
            if not to_deny.is_empty():
                self.api.revoke_access(bucket_id, access_key_id, to_deny)
        except GarageAPIError as e:
            raise wrap_error("cannot update key access", e) from e

        resource.at_provider["permissions"] = wanted.to_dict()
        return ExternalUpdate()

    def delete(self, resource: ManagedResource) -> None:
        """Revoke all permissions, falling back to persisted ids when references no longer resolve."""
        self._check(resource)
        try:
            bucket_id, access_key_id = self._resolve(resource)
        except ReferenceResolutionError:
            bucket_id, access_key_id = "", ""
        bucket_id = bucket_id or resource.at_provider.get("bucketId", "")
        access_key_id = access_key_id or resource.at_provider.get("accessKeyId", "")
        if not bucket_id or not access_key_id:
            return

        try:
            self.api.revoke_access(bucket_id, access_key_id)
        except GarageAPIError as e:
            if e.is_not_found:
                return
            raise wrap_error("cannot revoke key access", e) from e


class KeyAccessHandler(ManagedHandler):
    """Handler for KeyAccess resources."""

    def __init__(self):
        super().__init__(KIND_KEY_ACCESS, PLURAL_KEY_ACCESSES)

    def external_client(self, garage: GarageClient, resource: ManagedResource) -> KeyAccessExternal:
        return KeyAccessExternal(garage, self.k8s_api)


# Global handler instance
_handler = KeyAccessHandler()


@kopf.on.create(API_GROUP_VERSION, KIND_KEY_ACCESS, backoff=RETRY_BACKOFF_SECONDS)
@kopf.on.update(API_GROUP_VERSION, KIND_KEY_ACCESS, backoff=RETRY_BACKOFF_SECONDS)
@kopf.on.resume(API_GROUP_VERSION, KIND_KEY_ACCESS, backoff=RETRY_BACKOFF_SECONDS)
@kopf.timer(
    API_GROUP_VERSION,
    KIND_KEY_ACCESS,
    interval=RESYNC_INTERVAL_SECONDS,
    initial_delay=RESYNC_INTERVAL_SECONDS,
    idle=RESYNC_INTERVAL_SECONDS,
)
def handle_key_access(
    body: kopf.Body,
    meta: dict[str, Any],
    patch: kopf.Patch,
    **kwargs: Any,
) -> None:
    """Handle KeyAccess resource reconciliation."""
    with object_lock(meta.get("uid", "")):
        _handler.ensure_finalizer(meta, patch)
        _handler.reconcile_with_metrics(body, lambda: _handler.reconcile(body, patch))


@kopf.on.delete(API_GROUP_VERSION, KIND_KEY_ACCESS, backoff=RETRY_BACKOFF_SECONDS)
def handle_key_access_delete(
    body: kopf.Body,
    meta: dict[str, Any],
    patch: kopf.Patch,
    **kwargs: Any,
) -> None:
    """Handle KeyAccess resource deletion."""
    uid = meta.get("uid", "")
    with object_lock(uid):
        _handler.delete(body, patch)
    release_object_lock(uid)
