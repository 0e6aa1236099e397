"""Handler for Key CRD."""

from __future__ import annotations

import os
from typing import Any

import kopf

from ..constants import (
    API_GROUP_VERSION,
    CONNECTION_ACCESS_KEY_ID,
    CONNECTION_SECRET_ACCESS_KEY,
    KIND_KEY,
    PLURAL_KEYS,
)
from ..models import ExternalCreation, ExternalObservation, ExternalUpdate, ManagedResource
from ..services.garage.base import GarageAPI
from ..services.garage.client import GarageAPIError, GarageClient
from ..services.garage.models import Key
from ..utils.errors import ResourceTypeMismatchError, wrap_error
from ..utils.identity import desired_key_name, resolve_key
from .base import RETRY_BACKOFF_SECONDS, ManagedHandler
from .shared import object_lock, release_object_lock

RESYNC_INTERVAL_SECONDS = float(os.getenv("RESYNC_INTERVAL_SECONDS", "60"))


def desired_create_bucket(for_provider: dict[str, Any]) -> bool | None:
    permissions = for_provider.get("permissions") or {}
    if "createBucket" not in permissions:
        return None
    return bool(permissions["createBucket"])


class KeyExternal:
    """External client for Garage access keys.

    Observe never returns connection details. The secret access key is
    published once, from the create response, and is never read back.
    """

    def __init__(self, api: GarageAPI):
        self.api = api

    def _check(self, resource: ManagedResource) -> None:
        if resource.kind != KIND_KEY:
            raise ResourceTypeMismatchError(KIND_KEY, resource.kind)

    def _sync(self, resource: ManagedResource, key: Key) -> None:
        resource.at_provider["accessKeyId"] = key.access_key_id
        resource.at_provider["name"] = key.name or desired_key_name(resource)
        resource.at_provider["createBucket"] = key.create_bucket

    def observe(self, resource: ManagedResource) -> ExternalObservation:
        self._check(resource)
        key = resolve_key(self.api, resource)
        if key is None:
            return ExternalObservation(resource_exists=False)

        self._sync(resource, key)
        wanted = desired_create_bucket(resource.for_provider)
        up_to_date = wanted is None or wanted == key.create_bucket
        return ExternalObservation(resource_exists=True, resource_up_to_date=up_to_date)

    def create(self, resource: ManagedResource) -> ExternalCreation:
        self._check(resource)
        try:
            key = self.api.create_key(desired_key_name(resource))
        except GarageAPIError as e:
            raise wrap_error("cannot create key", e) from e

        self._sync(resource, key)
        resource.set_external_name(key.access_key_id)
        details = {CONNECTION_ACCESS_KEY_ID: key.access_key_id.encode("utf-8")}
        if key.secret_access_key:
            details[CONNECTION_SECRET_ACCESS_KEY] = key.secret_access_key.encode("utf-8")
        return ExternalCreation(connection_details=details)

    def update(self, resource: ManagedResource) -> ExternalUpdate:
        self._check(resource)
        wanted = desired_create_bucket(resource.for_provider)
        access_key_id = resource.at_provider.get("accessKeyId")
        if wanted is None or not access_key_id:
            return ExternalUpdate()
        flags = {"createBucket": True}
        try:
            if wanted:
                key = self.api.update_key(access_key_id, allow=flags)
            else:
                key = self.api.update_key(access_key_id, deny=flags)
        except GarageAPIError as e:
            raise wrap_error("cannot update key", e) from e
        if key.access_key_id:
            self._sync(resource, key)
        return ExternalUpdate()

    def delete(self, resource: ManagedResource) -> None:
        self._check(resource)
        # Observe has just refreshed the status id; the hint may be stale
        access_key_id = resource.at_provider.get("accessKeyId", "")
        if not access_key_id and resource.has_external_name:
            access_key_id = resource.external_name
        if not access_key_id:
            return
        try:
            self.api.delete_key(access_key_id)
        except GarageAPIError as e:
            if e.is_not_found:
                return
            raise wrap_error("cannot delete key", e) from e


class KeyHandler(ManagedHandler):
    """Handler for Key resources."""

    def __init__(self):
        super().__init__(KIND_KEY, PLURAL_KEYS)

    def external_client(self, garage: GarageClient, resource: ManagedResource) -> KeyExternal:
        return KeyExternal(garage)


# Global handler instance
_handler = KeyHandler()


@kopf.on.create(API_GROUP_VERSION, KIND_KEY, backoff=RETRY_BACKOFF_SECONDS)
@kopf.on.update(API_GROUP_VERSION, KIND_KEY, backoff=RETRY_BACKOFF_SECONDS)
@kopf.on.resume(API_GROUP_VERSION, KIND_KEY, backoff=RETRY_BACKOFF_SECONDS)
@kopf.timer(
    API_GROUP_VERSION,
    KIND_KEY,
    interval=RESYNC_INTERVAL_SECONDS,
    initial_delay=RESYNC_INTERVAL_SECONDS,
    idle=RESYNC_INTERVAL_SECONDS,
)
def handle_key(
    body: kopf.Body,
    meta: dict[str, Any],
    patch: kopf.Patch,
    **kwargs: Any,
) -> None:
    """Handle Key resource reconciliation."""
    with object_lock(meta.get("uid", "")):
        _handler.ensure_finalizer(meta, patch)
        _handler.reconcile_with_metrics(body, lambda: _handler.reconcile(body, patch))


@kopf.on.delete(API_GROUP_VERSION, KIND_KEY, backoff=RETRY_BACKOFF_SECONDS)
def handle_key_delete(
    body: kopf.Body,
    meta: dict[str, Any],
    patch: kopf.Patch,
    **kwargs: Any,
) -> None:
    """Handle Key resource deletion."""
    uid = meta.get("uid", "")
    with object_lock(uid):
        _handler.delete(body, patch)
    release_object_lock(uid)
