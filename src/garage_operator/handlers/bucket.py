"""Handler for Bucket CRD."""

from __future__ import annotations

import os
from typing import Any

import kopf

from ..constants import API_GROUP_VERSION, KIND_BUCKET, PLURAL_BUCKETS
from ..models import ExternalCreation, ExternalObservation, ExternalUpdate, ManagedResource
from ..services.garage.base import GarageAPI
from ..services.garage.client import GarageAPIError, GarageClient
from ..services.garage.models import Bucket, BucketQuotas
from ..utils.errors import ResourceTypeMismatchError, wrap_error
from ..utils.identity import resolve_bucket
from .base import RETRY_BACKOFF_SECONDS, ManagedHandler
from .shared import object_lock, release_object_lock

RESYNC_INTERVAL_SECONDS = float(os.getenv("RESYNC_INTERVAL_SECONDS", "60"))


def desired_quotas(for_provider: dict[str, Any]) -> BucketQuotas | None:
    quotas = for_provider.get("quotas")
    if quotas is None:
        return None
    return BucketQuotas.from_dict(quotas)


def observed_state(bucket: Bucket) -> dict[str, Any]:
    return {
        "id": bucket.id,
        "globalAliases": list(bucket.global_aliases),
        "quotas": bucket.quotas.to_dict(),
    }


class BucketExternal:
    """External client for Garage buckets."""

    def __init__(self, api: GarageAPI):
        self.api = api

    def _check(self, resource: ManagedResource) -> None:
        if resource.kind != KIND_BUCKET:
            raise ResourceTypeMismatchError(KIND_BUCKET, resource.kind)

    def observe(self, resource: ManagedResource) -> ExternalObservation:
        self._check(resource)
        bucket = resolve_bucket(self.api, resource)
        if bucket is None:
            return ExternalObservation(resource_exists=False)

        resource.at_provider.update(observed_state(bucket))
        wanted = desired_quotas(resource.for_provider)
        up_to_date = wanted is None or wanted == bucket.quotas
        return ExternalObservation(resource_exists=True, resource_up_to_date=up_to_date)

    def create(self, resource: ManagedResource) -> ExternalCreation:
        self._check(resource)
        try:
            bucket = self.api.create_bucket(
                global_alias=resource.for_provider.get("globalAlias"),
                local_alias=resource.for_provider.get("localAlias"),
            )
        except GarageAPIError as e:
            raise wrap_error("cannot create bucket", e) from e
        resource.at_provider.update(observed_state(bucket))
        return ExternalCreation()

    def update(self, resource: ManagedResource) -> ExternalUpdate:
        self._check(resource)
        wanted = desired_quotas(resource.for_provider)
        bucket_id = resource.at_provider.get("id")
        if wanted is None or not bucket_id:
            return ExternalUpdate()
        try:
            bucket = self.api.update_bucket(bucket_id, wanted)
        except GarageAPIError as e:
            raise wrap_error("cannot update bucket", e) from e
        if bucket.id:
            resource.at_provider.update(observed_state(bucket))
        return ExternalUpdate()

    def delete(self, resource: ManagedResource) -> None:
        self._check(resource)
        bucket_id = resource.at_provider.get("id")
        if not bucket_id:
            return
        try:
            self.api.delete_bucket(bucket_id)
        except GarageAPIError as e:
            if e.is_not_found:
                return
            raise wrap_error("cannot delete bucket", e) from e


class BucketHandler(ManagedHandler):
    """Handler for Bucket resources."""

    def __init__(self):
        super().__init__(KIND_BUCKET, PLURAL_BUCKETS)

    def external_client(self, garage: GarageClient, resource: ManagedResource) -> BucketExternal:
        return BucketExternal(garage)


# Global handler instance
_handler = BucketHandler()


@kopf.on.create(API_GROUP_VERSION, KIND_BUCKET, backoff=RETRY_BACKOFF_SECONDS)
@kopf.on.update(API_GROUP_VERSION, KIND_BUCKET, backoff=RETRY_BACKOFF_SECONDS)
@kopf.on.resume(API_GROUP_VERSION, KIND_BUCKET, backoff=RETRY_BACKOFF_SECONDS)
@kopf.timer(
    API_GROUP_VERSION,
    KIND_BUCKET,
    interval=RESYNC_INTERVAL_SECONDS,
    initial_delay=RESYNC_INTERVAL_SECONDS,
    idle=RESYNC_INTERVAL_SECONDS,
)
def handle_bucket(
    body: kopf.Body,
    meta: dict[str, Any],
    patch: kopf.Patch,
    **kwargs: Any,
) -> None:
    """Handle Bucket resource reconciliation."""
    with object_lock(meta.get("uid", "")):
        _handler.ensure_finalizer(meta, patch)
        _handler.reconcile_with_metrics(body, lambda: _handler.reconcile(body, patch))


@kopf.on.delete(API_GROUP_VERSION, KIND_BUCKET, backoff=RETRY_BACKOFF_SECONDS)
def handle_bucket_delete(
    body: kopf.Body,
    meta: dict[str, Any],
    patch: kopf.Patch,
    **kwargs: Any,
) -> None:
    """Handle Bucket resource deletion."""
    uid = meta.get("uid", "")
    with object_lock(uid):
        _handler.delete(body, patch)
    release_object_lock(uid)
