"""Resolution of externally assigned identifiers for buckets and keys."""

from __future__ import annotations

import logging

from .. import metrics
from ..constants import KIND_BUCKET, KIND_KEY
from ..models import ManagedResource
from ..services.garage.base import GarageAPI
from ..services.garage.client import GarageAPIError
from ..services.garage.models import Bucket, Key

logger = logging.getLogger(__name__)

TIER_EXTERNAL_NAME = "external_name"
TIER_STATUS = "status"
TIER_SEARCH = "search"
TIER_ALIAS = "alias"
TIER_NONE = "none"


def _record(kind: str, tier: str) -> None:
    metrics.identity_resolution_total.labels(kind=kind, tier=tier).inc()


def resolve_bucket(api: GarageAPI, resource: ManagedResource) -> Bucket | None:
    """Find the external bucket for ``resource``.

    The observed id is tried first. If that lookup fails the stored id is
    cleared and the declared global alias is tried instead. Returns None when
    neither resolves, which means the bucket does not exist.
    """
    bucket_id = resource.at_provider.get("id")
    if bucket_id:
        try:
            bucket = api.get_bucket_by_id(bucket_id)
            _record(KIND_BUCKET, TIER_STATUS)
            return bucket
        except GarageAPIError as e:
            logger.debug(f"Bucket {bucket_id} lookup failed, clearing stored id: {e}")
            resource.at_provider.pop("id", None)

    global_alias = resource.for_provider.get("globalAlias")
    if global_alias:
        try:
            bucket = api.get_bucket_by_alias(global_alias)
            _record(KIND_BUCKET, TIER_ALIAS)
            return bucket
        except GarageAPIError as e:
            logger.debug(f"Bucket alias {global_alias} lookup failed: {e}")

    _record(KIND_BUCKET, TIER_NONE)
    return None


def desired_key_name(resource: ManagedResource) -> str:
    return resource.for_provider.get("name") or resource.name


def resolve_key(api: GarageAPI, resource: ManagedResource) -> Key | None:
    """Find the external key for ``resource`` using three tiers in priority order.

    1. The external-name hint, when it differs from the object's name.
    2. The access key id recorded in status. A failed lookup means the key
       was removed out of band, so the stored id is cleared. A hit re-arms
       the hint so a stale hint is replaced by the live id.
    3. A search by the declared key name, exact matches only. A hit re-arms
       the hint so a crash between create and status write never produces a
       second key.

    Returns None when no tier resolves. The returned key never carries a
    secret access key.
    """
    if resource.has_external_name:
        try:
            key = api.get_key_by_id(resource.external_name)
            _record(KIND_KEY, TIER_EXTERNAL_NAME)
            return key
        except GarageAPIError as e:
            logger.debug(f"Key hint {resource.external_name} lookup failed: {e}")

    access_key_id = resource.at_provider.get("accessKeyId")
    if access_key_id:
        try:
            key = api.get_key_by_id(access_key_id)
            _record(KIND_KEY, TIER_STATUS)
            resource.set_external_name(key.access_key_id or access_key_id)
            return key
        except GarageAPIError as e:
            logger.debug(f"Key {access_key_id} lookup failed, clearing stored id: {e}")
            resource.at_provider.pop("accessKeyId", None)

    name = desired_key_name(resource)
    try:
        key = api.search_key_by_name(name)
    except GarageAPIError as e:
        logger.debug(f"Key search for {name} failed: {e}")
        key = None

    if key is not None and key.access_key_id:
        resource.set_external_name(key.access_key_id)
        _record(KIND_KEY, TIER_SEARCH)
        return key

    _record(KIND_KEY, TIER_NONE)
    return None
