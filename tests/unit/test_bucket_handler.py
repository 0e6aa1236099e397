"""Tests for the Bucket external client and its kopf wiring."""

from __future__ import annotations

import copy
from contextlib import contextmanager
from unittest.mock import Mock, patch

import kopf
import pytest

from garage_operator.constants import API_GROUP_VERSION, KIND_BUCKET, KIND_KEY
from garage_operator.handlers.bucket import BucketExternal, BucketHandler, handle_bucket
from garage_operator.models import ManagedResource
from garage_operator.services.garage.client import GarageAPIError
from garage_operator.services.garage.models import Bucket, BucketQuotas
from garage_operator.utils.errors import ExternalOperationError, ResourceTypeMismatchError


def bucket_resource(**kwargs) -> ManagedResource:
    defaults = {"kind": KIND_BUCKET, "name": "photos", "namespace": "default"}
    defaults.update(kwargs)
    return ManagedResource(**defaults)


class TestBucketObserve:
    """Test cases for BucketExternal.observe."""

    def test_alias_lookup_populates_observed_id(self):
        api = Mock()
        api.get_bucket_by_alias.return_value = Bucket(id="bucket-123", global_aliases=["test-bucket"])
        resource = bucket_resource(for_provider={"globalAlias": "test-bucket"})

        observation = BucketExternal(api).observe(resource)

        assert observation.resource_exists
        assert observation.resource_up_to_date
        assert observation.connection_details == {}
        assert resource.at_provider["id"] == "bucket-123"
        assert resource.at_provider["globalAliases"] == ["test-bucket"]

    def test_absent_without_identifiers(self):
        api = Mock()

        observation = BucketExternal(api).observe(bucket_resource())

        assert not observation.resource_exists

    def test_quota_drift(self):
        api = Mock()
        api.get_bucket_by_id.return_value = Bucket(id="b1", quotas=BucketQuotas(max_size=10))
        resource = bucket_resource(for_provider={"quotas": {"maxSize": 20}}, at_provider={"id": "b1"})

        observation = BucketExternal(api).observe(resource)

        assert observation.resource_exists
        assert not observation.resource_up_to_date

    def test_wrong_kind(self):
        with pytest.raises(ResourceTypeMismatchError):
            BucketExternal(Mock()).observe(bucket_resource(kind=KIND_KEY))


class TestBucketCreateUpdate:
    """Test cases for BucketExternal.create and update."""

    def test_create_records_id(self):
        api = Mock()
        api.create_bucket.return_value = Bucket(id="b1", global_aliases=["photos"])
        resource = bucket_resource(for_provider={"globalAlias": "photos"})

        BucketExternal(api).create(resource)

        api.create_bucket.assert_called_once_with(global_alias="photos", local_alias=None)
        assert resource.at_provider["id"] == "b1"

    def test_create_failure_is_labelled(self):
        api = Mock()
        api.create_bucket.side_effect = GarageAPIError("create_bucket", "alias taken", status_code=409)

        with pytest.raises(ExternalOperationError, match="^cannot create bucket"):
            BucketExternal(api).create(bucket_resource(for_provider={"globalAlias": "photos"}))

    def test_update_applies_declared_quotas(self):
        api = Mock()
        api.update_bucket.return_value = Bucket(id="b1", quotas=BucketQuotas(max_size=20))
        resource = bucket_resource(for_provider={"quotas": {"maxSize": 20}}, at_provider={"id": "b1"})

        BucketExternal(api).update(resource)

        api.update_bucket.assert_called_once_with("b1", BucketQuotas(max_size=20, max_objects=None))
        assert resource.at_provider["quotas"] == {"maxSize": 20, "maxObjects": None}


class TestBucketDelete:
    """Test cases for BucketExternal.delete."""

    def test_no_identifier_makes_no_call(self):
        api = Mock()

        BucketExternal(api).delete(bucket_resource())

        assert api.method_calls == []

    def test_deletes_by_id(self):
        api = Mock()

        BucketExternal(api).delete(bucket_resource(at_provider={"id": "b1"}))

        api.delete_bucket.assert_called_once_with("b1")

    def test_not_found_is_success(self):
        api = Mock()
        api.delete_bucket.side_effect = GarageAPIError("delete_bucket", "gone", status_code=404)

        BucketExternal(api).delete(bucket_resource(at_provider={"id": "b1"}))

    def test_failure_is_labelled(self):
        api = Mock()
        api.delete_bucket.side_effect = GarageAPIError("delete_bucket", "not empty", status_code=400)

        with pytest.raises(ExternalOperationError, match="^cannot delete bucket"):
            BucketExternal(api).delete(bucket_resource(at_provider={"id": "b1"}))


class FakeCluster:
    """Custom objects API holding a single object in memory."""

    def __init__(self, body):
        self.body = copy.deepcopy(body)

    def get_namespaced_custom_object(self, group, version, namespace, plural, name):
        return copy.deepcopy(self.body)

    def patch_namespaced_custom_object_status(self, group, version, namespace, plural, name, body):
        self.body.setdefault("status", {}).update(copy.deepcopy(body["status"]))

    def patch_namespaced_custom_object(self, group, version, namespace, plural, name, body):
        self.body["metadata"].setdefault("annotations", {}).update(body["metadata"]["annotations"])


class TestBucketWiring:
    """Test cases for handle_bucket."""

    def test_queued_cycle_with_stale_snapshot_creates_once(self):
        snapshot = {
            "apiVersion": API_GROUP_VERSION,
            "kind": KIND_BUCKET,
            "metadata": {"name": "photos", "namespace": "default", "uid": "uid-1", "generation": 1},
            "spec": {"forProvider": {}},
            "status": {},
        }
        api = Mock()
        api.create_bucket.return_value = Bucket(id="b1")
        api.get_bucket_by_id.return_value = Bucket(id="b1")
        handler = BucketHandler()
        handler._k8s_api = FakeCluster(snapshot)
        handler._core_api = Mock()

        @contextmanager
        def connect(resource):
            yield BucketExternal(api)

        with patch.object(handler, "connect", side_effect=connect):
            with patch("garage_operator.handlers.bucket._handler", handler):
                with patch("garage_operator.utils.events.kopf.event"):
                    # on.create and the first timer tick both see the pre-create snapshot
                    handle_bucket(body=snapshot, meta=snapshot["metadata"], patch=kopf.Patch())
                    handle_bucket(body=snapshot, meta=snapshot["metadata"], patch=kopf.Patch())

        api.create_bucket.assert_called_once()
        api.get_bucket_by_id.assert_called_once_with("b1")
        assert handler.k8s_api.body["status"]["atProvider"]["id"] == "b1"
