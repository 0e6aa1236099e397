"""Tests for the managed resource model."""

from __future__ import annotations

from garage_operator.constants import ANNOTATION_EXTERNAL_NAME
from garage_operator.models import ManagedResource, Reference


class TestManagedResourceFromKopf:
    """Test cases for building resources from kopf arguments."""

    def test_defaults(self):
        resource = ManagedResource.from_kopf("Key", {"name": "app", "uid": "u1"}, {}, None)

        assert resource.namespace == "default"
        assert resource.provider_config_name == "default"
        assert resource.connection_secret_name == "app-credentials"
        assert resource.external_name == "app"
        assert resource.has_external_name is False
        assert resource.at_provider == {}
        assert resource.conditions == []

    def test_reads_spec_status_and_annotation(self):
        meta = {
            "name": "app",
            "namespace": "team",
            "generation": 3,
            "annotations": {ANNOTATION_EXTERNAL_NAME: "GK123"},
        }
        spec = {
            "forProvider": {"name": "app-key"},
            "providerConfigRef": {"name": "garage-prod"},
            "writeConnectionSecretToRef": {"name": "app-s3"},
        }
        status = {"atProvider": {"accessKeyId": "GK123"}, "conditions": [{"type": "Ready", "status": "True"}]}

        resource = ManagedResource.from_kopf("Key", meta, spec, status)

        assert resource.namespace == "team"
        assert resource.generation == 3
        assert resource.for_provider == {"name": "app-key"}
        assert resource.at_provider == {"accessKeyId": "GK123"}
        assert resource.provider_config_name == "garage-prod"
        assert resource.connection_secret_name == "app-s3"
        assert resource.external_name == "GK123"
        assert resource.has_external_name is True
        assert resource.external_name_changed is False

    def test_status_is_copied(self):
        status = {"atProvider": {"id": "b1"}}

        resource = ManagedResource.from_kopf("Bucket", {"name": "media"}, {}, status)
        resource.at_provider.pop("id")

        assert status == {"atProvider": {"id": "b1"}}


class TestExternalName:
    """Test cases for the identity hint."""

    def test_set_marks_changed(self):
        resource = ManagedResource(kind="Key", name="app", namespace="default")

        resource.set_external_name("GK1")

        assert resource.external_name == "GK1"
        assert resource.external_name_changed is True
        assert resource.has_external_name is True

    def test_same_value_is_not_a_change(self):
        resource = ManagedResource(kind="Key", name="app", namespace="default", external_name="GK1")

        resource.set_external_name("GK1")

        assert resource.external_name_changed is False

    def test_empty_value_ignored(self):
        resource = ManagedResource(kind="Key", name="app", namespace="default")

        resource.set_external_name("")

        assert resource.external_name == "app"
        assert resource.external_name_changed is False


class TestReference:
    """Test cases for references."""

    def test_missing_name(self):
        assert Reference.from_dict(None, "default") is None
        assert Reference.from_dict({"namespace": "x"}, "default") is None

    def test_namespace_defaults_to_referencing_object(self):
        assert Reference.from_dict({"name": "media"}, "team") == Reference(name="media", namespace="team")

    def test_explicit_namespace(self):
        assert Reference.from_dict({"name": "media", "namespace": "shared"}, "team").namespace == "shared"
