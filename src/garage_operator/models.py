"""Managed resource model shared by the reconciliation engine and the per-kind external clients."""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import Any, Protocol

from .constants import ANNOTATION_EXTERNAL_NAME, DEFAULT_PROVIDER_CONFIG

ConnectionDetails = dict[str, bytes]


@dataclass
class ManagedResource:
    """One declared resource as seen by a single reconcile cycle.

    ``for_provider`` is read-only for the cycle. ``at_provider`` and
    ``conditions`` are owned by the engine and written back to status.
    ``external_name`` is the identity hint persisted in an annotation; when
    the annotation is absent it reads as the object's own name.
    """

    kind: str
    name: str
    namespace: str
    uid: str = ""
    generation: int = 0
    for_provider: dict[str, Any] = field(default_factory=dict)
    at_provider: dict[str, Any] = field(default_factory=dict)
    conditions: list[dict[str, Any]] = field(default_factory=list)
    external_name: str = ""
    provider_config_name: str = DEFAULT_PROVIDER_CONFIG
    connection_secret_name: str = ""
    external_name_changed: bool = False

    def __post_init__(self) -> None:
        if not self.external_name:
            self.external_name = self.name
        if not self.connection_secret_name:
            self.connection_secret_name = f"{self.name}-credentials"

    @classmethod
    def from_kopf(
        cls,
        kind: str,
        meta: dict[str, Any],
        spec: dict[str, Any],
        status: dict[str, Any] | None,
    ) -> ManagedResource:
        """Build a resource from the kopf ``meta``/``spec``/``status`` handler arguments."""
        status = status or {}
        annotations = meta.get("annotations") or {}
        provider_ref = spec.get("providerConfigRef") or {}
        secret_ref = spec.get("writeConnectionSecretToRef") or {}
        return cls(
            kind=kind,
            name=meta.get("name", ""),
            namespace=meta.get("namespace") or "default",
            uid=meta.get("uid", ""),
            generation=meta.get("generation", 0) or 0,
            for_provider=copy.deepcopy(dict(spec.get("forProvider") or {})),
            at_provider=copy.deepcopy(dict(status.get("atProvider") or {})),
            conditions=copy.deepcopy(list(status.get("conditions") or [])),
            external_name=annotations.get(ANNOTATION_EXTERNAL_NAME, ""),
            provider_config_name=provider_ref.get("name") or DEFAULT_PROVIDER_CONFIG,
            connection_secret_name=secret_ref.get("name", ""),
        )

    def set_external_name(self, value: str) -> None:
        """Set the identity hint and mark it for persistence."""
        if value and value != self.external_name:
            self.external_name = value
            self.external_name_changed = True

    @property
    def has_external_name(self) -> bool:
        """Whether the hint was ever set to something other than the object's name."""
        return bool(self.external_name) and self.external_name != self.name


@dataclass
class Reference:
    """Pointer to another managed resource; namespace defaults to the referencing object's."""

    name: str
    namespace: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None, default_namespace: str) -> Reference | None:
        if not data or not data.get("name"):
            return None
        return cls(name=data["name"], namespace=data.get("namespace") or default_namespace)


@dataclass
class ExternalObservation:
    resource_exists: bool = False
    resource_up_to_date: bool = False
    connection_details: ConnectionDetails = field(default_factory=dict)


@dataclass
class ExternalCreation:
    connection_details: ConnectionDetails = field(default_factory=dict)


@dataclass
class ExternalUpdate:
    connection_details: ConnectionDetails = field(default_factory=dict)


class ExternalClient(Protocol):
    """Operations the reconciliation engine drives for one resource kind."""

    def observe(self, resource: ManagedResource) -> ExternalObservation:
        ...

    def create(self, resource: ManagedResource) -> ExternalCreation:
        ...

    def update(self, resource: ManagedResource) -> ExternalUpdate:
        ...

    def delete(self, resource: ManagedResource) -> None:
        ...
