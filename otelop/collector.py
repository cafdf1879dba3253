"""Collector resource model and the pod-level settings derived from it."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

STATEFULSET_MODE = "statefulset"
DEFAULT_VOLUME_NAME = "default-volume"
DEFAULT_ACCESS_MODE = "ReadWriteOnce"
DEFAULT_STORAGE_REQUEST = "50Mi"


class UpgradeStrategy(str, Enum):
    """How the operator treats an instance when the operator is upgraded."""

    AUTOMATIC = "automatic"
    NONE = "none"


class DNSPolicy(str, Enum):
    """DNS policy applied to the collector pods."""

    CLUSTER_FIRST = "ClusterFirst"
    CLUSTER_FIRST_WITH_HOST_NET = "ClusterFirstWithHostNet"


@dataclass
class ObjectMeta:
    """Identifying metadata of a resource."""

    name: str = ""
    namespace: str = ""
    labels: dict[str, str] = field(default_factory=dict)


@dataclass
class PersistentVolumeClaim:
    """A volume claim template with its access modes and storage requests."""

    metadata: ObjectMeta = field(default_factory=ObjectMeta)
    access_modes: list[str] = field(default_factory=list)
    requests: dict[str, str] = field(default_factory=dict)

    @property
    def name(self) -> str:
        return self.metadata.name


@dataclass
class CollectorSpec:
    """Desired state of a collector instance."""

    mode: str = ""
    host_network: bool = False
    args: dict[str, str] = field(default_factory=dict)
    config: str = ""
    upgrade_strategy: UpgradeStrategy = UpgradeStrategy.AUTOMATIC
    volume_claim_templates: list[PersistentVolumeClaim] = field(default_factory=list)


@dataclass
class CollectorStatus:
    """Observed state of a collector instance."""

    version: str = ""


@dataclass
class OpenTelemetryCollector:
    """A collector custom resource."""

    metadata: ObjectMeta = field(default_factory=ObjectMeta)
    spec: CollectorSpec = field(default_factory=CollectorSpec)
    status: CollectorStatus = field(default_factory=CollectorStatus)

    @property
    def name(self) -> str:
        return self.metadata.name

    @property
    def namespace(self) -> str:
        return self.metadata.namespace


def dns_policy(otelcol: OpenTelemetryCollector) -> DNSPolicy:
    """Return the DNS policy matching the instance's host networking setting."""
    if otelcol.spec.host_network:
        return DNSPolicy.CLUSTER_FIRST_WITH_HOST_NET
    return DNSPolicy.CLUSTER_FIRST


def volume_claim_templates(otelcol: OpenTelemetryCollector) -> list[PersistentVolumeClaim]:
    """Build the volume claim templates; only stateful sets get any.

    User-supplied templates replace the default one entirely.
    """
    if otelcol.spec.mode != STATEFULSET_MODE:
        return []
    if otelcol.spec.volume_claim_templates:
        return list(otelcol.spec.volume_claim_templates)
    return [
        PersistentVolumeClaim(
            metadata=ObjectMeta(name=DEFAULT_VOLUME_NAME),
            access_modes=[DEFAULT_ACCESS_MODE],
            requests={"storage": DEFAULT_STORAGE_REQUEST},
        )
    ]