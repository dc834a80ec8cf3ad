"""
Provisioning API.

Units never talk to a cloud SDK directly; they call a Provider with a
resource spec and get identifiers back. A provider that declines a request
raises ProviderError, which the driver reports as ProvisioningRejected.

SimulatedProvider is the in-process implementation used by tests and by
the command line. Identifiers are derived from (account, region, name), so
deploying the same graph twice yields the same ids.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol

from .resources import (
    ClusterSpec,
    InstanceSpec,
    LoadBalancerSpec,
    ManagedDatabaseSpec,
    NetworkSpec,
    SecurityGroupSpec,
    StorageSpec,
    WorkloadSpec,
)
from .util import short_hash


class ProviderError(Exception):
    """The provisioning API declined a request."""

    def __init__(self, capability: str, message: str):
        self.capability = capability
        super().__init__(f"{capability}: {message}")


@dataclass(frozen=True)
class NetworkResult:
    network_id: str
    cidr: str
    availability_zones: list[str]
    public_subnets: list[str]
    private_subnets: list[str]
    isolated_subnets: list[str]


@dataclass(frozen=True)
class StorageResult:
    file_system_id: str
    access_points: dict[str, str]  # access point name -> id


@dataclass(frozen=True)
class ClusterResult:
    cluster_name: str
    namespace_id: str
    namespace_name: str
    namespace_arn: str


@dataclass(frozen=True)
class DatabaseResult:
    endpoint_address: str
    endpoint_port: str


@dataclass(frozen=True)
class WorkloadResult:
    service_name: str
    service_arn: str
    discovery_host: str | None = None


@dataclass(frozen=True)
class LoadBalancerResult:
    dns_name: str
    listener_arn: str


class Provider(Protocol):
    """Capability set of the provisioning API."""

    def create_network(self, spec: NetworkSpec) -> NetworkResult: ...

    def create_security_group(self, spec: SecurityGroupSpec) -> str: ...

    def create_storage(self, spec: StorageSpec) -> StorageResult: ...

    def create_cluster(self, spec: ClusterSpec) -> ClusterResult: ...

    def create_managed_database(self, spec: ManagedDatabaseSpec) -> DatabaseResult: ...

    def create_container_workload(self, spec: WorkloadSpec) -> WorkloadResult: ...

    def create_load_balancer(self, spec: LoadBalancerSpec) -> LoadBalancerResult: ...

    def create_instance(self, spec: InstanceSpec) -> str: ...


@dataclass
class ProviderCall:
    """One recorded call against the simulated provider."""

    capability: str
    spec: Any


@dataclass
class SimulatedProvider:
    """
    Deterministic in-process provider.

    Every call is recorded in `calls`. `reject(capability)` makes the named
    capability raise ProviderError from then on.
    """

    account: str = ""
    region: str = ""
    calls: list[ProviderCall] = field(default_factory=list)
    _rejections: dict[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.account = self.account or "000000000000"
        self.region = self.region or "us-east-1"

    # -------------------------------------------------------------------------
    # Test controls
    # -------------------------------------------------------------------------

    def reject(self, capability: str, message: str = "request rejected") -> None:
        self._rejections[capability] = message

    def allow(self, capability: str) -> None:
        self._rejections.pop(capability, None)

    def calls_to(self, capability: str) -> list[ProviderCall]:
        return [c for c in self.calls if c.capability == capability]

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _enter(self, capability: str, spec: Any) -> None:
        if capability in self._rejections:
            raise ProviderError(capability, self._rejections[capability])
        self.calls.append(ProviderCall(capability, spec))

    def _id(self, kind: str, *parts: str) -> str:
        return f"{kind}-{short_hash(self.account, self.region, kind, *parts)}"

    def _arn(self, service: str, resource: str) -> str:
        return f"arn:aws:{service}:{self.region}:{self.account}:{resource}"

    # -------------------------------------------------------------------------
    # Capabilities
    # -------------------------------------------------------------------------

    def create_network(self, spec: NetworkSpec) -> NetworkResult:
        self._enter("create_network", spec)
        zones = [f"{self.region}{chr(ord('a') + i)}" for i in range(spec.max_azs)]
        subnets: dict[str, list[str]] = {"public": [], "private": [], "isolated": []}
        for group in spec.subnet_groups:
            for zone in zones:
                subnets[group.subnet_type].append(self._id("subnet", spec.name, group.name, zone))
        return NetworkResult(
            network_id=self._id("vpc", spec.name),
            cidr=spec.cidr,
            availability_zones=zones,
            public_subnets=subnets["public"],
            private_subnets=subnets["private"],
            isolated_subnets=subnets["isolated"],
        )

    def create_security_group(self, spec: SecurityGroupSpec) -> str:
        self._enter("create_security_group", spec)
        return self._id("sg", spec.network_id, spec.name)

    def create_storage(self, spec: StorageSpec) -> StorageResult:
        self._enter("create_storage", spec)
        file_system_id = self._id("fs", spec.name)
        return StorageResult(
            file_system_id=file_system_id,
            access_points={ap.name: self._id("fsap", file_system_id, ap.path) for ap in spec.access_points},
        )

    def create_cluster(self, spec: ClusterSpec) -> ClusterResult:
        self._enter("create_cluster", spec)
        namespace_id = self._id("ns", spec.namespace_name)
        return ClusterResult(
            cluster_name=spec.name,
            namespace_id=namespace_id,
            namespace_name=spec.namespace_name,
            namespace_arn=self._arn("servicediscovery", f"namespace/{namespace_id}"),
        )

    def create_managed_database(self, spec: ManagedDatabaseSpec) -> DatabaseResult:
        self._enter("create_managed_database", spec)
        suffix = short_hash(self.account, spec.identifier, length=12)
        return DatabaseResult(
            endpoint_address=f"{spec.identifier}.{suffix}.{self.region}.rds.amazonaws.com",
            endpoint_port=str(spec.port),
        )

    def create_container_workload(self, spec: WorkloadSpec) -> WorkloadResult:
        self._enter("create_container_workload", spec)
        return WorkloadResult(
            service_name=spec.name,
            service_arn=self._arn("ecs", f"service/{spec.cluster_name}/{spec.name}"),
            discovery_host=spec.discovery_name,
        )

    def create_load_balancer(self, spec: LoadBalancerSpec) -> LoadBalancerResult:
        self._enter("create_load_balancer", spec)
        lb_hash = short_hash(self.account, self.region, spec.name, length=10)
        return LoadBalancerResult(
            dns_name=f"{spec.name}-{lb_hash}.{self.region}.elb.amazonaws.com",
            listener_arn=self._arn("elasticloadbalancing", f"listener/app/{spec.name}/{lb_hash}"),
        )

    def create_instance(self, spec: InstanceSpec) -> str:
        self._enter("create_instance", spec)
        return self._id("i", spec.name)
