"""Resource shapes handed to the provisioning API."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal

SubnetType = Literal["public", "private", "isolated"]


@dataclass(frozen=True)
class SubnetGroup:
    name: str
    subnet_type: SubnetType
    cidr_mask: int = 24


DEFAULT_SUBNET_GROUPS = (
    SubnetGroup("public", "public"),
    SubnetGroup("private", "private"),
    SubnetGroup("isolated", "isolated"),
)


@dataclass(frozen=True)
class NetworkSpec:
    name: str
    cidr: str = "10.0.0.0/16"
    max_azs: int = 2
    nat_gateways: int = 1
    subnet_groups: tuple[SubnetGroup, ...] = DEFAULT_SUBNET_GROUPS


@dataclass(frozen=True)
class IngressRule:
    """Inbound rule. `port=None` means all traffic."""

    peer: str  # CIDR block or security group id
    port: int | None = None
    description: str = ""


@dataclass(frozen=True)
class SecurityGroupSpec:
    name: str
    network_id: str
    description: str = ""
    ingress: tuple[IngressRule, ...] = ()
    allow_all_outbound: bool = True


@dataclass(frozen=True)
class AccessPointSpec:
    name: str
    path: str
    uid: str
    gid: str
    permissions: str


@dataclass(frozen=True)
class StorageSpec:
    name: str
    network_id: str
    security_group_id: str
    access_points: tuple[AccessPointSpec, ...] = ()
    performance_mode: str = "generalPurpose"
    throughput_mode: str = "bursting"


@dataclass(frozen=True)
class ClusterSpec:
    name: str
    network_id: str
    subnet_ids: tuple[str, ...]
    namespace_name: str
    log_retention_days: int = 7
    iam_resources: tuple[str, ...] = ()


@dataclass(frozen=True)
class ManagedDatabaseSpec:
    identifier: str
    network_id: str
    subnet_ids: tuple[str, ...]
    security_group_ids: tuple[str, ...]
    secret_arn: str
    database_name: str = "n8n"
    username: str = "n8n"
    engine: str = "postgres"
    engine_version: str = "15.9"
    instance_class: str = "burstable3.small"
    port: int = 5432


@dataclass(frozen=True)
class SecretSpec:
    """
    Credential to be generated by the secret manager.

    `fields` are stored verbatim next to the generated `generate_key` value.
    """

    name: str
    description: str = ""
    fields: dict[str, str] = field(default_factory=dict)
    generate_key: str = "password"
    length: int = 8
    exclude_characters: str = ""
    exclude_punctuation: bool = True
    exclude_uppercase: bool = False


@dataclass(frozen=True)
class SecretField:
    """Reference to one field of a stored secret, injected into a container."""

    secret_arn: str
    field: str


@dataclass(frozen=True)
class HealthCheck:
    command: tuple[str, ...]
    interval_seconds: int = 5
    timeout_seconds: int = 5
    retries: int = 10
    start_period_seconds: int = 10


@dataclass(frozen=True)
class VolumeSpec:
    name: str
    file_system_id: str
    access_point_id: str
    container_path: str
    read_only: bool = False


@dataclass(frozen=True)
class WorkloadSpec:
    """One long-running container service on the cluster."""

    name: str
    family: str
    cluster_name: str
    image: str
    cpu: int = 1024
    memory_mib: int = 2048
    desired_count: int = 1
    environment: dict[str, str] = field(default_factory=dict)
    secrets: dict[str, SecretField] = field(default_factory=dict)
    port: int | None = None
    entry_point: tuple[str, ...] = ()
    command: tuple[str, ...] = ()
    health_check: HealthCheck | None = None
    volume: VolumeSpec | None = None
    security_group_ids: tuple[str, ...] = ()
    discovery_name: str | None = None
    namespace_id: str | None = None
    iam_resources: tuple[str, ...] = ()


@dataclass(frozen=True)
class LoadBalancerSpec:
    name: str
    network_id: str
    subnet_ids: tuple[str, ...]
    target_service: str
    target_port: int
    listener_port: int = 80
    health_check_path: str = "/healthz"
    security_group_ids: tuple[str, ...] = ()


@dataclass(frozen=True)
class InstanceSpec:
    name: str
    network_id: str
    subnet_ids: tuple[str, ...]
    security_group_ids: tuple[str, ...]
    instance_type: str = "t3.micro"
    image: str = "amazon-linux-2023"
    volume_size_gib: int = 50
    key_pair_secret_prefix: str = ""
