"""Shared storage unit: one file system with an access point per workload."""

from __future__ import annotations

from ..facts import FactOutput, FactRead, FactValue
from ..resources import AccessPointSpec, IngressRule, SecurityGroupSpec, StorageSpec
from .base import ProvisionContext, Unit

ACCESS_POINTS = (
    AccessPointSpec("postgres", path="/postgresql", uid="999", gid="999", permissions="750"),
    AccessPointSpec("redis", path="/redis", uid="999", gid="999", permissions="750"),
    AccessPointSpec("n8n", path="/n8n", uid="1000", gid="1000", permissions="777"),
)


class StorageUnit(Unit):
    """Shared file system used by the database, cache and application workloads."""

    unit_id = "storage"
    title = "Efs"

    def declare_inputs(self) -> list[FactRead]:
        return [
            self.read("vpc_id", self.keys.vpc_id()),
            self.read("cidr_block", self.keys.vpc_cidr_block()),
        ]

    def declare_outputs(self) -> list[FactOutput]:
        k = self.keys
        return [
            self.output("efs_id", k.efs_id(), description="Efs ID"),
            self.output("postgres_access_point", k.postgres_access_point_id(), description="PostgreSQL Access Point ID"),
            self.output("redis_access_point", k.redis_access_point_id(), description="Redis Access Point ID"),
            self.output("n8n_access_point", k.n8n_access_point_id(), description="N8N Access Point ID"),
            self.output("listener_sg", k.efs_listener_security_group_id(), description="EFS Listener Security Group ID"),
            self.output("client_sg", k.efs_client_security_group_id(), description="EFS Client Security Group ID"),
        ]

    def describe(self) -> list[str]:
        return ["file system (general purpose, bursting)"] + [
            f"access point {ap.path} ({ap.uid}:{ap.gid} {ap.permissions})" for ap in ACCESS_POINTS
        ]

    def provision(self, context: ProvisionContext) -> dict[str, FactValue]:
        provider = context.provider
        vpc_id = context.scalar("vpc_id")

        client_sg = provider.create_security_group(
            SecurityGroupSpec(name="efs-client-sg", network_id=vpc_id, description="Allow clients access to EFS")
        )
        listener_sg = provider.create_security_group(
            SecurityGroupSpec(
                name="efs-listener-sg",
                network_id=vpc_id,
                description="Security group for EFS file system",
                ingress=(
                    IngressRule(context.scalar("cidr_block"), None, "Allow all traffic from VPC CIDR"),
                    IngressRule(client_sg, None, "Allow connections from the clients for EfsClients"),
                ),
            )
        )

        storage = provider.create_storage(
            StorageSpec(
                name=f"{self.config.prefix}-efs",
                network_id=vpc_id,
                security_group_id=listener_sg,
                access_points=ACCESS_POINTS,
            )
        )

        return {
            "efs_id": storage.file_system_id,
            "postgres_access_point": storage.access_points["postgres"],
            "redis_access_point": storage.access_points["redis"],
            "n8n_access_point": storage.access_points["n8n"],
            "listener_sg": listener_sg,
            "client_sg": client_sg,
        }
