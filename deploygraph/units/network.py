"""Network unit: VPC, subnets and the database security groups."""

from __future__ import annotations

from ..facts import FactOutput, FactRead, FactValue
from ..resources import IngressRule, NetworkSpec, SecurityGroupSpec
from .base import ProvisionContext, Unit

POSTGRES_PORT = 5432


class NetworkUnit(Unit):
    """
    Root of the graph. Reads nothing.

    Publishes the VPC id, its subnet and availability-zone lists, the CIDR
    block, and the listener/client security group pair that guards
    PostgreSQL traffic.
    """

    unit_id = "network"
    title = "Network"

    def declare_inputs(self) -> list[FactRead]:
        return []

    def declare_outputs(self) -> list[FactOutput]:
        k = self.keys
        return [
            self.output("vpc_id", k.vpc_id(), description="Vpc ID"),
            self.output("availability_zones", k.vpc_availability_zones(), "list", "Availability Zones"),
            self.output("public_subnets", k.vpc_public_subnets(), "list", "Public Subnets IDs"),
            self.output("private_subnets", k.vpc_private_subnets(), "list", "Private Subnets IDs"),
            self.output("isolated_subnets", k.vpc_isolated_subnets(), "list", "Isolated Subnets IDs"),
            self.output("cidr_block", k.vpc_cidr_block(), description="VPC CIDR Block"),
            self.output("db_listener_sg", k.db_listener_security_group_id()),
            self.output("db_client_sg", k.db_client_security_group_id()),
        ]

    def describe(self) -> list[str]:
        return [
            f"vpc {self.config.prefix}-vpc (public/private/isolated subnets)",
            f"security group {self.config.prefix}-database-client-sg",
            f"security group {self.config.prefix}-database-listener-sg",
        ]

    def provision(self, context: ProvisionContext) -> dict[str, FactValue]:
        prefix = self.config.prefix
        provider = context.provider

        network = provider.create_network(NetworkSpec(name=f"{prefix}-vpc"))

        client_sg = provider.create_security_group(
            SecurityGroupSpec(
                name=f"{prefix}-database-client-sg",
                network_id=network.network_id,
                description="Allow clients access to RDS instances",
            )
        )
        listener_sg = provider.create_security_group(
            SecurityGroupSpec(
                name=f"{prefix}-database-listener-sg",
                network_id=network.network_id,
                description=f"Security group for {prefix} Allow rds access to RDS instances",
                ingress=(
                    IngressRule(client_sg, POSTGRES_PORT, "Allow connections from the clients for Postgres"),
                    IngressRule(network.cidr, POSTGRES_PORT, "Allow connections from VPC CIDR"),
                ),
            )
        )

        return {
            "vpc_id": network.network_id,
            "availability_zones": network.availability_zones,
            "public_subnets": network.public_subnets,
            "private_subnets": network.private_subnets,
            "isolated_subnets": network.isolated_subnets,
            "cidr_block": network.cidr,
            "db_listener_sg": listener_sg,
            "db_client_sg": client_sg,
        }
