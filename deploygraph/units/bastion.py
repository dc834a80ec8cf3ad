"""Bastion unit: a jump host in a public subnet for reaching the data tier."""

from __future__ import annotations

from ..facts import FactOutput, FactRead, FactValue
from ..resources import InstanceSpec
from .base import ProvisionContext, Unit


class BastionUnit(Unit):
    """
    Jump host joined to the storage and database client security groups.

    Optional; only part of the graph when the create_bastion switch is on.
    """

    unit_id = "bastion"
    title = "BastionHost"

    def declare_inputs(self) -> list[FactRead]:
        k = self.keys
        return [
            self.read("vpc_id", k.vpc_id()),
            self.read("public_subnets", k.vpc_public_subnets(), "list"),
            self.read("efs_client_sg", k.efs_client_security_group_id()),
            self.read("db_client_sg", k.db_client_security_group_id()),
        ]

    def declare_outputs(self) -> list[FactOutput]:
        return [
            self.output("instance_id", self.keys.bastion_instance_id(), description="Bastion host instance id"),
        ]

    def describe(self) -> list[str]:
        return [f"instance {self.config.prefix}-bastion-host (t3.micro, 50 GiB encrypted volume)"]

    def provision(self, context: ProvisionContext) -> dict[str, FactValue]:
        instance_id = context.provider.create_instance(
            InstanceSpec(
                name=f"{self.config.prefix}-bastion-host",
                network_id=context.scalar("vpc_id"),
                subnet_ids=tuple(context.strings("public_subnets")),
                security_group_ids=(context.scalar("efs_client_sg"), context.scalar("db_client_sg")),
                key_pair_secret_prefix=self.keys.bastion_ssh_key(),
            )
        )
        return {"instance_id": instance_id}
