"""Cluster unit: container cluster plus the private service-discovery namespace."""

from __future__ import annotations

from ..facts import FactOutput, FactRead, FactValue
from ..resources import ClusterSpec
from .base import ProvisionContext, Unit


class ClusterUnit(Unit):
    """
    Container cluster shared by every workload.

    The private subnet list is a deferred read resolved when the graph is
    applied; the file system id is read only to scope the cluster's
    permissions.
    """

    unit_id = "cluster"
    title = "EcsCluster"

    def declare_inputs(self) -> list[FactRead]:
        k = self.keys
        return [
            self.read("vpc_id", k.vpc_id()),
            self.read("private_subnets", k.vpc_private_subnets(), "list", "deferred"),
            self.read("efs_id", k.efs_id()),
        ]

    def declare_outputs(self) -> list[FactOutput]:
        k = self.keys
        return [
            self.output("cluster_name", k.ecs_cluster_name(), description="ECS Cluster Name"),
            self.output("namespace_id", k.namespace_id(), description="Service Discovery Namespace ID"),
            self.output("namespace_name", k.namespace_name(), description="Service Discovery Namespace Name"),
            self.output("namespace_arn", k.namespace_arn(), description="Service Discovery Namespace ARN"),
        ]

    @property
    def cluster_name(self) -> str:
        return f"{self.config.prefix}-workflow-cluster"

    @property
    def namespace_name(self) -> str:
        return f"{self.config.prefix}.internal"

    def describe(self) -> list[str]:
        return [f"cluster {self.cluster_name}", f"private dns namespace {self.namespace_name}"]

    def provision(self, context: ProvisionContext) -> dict[str, FactValue]:
        efs_arn = context.arn("elasticfilesystem", f"file-system/{context.scalar('efs_id')}")
        cluster = context.provider.create_cluster(
            ClusterSpec(
                name=self.cluster_name,
                network_id=context.scalar("vpc_id"),
                subnet_ids=tuple(context.strings("private_subnets")),
                namespace_name=self.namespace_name,
                iam_resources=(efs_arn,),
            )
        )
        return {
            "cluster_name": cluster.cluster_name,
            "namespace_id": cluster.namespace_id,
            "namespace_name": cluster.namespace_name,
            "namespace_arn": cluster.namespace_arn,
        }
