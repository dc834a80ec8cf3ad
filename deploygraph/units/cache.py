"""Cache service unit: Redis on the cluster, persisted to the shared file system."""

from __future__ import annotations

from ..facts import FactOutput, FactRead, FactValue
from ..resources import (
    HealthCheck,
    IngressRule,
    SecretField,
    SecretSpec,
    SecurityGroupSpec,
    VolumeSpec,
    WorkloadSpec,
)
from .base import ProvisionContext, Unit, efs_resources

REDIS_PORT = 6379


class CacheServiceUnit(Unit):
    """Password-protected Redis, reachable as redis.<namespace>."""

    unit_id = "cache"
    title = "ServiceRedis"

    def declare_inputs(self) -> list[FactRead]:
        k = self.keys
        return [
            self.read("cluster_name", k.ecs_cluster_name()),
            self.read("efs_id", k.efs_id()),
            self.read("access_point", k.redis_access_point_id()),
            self.read("efs_client_sg", k.efs_client_security_group_id()),
            self.read("namespace_id", k.namespace_id()),
            self.read("namespace_name", k.namespace_name()),
            self.read("namespace_arn", k.namespace_arn()),
            self.read("vpc_id", k.vpc_id()),
            self.read("cidr_block", k.vpc_cidr_block()),
        ]

    def declare_outputs(self) -> list[FactOutput]:
        k = self.keys
        return [
            self.output("host", k.redis_host()),
            self.output("port", k.redis_port()),
            self.output("password_secret_arn", k.redis_password_secret_arn()),
            self.output("password_secret_name", k.redis_password_secret_name()),
        ]

    def describe(self) -> list[str]:
        prefix = self.config.prefix
        return [
            f"secret /{prefix}/redis-password",
            f"security group {prefix}-redis-security-group",
            f"security group {prefix}-ecs-redis-cluster-access",
            "workload redis-service (redis:7)",
        ]

    def provision(self, context: ProvisionContext) -> dict[str, FactValue]:
        prefix = self.config.prefix
        provider = context.provider
        vpc_id = context.scalar("vpc_id")
        cidr_block = context.scalar("cidr_block")

        password = context.secrets.generate(
            SecretSpec(
                name=f"/{prefix}/redis-password",
                description=f"Redis password for {self.config.app_name}",
                length=16,
                exclude_uppercase=True,
            )
        )

        redis_sg = provider.create_security_group(
            SecurityGroupSpec(
                name=f"{prefix}-redis-security-group",
                network_id=vpc_id,
                description="Security group for Redis",
                ingress=(IngressRule(cidr_block, REDIS_PORT, "Allow Redis traffic within VPC"),),
            )
        )
        cluster_access = provider.create_security_group(
            SecurityGroupSpec(
                name=f"{prefix}-ecs-redis-cluster-access",
                network_id=vpc_id,
                description="ClusterAccess All",
                ingress=(IngressRule(cidr_block, None, "Allow inbound traffic from within VPC"),),
            )
        )

        efs_id = context.scalar("efs_id")
        access_point = context.scalar("access_point")
        workload = provider.create_container_workload(
            WorkloadSpec(
                name="redis-service",
                family=f"{self.config.app_name}-redis-task",
                cluster_name=context.scalar("cluster_name"),
                image="redis:7",
                cpu=512,
                memory_mib=1024,
                secrets={"REDIS_PASSWORD": SecretField(password.arn, "password")},
                port=REDIS_PORT,
                command=("sh", "-c", "exec redis-server --requirepass $REDIS_PASSWORD"),
                health_check=HealthCheck(command=("CMD-SHELL", "redis-cli ping || exit 1")),
                volume=VolumeSpec(
                    name="redis_data",
                    file_system_id=efs_id,
                    access_point_id=access_point,
                    container_path="/data",
                ),
                security_group_ids=(context.scalar("efs_client_sg"), redis_sg, cluster_access),
                discovery_name="redis",
                namespace_id=context.scalar("namespace_id"),
                iam_resources=efs_resources(context, efs_id, access_point) + (password.arn,),
            )
        )

        return {
            "host": f"{workload.discovery_host}.{context.scalar('namespace_name')}",
            "port": str(REDIS_PORT),
            "password_secret_arn": password.arn,
            "password_secret_name": password.name,
        }
