"""
Application service unit.

Runs the n8n main process behind a public load balancer and a queue worker,
both built from one shared task configuration. This is the last unit in
the graph and publishes nothing.
"""

from __future__ import annotations

from dataclasses import replace

from ..facts import FactOutput, FactRead, FactValue
from ..resources import (
    HealthCheck,
    IngressRule,
    LoadBalancerSpec,
    SecretField,
    SecretSpec,
    SecurityGroupSpec,
    VolumeSpec,
    WorkloadSpec,
)
from .base import ProvisionContext, Unit, efs_resources

APP_PORT = 5678
NFS_PORT = 2049
IMAGE = "docker.n8n.io/n8nio/n8n"


class ApplicationServiceUnit(Unit):
    unit_id = "service"
    title = "N8NService"

    def declare_inputs(self) -> list[FactRead]:
        k = self.keys
        return [
            self.read("vpc_id", k.vpc_id()),
            self.read("cidr_block", k.vpc_cidr_block()),
            self.read("public_subnets", k.vpc_public_subnets(), "list"),
            self.read("cluster_name", k.ecs_cluster_name()),
            self.read("efs_id", k.efs_id()),
            self.read("access_point", k.n8n_access_point_id()),
            self.read("efs_client_sg", k.efs_client_security_group_id()),
            self.read("db_client_sg", k.db_client_security_group_id()),
            self.read("namespace_id", k.namespace_id()),
            self.read("namespace_name", k.namespace_name()),
            self.read("namespace_arn", k.namespace_arn()),
            # Database service
            self.read("db_host", k.postgres_host()),
            self.read("db_port", k.postgres_port()),
            self.read("db_root_username", k.postgres_root_username()),
            self.read("db_name", k.postgres_database()),
            self.read("db_app_username", k.postgres_non_root_user()),
            self.read("db_admin_secret_arn", k.postgres_admin_secret_arn()),
            self.read("db_app_secret_arn", k.postgres_app_secret_arn()),
            self.read("db_admin_secret_name", k.postgres_admin_secret_name()),
            self.read("db_app_secret_name", k.postgres_app_secret_name()),
            # Cache service
            self.read("redis_host", k.redis_host()),
            self.read("redis_port", k.redis_port()),
            self.read("redis_secret_arn", k.redis_password_secret_arn()),
            self.read("redis_secret_name", k.redis_password_secret_name()),
        ]

    def declare_outputs(self) -> list[FactOutput]:
        return []

    def describe(self) -> list[str]:
        prefix = self.config.prefix
        return [
            f"secret /{prefix}/encryption-key",
            f"security group {prefix}-main-service-sg",
            f"security group {prefix}-ecs-main-cluster-access",
            f"workload n8n-service ({IMAGE})",
            f"workload n8n-worker-service ({IMAGE})",
            f"load balancer {prefix}-alb :80 -> n8n-service:{APP_PORT}",
        ]

    def shared_environment(self, context: ProvisionContext) -> dict[str, str]:
        """Container environment common to the main process and the worker."""
        return {
            "DB_TYPE": "postgresdb",
            "DB_POSTGRESDB_HOST": context.scalar("db_host"),
            "DB_POSTGRESDB_PORT": context.scalar("db_port"),
            "DB_POSTGRESDB_DATABASE": context.scalar("db_name"),
            "DB_POSTGRESDB_CONNECTION_TIMEOUT": "60000",
            "DB_POSTGRESDB_CONNECTION_RETRIES": "3",
            "N8N_ENFORCE_SETTINGS_FILE_PERMISSIONS": "false",
            "N8N_SECURE_COOKIE": "false",
            "N8N_METRICS": "true",
            "N8N_RUNNERS_ENABLED": "true",
            "GENERIC_TIMEZONE": "America/New_York",
            "EXECUTIONS_MODE": "queue",
            "QUEUE_BULL_REDIS_HOST": context.scalar("redis_host"),
            "QUEUE_BULL_REDIS_PORT": context.scalar("redis_port"),
            "QUEUE_BULL_REDIS_USERNAME": "default",
            "QUEUE_HEALTH_CHECK_ACTIVE": "true",
            "OFFLOAD_MANUAL_EXECUTIONS_TO_WORKERS": "true",
        }

    def provision(self, context: ProvisionContext) -> dict[str, FactValue]:
        prefix = self.config.prefix
        provider = context.provider
        vpc_id = context.scalar("vpc_id")
        cidr_block = context.scalar("cidr_block")

        encryption_key = context.secrets.generate(
            SecretSpec(
                name=f"/{prefix}/encryption-key",
                description=f"Encryption key for {self.config.app_name}",
                generate_key="ENCRYPTION_KEY",
                length=32,
                exclude_characters="'\"\\",
                exclude_punctuation=False,
            )
        )

        service_sg = provider.create_security_group(
            SecurityGroupSpec(
                name=f"{prefix}-main-service-sg",
                network_id=vpc_id,
                description="Security group for n8n services",
                ingress=(IngressRule(cidr_block, APP_PORT, "Allow load balancer traffic within VPC"),),
            )
        )
        cluster_access = provider.create_security_group(
            SecurityGroupSpec(
                name=f"{prefix}-ecs-main-cluster-access",
                network_id=vpc_id,
                description="ClusterAccess All",
                ingress=(IngressRule(cidr_block, None, "Allow inbound traffic from within VPC"),),
            )
        )

        efs_id = context.scalar("efs_id")
        access_point = context.scalar("access_point")
        db_app_secret = context.scalar("db_app_secret_arn")
        shared = WorkloadSpec(
            name="n8n-service",
            family=f"{self.config.app_name}-main-task",
            cluster_name=context.scalar("cluster_name"),
            image=IMAGE,
            environment=self.shared_environment(context),
            secrets={
                "N8N_ENCRYPTION_KEY": SecretField(encryption_key.arn, "ENCRYPTION_KEY"),
                "QUEUE_BULL_REDIS_PASSWORD": SecretField(context.scalar("redis_secret_arn"), "password"),
                "DB_POSTGRESDB_USER": SecretField(db_app_secret, "username"),
                "DB_POSTGRESDB_PASSWORD": SecretField(db_app_secret, "password"),
            },
            volume=VolumeSpec(
                name="n8n_storage",
                file_system_id=efs_id,
                access_point_id=access_point,
                container_path="/home/node/.n8n",
            ),
            security_group_ids=(
                service_sg,
                context.scalar("db_client_sg"),
                context.scalar("efs_client_sg"),
                cluster_access,
            ),
            namespace_id=context.scalar("namespace_id"),
            iam_resources=efs_resources(context, efs_id, access_point),
        )

        main = provider.create_container_workload(
            replace(
                shared,
                port=APP_PORT,
                entry_point=("/bin/sh", "-c"),
                command=("node /usr/local/lib/node_modules/n8n/bin/n8n start",),
                health_check=HealthCheck(
                    command=(
                        "CMD-SHELL",
                        f"wget --spider --quiet --tries=1 --timeout=5 http://localhost:{APP_PORT}/healthz || exit 1",
                    ),
                    interval_seconds=60,
                    timeout_seconds=10,
                    retries=5,
                    start_period_seconds=120,
                ),
                discovery_name="n8n",
            )
        )
        provider.create_container_workload(
            replace(
                shared,
                name="n8n-worker-service",
                family=f"{self.config.app_name}-worker-task",
                command=("worker",),
            )
        )

        provider.create_load_balancer(
            LoadBalancerSpec(
                name=f"{prefix}-alb",
                network_id=vpc_id,
                subnet_ids=tuple(context.strings("public_subnets")),
                target_service=main.service_name,
                target_port=APP_PORT,
                security_group_ids=(service_sg,),
            )
        )
        return {}
