"""
Database units.

DatabaseServiceUnit runs PostgreSQL as a workload on the cluster, with its
data on the shared file system. ManagedDatabaseUnit provisions a managed
PostgreSQL instance instead; it is only part of the graph when the
create_managed_database switch is on.
"""

from __future__ import annotations

from ..facts import FactOutput, FactRead, FactValue
from ..resources import (
    HealthCheck,
    IngressRule,
    ManagedDatabaseSpec,
    SecretField,
    SecretSpec,
    SecurityGroupSpec,
    VolumeSpec,
    WorkloadSpec,
)
from .base import ProvisionContext, Unit, efs_resources

POSTGRES_PORT = 5432
ROOT_USERNAME = "postgres"
DATABASE_NAME = "n8n"
APP_USERNAME = "n8nuser"

# Characters the init scripts cannot quote safely.
_PASSWORD_EXCLUDES = "!@#$%^&*()_+-=[]{}|;:'\",.<>/?`~\\"

_STARTUP = (
    "if [ -f /var/lib/postgresql/data/pgdata/postmaster.pid ]; then "
    "rm -f /var/lib/postgresql/data/pgdata/postmaster.pid; fi && "
    "find /var/lib/postgresql -type d -exec chmod 0750 {} \\; && "
    "find /var/lib/postgresql -type f -exec chmod 0640 {} \\; && "
    "docker-entrypoint.sh postgres"
)


class DatabaseServiceUnit(Unit):
    """Self-hosted PostgreSQL service, reachable as postgres.<namespace>."""

    unit_id = "database"
    title = "ServiceDatabase"

    def declare_inputs(self) -> list[FactRead]:
        k = self.keys
        return [
            self.read("cluster_name", k.ecs_cluster_name()),
            self.read("efs_id", k.efs_id()),
            self.read("access_point", k.postgres_access_point_id()),
            self.read("efs_client_sg", k.efs_client_security_group_id()),
            self.read("db_client_sg", k.db_client_security_group_id()),
            self.read("db_listener_sg", k.db_listener_security_group_id()),
            self.read("namespace_id", k.namespace_id()),
            self.read("namespace_name", k.namespace_name()),
            self.read("namespace_arn", k.namespace_arn()),
            self.read("vpc_id", k.vpc_id()),
            self.read("cidr_block", k.vpc_cidr_block()),
        ]

    def declare_outputs(self) -> list[FactOutput]:
        k = self.keys
        return [
            self.output("host", k.postgres_host()),
            self.output("port", k.postgres_port()),
            self.output("root_username", k.postgres_root_username()),
            self.output("database", k.postgres_database()),
            self.output("app_username", k.postgres_non_root_user()),
            self.output("admin_secret_arn", k.postgres_admin_secret_arn()),
            self.output("app_secret_arn", k.postgres_app_secret_arn()),
            self.output("admin_secret_name", k.postgres_admin_secret_name()),
            self.output("app_secret_name", k.postgres_app_secret_name()),
        ]

    def describe(self) -> list[str]:
        prefix = self.config.prefix
        return [
            f"secret /{prefix}/postgres-admin",
            f"secret /{prefix}/postgres-app",
            f"security group {prefix}-ecs-cluster-access",
            "workload postgres-service (postgres:16)",
        ]

    def provision(self, context: ProvisionContext) -> dict[str, FactValue]:
        prefix = self.config.prefix
        provider = context.provider

        admin = context.secrets.generate(
            SecretSpec(
                name=f"/{prefix}/postgres-admin",
                description=f"PostgreSQL administrative credentials for {prefix}",
                fields={"username": ROOT_USERNAME},
                exclude_characters=_PASSWORD_EXCLUDES,
                exclude_uppercase=True,
            )
        )
        app = context.secrets.generate(
            SecretSpec(
                name=f"/{prefix}/postgres-app",
                description=f"PostgreSQL application credentials for {prefix}",
                fields={"username": APP_USERNAME},
                length=16,
                exclude_characters=_PASSWORD_EXCLUDES,
            )
        )

        cluster_access = provider.create_security_group(
            SecurityGroupSpec(
                name=f"{prefix}-ecs-cluster-access",
                network_id=context.scalar("vpc_id"),
                description="ClusterAccess All",
                ingress=(IngressRule(context.scalar("cidr_block"), None, "Allow inbound traffic from within VPC"),),
            )
        )

        efs_id = context.scalar("efs_id")
        access_point = context.scalar("access_point")
        workload = provider.create_container_workload(
            WorkloadSpec(
                name="postgres-service",
                family=f"{self.config.app_name}-postgres-task",
                cluster_name=context.scalar("cluster_name"),
                image="postgres:16",
                environment={
                    "PGDATA": "/var/lib/postgresql/data/pgdata",
                    "POSTGRES_INITDB_ARGS": "--data-checksums",
                    "TARGET_DB_NAME": DATABASE_NAME,
                    "DROP_DB": "false",
                    "ADMIN_SECRET_NAME": admin.name,
                    "APP_SECRET_NAME": app.name,
                },
                secrets={
                    "POSTGRES_USER": SecretField(admin.arn, "username"),
                    "POSTGRES_PASSWORD": SecretField(admin.arn, "password"),
                    "POSTGRES_NON_ROOT_USER": SecretField(app.arn, "username"),
                    "POSTGRES_NON_ROOT_PASSWORD": SecretField(app.arn, "password"),
                },
                port=POSTGRES_PORT,
                entry_point=("sh", "-c"),
                command=(_STARTUP,),
                health_check=HealthCheck(
                    command=("CMD-SHELL", f"pg_isready -h localhost -U {ROOT_USERNAME} -d postgres"),
                ),
                volume=VolumeSpec(
                    name="db_storage",
                    file_system_id=efs_id,
                    access_point_id=access_point,
                    container_path="/var/lib/postgresql/data",
                ),
                security_group_ids=(
                    context.scalar("efs_client_sg"),
                    context.scalar("db_listener_sg"),
                    cluster_access,
                ),
                discovery_name="postgres",
                namespace_id=context.scalar("namespace_id"),
                iam_resources=efs_resources(context, efs_id, access_point) + (admin.arn, app.arn),
            )
        )

        return {
            "host": f"{workload.discovery_host}.{context.scalar('namespace_name')}",
            "port": str(POSTGRES_PORT),
            "root_username": ROOT_USERNAME,
            "database": DATABASE_NAME,
            "app_username": APP_USERNAME,
            "admin_secret_arn": admin.arn,
            "app_secret_arn": app.arn,
            "admin_secret_name": admin.name,
            "app_secret_name": app.name,
        }


class ManagedDatabaseUnit(Unit):
    """Managed PostgreSQL instance in the private subnets. Does not need the cluster."""

    unit_id = "managed-database"
    title = "Rds"

    database_name = DATABASE_NAME
    username = "n8n"

    def declare_inputs(self) -> list[FactRead]:
        k = self.keys
        return [
            self.read("vpc_id", k.vpc_id(), mode="deferred"),
            self.read("private_subnets", k.vpc_private_subnets(), "list", "deferred"),
            self.read("db_listener_sg", k.db_listener_security_group_id()),
        ]

    def declare_outputs(self) -> list[FactOutput]:
        k = self.keys
        return [
            self.output("endpoint_address", k.db_endpoint_address()),
            self.output("endpoint_port", k.db_endpoint_port()),
            self.output("secret_arn", k.db_secret_arn()),
            self.output("database_name", k.db_name()),
            self.output("username", k.db_username()),
        ]

    def describe(self) -> list[str]:
        return [
            f"secret {self.database_name}DatabaseSecret",
            f"managed postgres instance {self.database_name}",
        ]

    def provision(self, context: ProvisionContext) -> dict[str, FactValue]:
        secret = context.secrets.generate(
            SecretSpec(
                name=f"{self.database_name}DatabaseSecret",
                description=f"Managed database credentials for {self.config.prefix}",
                fields={"username": self.username},
                length=30,
                exclude_characters=" %+~`#$&*()|[]{}:;<>?!'/@\"\\",
            )
        )
        database = context.provider.create_managed_database(
            ManagedDatabaseSpec(
                identifier=self.database_name,
                network_id=context.scalar("vpc_id"),
                subnet_ids=tuple(context.strings("private_subnets")),
                security_group_ids=(context.scalar("db_listener_sg"),),
                secret_arn=secret.arn,
                database_name=self.database_name,
                username=self.username,
            )
        )
        return {
            "endpoint_address": database.endpoint_address,
            "endpoint_port": database.endpoint_port,
            "secret_arn": secret.arn,
            "database_name": self.database_name,
            "username": self.username,
        }
