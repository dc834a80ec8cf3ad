"""
Namespace keys for published facts.

namespace_prefix() and build_key() are the only places a fact key is shaped.
Producers and consumers both go through FactKeys, so the identical logical
fact always maps to the identical key:

    /<app>/<env>/<category>/<name>

`app` and `env` are lower-cased; category and name keep their case.
"""

from __future__ import annotations


def namespace_prefix(app: str, env: str) -> str:
    """Root of an (app, env) namespace, without a trailing slash."""
    return f"/{app.lower()}/{env.lower()}"


def build_key(app: str, env: str, category: str, name: str) -> str:
    """Derive the hierarchical key of a fact."""
    return f"{namespace_prefix(app, env)}/{category}/{name}"


class FactKeys:
    """
    Parameter helper for one (app, env) namespace.

    Each method names one logical fact. Methods are grouped by the unit that
    publishes the fact.
    """

    def __init__(self, app: str, env: str):
        self.app = app
        self.env = env

    def key(self, category: str, name: str) -> str:
        return build_key(self.app, self.env, category, name)

    def prefix(self) -> str:
        """Root of this namespace, without a trailing slash."""
        return namespace_prefix(self.app, self.env)

    def owns(self, key: str) -> bool:
        return key.startswith(self.prefix() + "/")

    # -------------------------------------------------------------------------
    # Network
    # -------------------------------------------------------------------------

    def vpc_id(self) -> str:
        return self.key("Vpc", "Id")

    def vpc_public_subnets(self) -> str:
        return self.key("Vpc", "SubnetsId")

    def vpc_private_subnets(self) -> str:
        return self.key("Vpc", "PrivateSubnetsId")

    def vpc_isolated_subnets(self) -> str:
        return self.key("Vpc", "IsolatedSubnetsId")

    def vpc_availability_zones(self) -> str:
        # Spelling matches parameters already written by earlier deployments.
        return self.key("Vpc", "AvalabilityZones")

    def vpc_cidr_block(self) -> str:
        return self.key("Vpc", "CidrBlock")

    def db_listener_security_group_id(self) -> str:
        return self.key("Database", "ListenerSecurityGroupId")

    def db_client_security_group_id(self) -> str:
        return self.key("Database", "ClientSecurityGroupId")

    # -------------------------------------------------------------------------
    # Shared storage
    # -------------------------------------------------------------------------

    def efs_id(self) -> str:
        return self.key("Efs", "Id")

    def postgres_access_point_id(self) -> str:
        return self.key("Efs", "PostgresAccessPointId")

    def redis_access_point_id(self) -> str:
        return self.key("Efs", "RedisAccessPointId")

    def n8n_access_point_id(self) -> str:
        return self.key("Efs", "N8nAccessPointId")

    def efs_listener_security_group_id(self) -> str:
        return self.key("Efs", "ListenerSecurityGroupId")

    def efs_client_security_group_id(self) -> str:
        return self.key("Efs", "ClientSecurityGroupId")

    # -------------------------------------------------------------------------
    # Cluster
    # -------------------------------------------------------------------------

    def ecs_cluster_name(self) -> str:
        return self.key("Ecs", "ClusterName")

    def namespace_id(self) -> str:
        return self.key("ServiceDiscovery", "NamespaceId")

    def namespace_name(self) -> str:
        return self.key("ServiceDiscovery", "NamespaceName")

    def namespace_arn(self) -> str:
        return self.key("ServiceDiscovery", "NamespaceArn")

    # -------------------------------------------------------------------------
    # Managed database
    # -------------------------------------------------------------------------

    def db_endpoint_address(self) -> str:
        return self.key("Database", "EndpointAddress")

    def db_endpoint_port(self) -> str:
        return self.key("Database", "EndpointPort")

    def db_secret_arn(self) -> str:
        return self.key("Database", "SecretArn")

    def db_name(self) -> str:
        return self.key("Database", "Name")

    def db_username(self) -> str:
        return self.key("Database", "Username")

    # -------------------------------------------------------------------------
    # Database service (self-hosted PostgreSQL)
    # -------------------------------------------------------------------------

    def postgres_host(self) -> str:
        return self.key("PostgreSQL", "Host")

    def postgres_port(self) -> str:
        return self.key("PostgreSQL", "Port")

    def postgres_root_username(self) -> str:
        return self.key("PostgreSQL", "Username")

    def postgres_database(self) -> str:
        return self.key("PostgreSQL", "N8nDatabase")

    def postgres_non_root_user(self) -> str:
        return self.key("PostgreSQL", "NonRootUser")

    def postgres_admin_secret_arn(self) -> str:
        return self.key("PostgreSQL", "AdminSecretArn")

    def postgres_app_secret_arn(self) -> str:
        return self.key("PostgreSQL", "AppSecretArn")

    def postgres_admin_secret_name(self) -> str:
        return self.key("PostgreSQL", "AdminSecretName")

    def postgres_app_secret_name(self) -> str:
        return self.key("PostgreSQL", "AppSecretName")

    # -------------------------------------------------------------------------
    # Cache service
    # -------------------------------------------------------------------------

    def redis_host(self) -> str:
        return self.key("Redis", "Host")

    def redis_port(self) -> str:
        return self.key("Redis", "Port")

    def redis_password_secret_arn(self) -> str:
        return self.key("Redis", "PasswordSecretArn")

    def redis_password_secret_name(self) -> str:
        return self.key("Redis", "PasswordSecretName")

    # -------------------------------------------------------------------------
    # Bastion host
    # -------------------------------------------------------------------------

    def bastion_instance_id(self) -> str:
        return self.key("BastionHost", "instance/id")

    def bastion_ssh_key(self) -> str:
        return self.key("BastionHost", "ssh/key")
