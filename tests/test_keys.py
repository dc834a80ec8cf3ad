"""Tests for namespace key derivation."""

from deploygraph.keys import FactKeys, build_key, namespace_prefix

_NON_FACT_METHODS = {"key", "prefix", "owns"}


def _all_fact_keys(keys: FactKeys) -> list[str]:
    names = sorted(
        name
        for name in dir(FactKeys)
        if not name.startswith("_") and name not in _NON_FACT_METHODS and callable(getattr(FactKeys, name))
    )
    return [getattr(keys, name)() for name in names]


def test_build_key_lowercases_app_and_env_only() -> None:
    assert build_key("N8N", "Stg", "Vpc", "Id") == "/n8n/stg/Vpc/Id"
    assert build_key("n8n", "prod", "ServiceDiscovery", "NamespaceArn") == "/n8n/prod/ServiceDiscovery/NamespaceArn"


def test_build_key_is_deterministic() -> None:
    assert build_key("app", "dev", "Efs", "Id") == build_key("app", "dev", "Efs", "Id")


def test_distinct_pairs_give_distinct_keys() -> None:
    assert build_key("a", "e", "Vpc", "Id") != build_key("a", "e", "Efs", "Id")
    assert build_key("a", "e", "Vpc", "Id") != build_key("a", "e", "Vpc", "CidrBlock")


class TestFactKeys:
    def test_every_logical_fact_has_its_own_key(self) -> None:
        all_keys = _all_fact_keys(FactKeys("n8n", "stg"))
        assert len(all_keys) == len(set(all_keys))

    def test_keys_go_through_build_key(self) -> None:
        keys = FactKeys("N8n", "STG")
        assert keys.vpc_id() == build_key("n8n", "stg", "Vpc", "Id")
        assert keys.vpc_public_subnets() == "/n8n/stg/Vpc/SubnetsId"
        assert keys.vpc_availability_zones() == "/n8n/stg/Vpc/AvalabilityZones"
        assert keys.postgres_database() == "/n8n/stg/PostgreSQL/N8nDatabase"
        assert keys.bastion_instance_id() == "/n8n/stg/BastionHost/instance/id"

    def test_environments_are_disjoint(self) -> None:
        stg = FactKeys("n8n", "stg")
        prod = FactKeys("n8n", "prod")
        stg_keys = set(_all_fact_keys(stg))
        prod_keys = set(_all_fact_keys(prod))

        assert stg_keys.isdisjoint(prod_keys)
        assert all(stg.owns(k) and not prod.owns(k) for k in stg_keys)

    def test_prefix_does_not_match_sibling_environment(self) -> None:
        keys = FactKeys("n8n", "stg")
        assert keys.prefix() == "/n8n/stg"
        assert not keys.owns("/n8n/stg2/Vpc/Id")

    def test_prefix_is_the_head_of_every_key(self) -> None:
        keys = FactKeys("N8N", "Stg")
        assert keys.prefix() == namespace_prefix("N8N", "Stg") == "/n8n/stg"
        assert keys.vpc_id().startswith(keys.prefix() + "/")
