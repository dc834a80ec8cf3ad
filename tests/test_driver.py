"""
Tests for the deployment driver.

Covers the run scenarios:
1. Full run with the managed database switched off
2. Missing fact halts the run before later units start
3. Provider rejection leaves no partial facts behind
4. Plans only read
"""

from __future__ import annotations

from dataclasses import replace
from pathlib import Path

import pytest

from deploygraph.audit import read_log
from deploygraph.config import DeploymentConfig
from deploygraph.driver import Deployer
from deploygraph.errors import (
    FactNotFound,
    InvalidOutputs,
    ProvisioningRejected,
    StoreUnavailable,
    TypeMismatch,
    UnitFailed,
    UnknownUnit,
)
from deploygraph.facts import FactOutput, FactRead, MemoryFactStore
from deploygraph.graph import DeploymentGraph
from deploygraph.keys import FactKeys
from deploygraph.provider import SimulatedProvider
from deploygraph.resources import SecretSpec
from deploygraph.secrets import LocalSecretManager, SecretRef
from deploygraph.topology import build_topology
from deploygraph.units import UnitState

from .stubs import StubUnit

PLATFORM_ORDER = ["network", "storage", "cluster", "database", "cache", "service"]


class UnreachableSecrets(LocalSecretManager):
    def generate(self, spec: SecretSpec) -> SecretRef:
        raise RuntimeError("secret manager unreachable")


class FailingAfterStore(MemoryFactStore):
    """Accepts `limit` publishes, then fails like a dropped connection."""

    def __init__(self, limit: int):
        super().__init__()
        self.limit = limit

    def publish(self, key, value):
        if self.limit == 0:
            raise StoreUnavailable("connection reset")
        self.limit -= 1
        return super().publish(key, value)


def _stub_deployer(units, edges, store, quiet_console) -> Deployer:
    return Deployer(
        DeploymentGraph.build(units, edges),
        store,
        SimulatedProvider(),
        LocalSecretManager(),
        DeploymentConfig(environment="test", app_name="app"),
        console=quiet_console,
    )


class TestFullRun:
    def test_default_run_deploys_in_order(self, config, make_deployer) -> None:
        report = make_deployer(config).run()

        assert report.success
        assert report.deployed == PLATFORM_ORDER
        assert "managed-database" not in report.records

    def test_every_unit_reaches_outputs_published(self, config, make_deployer) -> None:
        report = make_deployer(config).run()
        assert {r.state for r in report.records.values()} == {UnitState.OUTPUTS_PUBLISHED}

    def test_redeploy_is_stable(self, config, make_deployer, keys: FactKeys, store: MemoryFactStore) -> None:
        deployer = make_deployer(config)
        deployer.run()
        first = {f.key: f.value for f in store.list()}
        deployer.run()
        assert {f.key: f.value for f in store.list()} == first
        assert store.get(keys.vpc_id()).value == first[keys.vpc_id()]

    def test_environments_do_not_share_keys(self, config, make_deployer, store: MemoryFactStore) -> None:
        make_deployer(config).run()
        make_deployer(replace(config, environment="prod")).run()

        stg = {f.key for f in store.list("/n8n/stg/")}
        prod = {f.key for f in store.list("/n8n/prod/")}
        assert stg and prod
        assert stg.isdisjoint(prod)
        assert stg | prod == {f.key for f in store.list()}


class TestTargets:
    def test_dependencies_are_pulled_in(self, config, make_deployer) -> None:
        report = make_deployer(config).run(["cluster"])
        assert report.deployed == ["network", "storage", "cluster"]

    def test_exclusively_runs_only_targets(self, config, make_deployer) -> None:
        deployer = make_deployer(config)
        deployer.run(["storage"])
        report = deployer.run(["cluster"], exclusively=True)
        assert report.deployed == ["cluster"]

    def test_unknown_target(self, config, make_deployer) -> None:
        with pytest.raises(UnknownUnit):
            make_deployer(config).run(["nope"])


class TestFailures:
    def test_missing_fact_halts_run(self, config, make_deployer, keys: FactKeys, provider: SimulatedProvider) -> None:
        deployer = make_deployer(config)

        with pytest.raises(UnitFailed) as exc:
            deployer.run(["database", "cache", "service"], exclusively=True)

        assert exc.value.unit_id == "database"
        assert exc.value.step == "inputs_resolving"
        assert isinstance(exc.value.cause, FactNotFound)
        assert exc.value.cause.key == keys.ecs_cluster_name()

        report = deployer.last_report
        assert report is not None
        assert report.records["database"].state == UnitState.FAILED
        assert report.not_started == ["cache", "service"]
        assert provider.calls == []

    def test_rejection_publishes_nothing_for_the_failed_unit(
        self, config, make_deployer, keys: FactKeys, store: MemoryFactStore, provider: SimulatedProvider
    ) -> None:
        provider.reject("create_storage", "quota exceeded")
        deployer = make_deployer(config)

        with pytest.raises(UnitFailed) as exc:
            deployer.run()

        assert exc.value.unit_id == "storage"
        assert exc.value.step == "provisioning"
        assert isinstance(exc.value.cause, ProvisioningRejected)
        assert "quota exceeded" in str(exc.value)

        # Network facts stay for diagnosis; no storage fact exists.
        assert store.exists(keys.vpc_id())
        assert store.list("/n8n/stg/Efs/") == []
        assert deployer.last_report.deployed == ["network"]
        assert deployer.last_report.not_started == ["cluster", "database", "cache", "service"]

    def test_retry_after_rejection(self, config, make_deployer, provider: SimulatedProvider) -> None:
        provider.reject("create_cluster")
        deployer = make_deployer(config)
        with pytest.raises(UnitFailed):
            deployer.run()

        provider.allow("create_cluster")
        report = deployer.run(["service"])
        assert report.deployed == PLATFORM_ORDER

    def test_unavailable_store(self, config, make_deployer, store: MemoryFactStore) -> None:
        store.available = False
        with pytest.raises(UnitFailed) as exc:
            make_deployer(config).run()
        assert exc.value.unit_id == "network"
        assert exc.value.step == "publishing"
        assert isinstance(exc.value.cause, StoreUnavailable)

    def test_wrong_output_kind_is_not_published(self, store: MemoryFactStore, quiet_console) -> None:
        unit = StubUnit(
            "net",
            writes=[FactOutput("vpc", "/app/test/Vpc/Id"), FactOutput("subnets", "/app/test/Vpc/SubnetsId", "list")],
            values={"vpc": "vpc-1", "subnets": "subnet-1"},
        )
        deployer = _stub_deployer([unit], [], store, quiet_console)

        with pytest.raises(UnitFailed) as exc:
            deployer.run()
        assert isinstance(exc.value.cause, TypeMismatch)
        assert store.list() == []

    def test_missing_output_is_not_published(self, store: MemoryFactStore, quiet_console) -> None:
        unit = StubUnit(
            "net",
            writes=[FactOutput("vpc", "/app/test/Vpc/Id"), FactOutput("cidr", "/app/test/Vpc/CidrBlock")],
            values={"vpc": "vpc-1"},
        )
        deployer = _stub_deployer([unit], [], store, quiet_console)

        with pytest.raises(UnitFailed) as exc:
            deployer.run()
        assert isinstance(exc.value.cause, InvalidOutputs)
        assert store.list() == []

    def test_unexpected_error_is_reported_as_unit_failure(
        self, config, store: MemoryFactStore, provider: SimulatedProvider, quiet_console, tmp_path: Path
    ) -> None:
        log_path = tmp_path / "deploy.log"
        deployer = Deployer(
            build_topology(config), store, provider, UnreachableSecrets(), config, console=quiet_console, log_path=log_path
        )

        with pytest.raises(UnitFailed) as exc:
            deployer.run()

        assert exc.value.unit_id == "database"
        assert exc.value.step == "provisioning"
        assert isinstance(exc.value.cause, RuntimeError)
        report = deployer.last_report
        assert report.failure is exc.value
        assert report.records["database"].state == UnitState.FAILED
        assert report.not_started == ["cache", "service"]

        entries = read_log(log_path, run_id=report.run_id)
        failed = [e for e in entries if e.state == "failed"]
        assert [e.unit_id for e in failed] == ["database"]
        assert failed[0].metadata["error_type"] == "RuntimeError"
        assert entries[-1].step == "run_finished"

    def test_partial_publish_is_recorded(self, config, make_deployer, keys: FactKeys, tmp_path: Path) -> None:
        store = FailingAfterStore(limit=1)
        deployer = make_deployer(config, fact_store=store)

        with pytest.raises(UnitFailed) as exc:
            deployer.run()

        assert exc.value.unit_id == "network"
        assert exc.value.step == "publishing"
        record = deployer.last_report.records["network"]
        assert record.published == [keys.vpc_id()]
        assert [f.key for f in store.list()] == [keys.vpc_id()]

        entries = read_log(tmp_path / "state" / "deploy.log", run_id=deployer.last_report.run_id)
        failed = [e for e in entries if e.state == "failed"]
        assert failed[0].metadata["published"] == [keys.vpc_id()]


class TestFactExchange:
    def test_eager_round_trip(self, store: MemoryFactStore, quiet_console) -> None:
        producer = StubUnit("net", writes=[FactOutput("vpc", "/app/test/Vpc/Id")], values={"vpc": "vpc-42"})
        consumer = StubUnit("db", reads=[FactRead("vpc", "/app/test/Vpc/Id")])

        _stub_deployer([producer, consumer], [("db", "net")], store, quiet_console).run()
        assert consumer.seen_inputs == {"vpc": "vpc-42"}

    def test_deferred_read_in_the_same_run(self, store: MemoryFactStore, quiet_console) -> None:
        producer = StubUnit(
            "net",
            writes=[FactOutput("subnets", "/app/test/Vpc/PrivateSubnetsId", "list")],
            values={"subnets": ["subnet-a", "subnet-b"]},
        )
        consumer = StubUnit("cluster", reads=[FactRead("subnets", "/app/test/Vpc/PrivateSubnetsId", "list", "deferred")])

        _stub_deployer([producer, consumer], [("cluster", "net")], store, quiet_console).run()
        assert consumer.seen_inputs == {"subnets": ["subnet-a", "subnet-b"]}

    def test_republish_is_last_write_wins(self, store: MemoryFactStore, quiet_console) -> None:
        store.publish("/app/test/Vpc/Id", "vpc-old")
        producer = StubUnit("net", writes=[FactOutput("vpc", "/app/test/Vpc/Id")], values={"vpc": "vpc-new"})
        _stub_deployer([producer], [], store, quiet_console).run()
        assert store.get("/app/test/Vpc/Id").value == "vpc-new"


class TestPlan:
    def test_fresh_plan_is_ready(self, config, make_deployer, store: MemoryFactStore) -> None:
        plan = make_deployer(config).plan()

        assert plan.order == PLATFORM_ORDER
        assert plan.ready
        statuses = {i.status for u in plan.units for i in u.inputs}
        assert statuses == {"pending"}
        assert store.list() == []

    def test_exclusive_plan_reports_missing_inputs(self, config, make_deployer, keys: FactKeys) -> None:
        plan = make_deployer(config).plan(["service"], exclusively=True)

        assert not plan.ready
        (service,) = plan.units
        assert {i.status for i in service.inputs} == {"missing"}
        assert keys.postgres_host() in {i.key for i in service.blocked}

    def test_plan_after_deploy_resolves(self, config, make_deployer) -> None:
        deployer = make_deployer(config)
        deployer.run()
        plan = deployer.plan(["service"], exclusively=True)

        assert plan.ready
        assert {i.status for i in plan.units[0].inputs} == {"resolved"}

    def test_plan_reports_kind_mismatch(self, config, make_deployer, keys: FactKeys, store: MemoryFactStore) -> None:
        store.publish(keys.vpc_id(), ["not", "a", "scalar"])
        store.publish(keys.vpc_cidr_block(), "10.0.0.0/16")
        plan = make_deployer(config).plan(["storage"], exclusively=True)

        statuses = {i.name: i.status for i in plan.units[0].inputs}
        assert statuses == {"vpc_id": "mismatch", "cidr_block": "resolved"}
        assert not plan.ready

    def test_plan_lists_resources_and_outputs(self, config, make_deployer, keys: FactKeys) -> None:
        plan = make_deployer(config).plan(["network"])
        (network,) = plan.units
        assert keys.vpc_id() in network.outputs
        assert any("n8n-stg-vpc" in r for r in network.resources)


class TestDeployLog:
    def test_transitions_are_logged(self, config, make_deployer, tmp_path: Path) -> None:
        report = make_deployer(config).run(["storage"])
        entries = read_log(tmp_path / "state" / "deploy.log", run_id=report.run_id)

        assert entries[0].step == "run_started"
        assert entries[-1].step == "run_finished"
        assert entries[-1].state == "succeeded"
        steps = [(e.unit_id, e.step) for e in entries[1:-1]]
        assert steps == [
            ("network", "resolve_inputs"),
            ("network", "provision"),
            ("network", "publish"),
            ("storage", "resolve_inputs"),
            ("storage", "provision"),
            ("storage", "publish"),
        ]

    def test_inputs_resolve_after_dependencies_publish(self, config, make_deployer, tmp_path: Path) -> None:
        deployer = make_deployer(config)
        report = deployer.run()
        entries = read_log(tmp_path / "state" / "deploy.log", run_id=report.run_id)
        position = {(e.unit_id, e.step): i for i, e in enumerate(entries)}

        for unit_id in report.deployed:
            for dependency in deployer.graph.dependencies_of(unit_id):
                assert position[(dependency, "publish")] < position[(unit_id, "resolve_inputs")]

    def test_failure_is_logged(self, config, make_deployer, provider: SimulatedProvider, tmp_path: Path) -> None:
        provider.reject("create_network")
        deployer = make_deployer(config)
        with pytest.raises(UnitFailed):
            deployer.run()

        entries = read_log(tmp_path / "state" / "deploy.log", run_id=deployer.last_report.run_id)
        failed = [e for e in entries if e.state == "failed"]
        assert failed[0].unit_id == "network"
        assert failed[0].metadata["error_type"] == "ProvisioningRejected"
        assert entries[-1].metadata == {"failed_unit": "network"}

    def test_log_holds_no_secret_values(
        self, config, make_deployer, keys: FactKeys, store: MemoryFactStore, secret_manager: LocalSecretManager, tmp_path: Path
    ) -> None:
        make_deployer(config).run()
        ref = SecretRef(store.get(keys.redis_password_secret_name()).value, store.get(keys.redis_password_secret_arn()).value)
        password = secret_manager.get(ref)["password"]

        assert password not in (tmp_path / "state" / "deploy.log").read_text(encoding="utf-8")
