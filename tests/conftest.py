"""Pytest configuration and fixtures."""

from pathlib import Path

import pytest
from rich.console import Console

from deploygraph.config import DeploymentConfig
from deploygraph.driver import Deployer
from deploygraph.facts import MemoryFactStore
from deploygraph.keys import FactKeys
from deploygraph.provider import SimulatedProvider
from deploygraph.secrets import LocalSecretManager
from deploygraph.topology import build_topology


@pytest.fixture
def config() -> DeploymentConfig:
    """Staging config with every optional unit switched off."""
    return DeploymentConfig(environment="stg", account="123456789012", region="us-east-1")


@pytest.fixture
def keys(config: DeploymentConfig) -> FactKeys:
    return FactKeys(config.app_name, config.environment)


@pytest.fixture
def store() -> MemoryFactStore:
    return MemoryFactStore()


@pytest.fixture
def provider(config: DeploymentConfig) -> SimulatedProvider:
    return SimulatedProvider(account=config.account, region=config.region)


@pytest.fixture
def secret_manager(config: DeploymentConfig) -> LocalSecretManager:
    return LocalSecretManager(account=config.account, region=config.region)


@pytest.fixture
def quiet_console() -> Console:
    return Console(quiet=True)


@pytest.fixture
def make_deployer(store, provider, secret_manager, quiet_console, tmp_path: Path):
    """Factory for a Deployer over the platform graph of a given config."""

    def _make(config: DeploymentConfig, *, fact_store=None) -> Deployer:
        return Deployer(
            build_topology(config),
            fact_store if fact_store is not None else store,
            provider,
            secret_manager,
            config,
            console=quiet_console,
            log_path=tmp_path / "state" / "deploy.log",
        )

    return _make
