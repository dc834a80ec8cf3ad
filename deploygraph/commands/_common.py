"""Wiring shared by the command implementations."""

from __future__ import annotations

from pathlib import Path

from ..audit import get_log_path
from ..config import DeploymentConfig
from ..driver import Deployer
from ..facts import FileFactStore
from ..provider import SimulatedProvider
from ..secrets import LocalSecretManager
from ..topology import GraphBuilder, platform_builder

FACTS_FILENAME = "facts.json"


def fact_store(config: DeploymentConfig, root: Path) -> FileFactStore:
    return FileFactStore(config.state_path(root) / FACTS_FILENAME)


def log_path(config: DeploymentConfig, root: Path) -> Path:
    return get_log_path(config.state_path(root))


def deployer(config: DeploymentConfig, root: Path, builder: GraphBuilder | None = None) -> Deployer:
    """Deployer over the file fact store and the simulated provider."""
    builder = builder or platform_builder(config)
    return Deployer(
        builder.build(),
        fact_store(config, root),
        SimulatedProvider(account=config.account, region=config.region),
        LocalSecretManager(account=config.account, region=config.region),
        config,
        log_path=log_path(config, root),
    )
