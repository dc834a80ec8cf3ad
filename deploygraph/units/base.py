"""
Provisioning unit protocol.

A unit is one independently deployable bundle of resources. Units separate
declaration (pure) from provisioning (impure):

1. Pure phase: declare_inputs, declare_outputs
2. Impure phase: provision

Constructing a unit never touches the fact store or the provider. The
driver resolves the declared inputs, calls provision() with the resolved
values, checks the returned outputs against declare_outputs(), and only
then publishes them.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import ClassVar

from ..config import DeploymentConfig
from ..facts import FactKind, FactOutput, FactRead, FactValue, ReadMode
from ..keys import FactKeys
from ..provider import Provider
from ..secrets import SecretManager


class UnitState(str, Enum):
    """Lifecycle of a unit within one run."""

    DECLARED = "declared"
    INPUTS_RESOLVING = "inputs_resolving"
    PROVISIONING = "provisioning"
    OUTPUTS_PUBLISHED = "outputs_published"
    FAILED = "failed"


@dataclass
class ProvisionContext:
    """
    Everything a unit may use while provisioning.

    `inputs` holds concrete values keyed by the local names from
    declare_inputs(); deferred reads have already been resolved.
    """

    unit_id: str
    config: DeploymentConfig
    provider: Provider
    secrets: SecretManager
    inputs: dict[str, FactValue] = field(default_factory=dict)

    def scalar(self, name: str) -> str:
        value = self.inputs[name]
        if not isinstance(value, str):
            raise TypeError(f"input '{name}' of {self.unit_id} is a list, expected a scalar")
        return value

    def strings(self, name: str) -> list[str]:
        value = self.inputs[name]
        if isinstance(value, str):
            raise TypeError(f"input '{name}' of {self.unit_id} is a scalar, expected a list")
        return list(value)

    def arn(self, service: str, resource: str) -> str:
        """ARN in the deployment target's account and region."""
        return f"arn:aws:{service}:{self.config.region}:{self.config.account}:{resource}"


class Unit(ABC):
    """
    Base class for provisioning units.

    Subclasses set `unit_id` and `title` and implement the three phase
    methods. The stack name follows the "<App><Env><Title>Stack" pattern,
    e.g. N8nStgNetworkStack.
    """

    unit_id: ClassVar[str]
    title: ClassVar[str]

    def __init__(self, config: DeploymentConfig, keys: FactKeys):
        self.config = config
        self.keys = keys

    @property
    def stack_name(self) -> str:
        return f"{self.config.stack_prefix}{self.title}Stack"

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.unit_id!r})"

    # -------------------------------------------------------------------------
    # Pure phase: no side effects
    # -------------------------------------------------------------------------

    @abstractmethod
    def declare_inputs(self) -> list[FactRead]:
        """Facts this unit reads, with their kind and read mode."""
        ...

    @abstractmethod
    def declare_outputs(self) -> list[FactOutput]:
        """Facts this unit publishes once its resources exist."""
        ...

    def describe(self) -> list[str]:
        """
        Human-readable list of resources the unit creates.

        Used by plan summaries. Override to be more specific.
        """
        return []

    # -------------------------------------------------------------------------
    # Impure phase: side effects allowed
    # -------------------------------------------------------------------------

    @abstractmethod
    def provision(self, context: ProvisionContext) -> dict[str, FactValue]:
        """
        Create the unit's resources.

        Returns output values keyed by the names from declare_outputs().
        Provider errors propagate unchanged.
        """
        ...

    # -------------------------------------------------------------------------
    # Declaration helpers
    # -------------------------------------------------------------------------

    @staticmethod
    def read(name: str, key: str, kind: FactKind = "scalar", mode: ReadMode = "eager") -> FactRead:
        return FactRead(name=name, key=key, kind=kind, mode=mode)

    @staticmethod
    def output(name: str, key: str, kind: FactKind = "scalar", description: str = "") -> FactOutput:
        return FactOutput(name=name, key=key, kind=kind, description=description)


def efs_resources(context: ProvisionContext, file_system_id: str, access_point_id: str) -> tuple[str, ...]:
    """IAM resource ARNs scoping a task role to one file system access point."""
    return (
        context.arn("elasticfilesystem", f"file-system/{file_system_id}"),
        context.arn("elasticfilesystem", f"access-point/{access_point_id}"),
    )
