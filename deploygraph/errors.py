"""
Error taxonomy for deployment runs.

Every failure surfaced by the graph builder, the fact store, a unit or the
driver is a DeployError, so callers (the CLI) can catch one type and print
a single terminal message.
"""

from __future__ import annotations


class DeployError(Exception):
    """Base class for all deployment failures."""


class ConfigurationError(DeployError):
    """A required external input is missing or malformed."""


# -----------------------------------------------------------------------------
# Graph construction
# -----------------------------------------------------------------------------


class GraphError(DeployError):
    """The declared graph cannot be built."""


class CycleDetected(GraphError):
    """The dependency edges contain a cycle."""

    def __init__(self, cycle: list[str]):
        self.cycle = cycle
        super().__init__(f"dependency cycle: {' -> '.join(cycle)}")


class UnknownUnit(GraphError):
    """An edge or target names a unit that is not in the graph."""


class DuplicateUnit(GraphError):
    """Two units share an id."""


class ExcludedUnitReference(GraphError):
    """An unconditional edge references a conditionally excluded unit."""


class UndeclaredDependency(GraphError):
    """A fact read is not backed by a dependency edge on its producer."""


# -----------------------------------------------------------------------------
# Fact store
# -----------------------------------------------------------------------------


class FactError(DeployError):
    """Base class for fact store failures."""


class FactNotFound(FactError):
    def __init__(self, key: str):
        self.key = key
        super().__init__(f"fact not found: {key}")


class TypeMismatch(FactError):
    def __init__(self, key: str, expected: str, actual: str):
        self.key = key
        self.expected = expected
        self.actual = actual
        super().__init__(f"fact {key} is a {actual}, expected {expected}")


class StoreUnavailable(FactError):
    """The backing store cannot be reached."""


# -----------------------------------------------------------------------------
# Provisioning and runs
# -----------------------------------------------------------------------------


class ProvisioningRejected(DeployError):
    """The provisioning API declined a resource request."""


class InvalidOutputs(DeployError):
    """A unit returned outputs that do not match its declaration."""


class UnitFailed(DeployError):
    """
    A unit failed during a run.

    Carries the failing unit id, the lifecycle step it was in, and the
    underlying cause. The driver raises this once and stops.
    """

    def __init__(self, unit_id: str, step: str, cause: BaseException):
        self.unit_id = unit_id
        self.step = step
        self.cause = cause
        super().__init__(f"unit '{unit_id}' failed during {step}: {cause}")
