"""
Graph assembly with conditional inclusion.

GraphBuilder collects units and edges, some of them gated by a Flag, and
resolves the flags once when build() is called. A unit whose flag is off is
left out together with the edges gated by that flag. Any other edge that
still names the excluded unit is an error at build time; it is never
dropped silently.

build_topology() wires the platform graph:

    network
    storage           -> network
    managed-database  -> network                 (create_managed_database)
    cluster           -> network, storage
    bastion           -> network, storage        (create_bastion)
    database          -> cluster, managed-database (when enabled)
    cache             -> cluster
    service           -> database, cache
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Union

from .config import DeploymentConfig
from .errors import DuplicateUnit, ExcludedUnitReference, UnknownUnit
from .graph import DeploymentGraph
from .keys import FactKeys
from .units import (
    ApplicationServiceUnit,
    BastionUnit,
    CacheServiceUnit,
    ClusterUnit,
    DatabaseServiceUnit,
    ManagedDatabaseUnit,
    NetworkUnit,
    StorageUnit,
)
from .units.base import Unit

UnitRef = Union[Unit, str]


@dataclass(frozen=True)
class Flag:
    """A named boolean resolved once per run."""

    name: str
    enabled: bool

    def __bool__(self) -> bool:
        return self.enabled


@dataclass(frozen=True)
class _Edge:
    unit: str
    dependency: str
    when: Flag | None = None


def _unit_id(ref: UnitRef) -> str:
    return ref if isinstance(ref, str) else ref.unit_id


class GraphBuilder:
    """Collects units and (possibly conditional) edges; build() resolves them."""

    def __init__(self, *, strict: bool = False):
        self.strict = strict
        self._units: list[Unit] = []
        self._gates: dict[str, Flag] = {}  # unit id -> flag gating it
        self._edges: list[_Edge] = []

    def add(self, unit: Unit, depends_on: Iterable[UnitRef] = ()) -> Unit:
        """Declare an unconditional unit and its dependencies."""
        if any(u.unit_id == unit.unit_id for u in self._units):
            raise DuplicateUnit(f"unit id declared twice: {unit.unit_id}")
        self._units.append(unit)
        for dependency in depends_on:
            self.depend(unit, dependency)
        return unit

    def depend(self, unit: UnitRef, dependency: UnitRef, when: Flag | None = None) -> None:
        """Declare that `unit` deploys after `dependency`, optionally only when `when` is on."""
        self._edges.append(_Edge(_unit_id(unit), _unit_id(dependency), when))

    def include_if(
        self,
        flag: Flag,
        unit: Unit,
        depends_on: Iterable[UnitRef] = (),
        dependents: Iterable[UnitRef] = (),
    ) -> Unit:
        """
        Declare a unit that is only part of the graph when `flag` is on.

        `depends_on` and `dependents` become edges gated by the same flag,
        so they disappear together with the unit.
        """
        self.add(unit)
        self._gates[unit.unit_id] = flag
        for dependency in depends_on:
            self.depend(unit, dependency, when=flag)
        for dependent in dependents:
            self.depend(dependent, unit, when=flag)
        return unit

    def is_included(self, unit_id: str) -> bool:
        flag = self._gates.get(unit_id)
        return flag is None or flag.enabled

    def excluded(self) -> list[str]:
        """Ids of declared units switched off by their flag."""
        return [u.unit_id for u in self._units if not self.is_included(u.unit_id)]

    def build(self) -> DeploymentGraph:
        """
        Resolve flags and build the graph.

        Raises:
            ExcludedUnitReference: an edge that is still active names an
                excluded unit
            UnknownUnit: an edge names a unit that was never added, even when
                the edge is gated on a flag that is off
            GraphError: anything DeploymentGraph.build() rejects
        """
        units = [u for u in self._units if self.is_included(u.unit_id)]
        declared = {u.unit_id for u in self._units}
        edges: list[tuple[str, str]] = []

        for edge in self._edges:
            for name in (edge.unit, edge.dependency):
                if name not in declared:
                    raise UnknownUnit(f"edge {edge.unit} -> {edge.dependency} references unknown unit {name}")
            if edge.when is not None and not edge.when.enabled:
                continue
            for name in (edge.unit, edge.dependency):
                if name in self._gates and not self.is_included(name):
                    flag = self._gates[name]
                    raise ExcludedUnitReference(
                        f"edge {edge.unit} -> {edge.dependency} references {name}, "
                        f"which is excluded because {flag.name} is off; gate the edge on the same flag"
                    )
            edges.append((edge.unit, edge.dependency))

        return DeploymentGraph.build(units, edges, strict=self.strict)


def platform_builder(config: DeploymentConfig, keys: FactKeys | None = None) -> GraphBuilder:
    """Declare the platform units and edges for `config` without building."""
    keys = keys or FactKeys(config.app_name, config.environment)
    managed_db = Flag("create_managed_database", config.create_managed_database)
    bastion = Flag("create_bastion", config.create_bastion)

    builder = GraphBuilder(strict=config.strict_edges)
    network = builder.add(NetworkUnit(config, keys))
    storage = builder.add(StorageUnit(config, keys), depends_on=[network])
    rds = builder.include_if(managed_db, ManagedDatabaseUnit(config, keys), depends_on=[network])
    cluster = builder.add(ClusterUnit(config, keys), depends_on=[network, storage])
    builder.include_if(bastion, BastionUnit(config, keys), depends_on=[network, storage])
    database = builder.add(DatabaseServiceUnit(config, keys), depends_on=[cluster])
    builder.depend(database, rds, when=managed_db)
    cache = builder.add(CacheServiceUnit(config, keys), depends_on=[cluster])
    builder.add(ApplicationServiceUnit(config, keys), depends_on=[database, cache])
    return builder


def build_topology(config: DeploymentConfig, keys: FactKeys | None = None) -> DeploymentGraph:
    """Build the platform graph for one environment."""
    return platform_builder(config, keys).build()
