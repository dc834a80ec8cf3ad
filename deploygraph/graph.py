"""Deployment graph construction, validation and ordering."""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from typing import Iterable

from .errors import CycleDetected, DuplicateUnit, GraphError, UndeclaredDependency, UnknownUnit
from .units.base import Unit

Edge = tuple[str, str]  # (unit, dependency): unit deploys after dependency


@dataclass
class DeploymentGraph:
    """
    Static graph of units and their dependency edges.

    `nodes` keeps declaration order, which breaks ties in the topological
    order. Build through DeploymentGraph.build(), which validates the edges
    and every declared fact read.
    """

    nodes: dict[str, Unit] = field(default_factory=dict)  # unit id -> Unit
    edges: dict[str, set[str]] = field(
        default_factory=lambda: defaultdict(set)
    )  # unit -> dependencies
    reverse_edges: dict[str, set[str]] = field(
        default_factory=lambda: defaultdict(set)
    )  # unit -> dependents
    producers: dict[str, str] = field(default_factory=dict)  # fact key -> unit id
    strict: bool = False

    @classmethod
    def build(cls, units: Iterable[Unit], edges: Iterable[Edge] = (), *, strict: bool = False) -> DeploymentGraph:
        """
        Build and validate a graph.

        Args:
            units: Units in declaration order
            edges: (unit, dependency) pairs
            strict: Require a direct edge behind every eager read

        Raises:
            DuplicateUnit: two units share an id
            UnknownUnit: an edge names a unit not in `units`
            CycleDetected: the edges are not acyclic
            GraphError: two units publish the same fact key
            UndeclaredDependency: a fact read has no covering edge
        """
        graph = cls(strict=strict)

        for unit in units:
            if unit.unit_id in graph.nodes:
                raise DuplicateUnit(f"unit id declared twice: {unit.unit_id}")
            graph.nodes[unit.unit_id] = unit

        for src, dst in edges:
            for name in (src, dst):
                if name not in graph.nodes:
                    raise UnknownUnit(f"edge {src} -> {dst} references unknown unit: {name}")
            if src == dst:
                raise CycleDetected([src, src])
            graph.edges[src].add(dst)
            graph.reverse_edges[dst].add(src)

        cycles = graph.find_simple_cycles()
        if cycles:
            raise CycleDetected(cycles[0])

        graph._index_producers()
        graph._check_reads()
        return graph

    # -------------------------------------------------------------------------
    # Validation
    # -------------------------------------------------------------------------

    def _index_producers(self) -> None:
        for unit_id, unit in self.nodes.items():
            for output in unit.declare_outputs():
                owner = self.producers.get(output.key)
                if owner is not None:
                    raise GraphError(f"fact {output.key} is published by both {owner} and {unit_id}")
                self.producers[output.key] = unit_id

    def _check_reads(self) -> None:
        for unit_id, unit in self.nodes.items():
            direct = self.dependencies_of(unit_id)
            reachable = self.transitive_dependencies(unit_id)
            for read in unit.declare_inputs():
                producer = self.producers.get(read.key)
                if producer is None:
                    raise UndeclaredDependency(
                        f"{unit_id} reads {read.key}, which no unit in the graph publishes"
                    )
                if producer == unit_id:
                    raise UndeclaredDependency(f"{unit_id} reads its own output {read.key}")
                if read.mode == "deferred" or self.strict:
                    if producer not in direct:
                        raise UndeclaredDependency(
                            f"{unit_id} reads {read.key} ({read.mode}) without a direct edge on {producer}"
                        )
                elif producer not in reachable:
                    raise UndeclaredDependency(
                        f"{unit_id} reads {read.key} but does not depend on {producer}"
                    )

    # -------------------------------------------------------------------------
    # Traversal
    # -------------------------------------------------------------------------

    def _require(self, unit_id: str) -> None:
        if unit_id not in self.nodes:
            raise UnknownUnit(f"unknown unit: {unit_id}")

    def dependencies_of(self, unit_id: str) -> set[str]:
        """Direct dependencies of a unit."""
        self._require(unit_id)
        return set(self.edges.get(unit_id, set()))

    def dependents_of(self, unit_id: str) -> set[str]:
        self._require(unit_id)
        return set(self.reverse_edges.get(unit_id, set()))

    def transitive_dependencies(self, unit_id: str) -> set[str]:
        """All units reachable from `unit_id` along dependency edges, excluding itself."""
        self._require(unit_id)
        visited: set[str] = set()
        stack = list(self.edges.get(unit_id, set()))

        while stack:
            current = stack.pop()
            if current in visited:
                continue
            visited.add(current)
            stack.extend(dep for dep in self.edges.get(current, set()) if dep not in visited)

        return visited

    def producer_of(self, key: str) -> str | None:
        return self.producers.get(key)

    def topological_order(self) -> list[str]:
        """
        Unit ids in deployment order (dependencies first).

        Kahn's algorithm; among ready units the earliest declared goes
        first, so the order is the same on every call.
        """
        position = {unit_id: i for i, unit_id in enumerate(self.nodes)}
        in_degree = {unit_id: len(self.edges.get(unit_id, set())) for unit_id in self.nodes}
        ready = [unit_id for unit_id in self.nodes if in_degree[unit_id] == 0]
        result: list[str] = []

        while ready:
            ready.sort(key=position.__getitem__)
            node = ready.pop(0)
            result.append(node)

            for dependent in self.reverse_edges.get(node, set()):
                in_degree[dependent] -= 1
                if in_degree[dependent] == 0:
                    ready.append(dependent)

        if len(result) != len(self.nodes):
            # Unreachable after build(); kept for graphs assembled by hand.
            cycles = self.find_simple_cycles()
            raise CycleDetected(cycles[0] if cycles else sorted(set(self.nodes) - set(result)))

        return result

    def find_simple_cycles(self) -> list[list[str]]:
        """Find simple cycles as ordered paths A -> B -> ... -> A."""
        cycles = []
        visited = set()

        def dfs(node, path):
            if node in path:
                cycle_start = path.index(node)
                cycles.append(path[cycle_start:] + [node])
                return

            if node in visited:
                return

            path.append(node)
            for dep in sorted(self.edges.get(node, set())):
                dfs(dep, path.copy())

            visited.add(node)

        for node in self.nodes:
            if node not in visited:
                dfs(node, [])

        # The same cycle is found from each of its members; keep one rotation.
        unique_cycles = []
        seen = set()
        for cycle in cycles:
            members = cycle[:-1]
            start = members.index(min(members))
            normalized = tuple(members[start:] + members[:start])
            if normalized not in seen:
                seen.add(normalized)
                unique_cycles.append(list(normalized) + [normalized[0]])

        return unique_cycles

    # -------------------------------------------------------------------------
    # Output
    # -------------------------------------------------------------------------

    def to_dot(self, title: str = "deployment") -> str:
        """Graphviz rendering; edges point from a unit to what it depends on."""

        def esc(s: str) -> str:
            return s.replace("\\", "\\\\").replace('"', '\\"')

        lines = [
            "digraph deployment {",
            f'  label="{esc(title)}";',
            "  labelloc=t;",
            "  rankdir=LR;",
            '  node [fontname="Helvetica", fontsize=10, shape=box];',
        ]
        for unit_id in self.topological_order():
            unit = self.nodes[unit_id]
            label = f"{esc(unit_id)}\\n{esc(unit.stack_name)}"
            lines.append(f'  "{esc(unit_id)}" [label="{label}"];')
        for src in self.nodes:
            for dst in sorted(self.edges.get(src, set())):
                lines.append(f'  "{esc(src)}" -> "{esc(dst)}";')
        lines.append("}")
        return "\n".join(lines) + "\n"
