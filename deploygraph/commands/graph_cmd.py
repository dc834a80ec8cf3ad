"""Graph command - show the deployment order or the graph as DOT."""

from __future__ import annotations

import json
from pathlib import Path

from rich.console import Console
from rich.table import Table

from ..config import DeploymentConfig
from ..errors import GraphError
from ..topology import platform_builder


def run_graph(config: DeploymentConfig, *, fmt: str = "order", out: Path | None = None) -> int:
    """Print the unit order ("order"), the edges as JSON ("json") or Graphviz ("dot")."""
    err = Console(stderr=True)
    builder = platform_builder(config)
    try:
        graph = builder.build()
    except GraphError as e:
        err.print(f"Invalid graph: {e}", style="bold red", markup=False)
        return 2

    order = graph.topological_order()

    if fmt == "order":
        table = Table(title=f"Deployment order ({config.prefix})")
        table.add_column("#", justify="right", style="dim")
        table.add_column("unit", style="cyan", no_wrap=True)
        table.add_column("stack")
        table.add_column("depends on", style="dim")
        for i, unit_id in enumerate(order, start=1):
            unit = graph.nodes[unit_id]
            table.add_row(str(i), unit_id, unit.stack_name, ", ".join(sorted(graph.dependencies_of(unit_id))))
        Console().print(table)
        excluded = builder.excluded()
        if excluded:
            err.print(f"Excluded by flags: {', '.join(excluded)}", style="dim")
        return 0

    if fmt == "json":
        text = json.dumps(
            {
                "order": order,
                "edges": {unit_id: sorted(graph.dependencies_of(unit_id)) for unit_id in order},
                "excluded": builder.excluded(),
            },
            indent=2,
        ) + "\n"
    else:
        text = graph.to_dot(title=f"{config.stack_prefix} deployment")

    if out:
        out.write_text(text, encoding="utf-8")
        err.print(f"Wrote graph output to {out}", style="green")
    else:
        print(text, end="")
    return 0
