"""Plan and deploy commands."""

from __future__ import annotations

import json
from pathlib import Path

from rich.console import Console
from rich.table import Table

from ..config import DeploymentConfig
from ..driver import DeploymentPlan
from ..errors import DeployError, UnitFailed
from ..topology import platform_builder
from ._common import deployer

_STATUS_STYLE = {
    "resolved": "green",
    "pending": "yellow",
    "missing": "bold red",
    "mismatch": "bold red",
}


def _plan_to_dict(plan: DeploymentPlan) -> dict:
    return {
        "environment": plan.environment,
        "ready": plan.ready,
        "excluded": plan.excluded,
        "units": [
            {
                "unit_id": u.unit_id,
                "stack_name": u.stack_name,
                "resources": u.resources,
                "outputs": u.outputs,
                "inputs": [
                    {"name": i.name, "key": i.key, "mode": i.mode, "status": i.status, "producer": i.producer}
                    for i in u.inputs
                ],
            }
            for u in plan.units
        ],
    }


def _print_plan(plan: DeploymentPlan, console: Console) -> None:
    for position, unit_plan in enumerate(plan.units, start=1):
        table = Table(title=f"{position}. {unit_plan.stack_name} ({unit_plan.unit_id})", title_justify="left")
        table.add_column("input", style="cyan", no_wrap=True)
        table.add_column("key")
        table.add_column("mode", style="dim")
        table.add_column("status")
        for item in unit_plan.inputs:
            table.add_row(
                item.name,
                item.key,
                item.mode,
                f"[{_STATUS_STYLE[item.status]}]{item.status}[/]",
            )
        console.print(table)
        for resource in unit_plan.resources:
            console.print(f"  + {resource}", style="dim", markup=False)
        for key in unit_plan.outputs:
            console.print(f"  -> {key}", style="dim", markup=False)


def run_plan(
    config: DeploymentConfig,
    root: Path,
    *,
    targets: list[str] | None = None,
    exclusively: bool = False,
    output_json: bool = False,
) -> int:
    """Show what a deploy would do. Exit code 1 when an input cannot resolve."""
    err = Console(stderr=True)
    builder = platform_builder(config)
    try:
        plan = deployer(config, root, builder).plan(targets, exclusively)
    except DeployError as e:
        err.print(f"Plan failed: {e}", style="bold red", markup=False)
        return 2
    plan.excluded = builder.excluded()

    if output_json:
        print(json.dumps(_plan_to_dict(plan), indent=2))
    else:
        _print_plan(plan, Console())
        if plan.excluded:
            err.print(f"Excluded by flags: {', '.join(plan.excluded)}", style="dim")

    if not plan.ready:
        for unit_plan in plan.units:
            for item in unit_plan.blocked:
                err.print(f"{unit_plan.unit_id}: {item.key} is {item.status}", style="red", markup=False)
        return 1
    return 0


def run_deploy(
    config: DeploymentConfig,
    root: Path,
    *,
    targets: list[str] | None = None,
    exclusively: bool = False,
) -> int:
    """Deploy the selected units. Exit code 1 when a unit fails."""
    err = Console(stderr=True)
    try:
        d = deployer(config, root)
    except DeployError as e:
        err.print(f"Invalid graph: {e}", style="bold red", markup=False)
        return 2

    try:
        report = d.run(targets, exclusively)
    except UnitFailed as e:
        report = d.last_report
        err.print(f"Deployment halted: {e}", style="bold red", markup=False)
        if report is not None and report.not_started:
            err.print(f"Not started: {', '.join(report.not_started)}", style="yellow")
        return 1
    except DeployError as e:
        err.print(f"Deployment failed: {e}", style="bold red", markup=False)
        return 2

    err.print(f"Deployed {len(report.deployed)} unit(s): {', '.join(report.deployed)}", style="green")
    return 0
