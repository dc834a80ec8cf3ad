"""Facts commands - inspect the fact store and the deployment log."""

from __future__ import annotations

import json
from pathlib import Path

from rich.console import Console
from rich.table import Table

from ..audit import format_entry, read_log
from ..config import DeploymentConfig
from ..errors import FactError
from ..keys import FactKeys
from ._common import fact_store, log_path


def _qualify(config: DeploymentConfig, key: str) -> str:
    """Accept either a full key or "Category/Name" relative to the environment."""
    if key.startswith("/"):
        return key
    category, _, name = key.partition("/")
    return FactKeys(config.app_name, config.environment).key(category, name)


def run_facts_list(config: DeploymentConfig, root: Path, *, all_envs: bool = False, output_json: bool = False) -> int:
    err = Console(stderr=True)
    prefix = "" if all_envs else FactKeys(config.app_name, config.environment).prefix() + "/"
    try:
        facts = fact_store(config, root).list(prefix)
    except FactError as e:
        err.print(f"Cannot read facts: {e}", style="bold red", markup=False)
        return 2

    if output_json:
        print(json.dumps([f.to_dict() for f in facts], indent=2))
        return 0

    if not facts:
        err.print(f"No facts published under {prefix or '/'}", style="dim")
        return 0

    table = Table(title="Facts")
    table.add_column("key", style="cyan", no_wrap=True)
    table.add_column("kind", style="magenta")
    table.add_column("value")
    for fact in facts:
        value = fact.value if isinstance(fact.value, str) else ", ".join(fact.value)
        table.add_row(fact.key, fact.kind, value)
    Console().print(table)
    return 0


def run_facts_get(config: DeploymentConfig, root: Path, key: str) -> int:
    err = Console(stderr=True)
    full_key = _qualify(config, key)
    try:
        fact = fact_store(config, root).get(full_key)
    except FactError as e:
        err.print(str(e), style="bold red", markup=False)
        return 1

    if isinstance(fact.value, str):
        print(fact.value)
    else:
        print(json.dumps(fact.value))
    return 0


def run_log(config: DeploymentConfig, root: Path, *, run_id: str | None = None, last_n: int | None = None) -> int:
    entries = read_log(log_path(config, root), run_id=run_id, last_n=last_n)
    if not entries:
        Console(stderr=True).print("Deployment log is empty", style="dim")
        return 0
    for entry in entries:
        print(format_entry(entry))
    return 0
