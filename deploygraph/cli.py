"""CLI entrypoint for deploygraph."""

import sys
from pathlib import Path

import click

from . import __version__
from .config import DeploymentConfig, load_config
from .errors import ConfigurationError


def _config(ctx: click.Context) -> DeploymentConfig:
    """Resolve configuration lazily so --help works without an environment."""
    try:
        return load_config(ctx.obj["config_path"], ctx.obj["overrides"])
    except ConfigurationError as e:
        raise click.ClickException(f"Configuration error: {e}") from e


@click.group()
@click.version_option(__version__, prog_name="deploygraph")
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=False, dir_okay=False, path_type=Path),
    default=None,
    help="TOML file with a [deploy] table (defaults to ./deploygraph.toml when present)",
)
@click.option("--environment", "-e", default=None, help="Environment to deploy (e.g. stg, prod)")
@click.option("--account", default=None, help="Target account id")
@click.option("--region", default=None, help="Target region")
@click.option(
    "--create-managed-database/--no-create-managed-database",
    default=None,
    help="Include the managed database unit",
)
@click.option("--bastion/--no-bastion", "create_bastion", default=None, help="Include the bastion host unit")
@click.option(
    "--strict-edges",
    is_flag=True,
    help="Require a direct dependency edge behind every fact read",
)
@click.pass_context
def cli(
    ctx: click.Context,
    config_path: Path | None,
    environment: str | None,
    account: str | None,
    region: str | None,
    create_managed_database: bool | None,
    create_bastion: bool | None,
    strict_edges: bool | None,
) -> None:
    """deploygraph - deploy an application as a graph of units that exchange facts.

    Units publish identifiers under /<app>/<env>/... keys and read each
    other's facts back when they deploy.
    """
    ctx.ensure_object(dict)
    if config_path is None:
        default = Path.cwd() / "deploygraph.toml"
        config_path = default if default.exists() else None

    ctx.obj["root"] = Path.cwd()
    ctx.obj["config_path"] = config_path
    ctx.obj["overrides"] = {
        "environment": environment,
        "account": account,
        "region": region,
        "create_managed_database": create_managed_database,
        "create_bastion": create_bastion,
        "strict_edges": strict_edges or None,
    }


@cli.command()
@click.option(
    "--format",
    "fmt",
    type=click.Choice(["order", "json", "dot"]),
    default="order",
    help="Output format",
)
@click.option(
    "--out",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Write to a file instead of stdout",
)
@click.pass_context
def graph(ctx: click.Context, fmt: str, out: Path | None) -> None:
    """Show the deployment order or the dependency graph."""
    from .commands.graph_cmd import run_graph

    sys.exit(run_graph(_config(ctx), fmt=fmt, out=out))


@cli.command()
@click.argument("units", nargs=-1)
@click.option("--exclusively", is_flag=True, help="Only the named units; assume their dependencies are deployed")
@click.option("--json", "output_json", is_flag=True, help="Output the plan as JSON")
@click.pass_context
def plan(ctx: click.Context, units: tuple[str, ...], exclusively: bool, output_json: bool) -> None:
    """Show how each unit's inputs would resolve, without deploying.

    Examples:

        deploygraph -e stg plan

        deploygraph -e stg plan service --exclusively
    """
    from .commands.deploy_cmd import run_plan

    exit_code = run_plan(
        _config(ctx),
        ctx.obj["root"],
        targets=list(units) or None,
        exclusively=exclusively,
        output_json=output_json,
    )
    sys.exit(exit_code)


@cli.command()
@click.argument("units", nargs=-1)
@click.option("--exclusively", is_flag=True, help="Only the named units; assume their dependencies are deployed")
@click.pass_context
def deploy(ctx: click.Context, units: tuple[str, ...], exclusively: bool) -> None:
    """Deploy units in dependency order, halting on the first failure."""
    from .commands.deploy_cmd import run_deploy

    exit_code = run_deploy(
        _config(ctx),
        ctx.obj["root"],
        targets=list(units) or None,
        exclusively=exclusively,
    )
    sys.exit(exit_code)


@cli.group()
def facts() -> None:
    """Inspect published facts."""
    pass


@facts.command("list")
@click.option("--all", "all_envs", is_flag=True, help="Every namespace, not just this environment")
@click.option("--json", "output_json", is_flag=True, help="Output as JSON")
@click.pass_context
def facts_list(ctx: click.Context, all_envs: bool, output_json: bool) -> None:
    """List facts published for the environment."""
    from .commands.facts_cmd import run_facts_list

    sys.exit(run_facts_list(_config(ctx), ctx.obj["root"], all_envs=all_envs, output_json=output_json))


@facts.command("get")
@click.argument("key")
@click.pass_context
def facts_get(ctx: click.Context, key: str) -> None:
    """Print one fact. KEY is a full key or Category/Name (e.g. Vpc/Id)."""
    from .commands.facts_cmd import run_facts_get

    sys.exit(run_facts_get(_config(ctx), ctx.obj["root"], key))


@cli.command("log")
@click.option("--run", "run_id", default=None, help="Only entries of this run id")
@click.option("--last", "last_n", type=int, default=None, help="Only the last N entries")
@click.pass_context
def log(ctx: click.Context, run_id: str | None, last_n: int | None) -> None:
    """Show the deployment log."""
    from .commands.facts_cmd import run_log

    sys.exit(run_log(_config(ctx), ctx.obj["root"], run_id=run_id, last_n=last_n))


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
