"""
Deployment configuration.

A run needs three things from outside: the environment name (required),
the deployment target (account/region), and the conditional-inclusion
switches. They come from an optional TOML file:

    [deploy]
    app_name = "n8n"
    environment = "stg"
    account = "123456789012"
    region = "us-east-1"
    create_managed_database = false

with command-line options layered on top.
"""

from __future__ import annotations

import tomllib
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any

from .errors import ConfigurationError
from .util import capitalize

_TRUE = {"true", "yes", "1", "on"}
_FALSE = {"false", "no", "0", "off", ""}


def _coerce_bool(name: str, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in _TRUE:
            return True
        if lowered in _FALSE:
            return False
    raise ConfigurationError(f"{name} must be a boolean, got: {value!r}")


@dataclass(frozen=True)
class DeploymentConfig:
    """Resolved inputs for one deployment run."""

    environment: str
    app_name: str = "n8n"
    account: str = ""
    region: str = ""
    create_managed_database: bool = False
    create_bastion: bool = False
    strict_edges: bool = False
    state_dir: str = ".deploygraph"

    @property
    def prefix(self) -> str:
        """Resource name prefix, e.g. "n8n-stg"."""
        return f"{self.app_name}-{self.environment}"

    @property
    def stack_prefix(self) -> str:
        """Stack name prefix, e.g. "N8nStg"."""
        return f"{capitalize(self.app_name)}{capitalize(self.environment)}"

    def state_path(self, root: Path) -> Path:
        path = Path(self.state_dir)
        return path if path.is_absolute() else root / path

    def to_dict(self) -> dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


_BOOL_FIELDS = {"create_managed_database", "create_bastion", "strict_edges"}
_KNOWN_FIELDS = {f.name for f in fields(DeploymentConfig)}


def _read_toml(path: Path) -> dict[str, Any]:
    try:
        data = tomllib.loads(path.read_text(encoding="utf-8"))
    except OSError as e:
        raise ConfigurationError(f"cannot read config file {path}: {e}") from e
    except tomllib.TOMLDecodeError as e:
        raise ConfigurationError(f"malformed config file {path}: {e}") from e

    table = data.get("deploy", {})
    if not isinstance(table, dict):
        raise ConfigurationError(f"[deploy] in {path} must be a table")
    return table


def load_config(path: Path | None = None, overrides: dict[str, Any] | None = None) -> DeploymentConfig:
    """
    Build a DeploymentConfig from a TOML file and explicit overrides.

    Args:
        path: Optional TOML file with a [deploy] table
        overrides: Values that win over the file; None values are ignored

    Raises:
        ConfigurationError: environment missing, unknown keys, bad booleans
    """
    raw: dict[str, Any] = _read_toml(path) if path is not None else {}
    for name, value in (overrides or {}).items():
        if value is not None:
            raw[name] = value

    unknown = sorted(set(raw) - _KNOWN_FIELDS)
    if unknown:
        raise ConfigurationError(f"unknown configuration keys: {', '.join(unknown)}")

    environment = str(raw.get("environment") or "").strip()
    if not environment:
        raise ConfigurationError("environment must be specified (e.g. --environment stg)")

    app_name = str(raw.get("app_name") or "n8n").strip()
    if not app_name:
        raise ConfigurationError("app_name must be non-empty")

    values: dict[str, Any] = {
        "environment": environment,
        "app_name": app_name,
        "account": str(raw.get("account") or "").strip(),
        "region": str(raw.get("region") or "").strip(),
        "state_dir": str(raw.get("state_dir") or ".deploygraph"),
    }
    for name in _BOOL_FIELDS:
        if name in raw:
            values[name] = _coerce_bool(name, raw[name])

    return DeploymentConfig(**values)
