"""
Secret manager.

Credentials are generated and stored here; only a reference (name + ARN)
ever leaves the manager. References are what units publish as facts, so
raw values never reach the fact store or the deployment log.
"""

from __future__ import annotations

import secrets
import string
from dataclasses import dataclass
from typing import Protocol

from .resources import SecretSpec


@dataclass(frozen=True)
class SecretRef:
    """Opaque handle to a stored secret."""

    name: str
    arn: str


class SecretManager(Protocol):
    """Protocol for generating and storing credential material."""

    def generate(self, spec: SecretSpec) -> SecretRef:
        """
        Create (or return the existing) secret named `spec.name`.

        Returns:
            A reference to the stored secret; never the value.
        """
        ...

    def get(self, ref: SecretRef) -> dict[str, str] | None:
        """
        Resolve a reference to its stored fields.

        Reserved for the workloads that consume the secret at runtime.
        """
        ...


def _alphabet(spec: SecretSpec) -> str:
    chars = string.ascii_lowercase + string.digits
    if not spec.exclude_uppercase:
        chars += string.ascii_uppercase
    if not spec.exclude_punctuation:
        chars += string.punctuation
    chars = "".join(c for c in chars if c not in spec.exclude_characters)
    if not chars:
        raise ValueError(f"secret {spec.name}: exclusions leave no characters to generate from")
    return chars


class LocalSecretManager:
    """
    In-process secret manager.

    Secrets are keyed by name; generating a name that already exists returns
    the existing reference, so redeploys keep their credentials.
    """

    def __init__(self, account: str = "", region: str = ""):
        self.account = account or "000000000000"
        self.region = region or "us-east-1"
        self._values: dict[str, dict[str, str]] = {}
        self._refs: dict[str, SecretRef] = {}

    def generate(self, spec: SecretSpec) -> SecretRef:
        if spec.name in self._refs:
            return self._refs[spec.name]

        alphabet = _alphabet(spec)
        value = dict(spec.fields)
        value[spec.generate_key] = "".join(secrets.choice(alphabet) for _ in range(spec.length))

        suffix = "".join(secrets.choice(string.ascii_letters) for _ in range(6))
        ref = SecretRef(
            name=spec.name,
            arn=f"arn:aws:secretsmanager:{self.region}:{self.account}:secret:{spec.name}-{suffix}",
        )
        self._values[spec.name] = value
        self._refs[spec.name] = ref
        return ref

    def get(self, ref: SecretRef) -> dict[str, str] | None:
        stored = self._refs.get(ref.name)
        if stored is None or stored.arn != ref.arn:
            return None
        return dict(self._values[ref.name])

    def names(self) -> list[str]:
        return sorted(self._refs)
