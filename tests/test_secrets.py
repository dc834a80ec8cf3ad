"""Tests for the local secret manager."""

from __future__ import annotations

import string

import pytest

from deploygraph.resources import SecretSpec
from deploygraph.secrets import LocalSecretManager, SecretRef


def test_generate_returns_reference_only() -> None:
    manager = LocalSecretManager(account="123456789012", region="eu-west-1")
    ref = manager.generate(SecretSpec(name="/n8n-stg/postgres-admin", fields={"username": "postgres"}))

    assert isinstance(ref, SecretRef)
    assert ref.name == "/n8n-stg/postgres-admin"
    assert ref.arn.startswith("arn:aws:secretsmanager:eu-west-1:123456789012:secret:/n8n-stg/postgres-admin-")
    assert "password" not in repr(ref)


def test_generation_is_idempotent_by_name() -> None:
    manager = LocalSecretManager()
    first = manager.generate(SecretSpec(name="s"))
    second = manager.generate(SecretSpec(name="s", length=40))
    assert first == second
    assert manager.names() == ["s"]


def test_length_and_exclusions() -> None:
    manager = LocalSecretManager()
    spec = SecretSpec(name="s", length=64, exclude_characters="abc", exclude_uppercase=True)
    value = manager.get(manager.generate(spec))["password"]

    assert len(value) == 64
    assert not set(value) & set("abc")
    assert not set(value) & set(string.ascii_uppercase)
    assert not set(value) & set(string.punctuation)


def test_custom_generate_key_and_punctuation() -> None:
    manager = LocalSecretManager()
    spec = SecretSpec(name="k", generate_key="ENCRYPTION_KEY", length=32, exclude_characters="'\"\\", exclude_punctuation=False)
    stored = manager.get(manager.generate(spec))

    assert set(stored) == {"ENCRYPTION_KEY"}
    assert not set(stored["ENCRYPTION_KEY"]) & set("'\"\\")


def test_unknown_reference() -> None:
    manager = LocalSecretManager()
    ref = manager.generate(SecretSpec(name="s"))
    assert manager.get(SecretRef("s", ref.arn + "x")) is None
    assert manager.get(SecretRef("other", ref.arn)) is None


def test_exclusions_leaving_no_alphabet() -> None:
    spec = SecretSpec(
        name="s",
        exclude_uppercase=True,
        exclude_characters=string.ascii_lowercase + string.digits,
    )
    with pytest.raises(ValueError):
        LocalSecretManager().generate(spec)
