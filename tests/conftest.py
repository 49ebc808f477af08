"""Shared fixtures for vaultref tests."""

import pytest

from tests.fakes import FakeClientFactory, FakeStoreClient
from vaultref import EnvironmentProbe, ResolverOptions, SecretResolver, TokenAuthMethod


@pytest.fixture
def fake_client():
    return FakeStoreClient({("secret", "app"): {"pw": "s3cr3t", "user": "admin"}})


@pytest.fixture
def client_factory(fake_client):
    return FakeClientFactory(fake_client)


@pytest.fixture
def token_environment():
    return EnvironmentProbe({"VAULT_TOKEN": "s.test-token"})


@pytest.fixture
def make_resolver(client_factory, token_environment):
    """Build a SecretResolver wired to the fake client."""

    def _make(**option_overrides) -> SecretResolver:
        options = ResolverOptions(**option_overrides)
        return SecretResolver(
            options, environment=token_environment, client_factory=client_factory
        )

    return _make


@pytest.fixture
def token_auth():
    return TokenAuthMethod("s.test-token")
