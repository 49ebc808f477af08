"""
Tests for the error hierarchy.
"""

import pytest

from vaultref import (
    ArgumentError,
    ConfigurationError,
    InvalidReferenceError,
    KeyNotFoundError,
    ResolutionFailedError,
    SecretTimeoutError,
    StoreClientError,
    VaultRefError,
)


@pytest.mark.parametrize(
    "error_cls,builtin",
    [
        (ArgumentError, ValueError),
        (InvalidReferenceError, ValueError),
        (KeyNotFoundError, LookupError),
        (SecretTimeoutError, TimeoutError),
    ],
)
def test_errors_derive_from_builtins(error_cls, builtin):
    error = error_cls("message")
    assert isinstance(error, VaultRefError)
    assert isinstance(error, builtin)


def test_configuration_error_is_vaultref_error():
    assert issubclass(ConfigurationError, VaultRefError)


def test_store_client_error_keeps_masked_reference():
    error = StoreClientError("failed", "hashicorp://host/***#***")
    assert error.masked_reference == "hashicorp://host/***#***"


def test_resolution_failed_error_masks_reference():
    error = ResolutionFailedError("failed", "db:password", "hashicorp://host/secret/data/db#pw")
    assert error.config_key == "db:password"
    assert error.reference == "hashicorp://host/secret/data/db#pw"
    assert error.masked_reference == "hashicorp://host/***#***"
