"""
Tests for ResolutionOrchestrator and the module-level helpers.
"""

import logging

import pytest

from vaultref import (
    KeyNotFoundError,
    LayeredConfig,
    MockSecretResolver,
    ResolutionFailedError,
    ResolutionOrchestrator,
    ResolverOptions,
    apply_vault_references,
    find_references,
    resolve_all,
)

REF_A = "hashicorp://vault.example.com/secret/data/app#a"
REF_B = "hashicorp://vault.example.com/secret/data/app#b"
KEYVAULT_REF = "@Microsoft.KeyVault(VaultName=myvault;SecretName=api-key)"


@pytest.fixture
def config():
    return LayeredConfig({"A": REF_A, "B": REF_B, "Plain": "value", "Empty": None})


@pytest.fixture
def resolver():
    return MockSecretResolver({REF_A: "secret-a", REF_B: "secret-b"})


class TestFindReferences:
    def test_only_references_are_returned(self):
        snapshot = {"A": REF_A, "Plain": "value", "Empty": None, "Blank": ""}
        assert find_references(snapshot) == [("A", REF_A)]

    def test_both_families_found(self):
        snapshot = {"A": REF_A, "Api:Key": KEYVAULT_REF, "Plain": "value"}
        assert find_references(snapshot) == [("A", REF_A), ("Api:Key", KEYVAULT_REF)]


class TestResolveAll:
    def test_all_resolved(self, config, resolver):
        overlay = ResolutionOrchestrator(resolver).resolve_all(config.snapshot())
        assert overlay == {"A": "secret-a", "B": "secret-b"}

    def test_failure_aborts_by_default(self, config):
        resolver = MockSecretResolver({REF_B: "secret-b"})
        with pytest.raises(ResolutionFailedError) as exc_info:
            ResolutionOrchestrator(resolver).resolve_all(config.snapshot())

        error = exc_info.value
        assert error.config_key == "A"
        assert error.reference == REF_A
        assert error.masked_reference == "hashicorp://vault.example.com/***#***"
        assert "'A'" in str(error)
        assert "hashicorp://vault.example.com/***#***" in str(error)
        assert isinstance(error.__cause__, KeyNotFoundError)

    def test_failure_skipped_when_not_throwing(self, config, caplog):
        resolver = MockSecretResolver({REF_B: "secret-b"})
        options = ResolverOptions(throw_on_resolve_failure=False)

        with caplog.at_level(logging.WARNING, logger="vaultref.orchestrator"):
            overlay = ResolutionOrchestrator(resolver, options).resolve_all(config.snapshot())

        assert overlay == {"B": "secret-b"}
        assert "'A'" in caplog.text
        assert "secret/data/app" not in caplog.text

    def test_options_default_to_resolver_options(self, config):
        class OptionedResolver(MockSecretResolver):
            options = ResolverOptions(throw_on_resolve_failure=False)

        orchestrator = ResolutionOrchestrator(OptionedResolver())
        assert orchestrator.options.throw_on_resolve_failure is False
        assert orchestrator.resolve_all(config.snapshot()) == {}

    @pytest.mark.asyncio
    async def test_async(self, config, resolver):
        overlay = await ResolutionOrchestrator(resolver).resolve_all_async(config.snapshot())
        assert overlay == {"A": "secret-a", "B": "secret-b"}

    def test_module_function(self, config, resolver):
        assert resolve_all(config.snapshot(), resolver) == {"A": "secret-a", "B": "secret-b"}

    def test_keyvault_reference_masked_in_failure(self):
        with pytest.raises(ResolutionFailedError) as exc_info:
            ResolutionOrchestrator(MockSecretResolver()).resolve_all({"Api:Key": KEYVAULT_REF})

        error = exc_info.value
        assert error.masked_reference == "@Microsoft.KeyVault(VaultName=myvault;SecretName=***)"
        assert "api-key" not in str(error)


class TestApply:
    def test_overlay_becomes_final_layer(self, config, resolver):
        ResolutionOrchestrator(resolver).apply(config)

        assert len(config.layers) == 2
        assert config["A"] == "secret-a"
        assert config["Plain"] == "value"
        assert config.layers[0]["A"] == REF_A

    def test_skipped_key_keeps_raw_reference(self, config):
        resolver = MockSecretResolver({REF_B: "secret-b"})
        options = ResolverOptions(throw_on_resolve_failure=False)

        ResolutionOrchestrator(resolver, options).apply(config)

        assert config["A"] == REF_A
        assert config["B"] == "secret-b"

    def test_abort_leaves_config_untouched(self, config):
        resolver = MockSecretResolver({REF_B: "secret-b"})
        with pytest.raises(ResolutionFailedError):
            ResolutionOrchestrator(resolver).apply(config)
        assert len(config.layers) == 1

    def test_empty_overlay_adds_no_layer(self, resolver, caplog):
        config = LayeredConfig({"Plain": "value"})
        with caplog.at_level(logging.INFO, logger="vaultref.orchestrator"):
            ResolutionOrchestrator(resolver).apply(config)

        assert len(config.layers) == 1
        assert not any("Resolved" in record.getMessage() for record in caplog.records)

    def test_applied_overlay_logs_count(self, config, resolver, caplog):
        with caplog.at_level(logging.INFO, logger="vaultref.orchestrator"):
            ResolutionOrchestrator(resolver).apply(config)

        assert "Resolved 2 vault reference(s)" in caplog.messages

    @pytest.mark.asyncio
    async def test_apply_async(self, config, resolver):
        await ResolutionOrchestrator(resolver).apply_async(config)
        assert config["B"] == "secret-b"

    def test_apply_vault_references(self, config, resolver):
        result = apply_vault_references(config, resolver)
        assert result is config
        assert config["A"] == "secret-a"


class TestTracking:
    def test_summary(self, config):
        resolver = MockSecretResolver({REF_B: "secret-b"})
        orchestrator = ResolutionOrchestrator(
            resolver, ResolverOptions(throw_on_resolve_failure=False)
        )
        orchestrator.resolve_all(config.snapshot())

        summary = orchestrator.get_reference_summary()
        assert summary["total_references"] == 2
        assert summary["successful_references"] == 1
        assert summary["failed_references"] == 1
        assert summary["references"]["A"]["resolved"] is False
        assert summary["references"]["B"] == {
            "reference": "hashicorp://vault.example.com/***#***",
            "resolved": True,
            "error": None,
        }

        failed = orchestrator.get_failed_references()
        assert [ref.key for ref in failed] == ["A"]

    def test_records_never_hold_values(self, config, resolver):
        orchestrator = ResolutionOrchestrator(resolver)
        orchestrator.resolve_all(config.snapshot())
        assert "secret-a" not in repr(orchestrator.get_resolved_references())

    def test_tracking_reset_per_pass(self, config, resolver):
        orchestrator = ResolutionOrchestrator(resolver)
        orchestrator.resolve_all(config.snapshot())
        orchestrator.resolve_all(config.snapshot())
        assert len(orchestrator.get_resolved_references()) == 2
