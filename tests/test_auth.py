"""
Tests for Vault authentication methods and auto-detection.
"""

from unittest.mock import patch

import pytest

from vaultref import (
    AppRoleAuthMethod,
    ArgumentError,
    AzureCredentialAuthMethod,
    ConfigurationError,
    EnvironmentProbe,
    KubernetesAuthMethod,
    ResolverOptions,
    TokenAuthMethod,
    select_auth_method,
)


@pytest.fixture
def k8s_token_file(tmp_path):
    token_file = tmp_path / "token"
    token_file.write_text("eyJhbGciOi.jwt.token\n")
    return token_file


class TestEnvironmentProbe:
    def test_blank_values_read_as_unset(self):
        probe = EnvironmentProbe({"A": "value", "B": "  ", "C": ""})
        assert probe.get("A") == "value"
        assert probe.get("B") is None
        assert probe.get("C") is None
        assert probe.get("MISSING") is None

    def test_read_file(self, k8s_token_file, tmp_path):
        probe = EnvironmentProbe({})
        assert probe.read_file(k8s_token_file) == "eyJhbGciOi.jwt.token"
        assert probe.read_file(tmp_path / "missing") is None

    def test_read_file_not_utf8(self, tmp_path):
        token_file = tmp_path / "token"
        token_file.write_bytes(b"\xff\xfe\xfa")
        assert EnvironmentProbe({}).read_file(token_file) is None


class TestAuthMethods:
    """Test construction and validation of the three strategies."""

    @pytest.mark.parametrize("token", ["", "   "])
    def test_blank_token_rejected(self, token):
        with pytest.raises(ArgumentError):
            TokenAuthMethod(token)

    def test_blank_approle_inputs_rejected(self):
        with pytest.raises(ArgumentError):
            AppRoleAuthMethod("", "secret")
        with pytest.raises(ArgumentError):
            AppRoleAuthMethod("role", " ")

    def test_blank_kubernetes_inputs_rejected(self):
        with pytest.raises(ArgumentError):
            KubernetesAuthMethod("", "jwt")
        with pytest.raises(ArgumentError):
            KubernetesAuthMethod("role", "")

    def test_token_from_environment(self):
        method = TokenAuthMethod.from_environment(EnvironmentProbe({"VAULT_TOKEN": "s.abc"}))
        assert method.token == "s.abc"
        assert method.auth_descriptor().credentials == {"token": "s.abc"}

    def test_token_from_environment_missing(self):
        with pytest.raises(ConfigurationError, match="VAULT_TOKEN"):
            TokenAuthMethod.from_environment(EnvironmentProbe({}))

    def test_approle_from_environment_missing_secret_id(self):
        with pytest.raises(ConfigurationError, match="VAULT_SECRET_ID"):
            AppRoleAuthMethod.from_environment(EnvironmentProbe({"VAULT_ROLE_ID": "role"}))

    def test_approle_descriptor(self):
        descriptor = AppRoleAuthMethod("role", "secret", mount_point="custom").auth_descriptor()
        assert descriptor.method == "approle"
        assert descriptor.mount_point == "custom"
        assert descriptor.credentials == {"role_id": "role", "secret_id": "secret"}

    def test_credentials_hidden_from_repr(self):
        method = TokenAuthMethod("s.very-secret")
        assert "s.very-secret" not in repr(method)
        assert "s.very-secret" not in repr(method.auth_descriptor())

    def test_kubernetes_from_file(self, k8s_token_file):
        method = KubernetesAuthMethod.from_file("my-app", k8s_token_file)
        assert method.jwt == "eyJhbGciOi.jwt.token"
        assert method.auth_descriptor().credentials == {
            "role": "my-app",
            "jwt": "eyJhbGciOi.jwt.token",
        }

    def test_kubernetes_from_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            KubernetesAuthMethod.from_file("my-app", tmp_path / "missing")

    def test_is_running_in_kubernetes(self, k8s_token_file, tmp_path):
        assert KubernetesAuthMethod.is_running_in_kubernetes(k8s_token_file)
        assert not KubernetesAuthMethod.is_running_in_kubernetes(tmp_path / "missing")

    def test_azure_credential_descriptor(self):
        credential = object()
        method = AzureCredentialAuthMethod(credential)
        assert method.name == "azure"
        assert method.auth_descriptor().credentials == {"credential": credential}
        assert "credential" not in repr(method)

    def test_azure_default_credential(self):
        with patch("vaultref.auth.DefaultAzureCredential") as mock_credential:
            method = AzureCredentialAuthMethod.default()
        mock_credential.assert_called_once_with()
        assert method.credential is mock_credential.return_value


class TestSelectAuthMethod:
    """Test the auto-detection priority order."""

    FULL_ENV = {
        "VAULT_TOKEN": "s.env-token",
        "VAULT_ROLE_ID": "role",
        "VAULT_SECRET_ID": "secret",
    }

    def test_explicit_option_wins(self, k8s_token_file):
        explicit = AppRoleAuthMethod("explicit-role", "explicit-secret")
        options = ResolverOptions(
            auth_method=explicit,
            kubernetes_role="my-app",
            kubernetes_token_path=str(k8s_token_file),
        )
        assert select_auth_method(options, EnvironmentProbe(self.FULL_ENV)) is explicit

    def test_token_before_approle(self):
        method = select_auth_method(ResolverOptions(), EnvironmentProbe(self.FULL_ENV))
        assert isinstance(method, TokenAuthMethod)
        assert method.token == "s.env-token"

    def test_approle_when_no_token(self):
        env = {"VAULT_ROLE_ID": "role", "VAULT_SECRET_ID": "secret"}
        method = select_auth_method(ResolverOptions(), EnvironmentProbe(env))
        assert isinstance(method, AppRoleAuthMethod)

    def test_blank_token_falls_through(self):
        env = {"VAULT_TOKEN": " ", "VAULT_ROLE_ID": "role", "VAULT_SECRET_ID": "secret"}
        method = select_auth_method(ResolverOptions(), EnvironmentProbe(env))
        assert isinstance(method, AppRoleAuthMethod)

    def test_partial_approle_falls_through_to_kubernetes(self, k8s_token_file):
        options = ResolverOptions(
            kubernetes_role="my-app", kubernetes_token_path=str(k8s_token_file)
        )
        method = select_auth_method(options, EnvironmentProbe({"VAULT_ROLE_ID": "role"}))
        assert isinstance(method, KubernetesAuthMethod)
        assert method.role_name == "my-app"

    def test_kubernetes_requires_token_file(self, tmp_path):
        options = ResolverOptions(
            kubernetes_role="my-app", kubernetes_token_path=str(tmp_path / "missing")
        )
        with pytest.raises(ConfigurationError, match="No authentication method"):
            select_auth_method(options, EnvironmentProbe({}))

    def test_kubernetes_requires_role(self, k8s_token_file):
        options = ResolverOptions(kubernetes_token_path=str(k8s_token_file))
        with pytest.raises(ConfigurationError):
            select_auth_method(options, EnvironmentProbe({}))

    def test_undecodable_token_file_is_not_usable(self, tmp_path):
        token_file = tmp_path / "token"
        token_file.write_bytes(b"\xff\xfe\xfa")
        options = ResolverOptions(kubernetes_role="my-app", kubernetes_token_path=str(token_file))
        with pytest.raises(ConfigurationError, match="No authentication method"):
            select_auth_method(options, EnvironmentProbe({}))
