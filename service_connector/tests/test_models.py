"""
Unit tests for credential models and configuration defaults.
"""

import pytest

import sys
import os
sys.path.append(os.path.join(os.path.dirname(__file__), '..', '..'))

from service_connector.app.credentials.models import (
    CachedCredential,
    CacheStats,
    CredentialDescriptor,
    ExchangeFlow,
)
from shared.config import get_config
from shared.errors import ConfigurationError


class TestCredentialDescriptor:
    """Descriptor validation."""

    def test_trailing_slash_is_stripped(self):
        descriptor = CredentialDescriptor("C1", "u@org", "https://x.example.com/", refresh_token="R1")

        assert descriptor.instance_url == "https://x.example.com"
        assert descriptor.token_url == "https://x.example.com/services/oauth2/token"

    @pytest.mark.parametrize("field, value", [("client_id", ""), ("username", "  "), ("client_id", None)])
    def test_required_identity_fields(self, field, value):
        kwargs = {"client_id": "C1", "username": "u@org", "instance_url": "https://x.example.com", "refresh_token": "R1"}
        kwargs[field] = value

        with pytest.raises(ConfigurationError):
            CredentialDescriptor(**kwargs)

    def test_requires_a_secret(self):
        with pytest.raises(ConfigurationError):
            CredentialDescriptor("C1", "u@org", "https://x.example.com")

    def test_instance_url_must_be_https(self):
        with pytest.raises(ConfigurationError):
            CredentialDescriptor("C1", "u@org", "http://x.example.com", refresh_token="R1")

    def test_flow_selection(self):
        assert CredentialDescriptor("C1", "u", "https://x.example.com", private_key="k").flow is ExchangeFlow.ASSERTION
        assert CredentialDescriptor("C1", "u", "https://x.example.com", refresh_token="r").flow is ExchangeFlow.REFRESH

    def test_repr_hides_secrets(self):
        descriptor = CredentialDescriptor("C1", "u@org", "https://x.example.com", refresh_token="R-secret", client_secret="S-secret")

        assert "R-secret" not in repr(descriptor)
        assert "S-secret" not in repr(descriptor)


class TestCachedCredential:
    """Validity boundary checks."""

    def test_is_valid_before_boundary_only(self):
        cached = CachedCredential("T1", "https://x.example.com", "jwt_abc", created_at=0.0, expires_at=150.0)

        assert cached.is_valid(149.9)
        assert not cached.is_valid(150.0)
        assert "T1" not in repr(cached)

    def test_stats_to_dict(self):
        assert CacheStats(3, 2, 1).to_dict() == {"total": 3, "valid": 2, "expired": 1}


class TestConnectorConfig:
    """Configuration defaults and overrides."""

    def test_defaults(self, monkeypatch):
        for name in ("CONNECTOR_API_VERSION", "CONNECTOR_SAFETY_BUFFER_SECONDS", "USE_AWS_SECRETS"):
            monkeypatch.delenv(name, raising=False)

        config = get_config()

        assert config.api_version == "58.0"
        assert config.assertion_lifetime_seconds == 180
        assert config.refresh_lifetime_seconds == 7200
        assert config.safety_buffer_seconds == 30
        assert config.use_aws_secrets is False

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("CONNECTOR_SAFETY_BUFFER_SECONDS", "45")
        monkeypatch.setenv("USE_AWS_SECRETS", "true")

        config = get_config()

        assert config.safety_buffer_seconds == 45
        assert config.use_aws_secrets is True
