"""
Builds credential descriptors from environment variables or Secrets Manager.
"""

import os
from typing import Any, Dict, Mapping, Optional

from shared.config import ConnectorConfig
from shared.errors import ConfigurationError
from shared.logging import get_logger
from shared.secrets_manager import SecretsManager, get_secrets_manager

from .keys import format_private_key
from .models import CredentialDescriptor

_REQUIRED_ENV = ("CLIENT_ID", "USERNAME", "INSTANCE_URL")

_REQUIRED_SECRET_FIELDS = ("clientId", "username", "instanceUrl")


class DescriptorLoader:
    """Produces a CredentialDescriptor per call; never mutates the environment."""

    def __init__(
        self,
        config: ConnectorConfig,
        environ: Optional[Mapping[str, str]] = None,
        secrets_manager: Optional[SecretsManager] = None,
    ):
        self.config = config
        self.environ = environ if environ is not None else os.environ
        self._secrets_manager = secrets_manager
        self.logger = get_logger("connector.credentials.loader")

    @property
    def secrets_manager(self) -> SecretsManager:
        if self._secrets_manager is None:
            self._secrets_manager = get_secrets_manager(self.config.aws_region)
        return self._secrets_manager

    def load(self, org_key: Optional[str] = None) -> CredentialDescriptor:
        """Pick the configured source and build a descriptor."""
        if self.config.use_aws_secrets:
            self.logger.info("Loading Salesforce configuration", source="aws_secrets_manager")
            secret_name = self._secret_name(org_key)
            return self.from_secrets_manager(secret_name)

        self.logger.info("Loading Salesforce configuration", source="environment")
        return self.from_environment(org_key)

    def from_environment(self, org_key: Optional[str] = None) -> CredentialDescriptor:
        """Read ``SF_*`` variables, suffixed with ``_<ORG>`` when ``org_key`` is given."""
        suffix = f"_{org_key.upper()}" if org_key else ""

        def read(name: str) -> Optional[str]:
            value = self.environ.get(f"SF_{name}{suffix}")
            return value if value else None

        missing = [f"SF_{name}{suffix}" for name in _REQUIRED_ENV if not read(name)]
        private_key = read("PRIVATE_KEY")
        refresh_token = read("REFRESH_TOKEN")
        if not private_key and not refresh_token:
            missing.append(f"SF_PRIVATE_KEY{suffix} or SF_REFRESH_TOKEN{suffix}")

        if missing:
            raise ConfigurationError(
                f"Missing required environment variables: {', '.join(missing)}",
                details={"missing": missing, "org_key": org_key},
            )

        return CredentialDescriptor(
            client_id=read("CLIENT_ID"),
            username=read("USERNAME"),
            instance_url=read("INSTANCE_URL"),
            private_key=format_private_key(private_key) if private_key else None,
            refresh_token=refresh_token,
            client_secret=read("CLIENT_SECRET"),
            audience=read("AUDIENCE"),
            algorithm=read("JWT_ALGORITHM") or "RS256",
        )

    def from_secrets_manager(self, secret_name: str) -> CredentialDescriptor:
        """Read the JSON secret written by the JWT setup tooling."""
        secret = self.secrets_manager.get_secret_json(secret_name)

        missing = [name for name in _REQUIRED_SECRET_FIELDS if not secret.get(name)]
        if not secret.get("privateKey") and not secret.get("refreshToken"):
            missing.append("privateKey or refreshToken")
        if missing:
            raise ConfigurationError(
                f"Secret is missing required fields: {', '.join(missing)}",
                details={"secret_name": secret_name, "missing": missing},
            )

        return self._descriptor_from_secret(secret)

    def _secret_name(self, org_key: Optional[str]) -> str:
        if org_key:
            per_org = self.environ.get(f"SF_SECRET_NAME_{org_key.upper()}")
            if per_org:
                return per_org

        if not self.config.secret_name:
            raise ConfigurationError(
                "SF_SECRET_NAME environment variable is required when using AWS secrets",
                details={"org_key": org_key},
            )
        return self.config.secret_name

    @staticmethod
    def _descriptor_from_secret(secret: Dict[str, Any]) -> CredentialDescriptor:
        return CredentialDescriptor(
            client_id=secret["clientId"],
            username=secret["username"],
            instance_url=secret["instanceUrl"],
            private_key=format_private_key(secret["privateKey"]) if secret.get("privateKey") else None,
            refresh_token=secret.get("refreshToken"),
            client_secret=secret.get("clientSecret"),
            audience=secret.get("audience"),
            algorithm=secret.get("algorithm") or "RS256",
        )
