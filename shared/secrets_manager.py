"""
Secrets management for the connector, backed by AWS Secrets Manager.
"""

import json
import threading
from typing import Dict, Any, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from shared.errors import ConfigurationError
from shared.logging import get_logger


class SecretsManager:
    """
    Reads JSON secrets from AWS Secrets Manager.
    """

    def __init__(self, region: str = "us-east-1", client: Optional[Any] = None):
        """
        Initialize the secrets manager.

        Args:
            region: AWS region holding the secrets
            client: Pre-built ``secretsmanager`` client, mainly for tests
        """
        self.region = region
        self.logger = get_logger("shared.secrets_manager")
        self._client = client
        self._client_lock = threading.Lock()

    @property
    def client(self):
        """Lazily create the boto3 client; Lambda reuses it across invocations."""
        with self._client_lock:
            if self._client is None:
                self._client = boto3.client("secretsmanager", region_name=self.region)
            return self._client

    def get_secret_string(self, secret_name: str) -> str:
        """
        Fetch the raw string value of a secret.

        Args:
            secret_name: Secret name or ARN

        Returns:
            The secret string
        """
        try:
            response = self.client.get_secret_value(SecretId=secret_name)
        except ClientError as e:
            error_code = e.response.get("Error", {}).get("Code", "Unknown")
            self.logger.error("Failed to retrieve secret", secret_name=secret_name, error_code=error_code)
            raise ConfigurationError(
                f"Secrets Manager error: {error_code}",
                details={"secret_name": secret_name, "error_code": error_code},
            ) from e
        except BotoCoreError as e:
            self.logger.error("Failed to retrieve secret", secret_name=secret_name, error=str(e))
            raise ConfigurationError(
                f"Secrets Manager error: {e}",
                details={"secret_name": secret_name},
            ) from e

        secret_string = response.get("SecretString")
        if not secret_string:
            raise ConfigurationError("Secret value is empty", details={"secret_name": secret_name})
        return secret_string

    def get_secret_json(self, secret_name: str) -> Dict[str, Any]:
        """
        Fetch a secret and decode it as a JSON object.

        Args:
            secret_name: Secret name or ARN

        Returns:
            Decoded secret fields
        """
        secret_string = self.get_secret_string(secret_name)
        try:
            secret = json.loads(secret_string)
        except ValueError as e:
            raise ConfigurationError(
                "Secret value is not valid JSON",
                details={"secret_name": secret_name},
            ) from e

        if not isinstance(secret, dict):
            raise ConfigurationError(
                "Secret value must be a JSON object",
                details={"secret_name": secret_name},
            )
        return secret


# Global secrets manager instance
_secrets_manager: Optional[SecretsManager] = None


def get_secrets_manager(region: str = "us-east-1") -> SecretsManager:
    """
    Get the global secrets manager instance.

    Returns:
        SecretsManager instance
    """
    global _secrets_manager
    if _secrets_manager is None:
        _secrets_manager = SecretsManager(region)
    return _secrets_manager


def init_secrets_manager(region: str = "us-east-1", client: Optional[Any] = None) -> SecretsManager:
    """
    Initialize the global secrets manager.

    Args:
        region: AWS region holding the secrets
        client: Pre-built ``secretsmanager`` client

    Returns:
        SecretsManager instance
    """
    global _secrets_manager
    _secrets_manager = SecretsManager(region, client)
    return _secrets_manager
