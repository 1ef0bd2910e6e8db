"""
Credential data models for the Salesforce connector.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

import httpx

from shared.errors import ConfigurationError


class ExchangeFlow(str, Enum):
    """How a descriptor authenticates against the token endpoint."""
    ASSERTION = "jwt"
    REFRESH = "refresh"


def normalize_endpoint(url: Optional[str], field_name: str = "instance_url") -> str:
    """Validate an absolute https URL and strip any trailing slash."""
    if not isinstance(url, str) or not url.strip():
        raise ConfigurationError(f"{field_name} is required", details={"field": field_name})

    candidate = url.strip().rstrip("/")
    try:
        parsed = httpx.URL(candidate)
    except httpx.InvalidURL as exc:
        raise ConfigurationError(
            f"{field_name} is malformed",
            details={"field": field_name, "error": str(exc)},
        ) from exc

    if parsed.scheme != "https" or not parsed.host:
        raise ConfigurationError(
            f"{field_name} must be an absolute https URL",
            details={"field": field_name, "value": candidate},
        )
    return candidate


@dataclass(frozen=True)
class CredentialDescriptor:
    """Identifies what to authenticate as and with which secret."""

    client_id: str
    username: str
    instance_url: str
    private_key: Optional[str] = field(default=None, repr=False)
    refresh_token: Optional[str] = field(default=None, repr=False)
    client_secret: Optional[str] = field(default=None, repr=False)
    audience: Optional[str] = None
    algorithm: str = "RS256"

    def __post_init__(self):
        for name in ("client_id", "username"):
            value = getattr(self, name)
            if not isinstance(value, str) or not value.strip():
                raise ConfigurationError(f"{name} is required", details={"field": name})

        object.__setattr__(self, "instance_url", normalize_endpoint(self.instance_url))

        if not self.private_key and not self.refresh_token:
            raise ConfigurationError(
                "Descriptor needs either a private key or a refresh token",
                details={"client_id": self.client_id},
            )

    @property
    def flow(self) -> ExchangeFlow:
        """Signing key takes precedence over the refresh token."""
        return ExchangeFlow.ASSERTION if self.private_key else ExchangeFlow.REFRESH

    @property
    def token_url(self) -> str:
        return f"{self.instance_url}/services/oauth2/token"


@dataclass(frozen=True)
class AcquiredCredential:
    """Parsed token endpoint response."""

    access_token: str = field(repr=False)
    instance_url: str
    flow: ExchangeFlow
    expires_in: Optional[int] = None
    token_type: Optional[str] = None
    scope: Optional[str] = None
    issued_at: Optional[str] = None


@dataclass(frozen=True)
class CachedCredential:
    """A credential held by the cache together with its validity boundary."""

    access_token: str = field(repr=False)
    instance_url: str
    cache_key: str
    created_at: float
    expires_at: float

    def is_valid(self, now: float) -> bool:
        return now < self.expires_at


@dataclass(frozen=True)
class CacheStats:
    """Point-in-time cache population."""

    total: int = 0
    valid: int = 0
    expired: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {"total": self.total, "valid": self.valid, "expired": self.expired}
