"""
Token exchange against the Salesforce OAuth token endpoint.
"""

import time
from contextlib import nullcontext
from typing import Any, Callable, Dict, Optional

import httpx
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives.asymmetric import ec, rsa
from cryptography.hazmat.primitives.serialization import load_pem_private_key
from jose import JWTError, jwt

from shared.config import ConnectorConfig
from shared.errors import AcquisitionError, ConfigurationError, SignatureError
from shared.logging import get_logger
from shared.metrics import ConnectorMetrics

from .keys import format_private_key
from .models import AcquiredCredential, CredentialDescriptor, ExchangeFlow, normalize_endpoint

JWT_BEARER_GRANT = "urn:ietf:params:oauth:grant-type:jwt-bearer"
REFRESH_TOKEN_GRANT = "refresh_token"

# Asymmetric algorithms python-jose can sign with, and the key each expects.
_RSA_ALGORITHMS = {"RS256", "RS384", "RS512"}
_EC_CURVES = {
    "ES256": ec.SECP256R1,
    "ES384": ec.SECP384R1,
    "ES512": ec.SECP521R1,
}


def check_signing_key(private_key_pem: str, algorithm: str):
    """Load the key and make sure it fits ``algorithm``.

    Returns the loaded key. Raises SignatureError on an unusable key,
    a symmetric or unknown algorithm, or a key of the wrong family.
    """
    if algorithm not in _RSA_ALGORITHMS and algorithm not in _EC_CURVES:
        raise SignatureError(
            f"Unsupported assertion algorithm '{algorithm}'",
            details={"algorithm": algorithm, "supported": sorted(_RSA_ALGORITHMS | set(_EC_CURVES))},
        )

    try:
        key = load_pem_private_key(private_key_pem.encode(), password=None)
    except (ValueError, TypeError, UnsupportedAlgorithm) as exc:
        raise SignatureError(
            "Private key could not be loaded",
            details={"algorithm": algorithm, "error": str(exc)},
        ) from exc

    if algorithm in _RSA_ALGORITHMS:
        if not isinstance(key, rsa.RSAPrivateKey):
            raise SignatureError(
                f"{algorithm} requires an RSA private key",
                details={"algorithm": algorithm, "key_type": type(key).__name__},
            )
        return key

    expected_curve = _EC_CURVES[algorithm]
    if not isinstance(key, ec.EllipticCurvePrivateKey) or not isinstance(key.curve, expected_curve):
        raise SignatureError(
            f"{algorithm} requires an EC private key on {expected_curve.name}",
            details={"algorithm": algorithm, "key_type": type(key).__name__},
        )
    return key


class CredentialAcquirer:
    """Exchanges a descriptor's secret for a short-lived access token."""

    def __init__(
        self,
        config: ConnectorConfig,
        *,
        http_client: Optional[httpx.AsyncClient] = None,
        clock: Callable[[], float] = time.time,
        metrics: Optional[ConnectorMetrics] = None,
    ) -> None:
        self.config = config
        self.timeout = config.http_timeout_seconds
        self.assertion_lifetime = config.assertion_lifetime_seconds
        self.logger = get_logger("connector.credentials.acquirer")
        self.metrics = metrics
        self._http_client = http_client
        self._clock = clock

    async def acquire(self, descriptor: CredentialDescriptor) -> AcquiredCredential:
        """Run the exchange that matches the descriptor's secret."""
        flow = descriptor.flow
        if flow is ExchangeFlow.ASSERTION:
            form = self.build_assertion_grant(descriptor)
        else:
            form = self.build_refresh_grant(descriptor)

        timer = self.metrics.time_acquisition(flow.value) if self.metrics else nullcontext()
        with timer:
            response = await self._post(descriptor.token_url, form, flow)
            credential = self._parse_response(response, descriptor)

        self.logger.info(
            "Access token acquired",
            flow=flow.value,
            client_id=descriptor.client_id,
            instance_url=credential.instance_url,
            expires_in=credential.expires_in,
        )
        return credential

    def build_assertion(self, descriptor: CredentialDescriptor) -> str:
        """Sign the JWT bearer assertion for ``descriptor``."""
        algorithm = descriptor.algorithm
        key_pem = format_private_key(descriptor.private_key)
        check_signing_key(key_pem, algorithm)

        claims = {
            "iss": descriptor.client_id,
            "sub": descriptor.username,
            "aud": descriptor.audience or descriptor.instance_url,
            "exp": int(self._clock()) + self.assertion_lifetime,
        }

        try:
            return jwt.encode(claims, key_pem, algorithm=algorithm, headers={"alg": algorithm})
        except JWTError as exc:
            raise SignatureError(
                "Assertion signing failed",
                details={"algorithm": algorithm, "error": str(exc)},
            ) from exc

    def build_assertion_grant(self, descriptor: CredentialDescriptor) -> Dict[str, str]:
        return {
            "grant_type": JWT_BEARER_GRANT,
            "assertion": self.build_assertion(descriptor),
        }

    def build_refresh_grant(self, descriptor: CredentialDescriptor) -> Dict[str, str]:
        form = {
            "grant_type": REFRESH_TOKEN_GRANT,
            "client_id": descriptor.client_id,
            "refresh_token": descriptor.refresh_token,
        }
        if descriptor.client_secret:
            form["client_secret"] = descriptor.client_secret
        return form

    async def _post(self, url: str, form: Dict[str, str], flow: ExchangeFlow) -> httpx.Response:
        headers = {"Accept": "application/json"}
        try:
            if self._http_client is not None:
                return await self._http_client.post(url, data=form, headers=headers)

            async with httpx.AsyncClient(timeout=self.timeout) as client:
                return await client.post(url, data=form, headers=headers)

        except httpx.TimeoutException as exc:
            self.logger.error("Token endpoint timeout", flow=flow.value, url=url)
            raise AcquisitionError(
                "Token endpoint timeout",
                details={"url": url, "error": str(exc)},
            ) from exc
        except httpx.RequestError as exc:
            self.logger.error("Token endpoint request error", flow=flow.value, url=url, error=str(exc))
            raise AcquisitionError(
                "Token endpoint unavailable",
                details={"url": url, "error": str(exc)},
            ) from exc

    def _parse_response(self, response: httpx.Response, descriptor: CredentialDescriptor) -> AcquiredCredential:
        flow = descriptor.flow
        body = response.text

        if not response.is_success:
            self.logger.warning(
                "Token exchange rejected",
                flow=flow.value,
                status_code=response.status_code,
                response=body,
            )
            raise AcquisitionError(
                f"{flow.value} token exchange failed: {response.status_code} - {body}",
                status_code=response.status_code,
                body=body,
            )

        try:
            payload = response.json()
        except ValueError as exc:
            raise AcquisitionError(
                "Token endpoint returned a non-JSON body",
                status_code=response.status_code,
                body=body,
            ) from exc

        if not isinstance(payload, dict) or not payload.get("access_token"):
            raise AcquisitionError(
                "Token response is missing access_token",
                status_code=response.status_code,
                body=body,
            )

        try:
            instance_url = normalize_endpoint(payload.get("instance_url") or descriptor.instance_url)
        except ConfigurationError as exc:
            raise AcquisitionError(
                f"Token response carries an unusable instance_url: {exc.message}",
                status_code=response.status_code,
                body=body,
            ) from exc

        return AcquiredCredential(
            access_token=payload["access_token"],
            instance_url=instance_url,
            flow=flow,
            expires_in=_parse_lifetime(payload.get("expires_in")),
            token_type=payload.get("token_type"),
            scope=payload.get("scope"),
            issued_at=payload.get("issued_at"),
        )


def _parse_lifetime(value: Any) -> Optional[int]:
    """Positive integer seconds, or None if the issuer gave nothing usable."""
    if value is None or isinstance(value, bool):
        return None
    try:
        seconds = int(value)
    except (TypeError, ValueError):
        return None
    return seconds if seconds > 0 else None
