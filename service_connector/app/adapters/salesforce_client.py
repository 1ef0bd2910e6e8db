"""
Salesforce REST client wrapping an acquired access token.
"""

from typing import Any, Dict, Optional

import httpx

from shared.errors import ConfigurationError, RemoteApiError
from shared.logging import get_logger

from ..credentials.models import normalize_endpoint

DEFAULT_API_VERSION = "58.0"


class SalesforceClient:
    """Authenticated client for one org's REST API."""

    def __init__(
        self,
        instance_url: str,
        access_token: str,
        api_version: str = DEFAULT_API_VERSION,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.instance_url = instance_url
        self.api_version = api_version
        self.base_url = f"{instance_url}/services/data/v{api_version}"
        self.logger = get_logger("connector.adapters.salesforce")
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            headers={
                "Authorization": f"Bearer {access_token}",
                "Accept": "application/json",
            },
            timeout=timeout,
            transport=transport,
        )

    async def __aenter__(self) -> "SalesforceClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

    async def request(self, method: str, path: str, **kwargs) -> Any:
        """Issue an authenticated call relative to the versioned data API."""
        response = await self._client.request(method, path, **kwargs)

        if not response.is_success:
            self.logger.warning(
                "Salesforce API error",
                method=method,
                path=path,
                status_code=response.status_code,
                response=response.text,
            )
            raise RemoteApiError(response.status_code, response.text)

        if response.status_code == 204 or not response.content:
            return None
        return response.json()

    async def query(self, soql: str) -> Dict[str, Any]:
        """Run a SOQL query and return the raw result envelope."""
        return await self.request("GET", "/query", params={"q": soql})

    async def get_record(self, sobject: str, record_id: str) -> Dict[str, Any]:
        return await self.request("GET", f"/sobjects/{sobject}/{record_id}")


class RemoteClientFactory:
    """Builds SalesforceClient instances from an endpoint and access token."""

    def __init__(
        self,
        api_version: str = DEFAULT_API_VERSION,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_version = api_version
        self.timeout = timeout
        self.transport = transport

    def wrap(self, endpoint: Optional[str], access_token: str) -> SalesforceClient:
        instance_url = normalize_endpoint(endpoint, field_name="endpoint")
        if not access_token:
            raise ConfigurationError("Access token is required", details={"field": "access_token"})

        return SalesforceClient(
            instance_url,
            access_token,
            api_version=self.api_version,
            timeout=self.timeout,
            transport=self.transport,
        )
