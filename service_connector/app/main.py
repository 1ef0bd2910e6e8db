"""
Lambda entry point for the Salesforce connector.
"""

import asyncio
import json
from typing import Any, Dict, Optional

from shared.config import get_config
from shared.errors import AcquisitionError, ConnectorException, RemoteApiError
from shared.logging import (
    clear_context,
    configure_logging,
    get_logger,
    set_invocation_id,
    set_org_context,
)

from .adapters.salesforce_client import SalesforceClient
from .credentials.cache import CredentialCache, get_credential_cache
from .credentials.loader import DescriptorLoader
from .credentials.models import ExchangeFlow

DEFAULT_QUERY = "SELECT Id, Name FROM Account LIMIT 10"

AUTH_METHODS = {
    ExchangeFlow.ASSERTION: "JWT Bearer Token",
    ExchangeFlow.REFRESH: "OAuth2 Refresh Token",
}

logger = get_logger("connector.main")

_loader: Optional[DescriptorLoader] = None


def get_descriptor_loader() -> DescriptorLoader:
    """Process-wide loader bound to the environment configuration."""
    global _loader
    if _loader is None:
        config = get_config()
        configure_logging("connector", config.log_level)
        _loader = DescriptorLoader(config)
    return _loader


def _org_key(event: Dict[str, Any]) -> Optional[str]:
    for section in ("queryStringParameters", "pathParameters"):
        params = event.get(section) or {}
        if params.get("orgKey"):
            return params["orgKey"]
    return None


def _response(status_code: int, body: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "statusCode": status_code,
        "headers": {"Content-Type": "application/json"},
        "body": json.dumps(body),
    }


async def handle_event(
    event: Dict[str, Any],
    cache: CredentialCache,
    loader: DescriptorLoader,
    soql: str = DEFAULT_QUERY,
) -> Dict[str, Any]:
    """Authenticate, run ``soql`` and shape an API Gateway proxy response."""
    org_key = _org_key(event or {})
    set_org_context(org_key)
    auth_method = None

    try:
        cache.invalidate_expired()

        descriptor = loader.load(org_key)
        auth_method = AUTH_METHODS[descriptor.flow]

        connection = await cache.get_connection(descriptor)
        async with connection:
            result = await connection.query(soql)

        stats = cache.stats()
        logger.info("Credential cache stats", **stats.to_dict())

        return _response(200, {
            "success": True,
            "data": (result or {}).get("records", []),
            "cacheStats": stats.to_dict(),
            "authMethod": auth_method,
        })

    except ConnectorException as e:
        status_code = 502 if isinstance(e, (AcquisitionError, RemoteApiError)) else 500
        logger.error("Lambda execution error", code=e.code, error=e.message, status_code=status_code)
        body = e.to_response().model_dump()
        body.update({"success": False, "error": e.message, "authMethod": auth_method})
        return _response(status_code, body)

    except Exception as e:
        logger.exception("Unexpected Lambda execution error", error=str(e))
        return _response(500, {
            "success": False,
            "code": "INTERNAL_ERROR",
            "error": "Unknown error",
            "authMethod": auth_method,
        })


def handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """AWS Lambda handler."""
    loader = get_descriptor_loader()
    set_invocation_id(getattr(context, "aws_request_id", None))
    try:
        return asyncio.run(handle_event(event, get_credential_cache(loader.config), loader))
    finally:
        clear_context()


async def get_connection_for_org(
    org_key: str,
    cache: Optional[CredentialCache] = None,
    loader: Optional[DescriptorLoader] = None,
) -> SalesforceClient:
    """Connection for one of several orgs configured side by side."""
    loader = loader or get_descriptor_loader()
    cache = cache or get_credential_cache(loader.config)
    set_org_context(org_key)
    return await cache.get_connection(loader.load(org_key))
