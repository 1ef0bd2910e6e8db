"""
Adapters package for the connector.

Contains the HTTP client wrapper for the Salesforce REST API. Adapters
attach credentials and map non-success responses to shared errors; they
never acquire tokens themselves.
"""

from .salesforce_client import SalesforceClient, RemoteClientFactory

__all__ = [
    "SalesforceClient",
    "RemoteClientFactory",
]
