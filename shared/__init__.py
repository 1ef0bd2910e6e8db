"""
Shared utilities for the Salesforce connector.

This package aggregates common building blocks consumed by the service:

- config: Connector configuration via pydantic-settings
- logging: Structured logging with trace correlation
- metrics: Prometheus metrics for the credential cache
- errors: Canonical error types and responses
- secrets_manager: JSON secrets from AWS Secrets Manager

Any cross-service logic should live here to avoid import cycles across
service packages. Do not import from service_* packages into shared/.
"""
