"""
Salesforce connector service package.

Issues and reuses short-lived Salesforce access tokens from a function
instance that is kept warm across invocations. Key modules include:

- app.main: Lambda entry point and multi-org helper
- app.credentials: Access-token cache, token exchange, descriptor loading
- app.adapters: Authenticated Salesforce REST client
"""
