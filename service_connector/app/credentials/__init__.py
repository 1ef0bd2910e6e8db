"""
Credential package for the connector.

Holds the process-wide access-token cache, the token exchange against the
Salesforce OAuth endpoint, and the descriptor loader. Tokens live only in
memory; nothing here persists across process restarts.
"""
