"""
Feature modules live under this package.

Each module owns its models, service functions and blueprint, and reuses the
platform pieces (document store, identity provider, RBAC, audit trail).
"""
