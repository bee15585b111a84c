"""
Feature modules live under this package.

Keep module boundaries clean: each module owns its models, schemas, service
and blueprint, while reusing platform primitives (auth, RBAC, audit, storage,
counters, DB session).
"""
