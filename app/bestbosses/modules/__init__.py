"""
Feature modules live under this package.

Keep module boundaries clean: each module owns its models, service and routes,
while reusing platform primitives (auth, admin check, audit, DB session).
Service imports run one way: profiles <- notifications <- nominations <- directory.
"""
