"""
Feature modules live under this package.

Keep module boundaries clean: each module owns its routes, models and
services, while reusing platform primitives (storage, audit, config).
"""
