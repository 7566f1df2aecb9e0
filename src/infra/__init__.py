"""Infrastructure layer package.

Implements Port interfaces with concrete adapters (PostgreSQL, Redis,
in-memory). The authz layer MUST NOT import from this package directly;
src/main.py is the only place adapters are instantiated.
"""
