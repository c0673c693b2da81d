"""
Patch Service package for the Hercules patch distribution layer.

Clients ask which patches are newer than their installed build; a publisher
registers new builds. It provides:

- app.main: API surface for lookups, publishing, stats and health.
- app.versioning: Client version string parsing and per-platform ordering.
- app.catalog: Append-only patch catalog (PostgreSQL or in-memory).
- app.cache: Lookup result cache (in-memory or Redis), invalidated on publish.
- app.services: Lookup and publish orchestration.

Guidelines:
- The catalog is the source of truth; the cache is disposable derived state.
- Version comparison is always numeric on (major, minor, patch).
- Nothing is written unless the publisher is authorized and the payload valid.
"""
