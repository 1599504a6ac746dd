"""Core domain modules.

- types: quote snapshot, cleanup and aggregation value types
- quotes: record normalization and the underlying-symbol rule
- retention: cleanup window helpers
- persistence: persistence boundary (interfaces)
- storage: PostgreSQL implementation (pool + store)
- market_data: collector and upstream collaborator protocols
- health: health checks
"""
