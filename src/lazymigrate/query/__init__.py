"""
Query services: protocols, federated router and metadata adapters.

The SQLAlchemy adapter lives in ``lazymigrate.query.sql`` and is imported
explicitly, like any database-specific backend.
"""

from lazymigrate.query.federated import FederatedQueryService, merge_preferring_primary
from lazymigrate.query.in_memory import (
    InMemoryMetadataAdapter,
    InMemoryPersister,
    InMemoryQueryService,
)
from lazymigrate.query.interface import Persister, QueryService, model_tag

__all__ = [
    "QueryService",
    "Persister",
    "model_tag",
    "FederatedQueryService",
    "merge_preferring_primary",
    "InMemoryMetadataAdapter",
    "InMemoryQueryService",
    "InMemoryPersister",
]
