"""
Upstream API clients.

All clients share a common base that maps transport failures and
error responses onto one exception taxonomy.
"""

from checkpoint_catalog.ingestion.extractors.auth import (
    InMemoryTokenCache,
    Token,
    TokenCache,
    TokenProvider,
)
from checkpoint_catalog.ingestion.extractors.base import (
    AuthError,
    BaseAPIClient,
    ExtractionError,
    NotFoundError,
    RateLimitError,
    TransportError,
    ValidationError,
)
from checkpoint_catalog.ingestion.extractors.igdb import CatalogClient

__all__ = [
    # Base classes and errors
    "AuthError",
    "BaseAPIClient",
    "ExtractionError",
    "NotFoundError",
    "RateLimitError",
    "TransportError",
    "ValidationError",
    # Clients
    "CatalogClient",
    "InMemoryTokenCache",
    "Token",
    "TokenCache",
    "TokenProvider",
]
