"""
Data contracts for upstream catalog responses.

Pydantic models validating raw IGDB records before they
reach the sync engine.
"""

from checkpoint_catalog.ingestion.contracts.igdb import (
    AgeRatingRef,
    IGDBGame,
    ImageRef,
    InvolvedCompany,
    NamedRef,
    TokenResponse,
    VideoRef,
)

__all__ = [
    "AgeRatingRef",
    "IGDBGame",
    "ImageRef",
    "InvolvedCompany",
    "NamedRef",
    "TokenResponse",
    "VideoRef",
]
