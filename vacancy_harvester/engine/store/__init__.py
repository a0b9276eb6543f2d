"""Store SPI and the MongoDB implementation."""

from .base import ListingStore
from .mongo_store import MongoListingStore

__all__ = ["ListingStore", "MongoListingStore"]
