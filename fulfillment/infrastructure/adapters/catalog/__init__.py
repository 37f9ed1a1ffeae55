from .http_catalog import HttpCatalogService
from .in_memory_catalog import InMemoryCatalogService

__all__ = ["HttpCatalogService", "InMemoryCatalogService"]
