"""
HTTP Catalog Service Implementation.

Reads product snapshots from the catalog service REST API.
"""
import asyncio
import logging
from typing import Optional

import aiohttp

from fulfillment.application.interfaces import ICatalogService, ProductSnapshot
from fulfillment.domain.errors import CatalogUnavailable
from fulfillment.settings.modules.integrations_settings import CatalogSettings

logger = logging.getLogger(__name__)


class HttpCatalogService(ICatalogService):
    """
    Catalog client over aiohttp.

    Expects `GET {base_url}/products/{id}` to return
    `{id, title, is_active, variants: [{size, price, stock}], packaging_options: []}`.
    """

    def __init__(self, settings: CatalogSettings):
        """
        Initialize catalog client.

        Args:
            settings: Catalog settings with base URL and timeout
        """
        if not settings.base_url:
            raise ValueError("CATALOG_BASE_URL must be set for the HTTP catalog")
        self.base_url = settings.base_url.rstrip("/")
        self.timeout = aiohttp.ClientTimeout(total=settings.timeout_seconds)
        logger.info(f"HttpCatalogService initialized ({self.base_url})")

    async def get_product(self, product_id: str) -> Optional[ProductSnapshot]:
        url = f"{self.base_url}/products/{product_id}"
        try:
            async with aiohttp.ClientSession(timeout=self.timeout) as session:
                async with session.get(url) as response:
                    if response.status == 404:
                        return None
                    if response.status != 200:
                        error_text = await response.text()
                        logger.error(f"Catalog API error: {response.status} - {error_text}")
                        raise CatalogUnavailable(
                            f"Catalog service returned {response.status} for product {product_id}"
                        )
                    data = await response.json()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.error(f"Failed to reach catalog service: {e}", exc_info=True)
            raise CatalogUnavailable("Catalog service is unavailable") from e

        return ProductSnapshot.from_dict(data)
