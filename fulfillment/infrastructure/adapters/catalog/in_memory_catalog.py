"""
In-memory catalog.

Serves product snapshots from a dict; used in development and tests.
"""
import logging
from typing import Dict, Iterable, Optional

from fulfillment.application.interfaces import ICatalogService, ProductSnapshot

logger = logging.getLogger(__name__)


class InMemoryCatalogService(ICatalogService):

    def __init__(self, products: Optional[Iterable[ProductSnapshot]] = None):
        self._products: Dict[str, ProductSnapshot] = {}
        for product in products or []:
            self.add_product(product)

    def add_product(self, product: ProductSnapshot) -> None:
        self._products[product.product_id] = product

    async def get_product(self, product_id: str) -> Optional[ProductSnapshot]:
        return self._products.get(product_id)
