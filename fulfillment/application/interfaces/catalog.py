"""Catalog service port and the product snapshot it returns."""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, List, Optional


@dataclass(frozen=True)
class VariantSnapshot:
    """A sellable size of a product."""
    size: str
    price: Decimal
    stock: int = 0


@dataclass(frozen=True)
class ProductSnapshot:
    """Read-only view of a catalog product at order time."""
    product_id: str
    title: str
    is_active: bool
    variants: List[VariantSnapshot] = field(default_factory=list)
    packaging_options: List[str] = field(default_factory=list)

    def find_variant(self, size: str) -> Optional[VariantSnapshot]:
        for variant in self.variants:
            if variant.size == size:
                return variant
        return None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ProductSnapshot":
        return cls(
            product_id=str(data.get("id") or data.get("product_id")),
            title=data.get("title", ""),
            is_active=bool(data.get("is_active", False)),
            variants=[
                VariantSnapshot(
                    size=str(variant["size"]),
                    price=Decimal(str(variant["price"])),
                    stock=int(variant.get("stock", 0)),
                )
                for variant in data.get("variants", [])
            ],
            packaging_options=[str(option) for option in data.get("packaging_options", [])],
        )


class ICatalogService(ABC):
    """
    Interface for the product catalog.

    The catalog is owned elsewhere; this service only reads it.
    """

    @abstractmethod
    async def get_product(self, product_id: str) -> Optional[ProductSnapshot]:
        """
        Fetch a product snapshot.

        Args:
            product_id: Catalog product identifier

        Returns:
            ProductSnapshot, or None if the product does not exist
        """
        pass
