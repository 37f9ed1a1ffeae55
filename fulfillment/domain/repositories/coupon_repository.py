"""Repository interface for coupons."""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Optional

from ..entities.coupon import Coupon


class CouponRepository(ABC):
    """Coupon persistence with an atomic redemption counter."""

    @abstractmethod
    async def add(self, coupon: Coupon) -> Coupon:
        pass

    @abstractmethod
    async def find_by_code(self, code: str) -> Optional[Coupon]:
        pass

    @abstractmethod
    async def find_all(self, active_only: bool = False) -> List[Coupon]:
        pass

    @abstractmethod
    async def update_terms(self, coupon: Coupon, expected_used_count: int) -> bool:
        """Write terms and the active flag unless a redemption happened meanwhile.

        Returns:
            False if used_count no longer equals `expected_used_count`
        """
        pass

    @abstractmethod
    async def redeem(self, code: str, now: datetime) -> bool:
        """Increment used_count if the coupon is still usable.

        Deactivates the coupon in the same statement when the cap is reached.

        Returns:
            True if the redemption applied
        """
        pass
