"""Repository interface for return requests."""

from abc import ABC, abstractmethod
from typing import List, Optional

from ..entities.return_request import ReturnRequest
from ..enums import ReturnStatus


class ReturnRepository(ABC):

    @abstractmethod
    async def add(self, request: ReturnRequest) -> ReturnRequest:
        pass

    @abstractmethod
    async def find_by_id(self, order_number: str, return_id: int) -> Optional[ReturnRequest]:
        pass

    @abstractmethod
    async def find_by_order(self, order_number: str) -> List[ReturnRequest]:
        """Returns of one order, oldest first."""
        pass

    @abstractmethod
    async def save_decision(self, request: ReturnRequest, expected: ReturnStatus) -> bool:
        """Write the request's status and decision fields if it is still `expected`."""
        pass
