"""Repository interface for operator alerts."""

from abc import ABC, abstractmethod
from typing import List, Optional

from ..entities.alert import OperatorAlert


class AlertRepository(ABC):

    @abstractmethod
    async def add(self, alert: OperatorAlert) -> OperatorAlert:
        pass

    @abstractmethod
    async def find_all(self, resolved: Optional[bool] = None, limit: int = 100) -> List[OperatorAlert]:
        """Alerts newest first."""
        pass

    @abstractmethod
    async def resolve(self, alert_id: int) -> bool:
        pass
