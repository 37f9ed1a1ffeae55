"""SQLAlchemy implementation of AlertRepository."""

from typing import List, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from fulfillment.domain.entities.alert import OperatorAlert
from fulfillment.domain.repositories.alert_repository import AlertRepository

from ..mappers import AlertMapper
from ..models.alert_model import OperatorAlertModel


class SqlAlchemyAlertRepository(AlertRepository):

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def add(self, alert: OperatorAlert) -> OperatorAlert:
        model = AlertMapper.to_persistence(alert)
        self._session.add(model)
        await self._session.flush()
        alert.id = model.id
        return alert

    async def find_all(self, resolved: Optional[bool] = None, limit: int = 100) -> List[OperatorAlert]:
        statement = select(OperatorAlertModel)
        if resolved is not None:
            statement = statement.where(OperatorAlertModel.resolved.is_(resolved))
        statement = statement.order_by(OperatorAlertModel.id.desc()).limit(limit)
        result = await self._session.execute(statement)
        return [AlertMapper.to_domain(model) for model in result.scalars().all()]

    async def resolve(self, alert_id: int) -> bool:
        result = await self._session.execute(
            update(OperatorAlertModel)
            .where(OperatorAlertModel.id == alert_id, OperatorAlertModel.resolved.is_(False))
            .values(resolved=True)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1
