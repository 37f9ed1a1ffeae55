"""SQLAlchemy implementation of ReturnRepository."""

from typing import List, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from fulfillment.domain.entities.return_request import ReturnRequest
from fulfillment.domain.enums import ReturnStatus
from fulfillment.domain.repositories.return_repository import ReturnRepository

from ..mappers import ReturnMapper
from ..models.return_model import ReturnRequestModel


class SqlAlchemyReturnRepository(ReturnRepository):

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def add(self, request: ReturnRequest) -> ReturnRequest:
        model = ReturnMapper.to_persistence(request)
        self._session.add(model)
        await self._session.flush()
        request.id = model.id
        return request

    async def find_by_id(self, order_number: str, return_id: int) -> Optional[ReturnRequest]:
        result = await self._session.execute(
            select(ReturnRequestModel).where(
                ReturnRequestModel.id == return_id,
                ReturnRequestModel.order_number == order_number,
            )
        )
        model = result.scalar_one_or_none()
        return ReturnMapper.to_domain(model) if model else None

    async def find_by_order(self, order_number: str) -> List[ReturnRequest]:
        result = await self._session.execute(
            select(ReturnRequestModel)
            .where(ReturnRequestModel.order_number == order_number)
            .order_by(ReturnRequestModel.id)
        )
        return [ReturnMapper.to_domain(model) for model in result.scalars().all()]

    async def save_decision(self, request: ReturnRequest, expected: ReturnStatus) -> bool:
        result = await self._session.execute(
            update(ReturnRequestModel)
            .where(
                ReturnRequestModel.id == request.id,
                ReturnRequestModel.status == expected.value,
            )
            .values(**ReturnMapper.decision_values(request))
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1
