"""SQLAlchemy implementation of TransactionRepository."""

from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from fulfillment.domain.entities.transaction import Transaction
from fulfillment.domain.enums import TransactionStatus
from fulfillment.domain.repositories.transaction_repository import TransactionRepository
from fulfillment.infrastructure.security import lookup_hash

from ..mappers import TransactionMapper, as_utc
from ..models.transaction_model import TransactionModel
from .order_repository_impl import HALF_CENT


class SqlAlchemyTransactionRepository(TransactionRepository):
    """
    Transaction log backed by the `transactions` table.

    Gateway identifiers are never compared in plaintext in SQL; lookups go
    through the keyed hash column.
    """

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def add(self, transaction: Transaction) -> Transaction:
        gateway_id_hash = (
            lookup_hash(transaction.gateway_transaction_id)
            if transaction.gateway_transaction_id
            else None
        )
        model = TransactionMapper.to_persistence(transaction, gateway_id_hash)
        self._session.add(model)
        await self._session.flush()

        transaction.id = model.id
        transaction.created_at = as_utc(model.created_at)
        transaction.updated_at = as_utc(model.updated_at)
        return transaction

    async def _one(self, statement) -> Optional[Transaction]:
        result = await self._session.execute(statement.execution_options(populate_existing=True))
        model = result.scalar_one_or_none()
        return TransactionMapper.to_domain(model) if model else None

    async def find_by_id(self, transaction_id: int) -> Optional[Transaction]:
        return await self._one(select(TransactionModel).where(TransactionModel.id == transaction_id))

    async def find_by_gateway_id(self, gateway_transaction_id: str) -> Optional[Transaction]:
        if not gateway_transaction_id:
            return None
        return await self._one(
            select(TransactionModel).where(
                TransactionModel.gateway_id_hash == lookup_hash(gateway_transaction_id)
            )
        )

    async def find_by_order(
        self, order_number: str, status: Optional[TransactionStatus] = None
    ) -> List[Transaction]:
        statement = select(TransactionModel).where(TransactionModel.order_number == order_number)
        if status is not None:
            statement = statement.where(TransactionModel.status == status.value)
        result = await self._session.execute(
            statement.order_by(TransactionModel.id).execution_options(populate_existing=True)
        )
        return [TransactionMapper.to_domain(model) for model in result.scalars().all()]

    async def attach_gateway_id(
        self,
        transaction_id: int,
        gateway: str,
        gateway_transaction_id: str,
        receipt_url: Optional[str],
        metadata: Dict[str, Any],
    ) -> bool:
        result = await self._session.execute(
            update(TransactionModel)
            .where(
                TransactionModel.id == transaction_id,
                TransactionModel.gateway_id_hash.is_(None),
            )
            .values(
                gateway=gateway,
                gateway_transaction_id=gateway_transaction_id,
                gateway_id_hash=lookup_hash(gateway_transaction_id),
                receipt_url=receipt_url,
                gateway_metadata=dict(metadata),
                updated_at=datetime.now(timezone.utc),
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def transition_status(
        self,
        transaction_id: int,
        target: TransactionStatus,
        sources: Iterable[TransactionStatus],
    ) -> bool:
        source_values = [TransactionStatus(source).value for source in sources]
        if not source_values:
            return False
        result = await self._session.execute(
            update(TransactionModel)
            .where(
                TransactionModel.id == transaction_id,
                TransactionModel.status.in_(source_values),
            )
            .values(status=target.value, updated_at=datetime.now(timezone.utc))
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def add_refund(self, transaction_id: int, amount: Decimal) -> bool:
        result = await self._session.execute(
            update(TransactionModel)
            .where(
                TransactionModel.id == transaction_id,
                TransactionModel.refunded_amount + amount <= TransactionModel.amount + HALF_CENT,
            )
            .values(
                refunded_amount=TransactionModel.refunded_amount + amount,
                updated_at=datetime.now(timezone.utc),
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def total_refunded(self, order_number: str) -> Decimal:
        result = await self._session.execute(
            select(func.coalesce(func.sum(TransactionModel.refunded_amount), 0)).where(
                TransactionModel.order_number == order_number
            )
        )
        return Decimal(str(result.scalar_one())).quantize(Decimal("0.01"))
