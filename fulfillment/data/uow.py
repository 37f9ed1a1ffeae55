"""Unit of Work pattern for atomic transactions."""

from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from fulfillment.domain.value_objects import ExecutionID

from .repositories.alert_repository_impl import SqlAlchemyAlertRepository
from .repositories.coupon_repository_impl import SqlAlchemyCouponRepository
from .repositories.order_repository_impl import SqlAlchemyOrderRepository
from .repositories.return_repository_impl import SqlAlchemyReturnRepository
from .repositories.stock_repository_impl import SqlAlchemyStockRepository
from .repositories.transaction_repository_impl import SqlAlchemyTransactionRepository


class UnitOfWork:
    """
    Unit of Work pattern for atomic transactions.

    Responsibilities:
    1. Manage SQLAlchemy session lifecycle
    2. Propagate ExecutionID across all operations
    3. Atomic commit/rollback of all repository operations
    4. Lazy initialization of repositories

    Nothing is committed implicitly: leaving the context without calling
    `commit()` discards the work.
    """

    def __init__(self, session_factory: async_sessionmaker) -> None:
        """Initialize Unit of Work.

        Args:
            session_factory: SQLAlchemy async session factory
        """
        self._session_factory = session_factory
        self._session: Optional[AsyncSession] = None
        self._execution_id: Optional[ExecutionID] = None

        # Lazy-loaded repositories
        self._order_repository: Optional[SqlAlchemyOrderRepository] = None
        self._stock_repository: Optional[SqlAlchemyStockRepository] = None
        self._transaction_repository: Optional[SqlAlchemyTransactionRepository] = None
        self._coupon_repository: Optional[SqlAlchemyCouponRepository] = None
        self._alert_repository: Optional[SqlAlchemyAlertRepository] = None
        self._return_repository: Optional[SqlAlchemyReturnRepository] = None

    async def __aenter__(self) -> "UnitOfWork":
        """Start transaction scope."""
        self._session = self._session_factory()
        self._execution_id = ExecutionID.generate()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Roll back anything uncommitted and release the session."""
        try:
            await self._session.rollback()
        finally:
            await self._session.close()

    def _require_session(self) -> AsyncSession:
        if self._session is None:
            raise RuntimeError("UnitOfWork not initialized. Use async context manager.")
        return self._session

    @property
    def execution_id(self) -> ExecutionID:
        """Get current execution ID for tracing.

        Returns:
            ExecutionID value object
        """
        if self._execution_id is None:
            raise RuntimeError("UnitOfWork not initialized. Use async context manager.")
        return self._execution_id

    @property
    def orders(self) -> SqlAlchemyOrderRepository:
        """Lazy-load order repository.

        Returns:
            SqlAlchemyOrderRepository instance
        """
        if self._order_repository is None:
            self._order_repository = SqlAlchemyOrderRepository(self._require_session())
        return self._order_repository

    @property
    def stock(self) -> SqlAlchemyStockRepository:
        if self._stock_repository is None:
            self._stock_repository = SqlAlchemyStockRepository(self._require_session())
        return self._stock_repository

    @property
    def transactions(self) -> SqlAlchemyTransactionRepository:
        if self._transaction_repository is None:
            self._transaction_repository = SqlAlchemyTransactionRepository(self._require_session())
        return self._transaction_repository

    @property
    def coupons(self) -> SqlAlchemyCouponRepository:
        if self._coupon_repository is None:
            self._coupon_repository = SqlAlchemyCouponRepository(self._require_session())
        return self._coupon_repository

    @property
    def alerts(self) -> SqlAlchemyAlertRepository:
        if self._alert_repository is None:
            self._alert_repository = SqlAlchemyAlertRepository(self._require_session())
        return self._alert_repository

    @property
    def returns(self) -> SqlAlchemyReturnRepository:
        if self._return_repository is None:
            self._return_repository = SqlAlchemyReturnRepository(self._require_session())
        return self._return_repository

    async def commit(self) -> None:
        """Commit all pending changes."""
        await self._require_session().commit()

    async def rollback(self) -> None:
        """Rollback all pending changes."""
        await self._require_session().rollback()


def create_uow(session_factory: async_sessionmaker) -> UnitOfWork:
    """Create a new Unit of Work instance.

    Args:
        session_factory: SQLAlchemy async session factory

    Returns:
        UnitOfWork instance
    """
    return UnitOfWork(session_factory)
