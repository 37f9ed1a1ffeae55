"""Operator alerts - the escalation channel for work that gave up."""

import json
import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.ext.asyncio import async_sessionmaker

from fulfillment.application.dtos.stock_dto import OperatorAlertDTO
from fulfillment.application.interfaces import INotificationService
from fulfillment.data.uow import create_uow
from fulfillment.domain.entities.alert import OperatorAlert
from orchestration.events import Event

logger = logging.getLogger(__name__)

OPERATOR_ALERT_EVENT = "operator_alert"


class AlertService:
    """
    Records operator alerts and notifies the operator channel.

    Every alert is also logged at error level, so an outage of the alert
    table still leaves a trace.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker,
        notifier: INotificationService,
        operator_recipient: str = "operations",
    ) -> None:
        self._session_factory = session_factory
        self._notifier = notifier
        self._operator_recipient = operator_recipient

    async def raise_alert(
        self, kind: str, order_number: Optional[str], detail: Dict[str, Any]
    ) -> OperatorAlert:
        """Persist an alert and notify the operators.

        Args:
            kind: Short machine-readable reason (e.g. stock_restore_failed)
            order_number: Affected order, if any
            detail: JSON-serializable context

        Returns:
            The stored alert
        """
        safe_detail = json.loads(json.dumps(detail, default=str))
        logger.error(f"OPERATOR ALERT {kind} (order={order_number}): {safe_detail}")

        alert = OperatorAlert(kind=kind, order_number=order_number, detail=safe_detail)
        async with create_uow(self._session_factory) as uow:
            await uow.alerts.add(alert)
            await uow.commit()

        await self._notifier.notify(
            self._operator_recipient,
            OPERATOR_ALERT_EVENT,
            {"alert_id": alert.id, "kind": kind, "order_number": order_number, "detail": safe_detail},
        )
        return alert

    async def on_job_exhausted(self, event: Event) -> None:
        """Job bus handler: escalate a background job that ran out of attempts."""
        payload = event.payload
        await self.raise_alert(
            kind=f"{payload.get('job_name')}_exhausted",
            order_number=payload.get("order_number"),
            detail={
                "attempts": payload.get("attempts"),
                "error": payload.get("error"),
                "job": payload.get("job_payload"),
                "execution_id": event.metadata.execution_id,
            },
        )

    async def list_alerts(self, resolved: Optional[bool] = None, limit: int = 100) -> List[OperatorAlertDTO]:
        async with create_uow(self._session_factory) as uow:
            alerts = await uow.alerts.find_all(resolved=resolved, limit=limit)
        return [OperatorAlertDTO.from_alert(alert) for alert in alerts]

    async def resolve_alert(self, alert_id: int) -> bool:
        async with create_uow(self._session_factory) as uow:
            resolved = await uow.alerts.resolve(alert_id)
            await uow.commit()
        return resolved
