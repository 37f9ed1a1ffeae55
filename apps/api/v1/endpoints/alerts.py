"""Operator alert endpoints."""

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from apps.api.deps import get_alert_service
from fulfillment.application.dtos import OperatorAlertDTO
from fulfillment.application.services import AlertService

router = APIRouter(prefix="/alerts", tags=["alerts"])


@router.get("", response_model=List[OperatorAlertDTO])
async def list_alerts(
    resolved: Optional[bool] = Query(None, description="Filter by resolution"),
    limit: int = Query(default=100, ge=1, le=1000),
    alerts: AlertService = Depends(get_alert_service),
) -> List[OperatorAlertDTO]:
    return await alerts.list_alerts(resolved=resolved, limit=limit)


@router.post("/{alert_id}/resolve")
async def resolve_alert(
    alert_id: int,
    alerts: AlertService = Depends(get_alert_service),
) -> dict:
    if not await alerts.resolve_alert(alert_id):
        raise HTTPException(status_code=404, detail=f"Alert {alert_id} not found")
    return {"resolved": True}
