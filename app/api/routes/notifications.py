"""Disparo de recordatorios por Telegram y WhatsApp."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from app.api.deps import get_cases_repository
from app.core.config import settings
from app.core.logging import get_logger, log_event
from app.repositories.cases import CasesRepository, CasesRepositoryError
from app.services import notifications

router = APIRouter(prefix="/notifications", tags=["notifications"])

logger = get_logger(__name__)


class WhatsAppTriggerPayload(BaseModel):
    """Cuerpo opcional para la Lambda de WhatsApp."""

    message: str | None = Field(default=None, description="Texto libre para la Lambda.")


def _now() -> datetime:
    return datetime.now(timezone.utc)


@router.post("/telegram", summary="Recordatorios de las sesiones de hoy")
async def send_telegram_reminders(
    repo: CasesRepository = Depends(get_cases_repository),
) -> dict[str, Any]:
    """Busca las sesiones de hoy y avisa a cada parte por Telegram.

    Un envío fallido no corta el lote; queda contado en `notificationsFailed`.
    """
    start, end = notifications.day_window(_now())
    try:
        rows = await repo.fetch_cases_between(start=start, end=end)
    except CasesRepositoryError as exc:
        logger.error("notifications.fetch_failed", extra={"error": str(exc)})
        raise HTTPException(status_code=502, detail="Error al consultar Supabase") from exc

    if not rows:
        log_event(logger, "notifications.no_sessions", day=start.date().isoformat())
        return {
            "success": True,
            "message": "No hay sesiones agendadas para hoy",
            "casesCount": 0,
            "notificationsSent": 0,
            "notificationsFailed": 0,
            "results": [],
        }

    results = await notifications.send_session_reminders(rows)
    sent = sum(1 for result in results if result.sent)
    return {
        "success": True,
        "message": f"Se enviaron {sent} de {len(results)} recordatorios",
        "casesCount": len(rows),
        "notificationsSent": sent,
        "notificationsFailed": len(results) - sent,
        "results": [result.as_payload() for result in results],
    }


@router.post("/whatsapp", summary="Disparar la Lambda de WhatsApp")
async def trigger_whatsapp(payload: WhatsAppTriggerPayload | None = None) -> dict[str, Any]:
    if not settings.whatsapp_lambda_url:
        raise HTTPException(status_code=500, detail="WHATSAPP_LAMBDA_URL no está configurada")
    try:
        status = await notifications.trigger_whatsapp_lambda(payload.message if payload else None)
    except notifications.NotificationError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc
    return {"success": True, "status": status}
