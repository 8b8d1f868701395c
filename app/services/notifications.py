"""Recordatorios de sesión vía el bot relay de Telegram y la Lambda de WhatsApp."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import datetime, timedelta
from typing import Any
from zoneinfo import ZoneInfo

import httpx

from app.core.config import settings
from app.core.logging import get_logger, log_event
from app.services.normalization import case_key, parse_timestamp

logger = get_logger(__name__)

DEFAULT_RECIPIENT_NAME = "Sin nombre"
DEFAULT_PLACE = "Centro de Mediación"


class NotificationError(RuntimeError):
    """Errores de configuración o transporte al notificar."""


@dataclass(slots=True)
class AppointmentData:
    """Cuerpo que espera el bot relay (`nombre`, `fecha`, `hora`, `lugar`)."""

    nombre: str
    fecha: str
    hora: str
    lugar: str


@dataclass(slots=True)
class NotificationResult:
    case_nuc: str
    recipient: str
    chat_id: str
    sent: bool

    def as_payload(self) -> dict[str, Any]:
        return {
            "caseNuc": self.case_nuc,
            "recipient": self.recipient,
            "chatId": self.chat_id,
            "sent": self.sent,
        }


def format_appointment_data(
    full_name: str | None,
    session_date: str | datetime | None,
    center_address: str | None,
    *,
    tz: str | None = None,
) -> AppointmentData:
    """Formatea la cita como DD/MM/YYYY y HH:MM en la zona horaria del centro."""
    zone = ZoneInfo(tz or settings.timezone)
    moment = parse_timestamp(session_date) or datetime.now(zone)
    local = moment.astimezone(zone)
    return AppointmentData(
        nombre=full_name or DEFAULT_RECIPIENT_NAME,
        fecha=local.strftime("%d/%m/%Y"),
        hora=local.strftime("%H:%M"),
        lugar=center_address or DEFAULT_PLACE,
    )


def day_window(now: datetime | None = None, *, tz: str | None = None) -> tuple[datetime, datetime]:
    """Inicio y fin (exclusivo) del día calendario de `now` en la zona del centro."""
    zone = ZoneInfo(tz or settings.timezone)
    local = (now or datetime.now(zone)).astimezone(zone)
    start = local.replace(hour=0, minute=0, second=0, microsecond=0)
    return start, start + timedelta(days=1)


async def send_telegram_message(chat_id: str, appointment: AppointmentData) -> bool:
    """Envía la cita al relay de Telegram.

    Nunca lanza: cualquier falla se registra y se devuelve `False`.
    """
    if not settings.telegram_api_url:
        logger.error("telegram.not_configured")
        return False

    body = {"chatId": chat_id, "appointmentData": asdict(appointment)}
    try:
        async with httpx.AsyncClient(timeout=10.0) as client:
            response = await client.post(settings.telegram_api_url, json=body)
    except httpx.RequestError as exc:
        logger.exception("telegram.request_failed", extra={"chat_id": chat_id, "error": str(exc)})
        return False

    try:
        data = response.json()
    except ValueError:
        logger.error(
            "telegram.invalid_json",
            extra={"chat_id": chat_id, "status": response.status_code, "body": response.text},
        )
        return False

    if isinstance(data, dict) and data.get("success") is True:
        log_event(logger, "telegram.sent", chat_id=chat_id)
        return True
    logger.error(
        "telegram.rejected",
        extra={"chat_id": chat_id, "status": response.status_code, "body": data},
    )
    return False


def reminder_recipients(case_row: dict[str, Any]) -> list[tuple[str, str]]:
    """Pares (nombre, chat_id) de las partes con número registrado."""
    recipients: list[tuple[str, str]] = []
    for name_key, mobile_key in (
        ("applicantFullName", "applicantMobile"),
        ("respondentFullName", "respondentMobile"),
    ):
        mobile = case_row.get(mobile_key)
        if mobile in (None, ""):
            continue
        recipients.append((case_row.get(name_key) or DEFAULT_RECIPIENT_NAME, str(mobile)))
    return recipients


async def send_session_reminders(case_rows: list[dict[str, Any]]) -> list[NotificationResult]:
    """Envía un recordatorio por Telegram a cada parte de cada caso."""
    results: list[NotificationResult] = []
    for row in case_rows:
        for name, chat_id in reminder_recipients(row):
            appointment = format_appointment_data(
                name, row.get("sessionDate"), row.get("centerAddress")
            )
            sent = await send_telegram_message(chat_id, appointment)
            results.append(
                NotificationResult(
                    case_nuc=case_key(row.get("caseNuc")),
                    recipient=name,
                    chat_id=chat_id,
                    sent=sent,
                )
            )
    log_event(
        logger,
        "notifications.batch_completed",
        cases=len(case_rows),
        sent=sum(1 for r in results if r.sent),
        failed=sum(1 for r in results if not r.sent),
    )
    return results


async def trigger_whatsapp_lambda(message: str | None = None) -> int:
    """Dispara la Lambda de WhatsApp y retorna el status HTTP recibido."""
    if not settings.whatsapp_lambda_url:
        raise NotificationError("WHATSAPP_LAMBDA_URL no está configurada")
    try:
        async with httpx.AsyncClient(timeout=15.0) as client:
            response = await client.post(
                settings.whatsapp_lambda_url, json={"mensaje": message or ""}
            )
    except httpx.RequestError as exc:
        logger.exception("whatsapp.lambda_unreachable", extra={"error": str(exc)})
        raise NotificationError(f"Error de red al invocar la Lambda: {exc}") from exc

    if response.status_code >= 400:
        logger.error(
            "whatsapp.lambda_error",
            extra={"status": response.status_code, "body": response.text},
        )
        raise NotificationError(
            f"La Lambda respondió {response.status_code}: {response.text}"
        )
    log_event(logger, "whatsapp.lambda_triggered", status=response.status_code)
    return response.status_code
