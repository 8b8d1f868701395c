"""Llamadas salientes con el agente de voz de ElevenLabs."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any

import httpx

from app.core.config import settings
from app.core.logging import get_logger, log_event
from app.services.normalization import case_key, integral_case_number

logger = get_logger(__name__)

DEFAULT_CENTER_NAME = "Centro de Mediación"
DEFAULT_LOCATION = "ubicación por confirmar"
DEFAULT_HEARING_DATE = "fecha por confirmar"

_NON_PHONE_CHARS = re.compile(r"[^\d+]")
_PLAIN_NUMBER = re.compile(r"^\d{8,15}$")


class ElevenLabsError(RuntimeError):
    """Errores de configuración o de red hacia ElevenLabs."""


@dataclass(slots=True)
class OutboundCallResult:
    status: int
    body: Any

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300


def normalize_phone_number(phone: str | int | None) -> str | None:
    """Lleva un número chileno a E.164 (+56...) cuando es posible.

    Los números que no calzan con ninguna regla se devuelven limpios pero
    sin prefijo.
    """
    if phone is None or phone == "":
        return None
    cleaned = _NON_PHONE_CHARS.sub("", str(phone).strip())
    if not cleaned:
        return None
    if cleaned.startswith("+"):
        return cleaned
    if cleaned.startswith("56"):
        return f"+{cleaned}"
    if cleaned.startswith("9") and len(cleaned) >= 8:
        return f"+56{cleaned}"
    if _PLAIN_NUMBER.match(cleaned):
        return f"+56{cleaned}"
    return cleaned


def build_center_name(case_row: dict[str, Any]) -> str:
    if settings.center_name:
        return settings.center_name
    parts = [p for p in (case_row.get("centerCommune"), case_row.get("centerRegion")) if p]
    if parts:
        return f"{DEFAULT_CENTER_NAME} {', '.join(parts)}"
    return DEFAULT_CENTER_NAME


def build_hearing_location(case_row: dict[str, Any]) -> str:
    parts = [
        p
        for p in (
            case_row.get("centerAddress"),
            case_row.get("centerCommune"),
            case_row.get("centerRegion"),
        )
        if p
    ]
    return ", ".join(parts) if parts else DEFAULT_LOCATION


def build_dynamic_variables(case_row: dict[str, Any]) -> dict[str, str]:
    """Variables que el agente de voz interpola en su guion."""
    variables = {
        "requested_name": case_row.get("respondentFullName") or "el solicitado",
        "requester_name": case_row.get("applicantFullName") or "el solicitante",
        "center_name": build_center_name(case_row),
        "hearing_date": case_row.get("sessionDate_txt") or DEFAULT_HEARING_DATE,
        "hearing_location": build_hearing_location(case_row),
        "case_id": case_key(case_row.get("caseNuc")),
    }
    if case_row.get("sessionType"):
        variables["session_type"] = str(case_row["sessionType"])
    if case_row.get("matterType"):
        variables["mediation_type"] = str(case_row["matterType"])
    return variables


def build_outbound_payload(case_row: dict[str, Any], to_number: str) -> dict[str, Any]:
    if not settings.elevenlabs_agent_id or not settings.elevenlabs_agent_phone_id:
        raise ElevenLabsError("ELEVENLABS_AGENT_ID y ELEVENLABS_AGENT_PHONE_ID son obligatorios")
    return {
        "agent_id": settings.elevenlabs_agent_id,
        "agent_phone_number_id": settings.elevenlabs_agent_phone_id,
        "to_number": to_number,
        "conversation_initiation_client_data": {
            "dynamic_variables": build_dynamic_variables(case_row),
        },
    }


async def call_outbound(payload: dict[str, Any]) -> OutboundCallResult:
    """Invoca la API de llamadas salientes; los errores HTTP se devuelven, no se lanzan."""
    if not settings.elevenlabs_api_key:
        raise ElevenLabsError("ELEVENLABS_API_KEY no está configurada")
    headers = {"xi-api-key": settings.elevenlabs_api_key, "Content-Type": "application/json"}
    try:
        async with httpx.AsyncClient(timeout=20.0) as client:
            response = await client.post(
                settings.elevenlabs_outbound_url, headers=headers, json=payload
            )
    except httpx.RequestError as exc:
        logger.exception("elevenlabs.request_failed", extra={"error": str(exc)})
        raise ElevenLabsError(f"Error de red al contactar ElevenLabs: {exc}") from exc

    body: Any
    if "application/json" in response.headers.get("content-type", ""):
        try:
            body = response.json()
        except ValueError:
            body = response.text
    else:
        body = response.text

    result = OutboundCallResult(status=response.status_code, body=body)
    if result.ok:
        log_event(logger, "elevenlabs.call_triggered", to_number=payload.get("to_number"))
    else:
        logger.error(
            "elevenlabs.call_failed", extra={"status": result.status, "body": result.body}
        )
    return result


def _last_transcript_message(transcript: Any) -> str | None:
    if not isinstance(transcript, list):
        return None
    entries = [entry for entry in transcript if isinstance(entry, dict)]
    for entry in reversed(entries):
        if entry.get("role") == "agent" and entry.get("message"):
            return entry["message"]
    for entry in reversed(entries):
        if entry.get("message"):
            return entry["message"]
    return None


def build_voice_summary(webhook: dict[str, Any]) -> tuple[dict[str, Any] | None, str | None]:
    """Extrae la fila `voice_summaries` del webhook post-llamada.

    Retorna `(fila, None)` o `(None, motivo)` cuando el webhook no sirve.
    """
    data = webhook.get("data") if isinstance(webhook.get("data"), dict) else webhook
    conversation_id = data.get("conversation_id")
    if not conversation_id:
        return None, "parsing_error"

    client_data = data.get("conversation_initiation_client_data") or {}
    dynamic = client_data.get("dynamic_variables") if isinstance(client_data, dict) else None
    case_id = (dynamic or {}).get("case_id")
    if case_id in (None, ""):
        return None, "missing_case_id"
    case_nuc = integral_case_number(case_id)
    if case_nuc is None:
        return None, "invalid_case_id"

    analysis = data.get("analysis") or {}
    summary = analysis.get("transcript_summary") if isinstance(analysis, dict) else None
    summary = summary.strip() if isinstance(summary, str) and summary.strip() else None

    return {
        "caseNuc": case_nuc,
        "conversation_id": conversation_id,
        "last_message": _last_transcript_message(data.get("transcript")),
        "summary": summary,
        "payload": webhook,
    }, None
