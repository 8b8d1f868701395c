"""Herramientas para el agente de voz: llamadas salientes y webhook post-llamada."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from app.api.deps import get_cases_repository
from app.core.logging import get_logger, log_event
from app.repositories.cases import CasesRepository, CasesRepositoryError
from app.services import elevenlabs
from app.services.normalization import case_key, is_valid_case_identifier

router = APIRouter(prefix="/ai-tools", tags=["ai-tools"])

logger = get_logger(__name__)


class OutboundCallPayload(BaseModel):
    """Solicitud de llamada saliente para un caso."""

    case_nuc: str | int | None = Field(default=None, alias="caseNuc")
    override_to_number: str | None = Field(
        default=None,
        alias="overrideToNumber",
        description="Número a usar en lugar del celular del solicitado.",
    )


def _call_failed(status: int, body: Any) -> JSONResponse:
    return JSONResponse(
        status_code=502,
        content={
            "status": "CALL_FAILED",
            "error": "ELEVENLABS_ERROR",
            "details": {"status": status, "body": body},
        },
    )


def _storing_error(reason: str, details: str) -> dict[str, str]:
    logger.error("voice_summary.not_stored", extra={"reason": reason, "details": details})
    return {"status": "error_storing", "reason": reason, "details": details}


@router.post("/outbound-call", summary="Llamada saliente con ElevenLabs")
async def outbound_call(
    payload: OutboundCallPayload,
    repo: CasesRepository = Depends(get_cases_repository),
) -> Any:
    """Llama a la parte solicitada del caso con el agente de voz.

    Respuestas: 200 `CALL_TRIGGERED`, 404 `CASE_NOT_FOUND`, 502 `CALL_FAILED`
    y 500 `INTERNAL_ERROR` cuando falta configuración de ElevenLabs.
    """
    if not is_valid_case_identifier(payload.case_nuc):
        return JSONResponse(status_code=404, content={"error": "CASE_NOT_FOUND"})
    case_nuc = case_key(payload.case_nuc)

    try:
        case_row = await repo.fetch_case(case_nuc=case_nuc)
    except CasesRepositoryError as exc:
        logger.error("outbound_call.fetch_failed", extra={"error": str(exc)})
        return JSONResponse(status_code=500, content={"error": "INTERNAL_ERROR"})
    if case_row is None:
        return JSONResponse(status_code=404, content={"error": "CASE_NOT_FOUND"})

    override = (payload.override_to_number or "").strip()
    to_number = elevenlabs.normalize_phone_number(
        override or case_row.get("respondentMobile")
    )
    if not to_number:
        return _call_failed(400, {"message": "No valid phone number found"})

    try:
        call_payload = elevenlabs.build_outbound_payload(case_row, to_number)
        result = await elevenlabs.call_outbound(call_payload)
    except elevenlabs.ElevenLabsError as exc:
        logger.error("outbound_call.error", extra={"case_nuc": case_nuc, "error": str(exc)})
        return JSONResponse(status_code=500, content={"error": "INTERNAL_ERROR"})

    if not result.ok:
        return _call_failed(result.status, result.body)
    log_event(logger, "outbound_call.triggered", case_nuc=case_nuc, to_number=to_number)
    return {
        "status": "CALL_TRIGGERED",
        "caseNuc": case_nuc,
        "toNumber": to_number,
        "elevenlabs": result.body,
    }


@router.post("/elevenlabs/post-call", summary="Webhook post-llamada de ElevenLabs")
async def elevenlabs_post_call(request: Request) -> dict[str, Any]:
    """Guarda el resumen de la llamada en `voice_summaries`.

    Siempre responde 200: ElevenLabs desactiva los webhooks que fallan.
    """
    try:
        webhook = await request.json()
    except ValueError:
        return _storing_error("parsing_error", "El cuerpo no es JSON válido")
    if not isinstance(webhook, dict):
        return _storing_error("parsing_error", "El cuerpo debe ser un objeto JSON")

    row, reason = elevenlabs.build_voice_summary(webhook)
    if row is None:
        details = {
            "parsing_error": "Missing conversation_id in webhook",
            "missing_case_id": "case_id not found in dynamic_variables",
            "invalid_case_id": "case_id is not a number",
        }
        return _storing_error(reason or "parsing_error", details.get(reason or "", ""))

    try:
        await CasesRepository().insert_voice_summary(row=row)
    except CasesRepositoryError as exc:
        return _storing_error("db_error", str(exc))

    log_event(
        logger,
        "voice_summary.stored",
        conversation_id=row["conversation_id"],
        case_nuc=row["caseNuc"],
    )
    return {
        "status": "stored",
        "conversation_id": row["conversation_id"],
        "case_nuc": row["caseNuc"],
    }
