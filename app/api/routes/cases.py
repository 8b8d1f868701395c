"""Rutas de consulta del panel: conversaciones, casos, contactos y scoring.

Los registros crudos de Supabase se normalizan con `app.services.normalization`
antes de salir; la forma JSON usa alias camelCase para el frontend.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter, Depends, HTTPException

from app.api.deps import get_cases_repository, require_case_nuc
from app.core.logging import get_logger, log_event
from app.repositories.cases import CasesRepository, CasesRepositoryError
from app.services import normalization
from app.services.reports import build_case_report
from app.services.scoring import compute_scoring, metrics_payload

router = APIRouter(prefix="", tags=["cases"])

logger = get_logger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _upstream_error(exc: CasesRepositoryError) -> HTTPException:
    logger.error("cases.upstream_error", extra={"error": str(exc)})
    return HTTPException(status_code=502, detail="Error al consultar Supabase")


def _dump(items: list[Any]) -> list[dict[str, Any]]:
    return [item.model_dump(mode="json", by_alias=True) for item in items]


@router.get("/conversations", summary="Conversaciones crudas")
async def list_conversations(
    repo: CasesRepository = Depends(get_cases_repository),
) -> dict[str, Any]:
    """Devuelve los registros de conversación tal como vienen de Supabase."""
    try:
        records = await repo.fetch_conversations()
    except CasesRepositoryError as exc:
        raise _upstream_error(exc) from exc
    return {"success": True, "data": records, "count": len(records)}


@router.get("/chat-ids", summary="Identificadores de chat")
async def list_chat_ids(
    repo: CasesRepository = Depends(get_cases_repository),
) -> dict[str, Any]:
    try:
        chat_ids = await repo.fetch_chat_ids()
    except CasesRepositoryError as exc:
        raise _upstream_error(exc) from exc
    return {"success": True, "data": chat_ids, "count": len(chat_ids)}


@router.get("/conversations/{chat_id}", summary="Conversación por chat")
async def get_conversation(
    chat_id: str,
    repo: CasesRepository = Depends(get_cases_repository),
) -> dict[str, Any]:
    if not chat_id.strip():
        raise HTTPException(status_code=400, detail="chatId_invalid")
    try:
        records = await repo.fetch_conversations_by_chat(chat_id=chat_id)
    except CasesRepositoryError as exc:
        raise _upstream_error(exc) from exc
    return {"success": True, "chatId": chat_id, "data": records, "count": len(records)}


@router.get("/cases", summary="Casos de mediación")
async def list_cases(
    repo: CasesRepository = Depends(get_cases_repository),
) -> dict[str, Any]:
    """Lista de casos.

    Usa la tabla de casos cuando tiene filas; si está vacía, reconstruye los
    casos agrupando las conversaciones por NUC.
    """
    now = _now()
    try:
        rows = await repo.fetch_cases()
        if rows:
            cases = normalization.map_case_rows_to_mediation_cases(rows, now=now)
            source = "cases"
        else:
            records = await repo.fetch_conversations()
            cases = normalization.group_records_into_cases(records, now=now)
            source = "conversations"
    except CasesRepositoryError as exc:
        raise _upstream_error(exc) from exc
    log_event(logger, "cases.listed", count=len(cases), source=source)
    return {"success": True, "cases": _dump(cases), "count": len(cases)}


@router.get("/cases/{nuc}", summary="Detalle de un caso")
async def get_case(
    nuc: str,
    repo: CasesRepository = Depends(get_cases_repository),
) -> dict[str, Any]:
    case_nuc = require_case_nuc(nuc)
    now = _now()
    try:
        row = await repo.fetch_case(case_nuc=case_nuc)
        if row is not None:
            case = normalization.map_case_row_to_mediation_case(row, now=now)
        else:
            records = await repo.fetch_conversations(case_nuc=case_nuc)
            grouped = normalization.group_records_into_cases(
                normalization.records_for_case(records, case_nuc), now=now
            )
            case = grouped[0] if grouped else None
    except CasesRepositoryError as exc:
        raise _upstream_error(exc) from exc
    if case is None:
        raise HTTPException(status_code=404, detail="Caso no encontrado")
    return {"success": True, "case": case.model_dump(mode="json", by_alias=True)}


@router.get("/cases/{nuc}/contacts", summary="Intentos de contacto de un caso")
async def list_case_contacts(
    nuc: str,
    repo: CasesRepository = Depends(get_cases_repository),
) -> dict[str, Any]:
    case_nuc = require_case_nuc(nuc)
    try:
        records = await repo.fetch_conversations(case_nuc=case_nuc)
    except CasesRepositoryError as exc:
        raise _upstream_error(exc) from exc
    attempts = normalization.map_records_to_contact_attempts(
        normalization.records_for_case(records, case_nuc), now=_now()
    )
    return {
        "success": True,
        "caseNuc": case_nuc,
        "data": _dump(attempts),
        "count": len(attempts),
    }


@router.get("/contact-scoring/{nuc}", summary="Score de contactabilidad")
async def get_contact_scoring(
    nuc: str,
    repo: CasesRepository = Depends(get_cases_repository),
) -> dict[str, Any]:
    """Calcula el score de engagement del caso a partir de sus conversaciones."""
    case_nuc = require_case_nuc(nuc)
    try:
        records = await repo.fetch_conversations(case_nuc=case_nuc)
    except CasesRepositoryError as exc:
        raise _upstream_error(exc) from exc
    now = _now()
    attempts = normalization.map_records_to_contact_attempts(
        normalization.records_for_case(records, case_nuc), now=now
    )
    metrics = compute_scoring(attempts, now=now)
    log_event(
        logger,
        "scoring.computed",
        case_nuc=case_nuc,
        attempts=metrics.total_attempts,
        score=metrics.overall_score,
    )
    return {"success": True, "caseNuc": case_nuc, "metrics": metrics_payload(metrics)}


@router.get("/case-report/{nuc}", summary="Reporte de un caso")
async def get_case_report(
    nuc: str,
    repo: CasesRepository = Depends(get_cases_repository),
) -> dict[str, Any]:
    case_nuc = require_case_nuc(nuc)
    try:
        row = await repo.fetch_case(case_nuc=case_nuc)
    except CasesRepositoryError as exc:
        raise _upstream_error(exc) from exc
    if row is None:
        raise HTTPException(status_code=404, detail="Caso no encontrado")
    return {"success": True, "reporte": build_case_report(row)}
