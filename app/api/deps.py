"""Dependencias reutilizables para las rutas de la API."""

from fastapi import HTTPException

from app.core.logging import get_logger
from app.repositories.cases import CasesRepository, CasesRepositoryError
from app.services.normalization import case_key, is_valid_case_identifier

logger = get_logger(__name__)


def get_cases_repository() -> CasesRepository:
    """Entrega el repositorio de casos o un 500 si Supabase no está configurado."""
    try:
        return CasesRepository()
    except CasesRepositoryError as exc:
        logger.error("supabase.not_configured", extra={"error": str(exc)})
        raise HTTPException(status_code=500, detail="Supabase no está configurado") from exc


def require_case_nuc(nuc: str) -> str:
    """Valida el NUC de la ruta y lo devuelve en su forma canónica."""
    if not is_valid_case_identifier(nuc):
        raise HTTPException(status_code=400, detail="caseNuc_invalid")
    return case_key(nuc)
