"""Reporte de caso en el formato que consume la vista de informe del panel."""

from __future__ import annotations

from typing import Any, Mapping

from app.services.normalization import case_key

# Campos numéricos/libres que sólo se incluyen cuando vienen con valor
ADDITIONAL_FIELDS = (
    "pensionActual",
    "promedioSueldoLiquido",
    "regimenVisitasActual",
    "cuidadoPersonalActual",
)


def _value(row: Mapping[str, Any], *keys: str) -> str:
    for key in keys:
        value = row.get(key)
        if value not in (None, ""):
            return str(value)
    return ""


def _person(row: Mapping[str, Any], prefix: str) -> dict[str, str]:
    return {
        "nombre": _value(row, f"{prefix}FullName"),
        "sexo": _value(row, f"{prefix}Gender", f"{prefix}Sex"),
        "direccion": _value(row, f"{prefix}Address"),
        "comuna": _value(row, f"{prefix}Commune"),
        "region": _value(row, f"{prefix}Region"),
        "confirmacionAsistencia": _value(row, f"{prefix}AttendanceConfirmation"),
        "dudasOSolicitudes": _value(row, f"{prefix}QuestionsRequests"),
    }


def build_case_report(row: Mapping[str, Any]) -> dict[str, Any]:
    """Arma el reporte a partir de una fila de la tabla de casos."""
    applicant = _person(row, "applicant")
    applicant["datosAdicionalesEntregados"] = _value(row, "applicantAdditionalDataProvided")
    applicant["alertasAgente"] = _value(row, "agentAlerts")

    respondent = _person(row, "respondent")
    respondent["observacionesContacto"] = _value(row, "respondentContactObservations")

    additional: dict[str, Any] = {}
    for field in ADDITIONAL_FIELDS:
        value = row.get(field)
        if value not in (None, "", 0):
            additional[field] = value

    nuc = row.get("caseNuc")
    return {
        "nuc": case_key(nuc) if nuc is not None else "",
        "fechaHoraMediacion": _value(row, "sessionDate"),
        "materia": _value(row, "matterType", "subject"),
        "tipoSesion": _value(row, "sessionType"),
        "solicitante": applicant,
        "solicitado": respondent,
        "datosAdicionales": additional,
    }
