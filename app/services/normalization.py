"""Normaliza registros crudos de Supabase al modelo de casos y contactos.

Todas las funciones son puras: no hacen I/O, no guardan estado y nunca
lanzan excepciones por datos malformados. Los campos ausentes o inválidos
se reemplazan por los valores por defecto declarados en este módulo.

Las clasificaciones por palabras clave se definen como listas ordenadas
de reglas `(palabras, resultado)`; se evalúan de arriba hacia abajo y gana
la primera coincidencia.
"""

from __future__ import annotations

import math
import re
from datetime import datetime, timezone
from typing import Any, Iterable, Mapping, Sequence, TypeVar

from app.models.mediation import (
    CaseStatus,
    Channel,
    ContactAttempt,
    ContactOutcome,
    EmotionalStatus,
    MediationCase,
    MediationType,
    RelationshipType,
)

T = TypeVar("T")
KeywordRules = tuple[tuple[tuple[str, ...], T], ...]

PLACEHOLDER_RUT = "00.000.000-0"
PLACEHOLDER_NOTE = "Sin información disponible"
DEFAULT_DESCRIPTION = "Caso de mediación familiar"
APPLICANT_LABEL = "Solicitante"
RESPONDENT_LABEL = "Demandado"
UNKNOWN_TOKEN = "unknown"
NOTE_MAX_LENGTH = 200

DEFAULT_CHANNEL: Channel = "whatsapp"
DEFAULT_OUTCOME: ContactOutcome = "successful"
DEFAULT_CASE_STATUS: CaseStatus = "scheduled"
DEFAULT_EMOTIONAL_STATUS: EmotionalStatus = "neutral"
DEFAULT_RELATIONSHIP: RelationshipType = "other"
DEFAULT_MEDIATION_TYPE: MediationType = "other"
# Casos armados sólo desde conversaciones no traen estos datos
GROUPED_RELATIONSHIP: RelationshipType = "parents"
GROUPED_MEDIATION_TYPE: MediationType = "visitation"

CHANNEL_BY_SOURCE: dict[str, Channel] = {
    "whatsapp": "whatsapp",
    "phone_call": "phone",
    "mail": "email",
    "telegram": "telegram",
}

OUTCOME_RULES: KeywordRules[ContactOutcome] = (
    (("confirmó", "asistencia confirmada"), "successful"),
    (("no respondió", "sin respuesta"), "no-answer"),
    (("rechazó", "declinó"), "declined"),
    (("programado", "agendado"), "scheduled"),
    (("positiva", "dispuesto"), "positive-disposition"),
    (("rechazó", "negó"), "refused"),
)

CASE_STATUS_RULES: KeywordRules[CaseStatus] = (
    (("completado", "finalizado"), "completed"),
    (("en progreso", "en curso"), "in-progress"),
    (("cancelado",), "cancelled"),
)

EMOTIONAL_STATUS_RULES: KeywordRules[EmotionalStatus] = (
    (("cooperativo", "dispuesto"), "cooperative"),
    (("resistente", "rechazó"), "resistant"),
    (("inseguro", "dudoso"), "unsure"),
)

RELATIONSHIP_RULES: KeywordRules[RelationshipType] = (
    (("padre", "parent"), "parents"),
    (("cuidador", "caregiver"), "caregivers"),
    (("tutor", "guardian"), "guardians"),
)

MEDIATION_TYPE_RULES: KeywordRules[MediationType] = (
    (("visita", "visitation"), "visitation"),
    (("comunicación", "communication"), "communication"),
    (("cuidado", "childcare"), "childcare"),
    (("convivencia", "coexistence"), "coexistence"),
)

CONFIRMATION_RULES: KeywordRules[EmotionalStatus] = (
    (("confirmó", "sí"), "cooperative"),
    (("no", "rechazó"), "resistant"),
    (("duda", "inseguro"), "unsure"),
)

_GREETING_RE = re.compile(
    r"Hola\s+([A-Z][a-zá-úñ]+(?:\s+[A-Z][a-zá-úñ]+)?)", re.IGNORECASE
)
_TIMESTAMP_RE = re.compile(r"\[\d{1,2}:\d{2}\s+[AP]M\]\s*", re.IGNORECASE)
_BOT_PREFIX_RE = re.compile(r"Nexo Bot:\s*", re.IGNORECASE)
_INTEGER_RE = re.compile(r"[+-]?\d{1,4000}")


def classify(text: str, rules: KeywordRules[T], default: T) -> T:
    """Aplica reglas de palabras clave sobre `text` (ya en minúsculas)."""
    for keywords, result in rules:
        if any(keyword in text for keyword in keywords):
            return result
    return default


def _text(value: Any) -> str | None:
    """Texto no vacío o None; cualquier otro tipo se considera ausente."""
    if isinstance(value, str) and value.strip():
        return value
    return None


def _raw_text(value: Any) -> str | None:
    """Como `_text`, pero conserva cadenas formadas solo por espacios."""
    if isinstance(value, str) and value:
        return value
    return None


def _first_text(row: Mapping[str, Any], *keys: str) -> str | None:
    for key in keys:
        value = _text(row.get(key))
        if value is not None:
            return value
    return None


def _utcnow(now: datetime | None) -> datetime:
    if now is None:
        return datetime.now(timezone.utc)
    if now.tzinfo is None:
        return now.replace(tzinfo=timezone.utc)
    return now


def parse_timestamp(value: Any) -> datetime | None:
    """Convierte un ISO-8601 a datetime UTC; None si no es interpretable."""
    if isinstance(value, datetime):
        parsed = value
    else:
        raw = _text(value)
        if raw is None:
            return None
        candidate = raw.strip()
        if candidate.endswith(("Z", "z")):
            candidate = f"{candidate[:-1]}+00:00"
        try:
            parsed = datetime.fromisoformat(candidate)
        except ValueError:
            return None
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def _timestamp_or_now(value: Any, now: datetime) -> datetime:
    parsed = parse_timestamp(value)
    return parsed if parsed is not None else now


def _numeric_case_value(value: Any) -> int | float | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        number = value
    elif isinstance(value, str) and value.strip():
        raw = value.strip()
        if _INTEGER_RE.fullmatch(raw):
            return int(raw)
        try:
            number = float(raw)
        except ValueError:
            return None
    else:
        return None
    if not math.isfinite(number):
        return None
    return number


def is_valid_case_identifier(value: Any) -> bool:
    """True si el NUC existe y es numérico."""
    return _numeric_case_value(value) is not None


def integral_case_number(value: Any) -> int | None:
    """NUC como entero exacto; None si es inválido o tiene parte decimal."""
    number = _numeric_case_value(value)
    if isinstance(number, int):
        return number
    if number is not None and number.is_integer():
        return int(number)
    return None


def case_key(value: Any) -> str:
    """Representación canónica del NUC (`123`, `"123"` y `123.0` → `"123"`).

    Un identificador inválido se representa como `unknown`.
    """
    number = _numeric_case_value(value)
    if number is None:
        return UNKNOWN_TOKEN
    if isinstance(number, int):
        return str(number)
    if number.is_integer():
        return str(int(number))
    return repr(number)


def map_source_to_channel(source: Any) -> Channel:
    if isinstance(source, str):
        return CHANNEL_BY_SOURCE.get(source, DEFAULT_CHANNEL)
    return DEFAULT_CHANNEL


def default_participant_label(user_type: Any) -> str:
    return APPLICANT_LABEL if user_type == "applicant" else RESPONDENT_LABEL


def extract_participant_name(conversation: Any, user_type: Any) -> str:
    """Busca un saludo `Hola <Nombre>`; si no aparece usa la etiqueta del rol."""
    text = _text(conversation)
    if text is not None:
        match = _GREETING_RE.search(text)
        if match:
            return match.group(1)
    return default_participant_label(user_type)


def determine_contact_outcome(conversation: Any) -> ContactOutcome:
    text = _raw_text(conversation)
    if text is None:
        return DEFAULT_OUTCOME
    return classify(text.lower(), OUTCOME_RULES, DEFAULT_OUTCOME)


def extract_note(conversation: Any) -> str:
    """Limpia marca de hora y prefijo del bot, y trunca el texto."""
    text = _raw_text(conversation)
    if text is None:
        return PLACEHOLDER_NOTE
    cleaned = _TIMESTAMP_RE.sub("", text, count=1)
    cleaned = _BOT_PREFIX_RE.sub("", cleaned, count=1)
    if len(cleaned) > NOTE_MAX_LENGTH:
        return f"{cleaned[:NOTE_MAX_LENGTH]}..."
    return cleaned


def _attempt_id(record: Mapping[str, Any]) -> str:
    case_part = case_key(record.get("caseNuc"))
    chat_part = record.get("chatId")
    chat_part = UNKNOWN_TOKEN if chat_part in (None, "") else str(chat_part)
    created_part = _text(record.get("created_at")) or UNKNOWN_TOKEN
    return f"{case_part}-{chat_part}-{created_part}"


def map_record_to_contact_attempt(
    record: Mapping[str, Any], *, now: datetime | None = None
) -> ContactAttempt:
    """Convierte un registro de conversación en un `ContactAttempt`.

    Pensada para registros ya filtrados por `map_records_to_contact_attempts`;
    un NUC inválido se representa como `unknown`.
    """
    reference = _utcnow(now)
    raw_nuc = record.get("caseNuc")
    case_id = case_key(raw_nuc)
    conversation = record.get("conversation")
    return ContactAttempt(
        id=_attempt_id(record),
        case_id=case_id,
        channel=map_source_to_channel(record.get("source")),
        occurred_at=_timestamp_or_now(record.get("created_at"), reference),
        outcome=determine_contact_outcome(conversation),
        note=extract_note(conversation),
        participant_label=extract_participant_name(conversation, record.get("userType")),
    )


def valid_records(records: Iterable[Mapping[str, Any]]) -> list[Mapping[str, Any]]:
    """Filtro estable: descarta registros sin NUC numérico."""
    return [
        record
        for record in records
        if isinstance(record, Mapping) and is_valid_case_identifier(record.get("caseNuc"))
    ]


def map_records_to_contact_attempts(
    records: Iterable[Mapping[str, Any]], *, now: datetime | None = None
) -> list[ContactAttempt]:
    reference = _utcnow(now)
    return [map_record_to_contact_attempt(record, now=reference) for record in valid_records(records)]


def _group_by_case(
    records: Iterable[Mapping[str, Any]],
) -> dict[str, list[Mapping[str, Any]]]:
    # dict conserva el orden de primera aparición de cada NUC
    groups: dict[str, list[Mapping[str, Any]]] = {}
    for record in valid_records(records):
        groups.setdefault(case_key(record.get("caseNuc")), []).append(record)
    return groups


def _joined_text(records: Sequence[Mapping[str, Any]]) -> str:
    parts = [_text(record.get("conversation")) for record in records]
    return " ".join(part.lower() for part in parts if part)


def _build_grouped_case(
    case_id: str, records: Sequence[Mapping[str, Any]], now: datetime
) -> MediationCase:
    applicant = next((r for r in records if r.get("userType") == "applicant"), None)
    respondent = next((r for r in records if r.get("userType") == "respondent"), None)

    participant_name = (
        extract_participant_name(applicant.get("conversation"), "applicant")
        if applicant is not None
        else APPLICANT_LABEL
    )
    participant_name2 = (
        extract_participant_name(respondent.get("conversation"), "respondent")
        if respondent is not None
        else None
    )

    dated = [(_timestamp_or_now(r.get("created_at"), now), r) for r in records]
    # sorted es estable: en empates se conserva el orden de llegada
    ordered = sorted(dated, key=lambda item: item[0], reverse=True)
    latest_at, latest = ordered[0]
    oldest_at = ordered[-1][0]

    text = _joined_text(records)
    return MediationCase(
        id=case_id,
        participant_name=participant_name,
        participant_name2=participant_name2,
        rut=PLACEHOLDER_RUT,
        rut2=PLACEHOLDER_RUT,
        relationship_type=GROUPED_RELATIONSHIP,
        mediation_type=GROUPED_MEDIATION_TYPE,
        mediation_date=latest_at,
        status=classify(text, CASE_STATUS_RULES, DEFAULT_CASE_STATUS),
        description=extract_note(latest.get("conversation")),
        emotional_status=classify(text, EMOTIONAL_STATUS_RULES, DEFAULT_EMOTIONAL_STATUS),
        created_at=oldest_at,
        updated_at=latest_at,
    )


def group_records_into_cases(
    records: Iterable[Mapping[str, Any]], *, now: datetime | None = None
) -> list[MediationCase]:
    """Agrupa conversaciones por NUC y arma un `MediationCase` por grupo."""
    reference = _utcnow(now)
    return [
        _build_grouped_case(case_id, group, reference)
        for case_id, group in _group_by_case(records).items()
    ]


def records_for_case(
    records: Iterable[Mapping[str, Any]], case_id: Any
) -> list[Mapping[str, Any]]:
    """Registros válidos cuyo NUC coincide con `case_id`."""
    if not is_valid_case_identifier(case_id):
        return []
    return _group_by_case(records).get(case_key(case_id), [])


def _case_description(row: Mapping[str, Any]) -> str:
    parts: list[str] = []
    subject = _first_text(row, "subject", "matterType")
    if subject:
        parts.append(f"Materia: {subject}")
    session_type = _first_text(row, "sessionType")
    if session_type:
        parts.append(f"Tipo de sesión: {session_type}")
    requests = _first_text(row, "applicantQuestionsRequests")
    if requests:
        parts.append(f"Solicitudes: {requests}")
    return " | ".join(parts) if parts else DEFAULT_DESCRIPTION


def _confirmation_status(row: Mapping[str, Any]) -> EmotionalStatus:
    applicant = (_text(row.get("applicantAttendanceConfirmation")) or "").lower()
    respondent = (_text(row.get("respondentAttendanceConfirmation")) or "").lower()
    for keywords, result in CONFIRMATION_RULES:
        if any(keyword in applicant or keyword in respondent for keyword in keywords):
            return result
    return DEFAULT_EMOTIONAL_STATUS


def map_case_row_to_mediation_case(
    row: Mapping[str, Any], *, now: datetime | None = None
) -> MediationCase:
    """Mapea una fila autoritativa de la tabla de casos."""
    reference = _utcnow(now)
    relationship = (_first_text(row, "relationshipType") or "").lower()
    mediation = (_first_text(row, "mediationType") or "").lower()
    raw_nuc = row.get("caseNuc")
    case_id = case_key(raw_nuc)

    return MediationCase(
        id=case_id,
        participant_name=_first_text(row, "applicantFullName") or APPLICANT_LABEL,
        participant_name2=_first_text(row, "respondentFullName"),
        rut=_first_text(row, "applicantRut") or PLACEHOLDER_RUT,
        rut2=_first_text(row, "respondentRut"),
        relationship_type=classify(relationship, RELATIONSHIP_RULES, DEFAULT_RELATIONSHIP),
        mediation_type=classify(mediation, MEDIATION_TYPE_RULES, DEFAULT_MEDIATION_TYPE),
        mediation_date=_timestamp_or_now(row.get("sessionDate"), reference),
        status=DEFAULT_CASE_STATUS,
        description=_case_description(row),
        emotional_status=_confirmation_status(row),
        created_at=_timestamp_or_now(row.get("created_at"), reference),
        updated_at=_timestamp_or_now(row.get("updated_at"), reference),
    )


def map_case_rows_to_mediation_cases(
    rows: Iterable[Mapping[str, Any]], *, now: datetime | None = None
) -> list[MediationCase]:
    reference = _utcnow(now)
    return [
        map_case_row_to_mediation_case(row, now=reference)
        for row in rows
        if isinstance(row, Mapping)
    ]
