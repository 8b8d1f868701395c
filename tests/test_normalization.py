"""Pruebas del pipeline de normalización de conversaciones y casos."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from app.services import normalization
from app.services.normalization import (
    CASE_STATUS_RULES,
    OUTCOME_RULES,
    PLACEHOLDER_NOTE,
    PLACEHOLDER_RUT,
    case_key,
    classify,
    determine_contact_outcome,
    extract_note,
    extract_participant_name,
    group_records_into_cases,
    is_valid_case_identifier,
    map_case_row_to_mediation_case,
    map_record_to_contact_attempt,
    map_records_to_contact_attempts,
    map_source_to_channel,
    records_for_case,
)

NOW = datetime(2025, 3, 10, 12, 0, tzinfo=timezone.utc)


def _record(**overrides: object) -> dict[str, object]:
    record: dict[str, object] = {
        "caseNuc": 123,
        "source": "whatsapp",
        "userType": "applicant",
        "conversation": "Hola María, le escribimos por su caso",
        "created_at": "2025-03-08T10:00:00Z",
        "chatId": "chat-1",
    }
    record.update(overrides)
    return record


def test_conversation_keywords_map_to_outcomes() -> None:
    assert determine_contact_outcome("El cliente confirmó asistencia") == "successful"
    assert determine_contact_outcome("No respondió al llamado") == "no-answer"
    assert determine_contact_outcome("La parte RECHAZÓ la propuesta") == "declined"
    assert determine_contact_outcome("Quedó agendado para el lunes") == "scheduled"
    assert determine_contact_outcome("Se mostró dispuesto a conversar") == "positive-disposition"
    assert determine_contact_outcome("Negó conocer el caso") == "refused"


def test_outcome_defaults_to_successful_without_keywords() -> None:
    assert determine_contact_outcome("Mensaje informativo") == "successful"
    assert determine_contact_outcome(None) == "successful"
    assert determine_contact_outcome("") == "successful"


def test_outcome_rules_first_match_wins() -> None:
    # "confirmó" aparece antes que "no respondió" en la tabla
    assert determine_contact_outcome("no respondió ayer, hoy confirmó") == "successful"
    assert OUTCOME_RULES[0][1] == "successful"


def test_classify_uses_default_when_nothing_matches() -> None:
    assert classify("sin novedades", CASE_STATUS_RULES, "scheduled") == "scheduled"
    assert classify("caso finalizado", CASE_STATUS_RULES, "scheduled") == "completed"


@pytest.mark.parametrize(
    ("source", "expected"),
    [
        ("whatsapp", "whatsapp"),
        ("phone_call", "phone"),
        ("mail", "email"),
        ("telegram", "telegram"),
        ("sms", "whatsapp"),
        (None, "whatsapp"),
    ],
)
def test_map_source_to_channel(source: object, expected: str) -> None:
    assert map_source_to_channel(source) == expected


def test_extract_participant_name_from_greeting() -> None:
    assert extract_participant_name("Hola Juan Pérez, ¿cómo está?", "respondent") == "Juan Pérez"
    assert extract_participant_name("Buenos días", "applicant") == "Solicitante"
    assert extract_participant_name(None, "respondent") == "Demandado"


def test_extract_note_strips_timestamp_and_bot_prefix() -> None:
    assert extract_note("[10:32 AM] Nexo Bot: Recuerde su sesión") == "Recuerde su sesión"
    assert extract_note(None) == PLACEHOLDER_NOTE


def test_extract_note_truncates_long_text() -> None:
    note = extract_note("a" * 250)
    assert note == "a" * 200 + "..."


def test_whitespace_conversation_is_kept_as_note() -> None:
    assert extract_note("   ") == "   "
    assert extract_note("") == PLACEHOLDER_NOTE
    assert determine_contact_outcome("   ") == "successful"

    attempt = map_record_to_contact_attempt(_record(conversation="  "), now=NOW)
    assert attempt.note == "  "
    assert attempt.outcome == "successful"


@pytest.mark.parametrize(
    ("value", "valid"),
    [
        (123, True),
        ("456", True),
        (7.0, True),
        (None, False),
        ("", False),
        ("abc", False),
        (True, False),
        (float("nan"), False),
        (float("inf"), False),
    ],
)
def test_is_valid_case_identifier(value: object, valid: bool) -> None:
    assert is_valid_case_identifier(value) is valid


def test_case_key_is_canonical() -> None:
    assert case_key(123) == case_key("123") == case_key(123.0) == "123"
    assert case_key(None) == "unknown"


def test_case_key_keeps_large_integers_exact() -> None:
    big = "12345678901234567890"
    assert case_key(big) == big
    assert case_key(f" {big} ") == big
    assert case_key(12345678901234567890) == big
    assert case_key("12.5") == "12.5"
    assert is_valid_case_identifier(big)


def test_map_record_to_contact_attempt_builds_all_fields() -> None:
    attempt = map_record_to_contact_attempt(
        _record(source="phone_call", conversation="[9:00 AM] Nexo Bot: No respondió"),
        now=NOW,
    )
    assert attempt.id == "123-chat-1-2025-03-08T10:00:00Z"
    assert attempt.case_id == "123"
    assert attempt.channel == "phone"
    assert attempt.outcome == "no-answer"
    assert attempt.note == "No respondió"
    assert attempt.participant_label == "Solicitante"
    assert attempt.occurred_at == datetime(2025, 3, 8, 10, 0, tzinfo=timezone.utc)


def test_missing_or_invalid_dates_fall_back_to_now() -> None:
    attempt = map_record_to_contact_attempt(_record(created_at="no es fecha"), now=NOW)
    assert attempt.occurred_at == NOW
    assert map_record_to_contact_attempt(_record(created_at=None), now=NOW).id.endswith("-unknown")


def test_records_with_invalid_case_ids_are_excluded() -> None:
    records = [
        _record(caseNuc=1),
        _record(caseNuc=None),
        _record(caseNuc="abc"),
        _record(caseNuc="2"),
        {"source": "whatsapp"},
        _record(caseNuc=""),
    ]
    attempts = map_records_to_contact_attempts(records, now=NOW)
    valid = [r for r in records if is_valid_case_identifier(r.get("caseNuc"))]
    assert len(attempts) == len(valid) == 2
    assert [a.case_id for a in attempts] == ["1", "2"]


def test_malformed_records_never_raise() -> None:
    records = [
        _record(conversation=12345, source=["x"], userType=None, chatId=None),
        _record(created_at=99),
    ]
    attempts = map_records_to_contact_attempts(records, now=NOW)
    assert len(attempts) == 2
    assert attempts[0].note == PLACEHOLDER_NOTE
    assert attempts[0].channel == "whatsapp"


def test_group_records_preserves_first_appearance_order() -> None:
    records = [
        _record(caseNuc=5, created_at="2025-03-01T10:00:00Z"),
        _record(caseNuc=3),
        _record(caseNuc="5", created_at="2025-03-05T10:00:00Z", conversation="Proceso en curso"),
    ]
    cases = group_records_into_cases(records, now=NOW)
    assert [case.id for case in cases] == ["5", "3"]

    first = cases[0]
    assert first.rut == PLACEHOLDER_RUT
    assert first.relationship_type == "parents"
    assert first.mediation_type == "visitation"
    assert first.status == "in-progress"
    assert first.mediation_date == datetime(2025, 3, 5, 10, 0, tzinfo=timezone.utc)
    assert first.created_at == datetime(2025, 3, 1, 10, 0, tzinfo=timezone.utc)
    assert first.description == "Proceso en curso"


def test_grouped_case_takes_names_from_roles() -> None:
    records = [
        _record(userType="respondent", conversation="Hola Pedro, le contactamos"),
        _record(userType="applicant", conversation="Hola Ana, su sesión"),
    ]
    (case,) = group_records_into_cases(records, now=NOW)
    assert case.participant_name == "Ana"
    assert case.participant_name2 == "Pedro"


def test_grouped_case_without_applicant_uses_label() -> None:
    (case,) = group_records_into_cases([_record(userType="respondent")], now=NOW)
    assert case.participant_name == "Solicitante"


def test_grouping_round_trip_keeps_every_record() -> None:
    records = [
        _record(caseNuc=1, chatId="a"),
        _record(caseNuc="1", chatId="b"),
        _record(caseNuc=2),
        _record(caseNuc=None),
        _record(caseNuc=1.0, chatId="c"),
    ]
    cases = group_records_into_cases(records, now=NOW)
    for case in cases:
        regrouped = map_records_to_contact_attempts(records_for_case(records, case.id), now=NOW)
        direct = [
            r
            for r in normalization.valid_records(records)
            if case_key(r["caseNuc"]) == case.id
        ]
        assert len(regrouped) == len(direct)
    assert sum(len(records_for_case(records, c.id)) for c in cases) == 4


def test_records_for_invalid_case_is_empty() -> None:
    assert records_for_case([_record()], "abc") == []


def test_map_case_row_to_mediation_case() -> None:
    row = {
        "caseNuc": 987,
        "applicantFullName": "Ana Soto",
        "respondentFullName": "Pedro Rojas",
        "applicantRut": "11.111.111-1",
        "relationshipType": "Padre/Madre",
        "mediationType": "Régimen de visitas",
        "sessionDate": "2025-03-12T15:00:00Z",
        "subject": "Relación directa y regular",
        "sessionType": "Presencial",
        "applicantAttendanceConfirmation": "Confirmó",
        "created_at": "2025-02-01T00:00:00Z",
    }
    case = map_case_row_to_mediation_case(row, now=NOW)
    assert case.id == "987"
    assert case.participant_name == "Ana Soto"
    assert case.participant_name2 == "Pedro Rojas"
    assert case.rut == "11.111.111-1"
    assert case.rut2 is None
    assert case.relationship_type == "parents"
    assert case.mediation_type == "visitation"
    assert case.status == "scheduled"
    assert case.emotional_status == "cooperative"
    assert case.description == "Materia: Relación directa y regular | Tipo de sesión: Presencial"
    assert case.updated_at == NOW


def test_map_case_row_defaults() -> None:
    case = map_case_row_to_mediation_case({"caseNuc": "12"}, now=NOW)
    assert case.participant_name == "Solicitante"
    assert case.rut == PLACEHOLDER_RUT
    assert case.relationship_type == "other"
    assert case.mediation_type == "other"
    assert case.description == "Caso de mediación familiar"
    assert case.emotional_status == "neutral"
    assert case.mediation_date == NOW


def test_mediation_case_serializes_with_camel_case() -> None:
    (case,) = group_records_into_cases([_record()], now=NOW)
    payload = case.model_dump(mode="json", by_alias=True)
    assert {"participantName", "participantName2", "mediationDate", "emotionalStatus"} <= set(
        payload
    )


@pytest.mark.parametrize(
    ("conversation", "expected"),
    [
        ("Proceso completado con acuerdo", "completed"),
        ("El caso quedó finalizado", "completed"),
        ("Trámite en curso", "in-progress"),
        ("Sesión en progreso", "in-progress"),
        ("Caso cancelado por el centro", "cancelled"),
        ("Caso completado y luego cancelado", "completed"),
        ("Hola María, le escribimos por su caso", "scheduled"),
    ],
)
def test_grouped_case_status_rules(conversation: str, expected: str) -> None:
    (case,) = group_records_into_cases([_record(conversation=conversation)], now=NOW)
    assert case.status == expected


@pytest.mark.parametrize(
    ("conversation", "expected"),
    [
        ("Se mostró cooperativo", "cooperative"),
        ("Quedó dispuesto a conversar", "cooperative"),
        ("Actitud resistente", "resistant"),
        ("Rechazó la propuesta", "resistant"),
        ("Está inseguro", "unsure"),
        ("Parece dudoso", "unsure"),
        ("Estaba dispuesto pero luego rechazó", "cooperative"),
        ("Resistente al inicio, ahora inseguro", "resistant"),
        ("Hola María, le escribimos por su caso", "neutral"),
    ],
)
def test_grouped_emotional_status_rules(conversation: str, expected: str) -> None:
    (case,) = group_records_into_cases([_record(conversation=conversation)], now=NOW)
    assert case.emotional_status == expected


def test_grouped_status_reads_every_conversation_of_the_case() -> None:
    records = [
        _record(conversation="Hola María", chatId="chat-1"),
        _record(conversation="El solicitado rechazó", chatId="chat-2", userType="respondent"),
    ]
    (case,) = group_records_into_cases(records, now=NOW)
    assert case.emotional_status == "resistant"


@pytest.mark.parametrize(
    ("applicant", "respondent", "expected"),
    [
        ("Confirmó", None, "cooperative"),
        ("Sí asistirá", None, "cooperative"),
        ("No asistirá", None, "resistant"),
        (None, "Rechazó la citación", "resistant"),
        ("Tiene dudas", None, "unsure"),
        (None, "Inseguro", "unsure"),
        ("No asistirá", "Confirmó", "cooperative"),
        ("Tiene dudas", "No asistirá", "resistant"),
        (None, None, "neutral"),
    ],
)
def test_case_row_confirmation_rules(
    applicant: str | None, respondent: str | None, expected: str
) -> None:
    row = {
        "caseNuc": 5,
        "applicantAttendanceConfirmation": applicant,
        "respondentAttendanceConfirmation": respondent,
    }
    case = map_case_row_to_mediation_case(row, now=NOW)
    assert case.emotional_status == expected
