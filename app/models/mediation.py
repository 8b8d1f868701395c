"""Modelos de dominio para casos de mediación, contactos y scoring."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

Channel = Literal["whatsapp", "phone", "email", "in-person", "telegram"]
ContactOutcome = Literal[
    "successful",
    "no-answer",
    "declined",
    "scheduled",
    "positive-disposition",
    "refused",
]
CaseStatus = Literal["scheduled", "in-progress", "completed", "cancelled"]
EmotionalStatus = Literal["cooperative", "neutral", "unsure", "resistant"]
RelationshipType = Literal["parents", "caregivers", "guardians", "other"]
MediationType = Literal["visitation", "communication", "childcare", "coexistence", "other"]
Sentiment = Literal["Positive", "Neutral", "Negative"]


class CamelModel(BaseModel):
    """Base que expone los campos en camelCase hacia el frontend."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ContactAttempt(CamelModel):
    """Un intento de contacto derivado de un registro de conversación."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    id: str
    case_id: str = Field(..., min_length=1)
    channel: Channel
    occurred_at: datetime
    outcome: ContactOutcome
    note: str
    participant_label: str | None = None

    @field_validator("occurred_at")
    @classmethod
    def _as_utc(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


class MediationCase(CamelModel):
    """Caso de mediación familiar listo para la capa de presentación."""

    id: str
    participant_name: str
    participant_name2: str | None = None
    rut: str
    rut2: str | None = None
    relationship_type: RelationshipType = "other"
    mediation_type: MediationType = "other"
    mediation_date: datetime
    status: CaseStatus = "scheduled"
    description: str
    emotional_status: EmotionalStatus = "neutral"
    created_at: datetime
    updated_at: datetime


class ScoreComponent(CamelModel):
    """Peso de un criterio y puntos efectivamente obtenidos (0..100*peso)."""

    weight: float
    points: float


class ScoreBreakdown(CamelModel):
    tasa_exito: ScoreComponent
    diversidad_canales: ScoreComponent
    recencia: ScoreComponent
    cantidad_intentos: ScoreComponent


class ContactsByChannel(CamelModel):
    whatsapp: int = 0
    telefono: int = 0
    telegram: int = 0


class ScoringMetrics(CamelModel):
    """Métricas de engagement de un caso, recalculadas en cada consulta.

    `days_since_last_contact` vale `math.inf` cuando no hay intentos o la
    fecha más reciente no es válida; en JSON se serializa como `null`.
    """

    total_attempts: int = Field(..., ge=0)
    success_rate: float = Field(..., ge=0, le=100)
    channels_used: int = Field(..., ge=0)
    total_channels: int
    days_since_last_contact: int | float
    last_contact: str | None = None
    contacts_by_channel: ContactsByChannel = Field(default_factory=ContactsByChannel)
    sentiment: Sentiment
    overall_score: float = Field(..., ge=0, le=100)
    score_breakdown: ScoreBreakdown
    insights: list[str] = Field(default_factory=list)
