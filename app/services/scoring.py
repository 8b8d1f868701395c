"""Score de engagement de un caso a partir de sus intentos de contacto.

El score general (0..100) es la suma ponderada de cuatro criterios:

* ``tasaExito``: porcentaje de intentos exitosos o con disposición positiva.
* ``diversidadCanales``: canales distintos usados sobre los tres que se
  consideran (WhatsApp, teléfono y Telegram).
* ``recencia``: decae linealmente desde 1 (contacto hoy) hasta 0 a los
  ``RECENCY_WINDOW_DAYS`` días; sin contacto vale 0.
* ``cantidadIntentos``: crece de forma logarítmica con el número de
  intentos y se satura en ``VOLUME_SATURATION_ATTEMPTS``.

Cada criterio reporta su peso y los puntos obtenidos (``peso * valor * 100``).
"""

from __future__ import annotations

import math
from collections.abc import Callable, Sequence
from datetime import datetime, timezone

from app.models.mediation import (
    Channel,
    ContactAttempt,
    ContactOutcome,
    ContactsByChannel,
    ScoreBreakdown,
    ScoreComponent,
    ScoringMetrics,
    Sentiment,
)

SCORE_WEIGHTS: dict[str, float] = {
    "tasa_exito": 0.40,
    "diversidad_canales": 0.25,
    "recencia": 0.20,
    "cantidad_intentos": 0.15,
}

SCORING_CHANNELS: tuple[Channel, ...] = ("whatsapp", "phone", "telegram")
TOTAL_CHANNELS = len(SCORING_CHANNELS)
CHANNEL_LABELS: dict[Channel, str] = {
    "whatsapp": "WhatsApp",
    "phone": "Teléfono",
    "telegram": "Telegram",
}
SUCCESSFUL_OUTCOMES: frozenset[ContactOutcome] = frozenset({"successful", "positive-disposition"})

POSITIVE_THRESHOLD = 70.0
NEUTRAL_THRESHOLD = 40.0
RECENCY_WINDOW_DAYS = 30
VOLUME_SATURATION_ATTEMPTS = 10
STALE_CONTACT_DAYS = 7
HIGH_VOLUME_ATTEMPTS = 5

_SECONDS_PER_DAY = 86_400


def classify_sentiment(success_rate: float) -> Sentiment:
    if success_rate >= POSITIVE_THRESHOLD:
        return "Positive"
    if success_rate >= NEUTRAL_THRESHOLD:
        return "Neutral"
    return "Negative"


def recency_factor(days_since_last_contact: float) -> float:
    if math.isinf(days_since_last_contact) or days_since_last_contact >= RECENCY_WINDOW_DAYS:
        return 0.0
    return 1.0 - max(days_since_last_contact, 0) / RECENCY_WINDOW_DAYS


def volume_factor(total_attempts: int) -> float:
    if total_attempts <= 0:
        return 0.0
    return min(1.0, math.log1p(total_attempts) / math.log1p(VOLUME_SATURATION_ATTEMPTS))


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def _days_since(latest: datetime | None, now: datetime) -> int | float:
    if latest is None:
        return math.inf
    if latest.tzinfo is None:
        latest = latest.replace(tzinfo=timezone.utc)
    elapsed = (now - latest).total_seconds()
    return max(0, math.floor(elapsed / _SECONDS_PER_DAY))


def _component(weight_key: str, factor: float) -> ScoreComponent:
    weight = SCORE_WEIGHTS[weight_key]
    return ScoreComponent(weight=weight, points=weight * factor * 100)


InsightRule = Callable[[ScoringMetrics, set[Channel]], str | None]


def _insight_no_attempts(metrics: ScoringMetrics, used: set[Channel]) -> str | None:
    if metrics.total_attempts == 0:
        return "Sin intentos de contacto registrados: iniciar contacto con las partes"
    return None


def _insight_stale_contact(metrics: ScoringMetrics, used: set[Channel]) -> str | None:
    days = metrics.days_since_last_contact
    if metrics.total_attempts and not math.isinf(days) and days > STALE_CONTACT_DAYS:
        return f"Sin contacto hace {int(days)} días: retomar el seguimiento"
    return None


def _insight_unused_channels(metrics: ScoringMetrics, used: set[Channel]) -> str | None:
    missing = [CHANNEL_LABELS[channel] for channel in SCORING_CHANNELS if channel not in used]
    if metrics.total_attempts and missing:
        return f"Probar un canal no utilizado: {', '.join(missing)}"
    return None


def _insight_low_success(metrics: ScoringMetrics, used: set[Channel]) -> str | None:
    if metrics.total_attempts and metrics.success_rate < NEUTRAL_THRESHOLD:
        return "Tasa de éxito baja: revisar horarios y canal de contacto"
    return None


def _insight_many_attempts(metrics: ScoringMetrics, used: set[Channel]) -> str | None:
    if metrics.total_attempts >= HIGH_VOLUME_ATTEMPTS and metrics.success_rate == 0:
        return "Muchos intentos sin respuesta: considerar contacto presencial"
    return None


def _insight_good_disposition(metrics: ScoringMetrics, used: set[Channel]) -> str | None:
    if metrics.total_attempts and metrics.success_rate >= POSITIVE_THRESHOLD:
        return "Buena disposición de las partes: confirmar asistencia a la sesión"
    return None


INSIGHT_RULES: tuple[InsightRule, ...] = (
    _insight_no_attempts,
    _insight_stale_contact,
    _insight_unused_channels,
    _insight_low_success,
    _insight_many_attempts,
    _insight_good_disposition,
)


def build_insights(metrics: ScoringMetrics, used_channels: set[Channel]) -> list[str]:
    """Evalúa `INSIGHT_RULES` en orden y conserva los mensajes emitidos."""
    insights: list[str] = []
    for rule in INSIGHT_RULES:
        message = rule(metrics, used_channels)
        if message:
            insights.append(message)
    return insights


def compute_scoring(
    attempts: Sequence[ContactAttempt], *, now: datetime | None = None
) -> ScoringMetrics:
    """Calcula las métricas de engagement de un caso.

    Nunca falla: con cero intentos la tasa de éxito es 0, los días desde el
    último contacto son `inf` y el score queda en 0.
    """
    reference = now or datetime.now(timezone.utc)
    if reference.tzinfo is None:
        reference = reference.replace(tzinfo=timezone.utc)

    total = len(attempts)
    successes = sum(1 for attempt in attempts if attempt.outcome in SUCCESSFUL_OUTCOMES)
    success_rate = 100.0 * successes / total if total else 0.0

    used = {attempt.channel for attempt in attempts if attempt.channel in SCORING_CHANNELS}
    latest = max((attempt.occurred_at for attempt in attempts), default=None)
    days = _days_since(latest, reference)

    breakdown = ScoreBreakdown(
        tasa_exito=_component("tasa_exito", success_rate / 100),
        diversidad_canales=_component("diversidad_canales", len(used) / TOTAL_CHANNELS),
        recencia=_component("recencia", recency_factor(days)),
        cantidad_intentos=_component("cantidad_intentos", volume_factor(total)),
    )
    raw_score = sum(
        component.points
        for component in (
            breakdown.tasa_exito,
            breakdown.diversidad_canales,
            breakdown.recencia,
            breakdown.cantidad_intentos,
        )
    )

    by_channel = ContactsByChannel(
        whatsapp=sum(1 for a in attempts if a.channel == "whatsapp"),
        telefono=sum(1 for a in attempts if a.channel == "phone"),
        telegram=sum(1 for a in attempts if a.channel == "telegram"),
    )

    metrics = ScoringMetrics(
        total_attempts=total,
        success_rate=success_rate,
        channels_used=len(used),
        total_channels=TOTAL_CHANNELS,
        days_since_last_contact=days,
        last_contact=latest.isoformat() if latest is not None else None,
        contacts_by_channel=by_channel,
        sentiment=classify_sentiment(success_rate),
        overall_score=min(100, max(0, _round_half_up(raw_score))),
        score_breakdown=breakdown,
    )
    metrics.insights = build_insights(metrics, used)
    return metrics


def metrics_payload(metrics: ScoringMetrics) -> dict:
    """Serializa a JSON con alias camelCase; `inf` se expone como `null`.

    `scoreGeneral` replica `overallScore` para el panel de scoring existente.
    """
    payload = metrics.model_dump(mode="json", by_alias=True)
    if math.isinf(metrics.days_since_last_contact):
        payload["daysSinceLastContact"] = None
    payload["scoreGeneral"] = payload["overallScore"]
    return payload
