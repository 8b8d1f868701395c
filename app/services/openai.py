"""Cliente centralizado para el asistente conversacional sobre OpenAI."""

from __future__ import annotations

from functools import lru_cache
from typing import Any

from openai import AsyncOpenAI, OpenAIError

from app.core.config import settings
from app.core.logging import get_logger, log_event

logger = get_logger(__name__)

SYSTEM_PROMPT = """Eres el Asistente Wakai, un asistente AI especializado en mediación familiar en Chile.

Tu rol es ayudar a los usuarios a:
- Consultar casos de mediación familiar
- Ver información de contactos y llamadas
- Navegar a casos específicos
- Enviar notificaciones a participantes
- Proporcionar insights y recomendaciones basadas en los datos

Siempre mantén un tono profesional, empático y respetuoso.
Cuando uses las herramientas, explica claramente qué estás haciendo.
Si los datos muestran casos sensibles, mantén la confidencialidad."""


def _case_id_parameters(description: str) -> dict[str, Any]:
    return {
        "type": "object",
        "properties": {"caseId": {"type": "string", "description": description}},
        "required": ["caseId"],
    }


def _tool(name: str, description: str, parameters: dict[str, Any] | None = None) -> dict[str, Any]:
    function: dict[str, Any] = {"name": name, "description": description}
    if parameters:
        function["parameters"] = parameters
    return {"type": "function", "function": function}


# Las herramientas se ejecutan en el frontend; aquí sólo se declaran
ASSISTANT_TOOLS: list[dict[str, Any]] = [
    _tool("get_all_cases", "Obtiene todos los casos de mediación de la base de datos"),
    _tool(
        "get_case_by_id",
        "Obtiene un caso específico por su ID",
        _case_id_parameters("ID del caso a buscar"),
    ),
    _tool(
        "get_contact_scoring",
        "Obtiene el score de contacto de un caso",
        _case_id_parameters("ID del caso"),
    ),
    _tool("get_all_chat_ids", "Obtiene todos los IDs de chat disponibles"),
    _tool("send_notifications", "Envía notificaciones a los contactos pendientes"),
    _tool(
        "navigate_to_case",
        "Navega a la página de detalles de un caso",
        _case_id_parameters("ID del caso al que navegar"),
    ),
    _tool(
        "navigate_to_case_contacts",
        "Navega a la página de contactos de un caso",
        _case_id_parameters("ID del caso"),
    ),
]


class AssistantError(RuntimeError):
    """Fallas al consultar el modelo."""


@lru_cache(maxsize=1)
def get_openai_client() -> AsyncOpenAI:
    """Crea un cliente asíncrono reutilizable."""
    if not settings.openai_api_key:
        msg = "OPENAI_API_KEY is not configured"
        raise RuntimeError(msg)
    return AsyncOpenAI(api_key=settings.openai_api_key)


async def complete_chat(messages: list[dict[str, Any]]) -> dict[str, Any]:
    """Reenvía el historial al modelo y normaliza la respuesta.

    Retorna `{"tool_calls": [...]}` cuando el modelo pide herramientas o
    `{"message": "..."}` con el texto.
    """
    client = get_openai_client()
    try:
        completion = await client.chat.completions.create(
            model=settings.openai_model,
            messages=[{"role": "system", "content": SYSTEM_PROMPT}, *messages],
            temperature=settings.openai_temperature,
            max_tokens=settings.openai_max_tokens,
            tools=ASSISTANT_TOOLS,
        )
    except OpenAIError as exc:
        logger.exception("assistant.completion_failed", extra={"error": str(exc)})
        raise AssistantError(str(exc)) from exc

    if not completion.choices:
        raise AssistantError("Respuesta inválida de OpenAI: sin choices")
    message = completion.choices[0].message

    if message.tool_calls:
        log_event(logger, "assistant.tool_calls", count=len(message.tool_calls))
        return {"tool_calls": [call.model_dump() for call in message.tool_calls]}
    return {"message": message.content or ""}
