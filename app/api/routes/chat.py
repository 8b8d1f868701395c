"""Chat del asistente Wakai sobre OpenAI."""

from __future__ import annotations

from typing import Any, Literal

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field

from app.core.config import settings
from app.services import openai as assistant

router = APIRouter(prefix="/chat", tags=["chat"])


class ChatMessage(BaseModel):
    role: Literal["user", "assistant", "tool"]
    content: str | None = None
    tool_call_id: str | None = None
    tool_calls: list[dict[str, Any]] | None = None


class ChatPayload(BaseModel):
    """Historial completo de la conversación, del más antiguo al más reciente."""

    messages: list[ChatMessage] = Field(..., min_length=1)


@router.post("", summary="Mensaje al asistente")
async def chat(payload: ChatPayload) -> dict[str, Any]:
    """Reenvía el historial y devuelve `message` o `tool_calls`.

    Las herramientas las ejecuta el frontend y reenvía sus resultados como
    mensajes `tool` en la siguiente llamada.
    """
    if not settings.openai_api_key:
        raise HTTPException(status_code=500, detail="OPENAI_API_KEY no está configurada")
    messages = [message.model_dump(exclude_none=True) for message in payload.messages]
    try:
        return await assistant.complete_chat(messages)
    except assistant.AssistantError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc
