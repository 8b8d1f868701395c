"""Repositorio de casos y conversaciones de mediación vía Supabase REST."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any

import httpx

from app.core.config import settings
from app.core.logging import get_logger

logger = get_logger(__name__)

CONVERSATION_COLUMNS = "caseNuc,source,userType,conversation,created_at,chatId"
REMINDER_COLUMNS = (
    "caseNuc,applicantFullName,respondentFullName,sessionDate,centerAddress,"
    "applicantMobile,respondentMobile"
)


class CasesRepositoryError(RuntimeError):
    """Errores derivados de llamadas a Supabase para casos y conversaciones."""


@dataclass(slots=True)
class CasesRepository:
    """Capa mínima de lectura sobre PostgREST para el panel de mediación."""

    _base_url: str
    _api_key: str
    _timeout: float

    def __init__(self) -> None:
        if not settings.supabase_url or not settings.supabase_key:
            raise CasesRepositoryError("SUPABASE_URL y SUPABASE_KEY deben estar configurados")
        self._base_url = settings.supabase_url.rstrip("/")
        self._api_key = settings.supabase_key
        self._timeout = settings.supabase_timeout_seconds

    async def fetch_conversations(self, *, case_nuc: str | None = None) -> list[dict[str, Any]]:
        """Registros de conversación, opcionalmente filtrados por NUC."""
        params = {"select": CONVERSATION_COLUMNS, "order": "created_at.desc"}
        if case_nuc is not None:
            params["caseNuc"] = f"eq.{case_nuc}"
        response = await self._request(
            "GET", f"/rest/v1/{settings.conversations_table}", params=params
        )
        return self._json_list(response)

    async def fetch_chat_ids(self) -> list[str]:
        params = {"select": "chatId", "order": "chatId.asc"}
        response = await self._request(
            "GET", f"/rest/v1/{settings.conversations_table}", params=params
        )
        seen: dict[str, None] = {}
        for row in self._json_list(response):
            chat_id = row.get("chatId")
            if chat_id:
                seen.setdefault(str(chat_id), None)
        return list(seen)

    async def fetch_conversations_by_chat(self, *, chat_id: str) -> list[dict[str, Any]]:
        params = {
            "select": CONVERSATION_COLUMNS,
            "chatId": f"eq.{chat_id}",
            "order": "created_at.asc",
        }
        response = await self._request(
            "GET", f"/rest/v1/{settings.conversations_table}", params=params
        )
        return self._json_list(response)

    async def fetch_cases(self) -> list[dict[str, Any]]:
        params = {"select": "*", "order": "caseNuc.asc"}
        response = await self._request("GET", f"/rest/v1/{settings.cases_table}", params=params)
        return self._json_list(response)

    async def fetch_case(self, *, case_nuc: str) -> dict[str, Any] | None:
        params = {"select": "*", "caseNuc": f"eq.{case_nuc}", "limit": "1"}
        response = await self._request("GET", f"/rest/v1/{settings.cases_table}", params=params)
        rows = self._json_list(response)
        return rows[0] if rows else None

    async def fetch_cases_between(
        self, *, start: datetime, end: datetime
    ) -> list[dict[str, Any]]:
        """Casos con sesión agendada en el rango [start, end)."""
        params = [
            ("select", REMINDER_COLUMNS),
            ("sessionDate", f"gte.{start.isoformat()}"),
            ("sessionDate", f"lt.{end.isoformat()}"),
            ("order", "sessionDate.asc"),
        ]
        response = await self._request("GET", f"/rest/v1/{settings.cases_table}", params=params)
        return self._json_list(response)

    async def insert_voice_summary(self, *, row: dict[str, Any]) -> dict[str, Any]:
        response = await self._request(
            "POST",
            f"/rest/v1/{settings.voice_summaries_table}",
            json=[row],
            prefer="return=representation",
        )
        rows = self._json_list(response)
        if not rows:
            raise CasesRepositoryError("Supabase no devolvió el resumen de voz creado")
        return rows[0]

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: Any = None,
        json: Any = None,
        prefer: str | None = None,
    ) -> httpx.Response:
        url = f"{self._base_url}{path}"
        headers = {
            "Accept": "application/json",
            "apikey": self._api_key,
            "Authorization": f"Bearer {self._api_key}",
        }
        if prefer:
            headers["Prefer"] = prefer
        if json is not None:
            headers["Content-Type"] = "application/json"
        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                response = await client.request(
                    method, url, params=params, json=json, headers=headers
                )
        except httpx.RequestError as exc:
            logger.exception("supabase.request_failed", extra={"path": path, "error": str(exc)})
            raise CasesRepositoryError(f"Error al conectar a Supabase: {exc}") from exc
        if response.status_code >= 400:
            logger.error(
                "supabase.response_error",
                extra={"path": path, "status": response.status_code, "body": response.text},
            )
            raise CasesRepositoryError(
                f"Supabase respondió {response.status_code}: {response.text}"
            )
        return response

    @staticmethod
    def _json_list(response: httpx.Response) -> list[dict[str, Any]]:
        payload = response.json() or []
        if not isinstance(payload, list):
            raise CasesRepositoryError("Respuesta inesperada de Supabase")
        return [row for row in payload if isinstance(row, dict)]
