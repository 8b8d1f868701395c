"""Fixtures compartidas para las pruebas."""

from __future__ import annotations

from datetime import datetime
from types import SimpleNamespace
from typing import Any, Callable

import httpx
import pytest
from httpx import ASGITransport, AsyncClient

from app.api.deps import get_cases_repository
from app.main import app
from app.repositories.cases import CasesRepositoryError


class StubCasesRepository:
    """Repositorio en memoria con la misma interfaz que `CasesRepository`."""

    def __init__(self) -> None:
        self.conversations: list[dict[str, Any]] = []
        self.cases: list[dict[str, Any]] = []
        self.voice_summaries: list[dict[str, Any]] = []
        self.fail = False
        self.last_window: tuple[datetime, datetime] | None = None

    def _check(self) -> None:
        if self.fail:
            raise CasesRepositoryError("Supabase respondió 500: boom")

    async def fetch_conversations(self, *, case_nuc: str | None = None) -> list[dict[str, Any]]:
        self._check()
        if case_nuc is None:
            return list(self.conversations)
        return [row for row in self.conversations if str(row.get("caseNuc")) == case_nuc]

    async def fetch_chat_ids(self) -> list[str]:
        self._check()
        seen: dict[str, None] = {}
        for row in self.conversations:
            if row.get("chatId"):
                seen.setdefault(str(row["chatId"]), None)
        return list(seen)

    async def fetch_conversations_by_chat(self, *, chat_id: str) -> list[dict[str, Any]]:
        self._check()
        return [row for row in self.conversations if row.get("chatId") == chat_id]

    async def fetch_cases(self) -> list[dict[str, Any]]:
        self._check()
        return list(self.cases)

    async def fetch_case(self, *, case_nuc: str) -> dict[str, Any] | None:
        self._check()
        for row in self.cases:
            if str(row.get("caseNuc")) == case_nuc:
                return row
        return None

    async def fetch_cases_between(self, *, start: datetime, end: datetime) -> list[dict[str, Any]]:
        self._check()
        self.last_window = (start, end)
        return list(self.cases)

    async def insert_voice_summary(self, *, row: dict[str, Any]) -> dict[str, Any]:
        self._check()
        self.voice_summaries.append(row)
        return {"id": len(self.voice_summaries), **row}


@pytest.fixture(name="async_client")
async def fixture_async_client() -> AsyncClient:
    """Retorna un cliente asíncrono contra la app principal utilizando ASGITransport."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture(name="stub_repo")
def fixture_stub_repo() -> StubCasesRepository:
    """Reemplaza el repositorio de casos de las rutas por uno en memoria."""
    repo = StubCasesRepository()
    app.dependency_overrides[get_cases_repository] = lambda: repo
    yield repo
    app.dependency_overrides.pop(get_cases_repository, None)


@pytest.fixture(name="mock_httpx")
def fixture_mock_httpx(
    monkeypatch: pytest.MonkeyPatch,
) -> Callable[[str, Callable[[httpx.Request], httpx.Response]], None]:
    """Redirige el `httpx` de un módulo a un `MockTransport` con el handler dado."""
    real_client = httpx.AsyncClient

    def install(module_path: str, handler: Callable[[httpx.Request], httpx.Response]) -> None:
        def factory(*args: Any, **kwargs: Any) -> httpx.AsyncClient:
            kwargs["transport"] = httpx.MockTransport(handler)
            return real_client(*args, **kwargs)

        fake = SimpleNamespace(
            AsyncClient=factory, RequestError=httpx.RequestError, Response=httpx.Response
        )
        monkeypatch.setattr(f"{module_path}.httpx", fake)

    return install
