#!/usr/bin/env python3
"""Muestra la configuración resuelta del backend sin exponer secretos."""

from __future__ import annotations

import argparse
import asyncio
import json
import sys

from app.core.config import Settings
from app.core.security import describe_secret
from app.repositories.cases import CasesRepository, CasesRepositoryError

REQUIRED = ("supabase_url", "supabase_key")


def _report(config: Settings) -> dict[str, str]:
    return {
        "environment": config.environment,
        "SUPABASE_URL": config.supabase_url or "✗ no configurado",
        "SUPABASE_KEY": describe_secret(config.supabase_key),
        "OPENAI_API_KEY": describe_secret(config.openai_api_key),
        "OPENAI_MODEL": config.openai_model,
        "TELEGRAM_API_URL": config.telegram_api_url or "✗ no configurado",
        "WHATSAPP_LAMBDA_URL": config.whatsapp_lambda_url or "✗ no configurado",
        "ELEVENLABS_API_KEY": describe_secret(config.elevenlabs_api_key),
        "ELEVENLABS_AGENT_ID": config.elevenlabs_agent_id or "✗ no configurado",
        "ELEVENLABS_AGENT_PHONE_ID": config.elevenlabs_agent_phone_id or "✗ no configurado",
        "TIMEZONE": config.timezone,
    }


def _missing(config: Settings) -> list[str]:
    return [name for name in REQUIRED if not getattr(config, name)]


async def _ping_supabase() -> int:
    chat_ids = await CasesRepository().fetch_chat_ids()
    return len(chat_ids)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--json", action="store_true", help="Imprime el reporte como JSON")
    parser.add_argument(
        "--ping",
        action="store_true",
        help="Consulta Supabase para verificar URL y credenciales",
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    config = Settings()
    report = _report(config)

    if args.json:
        print(json.dumps(report, ensure_ascii=False, indent=2))
    else:
        print("Configuración de wakai-backend")
        for key, value in report.items():
            print(f"  {key:<26} {value}")

    missing = _missing(config)
    if missing:
        print(f"Faltan variables obligatorias: {', '.join(missing)}", file=sys.stderr)
        return 1

    if args.ping:
        try:
            count = asyncio.run(_ping_supabase())
        except CasesRepositoryError as exc:
            print(f"Supabase no respondió correctamente: {exc}", file=sys.stderr)
            return 2
        print(f"Supabase OK ({count} chats)")
    return 0


if __name__ == "__main__":
    sys.exit(main())
