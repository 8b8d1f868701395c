from __future__ import annotations

import pytest

from app.core.security import describe_secret, mask_secret
from app.services.reports import build_case_report
from scripts import check_config


def test_case_report_defaults_to_empty_strings() -> None:
    report = build_case_report({"caseNuc": "15"})
    assert report["nuc"] == "15"
    assert report["fechaHoraMediacion"] == ""
    assert report["solicitante"]["confirmacionAsistencia"] == ""
    assert report["solicitado"]["observacionesContacto"] == ""
    assert report["datosAdicionales"] == {}


def test_mask_secret() -> None:
    assert mask_secret(None) is None
    assert mask_secret("abc") == "***"
    assert mask_secret("sk-123456") == "sk***56"
    assert describe_secret(None) == "✗ no configurado"
    assert describe_secret("sk-123456") == "✓ sk***56"


def test_check_config_fails_without_supabase(
    monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    for name in ("WAKAI_SUPABASE_URL", "SUPABASE_URL", "WAKAI_SUPABASE_KEY", "SUPABASE_KEY"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.delenv("SUPABASE_SERVICE_ROLE", raising=False)
    monkeypatch.chdir("/")

    assert check_config.main([]) == 1
    captured = capsys.readouterr()
    assert "SUPABASE_KEY" in captured.out
    assert "supabase_url" in captured.err


def test_check_config_masks_secrets(
    monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    monkeypatch.setenv("SUPABASE_URL", "https://demo.supabase.co")
    monkeypatch.setenv("SUPABASE_KEY", "service-role-secret")
    monkeypatch.setenv("OPENAI_API_KEY", "sk-live-abcdef")

    assert check_config.main(["--json"]) == 0
    out = capsys.readouterr().out
    assert "service-role-secret" not in out
    assert "se***et" in out
