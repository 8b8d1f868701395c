"""Helpers para manejar secretos de configuración sin exponerlos."""


def mask_secret(value: str | None) -> str | None:
    """Enmascara secretos para logging seguro."""
    if not value:
        return value
    if len(value) <= 4:
        return "***"
    return f"{value[:2]}***{value[-2:]}"


def describe_secret(value: str | None) -> str:
    """Texto legible para reportes de configuración (✓ / ✗ más máscara)."""
    if not value:
        return "✗ no configurado"
    return f"✓ {mask_secret(value)}"
