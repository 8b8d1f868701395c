"""Configuración central basada en variables de entorno."""

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Valores globales leídos desde `.env` o el entorno."""

    environment: str = "development"
    service_name: str = "wakai-backend"
    log_level: str | None = Field(
        default=None,
        description="Nivel de logging global (ej. debug, info, warning). Cuando no se define, usa un valor por ambiente.",
    )
    log_file_path: str | None = Field(
        default=None,
        description="Archivo principal de logs; sin valor sólo se escribe a stderr.",
    )
    request_log_skip_prefixes: tuple[str, ...] = Field(
        default=("/health", "/favicon", "/docs", "/openapi"),
        description="Prefijos de ruta para los que no se registrarán eventos de request.started/completed.",
    )
    supabase_url: str | None = Field(
        default=None,
        validation_alias=AliasChoices("WAKAI_SUPABASE_URL", "SUPABASE_URL"),
    )
    # Se aceptan los nombres de variable heredados del despliegue anterior
    supabase_key: str | None = Field(
        default=None,
        validation_alias=AliasChoices(
            "WAKAI_SUPABASE_KEY", "SUPABASE_KEY", "SUPABASE_SERVICE_ROLE"
        ),
    )
    supabase_timeout_seconds: float = 10.0
    conversations_table: str = "conversations"
    cases_table: str = "users"
    voice_summaries_table: str = "voice_summaries"
    timezone: str = Field(
        default="America/Santiago",
        description="Zona horaria IANA del centro; define 'hoy' para los recordatorios.",
    )
    openai_api_key: str | None = Field(
        default=None,
        validation_alias=AliasChoices("WAKAI_OPENAI_API_KEY", "OPENAI_API_KEY"),
    )
    openai_model: str = "gpt-4o"
    openai_temperature: float = 0.8
    openai_max_tokens: int = 1000
    telegram_api_url: str | None = Field(
        default=None,
        description="Endpoint del bot relay de Telegram que recibe {chatId, appointmentData}.",
    )
    whatsapp_lambda_url: str | None = Field(
        default=None,
        description="URL de la Lambda que despacha notificaciones de WhatsApp.",
    )
    elevenlabs_api_key: str | None = None
    elevenlabs_agent_id: str | None = None
    elevenlabs_agent_phone_id: str | None = None
    elevenlabs_outbound_url: str = "https://api.elevenlabs.io/v1/convai/twilio/outbound-call"
    center_name: str | None = Field(
        default=None,
        description="Nombre del centro de mediación; si falta se arma desde comuna/región.",
    )
    model_config = SettingsConfigDict(env_file=".env", env_prefix="WAKAI_", extra="allow")


settings = Settings()
