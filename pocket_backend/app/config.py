# pocket_backend/app/config.py
from __future__ import annotations

import json
from typing import List

from pydantic import Field, field_validator, model_validator
from pydantic.functional_validators import BeforeValidator
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing_extensions import Annotated

from .errors import ConfigurationError


def _clean_str(v: str | None) -> str | None:
    if v is None:
        return None
    s = str(v).strip().strip('"').strip("'").rstrip("\r")
    return s


def _to_bool(v) -> bool:
    if isinstance(v, bool):
        return v
    s = str(v or "").strip().strip('"').strip("'").strip()  # срежем пробелы/кавычки/CR
    s = s.lower().rstrip("\r")
    if s in {"1", "true", "yes", "on"}:
        return True
    if s in {"0", "false", "no", "off", ""}:
        return False
    return bool(s)


def parse_cors_env(v) -> List[str]:
    if v is None or v == "":
        return ["*"]
    if isinstance(v, list):
        return v
    s = str(v).strip()
    if s.startswith("["):
        try:
            return [str(x).strip() for x in json.loads(s)]
        except json.JSONDecodeError:
            pass
    return [x.strip() for x in s.split(",") if x.strip()]


REQUIRED_KEYS = ("AUTH_JWT_SECRET", "SERVICE_ROLE_KEY")


class Settings(BaseSettings):
    """
    Конфиг сервиса синхронизации интервью.

    Создаётся один раз в ``create_app`` и передаётся явно во все компоненты
    (Database, TavusClient, очередь ингеста, скоринг).

    - DATABASE_URL либо DB_HOST/DB_PORT/DB_NAME/DB_USER/DB_PASSWORD
    - AUTH_JWT_SECRET: секрет для проверки пользовательских JWT (обязателен)
    - SERVICE_ROLE_KEY: ключ сервисного принципала для вебхуков и ингеста (обязателен)
    - TAVUS_*: доступ к провайдеру видео-интервью
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="",
        case_sensitive=False,
        extra="ignore",
    )

    # --- БД ---
    DB_HOST: Annotated[str, BeforeValidator(_clean_str)] = "localhost"
    DB_PORT: int = 5432
    DB_NAME: Annotated[str, BeforeValidator(_clean_str)] = "pocket_interview"
    DB_USER: Annotated[str, BeforeValidator(_clean_str)] = "pocket"
    DB_PASSWORD: Annotated[str, BeforeValidator(_clean_str)] = "pocket"
    DATABASE_URL: str | None = None

    DB_RETRY_ATTEMPTS: int = Field(default=3, ge=1)
    DB_RETRY_DELAY_SECONDS: float = Field(default=0.5, ge=0)

    DEBUG: Annotated[bool, BeforeValidator(_to_bool)] = False
    LOG_LEVEL: str = Field(default="INFO")
    CORS_ALLOW_ORIGINS: Annotated[List[str] | str, BeforeValidator(parse_cors_env)] = ["*"]

    # --- доступ ---
    AUTH_JWT_SECRET: Annotated[str | None, BeforeValidator(_clean_str)] = None
    AUTH_JWT_AUDIENCE: str = Field(default="authenticated")
    AUTH_JWT_ALGORITHM: str = Field(default="HS256")
    SERVICE_ROLE_KEY: Annotated[str | None, BeforeValidator(_clean_str)] = None

    # --- провайдер видео-интервью ---
    TAVUS_API_KEY: Annotated[str | None, BeforeValidator(_clean_str)] = None
    TAVUS_BASE_URL: str = Field(default="https://tavusapi.com/v2")
    TAVUS_PERSONA_TECHNICAL: str = Field(default="")
    TAVUS_PERSONA_BEHAVIORAL: str = Field(default="")
    PUBLIC_BASE_URL: str = Field(default="http://localhost:8000")
    REQUEST_TIMEOUT_SECONDS: float = Field(default=30.0, gt=0)

    # --- скоринг ---
    OPENAI_API_KEY: Annotated[str | None, BeforeValidator(_clean_str)] = None
    OPENAI_MODEL: str = Field(default="gpt-4o-mini")

    # --- очередь ингеста ---
    INGEST_MAX_ATTEMPTS: int = Field(default=8, ge=1)
    INGEST_RETRY_BASE_SECONDS: float = Field(default=5.0, gt=0)
    INGEST_RETRY_MAX_SECONDS: float = Field(default=600.0, gt=0)

    @property
    def db_url(self) -> str:
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return (
            f"postgresql+psycopg://{self.DB_USER}:{self.DB_PASSWORD}"
            f"@{self.DB_HOST}:{self.DB_PORT}/{self.DB_NAME}"
        )

    @property
    def webhook_url(self) -> str:
        base = self.PUBLIC_BASE_URL.rstrip("/")
        return f"{base}/api/webhooks/tavus?token={self.SERVICE_ROLE_KEY}"

    @field_validator("DATABASE_URL", mode="before")
    @classmethod
    def _normalize_db_url(cls, v: str | None) -> str | None:
        # если указали "postgresql://" без драйвера: допишем psycopg
        if isinstance(v, str) and v.startswith("postgresql://"):
            return "postgresql+psycopg://" + v[len("postgresql://"):]
        return v

    @field_validator("LOG_LEVEL", mode="before")
    @classmethod
    def _normalize_log_level(cls, v: str | None) -> str:
        return (str(v or "INFO")).strip().upper()

    @model_validator(mode="after")
    def _require_keys(self) -> "Settings":
        missing = [key for key in REQUIRED_KEYS if not getattr(self, key)]
        if missing:
            raise ConfigurationError(f"Missing required settings: {', '.join(missing)}")
        return self

    def persona_for(self, category: str) -> str:
        if category == "behavioral":
            return self.TAVUS_PERSONA_BEHAVIORAL
        return self.TAVUS_PERSONA_TECHNICAL


def load_settings(**overrides) -> Settings:
    """Читает окружение/.env и валидирует обязательные ключи."""
    return Settings(**overrides)
