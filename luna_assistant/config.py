# luna_assistant/config.py
"""Process configuration, read once from the environment (and a .env file)."""
import logging
import os
import sys
from typing import List, Literal, Optional

from dotenv import load_dotenv
from loguru import logger as _loguru
from pydantic import BaseModel, ConfigDict, Field

DEFAULT_MODEL = "gpt-4.1-mini"


class Settings(BaseModel):
    model_config = ConfigDict(frozen=True)

    openai_api_key: Optional[str] = None
    model_name: str = DEFAULT_MODEL
    temperature: float = 0.7
    model_timeout: float = Field(60.0, gt=0)
    backend_timeout: float = Field(30.0, gt=0)
    app_url: Optional[str] = None
    vercel_url: Optional[str] = None
    environment: Literal["development", "production"] = "production"
    supabase_url: Optional[str] = None
    supabase_service_key: Optional[str] = None
    require_auth: bool = False
    log_level: str = "INFO"
    cors_origins: List[str] = Field(default_factory=lambda: ["http://localhost:3000"])

    @property
    def is_development(self) -> bool:
        return self.environment == "development"


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def load_settings() -> Settings:
    """Build Settings from os.environ after loading .env."""
    load_dotenv()
    env = os.environ
    origins = [o.strip() for o in env.get("LUNA_CORS_ORIGINS", "").split(",") if o.strip()]
    values = {
        "openai_api_key": env.get("OPENAI_API_KEY") or None,
        "model_name": env.get("LUNA_MODEL", DEFAULT_MODEL),
        "temperature": float(env.get("LUNA_TEMPERATURE", "0.7")),
        "model_timeout": float(env.get("LUNA_MODEL_TIMEOUT", "60")),
        "backend_timeout": float(env.get("LUNA_BACKEND_TIMEOUT", "30")),
        "app_url": env.get("LUNA_APP_URL") or env.get("NEXT_PUBLIC_APP_URL") or None,
        "vercel_url": env.get("VERCEL_URL") or None,
        "environment": "development" if env.get("LUNA_ENV", "").lower() == "development" else "production",
        "supabase_url": env.get("SUPABASE_URL") or None,
        "supabase_service_key": env.get("SUPABASE_SERVICE_KEY") or None,
        "require_auth": _env_bool("LUNA_REQUIRE_AUTH"),
        "log_level": env.get("LUNA_LOG_LEVEL", "INFO").upper(),
    }
    if origins:
        values["cors_origins"] = origins
    return Settings(**values)


def configure_logging(settings: Settings) -> None:
    """Apply the configured level to stdlib logging and loguru."""
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    _loguru.remove()
    _loguru.add(sys.stderr, level=settings.log_level)
