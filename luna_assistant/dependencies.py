# luna_assistant/dependencies.py
import logging
from typing import Any, Dict, Optional

from fastapi import Request
from supabase import Client, create_client

from luna_assistant.config import Settings
from luna_assistant.exceptions import AuthenticationError, ConfigurationError

logger = logging.getLogger(__name__)


def create_supabase_client(settings: Settings) -> Client | None:
    """Optional client used for telemetry and profile lookups."""
    if not (settings.supabase_url and settings.supabase_service_key):
        logger.info("SUPABASE_URL/SUPABASE_SERVICE_KEY not set; telemetry and profiles disabled.")
        return None
    try:
        client = create_client(settings.supabase_url, settings.supabase_service_key)
    except Exception as e:  # noqa: BLE001
        logger.error("Failed to initialize Supabase client: %s", e)
        return None
    logger.info("Supabase client initialized.")
    return client


def get_orchestrator(request: Request):
    """The process-wide orchestrator; refuses every request if startup failed."""
    orchestrator = getattr(request.app.state, "orchestrator", None)
    if orchestrator is None:
        reason = getattr(request.app.state, "startup_error", None) or "Assistant is not initialized."
        raise ConfigurationError(reason)
    return orchestrator


def resolve_user_id(request: Request, supabase: Client | None, settings: Settings) -> Optional[str]:
    """User id from a bearer token, verified with Supabase auth when available."""
    header = request.headers.get("authorization", "")
    token = header[7:].strip() if header.lower().startswith("bearer ") else None
    if not token or supabase is None:
        if settings.require_auth:
            raise AuthenticationError("Authentication required")
        return None
    try:
        res = supabase.auth.get_user(token)
    except Exception as e:  # noqa: BLE001
        logger.warning("Token verification failed: %s", e)
        if settings.require_auth:
            raise AuthenticationError("Invalid or expired session") from e
        return None
    user = getattr(res, "user", None)
    if user is None and settings.require_auth:
        raise AuthenticationError("Invalid or expired session")
    return str(user.id) if user else None


def get_user_profile(supabase: Client | None, user_id: Optional[str]) -> Optional[Dict[str, Any]]:
    """First name and role for the personal-context prompt block."""
    if supabase is None or not user_id:
        return None
    try:
        res = supabase.table("profiles").select("first_name, role").eq("user_id", user_id).limit(1).execute()
    except Exception as e:  # noqa: BLE001
        logger.warning("Profile lookup failed for %s: %s", user_id, e)
        return None
    return res.data[0] if res.data else None
