import os
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest

from luna_assistant.config import DEFAULT_MODEL, Settings, load_settings
from luna_assistant.dependencies import create_supabase_client, get_user_profile, resolve_user_id
from luna_assistant.exceptions import AuthenticationError


def _request(headers=None):
    return SimpleNamespace(headers=headers or {})


def test_load_settings_defaults():
    with patch.dict(os.environ, {}, clear=True):
        settings = load_settings()
    assert settings.model_name == DEFAULT_MODEL
    assert settings.model_timeout == 60.0
    assert settings.environment == "production"
    assert settings.cors_origins == ["http://localhost:3000"]
    assert settings.openai_api_key is None


def test_load_settings_from_environment():
    env = {
        "OPENAI_API_KEY": "sk-test",
        "LUNA_MODEL": "gpt-4.1",
        "LUNA_MODEL_TIMEOUT": "15",
        "NEXT_PUBLIC_APP_URL": "https://luna.example.com",
        "LUNA_ENV": "Development",
        "LUNA_REQUIRE_AUTH": "yes",
        "LUNA_LOG_LEVEL": "debug",
        "LUNA_CORS_ORIGINS": "https://a.example.com, https://b.example.com",
    }
    with patch.dict(os.environ, env, clear=True):
        settings = load_settings()
    assert settings.openai_api_key == "sk-test"
    assert settings.model_timeout == 15.0
    assert settings.app_url == "https://luna.example.com"
    assert settings.is_development
    assert settings.require_auth is True
    assert settings.log_level == "DEBUG"
    assert settings.cors_origins == ["https://a.example.com", "https://b.example.com"]


def test_supabase_client_is_optional():
    assert create_supabase_client(Settings()) is None
    with patch("luna_assistant.dependencies.create_client", return_value="client") as factory:
        client = create_supabase_client(Settings(supabase_url="https://x.supabase.co", supabase_service_key="key"))
    assert client == "client"
    factory.assert_called_once_with("https://x.supabase.co", "key")


def test_user_id_from_bearer_token():
    supabase = MagicMock()
    supabase.auth.get_user.return_value = SimpleNamespace(user=SimpleNamespace(id="user-1"))
    user_id = resolve_user_id(_request({"authorization": "Bearer tok"}), supabase, Settings())
    assert user_id == "user-1"
    supabase.auth.get_user.assert_called_once_with("tok")


def test_anonymous_allowed_unless_required():
    assert resolve_user_id(_request(), None, Settings()) is None
    with pytest.raises(AuthenticationError):
        resolve_user_id(_request(), None, Settings(require_auth=True))


def test_rejected_token_when_auth_required():
    supabase = MagicMock()
    supabase.auth.get_user.side_effect = Exception("jwt expired")
    assert resolve_user_id(_request({"authorization": "Bearer old"}), supabase, Settings()) is None
    with pytest.raises(AuthenticationError):
        resolve_user_id(_request({"authorization": "Bearer old"}), supabase, Settings(require_auth=True))


def test_user_profile_lookup():
    supabase = MagicMock()
    query = supabase.table.return_value.select.return_value.eq.return_value.limit.return_value
    query.execute.return_value = SimpleNamespace(data=[{"first_name": "Ada", "role": "teacher"}])

    assert get_user_profile(supabase, "user-1") == {"first_name": "Ada", "role": "teacher"}
    supabase.table.assert_called_with("profiles")
    assert get_user_profile(None, "user-1") is None
    assert get_user_profile(supabase, None) is None
