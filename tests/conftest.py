"""Pytest configuration and fixtures."""

import os
from collections.abc import Generator
from datetime import datetime, timedelta, timezone
from typing import Any
from unittest.mock import MagicMock, patch

import pytest
from fastapi.testclient import TestClient

# Set test environment variables before importing application modules
os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("SUPABASE_URL", "https://test-project.supabase.co")
os.environ.setdefault("SUPABASE_SECRET_KEY", "test-secret-key")
os.environ.setdefault("SUPABASE_JWT_SECRET", "test-jwt-secret-with-at-least-32-bytes")
os.environ.setdefault("SUPABASE_SIGNING_KEY_JWK", "")
os.environ.setdefault("SESSION_COOKIE_SECURE", "false")
os.environ.setdefault("STRIPE_SECRET_KEY", "sk_test_stripe_secret_key")
os.environ.setdefault("STRIPE_WEBHOOK_SECRET", "whsec_test_webhook_secret")
os.environ.setdefault("FRONTEND_URL", "https://shop.example.com")

SESSION_ID = "550e8400-e29b-41d4-a716-446655440000"
SESSION_TOKEN = "a" * 64
PROFILE_ID = "770e8400-e29b-41d4-a716-446655440000"
USER_ID = "880e8400-e29b-41d4-a716-446655440000"


@pytest.fixture(scope="session")
def test_settings() -> Generator[Any, None, None]:
    """Provide test settings with cleared cache.

    Yields:
        Settings: Test configuration settings.
    """
    from src.core.config import get_settings

    get_settings.cache_clear()

    settings = get_settings()
    yield settings

    get_settings.cache_clear()


@pytest.fixture
def mock_supabase_client() -> Generator[MagicMock, None, None]:
    """Provide a mocked Supabase client.

    Yields:
        MagicMock: Mocked Supabase client for testing.
    """
    mock_client = MagicMock()

    mock_response = MagicMock()
    mock_response.data = []
    mock_client.table.return_value.select.return_value.limit.return_value.execute.return_value = (
        mock_response
    )

    with patch("src.core.supabase.get_supabase_client", return_value=mock_client):
        yield mock_client


@pytest.fixture
def client(mock_supabase_client: MagicMock) -> Generator[TestClient, None, None]:
    """Provide a test client for the FastAPI application.

    Args:
        mock_supabase_client: Mocked Supabase client fixture.

    Yields:
        TestClient: FastAPI test client.
    """
    from src.main import app

    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def valid_session() -> dict[str, Any]:
    """An anonymous session row that has not expired."""
    return {
        "id": SESSION_ID,
        "session_token": SESSION_TOKEN,
        "claimed_by_profile_id": None,
        "expires_at": (datetime.now(timezone.utc) + timedelta(days=30)).isoformat(),
    }


@pytest.fixture
def session_auth(valid_session: dict[str, Any]) -> Generator[MagicMock, None, None]:
    """Make requests carrying SESSION_TOKEN resolve to valid_session.

    Yields:
        MagicMock: The session service's Supabase client.
    """
    session_client = MagicMock()
    session_response = MagicMock()
    session_response.data = valid_session
    session_client.table.return_value.select.return_value.eq.return_value.maybe_single.return_value.execute.return_value = (
        session_response
    )

    with patch("src.services.session_service.get_supabase_client", return_value=session_client):
        yield session_client


@pytest.fixture
def user_auth() -> Generator[MagicMock, None, None]:
    """Make any bearer token resolve to USER_ID with profile PROFILE_ID.

    Yields:
        MagicMock: The patched decode_jwt.
    """
    from src.schemas.auth import TokenPayload

    payload = TokenPayload(
        sub=USER_ID,
        email="buyer@example.com",
        role="authenticated",
        exp=9999999999,
        iat=1700000000,
    )

    profile_service = MagicMock()

    async def get_or_create_profile(user_id: Any, email: Any = None) -> dict[str, Any]:
        return {"id": PROFILE_ID, "user_id": str(user_id), "loyalty_points": 0}

    profile_service.return_value.get_or_create_profile.side_effect = get_or_create_profile

    with patch("src.api.deps.decode_jwt", return_value=payload) as mock_decode, \
         patch("src.api.deps.ProfileService", profile_service):
        yield mock_decode
