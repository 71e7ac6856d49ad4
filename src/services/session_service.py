"""Anonymous visitor session service."""

import secrets
from datetime import datetime, timedelta, timezone

from src.core.config import get_settings
from src.core.supabase import get_supabase_client
from src.models.session import Session


class SessionService:
    """Service for anonymous visitor sessions that own guest carts and orders."""

    TOKEN_LENGTH = 64  # Length of session token in characters

    def __init__(self) -> None:
        """Initialize session service with Supabase client."""
        self.client = get_supabase_client()
        self.settings = get_settings()

    def _generate_token(self) -> str:
        """Generate a cryptographically secure session token.

        Returns:
            str: A 64-character hex token.
        """
        return secrets.token_hex(self.TOKEN_LENGTH // 2)

    async def create_session(self) -> tuple[Session, str]:
        """Create a new session with a unique token.

        Returns:
            tuple: (session_data, session_token)
        """
        token = self._generate_token()
        expires_at = datetime.now(timezone.utc) + timedelta(days=self.settings.session_expiry_days)

        response = (
            self.client.table("sessions")
            .insert({"session_token": token, "expires_at": expires_at.isoformat()})
            .execute()
        )

        return response.data[0], token

    async def get_session_by_token(self, token: str) -> Session | None:
        """Get a session by its token.

        Args:
            token: The session token from cookie or header.

        Returns:
            dict | None: The session data or None if not found.
        """
        response = (
            self.client.table("sessions")
            .select("*")
            .eq("session_token", token)
            .maybe_single()
            .execute()
        )

        return response.data if response and response.data else None

    async def get_valid_session(self, token: str) -> Session | None:
        """Get a session if it exists, has not expired and has not been claimed.

        Args:
            token: The session token to validate.

        Returns:
            dict | None: The session data or None if it cannot be used.
        """
        session = await self.get_session_by_token(token)
        if not session:
            return None

        expires_at = session.get("expires_at")
        if expires_at:
            if isinstance(expires_at, str):
                expires_at = datetime.fromisoformat(expires_at.replace("Z", "+00:00"))
            if expires_at < datetime.now(timezone.utc):
                return None

        if session.get("claimed_by_profile_id"):
            return None

        return session
