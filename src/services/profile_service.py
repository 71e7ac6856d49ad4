"""Customer profile service."""

from uuid import UUID

from src.core.supabase import get_supabase_client
from src.models.profile import Profile, ProfileCreate


class ProfileService:
    """Service for customer profiles, which carry the loyalty balance."""

    def __init__(self) -> None:
        """Initialize profile service with Supabase client."""
        self.client = get_supabase_client()

    async def get_or_create_profile(
        self,
        user_id: UUID,
        email: str | None = None,
    ) -> Profile:
        """Get the profile of an auth user, creating it with a zero balance if missing.

        Args:
            user_id: The auth user ID.
            email: User's email address.

        Returns:
            Profile: The profile row.
        """
        response = (
            self.client.table("profiles")
            .select("*")
            .eq("user_id", str(user_id))
            .execute()
        )

        if response.data:
            return response.data[0]

        profile_data: ProfileCreate = {
            "user_id": str(user_id),
            "email": email,
            "display_name": email,
            "loyalty_points": 0,
        }

        response = (
            self.client.table("profiles")
            .insert(profile_data)
            .execute()
        )

        return response.data[0]
