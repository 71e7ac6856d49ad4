"""FastAPI dependency injection functions."""

from dataclasses import dataclass
from typing import Annotated
from uuid import UUID

from fastapi import Depends, Header, HTTPException, Request, Response, status

from src.api.middleware.auth import AuthError, AuthErrorCode, decode_jwt
from src.api.middleware.error_handler import AuthorizationError
from src.core.config import get_settings
from src.schemas.auth import UserContext
from src.services.profile_service import ProfileService
from src.services.session_service import SessionService


def get_session_cookie_config() -> dict:
    """Get session cookie configuration from settings."""
    settings = get_settings()
    # SameSite=None requires Secure=True, so local development falls back to Lax
    samesite = "none" if settings.session_cookie_secure else "lax"
    return {
        "key": settings.session_cookie_name,
        "max_age": settings.session_cookie_max_age,
        "httponly": True,
        "secure": settings.session_cookie_secure,
        "samesite": samesite,
        "path": "/",
    }


@dataclass
class SessionContext:
    """Context for an anonymous visitor session."""

    session_id: UUID
    session_token: str


@dataclass
class AuthContext:
    """Context for a signed-in customer or an anonymous session.

    Either user or session will be set, not both.
    """

    user: UserContext | None = None
    session: SessionContext | None = None

    @property
    def is_authenticated(self) -> bool:
        """Check if this is a signed-in customer (vs anonymous session)."""
        return self.user is not None

    @property
    def user_id(self) -> UUID | None:
        """Get the user ID if authenticated."""
        return self.user.user_id if self.user else None

    @property
    def session_id(self) -> UUID | None:
        """Get the session ID if anonymous."""
        return self.session.session_id if self.session else None


def _bearer_token(authorization: str | None) -> str | None:
    if not authorization:
        return None
    parts = authorization.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        return None
    return parts[1]


async def get_current_user(
    authorization: Annotated[str, Header(description="Bearer token")] = "",
) -> UserContext:
    """Extract and validate the current user from the Authorization header.

    Args:
        authorization: The Authorization header value (Bearer token).

    Returns:
        UserContext: The authenticated user's context.

    Raises:
        HTTPException: 401 if token is missing, invalid, or expired.
    """
    if not authorization:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authorization header required",
            headers={"WWW-Authenticate": "Bearer"},
        )

    token = _bearer_token(authorization)
    if token is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authorization header format. Expected: Bearer <token>",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        payload = decode_jwt(token)
        return payload.to_user_context()

    except AuthError as e:
        if e.code == AuthErrorCode.TOKEN_EXPIRED:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Token has expired",
                headers={"WWW-Authenticate": "Bearer"},
            ) from e

        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=e.message,
            headers={"WWW-Authenticate": "Bearer"},
        ) from e


async def require_admin(user: Annotated[UserContext, Depends(get_current_user)]) -> UserContext:
    """Allow only back-office users.

    Raises:
        AuthorizationError: 403 if the user has no admin role.
    """
    if not user.is_admin:
        raise AuthorizationError("Admin role required")
    return user


# Type aliases for cleaner dependency injection
CurrentUser = Annotated[UserContext, Depends(get_current_user)]
AdminUser = Annotated[UserContext, Depends(require_admin)]


# Cookie utility functions


def get_session_token(request: Request) -> str | None:
    """Extract session token from X-Session-Token header or cookie.

    The header wins, since it works when third-party cookies are blocked.

    Args:
        request: FastAPI request object.

    Returns:
        str | None: The session token or None if not present.
    """
    header_token = request.headers.get("x-session-token")
    if header_token:
        return header_token

    config = get_session_cookie_config()
    return request.cookies.get(config["key"])


def set_session_cookie(response: Response, token: str) -> None:
    """Set session cookie on response.

    Args:
        response: FastAPI response object.
        token: The session token to set.
    """
    config = get_session_cookie_config()
    response.set_cookie(
        key=config["key"],
        value=token,
        max_age=config["max_age"],
        httponly=config["httponly"],
        secure=config["secure"],
        samesite=config["samesite"],
        path=config["path"],
    )


# Dual authentication dependency


async def _resolve_auth(request: Request, authorization: str | None) -> AuthContext | None:
    token = _bearer_token(authorization)
    if token:
        try:
            payload = decode_jwt(token)
            return AuthContext(user=payload.to_user_context())
        except AuthError:
            # Invalid JWT - fall through to session handling
            pass

    session_token = get_session_token(request)
    if session_token:
        session = await SessionService().get_valid_session(session_token)
        if session:
            return AuthContext(
                session=SessionContext(
                    session_id=UUID(session["id"]),
                    session_token=session_token,
                )
            )

    return None


async def get_current_user_or_session(
    request: Request,
    response: Response,
    authorization: Annotated[str | None, Header()] = None,
) -> AuthContext:
    """Get a signed-in customer or an anonymous session.

    If neither is present, a new session is created and its token is set
    as a cookie and echoed in the X-Session-Token response header.

    Args:
        request: FastAPI request object.
        response: FastAPI response object.
        authorization: Optional Authorization header.

    Returns:
        AuthContext: Context containing either user or session.
    """
    auth = await _resolve_auth(request, authorization)
    if auth:
        return auth

    session_data, new_token = await SessionService().create_session()
    set_session_cookie(response, new_token)
    response.headers["x-session-token"] = new_token

    return AuthContext(
        session=SessionContext(
            session_id=UUID(session_data["id"]),
            session_token=new_token,
        )
    )


async def get_required_user_or_session(
    request: Request,
    authorization: Annotated[str | None, Header()] = None,
) -> AuthContext:
    """Get a signed-in customer or an existing session (no auto-create).

    Raises:
        HTTPException: 401 if no valid authentication is present.
    """
    auth = await _resolve_auth(request, authorization)
    if auth:
        return auth

    raise HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Authentication required",
    )


# Type aliases for dual auth
DualAuth = Annotated[AuthContext, Depends(get_current_user_or_session)]
RequiredDualAuth = Annotated[AuthContext, Depends(get_required_user_or_session)]


async def get_profile_id(auth: AuthContext) -> UUID | None:
    """Get the profile ID of a signed-in customer, creating the profile if needed.

    Returns:
        UUID | None: Profile ID, or None for anonymous sessions.
    """
    if not auth.is_authenticated or not auth.user:
        return None
    profile = await ProfileService().get_or_create_profile(auth.user.user_id, auth.user.email)
    return UUID(profile["id"])
