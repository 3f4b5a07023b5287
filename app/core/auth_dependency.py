"""
Identity resolution for bearer tokens issued by Supabase Auth.

Tokens are verified locally with the project's JWT secret when it is
configured; otherwise the Supabase auth API is asked who the token belongs
to. Invalid or anonymous tokens resolve to None ("no session") and never
raise; only an unreachable identity service raises StorageError.
"""
import logging
from functools import lru_cache
from typing import Optional

import httpx
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import jwt, JWTError
from supabase import AuthApiError, AuthError, Client, create_client
from supabase.lib.client_options import ClientOptions

from app.core import config
from app.core.errors import StorageError

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


def extract_bearer_token(authorization: Optional[str]) -> Optional[str]:
    """Return the token from an "Authorization: Bearer <token>" header value, if any."""
    if not authorization:
        return None
    scheme, _, token = authorization.strip().partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


@lru_cache
def get_supabase_client() -> Client:
    """Service-role Supabase client, created once per process."""
    return create_client(
        supabase_url=config.SUPABASE_URL,
        supabase_key=config.SUPABASE_SERVICE_ROLE_KEY,
        options=ClientOptions(auto_refresh_token=False, persist_session=False),
    )


class IdentityResolver:
    """Maps a bearer token to a stable user id."""

    def __init__(self, jwt_secret: Optional[str] = None, supabase_client: Optional[Client] = None):
        self.jwt_secret = jwt_secret if jwt_secret is not None else config.SUPABASE_JWT_SECRET
        self._supabase_client = supabase_client

    @property
    def supabase(self) -> Optional[Client]:
        if self._supabase_client is None and config.SUPABASE_URL and config.SUPABASE_SERVICE_ROLE_KEY:
            self._supabase_client = get_supabase_client()
        return self._supabase_client

    def resolve(self, token: str) -> Optional[str]:
        """
        Resolve a token to a user id.

        Returns:
            The user id, or None for an invalid/expired/anonymous token

        Raises:
            StorageError: identity service unavailable or not configured
        """
        if self.jwt_secret:
            return self._resolve_locally(token)
        return self._resolve_remotely(token)

    def _resolve_locally(self, token: str) -> Optional[str]:
        try:
            payload = jwt.decode(
                token,
                self.jwt_secret,
                algorithms=[config.ALGORITHM],
                audience=config.JWT_AUDIENCE,
            )
        except JWTError as e:
            logger.info(f"Bearer token rejected: {e}")
            return None

        # Supabase anon keys are JWTs too, but carry no subject
        user_id = payload.get("sub")
        if not user_id or payload.get("role") == "anon":
            return None
        return user_id

    def _resolve_remotely(self, token: str) -> Optional[str]:
        client = self.supabase
        if client is None:
            raise StorageError("Identity service not configured",
                               details="Set SUPABASE_JWT_SECRET or SUPABASE_URL/SUPABASE_SERVICE_ROLE_KEY")
        try:
            response = client.auth.get_user(token)
        except AuthApiError as e:
            if e.status is not None and 400 <= e.status < 500:
                logger.info(f"Bearer token rejected by Supabase: {e}")
                return None
            raise StorageError("Identity service unavailable", details=f"{type(e).__name__}: {e}")
        except (AuthError, httpx.HTTPError) as e:
            # AuthRetryableError, AuthUnknownError (non-JSON 5xx bodies) and transport failures
            raise StorageError("Identity service unavailable", details=f"{type(e).__name__}: {e}")

        if response is None or response.user is None:
            return None
        return response.user.id


def get_identity_resolver() -> IdentityResolver:
    """Identity resolver dependency."""
    return IdentityResolver()


def get_current_user_id(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    resolver: IdentityResolver = Depends(get_identity_resolver),
) -> str:
    """Current user id from the bearer token; 401 when there is no session."""
    if credentials is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing bearer token")

    try:
        user_id = resolver.resolve(credentials.credentials)
    except StorageError as e:
        logger.warning(f"Identity lookup failed: {e.details}")
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=e.message)

    if user_id is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")
    return user_id
