"""
Unit tests for bearer token identity resolution.
Tests local JWT verification and the Supabase auth fallback.
"""
import pytest
import httpx
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
from jose import jwt
from supabase import AuthApiError, AuthRetryableError, AuthUnknownError

from app.core import config
from app.core.auth_dependency import IdentityResolver, extract_bearer_token
from app.core.errors import StorageError


SECRET = "test-jwt-secret-with-enough-length"
USER_ID = "3f1c2d4e-0000-4000-8000-000000000001"


def make_token(secret=SECRET, expires_in=timedelta(hours=1), **claims):
    payload = {
        "sub": USER_ID,
        "aud": "authenticated",
        "role": "authenticated",
        "exp": datetime.now(timezone.utc) + expires_in,
    }
    payload.update(claims)
    return jwt.encode(payload, secret, algorithm=config.ALGORITHM)


class FakeAuth:
    def __init__(self, user_id=None, error=None):
        self.user_id = user_id
        self.error = error
        self.tokens = []

    def get_user(self, token):
        self.tokens.append(token)
        if self.error:
            raise self.error
        if self.user_id is None:
            return None
        return SimpleNamespace(user=SimpleNamespace(id=self.user_id))


def remote_resolver(**kwargs):
    auth = FakeAuth(**kwargs)
    return IdentityResolver(jwt_secret="", supabase_client=SimpleNamespace(auth=auth)), auth


@pytest.mark.parametrize("header, expected", [
    ("Bearer abc.def.ghi", "abc.def.ghi"),
    ("bearer abc", "abc"),
    ("  Bearer   abc  ", "abc"),
    ("Basic abc", None),
    ("Bearer ", None),
    ("", None),
    (None, None),
])
def test_extract_bearer_token(header, expected):
    """Test bearer token extraction from the Authorization header."""
    assert extract_bearer_token(header) == expected


def test_valid_token_resolves_to_subject():
    """Test a signed, unexpired token resolves to its sub claim."""
    resolver = IdentityResolver(jwt_secret=SECRET)

    assert resolver.resolve(make_token()) == USER_ID


def test_wrong_secret_is_no_session():
    """Test a token signed with another secret does not resolve."""
    resolver = IdentityResolver(jwt_secret=SECRET)

    assert resolver.resolve(make_token(secret="some-other-secret")) is None


def test_expired_token_is_no_session():
    """Test an expired token does not resolve."""
    resolver = IdentityResolver(jwt_secret=SECRET)

    assert resolver.resolve(make_token(expires_in=timedelta(hours=-1))) is None


def test_wrong_audience_is_no_session():
    """Test a token minted for another audience does not resolve."""
    resolver = IdentityResolver(jwt_secret=SECRET)

    assert resolver.resolve(make_token(aud="service")) is None


def test_anon_key_is_no_session():
    """Test the project's anon key is not treated as a user."""
    resolver = IdentityResolver(jwt_secret=SECRET)

    assert resolver.resolve(make_token(role="anon")) is None


def test_garbage_token_is_no_session():
    """Test a malformed token never raises."""
    resolver = IdentityResolver(jwt_secret=SECRET)

    assert resolver.resolve("not-a-jwt") is None


def test_remote_lookup_returns_user_id():
    """Test the Supabase fallback returns the user's id."""
    resolver, auth = remote_resolver(user_id=USER_ID)

    assert resolver.resolve("remote-token") == USER_ID
    assert auth.tokens == ["remote-token"]


def test_remote_lookup_without_user_is_no_session():
    """Test an empty auth response resolves to no session."""
    resolver, _ = remote_resolver()

    assert resolver.resolve("remote-token") is None


def test_remote_rejected_token_is_no_session():
    """Test an auth API rejection resolves to no session."""
    resolver, _ = remote_resolver(error=AuthApiError("invalid JWT", 401, None))

    assert resolver.resolve("remote-token") is None


@pytest.mark.parametrize("error", [
    httpx.ConnectError("connection refused"),
    AuthRetryableError("gateway timeout", 504),
    AuthUnknownError("<html>Internal Server Error</html>", None),
    AuthApiError("internal error", 500, None),
])
def test_remote_outage_raises_storage_error(error):
    """Test an unreachable identity service raises StorageError."""
    resolver, _ = remote_resolver(error=error)

    with pytest.raises(StorageError):
        resolver.resolve("remote-token")


def test_unconfigured_identity_raises_storage_error(monkeypatch):
    """Test a resolver with neither secret nor Supabase settings cannot resolve."""
    monkeypatch.setattr(config, "SUPABASE_URL", None)
    monkeypatch.setattr(config, "SUPABASE_SERVICE_ROLE_KEY", None)
    resolver = IdentityResolver(jwt_secret="")

    with pytest.raises(StorageError):
        resolver.resolve("any-token")
