"""
Unit tests for ShortLivedToken.
"""

from datetime import datetime, timedelta, timezone

from authsync.domain.token import ShortLivedToken, DEFAULT_TOKEN_TTL


NOW = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)


def test_token_times_from_claims(make_jwt):
    """Test issued/expiry times come from iat/exp."""
    token = ShortLivedToken.from_jwt(make_jwt(lifetime=120, issued_at=NOW))

    assert token.issued_at == NOW
    assert token.expires_at == NOW + timedelta(seconds=120)
    assert token.remaining(NOW) == 120


def test_token_from_api(make_jwt):
    """Test parsing a remote token object."""
    value = make_jwt(issued_at=NOW)
    token = ShortLivedToken.from_api({"object": "token", "jwt": value})

    assert token.value == value
    assert token.expires_at == NOW + timedelta(seconds=60)


def test_undecodable_token_gets_default_ttl():
    """Test a token without readable claims lives DEFAULT_TOKEN_TTL seconds."""
    token = ShortLivedToken.from_jwt("not-a-jwt", now=NOW)

    assert token.issued_at == NOW
    assert token.expires_at == NOW + timedelta(seconds=DEFAULT_TOKEN_TTL)


def test_needs_refresh_within_margin(make_jwt):
    """Test a token 30s from expiry needs refresh with a 60s margin."""
    token = ShortLivedToken.from_jwt(make_jwt(lifetime=30, issued_at=NOW))

    assert token.needs_refresh(60, NOW)
    assert not token.needs_refresh(10, NOW)
    assert not token.is_expired(NOW)
    assert token.is_expired(NOW + timedelta(seconds=30))


def test_repr_hides_value(make_jwt):
    """Test the token value never appears in repr."""
    value = make_jwt(issued_at=NOW)
    token = ShortLivedToken.from_jwt(value)

    assert value not in repr(token)
