"""Unit tests for access tokens and password hashing"""

import uuid
import jwt
import pytest
from datetime import timedelta
from loyalty_gateway.domain.exceptions import InvalidTokenError
from loyalty_gateway.infrastructure.security.passwords import check_password, hash_password
from loyalty_gateway.infrastructure.security.tokens import TokenService
from loyalty_gateway.utils.date_utils import utcnow


def test_token_round_trip():
    tokens = TokenService("secret", ttl_minutes=10)
    user_id = uuid.uuid4()

    assert tokens.resolve(tokens.issue(user_id)) == user_id


def test_token_signed_with_other_key_is_rejected():
    user_id = uuid.uuid4()
    token = TokenService("other-secret", ttl_minutes=10).issue(user_id)

    with pytest.raises(InvalidTokenError):
        TokenService("secret", ttl_minutes=10).resolve(token)


def test_expired_token_is_rejected():
    expired = jwt.encode(
        {"sub": str(uuid.uuid4()), "exp": utcnow() - timedelta(minutes=1)},
        "secret",
        algorithm="HS256",
    )

    with pytest.raises(InvalidTokenError, match="expired"):
        TokenService("secret", ttl_minutes=10).resolve(expired)


@pytest.mark.parametrize("sub", ["not-a-uuid", None])
def test_token_without_usable_subject_is_rejected(sub):
    claims = {"exp": utcnow() + timedelta(minutes=1)}
    if sub is not None:
        claims["sub"] = sub
    token = jwt.encode(claims, "secret", algorithm="HS256")

    with pytest.raises(InvalidTokenError):
        TokenService("secret", ttl_minutes=10).resolve(token)


def test_garbage_token_is_rejected():
    with pytest.raises(InvalidTokenError):
        TokenService("secret", ttl_minutes=10).resolve("not.a.jwt")


def test_empty_secret_is_refused():
    with pytest.raises(ValueError):
        TokenService("", ttl_minutes=10)


def test_password_hash_verifies():
    password_hash = hash_password("hunter2", rounds=4)

    assert password_hash != "hunter2"
    assert check_password("hunter2", password_hash)
    assert not check_password("hunter3", password_hash)


def test_check_password_against_non_bcrypt_hash():
    assert check_password("hunter2", "plain-text") is False
