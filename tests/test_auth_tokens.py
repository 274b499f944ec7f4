from __future__ import annotations

from unittest.mock import patch

import pytest
from itsdangerous import SignatureExpired

from ahaar.services.access_control import Role
from ahaar.services.auth import (
    EmailTokenExpired,
    EmailTokenInvalid,
    create_access_token,
    create_email_token,
    create_refresh_token,
    decode_access_token,
    decode_refresh_token,
    hash_password,
    read_email_token,
    refresh_cookie_options,
    verification_link,
    verify_password,
)
from tests.fixtures_data import BRAND_A, principal


def test_password_hash_roundtrip_and_rejects_garbage_hash():
    hashed = hash_password("secret123")

    assert hashed.startswith("$2")
    assert verify_password("secret123", hashed) is True
    assert verify_password("secret124", hashed) is False
    assert verify_password("secret123", "not-a-bcrypt-hash") is False


def test_access_and_refresh_tokens_use_separate_secrets():
    who = principal("u-1", BRAND_A, Role.ADMIN)

    access = create_access_token(who)
    refresh = create_refresh_token(who)

    assert decode_access_token(access)["role"] == "admin"
    assert decode_refresh_token(refresh)["brand_id"] == BRAND_A
    with pytest.raises(ValueError):
        decode_access_token(refresh)
    with pytest.raises(ValueError):
        decode_refresh_token(access)


def test_access_token_carries_flat_claims_and_expiry():
    claims = decode_access_token(create_access_token(principal("u-1", BRAND_A, Role.REGULAR)))

    assert claims["user_id"] == "u-1"
    assert claims["sub"] == "u-1"
    assert claims["exp"] - claims["iat"] == 10 * 60


def test_email_token_outcomes():
    token = create_email_token("u-1")

    assert read_email_token(token) == "u-1"
    with pytest.raises(EmailTokenInvalid):
        read_email_token(token + "tampered")
    with patch("ahaar.services.auth.URLSafeTimedSerializer.loads", side_effect=SignatureExpired("expired")):
        with pytest.raises(EmailTokenExpired):
            read_email_token(token)


def test_verification_link_and_cookie_options():
    assert verification_link("tok").endswith("/api/v2/users/verify/tok")

    options = refresh_cookie_options()
    assert options["key"] == "refreshToken"
    assert options["httponly"] is True
    assert options["max_age"] == 7 * 24 * 60 * 60
