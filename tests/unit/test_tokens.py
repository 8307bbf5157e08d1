import json
import time

import jwt
import pytest
from jwt.utils import base64url_encode

from lldap_cli.core.lldap.tokens import decode_claims, is_token_expired
from tests.conftest import TOKEN_SECRET, make_token


def test_fresh_token_is_not_expired():
    assert is_token_expired(make_token(3600)) is False


def test_past_token_is_expired():
    assert is_token_expired(make_token(-10)) is True


def test_buffer_applies_before_real_expiry():
    now = 1_700_000_000
    token = jwt.encode({"exp": now + 30}, TOKEN_SECRET, algorithm="HS256")
    assert is_token_expired(token, buffer_seconds=60, now=now) is True
    assert is_token_expired(token, buffer_seconds=10, now=now) is False


def test_boundary_is_expired():
    now = 1_700_000_000
    token = jwt.encode({"exp": now + 60}, TOKEN_SECRET, algorithm="HS256")
    assert is_token_expired(token, buffer_seconds=60, now=now) is True


def test_signature_is_not_checked():
    token = jwt.encode({"exp": int(time.time()) + 3600}, "some-other-secret-key-of-enough-length", algorithm="HS256")
    assert is_token_expired(token) is False


def test_missing_exp_counts_as_valid():
    assert is_token_expired(make_token(None)) is False


@pytest.mark.parametrize("exp", ["soon", True, [1700000000]])
def test_non_numeric_exp_counts_as_expired(exp):
    token = jwt.encode({"exp": exp}, TOKEN_SECRET, algorithm="HS256")
    assert is_token_expired(token) is True


@pytest.mark.parametrize("token", ["", "not-a-jwt", "a.b", "a.b.c.d", "!!!.@@@.###"])
def test_malformed_tokens_count_as_expired(token):
    assert is_token_expired(token) is True


def test_decode_claims_returns_payload():
    assert decode_claims(make_token(60, role="admin"))["role"] == "admin"


def test_decode_claims_rejects_wrong_segment_count():
    with pytest.raises(jwt.DecodeError):
        decode_claims("only.two")


def _payload_segment(claims):
    return base64url_encode(json.dumps(claims).encode()).decode()


@pytest.mark.parametrize("header, signature", [
    (None, "!!!not-base64!!!"),
    ("opaque-header", "sig"),
])
def test_only_payload_segment_is_read(header, signature):
    far_future = int(time.time()) + 100 * 365 * 24 * 3600
    if header is None:
        header = make_token(60).split(".")[0]
    token = f"{header}.{_payload_segment({'exp': far_future})}.{signature}"
    assert is_token_expired(token) is False
    assert decode_claims(token)["exp"] == far_future


@pytest.mark.parametrize("payload", ["!!!", _payload_segment([1, 2]), _payload_segment("text")])
def test_decode_claims_rejects_non_object_payload(payload):
    with pytest.raises(jwt.DecodeError):
        decode_claims(f"header.{payload}.sig")
