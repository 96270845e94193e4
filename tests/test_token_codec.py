import base64
import time

from conftest import build_jwt

from session_client.utils.redaction import mask_token, redact_body, redact_headers
from session_client.utils.token_codec import (
    INVALID_BASE64,
    INVALID_JSON,
    MISSING_SUBJECT,
    SEGMENT_COUNT,
    DecodeFailure,
    TokenClaims,
    decode_token,
    ensure_bearer,
    strip_bearer,
)


def test_decode_valid_token_with_and_without_bearer():
    exp = int(time.time()) + 600
    token = build_jwt({"sub": "user-123", "exp": exp})

    for candidate in (token, f"Bearer {token}"):
        claims = decode_token(candidate)
        assert isinstance(claims, TokenClaims)
        assert claims.subject == "user-123"
        assert claims.expires_at == float(exp)


def test_decode_wrong_segment_count():
    for bad in ("not-a-jwt", "a.b", "a.b.c.d", ""):
        result = decode_token(bad)
        assert isinstance(result, DecodeFailure)
        assert result.reason == SEGMENT_COUNT
        assert not result


def test_decode_invalid_base64_and_json():
    assert decode_token("h.abcde.s").reason == INVALID_BASE64

    not_json = base64.urlsafe_b64encode(b"hello world").decode().rstrip("=")
    assert decode_token(f"h.{not_json}.s").reason == INVALID_JSON

    array_payload = base64.urlsafe_b64encode(b"[1,2]").decode().rstrip("=")
    assert decode_token(f"h.{array_payload}.s").reason == INVALID_JSON


def test_decode_missing_or_blank_subject():
    assert decode_token(build_jwt({"exp": 1})).reason == MISSING_SUBJECT
    assert decode_token(build_jwt({"sub": "   "})).reason == MISSING_SUBJECT
    assert decode_token(build_jwt({"sub": 42})).reason == MISSING_SUBJECT


def test_claims_expiry_with_buffer():
    claims = TokenClaims(subject="u", expires_at=1_000.0)
    assert claims.is_expired(now=999.0) is False
    assert claims.is_expired(buffer_seconds=5, now=999.0) is True
    assert claims.is_expired(now=1_001.0) is True
    assert TokenClaims(subject="u").is_expired(buffer_seconds=10_000) is False


def test_bearer_helpers_are_idempotent():
    assert ensure_bearer("abc") == "Bearer abc"
    assert ensure_bearer(ensure_bearer("abc")) == "Bearer abc"
    assert strip_bearer("Bearer abc") == "abc"
    assert strip_bearer("abc") == "abc"


def test_mask_token_never_reveals_short_or_full_values():
    assert mask_token(None) == "<none>"
    assert mask_token("short") == "****"
    assert mask_token("Bearer abcdefghijklmnop") == "abcd****mnop"


def test_redaction_of_headers_and_body():
    headers = redact_headers({"Authorization": "Bearer abcdefghijklmnop", "Accept": "application/json"})
    assert headers["Authorization"] == "abcd****mnop"
    assert headers["Accept"] == "application/json"

    body = redact_body({"email": "a@b.c", "password": "hunter2", "refreshToken": "rt"})
    assert body == {"email": "a@b.c", "password": "********", "refreshToken": "********"}
