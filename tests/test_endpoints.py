import pytest

from session_client.endpoints import is_auth_endpoint, normalize_endpoint


@pytest.mark.parametrize(
    "path, expected",
    [
        ("/subscriptions", "/api/v1/subscriptions"),
        ("subscriptions", "/api/v1/subscriptions"),
        ("  /users/me  ", "/api/v1/users/me"),
        ("/v1/templates", "/api/v1/templates"),
        ("/auth/refresh", "/api/auth/refresh"),
        ("/auth", "/api/auth"),
        ("/api/v1/notifications", "/api/v1/notifications"),
        ("/api/auth/login", "/api/auth/login"),
        ("/api", "/api"),
        ("/templates?page=2&limit=5", "/api/v1/templates?page=2&limit=5"),
        ("/authors", "/api/v1/authors"),
        ("/apis", "/api/v1/apis"),
    ],
)
def test_normalize_endpoint(path, expected):
    assert normalize_endpoint(path) == expected


@pytest.mark.parametrize(
    "path",
    ["/subscriptions", "auth/login", "/v1/x", "/api/v1/y", "", "/notifications?page=1"],
)
def test_normalize_endpoint_is_idempotent(path):
    once = normalize_endpoint(path)
    assert normalize_endpoint(once) == once


def test_is_auth_endpoint():
    assert is_auth_endpoint("/auth/login")
    assert is_auth_endpoint("/api/auth/refresh")
    assert not is_auth_endpoint("/authors")
    assert not is_auth_endpoint("/subscriptions")
