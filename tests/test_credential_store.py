import json
from pathlib import Path

from conftest import token_for

from session_client.credential_store import (
    AUTHENTICATED_KEY,
    EMAIL_KEY,
    CredentialStore,
    JsonFileKeyValueStore,
    MemoryKeyValueStore,
)


def test_absent_keys_are_normal(store: CredentialStore):
    snapshot = store.snapshot()
    assert snapshot.access_token is None
    assert snapshot.refresh_token is None
    assert snapshot.user_id is None
    assert snapshot.authenticated is False
    assert snapshot.is_consistent


def test_store_tokens_prefixes_bearer_and_derives_user(store: CredentialStore):
    raw = token_for("user-42")

    credential = store.store_tokens(raw, "rt_1")

    assert credential.access_token == f"Bearer {raw}"
    assert credential.refresh_token == "rt_1"
    assert credential.user_id == "user-42"
    assert credential.authenticated is True
    assert store.get(AUTHENTICATED_KEY) == "true"


def test_store_tokens_keeps_refresh_token_and_user_when_not_returned(store: CredentialStore):
    store.refresh_token = "rt_old"
    store.user_id = "user-old"

    credential = store.store_tokens("opaque-token")

    assert credential.refresh_token == "rt_old"
    assert credential.user_id == "user-old"
    assert credential.access_token == "Bearer opaque-token"


def test_clear_all_preserves_email_and_legacy_keys_are_removed(store: CredentialStore):
    store.store_tokens(token_for("u1"), "rt")
    store.set(EMAIL_KEY, "someone@example.com")
    store.set("nifya_auth_token", "legacy")
    store.set("token_expired", "true")

    store.clear_all()

    assert store.snapshot().access_token is None
    assert store.refresh_token is None
    assert store.user_id is None
    assert store.authenticated is False
    assert store.get("nifya_auth_token") is None
    assert store.get("token_expired") is None
    assert store.get(EMAIL_KEY) == "someone@example.com"


def test_inconsistent_state_is_reported_not_raised():
    store = CredentialStore(MemoryKeyValueStore({AUTHENTICATED_KEY: "true"}))
    assert store.snapshot().is_consistent is False


def test_json_file_store_survives_restart(tmp_path: Path):
    path = tmp_path / "nested" / "session.json"

    first = CredentialStore(JsonFileKeyValueStore(path))
    first.store_tokens(token_for("persisted"), "rt_p")

    second = CredentialStore(JsonFileKeyValueStore(path))
    assert second.user_id == "persisted"
    assert second.refresh_token == "rt_p"
    assert second.authenticated is True

    second.clear_all()
    on_disk = json.loads(path.read_text(encoding="utf-8"))
    assert "refreshToken" not in on_disk


def test_json_file_store_ignores_corrupt_file(tmp_path: Path):
    path = tmp_path / "session.json"
    path.write_text("{not json", encoding="utf-8")

    backend = JsonFileKeyValueStore(path)

    assert backend.keys() == []
    backend.set("userId", "u")
    assert json.loads(path.read_text(encoding="utf-8")) == {"userId": "u"}
