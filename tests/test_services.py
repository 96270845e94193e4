import json

import httpx
import pytest
import respx
from conftest import no_sleep, token_for

from session_client.credential_store import MemoryKeyValueStore
from session_client.services import (
    NotificationService,
    SubscriptionService,
    TemplateService,
    coerce_entity_type,
)
from session_client.session import SessionClient


def _client(settings, http):
    client = SessionClient(settings=settings, backend=MemoryKeyValueStore(), http_client=http, sleep=no_sleep)
    client.store.store_tokens(token_for("user-1"), "rt_1")
    return client


def test_coerce_entity_type():
    assert coerce_entity_type({"id": "n1"})["entity_type"] == ""
    assert coerce_entity_type({"id": "n1", "entity_type": None})["entity_type"] == ""
    assert coerce_entity_type({"id": "n1", "entity_type": 7})["entity_type"] == "7"
    already_string = {"id": "n1", "entity_type": "boe:document"}
    assert coerce_entity_type(already_string) is already_string


@pytest.mark.asyncio
async def test_notification_list_is_filtered_and_coerced(settings):
    body = {
        "data": {
            "notifications": [
                {"id": "n1", "title": "New entry", "entity_type": None},
                {"bogus": True},
                {"id": "n2", "title": "Another", "entity_type": 3},
            ],
            "pagination": {"page": 1, "limit": 10, "total": 2},
        }
    }

    with respx.mock() as router:
        route = router.route(method="GET", path="/api/v1/notifications").mock(
            return_value=httpx.Response(200, json=body)
        )
        async with httpx.AsyncClient() as http:
            result = await NotificationService(_client(settings, http)).list(page=1, limit=10)

    request = route.calls.last.request
    assert request.url.params["page"] == "1"
    assert request.url.params["limit"] == "10"
    assert [n["id"] for n in result.data] == ["n1", "n2"]
    assert [n["entity_type"] for n in result.data] == ["", "3"]
    assert result.meta["pagination"]["total"] == 2


@pytest.mark.asyncio
async def test_mark_as_read_sends_patch(settings):
    with respx.mock() as router:
        route = router.patch(f"{settings.api_base_url}/api/v1/notifications/n1").mock(
            return_value=httpx.Response(200, json={"notification": {"id": "n1", "title": "t", "read": True}})
        )
        async with httpx.AsyncClient() as http:
            result = await NotificationService(_client(settings, http)).mark_as_read("n1")

    assert json.loads(route.calls.last.request.content) == {"read": True}
    assert result.data["read"] is True
    assert result.data["entity_type"] == ""


@pytest.mark.asyncio
async def test_subscription_crud_paths(settings):
    base = f"{settings.api_base_url}/api/v1/subscriptions"
    subscription = {"id": "s1", "name": "BOE daily", "active": True}

    with respx.mock() as router:
        router.get(base).mock(return_value=httpx.Response(200, json={"status": "success", "data": [subscription]}))
        router.post(base).mock(return_value=httpx.Response(201, json={"subscription": subscription}))
        toggle = router.patch(f"{base}/s1/toggle").mock(
            return_value=httpx.Response(200, json={"data": {"subscription": {**subscription, "active": False}}})
        )
        router.delete(f"{base}/s1").mock(return_value=httpx.Response(204))

        async with httpx.AsyncClient() as http:
            service = SubscriptionService(_client(settings, http))
            listed = await service.list()
            created = await service.create({"name": "BOE daily"})
            toggled = await service.toggle("s1", active=False)
            deleted = await service.delete("s1")

    assert listed.data == [subscription]
    assert created.status == 201
    assert created.data == subscription
    assert json.loads(toggle.calls.last.request.content) == {"active": False}
    assert toggled.data["active"] is False
    assert deleted.ok and deleted.data is None


@pytest.mark.asyncio
async def test_template_list_degrades_on_unexpected_shape(settings):
    with respx.mock() as router:
        router.route(method="GET", path="/api/v1/templates").mock(
            return_value=httpx.Response(200, json={"unexpected": "shape"})
        )
        async with httpx.AsyncClient() as http:
            result = await TemplateService(_client(settings, http)).list()

    assert result.ok
    assert result.data is None
