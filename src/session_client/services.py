# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

# src/session_client/services.py
"""
Thin resource wrappers over SessionClient.

Each method builds one RequestContext and names the payload shape it expects;
the pipeline does the rest. Domain rules (what a valid subscription is, how
notifications are grouped) belong to the host application.
"""

import logging
from dataclasses import replace
from typing import Any, Dict, List, Optional

from .models import NormalizedResponse, RequestContext
from .response_normalizer import ResponseShape
from .session import SessionClient

lib_logger = logging.getLogger("session_client")

SUBSCRIPTION_LIST = ResponseShape.list_of("subscriptions", "id", "name")
SUBSCRIPTION = ResponseShape.record("subscription")
SUBSCRIPTION_TYPES = ResponseShape.list_of("types", "id", "name")
NOTIFICATION_LIST = ResponseShape.list_of("notifications", "id", "title")
NOTIFICATION = ResponseShape.record("notification")
TEMPLATE_LIST = ResponseShape.list_of("templates", "id", "name")
TEMPLATE = ResponseShape.record("template")
PROFILE = ResponseShape.record("profile")


class ResourceService:
    def __init__(self, client: SessionClient):
        self._client = client

    async def _call(
        self,
        endpoint: str,
        shape: Optional[ResponseShape] = None,
        method: str = "GET",
        body: Any = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> NormalizedResponse:
        context = RequestContext(endpoint=endpoint, method=method, body=body, params=params)
        return await self._client.send(context, shape)


class SubscriptionService(ResourceService):
    async def list(self, page: Optional[int] = None, limit: Optional[int] = None) -> NormalizedResponse:
        params = {k: v for k, v in (("page", page), ("limit", limit)) if v is not None}
        return await self._call("/subscriptions", SUBSCRIPTION_LIST, params=params or None)

    async def get(self, subscription_id: str) -> NormalizedResponse:
        return await self._call(f"/subscriptions/{subscription_id}", SUBSCRIPTION)

    async def create(self, data: Dict[str, Any]) -> NormalizedResponse:
        return await self._call("/subscriptions", SUBSCRIPTION, method="POST", body=data)

    async def update(self, subscription_id: str, data: Dict[str, Any]) -> NormalizedResponse:
        return await self._call(f"/subscriptions/{subscription_id}", SUBSCRIPTION, method="PATCH", body=data)

    async def delete(self, subscription_id: str) -> NormalizedResponse:
        return await self._call(f"/subscriptions/{subscription_id}", method="DELETE")

    async def toggle(self, subscription_id: str, active: bool) -> NormalizedResponse:
        return await self._call(
            f"/subscriptions/{subscription_id}/toggle", SUBSCRIPTION, method="PATCH", body={"active": active}
        )

    async def process(self, subscription_id: str) -> NormalizedResponse:
        return await self._call(f"/subscriptions/{subscription_id}/process", method="POST")

    async def list_types(self) -> NormalizedResponse:
        return await self._call("/subscriptions/types", SUBSCRIPTION_TYPES)


def coerce_entity_type(notification: Dict[str, Any]) -> Dict[str, Any]:
    """entity_type is split on ':' by consumers, so it must always be a string."""
    entity_type = notification.get("entity_type")
    if isinstance(entity_type, str):
        return notification
    return {**notification, "entity_type": "" if entity_type is None else str(entity_type)}


class NotificationService(ResourceService):
    async def list(self, page: int = 1, limit: int = 10) -> NormalizedResponse:
        response = await self._call(
            "/notifications", NOTIFICATION_LIST, params={"page": page, "limit": limit}
        )
        if response.ok and isinstance(response.data, list):
            notifications: List[Dict[str, Any]] = [coerce_entity_type(n) for n in response.data]
            response = replace(response, data=notifications)
        return response

    async def get(self, notification_id: str) -> NormalizedResponse:
        return self._coerce_one(await self._call(f"/notifications/{notification_id}", NOTIFICATION))

    async def mark_as_read(self, notification_id: str) -> NormalizedResponse:
        return self._coerce_one(
            await self._call(
                f"/notifications/{notification_id}", NOTIFICATION, method="PATCH", body={"read": True}
            )
        )

    async def mark_all_as_read(self) -> NormalizedResponse:
        return await self._call("/notifications/mark-all-read", method="POST")

    async def delete(self, notification_id: str) -> NormalizedResponse:
        return await self._call(f"/notifications/{notification_id}", method="DELETE")

    @staticmethod
    def _coerce_one(response: NormalizedResponse) -> NormalizedResponse:
        if response.ok and isinstance(response.data, dict):
            return replace(response, data=coerce_entity_type(response.data))
        return response


class TemplateService(ResourceService):
    async def list(self, page: int = 1, limit: int = 10) -> NormalizedResponse:
        return await self._call("/templates", TEMPLATE_LIST, params={"page": page, "limit": limit})

    async def get(self, template_id: str) -> NormalizedResponse:
        return await self._call(f"/templates/{template_id}", TEMPLATE)

    async def create(self, data: Dict[str, Any]) -> NormalizedResponse:
        return await self._call("/templates", TEMPLATE, method="POST", body=data)

    async def subscribe(self, template_id: str, prompts: Optional[List[str]] = None) -> NormalizedResponse:
        body = {"prompts": prompts} if prompts else None
        return await self._call(
            f"/templates/{template_id}/subscribe", SUBSCRIPTION, method="POST", body=body
        )


class ProfileService(ResourceService):
    async def get(self) -> NormalizedResponse:
        return await self._call("/users/me", PROFILE)

    async def update(self, data: Dict[str, Any]) -> NormalizedResponse:
        lib_logger.debug(f"Updating profile fields: {sorted(data)}")
        return await self._call("/users/me", PROFILE, method="PATCH", body=data)
