"""Notifier — renders alarm notifications and fans them out to subscribers.

A subscriber is anything with a ``name`` and ``async send(payload: dict)``.
Delivery is best-effort and runs in a background task: the caller never
waits on a subscriber, and a failing one is logged and never affects the others.
Pending deliveries are tracked so shutdown can drain them.
"""
from __future__ import annotations

import asyncio
import json
import logging
from typing import Protocol

import httpx
from redis.asyncio import Redis
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from models.alarm import AlarmClass
from models.subscription import Subscription
from services.lifecycle import should_notify

logger = logging.getLogger("alarmwatch.notifier")

APP_NAME = "AlarmWatch"

CLASS_LABELS = {AlarmClass.alarm: "alarm", AlarmClass.warning: "warning"}


class Subscriber(Protocol):
    name: str

    async def send(self, payload: dict) -> None: ...


def build_notification(
    alarm_id: str,
    alarm_state: str,
    alarm_class: int,
    count_alarms: int,
    count_warnings: int,
) -> dict:
    label = CLASS_LABELS.get(alarm_class, "alarm")
    return {
        "type": "alarm_notification",
        "title": f"{APP_NAME} - New {label}!",
        "body": (
            f"{alarm_id} is {alarm_state}!\n"
            f"> alarms: {count_alarms}  > warnings: {count_warnings}"
        ),
        "alarm_id": alarm_id,
        "alarm_state": alarm_state,
        "alarm_class": alarm_class,
        "count_alarms": count_alarms,
        "count_warnings": count_warnings,
    }


class Notifier:

    def __init__(self, subscribers: list[Subscriber] | None = None):
        self.subscribers: list[Subscriber] = list(subscribers or [])
        self._pending: set[asyncio.Task] = set()

    def register(self, subscriber: Subscriber) -> None:
        self.subscribers.append(subscriber)
        logger.info("Notification subscriber registered: %s", subscriber.name)

    async def notify(
        self,
        alarm_id: str,
        alarm_state: str,
        alarm_class: int,
        count_alarms: int,
        count_warnings: int,
    ) -> dict | None:
        if not should_notify(alarm_class):
            return None

        payload = build_notification(
            alarm_id, alarm_state, alarm_class, count_alarms, count_warnings,
        )
        logger.info("Notify: %s (%d subscribers)", payload["title"], len(self.subscribers))
        task = asyncio.create_task(self._fan_out(payload))
        self._pending.add(task)
        task.add_done_callback(self._on_done)
        return payload

    @property
    def pending(self) -> int:
        return len(self._pending)

    async def drain(self, timeout: float | None = None) -> None:
        """Wait for in-flight deliveries; cancel whatever is left after timeout."""
        if not self._pending:
            return
        _, pending = await asyncio.wait(set(self._pending), timeout=timeout)
        for task in pending:
            task.cancel()
        if pending:
            logger.warning("Cancelled %d pending notification deliveries", len(pending))
            await asyncio.gather(*pending, return_exceptions=True)

    def _on_done(self, task: asyncio.Task) -> None:
        self._pending.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Notification fan-out failed: %s", exc)

    async def _fan_out(self, payload: dict) -> None:
        await asyncio.gather(*(self._deliver(sub, payload) for sub in self.subscribers))

    async def _deliver(self, subscriber: Subscriber, payload: dict) -> None:
        try:
            await subscriber.send(payload)
        except Exception as exc:
            logger.warning("Notification delivery to %s failed: %s", subscriber.name, exc)


# ---------------------------------------------------------------------------
# Subscribers
# ---------------------------------------------------------------------------

class RedisSubscriber:
    """Publishes notifications on a Redis pub/sub channel."""

    name = "redis"

    def __init__(self, redis: Redis, channel: str):
        self.redis = redis
        self.channel = channel

    async def send(self, payload: dict) -> None:
        await self.redis.publish(self.channel, json.dumps(payload, default=str))


class WebhookSubscriber:
    """POSTs notifications to every stored subscription endpoint."""

    name = "webhooks"

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        timeout: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ):
        self.session_factory = session_factory
        self._client = client or httpx.AsyncClient(timeout=timeout)

    async def _load_endpoints(self) -> list[str]:
        async with self.session_factory() as session:
            result = await session.execute(select(Subscription.endpoint).order_by(Subscription.id))
            return list(result.scalars().all())

    async def send(self, payload: dict) -> None:
        endpoints = await self._load_endpoints()
        if not endpoints:
            return
        await asyncio.gather(*(self._post(url, payload) for url in endpoints))

    async def _post(self, url: str, payload: dict) -> None:
        try:
            resp = await self._client.post(url, json=payload)
            resp.raise_for_status()
        except Exception as exc:
            logger.warning("Webhook %s failed: %s", url, exc)

    async def close(self) -> None:
        await self._client.aclose()
