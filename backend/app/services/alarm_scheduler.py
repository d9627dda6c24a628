"""
AlarmScheduler — periodic driver of time-based alarm transitions.

Runs every SCHEDULER_TICK_INTERVAL seconds:
1. Deletes alarms whose delete_time has passed and need no acknowledgment
2. Applies due class_N_time transitions (lowest class number wins) and
   notifies when the displayed class changes to 1 or 2
"""

from __future__ import annotations

import asyncio
import logging

from sqlalchemy.exc import SQLAlchemyError

from services import lifecycle
from services.alarm_service import AlarmService
from services.alarm_store import AlarmStore
from services.lifecycle import AlarmRecord

logger = logging.getLogger("alarmwatch.scheduler")


class AlarmScheduler:
    """Background task: expires alarms and applies scheduled class changes."""

    def __init__(
        self,
        service: AlarmService,
        store: AlarmStore,
        *,
        tick_interval: float = 1.0,
    ):
        self.service = service
        self.store = store
        self.tick_interval = tick_interval
        self._running = False
        self._tick_lock = asyncio.Lock()

    async def start(self) -> None:
        self._running = True
        logger.info("AlarmScheduler started (tick every %.1fs)", self.tick_interval)

        while self._running:
            try:
                await self.tick(self.service.now())
            except Exception as exc:
                logger.error("AlarmScheduler tick error: %s", exc, exc_info=True)
            await asyncio.sleep(self.tick_interval)

    async def stop(self) -> None:
        self._running = False
        logger.info("AlarmScheduler stopped")

    # ------------------------------------------------------------------
    # Tick
    # ------------------------------------------------------------------

    async def tick(self, now: int) -> dict[str, int]:
        """Run one full pass. Returns counts of deleted and transitioned alarms."""
        if self._tick_lock.locked():
            logger.debug("Previous tick still running — skipping tick at %d", now)
            return {"deleted": 0, "transitioned": 0, "skipped": 1}

        async with self._tick_lock:
            due = await self.store.scan_due(now)
            deleted = await self._expire_cycle(
                [r for r in due if lifecycle.deletion_due(r, now)], now,
            )
            transitioned = await self._transition_cycle(
                [r for r in due if lifecycle.transition_due(r, now)], now,
            )

        if deleted or transitioned:
            logger.debug("Tick %d: deleted=%d transitioned=%d", now, deleted, transitioned)
        return {"deleted": deleted, "transitioned": transitioned, "skipped": 0}

    async def _expire_cycle(self, records: list[AlarmRecord], now: int) -> int:
        deleted = 0
        for record in records:
            try:
                if await self.service.expire_due(record.alarm_id, now):
                    deleted += 1
            except SQLAlchemyError as exc:
                logger.error("Deleting expired alarm %s failed: %s", record.alarm_id, exc, exc_info=True)
        return deleted

    async def _transition_cycle(self, records: list[AlarmRecord], now: int) -> int:
        transitioned = 0
        for record in records:
            try:
                if await self.service.advance_due(record.alarm_id, now) is not None:
                    transitioned += 1
            except SQLAlchemyError as exc:
                logger.error("Class transition for %s failed: %s", record.alarm_id, exc, exc_info=True)
        return transitioned
