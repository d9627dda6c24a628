"""AlarmStore — durable keyed table of alarm rows.

Persistence only: callers hand in records computed by the lifecycle rules.
Every method opens its own session and returns immutable AlarmRecord
snapshots, so readers never see a half-written row.
"""
from __future__ import annotations

import logging
from dataclasses import fields

from sqlalchemy import and_, delete, desc, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from models.alarm import Alarm
from services.lifecycle import AlarmRecord

logger = logging.getLogger("alarmwatch.store")

RECORD_FIELDS = tuple(f.name for f in fields(AlarmRecord))


def to_record(row: Alarm) -> AlarmRecord:
    return AlarmRecord(**{name: getattr(row, name) for name in RECORD_FIELDS})


class AlarmStore:

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def get(self, alarm_id: str) -> AlarmRecord | None:
        async with self.session_factory() as session:
            row = await session.get(Alarm, alarm_id)
            return to_record(row) if row else None

    async def upsert(self, record: AlarmRecord) -> AlarmRecord:
        async with self.session_factory() as session:
            row = await session.get(Alarm, record.alarm_id)
            if row is None:
                row = Alarm(**{name: getattr(record, name) for name in RECORD_FIELDS})
                session.add(row)
            else:
                for name in RECORD_FIELDS:
                    if name != "alarm_id":
                        setattr(row, name, getattr(record, name))
            await session.commit()
            return to_record(row)

    async def delete(self, alarm_id: str) -> int:
        async with self.session_factory() as session:
            result = await session.execute(delete(Alarm).where(Alarm.alarm_id == alarm_id))
            await session.commit()
            if result.rowcount:
                logger.debug("Alarm row deleted: %s", alarm_id)
            return result.rowcount or 0

    async def query(
        self,
        *,
        alarm_id: str | None = None,
        raised_before: int | None = None,
        raised_after: int | None = None,
    ) -> list[AlarmRecord]:
        stmt = select(Alarm)
        conditions = []

        if alarm_id is not None:
            conditions.append(Alarm.alarm_id == alarm_id)
        if raised_before is not None:
            conditions.append(Alarm.raised_time <= raised_before)
        if raised_after is not None:
            conditions.append(Alarm.raised_time >= raised_after)

        if conditions:
            stmt = stmt.where(and_(*conditions))

        stmt = stmt.order_by(desc(Alarm.raised_time), Alarm.alarm_id)
        async with self.session_factory() as session:
            result = await session.execute(stmt)
            return [to_record(row) for row in result.scalars().all()]

    async def scan_due(self, now: int) -> list[AlarmRecord]:
        """Rows with a delete_time or any class_N_time at or before now."""
        stmt = select(Alarm).where(
            or_(
                Alarm.delete_time <= now,
                Alarm.class_1_time <= now,
                Alarm.class_2_time <= now,
                Alarm.class_3_time <= now,
            )
        ).order_by(Alarm.alarm_id)
        async with self.session_factory() as session:
            result = await session.execute(stmt)
            return [to_record(row) for row in result.scalars().all()]

    async def count_by_class(self) -> dict[int, int]:
        stmt = select(Alarm.alarm_class, func.count()).group_by(Alarm.alarm_class)
        async with self.session_factory() as session:
            result = await session.execute(stmt)
            counts = {alarm_class: 0 for alarm_class in (1, 2, 3)}
            for alarm_class, count in result.all():
                counts[alarm_class] = count
            return counts
