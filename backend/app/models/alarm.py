"""Alarm table — one row per alarm_id, current state only.

Timestamps are integer unix seconds. class_N_time columns hold scheduled
class transitions, *_after_ack columns hold a lower-priority update staged
while an unacknowledged alarm is displayed.
"""
from __future__ import annotations

import enum

from sqlalchemy import BigInteger, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from models.base import Base


class AlarmClass(enum.IntEnum):
    alarm = 1
    warning = 2
    event = 3


class Alarm(Base):
    __tablename__ = "alarms"

    __table_args__ = (
        Index("ix_alarms_raised_time", "raised_time"),
        Index("ix_alarms_delete_time", "delete_time"),
    )

    alarm_id: Mapped[str] = mapped_column(String(200), primary_key=True)
    alarm_class: Mapped[int] = mapped_column()
    alarm_state: Mapped[str] = mapped_column(String(200), default="on")
    raised_time: Mapped[int] = mapped_column(BigInteger)
    require_ack: Mapped[bool] = mapped_column(default=False)
    delete_time: Mapped[int | None] = mapped_column(BigInteger, default=None)

    class_1_time: Mapped[int | None] = mapped_column(BigInteger, default=None)
    class_2_time: Mapped[int | None] = mapped_column(BigInteger, default=None)
    class_3_time: Mapped[int | None] = mapped_column(BigInteger, default=None)

    time_after_ack: Mapped[int | None] = mapped_column(BigInteger, default=None)
    class_after_ack: Mapped[int | None] = mapped_column(default=None)
    state_after_ack: Mapped[str | None] = mapped_column(String(200), default=None)

    def __repr__(self) -> str:
        return f"<Alarm {self.alarm_id} class={self.alarm_class} state={self.alarm_state}>"
