"""REST API for the alarm list.

Query-parameter GET endpoints, same paths and parameter names as the
AlarmWatcher clients already use (scripts, home automation hooks).
"""
from __future__ import annotations

import logging
from dataclasses import asdict
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError

from services.alarm_service import AlarmService, AlarmValidationError
from services.lifecycle import AlarmRecord, DuplicateAlarmError

logger = logging.getLogger("alarmwatch.api.alarms")

router = APIRouter(prefix="/api", tags=["alarms"])


# ---------------------------------------------------------------------------
# Schemas
# ---------------------------------------------------------------------------

class AlarmOut(BaseModel):
    alarm_id: str
    alarm_class: int
    alarm_state: str
    raised_time: int
    require_ack: bool
    delete_time: int | None = None
    class_1_time: int | None = None
    class_2_time: int | None = None
    class_3_time: int | None = None
    time_after_ack: int | None = None
    class_after_ack: int | None = None
    state_after_ack: str | None = None

    model_config = {"from_attributes": True}

    @classmethod
    def from_record(cls, record: AlarmRecord) -> "AlarmOut":
        return cls(**asdict(record))


class AlarmActionOut(BaseModel):
    message: str
    action: str | None = None
    alarm: AlarmOut | None = None


def get_alarm_service(request: Request) -> AlarmService:
    return request.app.state.alarm_service


def _require_id(alarm_id: str | None, what: str) -> str:
    if not alarm_id:
        raise HTTPException(400, f"Error {what} alarm: 'alarm_id' is required.")
    return alarm_id


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.get("/serverTime", response_class=PlainTextResponse)
async def server_time(service: AlarmService = Depends(get_alarm_service)) -> str:
    """Current server time as unix seconds."""
    return str(service.now())


@router.get("/raiseAlarm", response_model=AlarmActionOut)
async def raise_alarm(
    alarm_id: Optional[str] = Query(None, description="Unique identifier of the alarm (alarm name)"),
    alarm_class: Optional[int] = Query(None, description="1 = Alarm, 2 = Warning, 3 = Event"),
    alarm_state: Optional[str] = Query(None, description="Displayed state, e.g. active, fault, open"),
    req_ack: bool = Query(False, description="Alarm must be acknowledged by the user"),
    duration: Optional[int] = Query(None, description="Seconds until automatic deletion (0 = never)"),
    delay_class_1: Optional[int] = Query(None, description="Seconds until the alarm becomes class 1"),
    delay_class_2: Optional[int] = Query(None, description="Seconds until the alarm becomes class 2"),
    delay_class_3: Optional[int] = Query(None, description="Seconds until the alarm becomes class 3"),
    service: AlarmService = Depends(get_alarm_service),
) -> AlarmActionOut:
    alarm_id = _require_id(alarm_id, "inserting")
    if alarm_class is None:
        raise HTTPException(400, "Error inserting alarm: 'alarm_class' is required.")
    try:
        record = await service.raise_alarm(
            alarm_id,
            alarm_class,
            alarm_state=alarm_state,
            require_ack=req_ack,
            duration=duration,
            delay_class_1=delay_class_1,
            delay_class_2=delay_class_2,
            delay_class_3=delay_class_3,
        )
    except AlarmValidationError as exc:
        raise HTTPException(400, f"Error inserting alarm: {exc}")
    except DuplicateAlarmError:
        raise HTTPException(400, "Alarm with the same ID, class and state already exists.")
    except SQLAlchemyError as exc:
        logger.error("raiseAlarm %s failed: %s", alarm_id, exc)
        raise HTTPException(400, f"Error inserting alarm: {exc}")
    return AlarmActionOut(
        message="Alarm inserted successfully!",
        alarm=AlarmOut.from_record(record),
    )


@router.get("/ackAlarm", response_model=AlarmActionOut)
async def ack_alarm(
    alarm_id: Optional[str] = Query(None),
    service: AlarmService = Depends(get_alarm_service),
) -> AlarmActionOut:
    alarm_id = _require_id(alarm_id, "acknowledging")
    try:
        record = await service.ack_alarm(alarm_id)
    except AlarmValidationError as exc:
        raise HTTPException(400, f"Error acknowledging alarm: {exc}")
    except SQLAlchemyError as exc:
        logger.error("ackAlarm %s failed: %s", alarm_id, exc)
        raise HTTPException(400, f"Error acknowledging alarm: {exc}")
    return AlarmActionOut(
        message="Alarm acknowledged successfully if available!",
        alarm=AlarmOut.from_record(record) if record else None,
    )


@router.get("/clearAlarm", response_model=AlarmActionOut)
async def clear_alarm(
    alarm_id: Optional[str] = Query(None),
    service: AlarmService = Depends(get_alarm_service),
) -> AlarmActionOut:
    alarm_id = _require_id(alarm_id, "clearing")
    try:
        action = await service.clear_alarm(alarm_id)
    except AlarmValidationError as exc:
        raise HTTPException(400, f"Error clearing alarm: {exc}")
    except SQLAlchemyError as exc:
        logger.error("clearAlarm %s failed: %s", alarm_id, exc)
        raise HTTPException(400, f"Error clearing alarm: {exc}")
    return AlarmActionOut(
        message="Alarm cleared successfully if available!",
        action=action.value,
    )


@router.get("/getAlarms", response_model=list[AlarmOut])
async def get_alarms(
    alarm_id: Optional[str] = Query(None),
    before: Optional[int] = Query(None, description="Raised at or before this unix timestamp"),
    after: Optional[int] = Query(None, description="Raised at or after this unix timestamp"),
    service: AlarmService = Depends(get_alarm_service),
) -> list[AlarmOut]:
    """Alarms sorted by raised time, most recent first."""
    try:
        records = await service.get_alarms(alarm_id=alarm_id, before=before, after=after)
    except SQLAlchemyError as exc:
        logger.error("getAlarms failed: %s", exc)
        raise HTTPException(400, f"Error fetching alarms: {exc}")
    return [AlarmOut.from_record(r) for r in records]
