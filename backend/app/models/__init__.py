from models.base import (
    Base,
    async_session,
    engine,
    get_engine,
    get_session,
    get_session_factory,
    init_db,
)
from models.alarm import Alarm, AlarmClass
from models.subscription import Subscription

__all__ = [
    "Base",
    "async_session",
    "engine",
    "get_engine",
    "get_session",
    "get_session_factory",
    "init_db",
    "Alarm",
    "AlarmClass",
    "Subscription",
]
