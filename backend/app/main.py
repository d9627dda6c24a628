import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse
from redis.asyncio import Redis

from config import settings
from models import async_session, engine, init_db
from api.alarms import router as alarms_router
from api.subscriptions import router as subscriptions_router
from core.websocket import router as ws_router, manager as ws_manager
from services.alarm_scheduler import AlarmScheduler
from services.alarm_service import AlarmService
from services.alarm_store import AlarmStore
from services.notifier import Notifier, RedisSubscriber, WebhookSubscriber

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL, logging.INFO),
    format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
)
logger = logging.getLogger("alarmwatch.main")


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("AlarmWatch backend starting... DEBUG=%s", settings.DEBUG)

    await init_db(engine)
    logger.info("Database ready: %s", engine.url.render_as_string(hide_password=True))

    # Notifier: WebSocket clients + stored webhooks (+ Redis bus)
    webhooks = WebhookSubscriber(async_session, timeout=settings.WEBHOOK_TIMEOUT)
    notifier = Notifier([ws_manager, webhooks])
    redis = None
    if settings.NOTIFY_REDIS_ENABLED:
        redis = Redis.from_url(settings.REDIS_URL, decode_responses=False)
        notifier.register(RedisSubscriber(redis, settings.NOTIFY_CHANNEL))
        logger.info("Redis notification bus: %s (%s)", settings.REDIS_URL, settings.NOTIFY_CHANNEL)

    store = AlarmStore(async_session)
    service = AlarmService(store, notifier)
    app.state.alarm_service = service

    # Lifecycle scheduler
    scheduler = AlarmScheduler(service, store, tick_interval=settings.SCHEDULER_TICK_INTERVAL)
    app.state.alarm_scheduler = scheduler
    scheduler_task = asyncio.create_task(scheduler.start())

    yield

    # Shutdown
    logger.info("AlarmWatch backend shutting down...")
    await scheduler.stop()
    scheduler_task.cancel()
    try:
        await scheduler_task
    except asyncio.CancelledError:
        pass

    await notifier.drain(timeout=settings.WEBHOOK_TIMEOUT)
    await webhooks.close()
    if redis is not None:
        await redis.close()
    await engine.dispose()
    logger.info("Shutdown complete")


app = FastAPI(
    title=settings.APP_TITLE,
    version=settings.APP_VERSION,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(alarms_router)
app.include_router(subscriptions_router)
app.include_router(ws_router)


@app.get("/health")
async def health():
    return {"status": "ok", "version": settings.APP_VERSION}


@app.get("/getVersion", response_class=PlainTextResponse)
async def get_version():
    return f"v{settings.APP_VERSION}"
