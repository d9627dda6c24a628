from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from config import settings
from models import Subscription, get_session

router = APIRouter(tags=["subscriptions"])


# --- Schemas ---

class SubscriptionIn(BaseModel):
    endpoint: str

    model_config = {"extra": "allow"}


class SubscriptionOut(BaseModel):
    id: int
    endpoint: str

    model_config = {"from_attributes": True}


# --- Endpoints ---

@router.post("/subscribe", status_code=201)
async def subscribe(data: SubscriptionIn, session: AsyncSession = Depends(get_session)):
    if not data.endpoint.strip():
        raise HTTPException(400, "Subscription endpoint is required")

    existing = await session.execute(
        select(Subscription).where(Subscription.endpoint == data.endpoint)
    )
    if existing.scalar_one_or_none() is None:
        session.add(Subscription(endpoint=data.endpoint, payload=data.model_dump()))
        await session.flush()

    # Keep at most MAX_SUBSCRIPTIONS, dropping the oldest
    total = (await session.execute(select(func.count()).select_from(Subscription))).scalar_one()
    overflow = total - settings.MAX_SUBSCRIPTIONS
    if overflow > 0:
        oldest = await session.execute(
            select(Subscription).order_by(Subscription.id).limit(overflow)
        )
        for sub in oldest.scalars().all():
            await session.delete(sub)

    await session.commit()
    return {"message": "Subscription received and stored."}


@router.get("/api/subscriptions", response_model=list[SubscriptionOut])
async def list_subscriptions(session: AsyncSession = Depends(get_session)):
    result = await session.execute(select(Subscription).order_by(Subscription.id))
    return result.scalars().all()


@router.delete("/api/subscriptions/{subscription_id}", status_code=204)
async def delete_subscription(subscription_id: int, session: AsyncSession = Depends(get_session)):
    sub = await session.get(Subscription, subscription_id)
    if not sub:
        raise HTTPException(404, "Subscription not found")
    await session.delete(sub)
    await session.commit()
