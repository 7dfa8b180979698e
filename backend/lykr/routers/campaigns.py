"""Outreach campaigns owned by the current user."""

from datetime import datetime

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, EmailStr, Field
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from lykr.auth.deps import get_current_user
from lykr.database import get_db
from lykr.middleware.exceptions import ResourceNotFoundError
from lykr.models.campaign import Campaign, CampaignStatus
from lykr.models.user import User
from lykr.schemas.common import PaginatedResponse


# ── Schemas ──────────────────────────────────────────────────

class CampaignOut(BaseModel):
    id: int
    campaign_name: str
    linkedin_email: str
    heyreach_campaign_id: str | None
    status: CampaignStatus
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class CampaignCreate(BaseModel):
    campaign_name: str = Field(min_length=1, max_length=255)
    linkedin_email: EmailStr
    linkedin_password: str = Field(min_length=1, max_length=255)
    heyreach_campaign_id: str | None = None


class CampaignStatusUpdate(BaseModel):
    status: CampaignStatus


# ── Routes ───────────────────────────────────────────────────

router = APIRouter()


@router.get("/", response_model=PaginatedResponse[CampaignOut])
async def list_campaigns(
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    total = await db.scalar(
        select(func.count(Campaign.id)).where(Campaign.user_id == user.id)
    ) or 0
    result = await db.execute(
        select(Campaign)
        .where(Campaign.user_id == user.id)
        .order_by(Campaign.created_at.desc(), Campaign.id.desc())
        .limit(limit)
        .offset(offset)
    )
    return PaginatedResponse(
        items=[CampaignOut.model_validate(c) for c in result.scalars().all()],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.post("/", response_model=CampaignOut, status_code=status.HTTP_201_CREATED)
async def create_campaign(
    body: CampaignCreate,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    campaign = Campaign(user_id=user.id, **body.model_dump())
    db.add(campaign)
    await db.flush()
    await db.refresh(campaign)
    return CampaignOut.model_validate(campaign)


@router.patch("/{campaign_id}/status", response_model=CampaignOut)
async def update_campaign_status(
    campaign_id: int,
    body: CampaignStatusUpdate,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    result = await db.execute(
        select(Campaign).where(Campaign.id == campaign_id, Campaign.user_id == user.id)
    )
    campaign = result.scalar_one_or_none()
    if not campaign:
        raise ResourceNotFoundError("Campaign", str(campaign_id))

    campaign.status = body.status
    await db.flush()
    await db.refresh(campaign)
    return CampaignOut.model_validate(campaign)
