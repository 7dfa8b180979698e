"""Read-only prospecting data for the current user: leads, companies, ICPs."""

from datetime import datetime

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from lykr.auth.deps import get_current_user
from lykr.database import get_db
from lykr.models.company import Company
from lykr.models.icp import Icp
from lykr.models.lead import Lead, LeadSource
from lykr.models.user import User
from lykr.schemas.common import PaginatedResponse


# ── Schemas ──────────────────────────────────────────────────

class LeadOut(BaseModel):
    id: int
    company_id: int
    source: LeadSource
    full_name: str
    title: str
    email: str | None
    linkedin_url: str | None
    phone: str | None
    country: str | None
    city: str | None
    last_refreshed_at: datetime

    model_config = {"from_attributes": True}


class CompanyOut(BaseModel):
    id: int
    name: str
    domain: str
    industry: str | None
    size: str | None
    linkedin_url: str | None
    country: str | None
    city: str | None
    last_refreshed_at: datetime | None

    model_config = {"from_attributes": True}


class IcpOut(BaseModel):
    id: int
    company_industry: str
    company_size: str
    target_role: str
    pain_points: list
    values: list
    goals: list
    generated_at: datetime

    model_config = {"from_attributes": True}


# ── Routes ───────────────────────────────────────────────────

router = APIRouter()


@router.get("/leads", response_model=PaginatedResponse[LeadOut])
async def list_leads(
    source: LeadSource | None = None,
    company_id: int | None = None,
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    filters = [Lead.user_id == user.id]
    if source:
        filters.append(Lead.source == source)
    if company_id is not None:
        filters.append(Lead.company_id == company_id)

    total = await db.scalar(select(func.count(Lead.id)).where(*filters)) or 0
    result = await db.execute(
        select(Lead).where(*filters).order_by(Lead.full_name).limit(limit).offset(offset)
    )
    return PaginatedResponse(
        items=[LeadOut.model_validate(l) for l in result.scalars().all()],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.get("/companies", response_model=PaginatedResponse[CompanyOut])
async def list_companies(
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    total = await db.scalar(
        select(func.count(Company.id)).where(Company.user_id == user.id)
    ) or 0
    result = await db.execute(
        select(Company)
        .where(Company.user_id == user.id)
        .order_by(Company.name)
        .limit(limit)
        .offset(offset)
    )
    return PaginatedResponse(
        items=[CompanyOut.model_validate(c) for c in result.scalars().all()],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.get("/icps", response_model=list[IcpOut])
async def list_icps(
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    result = await db.execute(
        select(Icp).where(Icp.user_id == user.id).order_by(Icp.generated_at.desc())
    )
    return [IcpOut.model_validate(i) for i in result.scalars().all()]
