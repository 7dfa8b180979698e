"""Aggregate model imports for Alembic auto-detection."""

from lykr.models.user import User  # noqa: F401
from lykr.models.record import Record  # noqa: F401
from lykr.models.icp import Icp  # noqa: F401
from lykr.models.campaign import Campaign, CampaignStatus  # noqa: F401
from lykr.models.company import Company  # noqa: F401
from lykr.models.lead import Lead, LeadSource  # noqa: F401

__all__ = [
    "User",
    "Record",
    "Icp",
    "Campaign",
    "CampaignStatus",
    "Company",
    "Lead",
    "LeadSource",
]
