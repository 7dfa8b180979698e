"""Tests for campaigns and the read-only prospecting endpoints."""

from datetime import datetime

import pytest
import pytest_asyncio
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from lykr.auth.jwt import create_access_token
from lykr.models.company import Company
from lykr.models.icp import Icp
from lykr.models.lead import Lead, LeadSource
from lykr.models.user import User

CAMPAIGN = {
    "campaign_name": "Clinics Q3",
    "linkedin_email": "sales@acme.io",
    "linkedin_password": "linkedin-secret",
}


@pytest_asyncio.fixture
async def other_user(db_session: AsyncSession) -> User:
    user = User(name="Other", email="other@example.com", hashed_password=None)
    db_session.add(user)
    await db_session.flush()
    return user


@pytest.fixture
def other_headers(other_user: User) -> dict:
    token = create_access_token(user_id=other_user.id, email=other_user.email, name=other_user.name)
    return {"Authorization": f"Bearer {token}"}


@pytest.mark.api
@pytest.mark.asyncio
class TestCampaigns:

    async def test_create_hides_password(self, client: AsyncClient, auth_headers):
        response = await client.post("/api/campaigns/", json=CAMPAIGN, headers=auth_headers)

        assert response.status_code == 201
        body = response.json()
        assert body["campaign_name"] == "Clinics Q3"
        assert body["status"] == "draft"
        assert "linkedin_password" not in body

    async def test_create_validates_email(self, client: AsyncClient, auth_headers):
        response = await client.post(
            "/api/campaigns/", json={**CAMPAIGN, "linkedin_email": "nope"}, headers=auth_headers
        )

        assert response.status_code == 422

    async def test_list_is_scoped_to_owner(
        self, client: AsyncClient, auth_headers, other_headers
    ):
        await client.post("/api/campaigns/", json=CAMPAIGN, headers=auth_headers)
        await client.post(
            "/api/campaigns/", json={**CAMPAIGN, "campaign_name": "Theirs"}, headers=other_headers
        )

        response = await client.get("/api/campaigns/", headers=auth_headers)

        body = response.json()
        assert body["total"] == 1
        assert [c["campaign_name"] for c in body["items"]] == ["Clinics Q3"]

    async def test_update_status(self, client: AsyncClient, auth_headers):
        created = (await client.post("/api/campaigns/", json=CAMPAIGN, headers=auth_headers)).json()

        response = await client.patch(
            f"/api/campaigns/{created['id']}/status", json={"status": "active"}, headers=auth_headers
        )

        assert response.status_code == 200
        assert response.json()["status"] == "active"

    async def test_update_status_of_foreign_campaign(
        self, client: AsyncClient, auth_headers, other_headers
    ):
        created = (await client.post("/api/campaigns/", json=CAMPAIGN, headers=other_headers)).json()

        response = await client.patch(
            f"/api/campaigns/{created['id']}/status", json={"status": "paused"}, headers=auth_headers
        )

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "RESOURCE_NOT_FOUND"

    async def test_unknown_status(self, client: AsyncClient, auth_headers):
        created = (await client.post("/api/campaigns/", json=CAMPAIGN, headers=auth_headers)).json()

        response = await client.patch(
            f"/api/campaigns/{created['id']}/status", json={"status": "launched"}, headers=auth_headers
        )

        assert response.status_code == 422


@pytest.mark.api
@pytest.mark.asyncio
class TestProspecting:

    @pytest_asyncio.fixture
    async def seeded(self, db_session: AsyncSession, test_user: User, other_user: User):
        mine = Company(user_id=test_user.id, name="Clinic One", domain="clinic.one", raw_data={})
        theirs = Company(user_id=other_user.id, name="Elsewhere", domain="else.where", raw_data={})
        db_session.add_all([mine, theirs])
        await db_session.flush()
        db_session.add_all([
            Lead(user_id=test_user.id, company_id=mine.id, source=LeadSource.APOLLO,
                 full_name="Dana Doctor", title="Owner", raw_data={}),
            Lead(user_id=test_user.id, company_id=mine.id, source=LeadSource.LINKEDIN,
                 full_name="Alex Admin", title="Office Manager", raw_data={}),
            Lead(user_id=other_user.id, company_id=theirs.id, source=LeadSource.MANUAL,
                 full_name="Not Mine", title="CEO", raw_data={}),
            Icp(user_id=test_user.id, company_industry="Healthcare", company_size="10-50",
                target_role="Clinic owner", pain_points=["no-shows"], values=["time"],
                goals=["growth"], generated_at=datetime(2026, 1, 1)),
        ])
        await db_session.flush()
        return mine

    async def test_leads_sorted_and_scoped(self, client: AsyncClient, auth_headers, seeded):
        response = await client.get("/api/leads", headers=auth_headers)

        body = response.json()
        assert body["total"] == 2
        assert [l["full_name"] for l in body["items"]] == ["Alex Admin", "Dana Doctor"]

    async def test_leads_filter_by_source(self, client: AsyncClient, auth_headers, seeded):
        response = await client.get("/api/leads", params={"source": "apollo"}, headers=auth_headers)

        assert [l["full_name"] for l in response.json()["items"]] == ["Dana Doctor"]

    async def test_companies(self, client: AsyncClient, auth_headers, seeded):
        response = await client.get("/api/companies", headers=auth_headers)

        assert [c["domain"] for c in response.json()["items"]] == ["clinic.one"]

    async def test_icps(self, client: AsyncClient, auth_headers, seeded):
        response = await client.get("/api/icps", headers=auth_headers)

        body = response.json()
        assert len(body) == 1
        assert body[0]["pain_points"] == ["no-shows"]

    async def test_requires_login(self, client: AsyncClient):
        response = await client.get("/api/leads")

        assert response.status_code == 401
