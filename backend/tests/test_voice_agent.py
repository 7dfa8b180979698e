"""Tests for the confirmation-step voice agent."""

import pytest
from httpx import AsyncClient

from lykr.config import settings
from lykr.middleware.exceptions import ExternalServiceError
from lykr.schemas.wizard import BusinessInfo, WebsiteInfo
from lykr.services.voice_agent import (
    AgentStatus,
    VoiceAgentSession,
    build_dynamic_variables,
    detect_review_step,
    is_edit_request,
)
from lykr.wizard.state import initial_state


@pytest.mark.unit
class TestDynamicVariables:

    def test_fallbacks_for_empty_document(self, t_en):
        variables = build_dynamic_variables(initial_state("en"), t_en)

        assert variables == {
            "business_name": "Not specified",
            "website_url": "Not specified",
            "social_links": "Not specified",
            "competitors": "Not specified",
            "interview_answers": "Not completed",
        }

    def test_filled_document(self, t_en):
        state = initial_state("en")
        answered = (
            state.voice_interview[0].model_copy(
                update={"status": "completed", "transcript": "Booking"}
            ),
        ) + state.voice_interview[1:]
        state = state.model_copy(update={
            "business_info": BusinessInfo(name="Acme"),
            "website": WebsiteInfo(
                url="https://acme.io",
                linkedin="https://linkedin.com/company/acme",
                youtube="https://youtube.com/@acme",
            ),
            "competitors": ("Rival", "", "Other"),
            "voice_interview": answered,
        })

        variables = build_dynamic_variables(state, t_en)

        assert variables["business_name"] == "Acme"
        assert variables["website_url"] == "https://acme.io"
        assert variables["social_links"] == (
            "LinkedIn: https://linkedin.com/company/acme, YouTube: https://youtube.com/@acme"
        )
        assert variables["competitors"] == "Rival, Other"
        assert variables["interview_answers"] == f'1. {state.voice_interview[0].text}: "Booking"'


@pytest.mark.unit
class TestReviewDetection:

    @pytest.mark.parametrize(
        "message,key",
        [
            ("Let's confirm your business name: Acme", "business_name"),
            ("ما هو اسم نشاطك التجاري؟", "business_name"),
            ("Your website is acme.io", "website"),
            ("I see your LinkedIn page", "social"),
            ("You listed one competitor", "competitors"),
            ("لنراجع إجابات المقابلة", "interview"),
        ],
    )
    def test_detects_step(self, message, key):
        assert detect_review_step(message).key == key

    def test_first_match_in_review_order_wins(self):
        step = detect_review_step("Your business name and website look right")

        assert step.key == "business_name"

    def test_no_match(self):
        assert detect_review_step("Thanks, that's everything!") is None

    @pytest.mark.parametrize(
        "reply,expected", [("Edit please", True), ("أريد تعديل", True), ("Looks good", False)]
    )
    def test_edit_request(self, reply, expected):
        assert is_edit_request(reply) is expected


@pytest.mark.unit
class TestAgentSession:

    def test_lifecycle(self):
        agent = VoiceAgentSession()

        agent.connect()
        assert agent.status is AgentStatus.CONNECTING
        agent.connected()
        assert agent.status is AgentStatus.CONNECTED

        agent.message("ai", "Your website is acme.io")
        agent.message("user", "")
        agent.message("user", "Correct")

        assert [(m.id, m.role) for m in agent.messages] == [(1, "assistant"), (2, "user")]
        assert agent.review_step().key == "website"

        agent.disconnect()
        assert agent.status is AgentStatus.DISCONNECTED
        assert agent.messages == []
        assert agent.review_step() is None

    def test_scrolls_past_four_messages(self):
        agent = VoiceAgentSession()
        for i in range(4):
            agent.message("ai", f"line {i}")
        assert agent.should_scroll is False

        agent.message("user", "one more")
        assert agent.should_scroll is True

    def test_connect_clears_error(self):
        agent = VoiceAgentSession()
        agent.fail("boom")

        agent.connect()

        assert agent.error is None


@pytest.mark.api
@pytest.mark.asyncio
class TestVoiceAgentAPI:

    async def test_session_returns_signed_url_and_variables(
        self, client: AsyncClient, auth_headers, fake_voice_client
    ):
        await client.post("/api/wizard/steps/business-info", json={"name": "Acme"}, headers=auth_headers)

        response = await client.post("/api/voice-agent/session", headers=auth_headers)

        assert response.status_code == 200
        body = response.json()
        assert body["agentId"] == "agent_test"
        assert body["signedUrl"].endswith("agent_id=agent_test&token=signed")
        assert body["dynamicVariables"]["business_name"] == "Acme"
        assert fake_voice_client.requested == ["agent_test"]

    async def test_session_without_api_key(
        self, client: AsyncClient, auth_headers, fake_voice_client
    ):
        fake_voice_client._configured = False

        response = await client.post("/api/voice-agent/session", headers=auth_headers)

        assert response.json()["signedUrl"] is None
        assert fake_voice_client.requested == []

    async def test_session_upstream_failure(
        self, client: AsyncClient, auth_headers, fake_voice_client, monkeypatch
    ):
        async def refuse(agent_id):
            raise ExternalServiceError("Voice agent unavailable")

        monkeypatch.setattr(fake_voice_client, "get_signed_url", refuse)

        response = await client.post("/api/voice-agent/session", headers=auth_headers)
        assert response.status_code == 502
        assert response.json()["error"]["code"] == "EXTERNAL_SERVICE_ERROR"
        # The session cookie survives the error response
        assert settings.wizard_session_cookie_name in response.cookies

        view = await client.post(
            "/api/voice-agent/events", json={"type": "message", "source": "ai", "message": ""},
            headers=auth_headers,
        )
        assert view.json()["status"] == "error"
        assert view.json()["error"] == "Could not start the call. Check your microphone permission."

    async def test_events_build_transcript(self, client: AsyncClient, auth_headers):
        await client.post("/api/voice-agent/events", json={"type": "connected"}, headers=auth_headers)
        await client.post(
            "/api/voice-agent/events",
            json={"type": "message", "source": "ai", "message": "You listed one competitor"},
            headers=auth_headers,
        )

        response = await client.post(
            "/api/voice-agent/events",
            json={"type": "message", "source": "user", "message": "I want to edit that"},
            headers=auth_headers,
        )

        body = response.json()
        assert body["status"] == "connected"
        assert [m["role"] for m in body["messages"]] == ["assistant", "user"]
        assert body["shouldScroll"] is False
        assert body["reviewStep"] == {
            "key": "competitors",
            "label": "Competitors",
            "editRoute": "/onboarding/competitors",
        }
        assert body["editRequested"] is True

    async def test_error_event(self, client: AsyncClient, auth_headers):
        response = await client.post(
            "/api/voice-agent/events",
            json={"type": "error", "message": "socket closed"},
            headers=auth_headers,
        )

        body = response.json()
        assert body["status"] == "error"
        assert body["error"] == "Connection error. Please try again."

    async def test_disconnect_clears_transcript(self, client: AsyncClient, auth_headers):
        await client.post(
            "/api/voice-agent/events",
            json={"type": "message", "source": "ai", "message": "Hello"},
            headers=auth_headers,
        )

        response = await client.post(
            "/api/voice-agent/events", json={"type": "disconnect"}, headers=auth_headers
        )

        assert response.json()["messages"] == []
        assert response.json()["reviewStep"] is None
