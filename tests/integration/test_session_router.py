"""Integration tests for the session router."""

import pytest
from httpx import AsyncClient

from tests.conftest import ScriptedProvider, text_reply

BASE = "/api/v1/chat/sessions"


class TestSessionLifecycle:
    """Tests for session CRUD and status endpoints."""

    @pytest.mark.asyncio
    async def test_create_and_get_session(
        self, app_client: tuple[AsyncClient, ScriptedProvider]
    ) -> None:
        client, _ = app_client

        created = await client.post(BASE, json={"title": "Trip", "user_id": "alice"})

        assert created.status_code == 201
        body = created.json()
        assert body["message"] == "Session created"
        session = body["data"]
        assert session["status"] == "ACTIVE"
        assert session["accepts_messages"] is True
        assert session["finished"] is False
        fetched = await client.get(f"{BASE}/{session['id']}")
        assert fetched.json()["data"]["title"] == "Trip"

    @pytest.mark.asyncio
    async def test_list_sessions_for_user(
        self, app_client: tuple[AsyncClient, ScriptedProvider]
    ) -> None:
        client, _ = app_client
        await client.post(BASE, json={"user_id": "alice"})
        await client.post(BASE, json={"user_id": "bob"})

        response = await client.get(BASE, params={"user_id": "alice"})

        assert [s["user_id"] for s in response.json()["data"]] == ["alice"]

    @pytest.mark.asyncio
    async def test_get_unknown_session(
        self, app_client: tuple[AsyncClient, ScriptedProvider]
    ) -> None:
        client, _ = app_client

        response = await client.get(f"{BASE}/missing")

        assert response.status_code == 404
        assert response.json() == {
            "status": 404,
            "message": "Session not found: missing",
            "code": "SESSION_NOT_FOUND",
        }

    @pytest.mark.asyncio
    async def test_status_transitions(
        self, app_client: tuple[AsyncClient, ScriptedProvider]
    ) -> None:
        client, _ = app_client
        session_id = (await client.post(BASE, json={})).json()["data"]["id"]

        closed = await client.post(f"{BASE}/{session_id}/status", json={"status": "CLOSED"})
        reopened = await client.post(
            f"{BASE}/{session_id}/status", json={"status": "ACTIVE"}
        )

        assert closed.json()["data"]["status"] == "CLOSED"
        assert closed.json()["data"]["finished"] is True
        assert closed.json()["data"]["accepts_messages"] is False
        assert reopened.status_code == 409
        assert reopened.json()["code"] == "ILLEGAL_TRANSITION"

    @pytest.mark.asyncio
    async def test_unknown_status_is_validation_error(
        self, app_client: tuple[AsyncClient, ScriptedProvider]
    ) -> None:
        client, _ = app_client
        session_id = (await client.post(BASE, json={})).json()["data"]["id"]

        response = await client.post(
            f"{BASE}/{session_id}/status", json={"status": "ARCHIVED"}
        )

        assert response.status_code == 422
        assert response.json()["code"] == "VALIDATION_ERROR"

    @pytest.mark.asyncio
    async def test_rename_session(
        self, app_client: tuple[AsyncClient, ScriptedProvider]
    ) -> None:
        client, _ = app_client
        session_id = (await client.post(BASE, json={})).json()["data"]["id"]

        response = await client.patch(f"{BASE}/{session_id}/title", json={"title": "Budget"})

        assert response.status_code == 200
        assert response.json()["data"]["title"] == "Budget"


class TestSendMessage:
    """Tests for POST /api/v1/chat/sessions/{id}/messages."""

    @pytest.mark.asyncio
    async def test_send_message_returns_reply(
        self, app_client: tuple[AsyncClient, ScriptedProvider]
    ) -> None:
        client, provider = app_client
        provider.play(text_reply("Hello there"))
        session_id = (await client.post(BASE, json={"title": "Chat"})).json()["data"]["id"]

        response = await client.post(
            f"{BASE}/{session_id}/messages", json={"message": "hi"}
        )

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["session_id"] == session_id
        assert data["user_message"]["content"] == "hi"
        assert data["assistant_message"]["content"] == "Hello there"
        assert data["assistant_message"]["role"] == "ASSISTANT"
        assert data["events"][-1]["type"] == "completed"

        message_id = data["assistant_message"]["id"]
        fetched = await client.get(f"{BASE}/{session_id}/messages/{message_id}")
        assert fetched.json()["data"]["content"] == "Hello there"

    @pytest.mark.asyncio
    async def test_message_of_other_session_is_not_found(
        self, app_client: tuple[AsyncClient, ScriptedProvider]
    ) -> None:
        client, _ = app_client
        first = (await client.post(BASE, json={})).json()["data"]["id"]
        second = (await client.post(BASE, json={})).json()["data"]["id"]
        sent = await client.post(f"{BASE}/{first}/messages", json={"message": "hi"})
        message_id = sent.json()["data"]["user_message"]["id"]

        response = await client.get(f"{BASE}/{second}/messages/{message_id}")

        assert response.status_code == 404
        assert response.json()["code"] == "MESSAGE_NOT_FOUND"

    @pytest.mark.asyncio
    async def test_send_message_to_closed_session(
        self, app_client: tuple[AsyncClient, ScriptedProvider]
    ) -> None:
        client, _ = app_client
        session_id = (await client.post(BASE, json={})).json()["data"]["id"]
        await client.post(f"{BASE}/{session_id}/status", json={"status": "CLOSED"})

        response = await client.post(
            f"{BASE}/{session_id}/messages", json={"message": "hi"}
        )

        assert response.status_code == 409
        assert response.json()["code"] == "SESSION_NOT_INTERACTIVE"

    @pytest.mark.asyncio
    async def test_send_message_is_rate_limited(
        self, app_client: tuple[AsyncClient, ScriptedProvider]
    ) -> None:
        client, _ = app_client
        session_id = (await client.post(BASE, json={"title": "Chat"})).json()["data"]["id"]

        statuses = [
            (
                await client.post(f"{BASE}/{session_id}/messages", json={"message": "hi"})
            ).status_code
            for _ in range(35)
        ]

        assert statuses[0] == 200
        assert statuses[-1] == 429
