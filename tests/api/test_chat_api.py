"""
Tests for the chat router HTTP endpoints.
"""
import json
from unittest.mock import AsyncMock, patch

import httpx
import pytest
import pytest_asyncio
from fastapi.testclient import TestClient

from chat_router.api import main as api_main
from chat_router.api.main import create_app
from chat_router.core.config_manager import ConfigManager
from chat_router.services.chat_service import SchedulerState


@pytest.fixture
def app(chat_service, tmp_path):
    return create_app(chat_service=chat_service, config_manager=ConfigManager(str(tmp_path)))


@pytest_asyncio.fixture
async def http_client(app):
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


def _sse_payloads(text: str):
    return [line[len("data: "):] for line in text.splitlines() if line.startswith("data: ")]


class TestChatCompletionsEndpoint:
    """POST /v1/chat/completions"""

    @pytest.mark.asyncio
    async def test_health(self, http_client):
        response = await http_client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "ok"}

    @pytest.mark.asyncio
    async def test_completion(self, http_client, chatgpt):
        response = await http_client.post("/v1/chat/completions", json={"user": "u1", "content": "Hello"})

        assert response.status_code == 200
        assert response.json() == {"content": "answer from chatgpt"}
        assert response.headers["X-Request-ID"]
        assert chatgpt.calls == [("u1", "Hello")]

    @pytest.mark.asyncio
    async def test_request_id_is_echoed(self, http_client):
        response = await http_client.post(
            "/v1/chat/completions",
            json={"user": "u1", "content": "Hello"},
            headers={"X-Request-ID": "req-42"}
        )
        assert response.headers["X-Request-ID"] == "req-42"

    @pytest.mark.asyncio
    async def test_routes_by_chat_type(self, http_client, wenxin):
        response = await http_client.post(
            "/v1/chat/completions", json={"user": "u1", "content": "Hello", "chat_type": "wenxin"}
        )
        assert response.json() == {"content": "answer from wenxin"}
        assert wenxin.calls == [("u1", "Hello")]

    @pytest.mark.asyncio
    async def test_empty_answer(self, http_client, chatgpt):
        chatgpt.response = ""
        response = await http_client.post("/v1/chat/completions", json={"user": "u1", "content": "Hello"})

        assert response.status_code == 200
        assert response.json() == {"content": "Get response empty."}

    @pytest.mark.asyncio
    async def test_quota_exceeded(self, http_client):
        for _ in range(3):
            await http_client.post("/v1/chat/completions", json={"user": "u1", "content": "Hello"})

        response = await http_client.post("/v1/chat/completions", json={"user": "u1", "content": "Hello"})

        assert response.status_code == 429
        assert response.json()["detail"]["error"] == {
            "message": "You've reached the daily limit (3/day). Your quota will be restored tomorrow.",
            "code": "quota_exceeded"
        }

    @pytest.mark.asyncio
    async def test_provider_failure(self, http_client, chatgpt, chat_service):
        chatgpt.error = RuntimeError("upstream exploded")
        response = await http_client.post("/v1/chat/completions", json={"user": "u1", "content": "Hello"})

        assert response.status_code == 502
        assert response.json()["detail"]["error"]["message"] == "Get response failed."
        assert await chat_service.get_usage("u1") == 0

    @pytest.mark.asyncio
    async def test_unknown_chat_type(self, http_client):
        response = await http_client.post(
            "/v1/chat/completions", json={"user": "u1", "content": "Hello", "chat_type": "bard"}
        )
        assert response.status_code == 400
        assert response.json()["detail"]["error"]["code"] == "invalid_provider"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("body,code", [
        ({"content": "Hello"}, "user_not_specified"),
        ({"user": "u1"}, "content_not_specified"),
        ({"user": "u1", "content": ""}, "content_not_specified"),
        (["not", "an", "object"], "invalid_request_format"),
    ])
    async def test_validation(self, http_client, body, code):
        response = await http_client.post("/v1/chat/completions", json=body)
        assert response.status_code == 400
        assert response.json()["detail"]["error"]["code"] == code

    @pytest.mark.asyncio
    async def test_malformed_json(self, http_client):
        response = await http_client.post(
            "/v1/chat/completions", content=b"{not json", headers={"Content-Type": "application/json"}
        )
        assert response.status_code == 400
        assert response.json()["detail"]["error"]["code"] == "invalid_request_format"

    @pytest.mark.asyncio
    async def test_service_call_is_logged_as_request_scope(self, http_client):
        with patch.object(api_main.logger, "request") as mock_request, \
                patch.object(api_main.logger, "info") as mock_info:
            await http_client.post(
                "/v1/chat/completions",
                json={"user": "u1", "content": "Hello", "chat_type": "wenxin"},
                headers={"X-Request-ID": "req-7"}
            )

        mock_request.assert_any_call(operation="Chat completion", request_id="req-7", user_id="u1",
                                     chat_type="wenxin", stream=False)
        finished = [c for c in mock_info.call_args_list if c.args[0].startswith("Finished: Chat completion")]
        assert len(finished) == 1
        assert "outcome=ok" in finished[0].args[0]

    @pytest.mark.asyncio
    async def test_rejected_call_is_logged_as_failed(self, http_client):
        for _ in range(3):
            await http_client.post("/v1/chat/completions", json={"user": "u1", "content": "Hello"})

        with patch.object(api_main.logger, "info") as mock_info:
            response = await http_client.post("/v1/chat/completions", json={"user": "u1", "content": "Hello"})

        assert response.status_code == 429
        finished = [c for c in mock_info.call_args_list if c.args[0].startswith("Finished: Chat completion")]
        assert "outcome=failed (QuotaExceededError)" in finished[0].args[0]


class TestStreamingEndpoint:
    """POST /v1/chat/completions with stream=true"""

    @pytest.mark.asyncio
    async def test_stream(self, http_client, chat_service):
        response = await http_client.post(
            "/v1/chat/completions", json={"user": "u1", "content": "Hello", "stream": True}
        )

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/event-stream")
        payloads = _sse_payloads(response.text)
        assert [json.loads(p)["content"] for p in payloads[:-1]] == ["Hel", "lo"]
        assert payloads[-1] == "[DONE]"
        assert await chat_service.get_usage("u1") == 1

    @pytest.mark.asyncio
    async def test_stream_interrupted(self, http_client, chatgpt):
        chatgpt.chunks = ["partial"]
        chatgpt.stream_error = ConnectionError("stream dropped")
        response = await http_client.post(
            "/v1/chat/completions", json={"user": "u1", "content": "Hello", "stream": True}
        )

        payloads = _sse_payloads(response.text)
        assert json.loads(payloads[0]) == {"content": "partial"}
        assert json.loads(payloads[1])["error"]["message"] == "stream dropped"
        assert payloads[-1] == "[DONE]"

    @pytest.mark.asyncio
    async def test_stream_provider_error_is_raw(self, http_client, chatgpt):
        chatgpt.error = ConnectionError("connection refused")
        response = await http_client.post(
            "/v1/chat/completions", json={"user": "u1", "content": "Hello", "stream": True}
        )

        assert response.status_code == 502
        assert response.json()["detail"]["error"]["message"] == "connection refused"

    @pytest.mark.asyncio
    async def test_stream_quota_exceeded(self, http_client):
        for _ in range(3):
            await http_client.post("/v1/chat/completions", json={"user": "u1", "content": "Hi", "stream": True})

        response = await http_client.post(
            "/v1/chat/completions", json={"user": "u1", "content": "Hi", "stream": True}
        )
        assert response.status_code == 429
        assert "you've reached the daily limit (3/day)" in response.json()["detail"]["error"]["message"]


class TestQuotaEndpoint:
    """GET /v1/quota/{user_id}"""

    @pytest.mark.asyncio
    async def test_usage(self, http_client):
        await http_client.post("/v1/chat/completions", json={"user": "u1", "content": "Hello"})

        response = await http_client.get("/v1/quota/u1")

        assert response.json() == {"user": "u1", "used": 1, "limit": 3, "day": 15}

    @pytest.mark.asyncio
    async def test_usage_after_day_reset(self, http_client, chat_service, clock):
        await http_client.post("/v1/chat/completions", json={"user": "u1", "content": "Hello"})
        clock.advance(days=1)
        await chat_service.quota.reset_if_new_day()

        response = await http_client.get("/v1/quota/u1")

        assert response.json() == {"user": "u1", "used": 0, "limit": 3, "day": 16}

    @pytest.mark.asyncio
    async def test_usage_reads_day_and_count_from_one_snapshot(self, http_client, chat_service):
        with patch.object(chat_service.quota, "snapshot", AsyncMock(return_value={"day": 16, "counts": {"u1": 2}})):
            response = await http_client.get("/v1/quota/u1")

        assert response.json() == {"user": "u1", "used": 2, "limit": 3, "day": 16}


def test_startup_and_shutdown_manage_scheduler(app, chat_service):
    with TestClient(app) as client:
        assert client.get("/health").status_code == 200
        assert chat_service.scheduler.running
        assert app.state.httpx_client is not None
    assert chat_service.scheduler.state == SchedulerState.STOPPED
