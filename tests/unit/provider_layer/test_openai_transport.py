"""
Unit Tests for OpenAITransport

The AsyncOpenAI client is replaced with a mock; no network calls are made.
"""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from jd_analyzer.core.exceptions import ConfigurationError
from jd_analyzer.llm_providers import AnalysisClient, OpenAITransport
from jd_analyzer.models.analysis import AnalysisRequest, ProviderRequest


def completion(content='{"confidence": 0.9}', usage=(10, 20, 30)):
    prompt, completion_tokens, total = usage
    return SimpleNamespace(
        choices=[SimpleNamespace(message=SimpleNamespace(content=content))],
        usage=SimpleNamespace(prompt_tokens=prompt, completion_tokens=completion_tokens, total_tokens=total),
        model="gpt-4o-2024",
    )


@pytest.fixture
def openai_client():
    client = MagicMock()
    client.chat.completions.create = AsyncMock(return_value=completion())
    client.models.list = AsyncMock(return_value=[])
    client.close = AsyncMock()
    return client


@pytest.fixture
def transport(openai_client):
    return OpenAITransport(api_key=None, client=openai_client)


@pytest.mark.unit
class TestOpenAITransport:
    def test_missing_api_key_rejected(self):
        with pytest.raises(ConfigurationError) as exc_info:
            OpenAITransport(api_key=None)

        assert exc_info.value.code == "MISSING_API_KEY"
        assert "OPENAI_API_KEY" in exc_info.value.details["suggestion"]

    def test_sdk_retries_disabled(self):
        transport = OpenAITransport(api_key="sk-test-key", timeout_ms=5000)

        assert transport.client.max_retries == 0

    def test_from_settings(self, settings_factory):
        transport = OpenAITransport.from_settings(settings_factory(OPENAI_BASE_URL="http://localhost:9999/v1"))

        assert str(transport.client.base_url).startswith("http://localhost:9999/v1")

    @pytest.mark.asyncio
    async def test_call_forwards_request(self, transport, openai_client):
        request = ProviderRequest(
            model="gpt-4o",
            messages=({"role": "user", "content": "hi"},),
            max_tokens=100,
            temperature=0.3,
        )

        response = await transport(request)

        openai_client.chat.completions.create.assert_awaited_once_with(
            model="gpt-4o",
            messages=[{"role": "user", "content": "hi"}],
            max_tokens=100,
            temperature=0.3,
            response_format={"type": "json_object"},
        )
        assert response.content == '{"confidence": 0.9}'
        assert response.usage.total_tokens == 30
        assert response.model == "gpt-4o-2024"

    @pytest.mark.asyncio
    async def test_empty_answer_becomes_empty_object(self, transport, openai_client):
        openai_client.chat.completions.create.return_value = completion(content=None)

        request = ProviderRequest(model="m", messages=(), max_tokens=1, temperature=0)
        response = await transport(request)

        assert response.content == "{}"

    @pytest.mark.asyncio
    async def test_works_behind_analysis_client(self, transport):
        client = AnalysisClient(transport)

        response = await client.analyze(AnalysisRequest.build("JD"))

        assert response.result.confidence == 0.9
        assert response.usage.prompt_tokens == 10

    @pytest.mark.asyncio
    async def test_health_check(self, transport, openai_client):
        assert (await transport.health_check())["status"] == "healthy"

        openai_client.models.list.side_effect = RuntimeError("down")
        health = await transport.health_check()
        assert health["status"] == "unhealthy"
        assert health["error"] == "down"

    @pytest.mark.asyncio
    async def test_close(self, transport, openai_client):
        await transport.close()

        openai_client.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_service_health_consults_provider(self, transport, openai_client, service_factory):
        service = service_factory(transport=transport)
        openai_client.models.list.side_effect = RuntimeError("down")

        health = await service.health_check()

        assert health["status"] == "degraded"
        assert health["details"]["provider"] == {"status": "unhealthy", "error": "down", "provider": "openai"}
        await service.close()
