"""
Unit Tests for AnalysisClient

Tests request building, response parsing, timeout handling and the mapping
of transport failures onto the error taxonomy.
"""

import asyncio

import orjson
import pytest

from jd_analyzer.core.exceptions import (
    AnalysisError,
    AuthenticationError,
    ErrorCategory,
    InvalidResponseError,
    NetworkError,
    ProviderQuotaError,
    ProviderRequestError,
    RateLimitExceededError,
    RequestTimeoutError,
    ServerError,
)
from jd_analyzer.llm_providers import (
    AnalysisClient,
    ProviderHTTPError,
    Transport,
    map_provider_error,
    parse_retry_after_ms,
)
from jd_analyzer.llm_providers.base_provider import SYSTEM_PROMPTS
from jd_analyzer.models.analysis import AnalysisRequest, AnalysisType, ProviderResponse
from tests.test_fixtures.transport_factory import FailingTransport, FakeTransport, provider_response


@pytest.fixture
def client(fake_transport):
    return AnalysisClient(fake_transport, model="gpt-4o", max_tokens=500, temperature=0.2, timeout_ms=1000)


@pytest.mark.unit
class TestRequestBuilding:
    def test_fake_transport_satisfies_protocol(self, fake_transport):
        assert isinstance(fake_transport, Transport)

    def test_provider_request_fields(self, client):
        request = client.build_provider_request(AnalysisRequest.build("Build APIs in Go"))

        assert request.model == "gpt-4o"
        assert request.max_tokens == 500
        assert request.temperature == 0.2
        assert request.response_format == {"type": "json_object"}
        assert request.messages[0] == {"role": "system", "content": SYSTEM_PROMPTS[AnalysisType.JD_ANALYSIS]}
        assert "Build APIs in Go" in request.messages[1]["content"]

    def test_skill_matching_prompt_includes_user_skills(self, client):
        request = client.build_provider_request(
            AnalysisRequest.build("Needs React", "skill-matching", ["React", "CSS"])
        )

        assert "React, CSS" in request.messages[1]["content"]
        assert request.messages[0]["content"] == SYSTEM_PROMPTS[AnalysisType.SKILL_MATCHING]

    def test_every_analysis_type_has_a_prompt(self):
        assert set(SYSTEM_PROMPTS) == set(AnalysisType)

    def test_from_settings(self, settings_factory, fake_transport):
        client = AnalysisClient.from_settings(
            settings_factory(OPENAI_MODEL="gpt-4o-mini", MAX_TOKENS=123, REQUEST_TIMEOUT_MS=500),
            fake_transport,
        )

        assert client.model == "gpt-4o-mini"
        assert client.max_tokens == 123
        assert client.timeout_ms == 500
        assert client.transport is fake_transport


@pytest.mark.unit
class TestAnalyze:
    @pytest.mark.asyncio
    async def test_successful_call(self, client, fake_transport):
        response = await client.analyze(AnalysisRequest.build("JD"))

        assert fake_transport.call_count == 1
        assert response.result.confidence == 0.85
        assert response.result.keywords[0].text == "React"
        assert response.usage.total_tokens == 300
        assert response.result.processing_time_ms == response.processing_time_ms

    @pytest.mark.asyncio
    async def test_timeout(self):
        client = AnalysisClient(FakeTransport(delay=1.0), timeout_ms=10)

        with pytest.raises(RequestTimeoutError) as exc_info:
            await client.analyze(AnalysisRequest.build("JD"))

        assert exc_info.value.retryable is True
        assert exc_info.value.details["timeout_ms"] == 10

    @pytest.mark.asyncio
    async def test_transport_error_is_mapped_and_chained(self):
        original = ProviderHTTPError(503, "upstream unavailable")
        client = AnalysisClient(FailingTransport(original))

        with pytest.raises(ServerError) as exc_info:
            await client.analyze(AnalysisRequest.build("JD"))

        assert exc_info.value.__cause__ is original

    @pytest.mark.asyncio
    async def test_analysis_error_passes_through_unchanged(self):
        original = NetworkError("socket closed")
        client = AnalysisClient(FailingTransport(original))

        with pytest.raises(NetworkError) as exc_info:
            await client.analyze(AnalysisRequest.build("JD"))

        assert exc_info.value is original

    @pytest.mark.asyncio
    async def test_usage_stats(self, fake_clock, fake_transport):
        client = AnalysisClient(fake_transport, clock=fake_clock)

        await client.analyze(AnalysisRequest.build("JD"))
        await client.analyze(AnalysisRequest.build("JD"))

        assert client.get_usage_stats() == {"request_count": 2, "last_request_time": fake_clock.now}

        client.reset_usage_stats()
        assert client.get_usage_stats()["request_count"] == 0


@pytest.mark.unit
class TestParseResult:
    def test_missing_fields_take_defaults(self):
        result = AnalysisClient.parse_result('{"keywords": []}')

        assert result.confidence == 0.5
        assert result.match_score is None
        assert result.suggestions == ()

    def test_model_supplied_timing_ignored(self):
        result = AnalysisClient.parse_result('{"confidence": 0.9, "processingTimeMs": 99999}')

        assert result.processing_time_ms == 0

    @pytest.mark.parametrize("content", ["not json", "[1, 2]", '{"confidence": "very"}'])
    def test_invalid_content(self, content):
        with pytest.raises(InvalidResponseError) as exc_info:
            AnalysisClient.parse_result(content)

        assert exc_info.value.code == "INVALID_RESPONSE"
        assert exc_info.value.category == ErrorCategory.SERVER

    @pytest.mark.asyncio
    async def test_invalid_answer_surfaces_from_analyze(self):
        client = AnalysisClient(FakeTransport(ProviderResponse(content="oops")))

        with pytest.raises(InvalidResponseError):
            await client.analyze(AnalysisRequest.build("JD"))

    def test_round_trip_of_fixture_payload(self):
        response = provider_response(confidence=0.7, matchScore=0.4)

        result = AnalysisClient.parse_result(response.content)

        assert result.confidence == 0.7
        assert result.match_score == 0.4
        assert orjson.loads(response.content)["skills"][0]["name"] == result.skills[0].name


@pytest.mark.unit
class TestErrorMapping:
    @pytest.mark.parametrize(
        "status, expected_cls, category, retryable",
        [
            (401, AuthenticationError, ErrorCategory.AUTH, False),
            (403, AuthenticationError, ErrorCategory.AUTH, False),
            (429, RateLimitExceededError, ErrorCategory.RATE_LIMIT, True),
            (402, ProviderQuotaError, ErrorCategory.QUOTA, False),
            (400, ProviderRequestError, ErrorCategory.VALIDATION, False),
            (500, ServerError, ErrorCategory.SERVER, True),
            (503, ServerError, ErrorCategory.SERVER, True),
        ],
    )
    def test_status_mapping(self, status, expected_cls, category, retryable):
        error = map_provider_error(ProviderHTTPError(status))

        assert isinstance(error, expected_cls)
        assert error.category == category
        assert error.retryable is retryable
        assert error.details["status_code"] == status

    def test_auth_error_carries_suggestion(self):
        error = map_provider_error(ProviderHTTPError(401, "Invalid API key"))

        assert error.details["suggestion"] == "Check OPENAI_API_KEY"

    def test_rate_limit_reads_retry_after_header(self):
        error = map_provider_error(ProviderHTTPError(429, headers={"Retry-After": "2"}))

        assert error.code == "PROVIDER_RATE_LIMITED"
        assert error.retry_after_ms == 2000

    def test_insufficient_quota_is_not_retryable(self):
        error = map_provider_error(ProviderHTTPError(429, code="insufficient_quota"))

        assert isinstance(error, ProviderQuotaError)
        assert error.retryable is False

    def test_timeout_and_connection_errors(self):
        assert isinstance(map_provider_error(asyncio.TimeoutError()), RequestTimeoutError)
        assert isinstance(map_provider_error(ConnectionResetError("reset")), NetworkError)

    def test_unknown_exception_coerced(self):
        error = map_provider_error(ValueError("weird"))

        assert type(error) is AnalysisError
        assert error.code == "UNKNOWN_ERROR"
        assert error.retryable is False


@pytest.mark.unit
class TestRetryAfterParsing:
    def test_milliseconds_header_wins(self):
        assert parse_retry_after_ms({"retry-after-ms": "1500", "retry-after": "9"}) == 1500

    def test_seconds_header(self):
        assert parse_retry_after_ms({"retry-after": "0.5"}) == 500

    def test_http_date_ignored(self):
        assert parse_retry_after_ms({"retry-after": "Wed, 21 Oct 2015 07:28:00 GMT"}) is None

    def test_no_header(self):
        assert parse_retry_after_ms({}) is None
