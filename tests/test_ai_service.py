"""Tests for the OpenAI-compatible backends and the AI content gateway."""

import json

import httpx
import pytest

from conftest import TODAY, make_habit
from habit_coach.domain import HabitStatistics, InsightSource
from habit_coach.services.ai_backends.base import AIGatewayError
from habit_coach.services.ai_backends.openai_backend import OpenAIBackend
from habit_coach.services.ai_backends.openrouter_backend import OpenRouterBackend
from habit_coach.services.ai_service import (
    AIContentError, AIService, build_daily_prompt, build_weekly_prompt,
)


def completion(content):
    return {"choices": [{"message": {"role": "assistant", "content": content}}]}


def backend_with(handler, cls=OpenAIBackend, **kwargs):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    if cls is OpenAIBackend:
        kwargs.setdefault("base_url", "https://llm.test/v1")
    return cls(api_key="sk-test", client=client, **kwargs)


class TestOpenAIBackend:
    @pytest.mark.asyncio
    async def test_sends_json_mode_request(self):
        seen = {}

        def handler(request):
            seen["url"] = str(request.url)
            seen["auth"] = request.headers["Authorization"]
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json=completion('  {"message": "hi"}  '))

        backend = backend_with(handler, model="test-model")
        text = await backend.complete("system", "user", max_tokens=50)
        await backend.aclose()

        assert text == '{"message": "hi"}'
        assert seen["url"] == "https://llm.test/v1/chat/completions"
        assert seen["auth"] == "Bearer sk-test"
        assert seen["body"]["model"] == "test-model"
        assert seen["body"]["max_tokens"] == 50
        assert seen["body"]["response_format"] == {"type": "json_object"}
        assert [m["role"] for m in seen["body"]["messages"]] == ["system", "user"]

    @pytest.mark.asyncio
    async def test_http_error_status(self):
        backend = backend_with(lambda request: httpx.Response(500, text="oops"))
        with pytest.raises(AIGatewayError, match="HTTP 500"):
            await backend.complete("s", "u")

    @pytest.mark.asyncio
    async def test_transport_error(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(AIGatewayError):
            await backend_with(handler).complete("s", "u")

    @pytest.mark.asyncio
    async def test_missing_choices(self):
        backend = backend_with(lambda request: httpx.Response(200, json={"choices": []}))
        with pytest.raises(AIGatewayError, match="no choices"):
            await backend.complete("s", "u")

    @pytest.mark.asyncio
    async def test_empty_content(self):
        backend = backend_with(lambda request: httpx.Response(200, json=completion("")))
        with pytest.raises(AIGatewayError, match="empty"):
            await backend.complete("s", "u")

    @pytest.mark.asyncio
    async def test_openrouter_adds_referer(self):
        seen = {}

        def handler(request):
            seen["url"] = str(request.url)
            seen["referer"] = request.headers.get("HTTP-Referer")
            return httpx.Response(200, json=completion('{"message": "hi"}'))

        backend = backend_with(handler, cls=OpenRouterBackend, model="router-model")
        await backend.complete("s", "u")
        assert seen["url"] == "https://openrouter.ai/api/v1/chat/completions"
        assert seen["referer"]


class FakeBackend:
    def __init__(self, name, reply=None, error=None):
        self.name = name
        self.reply = reply
        self.error = error
        self.calls = 0

    async def complete(self, system_instruction, user_prompt, max_tokens=300):
        self.calls += 1
        if self.error:
            raise self.error
        return self.reply

    async def aclose(self):
        pass


WEEKLY_JSON = json.dumps({
    "summary": "You showed up most days.",
    "topPerformingHabit": "Read",
    "mostAtRiskHabit": "Run",
    "recommendation": "Lay out running shoes tonight.",
    "overallScore": 72,
})


class TestAIService:
    @pytest.mark.asyncio
    async def test_weekly_insight_parsed(self):
        service = AIService(FakeBackend("primary", reply=WEEKLY_JSON))
        insight = await service.generate_weekly_insight([], HabitStatistics(), TODAY)
        assert insight.week_of == TODAY
        assert insight.top_performing_habit == "Read"
        assert insight.most_at_risk_habit == "Run"
        assert insight.overall_score == 72
        assert insight.source is InsightSource.AI

    @pytest.mark.asyncio
    async def test_daily_nudge_parsed(self):
        service = AIService(FakeBackend("primary", reply='{"message": "Go read!"}'))
        nudge = await service.generate_daily_nudge([], HabitStatistics(), TODAY)
        assert nudge.message == "Go read!"
        assert nudge.date == TODAY

    @pytest.mark.asyncio
    async def test_secondary_backend_used_on_gateway_error(self):
        primary = FakeBackend("primary", error=AIGatewayError("down"))
        secondary = FakeBackend("secondary", reply='{"message": "Backup says hi"}')
        nudge = await AIService(primary, secondary).generate_daily_nudge(
            [], HabitStatistics(), TODAY
        )
        assert nudge.message == "Backup says hi"
        assert primary.calls == secondary.calls == 1

    @pytest.mark.asyncio
    async def test_gateway_error_without_secondary(self):
        primary = FakeBackend("primary", error=AIGatewayError("down"))
        with pytest.raises(AIGatewayError):
            await AIService(primary).generate_daily_nudge([], HabitStatistics(), TODAY)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("reply", [
        "not json at all",
        '{"text": "wrong key"}',
        '{"message": ""}',
    ])
    async def test_unusable_daily_content(self, reply):
        service = AIService(FakeBackend("primary", reply=reply))
        with pytest.raises(AIContentError):
            await service.generate_daily_nudge([], HabitStatistics(), TODAY)

    @pytest.mark.asyncio
    async def test_score_out_of_range_is_rejected(self):
        payload = json.loads(WEEKLY_JSON)
        payload["overallScore"] = 101
        service = AIService(FakeBackend("primary", reply=json.dumps(payload)))
        with pytest.raises(AIContentError):
            await service.generate_weekly_insight([], HabitStatistics(), TODAY)


class TestPrompts:
    def test_weekly_prompt_lists_habits(self):
        habits = [make_habit("Read", done=[TODAY], streak=4)]
        prompt = build_weekly_prompt(
            habits, HabitStatistics(total_habits=1, weekly_completion_rate=0.43)
        )
        assert '"Read": 1 completions total, streak 4d' in prompt
        assert "Weekly completion rate: 43%" in prompt

    def test_daily_prompt_marks_status(self):
        habits = [make_habit("Read", done=[TODAY]), make_habit("Run")]
        prompt = build_daily_prompt(habits, HabitStatistics(total_habits=2), TODAY)
        assert '"Read": done' in prompt
        assert '"Run": not done' in prompt
        assert TODAY.isoformat() in prompt

    def test_empty_prompt(self):
        assert "(no habits yet)" in build_daily_prompt([], HabitStatistics(), TODAY)
