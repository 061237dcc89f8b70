"""
tests/test_learning_agent.py — Day-of-week curriculum and once-per-day lessons.
"""

import json
from datetime import date

import pytest
from sqlalchemy import select

from models import AgentExecutionLog, LearningContent, SystemMessage
from src.agents.learning_agent import (
    SUMMARY_FALLBACK,
    LearningAgent,
    category_for_day,
    day_of_week,
)
from src.agents.replies import LearningPlan
from tests.conftest import USER_ID, make_llm

LESSON = {
    "topic": "Automated market makers",
    "explanation": "An AMM prices assets with a formula instead of an order book.",
    "caseStudy": "Uniswap v2 uses x*y=k.",
    "keyPoints": ["constant product", "liquidity providers", "slippage"],
    "resources": [{"title": "Uniswap docs", "url": "https://docs.uniswap.org", "type": "article"}],
    "nextTopic": "Impermanent loss",
}


def _lesson_llm(lesson=LESSON, summary="Learn how AMMs price swaps."):
    def handler(messages, output_schema):
        if output_schema is LearningPlan:
            return lesson if isinstance(lesson, str) else json.dumps(lesson)
        return summary
    return make_llm(handler)


async def _all(store, model):
    async with store.db.session() as session:
        return list((await session.execute(select(model))).scalars().all())


# ═════════════════════════════════════════════
# CURRICULUM ROTATION
# ═════════════════════════════════════════════

class TestCategoryForDay:
    @pytest.mark.parametrize(
        "day, expected",
        [
            (0, "web3"),
            (1, "us_stocks"),
            (2, "quantitative"),
            (3, "web3"),
            (4, "us_stocks"),
            (5, "quantitative"),
            (6, "web3"),
        ],
    )
    def test_rotation(self, day, expected):
        assert category_for_day(day) == expected

    def test_sunday_is_zero(self):
        assert day_of_week(date(2024, 6, 2)) == 0   # Sunday

    def test_saturday_is_six(self):
        assert day_of_week(date(2024, 6, 8)) == 6   # Saturday


# ═════════════════════════════════════════════
# RUNS
# ═════════════════════════════════════════════

class TestLearningRun:
    @pytest.mark.asyncio
    async def test_creates_lesson_and_message(self, store, notifier, clock):
        agent = LearningAgent(store, _lesson_llm(), notifier, clock=clock)

        outcome = await agent.run(USER_ID)

        assert outcome.status == "success"
        assert outcome.items_processed == 1
        lessons = await _all(store, LearningContent)
        assert len(lessons) == 1
        assert lessons[0].date == "2024-06-02"
        assert lessons[0].category == "web3"   # Sunday
        assert lessons[0].case_study == "Uniswap v2 uses x*y=k."
        assert lessons[0].resources[0]["url"] == "https://docs.uniswap.org"

        messages = await _all(store, SystemMessage)
        assert len(messages) == 1
        assert messages[0].message_type == "learning_task"
        assert messages[0].content == "Learn how AMMs price swaps."
        assert messages[0].extra["category"] == "web3"
        assert messages[0].extra["key_points"] == LESSON["keyPoints"]

    @pytest.mark.asyncio
    async def test_second_run_same_day_is_a_no_op(self, store, notifier, clock):
        agent = LearningAgent(store, _lesson_llm(), notifier, clock=clock)

        await agent.run(USER_ID)
        second = await agent.run(USER_ID)

        assert second is None
        assert len(await _all(store, LearningContent)) == 1
        assert len(await _all(store, SystemMessage)) == 1
        assert len(await _all(store, AgentExecutionLog)) == 1

    @pytest.mark.asyncio
    async def test_losing_insert_race_is_skipped(self, store, notifier, clock):
        agent = LearningAgent(store, _lesson_llm(), notifier, clock=clock)
        log = await store.start_execution(USER_ID, "learning")
        # Another run inserted today's lesson after our precondition check
        await store.insert_learning_content(USER_ID, "2024-06-02", topic="Other run", category="web3")

        outcome = await agent.execute_run(log.id, USER_ID)

        assert outcome.status == "skipped"
        assert len(await _all(store, LearningContent)) == 1
        assert await _all(store, SystemMessage) == []
        row = await store.get_execution(log.id)
        assert row.status == "skipped"

    @pytest.mark.asyncio
    async def test_missing_fields_are_defaulted(self, store, notifier, clock):
        agent = LearningAgent(store, _lesson_llm(lesson={"explanation": "only this"}), notifier, clock=clock)
        outcome = await agent.run(USER_ID)

        assert outcome.status == "success"
        lesson = (await _all(store, LearningContent))[0]
        assert lesson.topic == "Untitled topic"
        assert lesson.key_points == []

    @pytest.mark.asyncio
    async def test_unparseable_lesson_fails_the_run(self, store, notifier, clock):
        agent = LearningAgent(store, _lesson_llm(lesson="Sorry, I can't do that."), notifier, clock=clock)

        outcome = await agent.run(USER_ID)

        assert outcome.status == "failed"
        assert outcome.error
        assert await _all(store, LearningContent) == []
        logs = await _all(store, AgentExecutionLog)
        assert len(logs) == 1
        assert logs[0].status == "failed"
        assert logs[0].error_message
        notifier.notify.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_summary_failure_uses_fallback(self, store, notifier, clock):
        def handler(messages, output_schema):
            if output_schema is LearningPlan:
                return json.dumps(LESSON)
            raise RuntimeError("summary call failed")

        agent = LearningAgent(store, make_llm(handler), notifier, clock=clock)
        outcome = await agent.run(USER_ID)

        assert outcome.status == "success"
        assert (await _all(store, SystemMessage))[0].content == SUMMARY_FALLBACK
