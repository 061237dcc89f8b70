"""
tests/test_base_agent.py — Execution log lifecycle and owner notification on failure.
"""

import json
from unittest.mock import AsyncMock

import httpx
import pytest
from sqlalchemy import select

from models import AgentExecutionLog
from src.agents.base import AgentRun, BaseAgent, local_date
from src.integrations.owner_notifier import CONTENT_MAX_LENGTH, OwnerNotifier
from tests.conftest import FIXED_NOW, USER_ID


class ScriptedAgent(BaseAgent):
    name = "information"

    def __init__(self, *args, body=None, precondition=True, **kwargs):
        super().__init__(*args, **kwargs)
        self.body = body
        self.precondition = precondition

    async def should_run(self, user_id: str) -> bool:
        if isinstance(self.precondition, Exception):
            raise self.precondition
        return self.precondition

    async def execute(self, run: AgentRun) -> None:
        if self.body is not None:
            await self.body(run)


async def _logs(store):
    async with store.db.session() as session:
        return list((await session.execute(select(AgentExecutionLog))).scalars().all())


# ═════════════════════════════════════════════
# SUCCESS AND SKIP
# ═════════════════════════════════════════════

class TestLifecycle:
    @pytest.mark.asyncio
    async def test_success_records_counts_and_duration(self, store, notifier, clock):
        async def body(run):
            run.items_processed = 3
            run.items_failed = 1

        outcome = await ScriptedAgent(store, AsyncMock(), notifier, body=body, clock=clock).run(USER_ID)

        assert outcome.status == "success"
        logs = await _logs(store)
        assert len(logs) == 1
        assert logs[0].id == outcome.run_id
        assert (logs[0].items_processed, logs[0].items_failed) == (3, 1)
        assert logs[0].started_at is not None
        assert logs[0].finished_at is not None
        assert logs[0].execution_time >= 0

    @pytest.mark.asyncio
    async def test_unmet_precondition_writes_nothing(self, store, notifier, clock):
        agent = ScriptedAgent(store, AsyncMock(), notifier, precondition=False, clock=clock)
        assert await agent.run(USER_ID) is None
        assert await _logs(store) == []

    @pytest.mark.asyncio
    async def test_body_can_mark_run_skipped(self, store, notifier, clock):
        async def body(run):
            run.skipped = True

        outcome = await ScriptedAgent(store, AsyncMock(), notifier, body=body, clock=clock).run(USER_ID)
        assert outcome.status == "skipped"
        assert (await _logs(store))[0].status == "skipped"


# ═════════════════════════════════════════════
# FAILURE
# ═════════════════════════════════════════════

class TestFailure:
    @pytest.mark.asyncio
    async def test_database_error_mid_run(self, store, notifier, clock):
        async def body(run):
            run.items_processed = 1
            raise RuntimeError("database is locked")

        outcome = await ScriptedAgent(store, AsyncMock(), notifier, body=body, clock=clock).run(USER_ID)

        assert outcome.status == "failed"
        assert outcome.error == "database is locked"
        logs = await _logs(store)
        assert len(logs) == 1
        assert logs[0].status == "failed"
        assert logs[0].error_message == "database is locked"
        assert logs[0].items_processed == 1
        notifier.notify.assert_awaited_once()
        title, content = notifier.notify.await_args.args
        assert "Information agent" in title
        assert USER_ID in content
        assert "database is locked" in content

    @pytest.mark.asyncio
    async def test_error_without_message_uses_class_name(self, store, notifier, clock):
        async def body(run):
            raise KeyError()

        outcome = await ScriptedAgent(store, AsyncMock(), notifier, body=body, clock=clock).run(USER_ID)
        assert outcome.error == "KeyError"

    @pytest.mark.asyncio
    async def test_notifier_failure_is_swallowed(self, store, clock):
        notifier = AsyncMock()
        notifier.notify.side_effect = ConnectionError("notify endpoint down")

        async def body(run):
            raise RuntimeError("boom")

        outcome = await ScriptedAgent(store, AsyncMock(), notifier, body=body, clock=clock).run(USER_ID)

        assert outcome.status == "failed"
        assert (await _logs(store))[0].status == "failed"

    @pytest.mark.asyncio
    async def test_oversized_error_is_truncated_and_still_sent(self, store, clock, test_settings, mock_http):
        requests = mock_http(lambda request: httpx.Response(200, json={"ok": True}))

        async def body(run):
            raise RuntimeError("x" * 25_000)

        agent = ScriptedAgent(store, AsyncMock(), OwnerNotifier(test_settings), body=body, clock=clock)
        outcome = await agent.run(USER_ID)

        assert outcome.status == "failed"
        assert (await _logs(store))[0].error_message == "x" * 25_000
        assert len(requests) == 1
        sent = json.loads(requests[0].content)
        assert len(sent["content"]) <= CONTENT_MAX_LENGTH
        assert sent["content"].startswith(f"User: {USER_ID}\nError: xxx")
        assert sent["content"].endswith("(truncated)")

    @pytest.mark.asyncio
    async def test_precondition_error_still_logs_failure(self, store, notifier, clock):
        agent = ScriptedAgent(
            store, AsyncMock(), notifier, precondition=RuntimeError("lookup failed"), clock=clock
        )

        outcome = await agent.run(USER_ID)

        assert outcome.status == "failed"
        logs = await _logs(store)
        assert len(logs) == 1
        assert logs[0].error_message == "lookup failed"
        notifier.notify.assert_awaited_once()


# ═════════════════════════════════════════════
# local_date
# ═════════════════════════════════════════════

class TestLocalDate:
    def test_utc_default(self):
        assert local_date(FIXED_NOW, None).isoformat() == "2024-06-02"

    def test_negative_offset_rolls_back(self):
        # 12:00 UTC is 05:00 in Los Angeles, same day; 03:00 UTC is previous evening
        early = FIXED_NOW.replace(hour=3)
        assert local_date(early, "America/Los_Angeles").isoformat() == "2024-06-01"

    def test_unknown_zone_falls_back_to_utc(self):
        assert local_date(FIXED_NOW, "Mars/Olympus_Mons").isoformat() == "2024-06-02"
