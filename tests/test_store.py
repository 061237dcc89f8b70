"""
tests/test_store.py — AlphaStore against a temporary SQLite database.
"""

import asyncio

import pytest

from src.services.store import compute_position
from tests.conftest import OTHER_USER_ID, USER_ID


# ═════════════════════════════════════════════
# PORTFOLIO
# ═════════════════════════════════════════════

class TestPortfolio:
    def test_compute_position(self):
        position = compute_position(quantity=2, entry_price=100, current_price=125)
        assert position == {"total_value": 250, "gain_loss": 50, "gain_loss_percent": 25.0}

    def test_compute_position_without_price_uses_entry(self):
        position = compute_position(quantity=3, entry_price=10, current_price=None)
        assert position["total_value"] == 30
        assert position["gain_loss"] == 0

    def test_compute_position_zero_entry_price(self):
        assert compute_position(quantity=1, entry_price=0, current_price=5)["gain_loss_percent"] == 0.0

    @pytest.mark.asyncio
    async def test_upsert_replaces_existing_holding(self, store):
        first = await store.upsert_portfolio_item(USER_ID, "bitcoin", "crypto", quantity=1, entry_price=40_000)
        second = await store.upsert_portfolio_item(
            USER_ID, "bitcoin", "crypto", quantity=2, entry_price=40_000, current_price=45_000
        )

        assert first.id == second.id
        items = await store.list_portfolio(USER_ID)
        assert len(items) == 1
        assert items[0].quantity == 2
        assert items[0].total_value == 90_000
        assert items[0].gain_loss == 10_000

    @pytest.mark.asyncio
    async def test_portfolio_is_per_user(self, store):
        await store.upsert_portfolio_item(USER_ID, "bitcoin", "crypto", quantity=1, entry_price=1)
        assert await store.list_portfolio(OTHER_USER_ID) == []


# ═════════════════════════════════════════════
# UNIQUE PER-DAY ROWS
# ═════════════════════════════════════════════

class TestPerDayRows:
    @pytest.mark.asyncio
    async def test_second_lesson_same_day_returns_none(self, store):
        first = await store.insert_learning_content(USER_ID, "2024-06-02", topic="AMMs", category="web3")
        second = await store.insert_learning_content(USER_ID, "2024-06-02", topic="Again", category="web3")

        assert first is not None
        assert second is None
        assert (await store.get_learning_for_date(USER_ID, "2024-06-02")).topic == "AMMs"

    @pytest.mark.asyncio
    async def test_same_day_different_user_allowed(self, store):
        await store.insert_learning_content(USER_ID, "2024-06-02", topic="AMMs", category="web3")
        other = await store.insert_learning_content(OTHER_USER_ID, "2024-06-02", topic="AMMs", category="web3")
        assert other is not None

    @pytest.mark.asyncio
    async def test_daily_summary_upsert(self, store):
        await store.upsert_daily_summary(USER_ID, "2024-06-02", summary="first", top_article_ids=["a"])
        await store.upsert_daily_summary(USER_ID, "2024-06-02", summary="second", top_article_ids=["b"])

        row = await store.get_daily_summary(USER_ID, "2024-06-02")
        assert row.summary == "second"
        assert row.top_article_ids == ["b"]
        assert len(await store.list_daily_summaries(USER_ID, days=3650)) == 1

    @pytest.mark.asyncio
    async def test_concurrent_daily_summary_upserts_keep_one_row(self, store):
        rows = await asyncio.gather(
            store.upsert_daily_summary(USER_ID, "2024-06-02", summary="a", top_article_ids=[]),
            store.upsert_daily_summary(USER_ID, "2024-06-02", summary="b", top_article_ids=[]),
        )

        assert rows[0].id == rows[1].id
        assert len(await store.list_daily_summaries(USER_ID, days=3650)) == 1


# ═════════════════════════════════════════════
# OWNERSHIP
# ═════════════════════════════════════════════

class TestOwnership:
    @pytest.mark.asyncio
    async def test_message_read_by_owner_only(self, store):
        message = await store.create_message(USER_ID, "daily_summary", "Title", "Body")

        assert await store.mark_message_read(message.id, OTHER_USER_ID) is None
        assert await store.count_unread_messages(USER_ID) == 1

        updated = await store.mark_message_read(message.id, USER_ID)
        assert updated.is_read is True
        assert updated.read_at is not None
        assert await store.count_unread_messages(USER_ID) == 0

    @pytest.mark.asyncio
    async def test_article_toggle_saved_owner_only(self, store):
        article = await store.create_article(
            USER_ID, title="t", url="https://a.example", source="HackerNews", category="other"
        )
        assert await store.toggle_article_saved(article.id, OTHER_USER_ID) is None
        assert (await store.toggle_article_saved(article.id, USER_ID)).is_saved is True
        assert (await store.toggle_article_saved(article.id, USER_ID)).is_saved is False

    @pytest.mark.asyncio
    async def test_signal_lookup_owner_only(self, store):
        signal = await store.create_signal(USER_ID, symbol="bitcoin", asset_type="crypto", signal="buy")
        assert await store.get_signal(signal.id, OTHER_USER_ID) is None
        assert (await store.mark_signal_actioned(signal.id, USER_ID)).is_actioned is True

    @pytest.mark.asyncio
    async def test_execution_lookup_scoped_to_user(self, store):
        log = await store.start_execution(USER_ID, "information")
        assert await store.get_execution(log.id, OTHER_USER_ID) is None
        assert (await store.get_execution(log.id, USER_ID)).status == "queued"


# ═════════════════════════════════════════════
# EXECUTION LOGS
# ═════════════════════════════════════════════

class TestExecutionLogs:
    @pytest.mark.asyncio
    async def test_lifecycle(self, store):
        log = await store.start_execution(USER_ID, "learning")
        assert log.status == "queued"
        assert log.started_at is None

        await store.mark_execution_running(log.id)
        assert (await store.get_execution(log.id)).status == "running"

        await store.finish_execution(log.id, status="success", items_processed=1, execution_time=42)
        row = await store.get_execution(log.id)
        assert row.status == "success"
        assert row.execution_time == 42
        assert row.finished_at is not None

    @pytest.mark.asyncio
    async def test_finish_unknown_log_raises(self, store):
        with pytest.raises(LookupError):
            await store.finish_execution("missing", status="failed")

    @pytest.mark.asyncio
    async def test_list_filters_by_agent(self, store):
        await store.start_execution(USER_ID, "learning")
        await store.start_execution(USER_ID, "investment")

        rows = await store.list_executions(USER_ID, agent_name="investment")
        assert [r.agent_name for r in rows] == ["investment"]


# ═════════════════════════════════════════════
# PREFERENCES
# ═════════════════════════════════════════════

class TestPreferences:
    @pytest.mark.asyncio
    async def test_create_then_update(self, store):
        await store.upsert_preferences(USER_ID, timezone="Europe/Berlin")
        await store.upsert_preferences(USER_ID, theme="dark")

        prefs = await store.get_preferences(USER_ID)
        assert prefs.timezone == "Europe/Berlin"
        assert prefs.theme == "dark"

    @pytest.mark.asyncio
    async def test_unknown_field_rejected(self, store):
        with pytest.raises(ValueError):
            await store.upsert_preferences(USER_ID, owner="someone-else")


# ═════════════════════════════════════════════
# QUANTITATIVE STRATEGIES
# ═════════════════════════════════════════════

class TestStrategies:
    @pytest.mark.asyncio
    async def test_create_then_filter_active(self, store):
        await store.create_strategy(USER_ID, "Golden cross", "moving_average", parameters={"fast": 50, "slow": 200})
        await store.create_strategy(USER_ID, "RSI dip", "mean_reversion", is_active=True)

        assert len(await store.list_strategies(USER_ID)) == 2
        active = await store.list_strategies(USER_ID, active_only=True)
        assert [s.name for s in active] == ["RSI dip"]
        assert await store.list_strategies(OTHER_USER_ID) == []

    @pytest.mark.asyncio
    async def test_update_records_backtest_and_activates(self, store):
        strategy = await store.create_strategy(USER_ID, "Momentum", "momentum")

        updated = await store.update_strategy(
            strategy.id, USER_ID, backtest_results={"sharpe": 1.4}, is_active=True
        )

        assert updated.backtest_results == {"sharpe": 1.4}
        assert updated.is_active is True
        assert updated.parameters == {}

    @pytest.mark.asyncio
    async def test_update_owner_only(self, store):
        strategy = await store.create_strategy(USER_ID, "Momentum", "momentum")
        assert await store.update_strategy(strategy.id, OTHER_USER_ID, is_active=True) is None

    @pytest.mark.asyncio
    async def test_update_unknown_field_rejected(self, store):
        strategy = await store.create_strategy(USER_ID, "Momentum", "momentum")
        with pytest.raises(ValueError):
            await store.update_strategy(strategy.id, USER_ID, owner="someone-else")


class TestColumnWidths:
    def test_article_source_fits_any_feed_name(self):
        from models import Article, InformationSource

        assert Article.__table__.c.source.type.length >= InformationSource.__table__.c.name.type.length
