"""
src/services/store.py — Persistence client for every Alpha entity.

AlphaStore wraps a connected `Database` and is passed explicitly to the agents
and (through app.state) to the routers.

Conventions:
  - Every write opens its own session and commits; nothing spans two writes.
  - Reads swallow SQLAlchemyError, log it, and return an empty result
    ([] / None / 0) so a dashboard page degrades instead of failing.
  - Writes raise; callers decide whether a failure is per-item or fatal.
  - Mutations take both the row id and the owning user_id and return None
    when no such row belongs to that user.
"""

import functools
import logging
from datetime import datetime, timedelta, timezone
from typing import Any

from sqlalchemy import func, select, text
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from database import Database
from models import (
    AgentExecutionLog,
    Article,
    DailySummary,
    InformationSource,
    InvestmentSignal,
    LearningContent,
    PortfolioItem,
    QuantitativeStrategy,
    SystemMessage,
    TradeRecord,
    User,
    UserPreferences,
)

logger = logging.getLogger(__name__)

_STRATEGY_FIELDS = {"name", "description", "strategy_type", "parameters", "backtest_results", "is_active"}

_PREFERENCE_FIELDS = {
    "interests",
    "notification_email",
    "notification_enabled",
    "summary_time",
    "learning_time",
    "investment_check_time",
    "timezone",
    "theme",
}


def _read(empty: Any):
    """Turn a SQLAlchemyError in a read method into `empty()` plus an error log."""

    def decorator(fn):
        @functools.wraps(fn)
        async def wrapper(*args, **kwargs):
            try:
                return await fn(*args, **kwargs)
            except SQLAlchemyError as exc:
                logger.error("Store read %s failed: %s", fn.__name__, exc)
                return empty()

        return wrapper

    return decorator


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def compute_position(quantity: float, entry_price: float, current_price: float | None) -> dict:
    """Derive total_value / gain_loss / gain_loss_percent for a holding.

    Without a current price the position is valued at entry price.
    """
    price = current_price if current_price is not None else entry_price
    gain_loss = (price - entry_price) * quantity
    percent = ((price - entry_price) / entry_price * 100) if entry_price else 0.0
    return {
        "total_value": price * quantity,
        "gain_loss": gain_loss,
        "gain_loss_percent": percent,
    }


class AlphaStore:

    def __init__(self, database: Database):
        self.db = database

    async def ping(self) -> bool:
        try:
            async with self.db.session() as session:
                await session.execute(text("SELECT 1"))
            return True
        except SQLAlchemyError as exc:
            logger.error("Database ping failed: %s", exc)
            return False

    # ─────────────────────────────────────────────
    # Users
    # ─────────────────────────────────────────────

    async def ensure_user(self, user_id: str, email: str | None = None, name: str | None = None) -> User:
        """Return the user row, creating it on first sight of a token subject."""
        async with self.db.session() as session:
            user = await session.get(User, user_id)
            if user is not None:
                return user
            user = User(id=user_id, email=email, name=name)
            session.add(user)
            try:
                await session.commit()
                await session.refresh(user)
            except IntegrityError:
                # Concurrent first request created it
                await session.rollback()
                user = await session.get(User, user_id)
        return user

    @_read(lambda: None)
    async def get_user(self, user_id: str) -> User | None:
        async with self.db.session() as session:
            return await session.get(User, user_id)

    # ─────────────────────────────────────────────
    # Information sources
    # ─────────────────────────────────────────────

    async def create_information_source(
        self, user_id: str, source_type: str, name: str, config: dict | None = None
    ) -> InformationSource:
        async with self.db.session() as session:
            row = InformationSource(user_id=user_id, source_type=source_type, name=name, config=config)
            session.add(row)
            await session.commit()
            await session.refresh(row)
            return row

    @_read(list)
    async def list_active_sources(self, user_id: str) -> list[InformationSource]:
        async with self.db.session() as session:
            result = await session.execute(
                select(InformationSource)
                .where(InformationSource.user_id == user_id, InformationSource.is_active == True)  # noqa: E712
                .order_by(InformationSource.created_at)
            )
            return list(result.scalars().all())

    # ─────────────────────────────────────────────
    # Articles
    # ─────────────────────────────────────────────

    async def create_article(self, user_id: str, **fields) -> Article:
        async with self.db.session() as session:
            row = Article(user_id=user_id, **fields)
            session.add(row)
            await session.commit()
            await session.refresh(row)
            return row

    @_read(list)
    async def list_articles(
        self, user_id: str, limit: int = 50, offset: int = 0, category: str | None = None
    ) -> list[Article]:
        query = select(Article).where(Article.user_id == user_id)
        if category:
            query = query.where(Article.category == category)
        query = query.order_by(Article.created_at.desc(), Article.relevance_score.desc())
        async with self.db.session() as session:
            result = await session.execute(query.limit(limit).offset(offset))
            return list(result.scalars().all())

    @_read(int)
    async def count_articles(self, user_id: str, since: datetime | None = None) -> int:
        query = select(func.count()).select_from(Article).where(Article.user_id == user_id)
        if since is not None:
            query = query.where(Article.created_at >= since)
        async with self.db.session() as session:
            return (await session.execute(query)).scalar_one()

    async def mark_article_read(self, article_id: str, user_id: str) -> Article | None:
        async with self.db.session() as session:
            row = await self._owned(session, Article, article_id, user_id)
            if row is None:
                return None
            row.is_read = True
            await session.commit()
            await session.refresh(row)
            return row

    async def toggle_article_saved(self, article_id: str, user_id: str) -> Article | None:
        async with self.db.session() as session:
            row = await self._owned(session, Article, article_id, user_id)
            if row is None:
                return None
            row.is_saved = not row.is_saved
            await session.commit()
            await session.refresh(row)
            return row

    # ─────────────────────────────────────────────
    # Daily summaries
    # ─────────────────────────────────────────────

    async def upsert_daily_summary(
        self, user_id: str, date: str, summary: str, top_article_ids: list[str]
    ) -> DailySummary:
        """Insert the summary for (user, date) or overwrite today's earlier one.

        Two runs racing on the same day both succeed: the insert that loses the
        unique constraint rolls back and overwrites the winner's row instead.
        """
        async with self.db.session() as session:
            query = select(DailySummary).where(DailySummary.user_id == user_id, DailySummary.date == date)
            row = (await session.execute(query)).scalar_one_or_none()
            if row is None:
                row = DailySummary(user_id=user_id, date=date, summary=summary, top_article_ids=top_article_ids)
                session.add(row)
                try:
                    await session.commit()
                    await session.refresh(row)
                    return row
                except IntegrityError:
                    await session.rollback()
                    logger.info("Daily summary for user=%s date=%s created concurrently; updating", user_id, date)
                    row = (await session.execute(query)).scalar_one()
            row.summary = summary
            row.top_article_ids = top_article_ids
            row.generated_at = _utcnow()
            await session.commit()
            await session.refresh(row)
            return row

    @_read(lambda: None)
    async def get_daily_summary(self, user_id: str, date: str) -> DailySummary | None:
        async with self.db.session() as session:
            result = await session.execute(
                select(DailySummary).where(DailySummary.user_id == user_id, DailySummary.date == date)
            )
            return result.scalar_one_or_none()

    @_read(list)
    async def list_daily_summaries(self, user_id: str, days: int = 7) -> list[DailySummary]:
        async with self.db.session() as session:
            result = await session.execute(
                select(DailySummary)
                .where(DailySummary.user_id == user_id)
                .order_by(DailySummary.date.desc())
                .limit(days)
            )
            return list(result.scalars().all())

    # ─────────────────────────────────────────────
    # Learning content
    # ─────────────────────────────────────────────

    async def insert_learning_content(self, user_id: str, date: str, **fields) -> LearningContent | None:
        """Insert today's lesson. Returns None if (user, date) already exists."""
        async with self.db.session() as session:
            row = LearningContent(user_id=user_id, date=date, **fields)
            session.add(row)
            try:
                await session.commit()
            except IntegrityError:
                await session.rollback()
                logger.info("Learning content for user=%s date=%s already exists", user_id, date)
                return None
            await session.refresh(row)
            return row

    @_read(lambda: None)
    async def get_learning_for_date(self, user_id: str, date: str) -> LearningContent | None:
        async with self.db.session() as session:
            result = await session.execute(
                select(LearningContent).where(
                    LearningContent.user_id == user_id, LearningContent.date == date
                )
            )
            return result.scalar_one_or_none()

    @_read(list)
    async def list_learning_content(self, user_id: str, limit: int = 30) -> list[LearningContent]:
        async with self.db.session() as session:
            result = await session.execute(
                select(LearningContent)
                .where(LearningContent.user_id == user_id)
                .order_by(LearningContent.date.desc())
                .limit(limit)
            )
            return list(result.scalars().all())

    async def mark_learning_completed(self, content_id: str, user_id: str) -> LearningContent | None:
        async with self.db.session() as session:
            row = await self._owned(session, LearningContent, content_id, user_id)
            if row is None:
                return None
            if not row.is_completed:
                row.is_completed = True
                row.completed_at = _utcnow()
                await session.commit()
                await session.refresh(row)
            return row

    # ─────────────────────────────────────────────
    # Portfolio
    # ─────────────────────────────────────────────

    @_read(list)
    async def list_portfolio(self, user_id: str) -> list[PortfolioItem]:
        async with self.db.session() as session:
            result = await session.execute(
                select(PortfolioItem)
                .where(PortfolioItem.user_id == user_id)
                .order_by(PortfolioItem.asset_type, PortfolioItem.symbol)
            )
            return list(result.scalars().all())

    @_read(lambda: None)
    async def get_portfolio_item(self, user_id: str, symbol: str, asset_type: str) -> PortfolioItem | None:
        async with self.db.session() as session:
            result = await session.execute(
                select(PortfolioItem).where(
                    PortfolioItem.user_id == user_id,
                    PortfolioItem.symbol == symbol,
                    PortfolioItem.asset_type == asset_type,
                )
            )
            return result.scalar_one_or_none()

    async def upsert_portfolio_item(
        self,
        user_id: str,
        symbol: str,
        asset_type: str,
        quantity: float,
        entry_price: float,
        current_price: float | None = None,
        purchased_at: datetime | None = None,
    ) -> PortfolioItem:
        """Create or replace the holding for (user, symbol, asset_type)."""
        values = {
            "quantity": quantity,
            "entry_price": entry_price,
            "current_price": current_price,
            **compute_position(quantity, entry_price, current_price),
        }
        if purchased_at is not None:
            values["purchased_at"] = purchased_at

        async with self.db.session() as session:
            result = await session.execute(
                select(PortfolioItem).where(
                    PortfolioItem.user_id == user_id,
                    PortfolioItem.symbol == symbol,
                    PortfolioItem.asset_type == asset_type,
                )
            )
            row = result.scalar_one_or_none()
            if row is None:
                row = PortfolioItem(user_id=user_id, symbol=symbol, asset_type=asset_type, **values)
                session.add(row)
            else:
                for key, value in values.items():
                    setattr(row, key, value)
            await session.commit()
            await session.refresh(row)
            return row

    async def update_portfolio_price(self, item_id: str, current_price: float) -> PortfolioItem | None:
        """Revalue a holding at `current_price`, keeping its stored quantity and entry price."""
        async with self.db.session() as session:
            row = await session.get(PortfolioItem, item_id)
            if row is None:
                return None
            row.current_price = current_price
            for key, value in compute_position(row.quantity, row.entry_price, current_price).items():
                setattr(row, key, value)
            await session.commit()
            await session.refresh(row)
            return row

    # ─────────────────────────────────────────────
    # Investment signals
    # ─────────────────────────────────────────────

    async def create_signal(self, user_id: str, **fields) -> InvestmentSignal:
        async with self.db.session() as session:
            row = InvestmentSignal(user_id=user_id, **fields)
            session.add(row)
            await session.commit()
            await session.refresh(row)
            return row

    @_read(list)
    async def list_signals(self, user_id: str, limit: int = 50, active_only: bool = False) -> list[InvestmentSignal]:
        query = select(InvestmentSignal).where(InvestmentSignal.user_id == user_id)
        if active_only:
            query = query.where(InvestmentSignal.is_actioned == False)  # noqa: E712
        async with self.db.session() as session:
            result = await session.execute(
                query.order_by(InvestmentSignal.created_at.desc()).limit(limit)
            )
            return list(result.scalars().all())

    @_read(lambda: None)
    async def get_signal(self, signal_id: str, user_id: str) -> InvestmentSignal | None:
        async with self.db.session() as session:
            return await self._owned(session, InvestmentSignal, signal_id, user_id)

    async def mark_signal_actioned(self, signal_id: str, user_id: str) -> InvestmentSignal | None:
        async with self.db.session() as session:
            row = await self._owned(session, InvestmentSignal, signal_id, user_id)
            if row is None:
                return None
            if not row.is_actioned:
                row.is_actioned = True
                row.actioned_at = _utcnow()
                await session.commit()
                await session.refresh(row)
            return row

    # ─────────────────────────────────────────────
    # Trades
    # ─────────────────────────────────────────────

    async def create_trade(
        self,
        user_id: str,
        symbol: str,
        asset_type: str,
        trade_type: str,
        quantity: float,
        price: float,
        reason: str | None = None,
        signal_id: str | None = None,
    ) -> TradeRecord:
        async with self.db.session() as session:
            row = TradeRecord(
                user_id=user_id,
                symbol=symbol,
                asset_type=asset_type,
                trade_type=trade_type,
                quantity=quantity,
                price=price,
                total_amount=quantity * price,
                reason=reason,
                signal_id=signal_id,
            )
            session.add(row)
            await session.commit()
            await session.refresh(row)
            return row

    @_read(list)
    async def list_trades(self, user_id: str, limit: int = 50) -> list[TradeRecord]:
        async with self.db.session() as session:
            result = await session.execute(
                select(TradeRecord)
                .where(TradeRecord.user_id == user_id)
                .order_by(TradeRecord.executed_at.desc())
                .limit(limit)
            )
            return list(result.scalars().all())

    # ─────────────────────────────────────────────
    # Quantitative strategies
    # ─────────────────────────────────────────────

    async def create_strategy(
        self,
        user_id: str,
        name: str,
        strategy_type: str,
        parameters: dict | None = None,
        description: str | None = None,
        is_active: bool = False,
    ) -> QuantitativeStrategy:
        async with self.db.session() as session:
            row = QuantitativeStrategy(
                user_id=user_id,
                name=name,
                strategy_type=strategy_type,
                parameters=parameters or {},
                description=description,
                is_active=is_active,
            )
            session.add(row)
            await session.commit()
            await session.refresh(row)
            return row

    @_read(list)
    async def list_strategies(self, user_id: str, active_only: bool = False) -> list[QuantitativeStrategy]:
        query = select(QuantitativeStrategy).where(QuantitativeStrategy.user_id == user_id)
        if active_only:
            query = query.where(QuantitativeStrategy.is_active == True)  # noqa: E712
        async with self.db.session() as session:
            result = await session.execute(query.order_by(QuantitativeStrategy.created_at.desc()))
            return list(result.scalars().all())

    async def update_strategy(self, strategy_id: str, user_id: str, **fields) -> QuantitativeStrategy | None:
        unknown = set(fields) - _STRATEGY_FIELDS
        if unknown:
            raise ValueError(f"Unknown strategy fields: {sorted(unknown)}")

        async with self.db.session() as session:
            row = await self._owned(session, QuantitativeStrategy, strategy_id, user_id)
            if row is None:
                return None
            for key, value in fields.items():
                setattr(row, key, value)
            await session.commit()
            await session.refresh(row)
            return row

    # ─────────────────────────────────────────────
    # System messages
    # ─────────────────────────────────────────────

    async def create_message(
        self, user_id: str, message_type: str, title: str, content: str, extra: dict | None = None
    ) -> SystemMessage:
        async with self.db.session() as session:
            row = SystemMessage(
                user_id=user_id, message_type=message_type, title=title, content=content, extra=extra
            )
            session.add(row)
            await session.commit()
            await session.refresh(row)
            return row

    @_read(list)
    async def list_messages(self, user_id: str, unread_only: bool = False, limit: int = 50) -> list[SystemMessage]:
        query = select(SystemMessage).where(SystemMessage.user_id == user_id)
        if unread_only:
            query = query.where(SystemMessage.is_read == False)  # noqa: E712
        async with self.db.session() as session:
            result = await session.execute(query.order_by(SystemMessage.sent_at.desc()).limit(limit))
            return list(result.scalars().all())

    @_read(int)
    async def count_unread_messages(self, user_id: str) -> int:
        async with self.db.session() as session:
            result = await session.execute(
                select(func.count())
                .select_from(SystemMessage)
                .where(SystemMessage.user_id == user_id, SystemMessage.is_read == False)  # noqa: E712
            )
            return result.scalar_one()

    async def mark_message_read(self, message_id: str, user_id: str) -> SystemMessage | None:
        async with self.db.session() as session:
            row = await self._owned(session, SystemMessage, message_id, user_id)
            if row is None:
                return None
            if not row.is_read:
                row.is_read = True
                row.read_at = _utcnow()
                await session.commit()
                await session.refresh(row)
            return row

    # ─────────────────────────────────────────────
    # Agent execution logs
    # ─────────────────────────────────────────────

    async def start_execution(self, user_id: str, agent_name: str, status: str = "queued") -> AgentExecutionLog:
        async with self.db.session() as session:
            row = AgentExecutionLog(user_id=user_id, agent_name=agent_name, status=status)
            if status == "running":
                row.started_at = _utcnow()
            session.add(row)
            await session.commit()
            await session.refresh(row)
            return row

    async def mark_execution_running(self, log_id: str) -> None:
        async with self.db.session() as session:
            row = await session.get(AgentExecutionLog, log_id)
            if row is None:
                raise LookupError(f"Execution log {log_id} not found")
            row.status = "running"
            row.started_at = _utcnow()
            await session.commit()

    async def finish_execution(
        self,
        log_id: str,
        status: str,
        items_processed: int = 0,
        items_failed: int = 0,
        error_message: str | None = None,
        execution_time: int | None = None,
    ) -> AgentExecutionLog:
        async with self.db.session() as session:
            row = await session.get(AgentExecutionLog, log_id)
            if row is None:
                raise LookupError(f"Execution log {log_id} not found")
            row.status = status
            row.items_processed = items_processed
            row.items_failed = items_failed
            row.error_message = error_message
            row.execution_time = execution_time
            row.finished_at = _utcnow()
            await session.commit()
            await session.refresh(row)
            return row

    @_read(lambda: None)
    async def get_execution(self, log_id: str, user_id: str | None = None) -> AgentExecutionLog | None:
        async with self.db.session() as session:
            row = await session.get(AgentExecutionLog, log_id)
            if row is None or (user_id is not None and row.user_id != user_id):
                return None
            return row

    @_read(list)
    async def list_executions(
        self, user_id: str, agent_name: str | None = None, limit: int = 20
    ) -> list[AgentExecutionLog]:
        query = select(AgentExecutionLog).where(AgentExecutionLog.user_id == user_id)
        if agent_name:
            query = query.where(AgentExecutionLog.agent_name == agent_name)
        async with self.db.session() as session:
            result = await session.execute(
                query.order_by(AgentExecutionLog.executed_at.desc()).limit(limit)
            )
            return list(result.scalars().all())

    # ─────────────────────────────────────────────
    # Preferences
    # ─────────────────────────────────────────────

    @_read(lambda: None)
    async def get_preferences(self, user_id: str) -> UserPreferences | None:
        async with self.db.session() as session:
            result = await session.execute(
                select(UserPreferences).where(UserPreferences.user_id == user_id)
            )
            return result.scalar_one_or_none()

    async def upsert_preferences(self, user_id: str, **fields) -> UserPreferences:
        unknown = set(fields) - _PREFERENCE_FIELDS
        if unknown:
            raise ValueError(f"Unknown preference fields: {sorted(unknown)}")

        async with self.db.session() as session:
            result = await session.execute(
                select(UserPreferences).where(UserPreferences.user_id == user_id)
            )
            row = result.scalar_one_or_none()
            if row is None:
                row = UserPreferences(user_id=user_id, **fields)
                session.add(row)
            else:
                for key, value in fields.items():
                    setattr(row, key, value)
            await session.commit()
            await session.refresh(row)
            return row

    # ─────────────────────────────────────────────
    # Helpers
    # ─────────────────────────────────────────────

    @staticmethod
    async def _owned(session, model, row_id: str, user_id: str):
        row = await session.get(model, row_id)
        if row is None or row.user_id != user_id:
            return None
        return row

    @staticmethod
    def since(days: int) -> datetime:
        return _utcnow() - timedelta(days=days)
