"""
models.py — SQLAlchemy ORM models for Alpha.

All models use UUIDs as primary keys and are owned by a single user row.
Rows are never deleted by the agents; only flags (is_read, is_saved,
is_completed, is_actioned) are flipped after creation.
"""

import uuid
from datetime import datetime

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from database import Base


def _uuid() -> str:
    return str(uuid.uuid4())


class TimestampMixin:
    """Adds created_at / updated_at to any model."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )


# ─────────────────────────────────────────────────────────────────────────────
# USER
# ─────────────────────────────────────────────────────────────────────────────

class User(TimestampMixin, Base):
    """Dashboard owner. Identity comes from the bearer JWT `sub` claim."""

    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    email: Mapped[str | None] = mapped_column(String(320), nullable=True, index=True)
    name: Mapped[str | None] = mapped_column(Text, nullable=True)
    role: Mapped[str] = mapped_column(String(10), nullable=False, default="user")  # user | admin
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    def __repr__(self) -> str:
        return f"<User id={self.id} role={self.role}>"


# ─────────────────────────────────────────────────────────────────────────────
# INFORMATION
# ─────────────────────────────────────────────────────────────────────────────

class InformationSource(TimestampMixin, Base):
    """A user-configured feed polled by the Information agent.

    config is source-specific JSON, e.g. {"url": "https://example.com/feed.xml"}
    for source_type "rss".
    """

    __tablename__ = "information_sources"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    source_type: Mapped[str] = mapped_column(String(50), nullable=False)  # rss
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    config: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    def __repr__(self) -> str:
        return f"<InformationSource id={self.id} type={self.source_type} name={self.name!r}>"


class Article(TimestampMixin, Base):
    """A fetched item classified and scored by the Information agent."""

    __tablename__ = "articles"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )

    title: Mapped[str] = mapped_column(String(500), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    content: Mapped[str | None] = mapped_column(Text, nullable=True)
    url: Mapped[str] = mapped_column(String(1000), nullable=False)
    image_url: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    source: Mapped[str] = mapped_column(String(255), nullable=False)
    category: Mapped[str] = mapped_column(
        String(50), nullable=False, default="other"
        # ai_breakthrough | productivity_tool | investment | other
    )
    relevance_score: Mapped[float] = mapped_column(Float, nullable=False, default=0.5)  # 0.0–1.0

    is_saved: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_read: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    published_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index("ix_articles_user_created", "user_id", "created_at"),
        Index("ix_articles_user_category", "user_id", "category"),
    )

    def __repr__(self) -> str:
        return f"<Article id={self.id} category={self.category} score={self.relevance_score}>"


class DailySummary(Base):
    """The Information agent's digest for one user and one calendar date."""

    __tablename__ = "daily_summaries"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    date: Mapped[str] = mapped_column(String(10), nullable=False)  # YYYY-MM-DD
    summary: Mapped[str] = mapped_column(Text, nullable=False)
    top_article_ids: Mapped[list | None] = mapped_column(JSON, nullable=True)

    generated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    __table_args__ = (
        UniqueConstraint("user_id", "date", name="uq_daily_summary_user_date"),
    )

    def __repr__(self) -> str:
        return f"<DailySummary user_id={self.user_id} date={self.date}>"


# ─────────────────────────────────────────────────────────────────────────────
# LEARNING
# ─────────────────────────────────────────────────────────────────────────────

class LearningContent(TimestampMixin, Base):
    """Daily lesson generated by the Learning agent.

    The (user_id, date) unique constraint is what makes a second run on the
    same day a no-op, including when two runs race past the existence check.
    """

    __tablename__ = "learning_content"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    date: Mapped[str] = mapped_column(String(10), nullable=False)  # YYYY-MM-DD
    topic: Mapped[str] = mapped_column(String(255), nullable=False)
    category: Mapped[str] = mapped_column(
        String(50), nullable=False  # web3 | us_stocks | quantitative
    )
    explanation: Mapped[str | None] = mapped_column(Text, nullable=True)
    case_study: Mapped[str | None] = mapped_column(Text, nullable=True)
    key_points: Mapped[list | None] = mapped_column(JSON, nullable=True)
    resources: Mapped[list | None] = mapped_column(JSON, nullable=True)  # [{title, url, type}]
    next_topic: Mapped[str | None] = mapped_column(String(255), nullable=True)

    is_completed: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        UniqueConstraint("user_id", "date", name="uq_learning_content_user_date"),
    )

    def __repr__(self) -> str:
        return f"<LearningContent date={self.date} category={self.category} topic={self.topic!r}>"


# ─────────────────────────────────────────────────────────────────────────────
# INVESTMENT
# ─────────────────────────────────────────────────────────────────────────────

class PortfolioItem(TimestampMixin, Base):
    """A holding. total_value / gain_loss are recomputed on every upsert."""

    __tablename__ = "portfolio"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    symbol: Mapped[str] = mapped_column(String(20), nullable=False)
    asset_type: Mapped[str] = mapped_column(String(20), nullable=False)  # us_stock | crypto
    quantity: Mapped[float] = mapped_column(Float, nullable=False)
    entry_price: Mapped[float] = mapped_column(Float, nullable=False)
    current_price: Mapped[float | None] = mapped_column(Float, nullable=True)
    total_value: Mapped[float | None] = mapped_column(Float, nullable=True)
    gain_loss: Mapped[float | None] = mapped_column(Float, nullable=True)
    gain_loss_percent: Mapped[float | None] = mapped_column(Float, nullable=True)
    purchased_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        UniqueConstraint("user_id", "symbol", "asset_type", name="uq_portfolio_user_symbol_type"),
    )

    def __repr__(self) -> str:
        return f"<PortfolioItem symbol={self.symbol} type={self.asset_type} qty={self.quantity}>"


class InvestmentSignal(TimestampMixin, Base):
    """A buy / sell / hold / watch recommendation for one portfolio symbol."""

    __tablename__ = "investment_signals"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    symbol: Mapped[str] = mapped_column(String(20), nullable=False)
    asset_type: Mapped[str] = mapped_column(String(20), nullable=False)
    signal: Mapped[str] = mapped_column(String(10), nullable=False)  # buy | sell | hold | watch
    reason: Mapped[str] = mapped_column(Text, nullable=False, default="")
    target_price: Mapped[float | None] = mapped_column(Float, nullable=True)
    stop_loss: Mapped[float | None] = mapped_column(Float, nullable=True)
    risk_level: Mapped[str] = mapped_column(String(10), nullable=False, default="medium")
    confidence: Mapped[float] = mapped_column(Float, nullable=False, default=0.5)  # 0.0–1.0

    is_actioned: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    actioned_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index("ix_signals_user_created", "user_id", "created_at"),
        Index("ix_signals_user_actioned", "user_id", "is_actioned"),
    )

    def __repr__(self) -> str:
        return f"<InvestmentSignal symbol={self.symbol} signal={self.signal} conf={self.confidence}>"


class TradeRecord(Base):
    """Immutable record of a trade the user executed. Never updated."""

    __tablename__ = "trade_history"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    symbol: Mapped[str] = mapped_column(String(20), nullable=False)
    asset_type: Mapped[str] = mapped_column(String(20), nullable=False)
    trade_type: Mapped[str] = mapped_column(String(4), nullable=False)  # buy | sell
    quantity: Mapped[float] = mapped_column(Float, nullable=False)
    price: Mapped[float] = mapped_column(Float, nullable=False)
    total_amount: Mapped[float] = mapped_column(Float, nullable=False)
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    signal_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("investment_signals.id", ondelete="SET NULL"), nullable=True
    )

    executed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    __table_args__ = (
        Index("ix_trade_history_user_executed", "user_id", "executed_at"),
    )

    def __repr__(self) -> str:
        return f"<TradeRecord symbol={self.symbol} type={self.trade_type} qty={self.quantity}>"


class QuantitativeStrategy(TimestampMixin, Base):
    """A user-defined rule set (moving average, momentum, ...) with its last backtest."""

    __tablename__ = "quantitative_strategies"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    strategy_type: Mapped[str] = mapped_column(String(100), nullable=False)  # moving_average | momentum | mean_reversion | ...
    parameters: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    backtest_results: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    def __repr__(self) -> str:
        return f"<QuantitativeStrategy name={self.name} type={self.strategy_type} active={self.is_active}>"


# ─────────────────────────────────────────────────────────────────────────────
# MESSAGES / LOGS / PREFERENCES
# ─────────────────────────────────────────────────────────────────────────────

class SystemMessage(Base):
    """In-app notification shown in the dashboard inbox."""

    __tablename__ = "system_messages"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    message_type: Mapped[str] = mapped_column(
        String(30), nullable=False
        # daily_summary | learning_task | investment_signal | alert
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    # "metadata" is reserved on declarative classes
    extra: Mapped[dict | None] = mapped_column("metadata", JSON, nullable=True)

    is_read: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    read_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    sent_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    __table_args__ = (
        Index("ix_system_messages_user_read", "user_id", "is_read"),
    )

    def __repr__(self) -> str:
        return f"<SystemMessage id={self.id} type={self.message_type} read={self.is_read}>"


class AgentExecutionLog(Base):
    """One row per agent run.

    The row is inserted before any work starts and moves through
    queued → running → success | failed | skipped.
    """

    __tablename__ = "agent_execution_logs"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    agent_name: Mapped[str] = mapped_column(
        String(20), nullable=False  # information | learning | investment
    )
    status: Mapped[str] = mapped_column(
        String(10), nullable=False, default="queued"
        # queued | running | success | failed | partial | skipped
    )
    items_processed: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    items_failed: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    execution_time: Mapped[int | None] = mapped_column(Integer, nullable=True)  # ms

    executed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    started_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    finished_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index("ix_agent_logs_user_agent", "user_id", "agent_name", "executed_at"),
    )

    def __repr__(self) -> str:
        return f"<AgentExecutionLog agent={self.agent_name} status={self.status}>"


class UserPreferences(TimestampMixin, Base):
    """Per-user settings singleton.

    The *_time fields are stored for the UI only; nothing schedules on them.
    """

    __tablename__ = "user_preferences"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    user_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    interests: Mapped[list | None] = mapped_column(JSON, nullable=True)
    notification_email: Mapped[str | None] = mapped_column(String(320), nullable=True)
    notification_enabled: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    summary_time: Mapped[str | None] = mapped_column(String(5), nullable=True)  # HH:MM
    learning_time: Mapped[str | None] = mapped_column(String(5), nullable=True)
    investment_check_time: Mapped[str | None] = mapped_column(String(5), nullable=True)
    timezone: Mapped[str] = mapped_column(String(100), default="UTC", nullable=False)
    theme: Mapped[str] = mapped_column(String(10), default="light", nullable=False)

    def __repr__(self) -> str:
        return f"<UserPreferences user_id={self.user_id} tz={self.timezone}>"
