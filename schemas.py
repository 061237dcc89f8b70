"""
schemas.py — Pydantic request/response schemas for Alpha.

Schemas validate input data and define the shape of API responses.
They are intentionally separate from SQLAlchemy models to keep the
API contract stable even when the database schema evolves.
"""

import re
from datetime import datetime
from typing import Any, Literal
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, Field, field_validator

_HHMM = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


# ─────────────────────────────────────────────
# Generic / Envelope
# ─────────────────────────────────────────────

class SuccessResponse(BaseModel):
    """Standard success envelope."""

    status: str = "success"
    message: str | None = None
    data: Any | None = None


class ErrorResponse(BaseModel):
    """Standard error envelope."""

    status: str = "error"
    error: str
    code: str | None = None


# ─────────────────────────────────────────────
# Agents
# ─────────────────────────────────────────────

class AgentTriggerResponse(BaseModel):
    status: Literal["started", "skipped"]
    agent: str
    run_id: str | None = None


class ExecutionLogResponse(BaseModel):
    id: str
    agent_name: str
    status: str
    items_processed: int
    items_failed: int
    error_message: str | None
    execution_time: int | None
    executed_at: datetime
    started_at: datetime | None
    finished_at: datetime | None

    model_config = {"from_attributes": True}


# ─────────────────────────────────────────────
# Information
# ─────────────────────────────────────────────

class ArticleResponse(BaseModel):
    id: str
    title: str
    description: str | None
    url: str
    image_url: str | None
    source: str
    category: str
    relevance_score: float
    is_saved: bool
    is_read: bool
    published_at: datetime | None
    created_at: datetime

    model_config = {"from_attributes": True}


class DailySummaryResponse(BaseModel):
    id: str
    date: str
    summary: str
    top_article_ids: list[str] | None
    generated_at: datetime

    model_config = {"from_attributes": True}


class InformationSourceRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    source_type: Literal["rss"] = "rss"
    url: str = Field(..., min_length=8, max_length=1000)

    @field_validator("url")
    @classmethod
    def http_url(cls, v: str) -> str:
        if not v.startswith(("http://", "https://")):
            raise ValueError("url must start with http:// or https://")
        return v


class InformationSourceResponse(BaseModel):
    id: str
    name: str
    source_type: str
    config: dict | None
    is_active: bool
    created_at: datetime

    model_config = {"from_attributes": True}


# ─────────────────────────────────────────────
# Learning
# ─────────────────────────────────────────────

class LearningContentResponse(BaseModel):
    id: str
    date: str
    topic: str
    category: str
    explanation: str | None
    case_study: str | None
    key_points: list[str] | None
    resources: list[dict] | None
    next_topic: str | None
    is_completed: bool
    completed_at: datetime | None

    model_config = {"from_attributes": True}


# ─────────────────────────────────────────────
# Investment
# ─────────────────────────────────────────────

class PortfolioItemRequest(BaseModel):
    symbol: str = Field(..., min_length=1, max_length=20)
    asset_type: Literal["us_stock", "crypto"]
    quantity: float = Field(..., gt=0)
    entry_price: float = Field(..., gt=0)
    current_price: float | None = Field(None, gt=0)
    purchased_at: datetime | None = None

    @field_validator("symbol")
    @classmethod
    def normalise_symbol(cls, v: str) -> str:
        return v.strip()


class PortfolioItemResponse(BaseModel):
    id: str
    symbol: str
    asset_type: str
    quantity: float
    entry_price: float
    current_price: float | None
    total_value: float | None
    gain_loss: float | None
    gain_loss_percent: float | None
    purchased_at: datetime | None
    updated_at: datetime

    model_config = {"from_attributes": True}


class SignalResponse(BaseModel):
    id: str
    symbol: str
    asset_type: str
    signal: str
    reason: str
    target_price: float | None
    stop_loss: float | None
    risk_level: str
    confidence: float
    is_actioned: bool
    actioned_at: datetime | None
    created_at: datetime

    model_config = {"from_attributes": True}


class TradeRequest(BaseModel):
    symbol: str = Field(..., min_length=1, max_length=20)
    asset_type: Literal["us_stock", "crypto"]
    trade_type: Literal["buy", "sell"]
    quantity: float = Field(..., gt=0)
    price: float = Field(..., gt=0)
    reason: str | None = Field(None, max_length=2000)
    signal_id: str | None = None


class TradeResponse(BaseModel):
    """Trade record returned from the API."""

    id: str
    symbol: str
    asset_type: str
    trade_type: str
    quantity: float
    price: float
    total_amount: float
    reason: str | None
    signal_id: str | None
    executed_at: datetime

    model_config = {"from_attributes": True}


class StrategyRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    strategy_type: str = Field(..., min_length=1, max_length=100)
    description: str | None = Field(None, max_length=5000)
    parameters: dict[str, Any] = Field(default_factory=dict)
    is_active: bool = False


class StrategyUpdateRequest(BaseModel):
    """Partial update; omitted fields are left unchanged."""

    name: str | None = Field(None, min_length=1, max_length=255)
    description: str | None = Field(None, max_length=5000)
    parameters: dict[str, Any] | None = None
    backtest_results: dict[str, Any] | None = None
    is_active: bool | None = None


class StrategyResponse(BaseModel):
    id: str
    name: str
    description: str | None
    strategy_type: str
    parameters: dict[str, Any]
    backtest_results: dict[str, Any] | None
    is_active: bool
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


# ─────────────────────────────────────────────
# Messages / Preferences
# ─────────────────────────────────────────────

class SystemMessageResponse(BaseModel):
    id: str
    message_type: str
    title: str
    content: str
    metadata: dict | None = Field(None, validation_alias="extra")
    is_read: bool
    read_at: datetime | None
    sent_at: datetime

    model_config = {"from_attributes": True}


class PreferencesRequest(BaseModel):
    """Partial update; omitted fields are left unchanged."""

    interests: list[str] | None = Field(None, max_length=20)
    notification_email: str | None = Field(None, max_length=320)
    notification_enabled: bool | None = None
    summary_time: str | None = None
    learning_time: str | None = None
    investment_check_time: str | None = None
    timezone: str | None = None
    theme: Literal["light", "dark"] | None = None

    @field_validator("summary_time", "learning_time", "investment_check_time")
    @classmethod
    def hh_mm(cls, v: str | None) -> str | None:
        if v is not None and not _HHMM.match(v):
            raise ValueError("time must be HH:MM (24h)")
        return v

    @field_validator("timezone")
    @classmethod
    def known_timezone(cls, v: str | None) -> str | None:
        if v is None:
            return v
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError):
            raise ValueError(f"Unknown timezone: {v}")
        return v

    @field_validator("interests")
    @classmethod
    def clean_interests(cls, v: list[str] | None) -> list[str] | None:
        if v is None:
            return v
        return [i.strip() for i in v if i.strip()]


class PreferencesResponse(BaseModel):
    interests: list[str] | None
    notification_email: str | None
    notification_enabled: bool
    summary_time: str | None
    learning_time: str | None
    investment_check_time: str | None
    timezone: str
    theme: str

    model_config = {"from_attributes": True}


# ─────────────────────────────────────────────
# Health
# ─────────────────────────────────────────────

class ServiceStatus(BaseModel):
    status: str  # healthy | degraded | error
    detail: str | None = None


class HealthResponse(BaseModel):
    status: str
    timestamp: datetime
    services: dict[str, ServiceStatus] | None = None
