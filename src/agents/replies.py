"""
src/agents/replies.py — Schemas for the JSON the model sends back to each agent.

Each schema is the single place where that agent's per-field fallback rules
live. Replies are validated with `parse_reply()`; a value that is missing or
out of range is replaced by the fallback below rather than rejected.

Information agent — ArticleClassification
    category         unknown / missing → "other"
    relevance_score  missing / non-numeric → 0.5, then clamped into [0, 1]
    reason           missing → ""

Learning agent — LearningPlan
    topic            missing → "Untitled topic"
    text fields      missing → ""
    key_points       missing → [], non-string entries dropped
    resources        missing → [], entries without title or url dropped

Investment agent — SignalRecommendation
    signal           unknown / missing → "hold"
    risk_level       unknown / missing → "medium"
    confidence       missing / non-numeric → 0.5, then clamped into [0, 1]
    target_price     missing / non-positive → current price × 1.10
    stop_loss        missing / non-positive → current price × 0.90
"""

from typing import Any, Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

ARTICLE_CATEGORIES = ("ai_breakthrough", "productivity_tool", "investment", "other")
LEARNING_CATEGORIES = ("web3", "us_stocks", "quantitative")
SIGNAL_VERDICTS = ("buy", "sell", "hold", "watch")
RISK_LEVELS = ("low", "medium", "high")

DEFAULT_RELEVANCE = 0.5
DEFAULT_CONFIDENCE = 0.5
TARGET_PRICE_FACTOR = 1.10
STOP_LOSS_FACTOR = 0.90


def clamp_unit(value: Any, default: float) -> float:
    """Coerce `value` to a float in [0, 1]; non-numeric input yields `default`."""
    if value is None or isinstance(value, bool):
        return default
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    if number != number:  # NaN
        return default
    return min(max(number, 0.0), 1.0)


def _choice(value: Any, allowed: tuple[str, ...], default: str) -> str:
    if isinstance(value, str) and value.strip().lower() in allowed:
        return value.strip().lower()
    return default


def _positive_or_none(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if number > 0 else None


class _Reply(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


# ─────────────────────────────────────────────
# Information agent
# ─────────────────────────────────────────────

class ArticleClassification(_Reply):
    category: Literal["ai_breakthrough", "productivity_tool", "investment", "other"] = "other"
    relevance_score: float = Field(
        DEFAULT_RELEVANCE,
        validation_alias=AliasChoices("relevance_score", "relevanceScore", "score"),
    )
    reason: str = ""

    @field_validator("category", mode="before")
    @classmethod
    def _known_category(cls, v: Any) -> str:
        return _choice(v, ARTICLE_CATEGORIES, "other")

    @field_validator("relevance_score", mode="before")
    @classmethod
    def _clamp_score(cls, v: Any) -> float:
        return clamp_unit(v, DEFAULT_RELEVANCE)

    @field_validator("reason", mode="before")
    @classmethod
    def _text(cls, v: Any) -> str:
        return v if isinstance(v, str) else ""

    @classmethod
    def neutral(cls, reason: str = "classification failed, default applied") -> "ArticleClassification":
        return cls(category="other", relevance_score=DEFAULT_RELEVANCE, reason=reason)


# ─────────────────────────────────────────────
# Learning agent
# ─────────────────────────────────────────────

class LearningResource(_Reply):
    title: str
    url: str
    type: str = "article"  # article | video | course

    @field_validator("type", mode="before")
    @classmethod
    def _kind(cls, v: Any) -> str:
        return v.strip().lower() if isinstance(v, str) and v.strip() else "article"


class LearningPlan(_Reply):
    topic: str = "Untitled topic"
    explanation: str = ""
    case_study: str = Field("", validation_alias=AliasChoices("case_study", "caseStudy"))
    key_points: list[str] = Field(
        default_factory=list, validation_alias=AliasChoices("key_points", "keyPoints")
    )
    resources: list[LearningResource] = Field(default_factory=list)
    next_topic: str = Field("", validation_alias=AliasChoices("next_topic", "nextTopic"))

    @field_validator("topic", mode="before")
    @classmethod
    def _topic(cls, v: Any) -> str:
        return v.strip() if isinstance(v, str) and v.strip() else "Untitled topic"

    @field_validator("explanation", "case_study", "next_topic", mode="before")
    @classmethod
    def _text(cls, v: Any) -> str:
        return v if isinstance(v, str) else ""

    @field_validator("key_points", mode="before")
    @classmethod
    def _points(cls, v: Any) -> list[str]:
        if not isinstance(v, list):
            return []
        return [p for p in v if isinstance(p, str) and p.strip()]

    @field_validator("resources", mode="before")
    @classmethod
    def _resources(cls, v: Any) -> list[dict]:
        if not isinstance(v, list):
            return []
        return [
            r for r in v
            if isinstance(r, dict) and isinstance(r.get("title"), str) and isinstance(r.get("url"), str)
        ]


# ─────────────────────────────────────────────
# Investment agent
# ─────────────────────────────────────────────

class SignalRecommendation(_Reply):
    signal: Literal["buy", "sell", "hold", "watch"] = "hold"
    reason: str = ""
    target_price: float | None = Field(
        None, validation_alias=AliasChoices("target_price", "targetPrice")
    )
    stop_loss: float | None = Field(None, validation_alias=AliasChoices("stop_loss", "stopLoss"))
    risk_level: Literal["low", "medium", "high"] = Field(
        "medium", validation_alias=AliasChoices("risk_level", "riskLevel")
    )
    confidence: float = DEFAULT_CONFIDENCE

    @field_validator("signal", mode="before")
    @classmethod
    def _verdict(cls, v: Any) -> str:
        return _choice(v, SIGNAL_VERDICTS, "hold")

    @field_validator("risk_level", mode="before")
    @classmethod
    def _risk(cls, v: Any) -> str:
        return _choice(v, RISK_LEVELS, "medium")

    @field_validator("confidence", mode="before")
    @classmethod
    def _clamp_confidence(cls, v: Any) -> float:
        return clamp_unit(v, DEFAULT_CONFIDENCE)

    @field_validator("target_price", "stop_loss", mode="before")
    @classmethod
    def _price(cls, v: Any) -> float | None:
        return _positive_or_none(v)

    @field_validator("reason", mode="before")
    @classmethod
    def _text(cls, v: Any) -> str:
        return v if isinstance(v, str) else ""

    def resolved_prices(self, current_price: float) -> tuple[float, float]:
        """Return (target_price, stop_loss), filling gaps at ±10 % of current price."""
        target = self.target_price if self.target_price is not None else current_price * TARGET_PRICE_FACTOR
        stop = self.stop_loss if self.stop_loss is not None else current_price * STOP_LOSS_FACTOR
        return target, stop
