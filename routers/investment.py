"""
routers/investment.py — Portfolio, signals, trade history and quantitative strategies.

Endpoints:
    GET  /api/investment/portfolio               — Holdings with valuations
    PUT  /api/investment/portfolio               — Create or replace a holding
    GET  /api/investment/signals                 — Recent signals
    POST /api/investment/signals/{id}/action     — Mark a signal actioned
    GET  /api/investment/trades                  — Trade history
    POST /api/investment/trades                  — Record a trade
    GET  /api/investment/strategies              — Quantitative strategies
    POST /api/investment/strategies              — Create a strategy
    PUT  /api/investment/strategies/{id}         — Update parameters / backtest / active flag
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status

from models import User
from routers.auth import get_current_user, get_store
from schemas import (
    PortfolioItemRequest,
    PortfolioItemResponse,
    SignalResponse,
    StrategyRequest,
    StrategyResponse,
    StrategyUpdateRequest,
    TradeRequest,
    TradeResponse,
)
from src.services.store import AlphaStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/investment", tags=["Investment"])


# ─────────────────────────────────────────────────────────────────────────────
# Portfolio
# ─────────────────────────────────────────────────────────────────────────────

@router.get("/portfolio")
async def get_portfolio(
    current_user: User = Depends(get_current_user),
    store: AlphaStore = Depends(get_store),
):
    rows = await store.list_portfolio(current_user.id)
    return {
        "items": [PortfolioItemResponse.model_validate(p) for p in rows],
        "count": len(rows),
        "total_value": round(sum(p.total_value or 0.0 for p in rows), 2),
        "total_gain_loss": round(sum(p.gain_loss or 0.0 for p in rows), 2),
    }


@router.put("/portfolio", response_model=PortfolioItemResponse)
async def upsert_portfolio(
    body: PortfolioItemRequest,
    current_user: User = Depends(get_current_user),
    store: AlphaStore = Depends(get_store),
):
    """Insert the holding, or overwrite quantity / prices if it already exists."""
    return await store.upsert_portfolio_item(
        current_user.id,
        body.symbol,
        body.asset_type,
        quantity=body.quantity,
        entry_price=body.entry_price,
        current_price=body.current_price,
        purchased_at=body.purchased_at,
    )


# ─────────────────────────────────────────────────────────────────────────────
# Signals
# ─────────────────────────────────────────────────────────────────────────────

@router.get("/signals")
async def list_signals(
    limit: int = Query(50, ge=1, le=200),
    active_only: bool = False,
    current_user: User = Depends(get_current_user),
    store: AlphaStore = Depends(get_store),
):
    rows = await store.list_signals(current_user.id, limit=limit, active_only=active_only)
    return {
        "signals": [SignalResponse.model_validate(s) for s in rows],
        "count": len(rows),
    }


@router.post("/signals/{signal_id}/action", response_model=SignalResponse)
async def action_signal(
    signal_id: str,
    current_user: User = Depends(get_current_user),
    store: AlphaStore = Depends(get_store),
):
    row = await store.mark_signal_actioned(signal_id, current_user.id)
    if row is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Signal not found")
    return row


# ─────────────────────────────────────────────────────────────────────────────
# Trades
# ─────────────────────────────────────────────────────────────────────────────

@router.get("/trades")
async def list_trades(
    limit: int = Query(50, ge=1, le=500),
    current_user: User = Depends(get_current_user),
    store: AlphaStore = Depends(get_store),
):
    rows = await store.list_trades(current_user.id, limit=limit)
    return {
        "trades": [TradeResponse.model_validate(t) for t in rows],
        "count": len(rows),
    }


@router.post("/trades", response_model=TradeResponse, status_code=status.HTTP_201_CREATED)
async def record_trade(
    body: TradeRequest,
    current_user: User = Depends(get_current_user),
    store: AlphaStore = Depends(get_store),
):
    """Append to the trade history. The portfolio is not adjusted automatically."""
    if body.signal_id:
        if await store.get_signal(body.signal_id, current_user.id) is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Signal not found")

    row = await store.create_trade(
        current_user.id,
        body.symbol,
        body.asset_type,
        body.trade_type,
        quantity=body.quantity,
        price=body.price,
        reason=body.reason,
        signal_id=body.signal_id,
    )
    logger.info("Trade recorded: user=%s %s %s x%s", current_user.id, body.trade_type, body.symbol, body.quantity)
    return row


# ─────────────────────────────────────────────────────────────────────────────
# Quantitative strategies
# ─────────────────────────────────────────────────────────────────────────────

@router.get("/strategies")
async def list_strategies(
    active_only: bool = False,
    current_user: User = Depends(get_current_user),
    store: AlphaStore = Depends(get_store),
):
    rows = await store.list_strategies(current_user.id, active_only=active_only)
    return {
        "strategies": [StrategyResponse.model_validate(s) for s in rows],
        "count": len(rows),
    }


@router.post("/strategies", response_model=StrategyResponse, status_code=status.HTTP_201_CREATED)
async def create_strategy(
    body: StrategyRequest,
    current_user: User = Depends(get_current_user),
    store: AlphaStore = Depends(get_store),
):
    return await store.create_strategy(
        current_user.id,
        body.name,
        body.strategy_type,
        parameters=body.parameters,
        description=body.description,
        is_active=body.is_active,
    )


@router.put("/strategies/{strategy_id}", response_model=StrategyResponse)
async def update_strategy(
    strategy_id: str,
    body: StrategyUpdateRequest,
    current_user: User = Depends(get_current_user),
    store: AlphaStore = Depends(get_store),
):
    row = await store.update_strategy(strategy_id, current_user.id, **body.model_dump(exclude_unset=True))
    if row is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Strategy not found")
    return row
