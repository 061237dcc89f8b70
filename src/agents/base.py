"""
src/agents/base.py — Run-and-record wrapper shared by the three agents.

Every agent run goes through the same lifecycle:

    should_run(user_id)      False → return None, write nothing
    start_execution()        log row persisted before any work  (queued)
    mark_execution_running() (running)
    execute(run)             agent body fills the AgentRun counters
    finish_execution()       success | skipped | failed, with duration in ms

A failure inside the body is caught here: the log row is finished as
"failed" with the error message and the owner is notified. Nothing
propagates out of `run()` / `execute_run()`.
"""

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Callable
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from src.integrations.owner_notifier import CONTENT_MAX_LENGTH, TITLE_MAX_LENGTH, OwnerNotifier
from src.services.llm_service import LLMClient
from src.services.store import AlphaStore

logger = logging.getLogger(__name__)

_TRUNCATED = "\n… (truncated)"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def local_date(now: datetime, tz_name: str | None) -> date:
    """Calendar date of `now` in the user's timezone (UTC when unknown)."""
    try:
        tz = ZoneInfo(tz_name or "UTC")
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("Unknown timezone %r, falling back to UTC", tz_name)
        tz = ZoneInfo("UTC")
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return now.astimezone(tz).date()


@dataclass
class AgentRun:
    """Mutable state of one run, filled in by the agent body."""

    user_id: str
    run_id: str | None = None
    items_processed: int = 0
    items_failed: int = 0
    skipped: bool = False


@dataclass
class RunOutcome:
    status: str                 # success | skipped | failed
    items_processed: int = 0
    items_failed: int = 0
    error: str | None = None
    run_id: str | None = None


class BaseAgent(ABC):
    """Subclasses set `name` and implement `execute()`; override `should_run()`
    when the agent has a precondition."""

    name: str = "agent"

    def __init__(
        self,
        store: AlphaStore,
        llm: LLMClient,
        notifier: OwnerNotifier,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.store = store
        self.llm = llm
        self.notifier = notifier
        self.clock = clock

    @property
    def display_name(self) -> str:
        return f"{self.name.capitalize()} agent"

    async def should_run(self, user_id: str) -> bool:
        return True

    @abstractmethod
    async def execute(self, run: AgentRun) -> None:
        """Agent body. Raise to fail the run."""

    async def today(self, user_id: str) -> date:
        prefs = await self.store.get_preferences(user_id)
        return local_date(self.clock(), prefs.timezone if prefs else None)

    # ─────────────────────────────────────────────
    # Lifecycle
    # ─────────────────────────────────────────────

    async def run(self, user_id: str) -> RunOutcome | None:
        """Check the precondition, record a log row and execute.

        Returns None when the precondition is not met.
        """
        try:
            if not await self.should_run(user_id):
                logger.info("%s: precondition not met for user=%s, skipping", self.display_name, user_id)
                return None
        except Exception as exc:
            # Precondition check itself blew up: still leave a failed log row
            logger.exception("%s: precondition check failed for user=%s", self.display_name, user_id)
            run_id = await self._start_or_none(user_id)
            return await self._record_failure(AgentRun(user_id=user_id, run_id=run_id), exc, 0)

        run_id = await self._start_or_none(user_id)
        if run_id is None:
            return await self._record_failure(
                AgentRun(user_id=user_id), RuntimeError("could not create execution log"), 0
            )
        return await self.execute_run(run_id, user_id)

    async def execute_run(self, run_id: str, user_id: str) -> RunOutcome:
        """Execute against an already-persisted log row (used by AgentRunner)."""
        run = AgentRun(user_id=user_id, run_id=run_id)
        started = time.perf_counter()
        try:
            await self.store.mark_execution_running(run_id)
            await self.execute(run)
        except asyncio.CancelledError:
            await self._finish_quietly(run, "failed", _elapsed_ms(started), "cancelled")
            raise
        except Exception as exc:
            logger.exception("%s failed for user=%s", self.display_name, user_id)
            return await self._record_failure(run, exc, _elapsed_ms(started))

        status = "skipped" if run.skipped else "success"
        elapsed = _elapsed_ms(started)
        await self._finish_quietly(run, status, elapsed)
        logger.info(
            "%s finished for user=%s status=%s processed=%d failed=%d in %dms",
            self.display_name, user_id, status, run.items_processed, run.items_failed, elapsed,
        )
        return RunOutcome(
            status=status,
            items_processed=run.items_processed,
            items_failed=run.items_failed,
            run_id=run_id,
        )

    # ─────────────────────────────────────────────
    # Helpers
    # ─────────────────────────────────────────────

    async def _start_or_none(self, user_id: str) -> str | None:
        try:
            row = await self.store.start_execution(user_id, self.name)
        except Exception as exc:
            logger.error("%s: could not create execution log: %s", self.display_name, exc)
            return None
        return row.id

    async def _record_failure(self, run: AgentRun, exc: BaseException, elapsed_ms: int) -> RunOutcome:
        error = str(exc) or exc.__class__.__name__
        await self._finish_quietly(run, "failed", elapsed_ms, error)
        await self._notify_owner(run.user_id, error)
        return RunOutcome(
            status="failed",
            items_processed=run.items_processed,
            items_failed=run.items_failed,
            error=error,
            run_id=run.run_id,
        )

    async def _finish_quietly(
        self, run: AgentRun, status: str, elapsed_ms: int, error: str | None = None
    ) -> None:
        if run.run_id is None:
            return
        try:
            await self.store.finish_execution(
                run.run_id,
                status=status,
                items_processed=run.items_processed,
                items_failed=run.items_failed,
                error_message=error,
                execution_time=elapsed_ms,
            )
        except Exception as exc:
            logger.error("%s: could not finish execution log %s: %s", self.display_name, run.run_id, exc)

    async def _notify_owner(self, user_id: str, error: str) -> None:
        title = f"{self.display_name} failed"[:TITLE_MAX_LENGTH]
        content = f"User: {user_id}\nError: {error}"
        if len(content) > CONTENT_MAX_LENGTH:
            content = content[: CONTENT_MAX_LENGTH - len(_TRUNCATED)] + _TRUNCATED
        try:
            await self.notifier.notify(title, content)
        except Exception as exc:
            logger.error("%s: owner notification failed: %s", self.display_name, exc)


def _elapsed_ms(started: float) -> int:
    return int((time.perf_counter() - started) * 1000)
