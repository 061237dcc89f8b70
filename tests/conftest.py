"""
tests/conftest.py — Shared pytest configuration and fixtures.

Every test that touches the database gets a fresh SQLite file under tmp_path
(aiosqlite); the model client, owner notifier and network sources are
replaced with AsyncMock / in-memory fakes.

Run all tests:
    pytest tests/ -v

Run without live tests:
    pytest tests/ -m "not live" -v
"""

import os
import sys
from datetime import datetime, timezone
from pathlib import Path
from unittest.mock import AsyncMock

import httpx
import pytest
import pytest_asyncio

# ─── Path setup ──────────────────────────────────────────────────────────────
# Ensure the project root is on sys.path so imports resolve correctly
ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(ROOT))

# Load .env.test if present, else fall back to .env (live tests only need the keys)
_env_test = ROOT / ".env.test"
_env_file = _env_test if _env_test.exists() else ROOT / ".env"

from dotenv import load_dotenv  # noqa: E402

load_dotenv(_env_file, override=True)

from config import Settings  # noqa: E402
from database import Database  # noqa: E402
from src.integrations.news_sources import NewsItem  # noqa: E402
from src.services.store import AlphaStore  # noqa: E402

# Sunday 2 June 2024, midday UTC
FIXED_NOW = datetime(2024, 6, 2, 12, 0, tzinfo=timezone.utc)
USER_ID = "user-0001"
OTHER_USER_ID = "user-0002"


# ─── Fakes ───────────────────────────────────────────────────────────────────
class FakeSource:
    """In-memory news source. Raises `error` if given, else returns `items`."""

    def __init__(self, name: str, items: list[NewsItem] | None = None, error: Exception | None = None):
        self.name = name
        self.items = items or []
        self.error = error
        self.calls = 0

    async def fetch(self) -> list[NewsItem]:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return list(self.items)


def news_item(n: int, source: str = "HackerNews") -> NewsItem:
    return NewsItem(title=f"Story {n}", url=f"https://example.com/{n}", source=source)


def make_llm(handler) -> AsyncMock:
    """AsyncMock model client whose invoke() delegates to `handler(messages, output_schema)`."""
    llm = AsyncMock()
    llm.is_configured = True

    async def invoke(messages, output_schema=None, max_tokens=None):
        return handler(messages, output_schema)

    llm.invoke.side_effect = invoke
    return llm


_RealAsyncClient = httpx.AsyncClient


# ─── Skip helpers ────────────────────────────────────────────────────────────
def _skip_if_missing(*env_vars: str, reason_prefix: str = "Live test") -> None:
    missing = [v for v in env_vars if not os.getenv(v)]
    if missing:
        pytest.skip(f"{reason_prefix} skipped — missing env vars: {', '.join(missing)}")


@pytest.fixture
def require_anthropic():
    _skip_if_missing("ANTHROPIC_API_KEY", reason_prefix="Anthropic")


@pytest.fixture
def require_network():
    _skip_if_missing("ALPHA_LIVE_NETWORK", reason_prefix="Public API")


# ─── Fixtures ────────────────────────────────────────────────────────────────
@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        environment="development",
        anthropic_api_key="test-key",
        product_hunt_api_key="",
        notification_api_url="https://notify.example.test/hook",
        notification_api_key="notify-key",
        summary_top_articles=10,
    )


@pytest_asyncio.fixture
async def database(tmp_path, test_settings):
    db = Database(f"sqlite+aiosqlite:///{tmp_path / 'alpha-test.db'}", config=test_settings)
    await db.connect()
    yield db
    await db.disconnect()


@pytest_asyncio.fixture
async def store(database) -> AlphaStore:
    s = AlphaStore(database)
    await s.ensure_user(USER_ID, email="owner@example.com")
    await s.ensure_user(OTHER_USER_ID, email="other@example.com")
    return s


@pytest.fixture
def notifier() -> AsyncMock:
    n = AsyncMock()
    n.notify.return_value = True
    return n


@pytest.fixture
def clock():
    return lambda: FIXED_NOW


@pytest.fixture
def mock_http(monkeypatch):
    """Route every httpx.AsyncClient through a MockTransport.

    Usage:
        requests = mock_http(lambda request: httpx.Response(200, json={...}))
    Returns the list that collects every request sent.
    """

    def install(handler):
        seen: list[httpx.Request] = []

        def recording(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return handler(request)

        def factory(*args, **kwargs):
            kwargs["transport"] = httpx.MockTransport(recording)
            return _RealAsyncClient(*args, **kwargs)

        monkeypatch.setattr(httpx, "AsyncClient", factory)
        return seen

    return install
