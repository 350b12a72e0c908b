"""
Test configuration and fixtures for the waitlist API.

Collaborators (Notion, Resend, the rate limiter store) are replaced with
in-memory fakes through FastAPI dependency overrides, so no test touches the
network.
"""

import os
from typing import Any, Optional

import pytest
import pytest_asyncio
from dotenv import load_dotenv
from httpx import ASGITransport, AsyncClient

load_dotenv()
os.environ.setdefault("ENVIRONMENT", "development")

from app.main import create_app  # noqa: E402
from app.platform.config import Settings, get_settings  # noqa: E402
from app.platform.dependencies import get_mailer, get_rate_limiter, get_waitlist_store  # noqa: E402
from app.platform.services.notion import NotionStore  # noqa: E402
from app.platform.utils.rate_limit import SlidingWindowRateLimiter  # noqa: E402


def _plain_text(prop: dict) -> str:
    return "".join(part["text"]["content"] for part in prop.get("rich_text", prop.get("title", [])))


class FakeNotionStore(NotionStore):
    """In-memory stand-in for the Notion database, honouring cursor pagination."""

    def __init__(self):
        super().__init__(client=None, database_id="test-db")
        self.pages: list[dict[str, Any]] = []
        self.queries: list[Optional[dict]] = []
        self.query_errors: dict[str, Exception] = {}
        self.create_error: Optional[Exception] = None

    def add_page(self, email: str, code: str, name: str = "Someone") -> str:
        page_id = f"page-{len(self.pages) + 1}"
        self.pages.append(
            {
                "id": page_id,
                "properties": {
                    "Name": {"title": [{"text": {"content": name}}]},
                    "Email": {"email": email},
                    "Referral Code": {"rich_text": [{"text": {"content": code}}]},
                    "Referred By": {"rich_text": []},
                    "Referrer": {"relation": []},
                },
            }
        )
        return page_id

    def _matches(self, page: dict, filter: dict) -> bool:
        prop = page["properties"].get(filter["property"], {})
        if "email" in filter:
            return prop.get("email") == filter["email"]["equals"]
        return _plain_text(prop) == filter["rich_text"]["equals"]

    async def query(self, filter=None, start_cursor=None, page_size=None):
        self.queries.append(filter)
        if filter is not None and filter["property"] in self.query_errors:
            raise self.query_errors[filter["property"]]

        matches = [p for p in self.pages if filter is None or self._matches(p, filter)]
        start = int(start_cursor) if start_cursor else 0
        size = page_size or 100
        chunk = matches[start:start + size]
        has_more = start + size < len(matches)
        return {
            "results": chunk,
            "has_more": has_more,
            "next_cursor": str(start + size) if has_more else None,
        }

    async def create_page(self, properties):
        if self.create_error is not None:
            raise self.create_error
        page_id = f"page-{len(self.pages) + 1}"
        self.pages.append({"id": page_id, "properties": properties})
        return {"id": page_id, "object": "page"}

    def find(self, email: str) -> Optional[dict]:
        return next((p for p in self.pages if p["properties"]["Email"]["email"] == email), None)

    async def close(self):
        pass


class FakeMailer:
    def __init__(self):
        self.sent: list[dict[str, str]] = []
        self.response: Optional[dict] = {"id": "msg_123"}

    def send(self, to_email: str, subject: str, html: str):
        self.sent.append({"to": to_email, "subject": subject, "html": html})
        return self.response


class FakeClock:
    def __init__(self, now: float = 1_000_000.0):
        self.now = now

    def advance(self, seconds: float):
        self.now += seconds

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def settings() -> Settings:
    return Settings(
        ENVIRONMENT="development",
        NOTION_SECRET="secret_test",
        NOTION_DB_ID="test-db",
        RESEND_API_KEY="re_test",
        RESEND_FROM_EMAIL="waitlist@example.com",
        FORCE_IN_MEMORY_RATE_LIMITER=True,
    )


@pytest.fixture
def store() -> FakeNotionStore:
    return FakeNotionStore()


@pytest.fixture
def mailer() -> FakeMailer:
    return FakeMailer()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def rate_limiter(clock) -> SlidingWindowRateLimiter:
    return SlidingWindowRateLimiter(limit=2, window_seconds=60, clock=clock)


@pytest.fixture
def test_app(settings, store, mailer, rate_limiter):
    """Application wired to the fakes above."""
    app = create_app(settings)
    app.dependency_overrides[get_settings] = lambda: settings
    app.dependency_overrides[get_waitlist_store] = lambda: store
    app.dependency_overrides[get_mailer] = lambda: mailer
    app.dependency_overrides[get_rate_limiter] = lambda: rate_limiter
    yield app
    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def client(test_app):
    async with AsyncClient(
        transport=ASGITransport(app=test_app),
        base_url="http://testserver",
    ) as ac:
        yield ac
