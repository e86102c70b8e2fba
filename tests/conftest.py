"""Shared fixtures for the publishing engine test suite."""

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.platforms.base import Credential, PlatformAdapter, PlatformResult
from src.scheduling.models import Platform, PostContent
from src.utils import parse_timestamp, utc_now
from src.vault import TokenVault

TEST_KEY = "000102030405060708090a0b0c0d0e0f101112131415161718191a1b1c1d1e1f"


# ---------------------------------------------------------------------------
# Ensure we don't hit real services during tests
# ---------------------------------------------------------------------------
@pytest.fixture(autouse=True)
def _block_env_keys(monkeypatch):
    """Clear all engine env vars so tests never hit real services."""
    keys = [
        "SUPABASE_URL",
        "SUPABASE_SERVICE_KEY",
        "SUPABASE_SERVICE_ROLE_KEY",
        "TOKEN_ENCRYPTION_KEY",
        "ENCRYPTION_KEY",
        "REQUIRE_TOKEN_ENCRYPTION",
        "SCHEDULER_TICK_SECONDS",
        "SCHEDULER_BATCH_SIZE",
        "ADAPTER_TIMEOUT_SECONDS",
        "FAILURE_EMAILS_ENABLED",
        "SMTP_HOST",
        "SMTP_PORT",
        "SMTP_USER",
        "SMTP_PASSWORD",
        "SMTP_FROM",
        "APP_URL",
        "STUCK_TIMEOUT_MINUTES",
        "LOG_LEVEL",
    ]
    keys += [f"PLATFORM_{p.name}_ENABLED" for p in Platform]
    for key in keys:
        monkeypatch.delenv(key, raising=False)


# ---------------------------------------------------------------------------
# Common datetime fixtures
# ---------------------------------------------------------------------------
@pytest.fixture
def sample_utc_now():
    """A fixed UTC datetime for deterministic tests."""
    return datetime(2025, 6, 15, 12, 0, 0, tzinfo=timezone.utc)


# ---------------------------------------------------------------------------
# Vault
# ---------------------------------------------------------------------------
@pytest.fixture
def test_key():
    return TEST_KEY


@pytest.fixture
def vault():
    """A vault with a fixed 32-byte test key."""
    return TokenVault(TEST_KEY)


# ---------------------------------------------------------------------------
# Mock Supabase client
# ---------------------------------------------------------------------------
@pytest.fixture
def mock_supabase_client():
    """A mock Supabase async client."""
    client = AsyncMock()
    # table().select().execute() chain
    table_mock = MagicMock()
    table_mock.select.return_value = table_mock
    table_mock.insert.return_value = table_mock
    table_mock.update.return_value = table_mock
    table_mock.eq.return_value = table_mock
    table_mock.in_.return_value = table_mock
    table_mock.lte.return_value = table_mock
    table_mock.order.return_value = table_mock
    table_mock.limit.return_value = table_mock
    table_mock.range.return_value = table_mock
    table_mock.execute = AsyncMock(return_value=MagicMock(data=[], count=0))
    client.table = MagicMock(return_value=table_mock)
    return client


# ---------------------------------------------------------------------------
# In-memory store
# ---------------------------------------------------------------------------
class FakeStore:
    """In-memory stand-in for ``SupabaseDB`` with the same async methods."""

    def __init__(self) -> None:
        self.posts: Dict[str, Dict[str, Any]] = {}
        self.accounts: List[Dict[str, Any]] = []
        self.notification_settings: Dict[str, Dict[str, Any]] = {}
        self.profiles: Dict[str, str] = {}

        self.due_queries: List[Dict[str, int]] = []
        self.account_queries: List[Dict[str, Any]] = []
        self.status_writes: List[Dict[str, Any]] = []
        self.fail_due_query = False
        self.fail_status_writes = False
        self.fail_settings_lookup = False

    # -- seeding helpers -------------------------------------------------

    def add_post(
        self,
        post_id: str,
        owner_id: str = "user-1",
        platform: str = "twitter",
        text: str = "Hello world",
        scheduled_at: Optional[datetime] = None,
        status: str = "scheduled",
        **content: Any,
    ) -> Dict[str, Any]:
        scheduled_at = scheduled_at or utc_now() - timedelta(minutes=1)
        row = {
            "id": post_id,
            "user_id": owner_id,
            "platform": platform,
            "content": {"text": text, **content},
            "scheduled_at": scheduled_at.isoformat(),
            "status": status,
            "posted_at": None,
            "error_message": None,
            "metadata": {},
            "updated_at": scheduled_at.isoformat(),
        }
        self.posts[post_id] = row
        return row

    def add_account(
        self,
        owner_id: str = "user-1",
        platform: str = "twitter",
        access_token: str = "plain-token",
        account_id: Optional[str] = None,
        **extra: Any,
    ) -> Dict[str, Any]:
        row = {
            "id": account_id or f"acct-{owner_id}-{platform}",
            "user_id": owner_id,
            "platform": platform,
            "access_token": access_token,
            "refresh_token": None,
            "token_expires_at": None,
            "platform_user_id": None,
            "metadata": {},
        }
        row.update(extra)
        self.accounts.append(row)
        return row

    # -- SupabaseDB interface ----------------------------------------------

    async def get_due_posts(
        self, now: datetime, limit: int = 20, offset: int = 0
    ) -> List[Dict[str, Any]]:
        self.due_queries.append({"limit": limit, "offset": offset})
        if self.fail_due_query:
            from src.exceptions import DatabaseError

            raise DatabaseError("connection refused")
        due = [
            dict(row)
            for row in self.posts.values()
            if row["status"] == "scheduled" and parse_timestamp(row["scheduled_at"]) <= now
        ]
        due.sort(key=lambda row: row["scheduled_at"])
        return due[offset:offset + limit]

    async def get_connected_accounts(self, owner_ids, platforms=None):
        self.account_queries.append({"owner_ids": list(owner_ids), "platforms": platforms})
        return [
            dict(row)
            for row in self.accounts
            if row["user_id"] in owner_ids and (not platforms or row["platform"] in platforms)
        ]

    async def claim_post(self, post_id: str) -> bool:
        await asyncio.sleep(0)
        row = self.posts.get(post_id)
        if row is None or row["status"] != "scheduled":
            return False
        row["status"] = "processing"
        row["updated_at"] = utc_now().isoformat()
        return True

    async def update_post_status(self, post_id: str, fields: Dict[str, Any]) -> bool:
        if self.fail_status_writes:
            raise RuntimeError("write failed")
        row = self.posts.get(post_id)
        if row is None or row["status"] != "processing":
            return False
        row.update(fields)
        row["updated_at"] = utc_now().isoformat()
        self.status_writes.append({"post_id": post_id, **fields})
        return True

    async def update_account_metadata(self, account_id: str, metadata: Dict[str, Any]) -> None:
        for row in self.accounts:
            if row["id"] == account_id:
                row["metadata"] = {**(row.get("metadata") or {}), **metadata}
                return

    async def get_notification_settings(self, owner_id: str):
        if self.fail_settings_lookup:
            raise RuntimeError("settings table unavailable")
        return self.notification_settings.get(owner_id)

    async def get_owner_email(self, owner_id: str):
        return self.profiles.get(owner_id)

    async def get_stuck_posts(self, older_than: datetime, limit: int = 100):
        return [
            dict(row)
            for row in self.posts.values()
            if row["status"] == "processing"
            and parse_timestamp(row["updated_at"]) <= older_than
        ][:limit]


@pytest.fixture
def fake_store():
    return FakeStore()


# ---------------------------------------------------------------------------
# Stub adapter
# ---------------------------------------------------------------------------
class StubAdapter(PlatformAdapter):
    """Adapter that records calls and returns a canned result or raises."""

    display_name = "Stub"

    def __init__(
        self,
        platform: Platform = Platform.TWITTER,
        result: Optional[PlatformResult] = None,
        error: Optional[BaseException] = None,
        delay: float = 0.0,
    ) -> None:
        super().__init__()
        self.platform = platform
        self.result = result or PlatformResult(platform_post_id="remote-1")
        self.error = error
        self.delay = delay
        self.calls: List[Dict[str, Any]] = []

    async def publish(self, content: PostContent, credential: Credential) -> PlatformResult:
        self.calls.append({"content": content, "token": credential.token})
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.result


@pytest.fixture
def stub_adapter():
    return StubAdapter()


@pytest.fixture
def make_adapter():
    """Factory for StubAdapter instances with a canned result or error."""
    return StubAdapter
