"""Pytest configuration and fixtures for the HR Onboarding Bot tests.

Provides an in-memory store, a throwaway SQLite store, a scripted HR API
behind httpx.MockTransport, and helpers to mint session tokens.
"""

import json
from typing import Any, Dict, List, Optional, Tuple

import httpx
import pytest
import pytest_asyncio
from jose import jwt

from hrbot.database import close_db, init_db, make_engine, make_session_factory
from hrbot.onboarding.steps import StepContext
from hrbot.services.api_client import ApiClient
from hrbot.services.hr_api import HrApi
from hrbot.services.session import SessionContext, UserClaims
from hrbot.services.store import MemoryKeyValueStore

BASE_URL = "https://hr.test"
USER_ID = 42


# ── Tokens and claims ────────────────────────────────────────────

def make_token(**claims: Any) -> str:
    """Sign claims with a throwaway key; the bot never verifies signatures."""
    return jwt.encode(claims, "test-secret", algorithm="HS256")


def make_user(**overrides: Any) -> UserClaims:
    claims = {
        "userId": USER_ID,
        "email": "jane.doe@liftoffllc.com",
        "role": "EMPLOYEE",
        "joineeType": "NEW",
        "editRights": True,
    }
    claims.update(overrides)
    return UserClaims.model_validate(claims)


# ── Scripted HR API ──────────────────────────────────────────────

class FakeServer:
    """Routes (method, path) to canned responses and records every request."""

    def __init__(self):
        self.routes: Dict[Tuple[str, str], Tuple[int, Any]] = {}
        self.requests: List[httpx.Request] = []

    def on(self, method: str, path: str, status: int = 200, json_body: Any = None) -> None:
        self.routes[(method, path)] = (status, json_body)

    def calls(self, method: str, path: Optional[str] = None) -> List[httpx.Request]:
        return [
            r for r in self.requests
            if r.method == method and (path is None or r.url.path == path)
        ]

    @staticmethod
    def body(request: httpx.Request) -> Any:
        return json.loads(request.content)

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        key = (request.method, request.url.path)
        if key not in self.routes:
            return httpx.Response(404, json={"message": "Not found"})
        status, json_body = self.routes[key]
        if json_body is None:
            return httpx.Response(status)
        return httpx.Response(status, json=json_body)


@pytest.fixture
def server() -> FakeServer:
    return FakeServer()


@pytest_asyncio.fixture
async def client(server):
    api_client = ApiClient(BASE_URL, transport=httpx.MockTransport(server))
    yield api_client
    await api_client.aclose()


@pytest.fixture
def api(client) -> HrApi:
    return HrApi(client, token="test-token")


# ── Stores ───────────────────────────────────────────────────────

@pytest.fixture
def store() -> MemoryKeyValueStore:
    return MemoryKeyValueStore()


@pytest_asyncio.fixture
async def session_factory(tmp_path):
    """Session factory bound to a fresh SQLite file."""
    engine = make_engine(f"sqlite+aiosqlite:///{tmp_path / 'store.db'}")
    await init_db(engine)
    yield make_session_factory(engine)
    await close_db(engine)


# ── Step context ─────────────────────────────────────────────────

@pytest.fixture
def session_ctx() -> SessionContext:
    return SessionContext(token="test-token", user=make_user())


@pytest.fixture
def step_context(api, store, session_ctx) -> StepContext:
    return StepContext(api=api, store=store, session=session_ctx)
