import os
import tempfile
from collections.abc import AsyncGenerator
from datetime import timedelta
from typing import Any

# Settings are read at import time, so the test environment goes in first
_TEST_DIR = tempfile.mkdtemp(prefix="austin-food-club-tests-")
os.environ["DATABASE_URL"] = os.getenv("TEST_DATABASE_URL") or f"sqlite:///{_TEST_DIR}/test.db"
os.environ.update(
    {
        "ENVIRONMENT": "test",
        "CACHE_BACKEND": "memory",
        "JWT_SECRET_KEY": "test-jwt-secret",
        "SUPABASE_JWT_SECRET": "test-supabase-secret",
        "ADMIN_API_SECRET": "test-admin-secret",
        "SCHEDULER_ENABLED": "false",
        "YELP_API_KEY": "",
        "TWILIO_ACCOUNT_SID": "",
        "TWILIO_AUTH_TOKEN": "",
        "TWILIO_PHONE_NUMBER": "",
        "GOOGLE_MAPS_API_KEY": "",
        "LOG_FORMAT": "console",
        "LOG_LEVEL": "WARNING",
    }
)

import httpx  # noqa: E402
import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from dotenv import load_dotenv  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession  # noqa: E402

# Fill anything not set above from .env
load_dotenv()

from app.core.request_queue import reset_request_queue  # noqa: E402
from app.core.security import create_access_token  # noqa: E402
from app.core.sms_client import TwilioSMSClient  # noqa: E402
from app.core.store import MemoryStore, set_store  # noqa: E402
from app.core.yelp_client import YelpClient  # noqa: E402
from app.database import AsyncSessionLocal, engine  # noqa: E402
from app.dependencies import get_sms_client, get_yelp_client  # noqa: E402
from app.main import app  # noqa: E402
from app.models import cities, metadata, restaurants, users  # noqa: E402

ADMIN_SECRET = "test-admin-secret"


class FakeYelp:
    """In-memory Yelp Fusion served through ``httpx.MockTransport``."""

    def __init__(self):
        self.businesses: list[dict[str, Any]] = []
        self.reviews: list[dict[str, Any]] = []
        self.status_code = 200
        self.requests: list[httpx.Request] = []

    def add_business(
        self,
        yelp_id: str,
        name: str,
        rating: float = 4.6,
        review_count: int = 250,
        alias: str = "bbq",
        title: str = "Barbeque",
        **extra: Any,
    ) -> dict[str, Any]:
        business = {
            "id": yelp_id,
            "name": name,
            "rating": rating,
            "review_count": review_count,
            "price": "$$",
            "categories": [{"alias": alias, "title": title}],
            "image_url": f"https://images.example.com/{yelp_id}.jpg",
            "url": f"https://www.yelp.com/biz/{yelp_id}",
            "phone": "+15125550123",
            "display_phone": "(512) 555-0123",
            "is_closed": False,
            "is_claimed": True,
            "coordinates": {"latitude": 30.27, "longitude": -97.74},
            "location": {
                "address1": "100 Congress Ave",
                "city": "Austin",
                "display_address": ["100 Congress Ave", "Austin, TX 78701"],
            },
        }
        business.update(extra)
        self.businesses.append(business)
        return business

    @property
    def search_calls(self) -> int:
        return sum(1 for request in self.requests if request.url.path.endswith("/businesses/search"))

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.status_code != 200:
            return httpx.Response(self.status_code, json={"error": {"description": "Upstream error"}})

        path = request.url.path
        if path.endswith("/businesses/search"):
            return httpx.Response(
                200,
                json={"businesses": self.businesses, "total": len(self.businesses), "region": {}},
            )
        if path.endswith("/reviews"):
            return httpx.Response(200, json={"reviews": self.reviews, "total": len(self.reviews)})

        business_id = path.rsplit("/", 1)[-1]
        for business in self.businesses:
            if business["id"] == business_id:
                return httpx.Response(200, json=business)
        return httpx.Response(404, json={"error": {"description": "Business not found"}})


class FakeTwilio:
    """Captures outgoing messages posted to Twilio."""

    def __init__(self):
        self.messages: list[dict[str, str]] = []
        self.status_code = 201

    def handler(self, request: httpx.Request) -> httpx.Response:
        form = dict(httpx.QueryParams(request.content.decode()))
        self.messages.append(form)
        return httpx.Response(self.status_code, json={"sid": f"SM{len(self.messages):032d}"})

    @property
    def last_code(self) -> str:
        body = self.messages[-1]["Body"]
        return body.split("code is: ", 1)[1][:6]


@pytest_asyncio.fixture(autouse=True)
async def austin() -> AsyncGenerator[dict, None]:
    """Fresh schema with the launch city seeded."""
    async with engine.begin() as conn:
        await conn.run_sync(metadata.drop_all)
        await conn.run_sync(metadata.create_all)
        result = await conn.execute(
            cities.insert()
            .values(
                slug="austin",
                name="Austin",
                display_name="Austin Food Club",
                state="TX",
                timezone="America/Chicago",
                latitude=30.2672,
                longitude=-97.7431,
                is_active=True,
            )
            .returning(cities)
        )
        city = dict(result.mappings().one())

    yield city

    async with engine.begin() as conn:
        await conn.run_sync(metadata.drop_all)


@pytest.fixture(autouse=True)
def store() -> MemoryStore:
    """Per-test in-memory store and request queue."""
    memory_store = MemoryStore()
    set_store(memory_store)
    reset_request_queue()
    yield memory_store
    reset_request_queue()
    set_store(None)


@pytest_asyncio.fixture
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session."""
    async with AsyncSessionLocal() as session:
        yield session


@pytest.fixture
def yelp() -> FakeYelp:
    return FakeYelp()


@pytest.fixture
def yelp_client(yelp: FakeYelp) -> YelpClient:
    return YelpClient(api_key="test-yelp-key", transport=httpx.MockTransport(yelp.handler))


@pytest.fixture
def twilio() -> FakeTwilio:
    return FakeTwilio()


@pytest.fixture
def sms_client(twilio: FakeTwilio) -> TwilioSMSClient:
    return TwilioSMSClient(
        account_sid="ACtest",
        auth_token="test-token",
        from_number="+15125550000",
        transport=httpx.MockTransport(twilio.handler),
    )


@pytest_asyncio.fixture
async def client(yelp_client: YelpClient, sms_client: TwilioSMSClient) -> AsyncGenerator[AsyncClient, None]:
    """Create a test HTTP client."""
    app.dependency_overrides[get_yelp_client] = lambda: yelp_client
    app.dependency_overrides[get_sms_client] = lambda: sms_client

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


@pytest.fixture
def make_restaurant(db_session: AsyncSession, austin: dict):
    """Insert a local restaurant; keyword arguments override the defaults."""

    async def _make(**overrides: Any) -> dict:
        values = {
            "city_id": austin["id"],
            "name": "Franklin Barbecue",
            "cuisine": "BBQ",
            "price": "$$",
            "area": "East Austin",
            "address": "900 E 11th St, Austin, TX 78702",
            "rating": 4.8,
            "review_count": 5000,
        }
        values.update(overrides)
        result = await db_session.execute(restaurants.insert().values(**values).returning(restaurants))
        await db_session.commit()
        return dict(result.mappings().one())

    return _make


@pytest_asyncio.fixture
async def restaurant(make_restaurant) -> dict:
    return await make_restaurant()


@pytest.fixture
def make_user(db_session: AsyncSession):
    """Insert a user signed up by phone."""

    async def _make(phone: str, name: str = "Test User", **overrides: Any) -> dict:
        values = {"phone": phone, "name": name, "provider": "phone", **overrides}
        result = await db_session.execute(users.insert().values(**values).returning(users))
        await db_session.commit()
        return dict(result.mappings().one())

    return _make


@pytest_asyncio.fixture
async def test_user(make_user) -> dict:
    return await make_user("+15125550100", "Taylor")


@pytest_asyncio.fixture
async def other_user(make_user) -> dict:
    return await make_user("+15125550101", "Jordan")


def headers_for(user: dict) -> dict[str, str]:
    token = create_access_token(data={"sub": str(user["id"])}, expires_delta=timedelta(minutes=30))
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def token_headers():
    """Build bearer headers for any user row."""
    return headers_for


@pytest.fixture
def auth_headers(test_user: dict) -> dict[str, str]:
    """Create authentication headers for testing protected endpoints."""
    return headers_for(test_user)


@pytest.fixture
def other_headers(other_user: dict) -> dict[str, str]:
    return headers_for(other_user)


@pytest.fixture
def admin_headers() -> dict[str, str]:
    return {"X-Admin-Secret": ADMIN_SECRET}
