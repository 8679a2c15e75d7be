import os

# settings are read from the environment at import time
os.environ.setdefault("DB_URL", "sqlite+aiosqlite:///:memory:")
os.environ["NOTIFICATIONS_ENABLED"] = "false"
os.environ["NOTIFICATIONS_WORKER"] = "false"
os.environ["SEED_DEMO_DATA"] = "false"
os.environ.setdefault("SECRET_KEY", "test-secret")

from decimal import Decimal  # noqa: E402
from typing import Dict, List, Optional, Tuple  # noqa: E402

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402

from marketplace.app import create_app  # noqa: E402
from marketplace.auth import passwords  # noqa: E402
from marketplace.auth.model import Role, User  # noqa: E402
from marketplace.common import database  # noqa: E402
from marketplace.inventory.model import Product  # noqa: E402
from marketplace.notifications import dispatcher  # noqa: E402

TEST_PASSWORD = "secret123"


class FakeRedis:
    """Just enough of redis.asyncio for the reset-code store."""

    def __init__(self):
        self.store: Dict[str, str] = {}
        self.ttls: Dict[str, Optional[int]] = {}

    async def set(self, key, value, ex=None):
        self.store[key] = value
        self.ttls[key] = ex
        return True

    async def get(self, key):
        return self.store.get(key)

    async def delete(self, *keys):
        removed = 0
        for key in keys:
            self.ttls.pop(key, None)
            removed += self.store.pop(key, None) is not None
        return removed

    async def incr(self, key):
        value = int(self.store.get(key, "0")) + 1
        self.store[key] = str(value)
        self.ttls.setdefault(key, None)
        return value

    async def expire(self, key, seconds):
        if key not in self.store:
            return False
        self.ttls[key] = seconds
        return True


@pytest_asyncio.fixture(autouse=True)
async def db(tmp_path):
    """Fresh file-backed SQLite database per test (file so connections share it)."""
    database.init_engine(f"sqlite+aiosqlite:///{tmp_path / 'marketplace.db'}")
    await database.init_db()
    yield
    await database.dispose_engine()


@pytest.fixture(autouse=True)
def fast_passwords(monkeypatch):
    # full-cost scrypt makes every login slow
    monkeypatch.setattr(passwords, "_N", 2 ** 4)


@pytest.fixture(autouse=True)
def sent(monkeypatch) -> List[Tuple[str, dict]]:
    """Records notifications instead of publishing them to Kafka."""
    calls: List[Tuple[str, dict]] = []
    monkeypatch.setattr(dispatcher, "dispatch", lambda kind, payload: calls.append((kind, payload)))
    return calls


@pytest.fixture
def fake_redis(monkeypatch) -> FakeRedis:
    fake = FakeRedis()

    async def _get_redis():
        return fake

    monkeypatch.setattr("marketplace.auth.service.get_redis", _get_redis)
    return fake


@pytest.fixture
def app():
    return create_app(start_worker=False)


@pytest.fixture
def make_user():
    counter = {"n": 0}

    async def _make(role: str = Role.BUYER.value, username: Optional[str] = None, **fields) -> User:
        counter["n"] += 1
        username = username or f"{role}{counter['n']}"
        user = User(
            username=username,
            password=passwords.hash_password(TEST_PASSWORD),
            email=fields.pop("email", f"{username}@example.com"),
            first_name=fields.pop("first_name", role.title()),
            last_name=fields.pop("last_name", str(counter["n"])),
            company=fields.pop("company", None),
            role=role,
            is_seller=role == Role.SELLER.value,
            is_approved=True,
        )
        async with database.get_session() as session:
            session.add(user)
            await session.commit()
        return user

    return _make


@pytest.fixture
def make_product():
    async def _make(seller: User, units: int = 10, price: str = "2.50", moq: int = 1, multiple: int = 1,
                    variation_stocks: Optional[Dict[str, int]] = None, title: str = "Test lot") -> Product:
        product = Product(
            seller_id=seller.id,
            title=title,
            category="general",
            price=Decimal(price),
            total_units=units,
            available_units=units,
            min_order_quantity=moq,
            order_multiple=multiple,
            variation_stocks=variation_stocks,
        )
        async with database.get_session() as session:
            session.add(product)
            await session.commit()
        return product

    return _make


@pytest.fixture
def login(app):
    """Return a test client with a logged-in session for ``user``."""

    async def _login(user: User):
        client = app.test_client()
        resp = await client.post("/api/login", json={"username": user.username, "password": TEST_PASSWORD})
        assert resp.status_code == 200, await resp.get_data(as_text=True)
        return client

    return _login
