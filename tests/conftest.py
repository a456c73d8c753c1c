"""
Shared fixtures: a throwaway SQLite database, seeded rows, tokens and an
HTTP client bound to the app.

The environment is set before anything under `shared` is imported, since
settings are read once at import time.
"""
import os
import tempfile
from decimal import Decimal

_DB_DIR = tempfile.mkdtemp(prefix="backoffice-tests-")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{os.path.join(_DB_DIR, 'backoffice.db')}"
os.environ["JWT_SECRET_KEY"] = "test-secret-key"
os.environ["ORDER_RATE_LIMIT"] = "1000/minute"
os.environ["BOOTSTRAP_ADMIN_EMAILS"] = "owner@bibigin.it"
os.environ["ADMIN_EMAIL"] = "staff@bibigin.it"
os.environ["NOTIFICATION_WEBHOOK_URL"] = ""
os.environ["OTLP_ENDPOINT"] = ""
os.environ["LEDGER_SPEND_POLICY"] = "on_create"
os.environ["ORDER_DELETE_POLICY"] = "keep"

import httpx  # noqa: E402
import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402

from main import app  # noqa: E402
from services.customer_service.models import Customer  # noqa: E402
from services.product_service.models import Product  # noqa: E402
from shared.config.database import AsyncSessionLocal, Base, engine, new_id  # noqa: E402
from shared.security import create_user_token  # noqa: E402


@pytest_asyncio.fixture(autouse=True)
async def database():
    """Fresh tables for every test."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest_asyncio.fixture
async def session():
    async with AsyncSessionLocal() as db:
        yield db


@pytest.fixture
def fetch():
    """Read a row through its own session, so the result reflects what is committed."""
    async def _fetch(model, row_id):
        async with AsyncSessionLocal() as db:
            return await db.get(model, row_id)
    return _fetch


@pytest.fixture
def make_product():
    async def _make(**overrides) -> Product:
        fields = {
            "name": "Gin Luna Piena",
            "sku": f"GIN-{new_id()[:8]}",
            "price": Decimal("10.00"),
            "stock": 5,
            "category": "gin",
            "description": "London dry, distilled at full moon",
        }
        fields.update(overrides)
        async with AsyncSessionLocal() as db:
            product = Product(**fields)
            db.add(product)
            await db.commit()
            return product
    return _make


@pytest.fixture
def make_customer():
    async def _make(**overrides) -> Customer:
        fields = {
            "email": f"{new_id()[:8]}@example.com",
            "first_name": "Giulia",
            "last_name": "Rossi",
            "order_ids": [],
            "order_count": 0,
            "total_spent": Decimal("0.00"),
        }
        fields.update(overrides)
        async with AsyncSessionLocal() as db:
            customer = Customer(**fields)
            db.add(customer)
            await db.commit()
            return customer
    return _make


@pytest.fixture
def address():
    return {
        "street": "Via Roma 1",
        "city": "Torino",
        "state": "TO",
        "postal_code": "10121",
        "country": "IT",
    }


@pytest.fixture
def admin_headers():
    return {"Authorization": f"Bearer {create_user_token('admin-1', 'admin')}"}


@pytest.fixture
def user_headers():
    return {"Authorization": f"Bearer {create_user_token('user-1', 'user')}"}


@pytest_asyncio.fixture
async def client():
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()
