# tests/conftest.py
import os
from typing import AsyncGenerator, List, Optional

# Settings are read at import time; point the app at a throwaway database
# before anything under app/ is imported.
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["INVENTORY_SERVICE_URL"] = ""

import httpx  # noqa: E402
import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker  # noqa: E402

from app.api.deps import get_inventory_client  # noqa: E402
from app.database import build_engine, get_db, init_db  # noqa: E402
from app.main import app  # noqa: E402
from app.models.product import Product  # noqa: E402
from app.models.wms import WarehouseBin  # noqa: E402
from app.schemas.grn import GRNCreate, GRNLineCreate  # noqa: E402
from app.services.grn_service import GRNService  # noqa: E402
from app.services.inventory_sync import (  # noqa: E402
    InventorySyncClient,
    InventorySyncError,
    InventorySyncResult,
    InventoryUpdate,
)


# =========================================
# Fake inventory ledger
# =========================================
class FakeInventoryClient(InventorySyncClient):
    """Records published updates; raises when `fail` is set."""

    def __init__(self, fail: bool = False):
        super().__init__(base_url="http://inventory.test", enabled=True)
        self.fail = fail
        self.updates: List[InventoryUpdate] = []

    async def update_inventory(self, update: InventoryUpdate) -> InventorySyncResult:
        self.updates.append(update)
        if self.fail:
            raise InventorySyncError(status_code=503, message="inventory service unavailable")
        return InventorySyncResult(success=True, message="ok")


# =========================================
# Per-test SQLite database
# =========================================
@pytest_asyncio.fixture(scope="function")
async def async_engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'putaway.db'}")
    await init_db(engine)
    try:
        yield engine
    finally:
        await engine.dispose()


@pytest.fixture(scope="function")
def async_session_maker(async_engine: AsyncEngine):
    return async_sessionmaker(
        async_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest_asyncio.fixture(scope="function")
async def session(async_session_maker) -> AsyncGenerator[AsyncSession, None]:
    async with async_session_maker() as sess:
        yield sess


@pytest.fixture
def inventory_client() -> FakeInventoryClient:
    return FakeInventoryClient()


@pytest.fixture
def failing_inventory_client() -> FakeInventoryClient:
    return FakeInventoryClient(fail=True)


# =========================================
# Seed helpers
# =========================================
class Seed:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def product(self, sku: str, category: Optional[str] = "electronics", ean_upc: Optional[str] = None) -> Product:
        product = Product(sku=sku, name=f"Product {sku}", category=category, ean_upc=ean_upc)
        self.session.add(product)
        await self.session.commit()
        return product

    async def bin(
        self,
        code: str,
        capacity: int = 100,
        current: int = 0,
        status: str = "active",
        preferred_category: Optional[str] = None,
        category_mapping: Optional[List[str]] = None,
    ) -> WarehouseBin:
        bin = WarehouseBin(
            bin_code=code,
            capacity=capacity,
            current_quantity=current,
            status=status,
            preferred_category=preferred_category,
            category_mapping=category_mapping,
        )
        self.session.add(bin)
        await self.session.commit()
        return bin

    async def grn(self, *lines: dict, grn_number: Optional[str] = None):
        data = GRNCreate(
            grn_number=grn_number,
            vendor_name="Acme Supplies",
            received_by="dock-1",
            lines=[GRNLineCreate(**line) for line in lines],
        )
        return await GRNService(self.session).create_grn(data)


@pytest.fixture
def seed(session) -> Seed:
    return Seed(session)


# =========================================
# FastAPI / httpx AsyncClient
# =========================================
@pytest_asyncio.fixture(scope="function")
async def client(async_session_maker, inventory_client) -> AsyncGenerator[httpx.AsyncClient, None]:
    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with async_session_maker() as sess:
            try:
                yield sess
                await sess.commit()
            except Exception:
                await sess.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_inventory_client] = lambda: inventory_client

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as c:
        yield c

    app.dependency_overrides.clear()
