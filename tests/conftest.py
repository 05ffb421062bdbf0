"""
Shared fixtures.

Runs against an in-memory SQLite database. The environment must be set up
before any pchart module is imported because settings are read at import.
"""
import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("SECRET_KEY", "test-secret-key-for-pchart")

from typing import Any, Dict, List, Tuple  # noqa: E402

import pytest  # noqa: E402
from httpx import AsyncClient, ASGITransport  # noqa: E402
from sqlalchemy import event  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from pchart import models  # noqa: E402,F401
from pchart.core.actor import ActorContext  # noqa: E402
from pchart.core.events import event_bus, ALL_EVENTS  # noqa: E402
from pchart.core.security import get_password_hash, create_access_token  # noqa: E402
from pchart.database import Base, get_db  # noqa: E402
from pchart.main import app  # noqa: E402
from pchart.models.defect import MasterDefect  # noqa: E402
from pchart.models.production import OperationStep  # noqa: E402
from pchart.models.user import User, UserRole  # noqa: E402
from pchart.schemas.production import ProductionOrderCreate  # noqa: E402
from pchart.services.production_order_service import ProductionOrderService  # noqa: E402


TEST_PASSWORD = "Passw0rd!"
# Hashed once; bcrypt is slow
TEST_PASSWORD_HASH = get_password_hash(TEST_PASSWORD)

STEPS = [("OP10", "Cable Cutting"), ("OP20", "2nd Side Process"), ("OP30", "QA")]


@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    # pysqlite defers BEGIN; take over transaction control so SAVEPOINT works
    @event.listens_for(engine.sync_engine, "connect")
    def do_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def do_begin(conn):
        conn.exec_driver_sql("BEGIN")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
async def users(db) -> Dict[str, User]:
    accounts = {
        "admin": User(username="admin", name="Alice Admin", role=UserRole.ADMIN.value),
        "operator": User(username="op1", name="Oscar Operator", role=UserRole.OPERATOR.value),
        "operator2": User(username="op2", name="Olga Operator", role=UserRole.OPERATOR.value),
        "viewer": User(username="viewer", name="Vic Viewer", role=UserRole.VIEWER.value),
    }
    for user in accounts.values():
        user.password_hash = TEST_PASSWORD_HASH
        user.is_active = True
        db.add(user)
    await db.commit()
    return accounts


@pytest.fixture
def actors(users) -> Dict[str, ActorContext]:
    return {key: ActorContext.from_user(user) for key, user in users.items()}


@pytest.fixture
async def steps(db) -> List[OperationStep]:
    rows = [
        OperationStep(operation_number=code, label=label, step_order=(index + 1) * 10)
        for index, (code, label) in enumerate(STEPS)
    ]
    db.add_all(rows)
    await db.commit()
    return rows


@pytest.fixture
async def defects(db) -> Dict[str, MasterDefect]:
    catalog = {
        "scratch": MasterDefect(name="Scratch", category="Surface", applicable_operation=None),
        "dent": MasterDefect(name="Dent", category="Surface", reworkable=True, applicable_operation=None),
        "short_cut": MasterDefect(name="Short Cut", category="Cutting", applicable_operation="OP10"),
    }
    db.add_all(catalog.values())
    await db.commit()
    return catalog


@pytest.fixture
async def order_factory(db, actors, steps):
    async def create(po_number: str = "PO-100", po_quantity: int = 100):
        return await ProductionOrderService(db).create(
            ProductionOrderCreate(po_number=po_number, po_quantity=po_quantity, lot_number="LOT-1"),
            actors["admin"],
        )
    return create


@pytest.fixture
def recorded_events():
    """Collect every emitted event as (name, payload)."""
    received: List[Tuple[str, Dict[str, Any]]] = []

    async def collect(name: str, payload: Dict[str, Any]) -> None:
        received.append((name, payload))

    event_bus.subscribe(ALL_EVENTS, collect)
    yield received
    event_bus.clear()


@pytest.fixture
async def client(session_factory):
    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()
    await event_bus.drain()


@pytest.fixture
def auth_headers(users):
    def headers_for(key: str) -> Dict[str, str]:
        token = create_access_token(users[key].id)
        return {"Authorization": f"Bearer {token}"}
    return headers_for


@pytest.fixture
def password() -> str:
    return TEST_PASSWORD
