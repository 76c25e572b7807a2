import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from bakery_api.auth import hash_password, new_salt
from bakery_api.celery_app import celery_app
from bakery_api.config import Config
from bakery_api.database import Base, get_db
from bakery_api.main import app
from bakery_api.models import User

DEV_KEY = "dev-key-for-tests"


def auth(token):
    return {"Authorization": token}


DEV = auth(DEV_KEY)


# --- 1) in-memory SQLite, fresh per test, foreign keys enforced like Postgres ---
@pytest_asyncio.fixture
async def engine(request):
    eng = create_async_engine("sqlite+aiosqlite:///:memory:", poolclass=StaticPool)
    if request.node.get_closest_marker("without_foreign_keys") is None:
        @event.listens_for(eng.sync_engine, "connect")
        def _enable_foreign_keys(dbapi_conn, _):
            cursor = dbapi_conn.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest_asyncio.fixture
async def db_session(engine) -> AsyncSession:
    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with factory() as session:
        yield session


@pytest.fixture
def cfg():
    return Config(
        DATABASE_URL="sqlite+aiosqlite:///:memory:",
        DEV_AUTH_KEY=DEV_KEY,
        SESSION_EXPIRY_DAYS=3,
    )


@pytest_asyncio.fixture
async def client(db_session: AsyncSession, cfg: Config, monkeypatch):
    monkeypatch.setattr(app.state, "cfg", cfg)

    # override the DB dependency to use our in-memory SQLite
    async def _get_db():
        yield db_session
    app.dependency_overrides[get_db] = _get_db

    # patch celery to synchronous dummy
    class DummyTask:
        def __init__(self, id): self.id = id
    monkeypatch.setattr(celery_app, 'send_task', lambda name, *args, **kwargs: DummyTask(id="task-123"))
    class DummyResult:
        def __init__(self, result): self._result = result
        def ready(self): return True
        def failed(self): return False
        def get(self, propagate=True): return self._result
    monkeypatch.setattr(celery_app, 'AsyncResult', lambda tid: DummyResult({"purged": 2}))

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


# --- 2) helpers for accounts ---
@pytest.fixture
def register(client):
    async def _register(username, password="crumb123", perms=0, first_name="Pat", last_name="Baker"):
        r = await client.post("/api/register/user", json={
            "first_name": first_name,
            "last_name": last_name,
            "username": username,
            "password": password,
            "perms": perms,
        }, headers=DEV if perms else None)
        assert r.status_code == 201, r.text
        return r.json()
    return _register


@pytest_asyncio.fixture
async def baker(register):
    return await register("baker")


@pytest_asyncio.fixture
async def admin(register):
    return await register("headbaker", perms=1)


async def make_user(db: AsyncSession, username: str, password: str = "crumb123", perms: int = 0) -> User:
    salt = new_salt()
    user = User(
        id=f"user-{username}",
        first_name="Pat",
        last_name="Baker",
        username=username,
        pass_hash=hash_password(password, salt),
        pass_salt=salt,
        perms=perms,
    )
    db.add(user)
    await db.commit()
    return user


@pytest_asyncio.fixture
async def recipe(client):
    r = await client.post("/api/recipes", json={
        "name": "Sourdough",
        "description": "Country loaf",
        "prep_unit": "minutes",
        "cook_unit": "minutes",
        "rating": 4.5,
        "prep_time": 30,
        "cook_time": 45,
    }, headers=DEV)
    assert r.status_code == 201, r.text
    return r.json()
