import os
import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
from formdesk.main import app
from formdesk.core.config import settings
from formdesk.core.security import get_password_hash
from formdesk.db.database import Base, get_db
from formdesk.db.models import User

API = settings.API_PREFIX
PASSWORD = "secret123"


@pytest.fixture(scope="session")
def anyio_backend():
    return "asyncio"


@pytest.fixture(autouse=True)
def upload_dir(tmp_path, monkeypatch):
    """Every test stores uploads in its own temporary directory."""
    path = tmp_path / "uploads"
    path.mkdir()
    monkeypatch.setattr(settings, "UPLOAD_DIR", str(path))
    return path


@pytest.fixture
async def test_engine(tmp_path):
    # On-disk file per test: separate connections see the same data
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
async def client(session_factory):
    async def _override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = _override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture
def make_user(session_factory):
    """Insert an account directly, bypassing registration."""
    async def _make_user(email: str, *, is_admin: bool = True, is_approved: bool = True,
                         is_super_admin: bool = False, name: str = None) -> User:
        async with session_factory() as session:
            user = User(
                email=email,
                name=name or email.split("@")[0],
                hashed_password=get_password_hash(PASSWORD),
                is_admin=is_admin or is_super_admin,
                is_approved=is_approved,
                is_super_admin=is_super_admin,
            )
            session.add(user)
            await session.commit()
            return user

    return _make_user


@pytest.fixture
def login(client):
    """Log in and return the Authorization header for the account."""
    async def _login(email: str, password: str = PASSWORD) -> dict:
        response = await client.post(f"{API}/auth/login", json={"email": email, "password": password})
        assert response.status_code == 200, response.text
        return {"Authorization": f"Bearer {response.json()['access_token']}"}

    return _login


@pytest.fixture
async def admin(make_user):
    return await make_user("admin@example.com")


@pytest.fixture
async def admin_headers(admin, login):
    return await login(admin.email)


@pytest.fixture
def form_payload():
    return {
        "title": "Customer feedback",
        "description": "Tell us how we did",
        "fields": [
            {"field_type": "text", "label": "Full Name", "is_required": True},
            {"field_type": "email", "label": "Email Address"},
            {"field_type": "select", "label": "Color", "options": ["Red", "Blue"]},
            {"field_type": "multiselect", "label": "Toppings", "options": '["Cheese","Ham","Olives"]'},
            {"field_type": "files", "label": "Receipt"},
        ],
    }


@pytest.fixture
async def created_form(client, admin, admin_headers, form_payload):
    response = await client.post(
        f"{API}/forms", params={"creator_id": admin.id}, json=form_payload, headers=admin_headers
    )
    assert response.status_code == 201, response.text
    return response.json()
