import pytest
from datetime import datetime, timedelta, timezone
from typing import AsyncGenerator, Optional
from httpx import ASGITransport, AsyncClient
from jose import jwt
from redis.exceptions import ConnectionError as RedisConnectionError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

import access_control.models  # noqa: F401  registers every table on Base.metadata
from access_control.auth.modules import ModuleCatalog, ModuleDefinition, get_module_catalog
from access_control.core.config import settings
from access_control.core.database import enable_sqlite_foreign_keys, get_async_session
from access_control.main import app
from access_control.models import ModuleVisibility, Permission, Role, RolePermission, User, UserRole
from access_control.models.base import Base
from access_control.services.auth.permission_service import PermissionService

# Test database URL
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

# Reduced catalog injected instead of the full navigation set
TEST_CATALOG = ModuleCatalog([
    ModuleDefinition("DASHBOARD", "Dashboard", "main"),
    ModuleDefinition("SALIDAS", "Salidas", "main"),
    ModuleDefinition("STOCK_FIJO", "Stock Fijo", "main"),
    ModuleDefinition("REPORTES_INVENTARIO", "Inventario", "reportes"),
    ModuleDefinition("AJUSTES_RBAC", "Roles y Permisos (RBAC)", "ajustes"),
])


@pytest.fixture
async def test_engine():
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    enable_sqlite_foreign_keys(engine.sync_engine)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_maker(test_engine):
    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def session(session_maker) -> AsyncGenerator[AsyncSession, None]:
    async with session_maker() as session:
        yield session


@pytest.fixture
def catalog() -> ModuleCatalog:
    return TEST_CATALOG


@pytest.fixture
async def permissions(session, catalog) -> dict:
    """Seeded permission catalog keyed by MODULE:ACTION"""
    await PermissionService(session, catalog).seed_catalog()
    result = await session.scalars(select(Permission))
    return {permission.name: permission for permission in result.all()}


class Factory:
    """Direct inserts that bypass the service layer's policy checks"""

    def __init__(self, session: AsyncSession):
        self.session = session
        self._users = 0

    async def _save(self, obj):
        self.session.add(obj)
        await self.session.commit()
        await self.session.refresh(obj)
        return obj

    async def user(self, username: Optional[str] = None, is_active: bool = True) -> User:
        self._users += 1
        username = username or f"user{self._users}"
        return await self._save(User(
            email=f"{username}@example.com",
            username=username,
            full_name=username.title(),
            is_active=is_active,
        ))

    async def role(self, name: str, is_system_role: bool = False, is_active: bool = True) -> Role:
        return await self._save(Role(name=name, is_system_role=is_system_role, is_active=is_active))

    async def grant(self, role: Role, permission: Permission, granted: bool = True) -> RolePermission:
        return await self._save(RolePermission(role_id=role.id, permission_id=permission.id, granted=granted))

    async def assign(self, user: User, role: Role) -> UserRole:
        return await self._save(UserRole(user_id=user.id, role_id=role.id))

    async def visibility(self, role: Role, module_key: str, visible: bool, user: Optional[User] = None):
        return await self._save(ModuleVisibility(
            role_id=role.id,
            module_key=module_key,
            visible=visible,
            user_id=user.id if user else None,
        ))


@pytest.fixture
def factory(session) -> Factory:
    return Factory(session)


class FakeRedis:
    """In-memory stand-in for RedisClient used by the permission cache tests"""

    def __init__(self):
        self.store = {}
        self.fail = False

    def _check(self):
        if self.fail:
            raise RedisConnectionError("redis is down")

    async def get(self, key):
        self._check()
        return self.store.get(key)

    async def set(self, key, value, expire=None):
        self._check()
        self.store[key] = value
        return True

    async def incr(self, key):
        self._check()
        self.store[key] = str(int(self.store.get(key, "0")) + 1)
        return int(self.store[key])


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()


def make_token(user_id: int, **claims) -> str:
    payload = {
        "sub": str(user_id),
        "type": "access",
        "exp": datetime.now(timezone.utc) + timedelta(minutes=15),
        **claims,
    }
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


@pytest.fixture
def auth_headers():
    def _headers(user: User) -> dict:
        return {"Authorization": f"Bearer {make_token(user.id)}"}
    return _headers


@pytest.fixture
async def client(session_maker, catalog) -> AsyncGenerator[AsyncClient, None]:
    """Create test client bound to the per-test database and catalog"""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_maker() as session:
            yield session

    app.dependency_overrides[get_async_session] = override_get_db
    app.dependency_overrides[get_module_catalog] = lambda: catalog

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
