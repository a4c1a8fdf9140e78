"""Shared test fixtures."""

from collections.abc import AsyncIterator, Awaitable, Callable
from datetime import date

import pytest
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from squad_health_server.models import Base, Profile, Role, User

UserFactory = Callable[..., Awaitable[User]]


class RecordingPublisher:
    """Publisher that keeps every event for assertions."""

    def __init__(self) -> None:
        self.events: list[tuple[str, dict, str | None]] = []

    def publish(self, channel: str, event: dict, origin: str | None = None) -> None:
        self.events.append((channel, event, origin))

    def of_type(self, event_type: str) -> list[tuple[str, dict, str | None]]:
        return [e for e in self.events if e[1].get("type") == event_type]


@pytest.fixture
async def async_engine() -> AsyncIterator[AsyncEngine]:
    """Create async SQLite engine for testing."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    # Foreign keys on, and SAVEPOINT support: let SQLAlchemy emit BEGIN itself
    @event.listens_for(engine.sync_engine, "connect")
    def set_sqlite_pragma(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine.sync_engine, "begin")
    def do_begin(conn):
        conn.exec_driver_sql("BEGIN")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
async def async_session(async_engine: AsyncEngine) -> AsyncIterator[AsyncSession]:
    """Create async session for testing."""
    async_session_maker = async_sessionmaker(
        async_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with async_session_maker() as session:
        yield session


@pytest.fixture
def publisher() -> RecordingPublisher:
    return RecordingPublisher()


@pytest.fixture
def make_user(async_session: AsyncSession) -> UserFactory:
    """Factory creating a committed user with a profile."""

    async def _make(
        role: Role,
        name: str,
        email: str,
        *,
        status: str | None = None,
        first_name: str | None = None,
        last_name: str | None = None,
        date_of_birth: date | None = None,
        position: str | None = None,
    ) -> User:
        user = User(name=name, email=email, role=role, status=status)
        user.profile = Profile(
            first_name=first_name or name.split()[0],
            last_name=last_name or name.split()[-1],
            date_of_birth=date_of_birth,
            position=position,
        )
        async_session.add(user)
        await async_session.commit()
        await async_session.refresh(user)
        return user

    return _make


@pytest.fixture
async def doctor(make_user: UserFactory) -> User:
    return await make_user(Role.DOCTOR, "Sarah Lee", "sarah.lee@club.test")


@pytest.fixture
async def coach(make_user: UserFactory) -> User:
    return await make_user(Role.COACH, "Mark Stone", "mark.stone@club.test")


@pytest.fixture
async def player(make_user: UserFactory, doctor: User, coach: User) -> User:
    """A player created after the staff, so role fallbacks resolve to them."""
    return await make_user(
        Role.PLAYER,
        "Tom Hart",
        "tom.hart@club.test",
        status="Optimal",
        date_of_birth=date(1998, 3, 5),
        position="Midfielder",
    )


@pytest.fixture
async def admin(make_user: UserFactory) -> User:
    return await make_user(Role.ADMIN, "Ada Root", "ada@club.test")
