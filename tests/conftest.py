import os
import tempfile
import uuid

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./test.db")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("UPLOAD_DIR", tempfile.mkdtemp(prefix="khidmap-uploads-"))

import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy import select  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402

from app.core.database import Base, get_db, json_serializer  # noqa: E402
from app.core.security import create_access_token, hash_password  # noqa: E402
from app.main import app  # noqa: E402
from app.models import AdRequest, Call, Chat, Message, Notification, Order, Rating, SupportRequest  # noqa: E402, F401
from app.models.user import User  # noqa: E402
from app.services.messaging import get_or_create_chat  # noqa: E402

TEST_DB_URL = os.getenv("TEST_DATABASE_URL", "sqlite+aiosqlite:///./test.db")

PASSWORD = "secret123"


@pytest_asyncio.fixture
async def db():
    eng = create_async_engine(TEST_DB_URL, echo=False, json_serializer=json_serializer)
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    session_factory = async_sessionmaker(eng, class_=AsyncSession, expire_on_commit=False)
    async with session_factory() as session:
        yield session

    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await eng.dispose()


@pytest_asyncio.fixture
async def client(db):
    async def _override_db():
        yield db

    app.dependency_overrides[get_db] = _override_db
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


def auth_headers(user: User) -> dict:
    token = create_access_token(str(user.id), user.role)
    return {"Authorization": f"Bearer {token}"}


async def make_user(db: AsyncSession, name: str, email: str, role: str, **fields) -> User:
    values = {"images": [], "videos": [], "service_categories": [], "service_areas": [], **fields}
    user = User(
        id=uuid.uuid4(),
        name=name,
        email=email,
        password_hash=hash_password(PASSWORD),
        role=role,
        is_verified=True,
        **values,
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)
    return user


async def notifications_for(db: AsyncSession, user: User) -> list[Notification]:
    result = await db.execute(
        select(Notification).where(Notification.user_id == user.id).order_by(Notification.created_at.asc())
    )
    return list(result.scalars().all())


@pytest_asyncio.fixture
async def seeker_user(db: AsyncSession):
    return await make_user(db, "Sara Seeker", "sara@mail.com", "seeker", phone_number="+966500000001")


@pytest_asyncio.fixture
async def provider_user(db: AsyncSession):
    return await make_user(
        db,
        "Omar Plumber",
        "omar@mail.com",
        "provider",
        qualifications="Licensed plumber, 10 years of water heater repairs",
        service_categories=["Plumbing"],
        service_areas=["Riyadh"],
    )


@pytest_asyncio.fixture
async def admin_user(db: AsyncSession):
    return await make_user(db, "Admin", "admin@khidmap.com", "admin")


@pytest_asyncio.fixture
async def chat(db: AsyncSession, seeker_user: User, provider_user: User):
    c, _ = await get_or_create_chat(db, seeker_user.id, provider_user.id)
    return c


@pytest_asyncio.fixture
async def order(db: AsyncSession, seeker_user: User, provider_user: User, chat: Chat):
    o = Order(
        id=uuid.uuid4(),
        seeker_id=seeker_user.id,
        provider_id=provider_user.id,
        seeker_name=seeker_user.name,
        provider_name=provider_user.name,
        service_description="Fix the leaking kitchen sink",
        amount=200.0,
        currency="SAR",
        commission=10.0,
        payout_amount=190.0,
        status="pending_approval",
        chat_id=chat.id,
    )
    db.add(o)
    await db.commit()
    await db.refresh(o)
    return o
