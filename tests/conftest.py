import os

# Settings are read at import time
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("JWT_SECRET", "roomgate-test-secret-0123456789abcdef")

from dataclasses import replace

import pytest
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool

from roomgate.core.policy import TEACHER_ROOMS
from roomgate.core.security import create_access_token
from roomgate.models.base import Base
from roomgate.models.user import User
from roomgate.schemas.room import CreateRoomRequest, RoomType
from roomgate.schemas.user import CurrentUser, UserType
from roomgate.services.asset_storage import AssetStorage
from roomgate.services.identity_service import IdentityService
from roomgate.services.post_service import PostService
from roomgate.services.room_service import RoomService

DATABASE_URL = "sqlite+aiosqlite:///:memory:"
ASSET_BASE_URL = "https://assets.test/covers/"


class FakeAssetStorage(AssetStorage):
    """Records uploads and deletions instead of calling the storage service."""

    def __init__(self, fail_delete: bool = False):
        super().__init__("http://storage.test", public_base_url=ASSET_BASE_URL)
        self.uploaded = []
        self.deleted = []
        self.fail_delete = fail_delete

    async def upload(self, local_path: str) -> dict:
        public_id = f"cover{len(self.uploaded) + 1}"
        self.uploaded.append(local_path)
        return {"url": f"{ASSET_BASE_URL}{public_id}.jpg", "public_id": public_id}

    async def delete(self, asset_id: str) -> bool:
        if self.fail_delete:
            raise RuntimeError("storage unavailable")
        self.deleted.append(asset_id)
        return True


@pytest.fixture
async def async_session():
    engine = create_async_engine(
        DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    async_session_factory = async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)
    async with async_session_factory() as session:
        yield session
    await engine.dispose()


@pytest.fixture
def make_user(async_session):
    counter = {"n": 0}

    async def _make_user(user_type: UserType = UserType.STUDENT, username: str = None) -> CurrentUser:
        counter["n"] += 1
        name = username or f"{user_type.value.lower()}{counter['n']}"
        user = User(username=name, full_name=name.title(), user_type=user_type)
        async_session.add(user)
        await async_session.commit()
        return CurrentUser(id=user.id)

    return _make_user


@pytest.fixture
async def teacher(make_user):
    return await make_user(UserType.TEACHER, "teacher")


@pytest.fixture
async def student(make_user):
    return await make_user(UserType.STUDENT, "student")


@pytest.fixture
async def owner(make_user):
    return await make_user(UserType.OWNER, "owner")


@pytest.fixture
async def platform_admin(make_user):
    return await make_user(UserType.ADMIN, "platform_admin")


@pytest.fixture
def approval_policy():
    """TEACHER creators, no auto-enrollment, approval required."""
    return replace(
        TEACHER_ROOMS,
        name="approval_rooms",
        auto_enroll_creator=False,
        require_join_approval=True,
    )


@pytest.fixture
def asset_storage():
    return FakeAssetStorage()


@pytest.fixture
def make_service(async_session, asset_storage):
    def _make_service(policy=TEACHER_ROOMS, **kwargs) -> RoomService:
        kwargs.setdefault("asset_storage", asset_storage)
        return RoomService(
            db=async_session,
            policy=policy,
            identity_service=IdentityService(async_session),
            post_service=PostService(async_session),
            **kwargs,
        )

    return _make_service


@pytest.fixture
def room_service(make_service):
    return make_service()


@pytest.fixture
def room_request():
    def _room_request(name: str = "Physics 101", **kwargs) -> CreateRoomRequest:
        kwargs.setdefault("room_type", RoomType.CLASS)
        return CreateRoomRequest(name=name, **kwargs)

    return _room_request


@pytest.fixture
def auth_headers():
    def _auth_headers(user: CurrentUser, user_type: UserType = None) -> dict:
        claims = {"user_id": str(user.id)}
        if user_type is not None:
            claims["user_type"] = user_type.value
        return {"Authorization": f"Bearer {create_access_token(claims)}"}

    return _auth_headers
