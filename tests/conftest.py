"""
Pytest fixtures for thesis portal tests.

Every test gets a fresh schema in a temporary file SQLite database, created
through the application's own engine so the same connection setup
(foreign keys, savepoint handling) is exercised.
"""

import itertools
import os
import tempfile
from typing import AsyncGenerator, Awaitable, Callable, List, Optional

_tmp = tempfile.NamedTemporaryFile(suffix=".db", delete=False)
_tmp.close()
TEST_DB_PATH = _tmp.name
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{TEST_DB_PATH}"
os.environ["SECRET_KEY"] = "test-secret-key-for-testing-only-0123456789"
os.environ["ENVIRONMENT"] = "test"

from thesis_portal.config import get_settings  # noqa: E402

get_settings.cache_clear()

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession  # noqa: E402

from thesis_portal.database import async_session_maker, engine  # noqa: E402
from thesis_portal.kernel.identity.jwt import JWTManager  # noqa: E402
from thesis_portal.kernel.models import Base, Group, User, UserRole  # noqa: E402
from thesis_portal.kernel.models.submission import Semester  # noqa: E402
from thesis_portal.kernel.ownership import OwnerRef  # noqa: E402
from thesis_portal.orchestration.groups import GroupService  # noqa: E402
from thesis_portal.orchestration.registration import RegistrationService  # noqa: E402
from thesis_portal.orchestration.state_machine import SubmissionContent  # noqa: E402
from thesis_portal.orchestration.supervision import SupervisionService  # noqa: E402


@pytest_asyncio.fixture
async def db_engine():
    """Create all tables before the test and drop them after."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest_asyncio.fixture
async def db_session(db_engine) -> AsyncGenerator[AsyncSession, None]:
    async with async_session_maker() as session:
        yield session
        await session.rollback()


@pytest_asyncio.fixture
async def make_user(db_session: AsyncSession) -> Callable[..., Awaitable[User]]:
    """Factory for users of any role."""
    counter = itertools.count(1)

    async def _make(
        role: UserRole = UserRole.STUDENT,
        full_name: Optional[str] = None,
        seat_capacity: int = 9,
    ) -> User:
        n = next(counter)
        user = User(
            email=f"{role.value}{n}@university.test",
            full_name=full_name or f"{role.value.title()} {n}",
            role=role,
            department="Computer Science",
            seat_capacity=seat_capacity,
            supervisor_id=None,
        )
        db_session.add(user)
        await db_session.flush()
        return user

    return _make


@pytest_asyncio.fixture
async def student(make_user) -> User:
    return await make_user(UserRole.STUDENT, full_name="Alice Student")


@pytest_asyncio.fixture
async def faculty(make_user) -> User:
    return await make_user(UserRole.FACULTY, full_name="Dr. Faculty")


@pytest_asyncio.fixture
async def admin(make_user) -> User:
    return await make_user(UserRole.ADMIN, full_name="Admin User")


@pytest.fixture
def content() -> Callable[..., SubmissionContent]:
    """Factory for submission metadata."""

    def _content(title: str = "Distributed Consensus in Practice", **overrides) -> SubmissionContent:
        values = dict(
            title=title,
            abstract="A study of consensus protocols.",
            department="Computer Science",
            year=2026,
            semester=Semester.FALL,
            file_url="https://files.university.test/thesis.pdf",
            file_name="thesis.pdf",
            file_size=1024,
            keywords=["consensus", "raft"],
        )
        values.update(overrides)
        return SubmissionContent(**values)

    return _content


@pytest_asyncio.fixture
async def form_group(db_session: AsyncSession) -> Callable[[List[User]], Awaitable[Group]]:
    """Form a group from students: the first invites each of the others, who accept."""

    async def _form(students: List[User]) -> Group:
        service = GroupService(db_session)
        leader, *others = students
        group = None
        for other in others:
            await service.send_request(leader, other.id)
            group = await service.accept_request(other, leader.id)
        return group

    return _form


@pytest_asyncio.fixture
async def supervise(db_session: AsyncSession) -> Callable[[User, User], Awaitable[OwnerRef]]:
    """Request and accept supervision for the student's owner."""

    async def _supervise(student: User, faculty: User) -> OwnerRef:
        service = SupervisionService(db_session)
        await service.request(student, faculty.id)
        owner = await service.directory.resolve_owner(student)
        await service.respond(faculty, owner, accept=True)
        return owner

    return _supervise


@pytest_asyncio.fixture
async def onboard(db_session: AsyncSession, supervise) -> Callable[[User, User], Awaitable[OwnerRef]]:
    """Supervise the student's owner and get its thesis registration approved."""

    async def _onboard(student: User, faculty: User) -> OwnerRef:
        owner = await supervise(student, faculty)
        registrations = RegistrationService(db_session)
        await registrations.submit(student, "Consensus protocols", "Evaluating Raft and Paxos.")
        await registrations.review(faculty, student.id, approve=True)
        return owner

    return _onboard


@pytest.fixture
def jwt_manager() -> JWTManager:
    return JWTManager(
        secret_key=get_settings().secret_key,
        algorithm="HS256",
        access_token_expire_minutes=30,
    )


@pytest.fixture
def auth_headers(jwt_manager: JWTManager) -> Callable[[User], dict]:
    """Bearer headers for a user."""

    def _headers(user: User) -> dict:
        token, _, _ = jwt_manager.create_access_token(
            user_id=user.id,
            email=user.email,
            role=user.role.value if hasattr(user.role, "value") else user.role,
        )
        return {"Authorization": f"Bearer {token}"}

    return _headers


