import os
import random
from typing import Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# Settings are read at import time, so the environment has to be ready first.
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ["SECRET_KEY"] = "testsecretkey"
os.environ["ADMIN_USER_ID"] = "admin"
# one fan-out worker: the API tests share a single SQLite connection
os.environ["REBALANCE_MAX_WORKERS"] = "1"
os.environ["REBALANCE_TIMEOUT_SECONDS"] = "10"

import pr_reviewers.models  # noqa: F401
from pr_reviewers.models.base import Base
from pr_reviewers.core import security
from pr_reviewers.crud.memory_repository import InMemoryRepository
from pr_reviewers.crud.sql_repository import SqlAlchemyRepository
from pr_reviewers.dependencies import get_repository
from pr_reviewers.entities import User
from pr_reviewers.main import app
from pr_reviewers.services.assignment_service import AssignmentService
from pr_reviewers.services.selection import SelectionPolicy

engine = create_engine(
    "sqlite:///:memory:",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine, expire_on_commit=False)


@pytest.fixture(scope="function")
def tables() -> Generator[None, None, None]:
    """
    Fresh schema for every test that touches SQL.
    """
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def sql_repo(tables) -> SqlAlchemyRepository:
    return SqlAlchemyRepository(TestingSessionLocal)


@pytest.fixture(scope="function")
def memory_repo() -> InMemoryRepository:
    return InMemoryRepository()


@pytest.fixture(scope="function")
def rng() -> random.Random:
    return random.Random(1234)


@pytest.fixture(scope="function")
def policy(rng: random.Random) -> SelectionPolicy:
    return SelectionPolicy(rng=rng, max_reviewers=2)


@pytest.fixture(scope="function")
def service(memory_repo: InMemoryRepository, policy: SelectionPolicy) -> AssignmentService:
    return AssignmentService(memory_repo, policy, admin_ids=("admin",), max_workers=8, rebalance_timeout=5)


@pytest.fixture(scope="function")
def client(sql_repo: SqlAlchemyRepository) -> Generator[TestClient, None, None]:
    """
    TestClient wired to the StaticPool SQLite repository.
    """
    app.dependency_overrides[get_repository] = lambda: sql_repo
    with TestClient(app) as c:
        yield c
    del app.dependency_overrides[get_repository]


@pytest.fixture(scope="function")
def admin_headers() -> dict:
    token, _ = security.create_admin_token()
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture(scope="function")
def user_headers():
    """
    Factory: bearer headers for an ordinary user id.
    """
    def _headers(user_id: str) -> dict:
        token, _ = security.create_access_token(user_id)
        return {"Authorization": f"Bearer {token}"}
    return _headers


def members(*entries) -> list:
    """
    members("a", ("b", False)) -> [User(a, active), User(b, inactive)]
    """
    result = []
    for entry in entries:
        if isinstance(entry, tuple):
            user_id, active = entry
        else:
            user_id, active = entry, True
        result.append(User(id=user_id, name=user_id.upper(), is_active=active))
    return result


@pytest.fixture
def make_members():
    return members
