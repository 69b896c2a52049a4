"""Pytest configuration and fixtures."""

import asyncio
import inspect
from typing import Any, List, Optional

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

from app.carbon_model import EmissionsEstimator, RemoteEstimateError, RemoteEstimateRequest
from app.climatiq import get_estimator
from app.database import get_db
from app.main import app


def pytest_pyfunc_call(pyfuncitem: Any) -> Optional[bool]:
    """Execute async test functions without requiring pytest-asyncio."""

    if inspect.iscoroutinefunction(pyfuncitem.obj):
        call_kwargs = {
            name: pyfuncitem.funcargs[name]
            for name in pyfuncitem._fixtureinfo.argnames
        }

        event_loop = asyncio.new_event_loop()
        try:
            event_loop.run_until_complete(pyfuncitem.obj(**call_kwargs))
        finally:
            event_loop.close()
        return True
    return None


class StubRemote:
    """Stands in for the Climatiq client and records every request it receives."""

    def __init__(self, result: Optional[float] = None, error: Optional[Exception] = None):
        self.result = result
        self.error = error
        self.calls: List[RemoteEstimateRequest] = []

    async def __call__(self, request: RemoteEstimateRequest) -> float:
        self.calls.append(request)
        if self.error is not None:
            raise self.error
        return self.result


@pytest.fixture
def failing_remote() -> StubRemote:
    return StubRemote(error=RemoteEstimateError("service unavailable"))


@pytest.fixture
def estimator(failing_remote) -> EmissionsEstimator:
    """Estimator whose remote service always fails, so fallback rates apply."""
    return EmissionsEstimator(remote=failing_remote)


@pytest.fixture
def session():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    with Session(engine) as session:
        yield session
    SQLModel.metadata.drop_all(engine)


@pytest.fixture
def client(session, estimator):
    app.dependency_overrides[get_db] = lambda: session
    app.dependency_overrides[get_estimator] = lambda: estimator
    yield TestClient(app)
    app.dependency_overrides.clear()
