"""Pytest configuration, fakes for the external collaborators and fixtures."""
import os

# Must be set before app.config is imported anywhere
os.environ["APP_ENV"] = "development"
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["CONSOLE_API_TOKEN"] = "test-console-token"

from typing import Dict, List, Optional, Tuple

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.core.errors import ExternalError
from app.crud import crud_project
from app.db.base_class import Base
from app.services.edge_hostname import CustomHostname
from app.services.email_domain import EmailDomain

CONSOLE_TOKEN = "test-console-token"


# ═══════════════════════════════════════════
#  Fakes
# ═══════════════════════════════════════════

class FakeEdgeProvider:
    """In-memory edge hostname provider."""

    def __init__(self, fail_on_create_call: Optional[int] = None, fail_deletes: bool = False):
        self.fail_on_create_call = fail_on_create_call
        self.fail_deletes = fail_deletes
        self.status_error = False
        self.create_calls = 0
        self.hostnames: Dict[str, str] = {}        # id -> hostname
        self.deleted: List[str] = []
        self.active_hostnames = set()
        self.status_checks: List[str] = []

    def create_custom_hostname(self, hostname: str, origin: str) -> CustomHostname:
        self.create_calls += 1
        if self.fail_on_create_call == self.create_calls:
            raise ExternalError("edge provider unavailable")
        hostname_id = f"ch_{self.create_calls}"
        self.hostnames[hostname_id] = hostname
        return CustomHostname(id=hostname_id, hostname=hostname, status="pending", custom_origin_server=origin)

    def delete_custom_hostname(self, hostname_id: str) -> None:
        if self.fail_deletes:
            raise ExternalError("edge delete failed")
        self.hostnames.pop(hostname_id, None)
        self.deleted.append(hostname_id)

    def check_custom_hostname_status(self, hostname: str) -> bool:
        self.status_checks.append(hostname)
        if self.status_error:
            raise ExternalError("status endpoint unavailable")
        return hostname in self.active_hostnames

    def close(self) -> None:
        pass


class FakeEmailProvider:
    def __init__(self, fail_create: bool = False, fail_delete: bool = False):
        self.fail_create = fail_create
        self.fail_delete = fail_delete
        self.domains: Dict[int, str] = {}
        self.deleted: List[int] = []
        self._next_id = 1000

    def create_domain(self, name: str) -> EmailDomain:
        if self.fail_create:
            raise ExternalError("email provider unavailable")
        self._next_id += 1
        self.domains[self._next_id] = name
        return EmailDomain(
            id=self._next_id,
            name=name,
            dkim_pending_host=f"20240101pm._domainkey.{name}",
            dkim_pending_text_value=f"k=rsa;p=KEY{self._next_id}",
            return_path_domain=f"rp.{name}",
            return_path_domain_cname_value="pm.mtasv.net",
        )

    def delete_domain(self, domain_id: int) -> None:
        if self.fail_delete:
            raise ExternalError("email delete failed")
        self.domains.pop(domain_id, None)
        self.deleted.append(domain_id)

    def close(self) -> None:
        pass


class FakeResolver:
    """Answers from a mutable ``(name, type) -> [answers]`` table."""

    def __init__(self, answers: Optional[Dict[Tuple[str, str], List[str]]] = None):
        self.answers = answers if answers is not None else {}
        self.failing = set()
        self.calls: List[Tuple[str, str]] = []

    def resolve(self, name: str, record_type: str) -> List[str]:
        self.calls.append((name, record_type))
        if name in self.failing:
            raise ExternalError(f"DNS query timed out for {name}", step="dns_resolve")
        return list(self.answers.get((name, record_type), []))


class FakeCounter:
    def __init__(self):
        self.values: Dict[str, int] = {}

    def incr(self, name: str, amount: int = 1) -> int:
        self.values[name] = self.values.get(name, 0) + amount
        return self.values[name]


# ═══════════════════════════════════════════
#  Fixtures
# ═══════════════════════════════════════════

@pytest.fixture
def engine():
    import app.models  # noqa: F401  register every table

    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db(engine):
    TestSession = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestSession()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def edge():
    return FakeEdgeProvider()


@pytest.fixture
def email():
    return FakeEmailProvider()


@pytest.fixture
def resolver():
    return FakeResolver()


@pytest.fixture
def counter():
    return FakeCounter()


@pytest.fixture
def project(db):
    created = crud_project.create(db, name="Acme")
    db.commit()
    return created


@pytest_asyncio.fixture
async def client(db, edge, email, resolver, counter):
    """Async HTTP client with the store and every external collaborator overridden."""
    from app.main import app as fastapi_app
    from app.api import deps

    def _override_get_db():
        yield db

    fastapi_app.dependency_overrides[deps.get_db] = _override_get_db
    fastapi_app.dependency_overrides[deps.get_edge_client] = lambda: edge
    fastapi_app.dependency_overrides[deps.get_email_client] = lambda: email
    fastapi_app.dependency_overrides[deps.get_dns_resolver] = lambda: resolver
    fastapi_app.dependency_overrides[deps.get_staging_counter] = lambda: counter

    transport = ASGITransport(app=fastapi_app)
    async with AsyncClient(
        transport=transport,
        base_url="http://test",
        headers={"Authorization": f"Bearer {CONSOLE_TOKEN}"},
    ) as ac:
        yield ac

    fastapi_app.dependency_overrides.clear()
