"""Shared fixtures: an in-memory catalogue, a temporary state file and an API client."""

import pytest
from sqlalchemy.orm import sessionmaker

from metaportal.core import CatalogManager
from metaportal.core.admin import AdminService
from metaportal.core.state_store import PortalStateStore
from metaportal.models import DataType
from metaportal.models.base import create_tables, make_engine
from metaportal.services.job_manager import JobManager
from metaportal.services.metadata_backend import StubMetadataBackend


@pytest.fixture
def db_session():
    """A session on a fresh in-memory database."""
    engine = make_engine("sqlite://")
    create_tables(bind=engine)
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    try:
        yield session
    finally:
        session.close()
        engine.dispose()


@pytest.fixture
def catalog(db_session):
    return CatalogManager(db_session)


@pytest.fixture
def hr_catalog(catalog):
    """HR_SCHEMA.employees with three columns and an empty FINANCE_SCHEMA."""
    catalog.create_schema("HR_SCHEMA", "Human resources data")
    catalog.create_schema("FINANCE_SCHEMA", "Finance data")
    employees = catalog.create_table("HR_SCHEMA", "employees", "Employee master")
    catalog.create_column(employees.id, "employee_id", data_type=DataType.NUMBER,
                          precision=10, scale=0, primary_key=True)
    catalog.create_column(employees.id, "first_name", data_type=DataType.VARCHAR2, length=50)
    catalog.create_column(employees.id, "salary", data_type=DataType.NUMBER, precision=10, scale=2)
    return catalog


@pytest.fixture
def state_store(tmp_path):
    return PortalStateStore(str(tmp_path / "state.json"))


@pytest.fixture
def jobs():
    manager = JobManager(max_concurrent_jobs=2)
    yield manager
    manager.shutdown()


@pytest.fixture
def backend():
    return StubMetadataBackend(delay_seconds=0)


@pytest.fixture
def admin(state_store, backend, jobs):
    return AdminService(state_store, backend, jobs)


@pytest.fixture
def client(db_session, state_store, backend, jobs, monkeypatch):
    """TestClient wired to the fixtures above."""
    from fastapi.testclient import TestClient

    from metaportal.api.main import app
    from metaportal.core.state_store import get_state_store
    from metaportal.models.base import get_db
    from metaportal.services.job_manager import get_job_manager
    from metaportal.services.metadata_backend import get_metadata_backend

    monkeypatch.delenv("METAPORTAL_SEED_DEMO", raising=False)

    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_state_store] = lambda: state_store
    app.dependency_overrides[get_metadata_backend] = lambda: backend
    app.dependency_overrides[get_job_manager] = lambda: jobs
    try:
        with TestClient(app) as test_client:
            yield test_client
    finally:
        app.dependency_overrides.clear()
