import httpx
import pytest
import pytest_asyncio
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.core.config import get_settings
from app.models.service_order import Base, Client, Equipment, Technician, User
from app.utils.alerting import alert_tracker


@pytest.fixture(autouse=True)
def _reset_settings_cache():
    # Some tests mutate env vars and clear the settings cache. Ensure we don't leak
    # a cached Settings instance (e.g. with a different JWT secret) across tests.
    get_settings.cache_clear()
    alert_tracker.reset()
    yield
    get_settings.cache_clear()


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


def seed_catalog(session, *, client_email: str = "client@example.com") -> dict:
    """One user/technician, client and piece of equipment. Returns their ids."""
    user = User(username="jtech", full_name="Juan Tecnico", email="juan@example.com", role="technician")
    client = Client(
        name="Acme SA",
        contact_name="Maria Lopez",
        email=client_email,
        phone="555-0100",
        address="Av. Reforma 1",
    )
    equipment = Equipment(type="laptop", brand="Dell", model="Latitude 5420", serial_number="SN-001")
    session.add_all([user, client, equipment])
    session.flush()
    technician = Technician(user_id=user.id, specialization="Hardware", status="available")
    session.add(technician)
    session.commit()
    return {
        "user_id": user.id,
        "client_id": client.id,
        "equipment_id": equipment.id,
        "technician_id": technician.id,
    }


@pytest.fixture
def catalog(db):
    return seed_catalog(db)


@pytest.fixture
def api_app(session_factory):
    from app.core.auth import CurrentUser, get_current_user
    from app.core.dependencies import get_db
    from app.main import app

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_current_user] = lambda: CurrentUser(
        id="1", role="ADMIN", email="tests@example.com"
    )
    yield app
    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def client(api_app):
    # In-process ASGI client (no uvicorn needed).
    transport = httpx.ASGITransport(app=api_app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
