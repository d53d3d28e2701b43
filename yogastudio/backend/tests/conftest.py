import pytest
from fastapi import HTTPException
from fastapi.testclient import TestClient

from app.api import deps
from app.config import Settings
from app.db.session import Database

from factories import PASSWORD, WEBHOOK_SECRET, RecordingGateway


@pytest.fixture()
def settings():
    return Settings(
        ENV="test",
        DATABASE_URL="sqlite+pysqlite:///:memory:",
        PAYMENT_PROVIDER="stub",
        STRIPE_WEBHOOK_SECRET=WEBHOOK_SECRET,
        PUBLIC_BASE_URL="https://studio.test",
        JWT_SECRET="test-secret",
        DEFAULT_ADMIN_EMAIL="admin@studio.test",
        DEFAULT_ADMIN_PASSWORD=PASSWORD,
    )


@pytest.fixture()
def database(settings):
    database = Database(settings.sqlalchemy_url)
    database.create_all()
    try:
        yield database
    finally:
        database.dispose()


@pytest.fixture()
def db_session(database):
    session = database.session()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def gateway(settings):
    return RecordingGateway(settings)


@pytest.fixture()
def auth_state():
    return {"user": None}


@pytest.fixture()
def login_as(auth_state):
    def switch(user):
        auth_state["user"] = user

    return switch


@pytest.fixture()
def api(settings, database, gateway, auth_state):
    from app.main import create_app

    app = create_app(settings=settings, database=database, gateway=gateway)

    def override_get_current_user():
        if auth_state["user"] is None:
            raise HTTPException(status_code=401, detail="Could not validate credentials")
        return auth_state["user"]

    app.dependency_overrides[deps.get_current_user] = override_get_current_user

    with TestClient(app) as client:
        yield client

    app.dependency_overrides.clear()
