import os
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from stockdesk.app.api.deps import get_db
from stockdesk.app.core.config import Settings
from stockdesk.app.core.security import hash_password
from stockdesk.app.db.base import Base
from stockdesk.app.db.models.core_types import Role
from stockdesk.app.db.models.models_v1 import StockItem, User
from stockdesk.app.db.session import make_engine, make_session_factory
from stockdesk.app.main import create_app

PASSWORD = "secret-pass"


@pytest.fixture(scope="function")
def engine(tmp_path):
    """
    Base isolée par test.

    Par défaut un fichier SQLite dans tmp_path (plusieurs connexions possibles,
    nécessaire pour les tests de concurrence). TEST_DATABASE_URL permet de
    viser un Postgres jetable à la place.
    """
    url = os.getenv("TEST_DATABASE_URL") or f"sqlite:///{tmp_path / 'stockdesk-test.db'}"
    eng = make_engine(url)
    Base.metadata.create_all(bind=eng)
    try:
        yield eng
    finally:
        if not url.startswith("sqlite"):
            Base.metadata.drop_all(bind=eng)
        eng.dispose()


@pytest.fixture
def session_factory(engine):
    return make_session_factory(engine)


@pytest.fixture
def db_session(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


# ---------- Factories ----------
@pytest.fixture
def make_user(session_factory):
    """Crée un user dans sa propre session (commit + close) et retourne son id."""

    def _make(username: str, role: Role, *, password: str = PASSWORD, active: bool = True) -> int:
        with session_factory() as s:
            u = User(
                username=username,
                password_hash=hash_password(password),
                role=role,
                is_active=active,
            )
            s.add(u)
            s.commit()
            return u.id

    return _make


@pytest.fixture
def make_stock_item(session_factory):
    def _make(name: str, quantity: int, *, buying_price="50.00", selling_price=None) -> int:
        with session_factory() as s:
            si = StockItem(
                name=name,
                quantity=quantity,
                buying_price=Decimal(buying_price),
                selling_price=Decimal(selling_price) if selling_price is not None else None,
            )
            s.add(si)
            s.commit()
            return si.id

    return _make


# ---------- HTTP ----------
@pytest.fixture
def make_app(session_factory):
    """App de test branchée sur la base du test ; les overrides de Settings passent en kwargs."""

    def _make(**overrides):
        app = create_app(Settings(database_url="sqlite://", log_level="WARNING", **overrides))

        def _get_db():
            db = session_factory()
            try:
                yield db
            finally:
                db.close()

        app.dependency_overrides[get_db] = _get_db
        return app

    return _make


@pytest.fixture
def client(make_app):
    with TestClient(make_app()) as c:
        yield c


@pytest.fixture
def login(client):
    def _login(username: str, password: str = PASSWORD) -> dict:
        resp = client.post("/v1/auth/login", json={"username": username, "password": password})
        assert resp.status_code == 200, resp.text
        return {"Authorization": f"Bearer {resp.json()['access_token']}"}

    return _login
