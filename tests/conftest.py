from datetime import date, datetime

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import main
import models
from clock import LOCAL_TZ
from database import Base, get_db
from security import encrypt, get_password_hash

PASSWORD = "12345"
PASSWORD_HASH = get_password_hash(PASSWORD)

# 01/02/2024 é uma quinta-feira
THURSDAY = (2024, 2, 1)
SATURDAY = (2024, 2, 3)
SUNDAY = (2024, 2, 4)


def local(*args) -> datetime:
    return datetime(*args, tzinfo=LOCAL_TZ)


@pytest.fixture
def engine():
    engine = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try: yield session
    finally: session.close()


@pytest.fixture
def make_employee(db):
    counter = {"n": 0}

    def _make(name="Bruno Vendedor", role=models.ROLE_VENDEDOR, shift=models.SHIFT_MANHA,
              hire_date=date(2023, 2, 10), email=None, cpf="98765432100"):
        counter["n"] += 1
        employee = models.Employee(
            name=name,
            email=email or f"func{counter['n']}@empresa.com",
            hashed_password=PASSWORD_HASH,
            cpf_encrypted=encrypt(cpf),
            phone_encrypted=encrypt("11988888888"),
            role=role,
            shift=shift if role == models.ROLE_VENDEDOR else None,
            hire_date=hire_date,
        )
        db.add(employee); db.commit(); db.refresh(employee)
        return employee

    return _make


@pytest.fixture
def clock():
    return {"now": local(*THURSDAY, 11, 0)}


@pytest.fixture
def client(session_factory, clock, tmp_path, monkeypatch):
    def override_get_db():
        session = session_factory()
        try: yield session
        finally: session.close()

    monkeypatch.setattr(main, "PHOTO_DIR", str(tmp_path / "fotos"))
    main.app.dependency_overrides[get_db] = override_get_db
    main.app.dependency_overrides[main.get_now] = lambda: clock["now"]
    yield TestClient(main.app)
    main.app.dependency_overrides.clear()


@pytest.fixture
def login(client):
    def _login(email, password=PASSWORD):
        resp = client.post("/token", data={"username": email, "password": password})
        assert resp.status_code == 200, resp.text
        return {"Authorization": f"Bearer {resp.json()['access_token']}"}

    return _login
