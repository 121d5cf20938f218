"""Shared fixtures: in-memory SQLite database, factories and an API client."""

from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import memberhub.models.registry  # noqa: F401
from memberhub.core.security import create_access_token
from memberhub.db.base import Base
from memberhub.db.session import get_db
from memberhub.main import app
from memberhub.models.coupon import Coupon
from memberhub.models.digital_card import DigitalCard
from memberhub.models.plan import Plan
from memberhub.models.user import User

engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


@pytest.fixture
def db():
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client(db):
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    # no context manager: the lifespan would create tables on the real engine
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def make_user(db):
    counter = {"n": 0}

    def _make(**kwargs):
        counter["n"] += 1
        n = counter["n"]
        data = {
            "email": f"user{n}@example.com",
            "username": f"user{n}",
            "first_name": "Test",
            "last_name": f"User{n}",
            "password_hash": "not-a-real-hash",
        }
        data.update(kwargs)
        user = User(**data)
        db.add(user)
        db.commit()
        return user

    return _make


@pytest.fixture
def owner(make_user):
    return make_user(email="owner@example.com", username="owner")


@pytest.fixture
def member(make_user):
    return make_user(email="member@example.com", username="member")


@pytest.fixture
def make_plan(db, owner):
    def _make(**kwargs):
        data = {
            "name": "Monthly",
            "fee": 100,
            "renewal_interval": "monthly",
            "is_active": True,
            "is_public": True,
            "created_by": owner.id,
        }
        data.update(kwargs)
        plan = Plan(**data)
        db.add(plan)
        db.commit()
        return plan

    return _make


@pytest.fixture
def make_coupon(db, owner):
    def _make(**kwargs):
        data = {
            "name": "Ten percent",
            "code": "SAVE10",
            "discount": 10,
            "discount_type": "percentage",
            "current_redemptions": 0,
            "is_active": True,
            "created_by": owner.id,
        }
        data.update(kwargs)
        coupon = Coupon(**data)
        db.add(coupon)
        db.commit()
        return coupon

    return _make


@pytest.fixture
def card_template(db, owner):
    template = DigitalCard(
        is_template=True,
        user_id=owner.id,
        organization_name="Test Club",
        card_title="Member",
        primary_color="#112233",
    )
    db.add(template)
    db.commit()
    return template


@pytest.fixture
def auth_headers():
    def _headers(user):
        return {"Authorization": f"Bearer {create_access_token(str(user.id))}"}

    return _headers


@pytest.fixture
def yesterday():
    return datetime.now(timezone.utc) - timedelta(days=1)
