"""Pytest fixtures: test client, admin headers, file-backed SQLite sessions for engine tests."""
import os
from datetime import timedelta

import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session, SQLModel

# In-memory SQLite for the app; must be set before xenostore is imported
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("ADMIN_SECRET", "test-admin-secret")
os.environ.setdefault("SMTP_HOST", "")
# Validate limit stays low enough for test_rate_limit to trip it from its own IP
os.environ.setdefault("RATE_LIMIT_COUPON_VALIDATE_PER_MINUTE", "30")
os.environ.setdefault("RATE_LIMIT_PER_MINUTE", "1000")

from xenostore import models  # noqa: E402,F401
from xenostore.core import database  # noqa: E402
from xenostore.core.clock import utcnow  # noqa: E402
from xenostore.main import app  # noqa: E402
from xenostore.models import Coupon  # noqa: E402


@pytest.fixture(scope="function")
def client():
    """TestClient on a clean in-memory DB; the lifespan creates the tables."""
    SQLModel.metadata.drop_all(database.engine)
    with TestClient(app) as c:
        yield c


@pytest.fixture
def admin_headers():
    return {"X-Admin-Secret": os.environ["ADMIN_SECRET"]}


@pytest.fixture
def engine(tmp_path):
    """SQLite file per test so two sessions really are two connections."""
    eng = database.build_engine(f"sqlite:///{tmp_path / 'coupons.db'}")
    SQLModel.metadata.create_all(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def db(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture
def make_coupon(db):
    """Coupon factory with checkout-friendly defaults."""

    def _make(**overrides) -> Coupon:
        values = {
            "code": "SAVE150",
            "discount_type": "flat",
            "discount_value": 150,
            "usage_limit": 10,
            "usage_per_user": 1,
            "expires_at": utcnow() + timedelta(days=30),
        }
        values.update(overrides)
        coupon = Coupon(**values)
        db.add(coupon)
        db.commit()
        db.refresh(coupon)
        return coupon

    return _make
