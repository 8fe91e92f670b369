import os

os.environ.setdefault("DATABASE_URL", "sqlite://")

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.core.database import Base, get_db
from app.models import Vendor, Client, ClientStatus, CommissionRecord, PaymentSchedule  # noqa: F401


@pytest.fixture
def db():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    TestingSession = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSession()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def hierarchy(db):
    """SVP > Manager > ETL > ETT > new vendor (no position yet)"""
    vendors = {}
    parent = None
    for code, position in [
        ("SVP1", "SVP"),
        ("MGR1", "Manager"),
        ("ETL1", "ETL"),
        ("ETT1", "ETT"),
        ("NEW1", None),
    ]:
        vendor = Vendor(code_vendeur=code, prenom=code, nom="Test", position=position,
                        parent_id=parent.id if parent else None)
        db.add(vendor)
        db.flush()
        vendors[code] = vendor
        parent = vendor
    db.commit()
    return vendors


@pytest.fixture
def add_installation(db):
    def _add(vendor, product, installed_on, status=ClientStatus.INSTALLATION.value, acquired_on=None):
        client = Client(
            vendor_id=vendor.id,
            prenom="Client",
            nom=product,
            produit=product,
            status=status,
            acquisition_date=acquired_on or installed_on,
            installation_date=installed_on,
        )
        db.add(client)
        db.commit()
        return client
    return _add


@pytest.fixture
def api_client(db):
    from fastapi.testclient import TestClient
    from app.main import app

    def _override_get_db():
        yield db

    app.dependency_overrides[get_db] = _override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
