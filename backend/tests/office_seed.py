"""Row builders and the in-memory API test base shared by the API tests."""

import unittest
import uuid
from datetime import datetime, timezone

from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.core.auth import CurrentUser, get_current_user
from app.core.dependencies import get_db
from app.main import app
from app.models.office import Base, Client, Location, Organization, Subscription, User


def make_org(db, name="Scoop Co", settings=None) -> Organization:
    org = Organization(name=name, slug=f"org-{uuid.uuid4().hex[:8]}", settings=settings or {})
    db.add(org)
    db.flush()
    return org


def make_user(db, org, role="OWNER", email=None, first_name="Pat", **kwargs) -> User:
    user = User(
        org_id=org.id,
        email=email or f"{uuid.uuid4().hex[:10]}@example.com",
        role=role,
        first_name=first_name,
        **kwargs,
    )
    db.add(user)
    db.flush()
    return user


def make_client(db, org, client_type="RESIDENTIAL", status="ACTIVE", created_at=None, **kwargs) -> Client:
    client = Client(
        org_id=org.id,
        client_type=client_type,
        status=status,
        first_name=kwargs.pop("first_name", "Jamie"),
        last_name=kwargs.pop("last_name", "Doe"),
        created_at=created_at or datetime.now(timezone.utc),
        **kwargs,
    )
    db.add(client)
    db.flush()
    return client


def make_location(db, org, client, zip_code="90210", is_active=True, **kwargs) -> Location:
    location = Location(
        org_id=org.id,
        client_id=client.id,
        address_line1=kwargs.pop("address_line1", "1 Main St"),
        city=kwargs.pop("city", "Springfield"),
        zip_code=zip_code,
        is_active=is_active,
        **kwargs,
    )
    db.add(location)
    db.flush()
    return location


def make_subscription(db, org, client, location, status="ACTIVE", **kwargs) -> Subscription:
    sub = Subscription(
        org_id=org.id,
        client_id=client.id,
        location_id=location.id,
        status=status,
        **kwargs,
    )
    db.add(sub)
    db.flush()
    return sub


class OfficeApiTestCase(unittest.TestCase):
    """In-memory database, overridden session and caller."""

    role = "OWNER"

    def setUp(self):
        self.engine = create_engine(
            "sqlite://",
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
        Base.metadata.create_all(self.engine)
        self.SessionLocal = sessionmaker(bind=self.engine, expire_on_commit=False)

        def override_get_db():
            db = self.SessionLocal()
            try:
                yield db
            finally:
                db.close()

        self.db = self.SessionLocal()
        self.org = make_org(self.db)
        self.user = make_user(self.db, self.org, role=self.role)
        self.db.commit()
        self.current_user = CurrentUser(id=str(self.user.id), role=self.role, org_id=str(self.org.id))

        app.dependency_overrides[get_db] = override_get_db
        app.dependency_overrides[get_current_user] = lambda: self.current_user
        self.client = TestClient(app)

    def tearDown(self):
        self.client.close()
        self.db.close()
        app.dependency_overrides.clear()
        Base.metadata.drop_all(self.engine)
        self.engine.dispose()

    def as_role(self, role):
        self.current_user = CurrentUser(id=self.current_user.id, role=role, org_id=self.current_user.org_id)
