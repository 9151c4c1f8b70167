import os
import tempfile

_tmpdir = tempfile.mkdtemp(prefix="scriib-tests-")

# settings are read at import time, so the environment has to be in place first
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_tmpdir, 'scriib.db')}"
os.environ["ENVIRONMENT"] = "test"
os.environ["DB_LOG_ENABLED"] = "false"
os.environ["SESSION_SECRET"] = "test-session-secret"
os.environ["CRON_SECRET"] = "test-cron-secret"
os.environ["ADMIN_EMAILS"] = "admin@example.com"
os.environ["UNIPILE_API_KEY"] = "test-unipile-key"
os.environ["UNIPILE_BASE_URL"] = "https://unipile.test/api/v1"

from datetime import timedelta

import pytest
from fastapi.testclient import TestClient

from scriib.api.auth import sign_identity
from scriib.api.main import app
from scriib.core import identity
from scriib.db import SessionLocal, engine, get_db
from scriib.db_models import (
    Base,
    Campaign,
    CampaignContact,
    CampaignContactStatus,
    CampaignStatus,
    Contact,
    LinkedInOutreachAccount,
    utcnow,
)


@pytest.fixture
def db():
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
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
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def make_user(db, external_id, email=None, full_name=None):
    mapping, _ = identity.create_mapping(db, external_id, email=email, full_name=full_name)
    return mapping.user_id


def auth_headers(external_id):
    return {"Authorization": f"Bearer {sign_identity(external_id)}"}


@pytest.fixture
def owner(db):
    return make_user(db, "ext-owner", email="owner@example.com", full_name="Olivia Owner")


@pytest.fixture
def approver(db):
    return make_user(db, "ext-approver", email="approver@example.com", full_name="Andy Approver")


@pytest.fixture
def ghostwriter(db):
    return make_user(db, "ext-ghost", email="ghost@example.com", full_name="Gina Ghost")


@pytest.fixture
def stranger(db):
    return make_user(db, "ext-stranger", email="stranger@example.com")


@pytest.fixture
def outreach_setup(db, owner):
    """Active campaign on a live Unipile account with two pending contacts."""
    account = LinkedInOutreachAccount(user_id=owner, unipile_account_id="acc-1", account_name="Olivia", is_active=True)
    db.add(account)
    db.flush()

    campaign = Campaign(
        user_id=owner,
        name="Founders Q3",
        status=CampaignStatus.active,
        connection_message="Hi {first_name}, loved your take on {company}.",
        follow_up_message="Thanks for connecting, {first_name}!",
        follow_up_delay_days=3,
        daily_connection_limit=20,
        linkedin_account_id=account.id,
        started_at=utcnow() - timedelta(days=1),
    )
    db.add(campaign)
    db.flush()

    people = [
        Contact(user_id=owner, name="Jane Doe", company="Acme", profile_url="https://www.linkedin.com/in/jane-doe/"),
        Contact(user_id=owner, name="John Roe", profile_url="https://linkedin.com/in/john-roe?trk=abc"),
    ]
    db.add_all(people)
    db.flush()

    links = []
    for c in people:
        cc = CampaignContact(campaign_id=campaign.id, contact_id=c.id, status=CampaignContactStatus.pending)
        db.add(cc)
        links.append(cc)
    db.commit()

    return {"account": account, "campaign": campaign, "contacts": people, "links": links}
