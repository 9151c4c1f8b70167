from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

from scriib.agents import scrape
from scriib.agents.crm import enrichment
from scriib.core import contacts
from scriib.core.errors import ValidationError
from scriib.db_models import ContactActivity, EnrichmentStatus
from scriib.settings import settings

PROFILE_ITEM = {
    "headline": "Building things",
    "experience": [{"title": "VP Engineering", "companyName": "Acme"}, {"title": "Engineer", "companyName": "Old Co"}],
}


def apify_client(statuses, items=None):
    client = MagicMock()
    client.actor.return_value.start.return_value = {"id": "run-1"}
    client.run.return_value.get.side_effect = [
        {"status": s, "defaultDatasetId": "ds-1"} for s in statuses
    ]
    client.dataset.return_value.list_items.return_value = SimpleNamespace(items=items or [])
    return client


@pytest.fixture
def contact(db, owner):
    return contacts.create_contact(db, owner, "Jane Doe", profile_url="https://www.linkedin.com/in/jane-doe/")


def _activity_types(db, contact_id):
    rows = db.query(ContactActivity).filter(ContactActivity.contact_id == contact_id).all()
    return [a.activity_type for a in rows]


class TestParseProfile:
    def test_current_role_is_first_experience(self):
        assert enrichment.parse_profile(PROFILE_ITEM) == ("VP Engineering", "Acme")

    def test_headline_fallback(self):
        assert enrichment.parse_profile({"headline": "Founder"}) == ("Founder", None)

    def test_company_object(self):
        item = {"experience": [{"position": "CTO", "company": {"name": "Initech"}}]}
        assert enrichment.parse_profile(item) == ("CTO", "Initech")

    def test_username(self):
        assert enrichment.extract_username("https://linkedin.com/in/jane-doe?x=1") == "jane-doe"
        assert enrichment.extract_username("https://example.com") is None


class TestEnrichContact:
    def test_success_updates_contact(self, db, contact):
        client = apify_client(["RUNNING", "SUCCEEDED"], [PROFILE_ITEM])

        enriched = enrichment.enrich_contact(db, contact.id, client=client, poll_seconds=0)

        assert enriched.job_title == "VP Engineering"
        assert enriched.company == "Acme"
        assert enriched.enrichment_status == EnrichmentStatus.enriched
        assert enriched.enriched_at is not None
        assert "contact_enriched" in _activity_types(db, contact.id)

        client.actor.assert_called_with(settings.apify_profile_actor)
        client.actor.return_value.start.assert_called_once_with(
            run_input={"username": "jane-doe", "includeEmail": False}
        )
        client.dataset.assert_called_with("ds-1")

    def test_empty_fields_leave_existing_values(self, db, contact):
        contact.company = "Known Co"
        db.commit()
        client = apify_client(["SUCCEEDED"], [{"headline": "Advisor"}])

        enriched = enrichment.enrich_contact(db, contact.id, client=client, poll_seconds=0)

        assert enriched.job_title == "Advisor"
        assert enriched.company == "Known Co"

    def test_failed_run_marks_failed(self, db, contact):
        client = apify_client(["RUNNING", "FAILED"])

        with pytest.raises(scrape.ApifyError):
            enrichment.enrich_contact(db, contact.id, client=client, poll_seconds=0)

        db.refresh(contact)
        assert contact.enrichment_status == EnrichmentStatus.failed
        assert "enrichment_failed" in _activity_types(db, contact.id)

    def test_timeout_after_attempt_ceiling(self, db, contact):
        client = apify_client(["RUNNING"] * 3)

        with pytest.raises(scrape.ApifyTimeout):
            enrichment.enrich_contact(db, contact.id, client=client, poll_seconds=0, max_attempts=3)

        assert client.run.return_value.get.call_count == 3
        db.refresh(contact)
        assert contact.enrichment_status == EnrichmentStatus.failed

    def test_no_items_is_failure(self, db, contact):
        client = apify_client(["SUCCEEDED"], [])

        with pytest.raises(scrape.ApifyError, match="No profile data"):
            enrichment.enrich_contact(db, contact.id, client=client, poll_seconds=0)

    def test_invalid_url(self, db, owner):
        c = contacts.create_contact(db, owner, "No Url", profile_url="https://example.com/no")

        with pytest.raises(ValidationError):
            enrichment.enrich_contact(db, c.id, client=MagicMock())

        db.refresh(c)
        assert c.enrichment_status == EnrichmentStatus.failed


class TestMarkPending:
    def test_requires_profile_url(self, db, owner):
        c = contacts.create_contact(db, owner, "Nobody")
        with pytest.raises(ValidationError):
            contacts.mark_enrichment_pending(db, c.id, owner)

    def test_sets_pending(self, db, owner, contact):
        assert contacts.mark_enrichment_pending(db, contact.id, owner).enrichment_status == EnrichmentStatus.pending
