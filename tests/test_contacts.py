import pytest

from scriib.core import contacts
from scriib.core.errors import Conflict, NotFound, ValidationError


class TestContacts:
    def test_create_trims_and_defaults(self, db, owner):
        c = contacts.create_contact(db, owner, "  Jane  ", company="  ", profile_url="https://linkedin.com/in/jane")

        assert c.name == "Jane"
        assert c.company is None
        assert c.engagement_type == "manual"

    def test_duplicate_profile_url_conflicts(self, db, owner, stranger):
        contacts.create_contact(db, owner, "Jane", profile_url="https://linkedin.com/in/jane")

        with pytest.raises(Conflict):
            contacts.create_contact(db, owner, "Jane again", profile_url="https://linkedin.com/in/jane")

        # another user may hold the same person
        contacts.create_contact(db, stranger, "Jane", profile_url="https://linkedin.com/in/jane")

    def test_bad_engagement_type(self, db, owner):
        with pytest.raises(ValidationError):
            contacts.create_contact(db, owner, "Jane", engagement_type="poke")

    def test_search_and_isolation(self, db, owner, stranger):
        contacts.create_contact(db, owner, "Jane", company="Acme")
        contacts.create_contact(db, owner, "John", job_title="Acme advisor")
        contacts.create_contact(db, owner, "Zed")
        contacts.create_contact(db, stranger, "Acme person", company="Acme")

        found = contacts.list_contacts(db, owner, search="acme")
        assert sorted(c.name for c in found) == ["Jane", "John"]

    def test_update_requires_known_fields(self, db, owner):
        c = contacts.create_contact(db, owner, "Jane")

        with pytest.raises(ValidationError):
            contacts.update_contact(db, c.id, owner, enrichment_status="enriched")

        c = contacts.update_contact(db, c.id, owner, job_title="CEO")
        assert c.job_title == "CEO"

    def test_other_users_contact_not_found(self, db, owner, stranger):
        c = contacts.create_contact(db, owner, "Jane")
        with pytest.raises(NotFound):
            contacts.get_contact(db, c.id, stranger)

    def test_delete_all(self, db, owner, stranger):
        contacts.create_contact(db, owner, "A")
        contacts.create_contact(db, owner, "B")
        contacts.create_contact(db, stranger, "C")

        assert contacts.delete_all_contacts(db, owner) == 2
        assert len(contacts.list_contacts(db, stranger)) == 1


class TestNotesAndTimeline:
    def test_note_adds_timeline_entry(self, db, owner):
        c = contacts.create_contact(db, owner, "Jane")

        note = contacts.add_note(db, c.id, owner, "Met at the conference. " * 10)

        timeline = contacts.list_activities(db, c.id, owner)
        assert [a.activity_type for a in timeline] == ["note_added"]
        assert timeline[0].details["note_preview"] == note.body[:100]

    def test_edit_and_delete_note(self, db, owner, stranger):
        c = contacts.create_contact(db, owner, "Jane")
        note = contacts.add_note(db, c.id, owner, "first")

        with pytest.raises(NotFound):
            contacts.update_note(db, note.id, stranger, "mine now")

        assert contacts.update_note(db, note.id, owner, "second").body == "second"
        contacts.delete_note(db, note.id, owner)
        assert contacts.list_notes(db, c.id, owner) == []

    def test_empty_note_rejected(self, db, owner):
        c = contacts.create_contact(db, owner, "Jane")
        with pytest.raises(ValidationError):
            contacts.add_note(db, c.id, owner, "   ")

    def test_manual_activity(self, db, owner):
        c = contacts.create_contact(db, owner, "Jane")

        a = contacts.create_activity(db, c.id, owner, "call", "Intro call")

        assert a.activity_type == "call"
        assert contacts.list_activities(db, c.id, owner)[0].description == "Intro call"
