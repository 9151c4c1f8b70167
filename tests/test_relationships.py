import pytest

from scriib.core import relationships
from scriib.core.errors import Conflict, NotFound, ValidationError


class TestLinks:
    def test_create_and_list_by_role(self, db, ghostwriter, approver, owner):
        link = relationships.create_link(db, ghostwriter, approver)
        relationships.create_link(db, ghostwriter, owner)

        assert link.active is True
        assert len(relationships.list_links(db, ghostwriter, "ghostwriter")) == 2
        assert len(relationships.list_links(db, approver, "approver")) == 1
        assert relationships.list_links(db, approver, "ghostwriter") == []
        assert len(relationships.list_links(db)) == 2

    def test_both_ids_required(self, db, ghostwriter):
        with pytest.raises(ValidationError, match="Both ghostwriter_id and approver_id are required"):
            relationships.create_link(db, ghostwriter, None)

    def test_self_link_rejected(self, db, ghostwriter):
        with pytest.raises(ValidationError, match="cannot be the same user"):
            relationships.create_link(db, ghostwriter, ghostwriter)

    def test_duplicate_active_link_conflicts(self, db, ghostwriter, approver):
        relationships.create_link(db, ghostwriter, approver)
        with pytest.raises(Conflict, match="already exists"):
            relationships.create_link(db, ghostwriter, approver)

    def test_revoke_then_recreate_reactivates_same_row(self, db, ghostwriter, approver):
        link = relationships.create_link(db, ghostwriter, approver)

        revoked = relationships.revoke_link(db, link.id)
        assert revoked.active is False
        assert revoked.revoked_at is not None
        assert relationships.list_links(db, ghostwriter) == []

        again = relationships.create_link(db, ghostwriter, approver)
        assert again.id == link.id
        assert again.active is True
        assert again.revoked_at is None

    def test_revoke_unknown(self, db):
        with pytest.raises(NotFound):
            relationships.revoke_link(db, 999)

    def test_bad_role_filter(self, db, ghostwriter):
        with pytest.raises(ValidationError):
            relationships.list_links(db, ghostwriter, "editor")
