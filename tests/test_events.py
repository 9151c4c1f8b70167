from scriib.agents.outreach.events import handle_unipile_event
from scriib.db_models import CampaignContactStatus


def _sent(db, link, provider_id):
    link.status = CampaignContactStatus.connection_sent
    link.provider_id = provider_id
    db.commit()


class TestUnipileEvents:
    def test_accepted_by_provider_id(self, db, outreach_setup):
        jane, john = outreach_setup["links"]
        _sent(db, jane, "prov-jane")
        _sent(db, john, "prov-john")

        result = handle_unipile_event(
            db, {"event": "connection.accepted", "data": {"account_id": "acc-1", "provider_id": "prov-jane"}}
        )

        assert result == {"success": True, "handled": 1}
        db.refresh(jane)
        db.refresh(john)
        assert jane.status == CampaignContactStatus.connected
        assert jane.connection_accepted_at is not None
        assert john.status == CampaignContactStatus.connection_sent

        campaign = outreach_setup["campaign"]
        db.refresh(campaign)
        assert campaign.connections_accepted == 1

    def test_accepted_by_profile_url(self, db, outreach_setup):
        john = outreach_setup["links"][1]
        _sent(db, john, None)

        result = handle_unipile_event(
            db,
            {
                "event": "connection.accepted",
                "data": {"account_id": "acc-1", "profile_url": "https://www.linkedin.com/in/john-roe/"},
            },
        )

        assert result["handled"] == 1
        db.refresh(john)
        assert john.status == CampaignContactStatus.connected

    def test_rejected(self, db, outreach_setup):
        jane = outreach_setup["links"][0]
        _sent(db, jane, "prov-jane")

        handle_unipile_event(
            db, {"event": "connection.rejected", "data": {"account_id": "acc-1", "provider_id": "prov-jane"}}
        )

        db.refresh(jane)
        assert jane.status == CampaignContactStatus.failed
        assert jane.error_message == "Connection request rejected"

    def test_message_received_marks_replied(self, db, outreach_setup):
        jane = outreach_setup["links"][0]
        jane.status = CampaignContactStatus.follow_up_sent
        jane.provider_id = "prov-jane"
        db.commit()

        result = handle_unipile_event(
            db,
            {
                "event": "message.received",
                "data": {"account_id": "acc-1", "sender_id": "prov-jane", "text": "Sure, let's talk"},
            },
        )

        assert result["handled"] == 1
        db.refresh(jane)
        assert jane.status == CampaignContactStatus.replied
        campaign = outreach_setup["campaign"]
        db.refresh(campaign)
        assert campaign.replies_received == 1

    def test_unknown_account_is_ignored(self, db, outreach_setup):
        jane = outreach_setup["links"][0]
        _sent(db, jane, "prov-jane")

        result = handle_unipile_event(
            db, {"event": "connection.accepted", "data": {"account_id": "acc-other", "provider_id": "prov-jane"}}
        )

        assert result["handled"] == 0
        db.refresh(jane)
        assert jane.status == CampaignContactStatus.connection_sent

    def test_unknown_event(self, db, outreach_setup):
        assert handle_unipile_event(db, {"event": "account.created", "data": {}}) == {"success": True, "handled": 0}
