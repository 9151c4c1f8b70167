from datetime import timedelta
from unittest.mock import patch

from conftest import auth_headers, make_user
from scriib.api import main
from scriib.core import relationships
from scriib.db_models import Post, PostStatus, SocialAccount, Platform, utcnow

CRON = {"Authorization": "Bearer test-cron-secret"}


class TestHealthAndIdentity:
    def test_health(self, client):
        assert client.get("/health").json() == {"ok": True}

    def test_requires_token(self, client):
        r = client.get("/user/uuid")
        assert r.status_code == 401
        assert r.json()["error"] == "Unauthorized - Please log in"

    def test_tampered_token(self, client):
        r = client.get("/user/uuid", headers={"Authorization": "Bearer not-a-token"})
        assert r.status_code == 401

    def test_signed_but_unmapped(self, client):
        r = client.get("/user/uuid", headers=auth_headers("ext-new"))
        assert r.status_code == 404
        assert r.json()["error"] == "User mapping not found"

    def test_mapping_then_lookup(self, client):
        headers = auth_headers("ext-new")

        first = client.post("/user/mapping", json={"email": "new@example.com"}, headers=headers).json()
        second = client.post("/user/mapping", json={}, headers=headers).json()

        assert first["alreadyExisted"] is False
        assert second["alreadyExisted"] is True
        assert second["user_id"] == first["user_id"]
        assert client.get("/user/uuid", headers=headers).json() == {"user_id": first["user_id"]}

    def test_delete_mapping(self, client, owner):
        headers = auth_headers("ext-owner")
        assert client.get("/user/mapping", headers=headers).json() == {"user_id": str(owner)}

        r = client.delete("/user/mapping", headers=headers)

        assert r.json() == {"success": True, "user_id": str(owner)}
        assert client.get("/user/mapping", headers=headers).status_code == 404

    def test_session_cookie_accepted(self, client, owner):
        from scriib.api.auth import COOKIE_NAME, sign_identity

        client.cookies.set(COOKIE_NAME, sign_identity("ext-owner"))
        assert client.get("/user/uuid").json() == {"user_id": str(owner)}


class TestPostRoutes:
    def test_full_approval_flow(self, client, db, owner, approver, ghostwriter):
        relationships.create_link(db, ghostwriter, approver)
        created = client.post(
            "/posts",
            json={"content": "Our Q3 update", "approver_id": str(approver), "ghostwriter_id": str(ghostwriter)},
            headers=auth_headers("ext-owner"),
        )
        assert created.status_code == 200
        post_id = created.json()["id"]

        r = client.post(f"/posts/{post_id}/submit", headers=auth_headers("ext-ghost"))
        assert r.json()["status"] == "pending_approval"

        when = (utcnow() + timedelta(days=1)).isoformat()
        r = client.post(f"/posts/{post_id}/approve", json={"scheduled_time": when}, headers=auth_headers("ext-owner"))
        assert r.status_code == 403

        r = client.post(f"/posts/{post_id}/approve", json={"scheduled_time": when}, headers=auth_headers("ext-approver"))
        assert r.status_code == 200
        assert r.json()["status"] == "scheduled"

        listing = client.get("/posts/user-related", headers=auth_headers("ext-ghost")).json()
        assert listing["statusCounts"] == {"scheduled": 1}
        assert listing["posts"][0]["role"] == "ghostwriter"

    def test_stranger_gets_403(self, client, owner, stranger):
        post_id = client.post("/posts", json={"content": "x"}, headers=auth_headers("ext-owner")).json()["id"]

        r = client.get(f"/posts/{post_id}", headers=auth_headers("ext-stranger"))
        assert r.status_code == 403
        assert r.json()["error"] == "You do not have permission to view this post"

    def test_validation_error_shape(self, client, owner):
        r = client.post("/posts", json={"content": "  "}, headers=auth_headers("ext-owner"))
        assert r.status_code == 400
        assert r.json() == {"error": "Content is required"}

    def test_missing_post(self, client, owner):
        assert client.get("/posts/404", headers=auth_headers("ext-owner")).status_code == 404


class TestAdminRoutes:
    def test_non_admin_forbidden(self, client, owner):
        r = client.get("/admin/relationships", headers=auth_headers("ext-owner"))
        assert r.status_code == 403
        assert r.json()["error"] == "Forbidden - Admin access required"

    def test_admin_manages_links(self, client, db, ghostwriter, approver):
        make_user(db, "ext-admin", email="admin@example.com")
        headers = auth_headers("ext-admin")

        r = client.post(
            "/admin/relationships",
            json={"ghostwriter_id": str(ghostwriter), "approver_id": str(approver)},
            headers=headers,
        )
        assert r.status_code == 200
        link_id = r.json()["id"]

        dup = client.post(
            "/admin/relationships",
            json={"ghostwriter_id": str(ghostwriter), "approver_id": str(approver)},
            headers=headers,
        )
        assert dup.status_code == 409

        assert client.delete(f"/admin/relationships/{link_id}", headers=headers).json()["active"] is False
        assert client.get("/admin/relationships", headers=headers).json() == []


class TestCampaignRoutes:
    def test_control_rejects_unknown_action(self, client, owner):
        headers = auth_headers("ext-owner")
        campaign_id = client.post("/campaigns", json={"name": "Q3"}, headers=headers).json()["id"]

        r = client.post(f"/campaigns/{campaign_id}/control", json={"action": "reboot"}, headers=headers)

        assert r.status_code == 400
        assert r.json()["error"] == "Invalid action"

    def test_start_without_message(self, client, owner):
        headers = auth_headers("ext-owner")
        campaign_id = client.post("/campaigns", json={"name": "Q3"}, headers=headers).json()["id"]

        r = client.post(f"/campaigns/{campaign_id}/control", json={"action": "start"}, headers=headers)

        assert r.status_code == 400
        assert "connection message" in r.json()["error"]

    def test_campaigns_are_private(self, client, owner, stranger):
        campaign_id = client.post("/campaigns", json={"name": "Q3"}, headers=auth_headers("ext-owner")).json()["id"]
        assert client.get(f"/campaigns/{campaign_id}", headers=auth_headers("ext-stranger")).status_code == 404


class TestCrmRoutes:
    def test_enrich_queues_task(self, client, owner):
        headers = auth_headers("ext-owner")
        contact = client.post(
            "/crm/contacts", json={"name": "Jane", "profile_url": "https://linkedin.com/in/jane"}, headers=headers
        ).json()

        with patch.object(main.celery_client, "send_task") as send_task:
            r = client.post(f"/crm/contacts/{contact['id']}/enrich", headers=headers)

        assert r.json() == {"success": True, "enrichment_status": "pending"}
        send_task.assert_called_once_with(main.ENRICH_CONTACT_TASK, args=[contact["id"]])

    def test_duplicate_contact(self, client, owner):
        headers = auth_headers("ext-owner")
        body = {"name": "Jane", "profile_url": "https://linkedin.com/in/jane"}
        client.post("/crm/contacts", json=body, headers=headers)

        assert client.post("/crm/contacts", json=body, headers=headers).status_code == 409

    def test_notes(self, client, owner):
        headers = auth_headers("ext-owner")
        contact_id = client.post("/crm/contacts", json={"name": "Jane"}, headers=headers).json()["id"]

        client.post(f"/crm/contacts/{contact_id}/notes", json={"body": "Met at SaaStr"}, headers=headers)

        notes = client.get(f"/crm/contacts/{contact_id}/notes", headers=headers).json()
        assert [n["body"] for n in notes] == ["Met at SaaStr"]
        timeline = client.get(f"/crm/contacts/{contact_id}/activities", headers=headers).json()
        assert timeline[0]["activity_type"] == "note_added"


class TestCronRoutes:
    def test_secret_required(self, client):
        assert client.post("/cron/process-scheduled-posts").status_code == 401
        assert client.post("/cron/process-scheduled-posts", headers={"Authorization": "Bearer wrong"}).status_code == 401

    def test_sweep_publishes_due_posts(self, client, db, owner):
        db.add(SocialAccount(user_id=owner, platform=Platform.linkedin, access_token="tok", platform_user_id="abc"))
        post = Post(
            user_id=owner,
            content="due",
            status=PostStatus.scheduled,
            scheduled_time=utcnow() - timedelta(minutes=1),
            platforms={"linkedin": True},
            media_urls=[],
        )
        db.add(post)
        db.commit()

        with patch("scriib.agents.publishing.linkedin.request_json", return_value={"id": "urn:li:share:7"}):
            r = client.post("/cron/process-scheduled-posts", headers=CRON)

        assert r.status_code == 200
        assert r.json()["published"] == 1
        db.refresh(post)
        assert post.status == PostStatus.published

    def test_sms_reminders_dry_run(self, client):
        r = client.post("/cron/sms-reminders", json={"dry_run": True}, headers=CRON)
        assert r.json()["dry_run"] is True


class TestWebhook:
    def test_unknown_event_acknowledged(self, client):
        r = client.post("/webhooks/unipile", json={"event": "account.sync", "data": {}})
        assert r.json() == {"success": True, "handled": 0}
