from datetime import timedelta

import pytest

from scriib.agents.publishing import sweep
from scriib.agents.publishing.linkedin import LinkedInPublishError
from scriib.core import accounts, posts
from scriib.db_models import PostStatus, SocialAccount, utcnow


def _scheduled(db, user_id, minutes_ago=5, platforms=None, content="Ship it"):
    post = posts.create_post(db, user_id, content, platforms=platforms)
    return posts.schedule_post(db, post.id, user_id, utcnow() - timedelta(minutes=minutes_ago))


class FakePublisher:
    def __init__(self, error=None):
        self.error = error
        self.calls = []

    def __call__(self, content, account, media_urls):
        self.calls.append((content, account.platform.value, media_urls))
        if self.error:
            raise self.error
        return {"platform": account.platform.value, "id": f"urn:{len(self.calls)}"}


@pytest.fixture
def linkedin_account(db, owner):
    return accounts.upsert_social_account(db, owner, "linkedin", "tok-123", platform_user_id="abc")


class TestSweep:
    def test_due_post_is_published(self, db, owner, linkedin_account):
        post = _scheduled(db, owner)
        publisher = FakePublisher()

        summary = sweep.run_sweep(db, publishers={"linkedin": publisher})

        assert summary["success"] is True
        assert summary["processed"] == 1
        assert summary["published"] == 1
        assert publisher.calls == [("Ship it", "linkedin", [])]
        db.refresh(post)
        assert post.status == PostStatus.published
        assert post.published_at is not None

    def test_future_post_untouched(self, db, owner, linkedin_account):
        post = posts.create_post(db, owner, "later")
        posts.schedule_post(db, post.id, owner, utcnow() + timedelta(hours=1))
        publisher = FakePublisher()

        summary = sweep.run_sweep(db, publishers={"linkedin": publisher})

        assert summary["processed"] == 0
        assert publisher.calls == []
        db.refresh(post)
        assert post.status == PostStatus.scheduled

    def test_adapter_failure_marks_failed(self, db, owner, linkedin_account):
        post = _scheduled(db, owner)
        error = LinkedInPublishError("token expired", status_code=401)

        summary = sweep.run_sweep(db, publishers={"linkedin": FakePublisher(error)})

        assert summary["failed"] == 1
        db.refresh(post)
        assert post.status == PostStatus.failed
        assert "token expired" in post.error_message

    def test_missing_account_marks_failed(self, db, owner):
        post = _scheduled(db, owner)

        sweep.run_sweep(db, publishers={"linkedin": FakePublisher()})

        db.refresh(post)
        assert post.status == PostStatus.failed
        assert "No connected linkedin account" in post.error_message

    def test_unexpected_error_still_releases_claim(self, db, owner, linkedin_account):
        post = _scheduled(db, owner)

        summary = sweep.run_sweep(db, publishers={"linkedin": FakePublisher(RuntimeError("boom"))})

        assert summary["failed"] == 1
        db.refresh(post)
        assert post.status == PostStatus.failed
        assert post.error_message == "boom"

    def test_one_failure_does_not_stop_the_pass(self, db, owner, linkedin_account):
        bad = _scheduled(db, owner, minutes_ago=10, platforms={"twitter": True})
        good = _scheduled(db, owner, minutes_ago=5)

        summary = sweep.run_sweep(db, publishers={"linkedin": FakePublisher(), "twitter": FakePublisher()})

        assert summary["published"] == 1
        assert summary["failed"] == 1
        db.refresh(bad)
        db.refresh(good)
        assert bad.status == PostStatus.failed
        assert good.status == PostStatus.published

    def test_no_selected_platforms_publishes(self, db, owner):
        post = _scheduled(db, owner, platforms={"linkedin": False})

        summary = sweep.run_sweep(db, publishers={})

        assert summary["published"] == 1
        db.refresh(post)
        assert post.status == PostStatus.published

    def test_archived_post_skipped(self, db, owner, linkedin_account):
        post = _scheduled(db, owner)
        posts.archive_post(db, post.id, owner)

        summary = sweep.run_sweep(db, publishers={"linkedin": FakePublisher()})

        assert summary["processed"] == 0

    def test_second_sweep_finds_nothing(self, db, owner, linkedin_account):
        _scheduled(db, owner)
        publisher = FakePublisher()

        sweep.run_sweep(db, publishers={"linkedin": publisher})
        summary = sweep.run_sweep(db, publishers={"linkedin": publisher})

        assert summary["processed"] == 0
        assert len(publisher.calls) == 1


class TestClaim:
    def test_claim_is_exclusive(self, db, owner):
        post = _scheduled(db, owner)

        assert sweep.claim_post(db, post.id) is True
        assert sweep.claim_post(db, post.id) is False
        db.refresh(post)
        assert post.status == PostStatus.publishing

    def test_already_claimed_post_counted_as_skipped(self, db, owner, linkedin_account, monkeypatch):
        post = _scheduled(db, owner)
        # another sweep claims between our select and our claim
        monkeypatch.setattr(sweep, "due_post_ids", lambda db, now: [post.id, post.id])
        publisher = FakePublisher()

        summary = sweep.run_sweep(db, publishers={"linkedin": publisher})

        assert summary["published"] == 1
        assert summary["skipped"] == 1
        assert len(publisher.calls) == 1


class TestStaleClaims:
    def test_abandoned_claim_is_released_as_failed(self, db, owner, linkedin_account):
        post = _scheduled(db, owner)
        # a previous sweep claimed the post and died before recording an outcome
        assert sweep.claim_post(db, post.id) is True

        summary = sweep.run_sweep(db, now=utcnow() + timedelta(days=1), publishers={"linkedin": FakePublisher()})

        assert summary["released"] == 1
        assert summary["processed"] == 0
        db.refresh(post)
        assert post.status == PostStatus.failed
        assert post.error_message == sweep.STALE_CLAIM_ERROR
        assert post.claimed_at is None

        post = posts.schedule_post(db, post.id, owner, utcnow() - timedelta(minutes=1))
        assert post.status == PostStatus.scheduled

    def test_recent_claim_left_alone(self, db, owner, linkedin_account):
        post = _scheduled(db, owner)
        sweep.claim_post(db, post.id)

        summary = sweep.run_sweep(db, publishers={"linkedin": FakePublisher()})

        assert summary["released"] == 0
        db.refresh(post)
        assert post.status == PostStatus.publishing
        assert post.claimed_at is not None


class TestFailureRecording:
    def test_database_error_mid_publish_is_rolled_back(self, db, owner, linkedin_account):
        post = _scheduled(db, owner, minutes_ago=10)
        later = _scheduled(db, owner, minutes_ago=5)

        calls = []

        def publisher(content, account, media_urls):
            calls.append(content)
            if len(calls) == 1:
                # leave the session with a flush that will fail
                db.add(SocialAccount(user_id=owner, platform=None, access_token=None))
                db.flush()
            return {"platform": "linkedin"}

        summary = sweep.run_sweep(db, publishers={"linkedin": publisher})

        assert summary["failed"] == 1
        assert summary["published"] == 1
        db.refresh(post)
        db.refresh(later)
        assert post.status == PostStatus.failed
        assert post.error_message
        assert later.status == PostStatus.published
