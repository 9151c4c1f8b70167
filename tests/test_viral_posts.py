from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

from scriib.agents.analytics import viral_posts
from scriib.core.errors import ValidationError
from scriib.db_models import ViralPost, ViralPostReport

ITEMS = [
    {
        "post_url": "https://linkedin.com/posts/a",
        "author": {"name": "Ana", "profile_url": "https://linkedin.com/in/ana"},
        "text": "Hiring is broken #Hiring #recruiting",
        "stats": {"total_reactions": 100, "comments": 10, "reposts": 5},
        "posted_at": {"timestamp": 1735689600000},
    },
    {
        "url": "https://linkedin.com/posts/b",
        "authorName": "Ben",
        "text": "Ship small #hiring",
        "numLikes": 300,
        "numComments": 0,
        "numShares": 0,
    },
    {"text": "no url, dropped"},
]


def apify_client(items):
    client = MagicMock()
    client.actor.return_value.start.return_value = {"id": "run-9"}
    client.run.return_value.get.return_value = {"status": "SUCCEEDED", "defaultDatasetId": "ds-9"}
    client.dataset.return_value.list_items.return_value = SimpleNamespace(items=items)
    return client


class TestNormalize:
    def test_engagement_weights(self):
        assert viral_posts.engagement_score(100, 10, 5) == 135.0

    def test_nested_and_flat_shapes(self):
        a = viral_posts.normalize_item(ITEMS[0])
        b = viral_posts.normalize_item(ITEMS[1])

        assert a["author_name"] == "Ana"
        assert a["engagement_score"] == 135.0
        assert a["posted_at"].year == 2025
        assert b["post_url"] == "https://linkedin.com/posts/b"
        assert b["likes"] == 300
        assert viral_posts.normalize_item(ITEMS[2]) is None

    def test_report(self):
        rows = [viral_posts.normalize_item(i) for i in ITEMS[:2]]
        report = viral_posts.build_report(rows)

        assert report["post_sample"] == 2
        assert report["top_posts"][0]["post_url"] == "https://linkedin.com/posts/b"
        assert report["top_hashtags"][0] == ("hiring", 2)


class TestDiscover:
    def test_saves_posts_and_report(self, db):
        client = apify_client(ITEMS)

        report = viral_posts.discover_viral_posts(db, " hiring ", total_posts=20, client=client, poll_seconds=0)

        assert report.keyword == "hiring"
        assert report.report["post_sample"] == 2
        assert db.query(ViralPost).count() == 2
        run_input = client.actor.return_value.start.call_args.kwargs["run_input"]
        assert run_input["keyword"] == "hiring"
        assert run_input["total_posts"] == 20

    def test_rerun_updates_instead_of_duplicating(self, db):
        viral_posts.discover_viral_posts(db, "hiring", client=apify_client(ITEMS), poll_seconds=0)
        bumped = dict(ITEMS[1], numLikes=900)
        viral_posts.discover_viral_posts(db, "hiring", client=apify_client([bumped]), poll_seconds=0)

        assert db.query(ViralPost).count() == 2
        assert db.query(ViralPostReport).count() == 2
        top = viral_posts.list_viral_posts(db, "hiring")[0]
        assert top.likes == 900

    def test_keyword_required(self, db):
        with pytest.raises(ValidationError):
            viral_posts.discover_viral_posts(db, "  ", client=MagicMock())
