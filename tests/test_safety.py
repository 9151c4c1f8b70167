import fakeredis
import pytest

from scriib.agents import safety
from scriib.settings import settings


@pytest.fixture
def r():
    return fakeredis.FakeRedis()


class TestGuardrails:
    def test_fresh_bucket_is_open(self, r):
        assert safety.guardrails_ok(r) is True

    def test_hourly_cap(self, r, monkeypatch):
        monkeypatch.setattr(settings, "max_actions_per_hour", 3)

        assert safety.increment_action_count(2, r) == 2
        assert safety.guardrails_ok(r) is True
        assert safety.guardrails_ok(r, n=2) is False

        safety.increment_action_count(1, r)
        assert safety.guardrails_ok(r) is False

    def test_bucket_expires(self, r):
        safety.increment_action_count(1, r)
        assert 0 < r.ttl(safety._bucket_key()) <= 7200

    def test_kill_switch(self, r, monkeypatch):
        monkeypatch.setattr(settings, "kill_switch", True)
        assert safety.guardrails_ok(r) is False
