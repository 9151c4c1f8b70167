from scriib.logging_setup import _redact_processor


class TestRedaction:
    def test_sensitive_keys_redacted_recursively(self):
        event = {
            "event": "unipile_call",
            "headers": {"X-API-KEY": "k-1", "accept": "application/json"},
            "items": [{"access_token": "tok"}, {"ok": 1}],
            "cron_secret": "s",
        }

        out = _redact_processor(None, None, event)

        assert out["headers"] == {"X-API-KEY": "[REDACTED]", "accept": "application/json"}
        assert out["items"] == [{"access_token": "[REDACTED]"}, {"ok": 1}]
        assert out["cron_secret"] == "[REDACTED]"
        assert out["event"] == "unipile_call"

    def test_bearer_tokens_in_strings(self):
        out = _redact_processor(None, None, {"error": "401 for Bearer abc.def-123== on /v2/ugcPosts"})
        assert out["error"] == "401 for Bearer [REDACTED] on /v2/ugcPosts"
