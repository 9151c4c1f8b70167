from unittest.mock import Mock, patch

import pytest
import requests

from scriib.agents.http import request_json
from scriib.agents.outreach.unipile import UnipileClient, UnipileError, public_identifier
from scriib.agents.publishing import linkedin, twitter
from scriib.db_models import Platform, SocialAccount


def response(status_code=200, body=None, content=None, reason="OK"):
    r = Mock()
    r.status_code = status_code
    r.reason = reason
    if body is None:
        r.content = content if content is not None else b""
        r.json.side_effect = ValueError("no json")
        r.text = (content or b"").decode()
    else:
        r.content = b"{...}"
        r.json.return_value = body
        r.text = str(body)
    return r


class TestRequestJson:
    @patch("scriib.agents.http.requests.request")
    def test_http_error_carries_status_and_message(self, mock_request):
        mock_request.return_value = response(404, {"message": "Profile not found"}, reason="Not Found")

        with pytest.raises(UnipileError) as exc:
            request_json(UnipileError, "GET", "https://unipile.test/users/x")

        assert exc.value.kind == "http"
        assert exc.value.upstream_status == 404
        assert str(exc.value) == "unipile http error (404): Profile not found"

    @patch("scriib.agents.http.requests.request")
    def test_network_error(self, mock_request):
        mock_request.side_effect = requests.ConnectionError("connection refused")

        with pytest.raises(UnipileError) as exc:
            request_json(UnipileError, "GET", "https://unipile.test/accounts")

        assert exc.value.kind == "network"
        assert exc.value.upstream_status is None

    @patch("scriib.agents.http.requests.request")
    def test_non_json_success_is_payload_error(self, mock_request):
        mock_request.return_value = response(200, content=b"<html>")

        with pytest.raises(UnipileError) as exc:
            request_json(UnipileError, "GET", "https://unipile.test/accounts")

        assert exc.value.kind == "payload"

    @patch("scriib.agents.http.requests.request")
    def test_empty_body(self, mock_request):
        mock_request.return_value = response(204)
        assert request_json(UnipileError, "DELETE", "https://unipile.test/x") == {}


class TestUnipileClient:
    @patch("scriib.agents.http.requests.request")
    def test_invite_uses_api_key_and_caps_message(self, mock_request):
        mock_request.return_value = response(201, {"object": "UserInvitationSent"})
        client = UnipileClient(api_key="k-1", base_url="https://unipile.test/api/v1/")

        client.send_connection_request("acc-1", "prov-1", "x" * 400)

        args, kwargs = mock_request.call_args
        assert args == ("POST", "https://unipile.test/api/v1/users/invite")
        assert kwargs["headers"]["X-API-KEY"] == "k-1"
        assert kwargs["json"]["provider_id"] == "prov-1"
        assert len(kwargs["json"]["message"]) == 300

    @patch("scriib.agents.http.requests.request")
    def test_chat_messages_unwraps_items(self, mock_request):
        mock_request.return_value = response(200, {"items": [{"text": "hi"}]})
        client = UnipileClient(api_key="k-1")

        assert client.get_chat_messages("chat-1") == [{"text": "hi"}]
        assert mock_request.call_args.kwargs["params"] == {"limit": 20}

    def test_missing_api_key(self):
        with pytest.raises(UnipileError, match="UNIPILE_API_KEY"):
            UnipileClient(api_key="").get_account("acc-1")

    def test_public_identifier(self):
        assert public_identifier("https://www.linkedin.com/in/jane-doe/") == "jane-doe"
        assert public_identifier("https://linkedin.com/in/john?trk=1") == "john"
        assert public_identifier("https://example.com/in") is None
        assert public_identifier(None) is None


class TestPublishers:
    def _account(self, platform, user_id="abc"):
        return SocialAccount(platform=platform, access_token="tok", platform_user_id=user_id)

    @patch("scriib.agents.http.requests.request")
    def test_linkedin_share(self, mock_request):
        mock_request.return_value = response(201, {"id": "urn:li:share:1"})

        result = linkedin.publish("Hello", self._account(Platform.linkedin), ["https://example.com/a"])

        assert result == {"platform": "linkedin", "id": "urn:li:share:1"}
        payload = mock_request.call_args.kwargs["json"]
        assert payload["author"] == "urn:li:person:abc"
        share = payload["specificContent"]["com.linkedin.ugc.ShareContent"]
        assert share["shareMediaCategory"] == "ARTICLE"
        assert mock_request.call_args.kwargs["headers"]["Authorization"] == "Bearer tok"

    def test_linkedin_needs_member_id(self):
        with pytest.raises(linkedin.LinkedInPublishError):
            linkedin.publish("Hello", self._account(Platform.linkedin, user_id=None))

    @patch("scriib.agents.http.requests.request")
    def test_tweet(self, mock_request):
        mock_request.return_value = response(201, {"data": {"id": "99", "text": "Hello"}})

        assert twitter.publish("Hello", self._account(Platform.twitter)) == {"platform": "twitter", "id": "99"}

    @patch("scriib.agents.http.requests.request")
    def test_tweet_too_long_never_sent(self, mock_request):
        with pytest.raises(twitter.TwitterPublishError):
            twitter.publish("x" * 281, self._account(Platform.twitter))
        mock_request.assert_not_called()
