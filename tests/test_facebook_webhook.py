import json
from unittest.mock import AsyncMock, MagicMock, Mock, patch

import pytest
from fastapi.testclient import TestClient

from relay.config import Settings
from relay.dependencies import get_invoker, get_messenger, get_settings
from relay.main import app
from relay.routers.facebook_webhook import is_batched_message
from relay.schemas.facebook import WebhookPayload
from relay.services.facebook_service import ChannelPostError, FacebookMessenger
from relay.services.signature_service import compute_signature


def _settings(**overrides):
    values = {
        "sub_pipeline": "pkg/sub",
        "facebook_app_secret": "secret",
        "facebook_verification_token": "verify-me",
        "facebook_page_access_token": "page-token",
        "conversation_workspace_id": "ws-1",
        "relay_api_secret": "relay-secret",
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


RELAY_HEADERS = {"X-Relay-Secret": "relay-secret"}


def _body(*entries, object_type="page"):
    return json.dumps({"object": object_type, "entry": list(entries)}).encode()


def _signed(body, secret="secret"):
    return {"Content-Type": "application/json", "X-Hub-Signature-256": f"sha256={compute_signature(body, secret)}"}


@pytest.fixture
def invoker(make_invoker):
    return make_invoker(fail_texts={"bad"})


@pytest.fixture
def client(invoker):
    app.dependency_overrides[get_settings] = lambda: _settings()
    app.dependency_overrides[get_invoker] = lambda: invoker
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture(autouse=True)
def mock_alert():
    with patch("relay.routers.facebook_webhook.alert_batch_failures") as mocked:
        yield mocked


class TestWebhookVerification:
    def test_returns_challenge(self, client):
        response = client.get(
            "/facebook/webhook",
            params={"hub.mode": "subscribe", "hub.verify_token": "verify-me", "hub.challenge": "1158201444"},
        )
        assert response.status_code == 200
        assert response.text == "1158201444"

    def test_wrong_token_is_forbidden(self, client):
        response = client.get(
            "/facebook/webhook",
            params={"hub.mode": "subscribe", "hub.verify_token": "nope", "hub.challenge": "1"},
        )
        assert response.status_code == 403


class TestWebhookDispatch:
    def test_batched_delivery_is_dispatched_per_conversation(self, client, invoker, make_event):
        body = _body(
            {"id": "P", "time": 1, "messaging": [make_event("S1", "P", 2, "there"), make_event("S1", "P", 1, "hi")]},
            {"id": "P", "time": 1, "messaging": [make_event("S2", "P", 1, "hello")]},
        )

        response = client.post("/facebook/webhook", content=body, headers=_signed(body))

        assert response.status_code == 200
        data = response.json()
        assert data["text"] == "200"
        assert len(data["successfulInvocations"]) == 3
        assert data["failedInvocations"] == []
        s1_calls = [text for key, text in invoker.calls if key == "S1_P"]
        assert s1_calls == ["hi", "there"]
        assert invoker.params[0]["auth"]["conversation"]["workspace_id"] == "ws-1"

    def test_failures_still_return_200_and_alert(self, client, mock_alert, make_event):
        body = _body({"id": "P", "messaging": [make_event(text="bad"), make_event(sender=None, text="orphan")]})

        response = client.post("/facebook/webhook", content=body, headers=_signed(body))

        assert response.status_code == 200
        failed = response.json()["failedInvocations"]
        assert len(failed) == 2
        assert failed[0]["activationId"] == "act-bad"
        assert "Sender id: undefined" in failed[1]["errorMessage"]
        mock_alert.assert_called_once()

    def test_missing_signature_is_rejected(self, client, invoker, make_event):
        body = _body({"id": "P", "messaging": [make_event()]})

        response = client.post("/facebook/webhook", content=body, headers={"Content-Type": "application/json"})

        assert response.status_code == 401
        assert invoker.calls == []

    def test_bad_signature_is_rejected(self, client, invoker, make_event):
        body = _body({"id": "P", "messaging": [make_event()]})

        response = client.post("/facebook/webhook", content=body, headers=_signed(body, secret="wrong"))

        assert response.status_code == 401
        assert invoker.calls == []

    def test_signature_skipped_without_secret(self, client, invoker, make_event):
        app.dependency_overrides[get_settings] = lambda: _settings(facebook_app_secret=None)
        body = _body({"id": "P", "messaging": [make_event()]})

        response = client.post("/facebook/webhook", content=body, headers={"Content-Type": "application/json"})

        assert response.status_code == 200
        assert len(invoker.calls) == 1

    def test_non_page_object_is_rejected(self, client, make_event):
        body = _body({"id": "P", "messaging": [make_event()]}, object_type="user")

        response = client.post("/facebook/webhook", content=body, headers=_signed(body))

        assert response.status_code == 400

    def test_invalid_json_is_rejected(self, client):
        body = b"not json"

        response = client.post("/facebook/webhook", content=body, headers=_signed(body))

        assert response.status_code == 400

    def test_missing_sub_pipeline(self, client, make_event):
        app.dependency_overrides[get_settings] = lambda: _settings(sub_pipeline="")
        body = _body({"id": "P", "messaging": [make_event()]})

        response = client.post("/facebook/webhook", content=body, headers=_signed(body))

        assert response.status_code == 500

    def test_unsigned_request_does_not_learn_about_missing_pipeline(self, client, make_event):
        app.dependency_overrides[get_settings] = lambda: _settings(sub_pipeline="")
        body = _body({"id": "P", "messaging": [make_event()]})

        response = client.post("/facebook/webhook", content=body, headers={"Content-Type": "application/json"})

        assert response.status_code == 401
        assert "SUB_PIPELINE" not in response.text

    def test_background_dispatch_acknowledges_immediately(self, client, invoker, make_event):
        app.dependency_overrides[get_settings] = lambda: _settings(dispatch_in_background=True)
        body = _body({"id": "P", "messaging": [make_event(text="a"), make_event(timestamp=2, text="b")]})

        response = client.post("/facebook/webhook", content=body, headers=_signed(body))

        assert response.status_code == 200
        data = response.json()
        assert data["accepted"] == 2
        assert data["successfulInvocations"] == []
        assert [text for _, text in invoker.calls] == ["a", "b"]


class TestFacebookPost:
    def test_posts_each_message(self, client):
        messenger = AsyncMock()
        messenger.post.return_value = {"text": 200}
        app.dependency_overrides[get_messenger] = lambda: messenger

        response = client.post(
            "/facebook/post",
            json={"recipient": {"id": "U1"}, "message": [{"text": "one"}, {"text": "two"}]},
            headers=RELAY_HEADERS,
        )

        assert response.status_code == 200
        assert len(response.json()["successfulPosts"]) == 2
        assert messenger.post.await_count == 2

    def test_failed_post_returns_502(self, client):
        messenger = AsyncMock()
        messenger.post.side_effect = ChannelPostError("Recipient id not provided.")
        app.dependency_overrides[get_messenger] = lambda: messenger

        response = client.post("/facebook/post", json={"message": {"text": "hi"}}, headers=RELAY_HEADERS)

        assert response.status_code == 502
        assert response.json()["failedPosts"][0]["errorMessage"] == "Recipient id not provided."

    def test_missing_secret_is_rejected(self, client):
        messenger = AsyncMock()
        app.dependency_overrides[get_messenger] = lambda: messenger

        response = client.post("/facebook/post", json={"recipient": {"id": "U1"}, "message": {"text": "hi"}})

        assert response.status_code == 401
        messenger.post.assert_not_awaited()

    def test_wrong_secret_is_rejected(self, client):
        messenger = AsyncMock()
        app.dependency_overrides[get_messenger] = lambda: messenger

        response = client.post(
            "/facebook/post",
            json={"recipient": {"id": "U1"}, "message": {"text": "hi"}},
            headers={"X-Relay-Secret": "guess"},
        )

        assert response.status_code == 401
        messenger.post.assert_not_awaited()

    def test_unconfigured_secret_closes_endpoint(self, client):
        app.dependency_overrides[get_settings] = lambda: _settings(relay_api_secret=None)
        messenger = AsyncMock()
        app.dependency_overrides[get_messenger] = lambda: messenger

        response = client.post(
            "/facebook/post",
            json={"recipient": {"id": "U1"}, "message": {"text": "hi"}},
            headers=RELAY_HEADERS,
        )

        assert response.status_code == 503
        messenger.post.assert_not_awaited()

    @patch("relay.services.facebook_service.httpx.AsyncClient")
    def test_url_in_body_cannot_redirect_the_page_token(self, mock_client_class, client):
        http_client = MagicMock()
        http_client.post = AsyncMock(return_value=Mock(status_code=200, text="{}"))
        mock_client_class.return_value.__aenter__.return_value = http_client
        mock_client_class.return_value.__aexit__.return_value = False
        app.dependency_overrides[get_messenger] = lambda: FacebookMessenger(
            "page-token", "https://graph.facebook.com/v2.6/me/messages"
        )

        response = client.post(
            "/facebook/post",
            json={"recipient": {"id": "U1"}, "message": {"text": "hi"}, "url": "https://attacker.example/steal"},
            headers=RELAY_HEADERS,
        )

        assert response.status_code == 200
        call_args = http_client.post.call_args
        assert call_args[0][0] == "https://graph.facebook.com/v2.6/me/messages"
        assert "url" not in call_args[1]["json"]


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


class TestIsBatchedMessage:
    def test_single_event_is_not_batched(self, make_event):
        payload = WebhookPayload.model_validate({"object": "page", "entry": [{"messaging": [make_event()]}]})
        assert is_batched_message(payload) is False

    def test_several_events_or_entries_are_batched(self, make_event):
        two_events = {"object": "page", "entry": [{"messaging": [make_event(), make_event(timestamp=2)]}]}
        two_entries = {"object": "page", "entry": [{"messaging": [make_event()]}, {"messaging": [make_event()]}]}
        assert is_batched_message(WebhookPayload.model_validate(two_events)) is True
        assert is_batched_message(WebhookPayload.model_validate(two_entries)) is True
