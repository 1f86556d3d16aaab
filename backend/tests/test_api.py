"""
HTTP tests for the send and configuration endpoints.

Every test builds its own app around a registry of fake providers, so no
SMTP server or Twilio account is needed and no state leaks between tests.
"""

import json

import pytest
from unittest.mock import MagicMock

from fastapi.testclient import TestClient

from messageapi.errors import AuthError, ConfigError, SendError
from messageapi.main import _message_api_error_handler, create_app
from messageapi.models.config import ConfigDocument
from messageapi.providers.base import EMAIL, SMS, EmailProvider, SMSProvider
from messageapi.services.config_manager import ConfigManager
from messageapi.services.registry import ProviderRegistry

ADMIN_KEY = "test-admin-key"


# ---------------------------------------------------------------------------
# Fake providers
# ---------------------------------------------------------------------------

class FakeEmail(EmailProvider):
    def __init__(self, always_fail: bool = False):
        super().__init__()
        self.always_fail = always_fail
        self.config = None
        self.sent = []
        self.attempts = 0

    def load(self, config):
        if "fail" in config:
            raise ConfigError("missing the host configuration")
        with self._lock:
            self.config = dict(config)

    def send_email(self, message):
        self.attempts += 1
        if self.always_fail:
            raise RuntimeError("smtp connection refused")
        self.sent.append(message)


class FakeSMS(SMSProvider):
    def __init__(self):
        super().__init__()
        self.sent = []

    def load(self, config):
        pass

    def send_sms(self, message):
        self.sent.append(message)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture()
def providers():
    return {
        "plain": FakeEmail(),
        "broken": FakeEmail(always_fail=True),
        "gw": FakeSMS(),
    }


@pytest.fixture()
def manager(providers):
    registry = ProviderRegistry()
    registry.register(EMAIL, "plain", providers["plain"])
    registry.register(EMAIL, "broken", providers["broken"])
    registry.register(SMS, "gw", providers["gw"])
    return ConfigManager(
        registry,
        admin_key=ADMIN_KEY,
        initial=ConfigDocument(
            emails={"plain": {"host": "smtp.example.com", "password": "pw"}, "broken": {}},
            smses={"gw": {"auth_token": "tok"}},
        ),
    )


@pytest.fixture()
def client(manager):
    return TestClient(create_app(config_manager=manager))


def _email_body(**overrides) -> dict:
    body = {"subject": "Hello", "content": "Body", "to": "a@example.com"}
    body.update(overrides)
    return body


# ===========================================================================
# POST|GET /v1/email
# ===========================================================================

class TestSendEmail:

    def test_post_sends_through_default_provider(self, client, providers):
        response = client.post("/v1/email", json=_email_body())

        assert response.status_code == 200
        data = response.json()
        assert data == {"status": "sent", "provider": "plain", "attempts": 1, "failed_attempts": 0}
        assert providers["plain"].sent[0].to == ["a@example.com"]

    def test_attachments_are_passed_as_bytes(self, client, providers):
        response = client.post(
            "/v1/email",
            json=_email_body(attachments={"notes.txt": "hello"}),
        )

        assert response.status_code == 200
        assert providers["plain"].sent[0].attachments == {"notes.txt": b"hello"}

    def test_missing_to_is_rejected_before_dispatch(self, client, providers):
        response = client.post("/v1/email", json=_email_body(to=""))

        assert response.status_code == 400
        assert "to" in response.json()["detail"]
        assert providers["plain"].attempts == 0
        assert providers["broken"].attempts == 0

    def test_boolean_retry_is_rejected_before_dispatch(self, client, providers):
        response = client.post("/v1/email", json=_email_body(retry=True))

        assert response.status_code == 400
        assert "retry" in response.json()["detail"]
        assert providers["plain"].attempts == 0

    def test_invalid_json_is_rejected(self, client):
        response = client.post(
            "/v1/email",
            content="not json",
            headers={"Content-Type": "application/json"},
        )
        assert response.status_code == 400

    def test_body_must_be_object(self, client):
        response = client.post("/v1/email", json=["a@example.com"])
        assert response.status_code == 400

    def test_unknown_provider_is_400(self, client):
        response = client.post("/v1/email", json=_email_body(provider="nope"))

        assert response.status_code == 400
        assert "nope" in response.json()["detail"]

    def test_transport_failure_is_500(self, client, providers):
        response = client.post("/v1/email", json=_email_body(provider="broken", retry=2))

        assert response.status_code == 500
        assert "smtp connection refused" in response.json()["detail"]
        assert providers["broken"].attempts == 3

    def test_all_falls_back_past_failing_provider(self, client, providers):
        # "broken" sorts before "plain"
        response = client.post("/v1/email", json=_email_body(provider="all"))

        assert response.status_code == 200
        data = response.json()
        assert data["provider"] == "plain"
        assert data["attempts"] == 2
        assert data["failed_attempts"] == 1
        assert providers["broken"].attempts == 1

    def test_get_is_405_unless_allowed(self, client):
        response = client.get("/v1/email", params=_email_body())
        assert response.status_code == 405

    def test_get_allowed_reads_query_string(self, client, manager, providers):
        manager.apply(ConfigDocument(allow_get=True, emails={"plain": {}}))

        response = client.get(
            "/v1/email",
            params=_email_body(to="a@example.com,b@example.com", retry="1"),
        )

        assert response.status_code == 200
        sent = providers["plain"].sent[0]
        assert sent.to == ["a@example.com", "b@example.com"]
        assert sent.retry == 1
        assert sent.attachments == {}

    def test_no_email_provider_configured_is_501(self, client, manager):
        manager.apply(ConfigDocument(smses={"gw": {}}))

        response = client.post("/v1/email", json=_email_body())
        assert response.status_code == 501

    def test_501_takes_precedence_over_405(self, client, manager):
        manager.apply(ConfigDocument())

        response = client.get("/v1/email", params=_email_body())
        assert response.status_code == 501

    def test_unexpected_error_is_500(self, client, manager):
        app = client.app
        app.state.dispatcher = MagicMock()
        app.state.dispatcher.send_email.side_effect = KeyError("boom")

        response = client.post("/v1/email", json=_email_body())

        assert response.status_code == 500
        assert response.json()["detail"] == "Failed to send the email"

    def test_other_methods_are_405(self, client):
        response = client.put("/v1/email", json=_email_body())
        assert response.status_code == 405


# ===========================================================================
# POST|GET /v1/sms
# ===========================================================================

class TestSendSMS:

    def test_named_provider(self, client, providers):
        response = client.post(
            "/v1/sms",
            json={"provider": "gw", "phone": "+15550100", "content": "hi"},
        )

        assert response.status_code == 200
        assert response.json()["provider"] == "gw"
        assert providers["gw"].sent[0].phone == "+15550100"

    def test_no_provider_and_no_default_is_400(self, client, providers):
        response = client.post("/v1/sms", json={"phone": "+15550100"})

        assert response.status_code == 400
        assert providers["gw"].sent == []

    def test_default_sms_provider(self, client, manager, providers):
        manager.apply(ConfigDocument(default_sms_provider="gw", smses={"gw": {}}))

        response = client.post("/v1/sms", json={"phone": "+15550100"})

        assert response.status_code == 200
        assert len(providers["gw"].sent) == 1

    def test_missing_phone_is_400(self, client, providers):
        response = client.post("/v1/sms", json={"provider": "gw"})

        assert response.status_code == 400
        assert providers["gw"].sent == []

    def test_no_sms_provider_configured_is_501(self, client, manager):
        manager.apply(ConfigDocument(emails={"plain": {}}))

        response = client.post("/v1/sms", json={"provider": "gw", "phone": "+1"})
        assert response.status_code == 501


# ===========================================================================
# GET|POST /v1/config
# ===========================================================================

class TestConfigEndpoints:

    def test_get_returns_redacted_config(self, client):
        response = client.get("/v1/config")

        assert response.status_code == 200
        data = response.json()
        assert data["emails"]["plain"]["host"] == "smtp.example.com"
        assert data["emails"]["plain"]["password"] == "******"
        assert data["smses"]["gw"]["auth_token"] == "******"
        assert ADMIN_KEY not in response.text

    def test_update_with_correct_key(self, client, manager, providers):
        response = client.post("/v1/config", json={
            "key": ADMIN_KEY,
            "allow_get": True,
            "default_email_provider": "plain",
            "emails": {"plain": {"host": "new.example.com"}},
        })

        assert response.status_code == 200
        assert response.json()["emails"]["plain"]["host"] == "new.example.com"
        snapshot = manager.current()
        assert snapshot.allow_get is True
        assert sorted(snapshot.emails) == ["plain"]
        assert sorted(snapshot.smses) == []
        assert providers["plain"].config == {"host": "new.example.com"}

    def test_missing_key_is_401_and_config_unchanged(self, client, manager):
        before = manager.current()

        response = client.post("/v1/config", json={"emails": {}})

        assert response.status_code == 401
        assert manager.current() is before

    def test_wrong_key_is_403_and_config_unchanged(self, client, manager):
        before = manager.current()

        response = client.post("/v1/config", json={"key": "wrong", "emails": {}})

        assert response.status_code == 403
        assert manager.current() is before

    def test_key_checked_before_document_is_parsed(self, client):
        response = client.post("/v1/config", json={"key": "wrong", "allow_get": "not-a-bool"})
        assert response.status_code == 403

    def test_bad_types_are_400(self, client, manager):
        before = manager.current()

        response = client.post("/v1/config", json={"key": ADMIN_KEY, "allow_get": "yes"})

        assert response.status_code == 400
        assert "allow_get" in response.json()["detail"]
        assert manager.current() is before

    def test_unknown_provider_is_400_and_config_unchanged(self, client, manager):
        before = manager.current()

        response = client.post("/v1/config", json={
            "key": ADMIN_KEY,
            "emails": {"plain": {}, "mystery": {}},
        })

        assert response.status_code == 400
        assert "mystery" in response.json()["detail"]
        assert manager.current() is before

    def test_unknown_provider_ignored_when_flag_set(self, client, manager):
        response = client.post("/v1/config", json={
            "key": ADMIN_KEY,
            "ignore_not_supported_provider": True,
            "emails": {"plain": {}, "mystery": {}},
        })

        assert response.status_code == 200
        assert sorted(manager.current().emails) == ["plain"]

    def test_load_failure_is_400_and_config_unchanged(self, client, manager):
        before = manager.current()

        response = client.post("/v1/config", json={
            "key": ADMIN_KEY,
            "emails": {"plain": {"fail": "yes"}},
        })

        assert response.status_code == 400
        assert "failed to load" in response.json()["detail"]
        assert manager.current() is before

    def test_no_server_key_accepts_update_without_key(self, providers):
        registry = ProviderRegistry()
        registry.register(EMAIL, "plain", providers["plain"])
        client = TestClient(create_app(config_manager=ConfigManager(registry)))

        response = client.post("/v1/config", json={"emails": {"plain": {}}})

        assert response.status_code == 200


# ===========================================================================
# Misc
# ===========================================================================

class TestHealth:

    def test_health_lists_enabled_providers(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json() == {
            "status": "ok",
            "emails": ["broken", "plain"],
            "smses": ["gw"],
        }


class TestErrorHandler:

    @pytest.mark.asyncio
    async def test_renders_status_and_detail(self):
        request = MagicMock()
        request.method = "POST"
        request.url.path = "/v1/email"

        response = await _message_api_error_handler(request, SendError("gateway down"))

        assert response.status_code == 500
        assert json.loads(response.body) == {"detail": "gateway down"}

    @pytest.mark.asyncio
    async def test_auth_error_keeps_its_status(self):
        request = MagicMock()

        response = await _message_api_error_handler(
            request, AuthError("Invalid admin key", status_code=403)
        )

        assert response.status_code == 403
