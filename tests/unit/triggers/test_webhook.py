"""
Tests for webhook authentication and ingress.
"""

import hashlib
import hmac
import json
from unittest.mock import AsyncMock

import pytest

from trigflow.core.exceptions import TriggerNotFoundError, WebhookAuthError
from trigflow.triggers.webhook import WebhookReceiver, body_bytes, sign, verify_webhook
from trigflow.types import ExecutionStatus

SECRET = "s3cr3t"
BODY = b'{"order":42,"items":["a","b"]}'


def _signature(secret: str, raw: bytes) -> str:
    return "sha256=" + hmac.new(secret.encode(), raw, hashlib.sha256).hexdigest()


class TestVerifyWebhook:
    """Tests for verify_webhook."""

    def test_valid_signature_accepted(self):
        verify_webhook(SECRET, BODY, signature=_signature(SECRET, BODY))

    def test_uppercase_hex_accepted(self):
        signature = "sha256=" + _signature(SECRET, BODY)[7:].upper()
        verify_webhook(SECRET, BODY, signature=signature)

    def test_tampered_body_rejected(self):
        with pytest.raises(WebhookAuthError, match="signature"):
            verify_webhook(SECRET, BODY + b" ", signature=_signature(SECRET, BODY))

    def test_wrong_prefix_rejected(self):
        digest = _signature(SECRET, BODY)[7:]
        with pytest.raises(WebhookAuthError, match="format"):
            verify_webhook(SECRET, BODY, signature=f"sha1={digest}")

    def test_signature_preferred_over_plain_secret(self):
        """A bad signature fails even when the plain secret is right."""
        with pytest.raises(WebhookAuthError):
            verify_webhook(SECRET, BODY, signature="sha256=00", plain_secret=SECRET)

    def test_plain_secret(self):
        verify_webhook(SECRET, BODY, plain_secret=SECRET)
        with pytest.raises(WebhookAuthError, match="secret"):
            verify_webhook(SECRET, BODY, plain_secret="guess")

    def test_missing_credentials_rejected(self):
        with pytest.raises(WebhookAuthError, match="Missing"):
            verify_webhook(SECRET, BODY)

    @pytest.mark.parametrize("secret", [None, ""])
    def test_no_configured_secret_accepts_anyone(self, secret):
        verify_webhook(secret, BODY)
        verify_webhook(secret, BODY, signature="sha256=garbage")

    def test_parsed_body_signed_as_compact_json(self):
        payload = {"order": 42, "items": ["a", "b"]}

        assert body_bytes(payload) == BODY
        verify_webhook(SECRET, payload, signature=_signature(SECRET, BODY))

    def test_sign_matches_manual_hmac(self):
        assert sign(SECRET, BODY) == _signature(SECRET, BODY)
        assert sign(SECRET, BODY.decode()) == _signature(SECRET, BODY)


class TestWebhookReceiver:
    """Tests for WebhookReceiver.handle."""

    @pytest.mark.asyncio
    async def test_authenticated_call_fires_trigger(self, engine, make_trigger, orchestrator):
        trigger = await make_trigger(
            "webhook",
            conditions={"secret": SECRET},
            variable_mappings={"orderId": "$.payload.order"},
        )
        receiver = WebhookReceiver(engine)

        executions = await receiver.handle(trigger.id, BODY, signature=_signature(SECRET, BODY))

        assert [e.status for e in executions] == [ExecutionStatus.SUCCESS]
        assert executions[0].trigger_context["triggerId"] == trigger.id
        assert executions[0].trigger_context["payload"] == json.loads(BODY)
        assert orchestrator.runs[0].variables == {"orderId": 42}

    @pytest.mark.asyncio
    async def test_rejected_before_evaluation(self, engine, make_trigger):
        trigger = await make_trigger("webhook", conditions={"secret": SECRET})
        engine.evaluate_triggers = AsyncMock()

        with pytest.raises(WebhookAuthError):
            await WebhookReceiver(engine).handle(trigger.id, BODY, plain_secret="wrong")

        engine.evaluate_triggers.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_non_webhook_trigger_rejected(self, engine, make_trigger):
        trigger = await make_trigger("status_changed")

        with pytest.raises(WebhookAuthError, match="Not a webhook"):
            await WebhookReceiver(engine).handle(trigger.id, BODY)

    @pytest.mark.asyncio
    async def test_unknown_trigger(self, engine):
        with pytest.raises(TriggerNotFoundError):
            await WebhookReceiver(engine).handle("nope", BODY)

    @pytest.mark.asyncio
    async def test_open_webhook_accepts_unsigned_text_body(self, engine, make_trigger):
        trigger = await make_trigger("webhook")

        executions = await WebhookReceiver(engine).handle(trigger.id, "not json")
        assert executions[0].trigger_context["payload"] == "not json"
