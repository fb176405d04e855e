"""
Webhook ingress.

Callers authenticate with either an HMAC-SHA256 signature of the raw body
(``sha256=<hex>``, preferred when both are sent) or the trigger's plain
shared secret. A webhook trigger without a configured secret accepts any
caller. Authentication always happens before any trigger is evaluated.

Example:
    >>> receiver = WebhookReceiver(engine)
    >>> await receiver.handle(trigger_id, raw_body, signature=headers.get("X-Webhook-Signature"))
"""

import hashlib
import hmac
import json
from typing import Any

from trigflow.core.exceptions import WebhookAuthError
from trigflow.core.logger import get_logger
from trigflow.triggers.engine import TriggerEngine
from trigflow.triggers.models import Execution
from trigflow.types import TriggerType

logger = get_logger(__name__)

SIGNATURE_PREFIX = "sha256="
SECRET_KEY = "secret"


def body_bytes(body: Any) -> bytes:
    """Bytes the signature is computed over: the raw body, else compact JSON."""
    if isinstance(body, bytes):
        return body
    if isinstance(body, str):
        return body.encode()
    return json.dumps(body, separators=(",", ":"), ensure_ascii=False).encode()


def sign(secret: str, body: Any) -> str:
    """Signature header value for ``body``."""
    digest = hmac.new(secret.encode(), body_bytes(body), hashlib.sha256).hexdigest()
    return f"{SIGNATURE_PREFIX}{digest}"


def verify_webhook(
    secret: str | None,
    body: Any,
    signature: str | None = None,
    plain_secret: str | None = None,
) -> None:
    """
    Authenticate a webhook call.

    Raises:
        WebhookAuthError: If the call does not authenticate
    """
    if not secret:
        return

    if signature:
        if not signature.startswith(SIGNATURE_PREFIX):
            msg = "Invalid signature format. Expected: sha256=<hex>"
            raise WebhookAuthError(msg)
        received = signature[len(SIGNATURE_PREFIX) :].lower().encode()
        expected = sign(secret, body)[len(SIGNATURE_PREFIX) :].encode()
        if not hmac.compare_digest(received, expected):
            msg = "Invalid webhook signature"
            raise WebhookAuthError(msg)
        return

    if plain_secret:
        if not hmac.compare_digest(plain_secret.encode(), secret.encode()):
            msg = "Invalid webhook secret"
            raise WebhookAuthError(msg)
        return

    msg = "Missing webhook authentication"
    raise WebhookAuthError(msg)


def _payload(body: Any) -> Any:
    if isinstance(body, bytes | str):
        try:
            return json.loads(body)
        except ValueError:
            return body.decode(errors="replace") if isinstance(body, bytes) else body
    return body


class WebhookReceiver:
    """Authenticates webhook calls and feeds them to the engine."""

    def __init__(self, engine: TriggerEngine):
        self.engine = engine

    async def handle(
        self,
        trigger_id: str,
        body: Any,
        signature: str | None = None,
        plain_secret: str | None = None,
    ) -> list[Execution]:
        """
        Handle a call addressed to one webhook trigger.

        Raises:
            TriggerNotFoundError: If the trigger does not exist
            WebhookAuthError: If the trigger is not a webhook trigger or
                authentication fails
        """
        trigger = await self.engine.registry.find_one(trigger_id)

        if trigger.trigger_type != TriggerType.WEBHOOK:
            msg = "Not a webhook trigger"
            raise WebhookAuthError(msg)

        try:
            verify_webhook(trigger.conditions.get(SECRET_KEY), body, signature, plain_secret)
        except WebhookAuthError as e:
            logger.warning(f"Rejected webhook call for trigger {trigger_id}: {e}")
            raise

        context = {
            "triggerId": trigger_id,
            "payload": _payload(body),
            "workspaceId": trigger.workspace_id,
        }
        return await self.engine.evaluate_triggers(
            TriggerType.WEBHOOK, context, trigger.workspace_id
        )
