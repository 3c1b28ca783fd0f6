"""
Webhook signature verification using the Standard Webhooks scheme that Dodo implements.

Docs: https://docs.dodopayments.com/developer-resources/webhooks
Signed payload format:
    f"{webhook_id}.{webhook_timestamp}.{raw_body}"

The HMAC-SHA256 digest (keyed with the base64-decoded `whsec_` secret) is sent base64
encoded in the `webhook-signature` header as one or more space separated "v1,<sig>"
entries. Verification must run on the raw request bytes, never on re-serialized JSON.
"""
import base64
import binascii
import hashlib
import hmac
import json
import logging
import time
from typing import Mapping, Optional

from app.core import config
from app.core.errors import InvalidInput, InvalidSignature, MissingSecret, MissingSignature

logger = logging.getLogger(__name__)

# Dodo sends `webhook-*`; older integrations / Svix relays send `svix-*`
HEADER_ALIASES = {
    "webhook-id": "svix-id",
    "webhook-signature": "svix-signature",
    "webhook-timestamp": "svix-timestamp",
}


def extract_signature_headers(headers: Mapping[str, str]) -> dict:
    """Pick the three signature headers, falling back to their svix-* aliases."""
    resolved = {}
    for name, alias in HEADER_ALIASES.items():
        resolved[name] = headers.get(name) or headers.get(alias)
    return resolved


def _secret_key(secret: str) -> bytes:
    if secret.startswith("whsec_"):
        try:
            return base64.b64decode(secret.split("_", 1)[1])
        except (binascii.Error, ValueError) as e:
            raise MissingSecret("Webhook secret is not valid base64") from e
    return secret.encode()


def compute_signature(secret: str, webhook_id: str, timestamp: str, body: bytes) -> str:
    """Base64 HMAC-SHA256 of "<id>.<timestamp>.<body>"."""
    signed_payload = f"{webhook_id}.{timestamp}.".encode() + body
    digest = hmac.new(_secret_key(secret), signed_payload, hashlib.sha256).digest()
    return base64.b64encode(digest).decode()


def _candidate_signatures(signature_header: str):
    for part in signature_header.split():
        version, _, sig = part.partition(",")
        if version == "v1" and sig:
            yield sig.strip()


def verify_webhook(
    body: bytes,
    headers: Mapping[str, str],
    secret: Optional[str],
    tolerance: int = config.WEBHOOK_TOLERANCE_SECONDS,
    now: Optional[float] = None,
) -> dict:
    """
    Authenticate a webhook delivery and return the decoded event.

    Raises MissingSecret, MissingSignature, InvalidSignature, or InvalidInput when the
    verified body is not a JSON object.
    """
    if not secret:
        logger.error("[Dodo webhook] Missing webhook secret in environment")
        raise MissingSecret()

    sig_headers = extract_signature_headers(headers)
    webhook_id = sig_headers["webhook-id"]
    signature_header = sig_headers["webhook-signature"]
    timestamp = sig_headers["webhook-timestamp"]
    if not webhook_id or not signature_header or not timestamp:
        missing = [name for name, value in sig_headers.items() if not value]
        logger.warning("[Dodo webhook] Missing signature headers: %s", missing)
        raise MissingSignature()

    try:
        ts = int(timestamp)
    except ValueError:
        raise InvalidSignature("Invalid webhook timestamp")
    now = time.time() if now is None else now
    if abs(now - ts) > tolerance:
        logger.warning("[Dodo webhook] Timestamp outside tolerance (id=%s, ts=%s)", webhook_id, ts)
        raise InvalidSignature("Webhook timestamp outside tolerance")

    expected = compute_signature(secret, webhook_id, timestamp, body)
    if not any(
        hmac.compare_digest(candidate.encode(), expected.encode())
        for candidate in _candidate_signatures(signature_header)
    ):
        logger.warning("[Dodo webhook] Signature mismatch (id=%s, body_length=%d)", webhook_id, len(body))
        raise InvalidSignature()

    try:
        event = json.loads(body)
    except (json.JSONDecodeError, UnicodeDecodeError):
        raise InvalidInput("Invalid JSON")
    if not isinstance(event, dict):
        raise InvalidInput("Invalid webhook payload")
    return event
