"""
Webhook signature verification.

A delivery carries a ``Stripe-Signature`` header such as::

    t=1700000000,v1=5257a869e7ecebeda32affa62cdca3fa51cad7e77a0e56ff536d0ce8e108d8bd

``v1`` is the hex HMAC-SHA256 of ``b"<t>." + raw_body`` keyed with the
endpoint secret. Several ``v1`` entries may be present while a secret is
being rolled; one match is enough. Other schemes (``v0``) are ignored.

`verify()` either returns a WebhookEnvelope or raises a SignatureError
subclass; an unverified payload is never parsed.
"""
from __future__ import annotations

import hashlib
import hmac
import re
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field

from .config import StripeConfig
from .debug import dprint
from .errors import (
    ConfigurationError,
    DecodeError,
    MalformedHeaderError,
    NoMatchingSignatureError,
    TimestampOutsideToleranceError,
    ValidationError,
)
from .documents import normalize

DEFAULT_TOLERANCE = 300
SIGNATURE_SCHEME = "v1"
SIGNATURE_HEADER = "Stripe-Signature"

_TIMESTAMP_RE = re.compile(r"^[0-9]+$")

Payload = Union[str, bytes, bytearray]
Secret = Union[str, bytes]


# ------------------------
# Models
# ------------------------

class WebhookEnvelope(BaseModel):
    """
    A verified event.

    `data` is the event's ``data.object`` document; `payload` is the whole
    event document and `raw` the body exactly as received.
    """
    id: str
    type: str
    timestamp: int
    raw: str
    data: Dict[str, Any] = Field(default_factory=dict)
    payload: Dict[str, Any] = Field(default_factory=dict)
    created: Optional[int] = None
    livemode: Optional[bool] = None
    api_version: Optional[str] = None

    model_config = ConfigDict(frozen=True)


@dataclass(frozen=True)
class SignatureHeader:
    timestamp: int
    # literal header text, used verbatim in the signed payload
    timestamp_raw: str
    signatures: Tuple[str, ...]


# ------------------------
# Signature helpers
# ------------------------

def _as_bytes(value: Union[str, bytes, bytearray]) -> bytes:
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    return value.encode("utf-8")


def parse_signature_header(header: Optional[str], scheme: str = SIGNATURE_SCHEME) -> SignatureHeader:
    """Split the header on "," into key=value items; exactly one `t` and at least one `scheme` entry."""
    if not header or not isinstance(header, str):
        raise MalformedHeaderError("malformed header: empty signature header")

    timestamps = []
    signatures = []
    for item in header.split(","):
        key, sep, value = item.strip().partition("=")
        if not sep:
            continue
        key, value = key.strip(), value.strip()
        if key == "t":
            timestamps.append(value)
        elif key == scheme and value:
            signatures.append(value)

    if len(timestamps) != 1 or not _TIMESTAMP_RE.match(timestamps[0]):
        raise MalformedHeaderError("malformed header: unable to extract timestamp")
    if not signatures:
        raise MalformedHeaderError(f"malformed header: no {scheme} signatures found")

    return SignatureHeader(
        timestamp=int(timestamps[0]),
        timestamp_raw=timestamps[0],
        signatures=tuple(signatures),
    )


def compute_signature(timestamp: Union[int, str], payload: Payload, secret: Secret) -> str:
    """Hex HMAC-SHA256 of ``b"<timestamp>." + payload``."""
    signed_payload = f"{timestamp}.".encode("utf-8") + _as_bytes(payload)
    return hmac.new(_as_bytes(secret), signed_payload, hashlib.sha256).hexdigest()


def generate_test_header(
    payload: Payload,
    secret: Secret,
    timestamp: Optional[int] = None,
    scheme: str = SIGNATURE_SCHEME,
) -> str:
    """Build a valid signature header, e.g. for tests or replaying a stored event locally."""
    ts = int(time.time()) if timestamp is None else int(timestamp)
    return f"t={ts},{scheme}={compute_signature(ts, payload, secret)}"


def _any_match(expected: str, candidates: Tuple[str, ...]) -> bool:
    expected_b = expected.encode("ascii")
    matched = False
    # every candidate is compared; no early exit
    for candidate in candidates:
        if hmac.compare_digest(expected_b, candidate.lower().encode("utf-8")):
            matched = True
    return matched


def verify_signature(
    payload: Payload,
    header: Optional[str],
    secret: Optional[Secret],
    *,
    tolerance: Optional[int] = DEFAULT_TOLERANCE,
    now: Optional[int] = None,
) -> SignatureHeader:
    """
    Check the signature header against the raw payload.

    `tolerance` is the allowed distance in seconds between the signing
    timestamp and `now`; pass ``None`` to skip that check explicitly.

    Returns the parsed header. Raises MalformedHeaderError,
    NoMatchingSignatureError or TimestampOutsideToleranceError.
    """
    if not secret:
        raise ConfigurationError("webhook endpoint secret is required", field="endpoint_secret")
    if tolerance is not None and tolerance < 0:
        raise ValidationError("tolerance must be >= 0 seconds", field="tolerance")

    parsed = parse_signature_header(header)
    expected = compute_signature(parsed.timestamp_raw, payload, secret)

    if not _any_match(expected, parsed.signatures):
        dprint("webhook.verify_signature() no match", {"candidates": len(parsed.signatures)})
        raise NoMatchingSignatureError()

    current = int(time.time()) if now is None else int(now)
    if tolerance is None:
        dprint("webhook.verify_signature() tolerance check disabled by caller")
    elif abs(current - parsed.timestamp) > tolerance:
        dprint("webhook.verify_signature() timestamp out of tolerance",
               {"now": current, "t": parsed.timestamp, "tolerance": tolerance})
        raise TimestampOutsideToleranceError(timestamp=parsed.timestamp, now=current, tolerance=tolerance)

    dprint("webhook.verify_signature() ok", {"t": parsed.timestamp})
    return parsed


# ------------------------
# Parsing
# ------------------------

def verify(
    payload: Payload,
    header: Optional[str],
    secret: Optional[Secret],
    *,
    tolerance: Optional[int] = DEFAULT_TOLERANCE,
    now: Optional[int] = None,
) -> WebhookEnvelope:
    """
    Verify a delivery and parse its event.

    Args:
      payload: raw request body, untouched (bytes or str).
      header: value of the Stripe-Signature header.
      secret: the endpoint's signing secret (``whsec_...``).
      tolerance: allowed clock skew in seconds (default 300).
      now: current unix time; defaults to ``time.time()``.

    Raises SignatureError subclasses for verification failures and
    DecodeError when a correctly signed body is not an event document.
    """
    parsed = verify_signature(payload, header, secret, tolerance=tolerance, now=now)

    raw = _as_bytes(payload)
    doc = normalize(raw)
    event_id = doc.get("id")
    event_type = doc.get("type")
    if not isinstance(event_id, str) or not isinstance(event_type, str):
        raise DecodeError("webhook event is missing 'id' or 'type'")

    data = doc.get("data")
    obj = data.get("object") if isinstance(data, dict) else None

    envelope = WebhookEnvelope(
        id=event_id,
        type=event_type,
        timestamp=parsed.timestamp,
        raw=raw.decode("utf-8"),
        data=obj if isinstance(obj, dict) else {},
        payload=doc,
        created=doc.get("created") if isinstance(doc.get("created"), int) else None,
        livemode=doc.get("livemode") if isinstance(doc.get("livemode"), bool) else None,
        api_version=doc.get("api_version") if isinstance(doc.get("api_version"), str) else None,
    )
    dprint("webhook.verify() event", {"id": envelope.id, "type": envelope.type})
    return envelope


construct_event = verify


class WebhookVerifier:
    """
    Verifier bound to one endpoint secret and tolerance.

        verifier = WebhookVerifier.from_config(StripeConfig.from_env())
        event = verifier.verify(request.body, request.headers["Stripe-Signature"])
    """

    def __init__(self, secret: Secret, *, tolerance: Optional[int] = DEFAULT_TOLERANCE):
        if not secret:
            raise ConfigurationError("webhook endpoint secret is required", field="endpoint_secret")
        if tolerance is not None and tolerance < 0:
            raise ValidationError("tolerance must be >= 0 seconds", field="tolerance")
        self._secret = secret
        self.tolerance = tolerance

    @classmethod
    def from_config(cls, config: StripeConfig) -> "WebhookVerifier":
        return cls(config.require_webhook_secret(), tolerance=config.webhook_tolerance)

    def __repr__(self) -> str:
        return f"WebhookVerifier(tolerance={self.tolerance!r})"

    def verify(self, payload: Payload, header: Optional[str], *, now: Optional[int] = None) -> WebhookEnvelope:
        return verify(payload, header, self._secret, tolerance=self.tolerance, now=now)

    def verify_headers(self, payload: Payload, headers: Dict[str, str], *,
                       now: Optional[int] = None) -> WebhookEnvelope:
        """Like `verify`, reading the Stripe-Signature header case-insensitively."""
        header = None
        for k, v in headers.items():
            if k.lower() == SIGNATURE_HEADER.lower():
                header = v
                break
        return self.verify(payload, header, now=now)


__all__ = [
    "DEFAULT_TOLERANCE",
    "SIGNATURE_HEADER",
    "SignatureHeader",
    "WebhookEnvelope",
    "WebhookVerifier",
    "compute_signature",
    "construct_event",
    "generate_test_header",
    "parse_signature_header",
    "verify",
    "verify_signature",
]
