from __future__ import annotations
from typing import Any, Optional, Dict

from .debug import dprint, djson


class StripeTasksError(Exception):
    """Base exception for all stripe-tasks errors."""
    pass


class ConfigurationError(StripeTasksError):
    """
    Missing or invalid credential, endpoint or required path parameter.

    Always raised before any network access. `field` names the offending input.
    """

    def __init__(self, message: str, *, field: Optional[str] = None):
        self.field = field
        super().__init__(message)


class UnknownOperationError(ConfigurationError):
    """Raised when a (resource, verb) pair is not in the operation catalog."""

    def __init__(self, resource: str, verb: str):
        self.resource = resource
        self.verb = verb
        super().__init__(f"unknown operation: {resource}.{verb}", field="operation")


class ValidationError(StripeTasksError):
    """Semantically invalid input (wrong type, missing body parameter, limit < 1...)."""

    def __init__(self, message: str, *, field: Optional[str] = None):
        self.field = field
        super().__init__(message)


class DecodeError(StripeTasksError):
    """Raised when a response or webhook body is not a well-formed JSON document."""

    def __init__(self, message: str, *, body: Optional[str] = None):
        self.body = body
        super().__init__(message)


class RequestTimeoutError(StripeTasksError, TimeoutError):
    """The caller-supplied (or configured) deadline elapsed before a response arrived."""

    def __init__(self, message: str, *, method: Optional[str] = None, url: Optional[str] = None):
        self.method = method
        self.url = url
        super().__init__(message)


class RemoteError(StripeTasksError):
    """
    Unified error for failed API requests.

    Attributes
    ----------
    status : int
        HTTP status code (or -1 for network errors).
    payload : Any
        Parsed JSON error document, or the raw text when it is not JSON.
    body : str
        Raw response body, kept verbatim.
    request_id : Optional[str]
        Value of the `Request-Id` response header, if available.
    method : Optional[str]
        HTTP method that triggered the error.
    url : Optional[str]
        URL that triggered the error.

    Convenience
    -----------
    .code            -> Stripe error code (``error.code``) if present
    .message_text    -> human-friendly error message
    .retryable       -> bool, True if typical transient status (429, 500-504)
    .to_dict()       -> sanitized summary dict for logging
    """

    def __init__(
        self,
        status: int,
        payload: Any,
        request_id: Optional[str] = None,
        *,
        body: Optional[str] = None,
        method: Optional[str] = None,
        url: Optional[str] = None,
    ):
        self.status = int(status)
        self.payload = payload
        self.body = body if body is not None else (payload if isinstance(payload, str) else "")
        self.request_id = request_id
        self.method = method
        self.url = url

        dprint("RemoteError", {
            "status": self.status,
            "request_id": self.request_id,
            "method": self.method,
            "url": self.url,
        })
        djson("RemoteError payload", self.payload)

        super().__init__(self._message())

    # ---------------- convenience properties ----------------

    @property
    def retryable(self) -> bool:
        """Return True for common transient HTTP statuses."""
        return self.status in (429, 500, 502, 503, 504)

    @property
    def code(self) -> Optional[str]:
        """Stripe error code, e.g. ``resource_missing`` or ``card_declined``."""
        p = self.payload
        if isinstance(p, dict):
            err = p.get("error")
            if isinstance(err, dict) and err.get("code"):
                return str(err["code"])
            if p.get("code"):
                return str(p["code"])
        return None

    @property
    def message_text(self) -> str:
        """
        Human-friendly message guessed from payload.
        Keeps it short and safe for logs.
        """
        p = self.payload
        if isinstance(p, str):
            return p.strip() or "error"
        if isinstance(p, dict):
            err = p.get("error")
            if isinstance(err, dict):
                msg = err.get("message") or err.get("type")
                if isinstance(msg, str) and msg.strip():
                    return msg.strip()
            if isinstance(err, str) and err.strip():
                return err.strip()
            msg = p.get("message")
            if isinstance(msg, str) and msg.strip():
                return msg.strip()
        text = str(p) if p else ""
        return text if len(text) <= 240 else text[:237] + "..."

    # ---------------- rendering & serialization ----------------

    def _message(self) -> str:
        rid = f" req_id={self.request_id}" if self.request_id else ""
        meth = f" {self.method}" if self.method else ""
        url = f" {self.url}" if self.url else ""
        code = f" code={self.code}" if self.code else ""
        return f"HTTP {self.status}{meth}{url}{rid}{code}: {self.message_text or 'error'}"

    def __repr__(self) -> str:
        return f"RemoteError(status={self.status}, request_id={self.request_id!r}, code={self.code!r})"

    def to_dict(self) -> Dict[str, Any]:
        """Sanitized summary for logs/telemetry; includes only non-sensitive fields."""
        return {
            "status": self.status,
            "request_id": self.request_id,
            "method": self.method,
            "url": self.url,
            "code": self.code,
            "message": self.message_text,
            "retryable": self.retryable,
        }


class SignatureError(StripeTasksError):
    """
    Webhook verification failed. Always fatal for that delivery.

    Subclasses identify why: malformed header, no matching digest, or a
    timestamp outside the tolerance window.
    """

    reason = "signature verification failed"

    def __init__(self, message: Optional[str] = None, *, header: Optional[str] = None):
        self.header = header
        super().__init__(message or self.reason)


class MalformedHeaderError(SignatureError):
    reason = "malformed header"


class NoMatchingSignatureError(SignatureError):
    reason = "no signatures found matching the expected signature for payload"


class TimestampOutsideToleranceError(SignatureError):
    reason = "timestamp outside tolerance"

    def __init__(self, message: Optional[str] = None, *, timestamp: Optional[int] = None,
                 now: Optional[int] = None, tolerance: Optional[int] = None):
        self.timestamp = timestamp
        self.now = now
        self.tolerance = tolerance
        super().__init__(message)


__all__ = [
    "StripeTasksError",
    "ConfigurationError",
    "UnknownOperationError",
    "ValidationError",
    "DecodeError",
    "RequestTimeoutError",
    "RemoteError",
    "SignatureError",
    "MalformedHeaderError",
    "NoMatchingSignatureError",
    "TimestampOutsideToleranceError",
]
