"""
stripe-tasks

Task-oriented helpers for the Stripe API:
- Credential resolution (rendered per call, never cached)
- A declarative catalog of customer / balance / payment intent /
  payment method / refund operations
- One generic authenticated executor with a uniform error taxonomy
- Webhook signature verification
"""

from __future__ import annotations

# ---------------------------------------------------------------------------
# Version
# ---------------------------------------------------------------------------
__version__ = "0.1.0"

# ---------------------------------------------------------------------------
# Public API re-exports
# ---------------------------------------------------------------------------
from .config import StripeConfig, HttpOptions
from .credentials import (
    Credential,
    DEFAULT_BASE_URL,
    normalize_base_url,
    render_optional,
    render_required,
    resolve_credential,
)
from .errors import (
    StripeTasksError,
    ConfigurationError,
    UnknownOperationError,
    ValidationError,
    DecodeError,
    RemoteError,
    RequestTimeoutError,
    SignatureError,
    MalformedHeaderError,
    NoMatchingSignatureError,
    TimestampOutsideToleranceError,
)
from .operations import CATALOG, OperationDescriptor, Param, catalog, lookup
from .client import ApiResponse, PreparedRequest, StripeClient, build_request, execute
from .documents import normalize, serialize, list_items
from .tasks import TaskOutput, run_operation, run_task
from .webhook import (
    WebhookEnvelope,
    WebhookVerifier,
    compute_signature,
    construct_event,
    generate_test_header,
    parse_signature_header,
    verify,
    verify_signature,
)
from .debug import dprint, is_enabled as debug_enabled, set_debug as set_debug_enabled

__all__ = (
    "__version__",
    # config & credentials
    "StripeConfig",
    "HttpOptions",
    "Credential",
    "DEFAULT_BASE_URL",
    "normalize_base_url",
    "render_optional",
    "render_required",
    "resolve_credential",
    # errors
    "StripeTasksError",
    "ConfigurationError",
    "UnknownOperationError",
    "ValidationError",
    "DecodeError",
    "RemoteError",
    "RequestTimeoutError",
    "SignatureError",
    "MalformedHeaderError",
    "NoMatchingSignatureError",
    "TimestampOutsideToleranceError",
    # catalog & execution
    "CATALOG",
    "OperationDescriptor",
    "Param",
    "catalog",
    "lookup",
    "ApiResponse",
    "PreparedRequest",
    "StripeClient",
    "build_request",
    "execute",
    "TaskOutput",
    "run_operation",
    "run_task",
    # documents
    "normalize",
    "serialize",
    "list_items",
    # webhooks
    "WebhookEnvelope",
    "WebhookVerifier",
    "compute_signature",
    "construct_event",
    "generate_test_header",
    "parse_signature_header",
    "verify",
    "verify_signature",
    # debug controls
    "dprint",
    "debug_enabled",
    "set_debug_enabled",
)
