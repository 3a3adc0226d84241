from __future__ import annotations
import os
import sys
import json
import datetime
import re
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

# ------------------------------------------------------------------------------
# Debug flag (env overrideable) + runtime toggles
# ------------------------------------------------------------------------------
_DEBUG_ENABLED = os.getenv("STRIPE_TASKS_DEBUG", "0").lower() not in ("0", "false", "no", "off", "")

def is_enabled() -> bool:
    return _DEBUG_ENABLED

def set_debug(enabled: bool) -> None:
    """Enable/disable debug printing at runtime."""
    global _DEBUG_ENABLED
    _DEBUG_ENABLED = bool(enabled)

# ------------------------------------------------------------------------------
# Helpers
# ------------------------------------------------------------------------------
# Case-insensitive "Bearer <token>"
_AUTH_RE = re.compile(r"^bearer\s+(.+)$", re.I)

SENSITIVE_HEADER_KEYS = {"authorization", "stripe-signature", "cookie"}
PARTIAL_MASK_KEYS = {"idempotency-key"}  # not secret, but we still mask most of it

# Form fields whose values never reach debug output (card data)
SENSITIVE_FORM_KEYS = {"card[number]", "card[cvc]", "card[exp_month]", "card[exp_year]"}

MAX_JSON_CHARS = int(os.getenv("STRIPE_TASKS_DEBUG_MAX_JSON", "50000"))  # cap printed JSON length

def _ts() -> str:
    # ISO 8601 UTC timestamp, e.g., 2025-09-13T10:20:30Z
    return datetime.datetime.now(datetime.timezone.utc).isoformat(timespec="seconds").replace("+00:00", "Z")

def _mask_value(val: Optional[str]) -> Optional[str]:
    if val is None:
        return None
    if len(val) <= 6:
        return "***"
    return f"{val[:3]}...{val[-2:]}"

def mask_secret(secret: Optional[str]) -> str:
    """
    Mask an API key or endpoint secret, keeping only its mode prefix.

    "sk_test_51Hxyz..." -> "sk_test_***", "whsec_abc" -> "whsec_***".
    """
    if not secret:
        return "(empty)"
    s = secret.strip()
    for prefix in ("sk_test_", "sk_live_", "rk_test_", "rk_live_", "whsec_"):
        if s.startswith(prefix):
            return prefix + "***"
    return "***"

def redact_auth(value: Optional[str]) -> Optional[str]:
    """Mask Authorization header while leaving a tiny, non-sensitive hint."""
    if not value:
        return value
    m = _AUTH_RE.match(value.strip())
    if not m:
        return "***"
    return f"Bearer {mask_secret(m.group(1))}"

def scrub_headers(h: Mapping[str, str]) -> Dict[str, str]:
    """Return a sanitized copy of headers for safe logging."""
    out: Dict[str, str] = {}
    for k, v in (h or {}).items():
        lk = k.lower()
        if lk == "authorization":
            out[k] = redact_auth(v) or ""
        elif lk in SENSITIVE_HEADER_KEYS:
            out[k] = "***"
        elif lk in PARTIAL_MASK_KEYS:
            out[k] = _mask_value(v) or "***"
        else:
            out[k] = v
    return out

def scrub_form(pairs: Iterable[Tuple[str, str]]) -> List[Tuple[str, str]]:
    """Return form pairs with card fields masked."""
    return [(k, "***" if k in SENSITIVE_FORM_KEYS else v) for k, v in pairs]

# ------------------------------------------------------------------------------
# Printing helpers
# ------------------------------------------------------------------------------
def dprint(*args: Any) -> None:
    if _DEBUG_ENABLED:
        print("[stripe-tasks]", _ts(), *args, file=sys.stderr, flush=True)

def djson(label: str, data: Any) -> None:
    if _DEBUG_ENABLED:
        try:
            s = json.dumps(data, ensure_ascii=False, indent=2, default=str)
        except Exception:
            s = repr(data)
        if len(s) > MAX_JSON_CHARS:
            s = s[:MAX_JSON_CHARS] + "... (truncated)"
        print("[stripe-tasks]", _ts(), f"{label}:", s, file=sys.stderr, flush=True)
