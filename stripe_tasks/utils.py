from __future__ import annotations
from decimal import Decimal
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple
from urllib.parse import urlencode

from .debug import djson

# ==============================================================================
# Value coercion
# ==============================================================================

_JSON_PRIMITIVES = (str, int, float, bool, type(None))


def _to_json_safe(value: Any) -> Any:
    if isinstance(value, _JSON_PRIMITIVES):
        return value
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (list, tuple)):
        return [_to_json_safe(v) for v in value]
    if isinstance(value, Mapping):
        return {str(k): _to_json_safe(v) for k, v in value.items()}
    # Fallback to string
    return str(value)


def safe_metadata(md: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    """
    Produce a JSON-serializable metadata dict (keys coerced to str, values converted).
    Useful before sending metadata in API bodies.

    None values become "": ``metadata[key]=`` is how the API unsets a key.
    """
    md = md or {}
    if not isinstance(md, Mapping):
        raise TypeError("metadata must be a mapping")
    out = {str(k): "" if v is None else _to_json_safe(v) for k, v in md.items()}
    djson("utils.safe_metadata()", out)
    return out


def form_value(value: Any) -> str:
    """Render a scalar the way the API expects it on the wire."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return ""
    if isinstance(value, Decimal):
        return format(value, "f")
    return str(value)


# ==============================================================================
# Form encoding (bracket notation)
# ==============================================================================

def flatten_params(params: Mapping[str, Any], prefix: Optional[str] = None) -> List[Tuple[str, str]]:
    """
    Flatten nested parameters into bracket-notation pairs, preserving order.

        {"email": "a@b.c", "metadata": {"plan": "pro"}}
          -> [("email", "a@b.c"), ("metadata[plan]", "pro")]

        {"expand": ["customer", "invoice"]}
          -> [("expand[0]", "customer"), ("expand[1]", "invoice")]

    None values are skipped; booleans become "true"/"false".
    """
    pairs: List[Tuple[str, str]] = []
    for key, value in params.items():
        name = f"{prefix}[{key}]" if prefix else str(key)
        if value is None:
            continue
        if isinstance(value, Mapping):
            pairs.extend(flatten_params(value, name))
        elif isinstance(value, (list, tuple)):
            pairs.extend(_flatten_sequence(value, name))
        else:
            pairs.append((name, form_value(value)))
    return pairs


def _flatten_sequence(values: Sequence[Any], name: str) -> List[Tuple[str, str]]:
    pairs: List[Tuple[str, str]] = []
    for i, item in enumerate(values):
        item_name = f"{name}[{i}]"
        if item is None:
            continue
        if isinstance(item, Mapping):
            pairs.extend(flatten_params(item, item_name))
        elif isinstance(item, (list, tuple)):
            pairs.extend(_flatten_sequence(item, item_name))
        else:
            pairs.append((item_name, form_value(item)))
    return pairs


def encode_form(pairs: Sequence[Tuple[str, str]]) -> bytes:
    """application/x-www-form-urlencoded body for already flattened pairs."""
    return urlencode(list(pairs)).encode("ascii")


__all__ = [
    "safe_metadata",
    "form_value",
    "flatten_params",
    "encode_form",
]
