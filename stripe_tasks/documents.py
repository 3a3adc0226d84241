from __future__ import annotations

import json
from typing import Any, Dict, List, Union

from .debug import dprint
from .errors import DecodeError

Document = Dict[str, Any]


def _reject_constant(name: str) -> Any:
    # json accepts NaN/Infinity by default; the API never sends them
    raise ValueError(f"non-standard JSON constant {name}")


def normalize(raw: Union[bytes, bytearray, str, None]) -> Document:
    """
    Parse a JSON response body into a plain, ordered dict.

    - key order is the order of the wire document
    - integers stay ``int`` at any size (amounts never pass through float)
    - an empty body becomes ``{}``
    - a top-level array is wrapped as ``{"data": [...]}``

    Raises DecodeError for invalid UTF-8, malformed JSON or a scalar
    top-level value.
    """
    if raw is None:
        return {}
    if isinstance(raw, (bytes, bytearray)):
        try:
            text = bytes(raw).decode("utf-8")
        except UnicodeDecodeError as e:
            raise DecodeError(f"response body is not valid UTF-8: {e}") from e
    else:
        text = raw

    if not text.strip():
        return {}

    try:
        doc = json.loads(text, parse_constant=_reject_constant)
    except ValueError as e:
        preview = text if len(text) <= 200 else text[:197] + "..."
        raise DecodeError(f"malformed JSON body: {e}", body=preview) from e

    if isinstance(doc, list):
        return {"data": doc}
    if not isinstance(doc, dict):
        raise DecodeError(f"expected a JSON object, got {type(doc).__name__}")
    return doc


def serialize(doc: Document) -> bytes:
    """Inverse of `normalize` for documents it produces."""
    return json.dumps(doc, ensure_ascii=False, separators=(",", ":"), allow_nan=False).encode("utf-8")


def list_items(doc: Document) -> List[Document]:
    """
    Items of a list-object response (``{"object": "list", "data": [...]}``).

    Only the first page is returned; `has_more` tells callers whether the
    remote side holds more.
    """
    data = doc.get("data")
    if not isinstance(data, list):
        raise DecodeError("list response has no 'data' array")
    items = [item for item in data if isinstance(item, dict)]
    dprint("documents.list_items()", {"count": len(items), "has_more": bool(doc.get("has_more"))})
    return items


__all__ = ["Document", "normalize", "serialize", "list_items"]
