"""
Credential resolution.

API keys and endpoint overrides usually arrive as templated values that the
surrounding workflow renders at execution time. Here a "renderable" is either
a plain string, a zero-argument callable returning a string (or None), or None.
Rendering happens on every call so that a rotated secret is picked up by the
next task run.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Optional, TypeVar, Union

import httpx

from .debug import dprint, mask_secret
from .errors import ConfigurationError

DEFAULT_BASE_URL = "https://api.stripe.com/v1"
API_VERSION_SEGMENT = "v1"

T = TypeVar("T")
Renderable = Union[T, Callable[[], Optional[T]], None]


def render_value(value: Renderable) -> object:
    """Evaluate a renderable as-is; no stripping, blank strings are kept."""
    return value() if callable(value) else value


def _is_blank(value: object) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def render_optional(value: Renderable, default: Optional[T] = None) -> Optional[T]:
    """
    Render `value`, falling back to `default` when it is absent or blank.

    Absence is not an error here; use `render_required` for that.
    """
    rendered = render_value(value)
    if _is_blank(rendered):
        return default
    return rendered.strip() if isinstance(rendered, str) else rendered  # type: ignore[return-value]


def render_required(value: Renderable, field_name: str) -> T:
    """Render `value` or raise ConfigurationError naming `field_name`."""
    rendered = render_optional(value)
    if rendered is None:
        raise ConfigurationError(f"{field_name} is required", field=field_name)
    return rendered


def normalize_base_url(url: Optional[str]) -> str:
    """
    Return the API root ending in the versioned segment.

    "https://api.stripe.com"     -> "https://api.stripe.com/v1"
    "https://api.stripe.com/"    -> "https://api.stripe.com/v1"
    "https://api.stripe.com/v1/" -> "https://api.stripe.com/v1"

    Raises ConfigurationError(field="base_url") unless the URL is absolute
    http(s) with a host.
    """
    url = (url or "").strip()
    if not url:
        return DEFAULT_BASE_URL
    try:
        parsed = httpx.URL(url)
    except httpx.InvalidURL as e:
        raise ConfigurationError(f"invalid base_url {url!r}: {e}", field="base_url") from e
    if parsed.scheme not in ("http", "https") or not parsed.host:
        raise ConfigurationError(
            f"base_url must be an absolute http(s) URL, got {url!r}", field="base_url"
        )
    url = url.rstrip("/")
    if url.rsplit("/", 1)[-1] != API_VERSION_SEGMENT:
        url = f"{url}/{API_VERSION_SEGMENT}"
    return url


@dataclass(frozen=True)
class Credential:
    """A resolved API key plus the versioned API root it is used against."""

    api_key: str = field(repr=False)
    base_url: str = DEFAULT_BASE_URL

    @property
    def authorization(self) -> str:
        return f"Bearer {self.api_key}"

    @property
    def livemode(self) -> bool:
        return self.api_key.startswith(("sk_live_", "rk_live_"))

    def masked(self) -> dict:
        return {"api_key": mask_secret(self.api_key), "base_url": self.base_url}


def resolve_credential(api_key: Renderable[str], base_url: Renderable[str] = None) -> Credential:
    """
    Render the API key and optional base URL into a Credential.

    Raises ConfigurationError when the key renders empty; nothing else is
    attempted in that case.
    """
    key = render_optional(api_key)
    if key is None:
        dprint("credentials.resolve_credential(): api key missing")
        raise ConfigurationError("Stripe API key is required", field="api_key")
    cred = Credential(api_key=key, base_url=normalize_base_url(render_optional(base_url)))
    dprint("credentials.resolve_credential()", cred.masked())
    return cred


__all__ = [
    "DEFAULT_BASE_URL",
    "Credential",
    "Renderable",
    "normalize_base_url",
    "render_optional",
    "render_required",
    "render_value",
    "resolve_credential",
]
