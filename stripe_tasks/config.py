from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from typing import Optional, Dict, Any

import httpx
from dotenv import load_dotenv

from .credentials import Credential, normalize_base_url, resolve_credential
from .debug import dprint, is_enabled, mask_secret, set_debug
from .errors import ConfigurationError


DEFAULT_TIMEOUT = 30.0
DEFAULT_WEBHOOK_TOLERANCE = 300


# ----------------------------- helpers -----------------------------

def _parse_bool(value: Optional[str], default: bool) -> bool:
    if value is None:
        return default
    v = value.strip().lower()
    return v not in ("0", "false", "no", "off", "")


def _parse_float(name: str, value: Optional[str], default: Optional[float]) -> Optional[float]:
    if value is None or not value.strip():
        return default
    try:
        return float(value)
    except ValueError:
        raise ConfigurationError(f"{name} must be a number, got {value!r}", field=name)


def _parse_int(name: str, value: Optional[str], default: int) -> int:
    if value is None or not value.strip():
        return default
    try:
        return int(value)
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got {value!r}", field=name)


# ----------------------------- transport tuning -----------------------------

@dataclass
class HttpOptions:
    """
    Pass-through tuning for the underlying httpx transport.

    `retries` is handed to ``httpx.HTTPTransport(retries=...)``, which only
    retries failed connection attempts. No request is ever replayed by this
    package.
    """

    timeout: Optional[float] = None
    connect_timeout: Optional[float] = None
    proxy: Optional[str] = None
    retries: Optional[int] = None
    verify: bool = True
    api_version: Optional[str] = None

    def __post_init__(self) -> None:
        env = os.environ
        if self.timeout is None:
            self.timeout = _parse_float("STRIPE_TIMEOUT", env.get("STRIPE_TIMEOUT"), DEFAULT_TIMEOUT)
        if self.connect_timeout is None:
            self.connect_timeout = _parse_float("STRIPE_CONNECT_TIMEOUT", env.get("STRIPE_CONNECT_TIMEOUT"), None)
        if not self.proxy:
            self.proxy = env.get("STRIPE_PROXY") or None
        if self.retries is None:
            self.retries = _parse_int("STRIPE_RETRIES", env.get("STRIPE_RETRIES"), 0)
        if not self.api_version:
            self.api_version = env.get("STRIPE_API_VERSION") or None

        if self.timeout is not None and self.timeout <= 0:
            raise ConfigurationError("timeout must be positive", field="timeout")
        if self.retries < 0:
            raise ConfigurationError("retries must be >= 0", field="retries")

    def httpx_timeout(self, override: Optional[float] = None) -> httpx.Timeout:
        total = override if override is not None else self.timeout
        connect = self.connect_timeout or total
        if override is not None and connect is not None:
            # a per-call deadline also bounds the connect phase
            connect = min(connect, override)
        return httpx.Timeout(total, connect=connect)

    def transport(self) -> httpx.HTTPTransport:
        return httpx.HTTPTransport(retries=int(self.retries or 0), verify=self.verify, proxy=self.proxy)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "timeout": self.timeout,
            "connect_timeout": self.connect_timeout,
            "proxy": "(set)" if self.proxy else None,
            "retries": self.retries,
            "verify": self.verify,
            "api_version": self.api_version,
        }


# ----------------------------- config -----------------------------

@dataclass
class StripeConfig:
    """
    Configuration with precedence:
      explicit kwargs > environment (.env) > defaults

    The API key is only rendered into a Credential by `credential()`, so a
    config without a key is fine for webhook-only use.
    """

    # Credentials
    api_key: Optional[str] = None
    base_url: Optional[str] = None

    # Webhooks
    webhook_secret: Optional[str] = None
    webhook_tolerance: Optional[int] = None

    # Transport
    http: Optional[HttpOptions] = None

    # Diagnostics
    debug: Optional[bool] = None

    # Internal: where each field was sourced from (arg/env/default) for debugging
    _source: Dict[str, str] = field(default_factory=dict, init=False, repr=False)

    def __post_init__(self) -> None:
        env = os.environ

        if self.api_key is None or self.api_key == "":
            self.api_key = env.get("STRIPE_API_KEY", "")
            self._source["api_key"] = "env"
        else:
            self._source["api_key"] = "arg"

        if self.base_url is None or self.base_url == "":
            self.base_url = normalize_base_url(env.get("STRIPE_BASE_URL"))
            self._source["base_url"] = "env/default"
        else:
            self.base_url = normalize_base_url(self.base_url)
            self._source["base_url"] = "arg"

        if self.webhook_secret is None or self.webhook_secret == "":
            self.webhook_secret = env.get("STRIPE_WEBHOOK_SECRET", "")
            self._source["webhook_secret"] = "env"
        else:
            self._source["webhook_secret"] = "arg"

        if self.webhook_tolerance is None:
            self.webhook_tolerance = _parse_int(
                "STRIPE_WEBHOOK_TOLERANCE", env.get("STRIPE_WEBHOOK_TOLERANCE"), DEFAULT_WEBHOOK_TOLERANCE
            )
            self._source["webhook_tolerance"] = "env/default"
        else:
            self.webhook_tolerance = int(self.webhook_tolerance)
            self._source["webhook_tolerance"] = "arg"

        if self.http is None:
            self.http = HttpOptions()
            self._source["http"] = "env/default"
        else:
            self._source["http"] = "arg"

        if self.debug is None:
            # an already enabled flag (--debug, set_debug) stays on
            self.debug = _parse_bool(env.get("STRIPE_TASKS_DEBUG"), is_enabled())
            self._source["debug"] = "env/default"
        else:
            self.debug = bool(self.debug)
            self._source["debug"] = "arg"
        set_debug(self.debug)

        dprint("Loaded config:", self.masked())

    # -------- validation & utils --------
    def credential(self) -> Credential:
        """Resolve the configured key and endpoint; raises ConfigurationError without a key."""
        return resolve_credential(self.api_key, self.base_url)

    def require_webhook_secret(self) -> str:
        if not self.webhook_secret:
            raise ConfigurationError("STRIPE_WEBHOOK_SECRET is required for webhook verification.",
                                     field="webhook_secret")
        return self.webhook_secret

    def masked(self) -> dict:
        """Return a sanitized dict for logging/diagnostics."""
        return {
            "api_key": mask_secret(self.api_key),
            "base_url": self.base_url,
            "webhook_secret": mask_secret(self.webhook_secret),
            "webhook_tolerance": self.webhook_tolerance,
            "http": self.http.as_dict() if self.http else None,
            "debug": self.debug,
            "source": self._source,
        }

    def copy_with(
        self,
        *,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        webhook_secret: Optional[str] = None,
        webhook_tolerance: Optional[int] = None,
        http: Optional[HttpOptions] = None,
        debug: Optional[bool] = None,
    ) -> "StripeConfig":
        """Create a modified copy (handy in tests)."""
        return replace(
            self,
            api_key=self.api_key if api_key is None else api_key,
            base_url=self.base_url if base_url is None else base_url,
            webhook_secret=self.webhook_secret if webhook_secret is None else webhook_secret,
            webhook_tolerance=self.webhook_tolerance if webhook_tolerance is None else webhook_tolerance,
            http=self.http if http is None else http,
            debug=self.debug if debug is None else debug,
        )

    # -------- alt constructors --------
    @classmethod
    def from_env(cls, *, dotenv: bool = True) -> "StripeConfig":
        """Build config from the environment, reading a local .env first when `dotenv` is set."""
        if dotenv:
            load_dotenv()
        return cls()


__all__ = ["HttpOptions", "StripeConfig", "DEFAULT_TIMEOUT", "DEFAULT_WEBHOOK_TOLERANCE"]
