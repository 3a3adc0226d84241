from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple
from urllib.parse import quote

import httpx

from . import __version__ as SDK_VERSION
from .operations import OperationDescriptor
from .config import HttpOptions
from .credentials import Credential
from .debug import dprint, djson, scrub_form, scrub_headers
from .errors import ConfigurationError, DecodeError, RemoteError, RequestTimeoutError
from .documents import Document, normalize
from .utils import encode_form


# -------------------- constants --------------------

REQUEST_ID_HEADERS: Tuple[str, ...] = ("Request-Id", "X-Request-Id")

FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"


def _first_header(headers: httpx.Headers, names: Tuple[str, ...]) -> Optional[str]:
    for n in names:
        v = headers.get(n)
        if v:
            return v
    return None


# -------------------- request / response --------------------

@dataclass
class PreparedRequest:
    """A fully validated request, built fresh for every call."""

    method: str
    url: str
    headers: Dict[str, str]
    query: List[Tuple[str, str]] = field(default_factory=list)
    form: List[Tuple[str, str]] = field(default_factory=list)

    @property
    def body(self) -> Optional[bytes]:
        if self.method != "POST":
            return None
        return encode_form(self.form)

    def redacted(self) -> Dict[str, Any]:
        """Safe-to-print view: bearer token and card fields masked."""
        return {
            "method": self.method,
            "url": self.url,
            "headers": scrub_headers(self.headers),
            "query": scrub_form(self.query),
            "form": scrub_form(self.form),
        }


@dataclass(frozen=True)
class ApiResponse:
    document: Document
    status: int
    request_id: Optional[str] = None


def build_request(
    descriptor: OperationDescriptor,
    credential: Credential,
    params: Optional[Mapping[str, Any]] = None,
    *,
    idempotency_key: Optional[str] = None,
    api_version: Optional[str] = None,
) -> PreparedRequest:
    """
    Validate `params` against `descriptor` and assemble the request.

    No I/O happens here: every ConfigurationError / ValidationError is raised
    before a connection is opened.
    """
    bound = descriptor.bind(params)
    path = descriptor.path_template.format(
        **{k: quote(v, safe="") for k, v in bound.path.items()}
    )

    headers: Dict[str, str] = {
        "Authorization": credential.authorization,
        "Accept": "application/json",
    }
    if descriptor.is_write:
        headers["Content-Type"] = FORM_CONTENT_TYPE
        if idempotency_key:
            headers["Idempotency-Key"] = idempotency_key
    if api_version:
        headers["Stripe-Version"] = api_version

    return PreparedRequest(
        method=descriptor.method,
        url=f"{credential.base_url}{path}",
        headers=headers,
        query=bound.query,
        form=bound.body,
    )


# -------------------- client --------------------

class StripeClient:
    """
    Lightweight sync executor for catalog operations.

    - Holds transport settings only; the credential is passed per call.
    - One HTTP request per `execute()`; connection-level retries come from
      the transport (`HttpOptions.retries`), nothing is replayed here.
    - Prints sanitized debug logs (Authorization and card data redacted).
    """

    def __init__(
        self,
        options: Optional[HttpOptions] = None,
        *,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.options = options or HttpOptions()
        self._client = httpx.Client(
            timeout=self.options.httpx_timeout(),
            transport=transport or self.options.transport(),
            headers={"User-Agent": f"stripe-tasks/{SDK_VERSION}"},
        )
        dprint("Client init", {**self.options.as_dict(), "sdk_version": SDK_VERSION})

    # ------------ context manager support ------------
    def __enter__(self) -> "StripeClient":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # ------------ internal helpers ------------
    def _handle(self, r: httpx.Response, req: PreparedRequest) -> ApiResponse:
        request_id = _first_header(r.headers, REQUEST_ID_HEADERS)
        dprint("Response", {"status": r.status_code, "request_id": request_id})

        if 200 <= r.status_code < 300:
            doc = normalize(r.content)
            djson("Response body", doc)
            return ApiResponse(document=doc, status=r.status_code, request_id=request_id)

        # Error path: keep the raw body, parse it when possible
        try:
            payload: Any = normalize(r.content)
        except DecodeError:
            payload = r.text
        raise RemoteError(
            r.status_code,
            payload,
            request_id,
            body=r.text,
            method=req.method,
            url=req.url,
        )

    # ------------ public API ------------
    def execute(
        self,
        descriptor: OperationDescriptor,
        credential: Credential,
        params: Optional[Mapping[str, Any]] = None,
        *,
        timeout: Optional[float] = None,
        idempotency_key: Optional[str] = None,
    ) -> ApiResponse:
        """
        Run one catalog operation.

        Raises ConfigurationError / ValidationError before any I/O,
        RequestTimeoutError when `timeout` (or the configured timeout) elapses,
        RemoteError for network failures and non-2xx answers, DecodeError
        for a malformed success body.
        """
        req = build_request(
            descriptor,
            credential,
            params,
            idempotency_key=idempotency_key,
            api_version=self.options.api_version,
        )
        dprint("HTTP send", {"operation": descriptor.key, "method": req.method, "url": req.url})
        djson("Request", req.redacted())

        try:
            r = self._client.request(
                req.method,
                req.url,
                params=req.query or None,
                content=req.body,
                headers=req.headers,
                timeout=self.options.httpx_timeout(timeout),
            )
        except httpx.InvalidURL as e:
            raise ConfigurationError(f"invalid request URL {req.url!r}: {e}", field="base_url") from e
        except httpx.TimeoutException as e:
            dprint("Timeout", {"operation": descriptor.key, "error": repr(e)})
            raise RequestTimeoutError(
                f"{req.method} {req.url} timed out", method=req.method, url=req.url
            ) from e
        except httpx.HTTPError as e:
            dprint("Network error", {"operation": descriptor.key, "error": repr(e)})
            raise RemoteError(-1, {"message": str(e)}, None, method=req.method, url=req.url) from e

        return self._handle(r, req)

    def close(self) -> None:
        dprint("Client close()")
        self._client.close()


def execute(
    descriptor: OperationDescriptor,
    credential: Credential,
    params: Optional[Mapping[str, Any]] = None,
    *,
    options: Optional[HttpOptions] = None,
    timeout: Optional[float] = None,
    idempotency_key: Optional[str] = None,
) -> ApiResponse:
    """One-shot helper: open a client, run one operation, close it."""
    with StripeClient(options) as client:
        return client.execute(
            descriptor, credential, params, timeout=timeout, idempotency_key=idempotency_key
        )


__all__ = ["ApiResponse", "PreparedRequest", "StripeClient", "build_request", "execute"]
