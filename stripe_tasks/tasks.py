"""
Generic task executor.

One function runs any catalog operation and shapes its output. Operations
whose descriptors are marked sensitive (customers, payment intents, payment
methods) only expose identifiers and summary fields unless the caller asks
for the full record.
"""
from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional, Union

from pydantic import BaseModel, Field

from .operations import OperationDescriptor, lookup
from .client import StripeClient
from .config import HttpOptions
from .credentials import Credential, Renderable, resolve_credential
from .debug import dprint
from .documents import Document, list_items

Operation = Union[OperationDescriptor, str]


class TaskOutput(BaseModel):
    operation: str
    status: int
    request_id: Optional[str] = None
    id: Optional[str] = None
    summary: Dict[str, Any] = Field(default_factory=dict)
    # full remote document; None when withheld
    record: Optional[Dict[str, Any]] = None
    # list operations only
    items: Optional[List[Dict[str, Any]]] = None
    count: Optional[int] = None
    has_more: Optional[bool] = None


def _descriptor(operation: Operation) -> OperationDescriptor:
    if isinstance(operation, OperationDescriptor):
        return operation
    return lookup(operation)


def shape_output(
    descriptor: OperationDescriptor,
    document: Document,
    *,
    status: int,
    request_id: Optional[str] = None,
    include_full_record: bool = False,
) -> TaskOutput:
    """Apply the disclosure policy of `descriptor` to a response document."""
    disclose = include_full_record or not descriptor.sensitive

    if descriptor.paginated:
        items = list_items(document)
        shown = items if disclose else [{"id": item.get("id")} for item in items]
        return TaskOutput(
            operation=descriptor.key,
            status=status,
            request_id=request_id,
            items=shown,
            count=len(items),
            has_more=bool(document.get("has_more", False)),
        )

    summary = {f: document.get(f) for f in descriptor.summary_fields if f in document}
    obj_id = document.get("id")
    return TaskOutput(
        operation=descriptor.key,
        status=status,
        request_id=request_id,
        id=obj_id if isinstance(obj_id, str) else None,
        summary=summary,
        record=document if disclose else None,
    )


def run_operation(
    operation: Operation,
    credential: Credential,
    params: Optional[Mapping[str, Any]] = None,
    *,
    include_full_record: bool = False,
    client: Optional[StripeClient] = None,
    options: Optional[HttpOptions] = None,
    timeout: Optional[float] = None,
    idempotency_key: Optional[str] = None,
) -> TaskOutput:
    """
    Execute one operation and shape its output.

    `operation` is a descriptor or a "resource.verb" string. A caller-owned
    `client` is reused; otherwise a one-shot client is opened with `options`.
    """
    descriptor = _descriptor(operation)
    dprint("tasks.run_operation()", {
        "operation": descriptor.key,
        "params": sorted((params or {}).keys()),
        "include_full_record": include_full_record,
    })

    if client is not None:
        resp = client.execute(
            descriptor, credential, params, timeout=timeout, idempotency_key=idempotency_key
        )
    else:
        with StripeClient(options) as owned:
            resp = owned.execute(
                descriptor, credential, params, timeout=timeout, idempotency_key=idempotency_key
            )

    return shape_output(
        descriptor,
        resp.document,
        status=resp.status,
        request_id=resp.request_id,
        include_full_record=include_full_record,
    )


def run_task(
    operation: Operation,
    api_key: Renderable[str],
    params: Optional[Mapping[str, Any]] = None,
    *,
    base_url: Renderable[str] = None,
    **kwargs: Any,
) -> TaskOutput:
    """
    Resolve the credential, then run the operation.

    The key is rendered on every call; an empty key raises ConfigurationError
    before the operation is looked at by the network layer.
    """
    credential = resolve_credential(api_key, base_url)
    return run_operation(operation, credential, params, **kwargs)


__all__ = ["TaskOutput", "run_operation", "run_task", "shape_output"]
