"""
Resource operation catalog.

Every supported (resource, verb) pair is a frozen OperationDescriptor: HTTP
method, path template, parameter schema and output hints. Descriptors carry
no credential and no state, so one table serves every caller.

Descriptors check themselves when this module is imported (placeholders vs.
path params, duplicate names, wire names), so an inconsistent entry breaks
the import instead of a task run. Code that knows its operation statically
should reference the module constants (``operations.CUSTOMER_CREATE``); names
coming from configuration go through ``catalog(resource, verb)``.
"""
from __future__ import annotations

import string
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Mapping, Optional, Tuple

from .credentials import render_optional, render_value
from .errors import ConfigurationError, UnknownOperationError, ValidationError
from .utils import flatten_params, safe_metadata

PATH = "path"
QUERY = "query"
BODY = "body"

_TYPES = ("str", "int", "bool", "map", "list")

DEFAULT_LIST_LIMIT = 10
MAX_LIST_LIMIT = 100


@dataclass(frozen=True)
class Param:
    name: str
    type: str = "str"
    required: bool = False
    wire_name: Optional[str] = None
    location: Optional[str] = None
    default: Any = None
    minimum: Optional[int] = None
    maximum: Optional[int] = None

    @property
    def wire(self) -> str:
        return self.wire_name or self.name


@dataclass(frozen=True)
class BoundParams:
    """Validated parameters split by where they travel."""

    path: Dict[str, str] = field(default_factory=dict)
    query: List[Tuple[str, str]] = field(default_factory=list)
    body: List[Tuple[str, str]] = field(default_factory=list)


@dataclass(frozen=True)
class OperationDescriptor:
    resource: str
    verb: str
    method: str
    path_template: str
    params: Tuple[Param, ...] = ()
    sensitive: bool = False
    paginated: bool = False
    summary_fields: Tuple[str, ...] = ()
    one_of: Tuple[Tuple[str, ...], ...] = ()
    # (param, value, params required when param == value)
    required_when: Tuple[Tuple[str, str, Tuple[str, ...]], ...] = ()
    description: str = ""

    def __post_init__(self) -> None:
        method = self.method.upper()
        object.__setattr__(self, "method", method)

        placeholders = {
            fname for _, fname, _, _ in string.Formatter().parse(self.path_template) if fname
        }
        names = [p.name for p in self.params]
        if len(names) != len(set(names)):
            raise ValueError(f"{self.key}: duplicate parameter names")
        wires = [p.wire for p in self.params]
        if len(wires) != len(set(wires)):
            raise ValueError(f"{self.key}: duplicate wire names")

        resolved = []
        for p in self.params:
            if p.type not in _TYPES:
                raise ValueError(f"{self.key}: {p.name} has unknown type {p.type!r}")
            if p.name in placeholders:
                loc = PATH
            elif p.location == PATH:
                raise ValueError(f"{self.key}: path param {p.name} missing from {self.path_template}")
            else:
                loc = p.location or (BODY if method == "POST" else QUERY)
            if loc == PATH and not p.required:
                raise ValueError(f"{self.key}: path param {p.name} must be required")
            resolved.append(replace(p, location=loc))
        missing = placeholders - set(names)
        if missing:
            raise ValueError(f"{self.key}: no param for placeholder(s) {sorted(missing)}")
        for group in self.one_of:
            for name in group:
                if name not in names:
                    raise ValueError(f"{self.key}: one_of references unknown param {name}")
        for trigger, _, required in self.required_when:
            for name in (trigger, *required):
                if name not in names:
                    raise ValueError(f"{self.key}: required_when references unknown param {name}")
        object.__setattr__(self, "params", tuple(resolved))

    # ---------------- introspection ----------------

    @property
    def key(self) -> str:
        return f"{self.resource}.{self.verb}"

    @property
    def is_write(self) -> bool:
        return self.method == "POST"

    def param(self, name: str) -> Param:
        for p in self.params:
            if p.name == name:
                return p
        raise KeyError(name)

    def param_names(self) -> Tuple[str, ...]:
        return tuple(p.name for p in self.params)

    # ---------------- binding ----------------

    def bind(self, params: Optional[Mapping[str, Any]] = None) -> BoundParams:
        """
        Validate caller parameters against this descriptor.

        Only declared parameters the caller actually supplied are kept
        (plus declared defaults such as `limit`). Raises ConfigurationError
        for a missing path parameter and ValidationError for anything else.
        """
        params = dict(params or {})
        unknown = [k for k in params if k not in self.param_names()]
        if unknown:
            raise ValidationError(
                f"{self.key}: unknown parameter(s) {', '.join(sorted(unknown))}", field=sorted(unknown)[0]
            )

        values: Dict[str, Any] = {}
        for p in self.params:
            if p.required or p.location == PATH:
                # blank ids and required values count as missing
                value = render_optional(params.get(p.name), p.default)
            else:
                # "" is sent as-is: it clears the field remotely
                value = render_value(params.get(p.name))
                if value is None:
                    value = p.default
            if value is None:
                if p.required:
                    msg = f"{self.key}: {p.name} is required"
                    if p.location == PATH:
                        raise ConfigurationError(msg, field=p.name)
                    raise ValidationError(msg, field=p.name)
                continue
            values[p.name] = _check_type(self.key, p, value)

        self._check_rules(values)

        bound = BoundParams()
        for p in self.params:
            if p.name not in values:
                continue
            value = values[p.name]
            if p.location == PATH:
                bound.path[p.name] = str(value)
            elif p.location == QUERY:
                bound.query.extend(flatten_params({p.wire: value}))
            else:
                bound.body.extend(flatten_params({p.wire: value}))
        return bound

    def _check_rules(self, values: Mapping[str, Any]) -> None:
        for group in self.one_of:
            if not any(name in values for name in group):
                raise ValidationError(
                    f"{self.key}: one of {', '.join(group)} must be provided", field=group[0]
                )
        for trigger, expected, required in self.required_when:
            actual = values.get(trigger)
            if isinstance(actual, str) and actual.lower() == expected:
                for name in required:
                    if name not in values:
                        raise ValidationError(
                            f"{self.key}: {name} is required when {trigger} is {expected!r}", field=name
                        )


def _check_type(key: str, p: Param, value: Any) -> Any:
    if p.type == "str":
        if not isinstance(value, str):
            raise ValidationError(f"{key}: {p.name} must be a string", field=p.name)
        return value
    if p.type == "int":
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValidationError(f"{key}: {p.name} must be an integer", field=p.name)
        if p.minimum is not None and value < p.minimum:
            raise ValidationError(f"{key}: {p.name} must be >= {p.minimum}", field=p.name)
        if p.maximum is not None and value > p.maximum:
            raise ValidationError(f"{key}: {p.name} must be <= {p.maximum}", field=p.name)
        return value
    if p.type == "bool":
        if not isinstance(value, bool):
            raise ValidationError(f"{key}: {p.name} must be a boolean", field=p.name)
        return value
    if p.type == "map":
        if not isinstance(value, Mapping):
            raise ValidationError(f"{key}: {p.name} must be a mapping", field=p.name)
        return safe_metadata(value)
    if not isinstance(value, (list, tuple)):
        raise ValidationError(f"{key}: {p.name} must be a list", field=p.name)
    return list(value)


# ==============================================================================
# Parameter shorthands
# ==============================================================================

def _id(name: str) -> Param:
    return Param(name, required=True, location=PATH)

def _limit() -> Param:
    return Param("limit", "int", default=DEFAULT_LIST_LIMIT, minimum=1, maximum=MAX_LIST_LIMIT)

def _metadata() -> Param:
    return Param("metadata", "map")

def _amount(required: bool) -> Param:
    return Param("amount", "int", required=required, minimum=1)


# ==============================================================================
# Customers
# ==============================================================================

_CUSTOMER_FIELDS = (
    Param("name"),
    Param("email"),
    Param("description"),
    Param("phone"),
    _metadata(),
)

CUSTOMER_CREATE = OperationDescriptor(
    "customer", "create", "POST", "/customers",
    params=_CUSTOMER_FIELDS,
    sensitive=True,
    description="Create a customer with optional name, email and metadata.",
)

CUSTOMER_GET = OperationDescriptor(
    "customer", "get", "GET", "/customers/{customer_id}",
    params=(_id("customer_id"),),
    sensitive=True,
    description="Retrieve a customer by id.",
)

CUSTOMER_UPDATE = OperationDescriptor(
    "customer", "update", "POST", "/customers/{customer_id}",
    params=(_id("customer_id"), *_CUSTOMER_FIELDS),
    sensitive=True,
    description="Update name, email or metadata of a customer.",
)

CUSTOMER_DELETE = OperationDescriptor(
    "customer", "delete", "DELETE", "/customers/{customer_id}",
    params=(_id("customer_id"),),
    sensitive=True,
    summary_fields=("deleted",),
    description="Permanently delete a customer.",
)

CUSTOMER_LIST = OperationDescriptor(
    "customer", "list", "GET", "/customers",
    params=(_limit(), Param("email")),
    sensitive=True,
    paginated=True,
    description="List customers, optionally filtered by email (first page only).",
)

# ==============================================================================
# Balance
# ==============================================================================

BALANCE_RETRIEVE = OperationDescriptor(
    "balance", "retrieve", "GET", "/balance",
    summary_fields=("livemode",),
    description="Retrieve the current account balance.",
)

# ==============================================================================
# Payment intents
# ==============================================================================

_INTENT_SUMMARY = ("status", "amount", "currency", "customer")

PAYMENT_INTENT_CREATE = OperationDescriptor(
    "payment_intent", "create", "POST", "/payment_intents",
    params=(
        _amount(required=True),
        Param("currency", required=True),
        Param("customer"),
        Param("payment_method"),
        Param("description"),
        Param("receipt_email"),
        Param("confirm", "bool"),
        _metadata(),
    ),
    sensitive=True,
    summary_fields=_INTENT_SUMMARY,
    description="Create a PaymentIntent for an amount in minor currency units.",
)

PAYMENT_INTENT_CONFIRM = OperationDescriptor(
    "payment_intent", "confirm", "POST", "/payment_intents/{payment_intent_id}/confirm",
    params=(_id("payment_intent_id"), Param("payment_method"), Param("return_url")),
    sensitive=True,
    summary_fields=_INTENT_SUMMARY,
    description="Confirm a PaymentIntent, optionally with a payment method and return URL.",
)

PAYMENT_INTENT_LIST = OperationDescriptor(
    "payment_intent", "list", "GET", "/payment_intents",
    params=(_limit(), Param("customer")),
    sensitive=True,
    paginated=True,
    description="List PaymentIntents, optionally for one customer (first page only).",
)

# ==============================================================================
# Payment methods
# ==============================================================================

_METHOD_SUMMARY = ("type", "customer")

PAYMENT_METHOD_CREATE = OperationDescriptor(
    "payment_method", "create", "POST", "/payment_methods",
    params=(
        Param("type", required=True),
        Param("card_number", wire_name="card[number]"),
        Param("exp_month", "int", wire_name="card[exp_month]", minimum=1, maximum=12),
        Param("exp_year", "int", wire_name="card[exp_year]"),
        Param("cvc", wire_name="card[cvc]"),
        _metadata(),
    ),
    sensitive=True,
    summary_fields=_METHOD_SUMMARY,
    required_when=(("type", "card", ("card_number", "exp_month", "exp_year")),),
    description="Create a PaymentMethod; card details are required for type=card.",
)

PAYMENT_METHOD_ATTACH = OperationDescriptor(
    "payment_method", "attach", "POST", "/payment_methods/{payment_method_id}/attach",
    params=(_id("payment_method_id"), Param("customer", required=True)),
    sensitive=True,
    summary_fields=_METHOD_SUMMARY,
    description="Attach a PaymentMethod to a customer.",
)

PAYMENT_METHOD_DETACH = OperationDescriptor(
    "payment_method", "detach", "POST", "/payment_methods/{payment_method_id}/detach",
    params=(_id("payment_method_id"),),
    sensitive=True,
    summary_fields=_METHOD_SUMMARY,
    description="Detach a PaymentMethod from its customer.",
)

PAYMENT_METHOD_LIST = OperationDescriptor(
    "payment_method", "list", "GET", "/payment_methods",
    params=(Param("customer", required=True), Param("type", required=True), _limit()),
    sensitive=True,
    paginated=True,
    description="List a customer's PaymentMethods of one type (first page only).",
)

# ==============================================================================
# Refunds
# ==============================================================================

REFUND_CREATE = OperationDescriptor(
    "refund", "create", "POST", "/refunds",
    params=(
        Param("charge"),
        Param("payment_intent"),
        _amount(required=False),
        Param("reason"),
        _metadata(),
    ),
    summary_fields=("status", "amount", "currency", "charge", "payment_intent"),
    one_of=(("charge", "payment_intent"),),
    description="Refund a charge or PaymentIntent; omit amount for a full refund.",
)


# ==============================================================================
# Lookup
# ==============================================================================

CATALOG: Dict[Tuple[str, str], OperationDescriptor] = {
    (d.resource, d.verb): d
    for d in (
        CUSTOMER_CREATE,
        CUSTOMER_GET,
        CUSTOMER_UPDATE,
        CUSTOMER_DELETE,
        CUSTOMER_LIST,
        BALANCE_RETRIEVE,
        PAYMENT_INTENT_CREATE,
        PAYMENT_INTENT_CONFIRM,
        PAYMENT_INTENT_LIST,
        PAYMENT_METHOD_CREATE,
        PAYMENT_METHOD_ATTACH,
        PAYMENT_METHOD_DETACH,
        PAYMENT_METHOD_LIST,
        REFUND_CREATE,
    )
}

_RESOURCE_ALIASES = {
    "customers": "customer",
    "paymentintent": "payment_intent",
    "payment_intents": "payment_intent",
    "paymentmethod": "payment_method",
    "payment_methods": "payment_method",
    "refunds": "refund",
}

_VERB_ALIASES = {
    ("balance", "get"): "retrieve",
    ("customer", "retrieve"): "get",
}


def catalog(resource: str, verb: str) -> OperationDescriptor:
    """Look up a descriptor by resource and verb; accepts camelCase and plural names."""
    res = resource.strip()
    res = _RESOURCE_ALIASES.get(res.lower(), res.lower())
    vb = verb.strip().lower()
    vb = _VERB_ALIASES.get((res, vb), vb)
    try:
        return CATALOG[(res, vb)]
    except KeyError:
        raise UnknownOperationError(resource, verb) from None


def lookup(operation: str) -> OperationDescriptor:
    """Look up a "resource.verb" string."""
    resource, sep, verb = operation.partition(".")
    if not sep or not resource or not verb:
        raise UnknownOperationError(resource or operation, verb)
    return catalog(resource, verb)


__all__ = [
    "Param",
    "BoundParams",
    "OperationDescriptor",
    "CATALOG",
    "catalog",
    "lookup",
    "DEFAULT_LIST_LIMIT",
    "MAX_LIST_LIMIT",
    "CUSTOMER_CREATE",
    "CUSTOMER_GET",
    "CUSTOMER_UPDATE",
    "CUSTOMER_DELETE",
    "CUSTOMER_LIST",
    "BALANCE_RETRIEVE",
    "PAYMENT_INTENT_CREATE",
    "PAYMENT_INTENT_CONFIRM",
    "PAYMENT_INTENT_LIST",
    "PAYMENT_METHOD_CREATE",
    "PAYMENT_METHOD_ATTACH",
    "PAYMENT_METHOD_DETACH",
    "PAYMENT_METHOD_LIST",
    "REFUND_CREATE",
]
