from __future__ import annotations
import argparse
import json
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

from dotenv import load_dotenv

from . import __version__
from .config import HttpOptions, StripeConfig
from .debug import dprint, set_debug
from .errors import ConfigurationError, RemoteError, SignatureError, StripeTasksError, ValidationError
from .operations import CATALOG, OperationDescriptor, lookup
from .tasks import run_operation
from .webhook import verify


def pretty(obj: Any) -> str:
    return json.dumps(obj, ensure_ascii=False, indent=2)


def add_common_args(p: argparse.ArgumentParser) -> None:
    p.add_argument("--api-key", default=None, help="Override STRIPE_API_KEY")
    p.add_argument("--base-url", default=None, help="Override STRIPE_BASE_URL")
    p.add_argument("--timeout", type=float, default=None, help="HTTP timeout seconds")


def parse_param(raw: str, descriptor: OperationDescriptor) -> Tuple[str, Any]:
    """
    Split "name=value". String parameters keep the text as-is; other types
    are read as JSON (``amount=2000``, ``metadata={"plan":"pro"}``).
    """
    name, sep, text = raw.partition("=")
    name = name.strip()
    if not sep or not name:
        raise ValidationError(f"parameter must look like name=value, got {raw!r}", field=raw)
    try:
        param = descriptor.param(name)
    except KeyError:
        # unknown names are reported by the descriptor itself
        return name, text
    if param.type == "str":
        return name, text
    try:
        return name, json.loads(text)
    except ValueError:
        return name, text


def _params(raw: Sequence[str], descriptor: OperationDescriptor) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    for item in raw:
        name, value = parse_param(item, descriptor)
        out[name] = value
    return out


# ------------------------------------------------------------------------------
# Commands
# ------------------------------------------------------------------------------

def cmd_operations(args: argparse.Namespace) -> int:
    rows: List[Dict[str, Any]] = []
    for d in CATALOG.values():
        rows.append({
            "operation": d.key,
            "method": d.method,
            "path": d.path_template,
            "params": [p.name + ("*" if p.required else "") for p in d.params],
            "sensitive": d.sensitive,
        })
    if args.json:
        print(pretty(rows))
        return 0
    for r in rows:
        params = ", ".join(r["params"]) or "-"
        print(f"{r['operation']:<24} {r['method']:<6} {r['path']:<48} {params}")
    return 0


def cmd_run(args: argparse.Namespace) -> int:
    descriptor = lookup(args.operation)
    params = _params(args.param or [], descriptor)
    cfg = StripeConfig(
        api_key=args.api_key,
        base_url=args.base_url,
        http=HttpOptions(timeout=args.timeout),
        debug=True if args.debug else None,
    )
    dprint("[CLI] Config", cfg.masked())
    out = run_operation(
        descriptor,
        cfg.credential(),
        params,
        include_full_record=args.full,
        options=cfg.http,
        idempotency_key=args.idempotency_key,
    )
    print(pretty(out.model_dump(mode="json")))
    return 0


def cmd_verify_webhook(args: argparse.Namespace) -> int:
    cfg = StripeConfig(
        webhook_secret=args.secret,
        webhook_tolerance=args.tolerance,
        debug=True if args.debug else None,
    )
    try:
        body = Path(args.file).read_bytes()
    except OSError as e:
        raise ConfigurationError(f"cannot read {args.file}: {e.strerror or e}", field="file") from e
    try:
        event = verify(
            body,
            args.header,
            cfg.require_webhook_secret(),
            tolerance=cfg.webhook_tolerance,
        )
    except SignatureError as e:
        print(f"[WEBHOOK] Verification failed: {e}", file=sys.stderr)
        return 2
    print(pretty(event.model_dump(mode="json", exclude={"raw"})))
    return 0


# ------------------------------------------------------------------------------
# Entry point
# ------------------------------------------------------------------------------

def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(prog="stripe-tasks", description="Run Stripe operations and verify webhooks")
    ap.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    ap.add_argument("--debug", action="store_true", help="Print sanitized diagnostics to stderr")
    ap.add_argument("--no-dotenv", action="store_true", help="Do not read a local .env file")
    sub = ap.add_subparsers(dest="command", required=True)

    p_ops = sub.add_parser("operations", help="List the supported operations")
    p_ops.add_argument("--json", action="store_true", help="Print as JSON")
    p_ops.set_defaults(func=cmd_operations)

    p_run = sub.add_parser("run", help="Run one operation, e.g. customer.create")
    add_common_args(p_run)
    p_run.add_argument("operation", help="resource.verb, see `operations`")
    p_run.add_argument("-p", "--param", action="append", metavar="NAME=VALUE", help="Operation parameter")
    p_run.add_argument("--full", action="store_true", help="Include the full remote record in the output")
    p_run.add_argument("--idempotency-key", default=None, help="Idempotency-Key for write operations")
    p_run.set_defaults(func=cmd_run)

    p_wh = sub.add_parser("verify-webhook", help="Verify a webhook signature and print the event")
    p_wh.add_argument("--secret", default=None, help="Endpoint secret (default STRIPE_WEBHOOK_SECRET)")
    p_wh.add_argument("--header", required=True, help="Stripe-Signature header value")
    p_wh.add_argument("--file", required=True, help="Path to the raw body to verify")
    p_wh.add_argument("--tolerance", type=int, default=None, help="Allowed clock skew in seconds")
    p_wh.set_defaults(func=cmd_verify_webhook)

    return ap


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    if args.debug:
        set_debug(True)
    if not args.no_dotenv:
        load_dotenv()

    try:
        return args.func(args)
    except RemoteError as e:
        print(f"[stripe-tasks] HTTP {e.status} req_id={e.request_id}: {e.message_text}", file=sys.stderr)
        return 1
    except StripeTasksError as e:
        print(f"[stripe-tasks] {type(e).__name__}: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
