import json

import respx

from stripe_tasks.cli import main
from stripe_tasks.webhook import generate_test_header

from .conftest import API_KEY, BASE

SECRET = "whsec_test"


def test_operations_json(capsys):
    assert main(["--no-dotenv", "operations", "--json"]) == 0
    rows = json.loads(capsys.readouterr().out)
    keys = {r["operation"] for r in rows}
    assert "payment_method.attach" in keys
    assert "refund.create" in keys


@respx.mock
def test_run_prints_shaped_output(capsys):
    route = respx.post(f"{BASE}/payment_intents").respond(
        200, json={"id": "pi_1", "status": "requires_payment_method", "amount": 2000, "currency": "usd"}
    )

    code = main([
        "--no-dotenv", "run", "payment_intent.create",
        "--api-key", API_KEY,
        "-p", "amount=2000",
        "-p", "currency=usd",
        "-p", 'metadata={"order": "1001"}',
    ])

    assert code == 0
    out = json.loads(capsys.readouterr().out)
    assert out["id"] == "pi_1"
    assert out["record"] is None
    body = route.calls.last.request.content.decode()
    assert "amount=2000" in body
    assert "metadata%5Border%5D=1001" in body


def test_run_without_key_fails(capsys):
    assert main(["--no-dotenv", "run", "balance.retrieve"]) == 1
    assert "api key" in capsys.readouterr().err.lower()


@respx.mock
def test_run_reports_remote_errors(capsys, monkeypatch):
    monkeypatch.setenv("STRIPE_API_KEY", API_KEY)
    respx.get(f"{BASE}/customers/cus_x").respond(
        404, json={"error": {"code": "resource_missing", "message": "No such customer"}}
    )

    assert main(["--no-dotenv", "run", "customer.get", "-p", "customer_id=cus_x"]) == 1
    assert "No such customer" in capsys.readouterr().err


def test_verify_webhook(tmp_path, capsys):
    body = b'{"id":"evt_1","type":"x"}'
    path = tmp_path / "event.json"
    path.write_bytes(body)
    header = generate_test_header(body, SECRET)

    code = main(["--no-dotenv", "verify-webhook", "--secret", SECRET, "--header", header, "--file", str(path)])

    assert code == 0
    out = json.loads(capsys.readouterr().out)
    assert out["id"] == "evt_1"
    assert "raw" not in out


def test_verify_webhook_rejects_bad_signature(tmp_path, capsys):
    path = tmp_path / "event.json"
    path.write_bytes(b'{"id":"evt_1","type":"x"}')
    header = generate_test_header(b"something else", SECRET)

    code = main(["--no-dotenv", "verify-webhook", "--secret", SECRET, "--header", header, "--file", str(path)])

    assert code == 2
    assert "Verification failed" in capsys.readouterr().err


def test_verify_webhook_missing_file(tmp_path, capsys):
    missing = tmp_path / "nope.json"

    code = main(["--no-dotenv", "verify-webhook", "--secret", SECRET, "--header", "t=1,v1=00", "--file", str(missing)])

    assert code == 1
    err = capsys.readouterr().err
    assert "cannot read" in err
    assert "Traceback" not in err
