import hashlib
import hmac

import pytest

from stripe_tasks import (
    ConfigurationError,
    DecodeError,
    MalformedHeaderError,
    NoMatchingSignatureError,
    SignatureError,
    StripeConfig,
    TimestampOutsideToleranceError,
    ValidationError,
    WebhookVerifier,
    compute_signature,
    generate_test_header,
    parse_signature_header,
    verify,
)

SECRET = "whsec_test"
PAYLOAD = b'{"id":"evt_1","type":"x"}'
T = 1700000000


def _sig(payload=PAYLOAD, secret=SECRET, t=T):
    return hmac.new(secret.encode(), f"{t}.".encode() + payload, hashlib.sha256).hexdigest()


def test_compute_signature_matches_plain_hmac():
    assert compute_signature(T, PAYLOAD, SECRET) == _sig()
    assert compute_signature(str(T), PAYLOAD.decode(), SECRET.encode()) == _sig()


def test_valid_delivery_is_accepted():
    header = f"t={T},v1={_sig()}"
    event = verify(PAYLOAD, header, SECRET, now=T + 10)
    assert event.id == "evt_1"
    assert event.type == "x"
    assert event.timestamp == T
    assert event.raw == PAYLOAD.decode()
    assert event.data == {}


def test_str_payload_is_accepted():
    event = verify(PAYLOAD.decode(), generate_test_header(PAYLOAD, SECRET, timestamp=T), SECRET, now=T)
    assert event.id == "evt_1"


def test_old_timestamp_is_rejected():
    header = f"t={T},v1={_sig()}"
    with pytest.raises(TimestampOutsideToleranceError) as exc:
        verify(PAYLOAD, header, SECRET, now=T + 400)
    assert exc.value.tolerance == 300
    assert "timestamp outside tolerance" in str(exc.value)


def test_future_timestamp_is_rejected():
    with pytest.raises(TimestampOutsideToleranceError):
        verify(PAYLOAD, f"t={T},v1={_sig()}", SECRET, tolerance=60, now=T - 61)


def test_tolerance_none_skips_the_time_check():
    event = verify(PAYLOAD, f"t={T},v1={_sig()}", SECRET, tolerance=None, now=T + 10**6)
    assert event.id == "evt_1"


def test_negative_tolerance_is_rejected():
    with pytest.raises(ValidationError):
        verify(PAYLOAD, f"t={T},v1={_sig()}", SECRET, tolerance=-1, now=T)


def test_any_v1_entry_may_match():
    header = f"t={T},v1={'0' * 64},v0={'1' * 64},v1={_sig()}"
    assert verify(PAYLOAD, header, SECRET, now=T).id == "evt_1"


def test_signature_comparison_ignores_hex_case():
    assert verify(PAYLOAD, f"t={T},v1={_sig().upper()}", SECRET, now=T).id == "evt_1"


def test_tampered_payload_is_rejected():
    tampered = PAYLOAD.replace(b"evt_1", b"evt_2")
    with pytest.raises(NoMatchingSignatureError):
        verify(tampered, f"t={T},v1={_sig()}", SECRET, now=T)


def test_wrong_secret_is_rejected():
    with pytest.raises(NoMatchingSignatureError):
        verify(PAYLOAD, f"t={T},v1={_sig(secret='whsec_other')}", SECRET, now=T)


def test_signature_is_checked_before_timestamp():
    with pytest.raises(NoMatchingSignatureError):
        verify(PAYLOAD, f"t={T},v1={'0' * 64}", SECRET, now=T + 10**6)


def test_timestamp_is_signed_as_sent():
    # a leading zero changes the signed payload
    header = f"t=0{T},v1={_sig()}"
    with pytest.raises(NoMatchingSignatureError):
        verify(PAYLOAD, header, SECRET, now=T)


@pytest.mark.parametrize(
    "header",
    [
        None,
        "",
        "garbage",
        f"v1={'0' * 64}",
        f"t=abc,v1={'0' * 64}",
        f"t={T},t={T},v1={'0' * 64}",
        f"t={T}",
        f"t={T},v0={'0' * 64}",
    ],
)
def test_malformed_headers(header):
    with pytest.raises(MalformedHeaderError) as exc:
        verify(PAYLOAD, header, SECRET, now=T)
    assert isinstance(exc.value, SignatureError)


def test_parse_signature_header():
    parsed = parse_signature_header(f" t={T} , v1=abc , v1=def ,foo=bar")
    assert parsed.timestamp == T
    assert parsed.timestamp_raw == str(T)
    assert parsed.signatures == ("abc", "def")


def test_empty_secret_is_a_configuration_error():
    with pytest.raises(ConfigurationError):
        verify(PAYLOAD, f"t={T},v1={_sig()}", "", now=T)


def test_signed_non_event_body_is_a_decode_error():
    body = b'{"hello":"world"}'
    with pytest.raises(DecodeError):
        verify(body, generate_test_header(body, SECRET, timestamp=T), SECRET, now=T)

    body = b"not json"
    with pytest.raises(DecodeError):
        verify(body, generate_test_header(body, SECRET, timestamp=T), SECRET, now=T)


def test_event_fields_are_extracted():
    body = (
        b'{"id":"evt_2","object":"event","type":"payment_intent.succeeded","created":1700000000,'
        b'"livemode":false,"api_version":"2024-06-20",'
        b'"data":{"object":{"id":"pi_1","amount":2000,"currency":"usd"}}}'
    )
    event = verify(body, generate_test_header(body, SECRET, timestamp=T), SECRET, now=T)
    assert event.type == "payment_intent.succeeded"
    assert event.data == {"id": "pi_1", "amount": 2000, "currency": "usd"}
    assert event.payload["object"] == "event"
    assert event.created == 1700000000
    assert event.livemode is False
    assert event.api_version == "2024-06-20"


def test_verifier_from_config(monkeypatch):
    monkeypatch.setenv("STRIPE_WEBHOOK_SECRET", SECRET)
    monkeypatch.setenv("STRIPE_WEBHOOK_TOLERANCE", "5")
    verifier = WebhookVerifier.from_config(StripeConfig())

    header = generate_test_header(PAYLOAD, SECRET, timestamp=T)
    assert verifier.verify_headers(PAYLOAD, {"stripe-signature": header}, now=T + 5).id == "evt_1"
    with pytest.raises(TimestampOutsideToleranceError):
        verifier.verify(PAYLOAD, header, now=T + 6)
    assert SECRET not in repr(verifier)


def test_verifier_without_secret():
    with pytest.raises(ConfigurationError):
        WebhookVerifier.from_config(StripeConfig())
