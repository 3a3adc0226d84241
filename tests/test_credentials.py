import pytest

from stripe_tasks import (
    ConfigurationError,
    Credential,
    DEFAULT_BASE_URL,
    normalize_base_url,
    render_optional,
    render_required,
    resolve_credential,
)


@pytest.mark.parametrize("key", [None, "", "   ", lambda: None, lambda: "  "])
def test_blank_api_key_is_a_configuration_error(key):
    with pytest.raises(ConfigurationError) as exc:
        resolve_credential(key)
    assert exc.value.field == "api_key"


def test_resolves_key_and_defaults_base_url():
    cred = resolve_credential("sk_test_123")
    assert cred.api_key == "sk_test_123"
    assert cred.base_url == DEFAULT_BASE_URL == "https://api.stripe.com/v1"
    assert cred.authorization == "Bearer sk_test_123"


@pytest.mark.parametrize(
    "raw, expected",
    [
        (None, "https://api.stripe.com/v1"),
        ("", "https://api.stripe.com/v1"),
        ("   ", "https://api.stripe.com/v1"),
        ("http://localhost:12111", "http://localhost:12111/v1"),
        ("http://localhost:12111/", "http://localhost:12111/v1"),
        ("http://localhost:12111/v1", "http://localhost:12111/v1"),
        ("http://localhost:12111/v1/", "http://localhost:12111/v1"),
        ("https://proxy.example.com/stripe", "https://proxy.example.com/stripe/v1"),
    ],
)
def test_normalize_base_url(raw, expected):
    assert normalize_base_url(raw) == expected


def test_key_is_rendered_on_every_call():
    keys = iter(["sk_test_old", "sk_test_rotated"])
    source = lambda: next(keys)  # noqa: E731

    assert resolve_credential(source).api_key == "sk_test_old"
    assert resolve_credential(source).api_key == "sk_test_rotated"


def test_base_url_can_be_templated():
    cred = resolve_credential("sk_test_1", lambda: "http://stripe-mock:12111/")
    assert cred.base_url == "http://stripe-mock:12111/v1"


def test_api_key_is_not_in_repr():
    cred = Credential(api_key="sk_live_supersecret")
    assert "supersecret" not in repr(cred)
    assert cred.livemode is True
    assert cred.masked()["api_key"] == "sk_live_***"


def test_render_optional_falls_back_to_default():
    assert render_optional(None, 10) == 10
    assert render_optional("", "x") == "x"
    assert render_optional(lambda: None, 5) == 5
    assert render_optional(0, 10) == 0
    assert render_optional(" value ") == "value"


def test_render_required_names_the_field():
    with pytest.raises(ConfigurationError) as exc:
        render_required(None, "customer_id")
    assert exc.value.field == "customer_id"
    assert render_required("cus_1", "customer_id") == "cus_1"


@pytest.mark.parametrize(
    "raw",
    ["api.stripe.com", "ftp://example.com", "http://[::1", "https://", "localhost:12111"],
)
def test_invalid_base_url_is_a_configuration_error(raw):
    with pytest.raises(ConfigurationError) as exc:
        resolve_credential("sk_test_1", raw)
    assert exc.value.field == "base_url"
