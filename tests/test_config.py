import httpx
import pytest

from stripe_tasks import ConfigurationError, HttpOptions, StripeConfig, debug


def test_env_values_are_used(monkeypatch):
    monkeypatch.setenv("STRIPE_API_KEY", "sk_test_env")
    monkeypatch.setenv("STRIPE_BASE_URL", "http://localhost:12111")
    monkeypatch.setenv("STRIPE_WEBHOOK_TOLERANCE", "60")
    monkeypatch.setenv("STRIPE_TIMEOUT", "12.5")
    monkeypatch.setenv("STRIPE_RETRIES", "2")

    cfg = StripeConfig()

    assert cfg.api_key == "sk_test_env"
    assert cfg.base_url == "http://localhost:12111/v1"
    assert cfg.webhook_tolerance == 60
    assert cfg.http.timeout == 12.5
    assert cfg.http.retries == 2
    assert cfg.credential().api_key == "sk_test_env"


def test_explicit_args_win_over_env(monkeypatch):
    monkeypatch.setenv("STRIPE_API_KEY", "sk_test_env")
    cfg = StripeConfig(api_key="sk_test_arg", http=HttpOptions(timeout=3))
    assert cfg.api_key == "sk_test_arg"
    assert cfg.http.timeout == 3
    assert cfg._source["api_key"] == "arg"


def test_defaults():
    cfg = StripeConfig()
    assert cfg.base_url == "https://api.stripe.com/v1"
    assert cfg.webhook_tolerance == 300
    assert cfg.http.timeout == 30.0
    assert cfg.http.retries == 0
    assert cfg.debug is False


def test_missing_key_fails_when_credential_is_requested():
    cfg = StripeConfig()
    with pytest.raises(ConfigurationError) as exc:
        cfg.credential()
    assert exc.value.field == "api_key"


def test_missing_webhook_secret():
    with pytest.raises(ConfigurationError) as exc:
        StripeConfig().require_webhook_secret()
    assert exc.value.field == "webhook_secret"


def test_bad_numeric_env_is_reported(monkeypatch):
    monkeypatch.setenv("STRIPE_TIMEOUT", "soon")
    with pytest.raises(ConfigurationError) as exc:
        HttpOptions()
    assert exc.value.field == "STRIPE_TIMEOUT"


def test_masked_hides_secrets():
    cfg = StripeConfig(api_key="sk_test_abcdef", webhook_secret="whsec_abcdef")
    masked = cfg.masked()
    assert masked["api_key"] == "sk_test_***"
    assert masked["webhook_secret"] == "whsec_***"
    assert "abcdef" not in str(masked)


def test_copy_with():
    cfg = StripeConfig(api_key="sk_test_a")
    other = cfg.copy_with(api_key="sk_test_b", webhook_tolerance=10)
    assert other.api_key == "sk_test_b"
    assert other.webhook_tolerance == 10
    assert cfg.api_key == "sk_test_a"


def test_httpx_timeout_override():
    opts = HttpOptions(timeout=30, connect_timeout=2)
    t = opts.httpx_timeout(1.5)
    assert isinstance(t, httpx.Timeout)
    assert t.read == 1.5
    assert t.connect == 2


def test_override_also_bounds_connect_phase():
    opts = HttpOptions(timeout=30, connect_timeout=10)
    assert opts.httpx_timeout(2).connect == 2
    assert opts.httpx_timeout().connect == 10


def test_bad_base_url_is_rejected_at_construction():
    with pytest.raises(ConfigurationError) as exc:
        StripeConfig(base_url="ftp://example.com")
    assert exc.value.field == "base_url"


def test_debug_setting_controls_diagnostics(monkeypatch, capsys):
    monkeypatch.setattr(debug, "_DEBUG_ENABLED", False)

    StripeConfig(api_key="sk_test_1", debug=True)
    assert debug.is_enabled() is True
    debug.dprint("hello")
    err = capsys.readouterr().err
    assert "[stripe-tasks]" in err
    assert "sk_test_1" not in err

    StripeConfig(debug=False)
    assert debug.is_enabled() is False


def test_debug_from_env(monkeypatch):
    monkeypatch.setattr(debug, "_DEBUG_ENABLED", False)
    monkeypatch.setenv("STRIPE_TASKS_DEBUG", "1")

    cfg = StripeConfig()

    assert cfg.debug is True
    assert debug.is_enabled() is True
