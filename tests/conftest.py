import pytest

from stripe_tasks import Credential, HttpOptions, StripeClient

API_KEY = "sk_test_4eC39HqLyjWDarjtT1zdp7dc"
BASE = "https://api.stripe.com/v1"

_ENV_VARS = (
    "STRIPE_API_KEY",
    "STRIPE_BASE_URL",
    "STRIPE_TIMEOUT",
    "STRIPE_CONNECT_TIMEOUT",
    "STRIPE_PROXY",
    "STRIPE_RETRIES",
    "STRIPE_API_VERSION",
    "STRIPE_WEBHOOK_SECRET",
    "STRIPE_WEBHOOK_TOLERANCE",
    "STRIPE_TASKS_DEBUG",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def credential():
    return Credential(api_key=API_KEY, base_url=BASE)


@pytest.fixture
def client():
    c = StripeClient(HttpOptions(timeout=5.0))
    yield c
    c.close()
