import pytest

from upipay.config import load_settings
from upipay.errors import ConfigurationError
from upipay.main import create_app

CREDENTIALS = {"RAZORPAY_KEY_ID": "rzp_test_key", "RAZORPAY_KEY_SECRET": "secret"}


@pytest.mark.parametrize("env", [
    {},
    {"RAZORPAY_KEY_ID": "rzp_test_key"},
    {"RAZORPAY_KEY_SECRET": "secret"},
])
def test_missing_credentials(env):
    with pytest.raises(ConfigurationError):
        load_settings(env)


def test_defaults():
    settings = load_settings(CREDENTIALS)

    assert settings.port == 5000
    assert settings.server_url == "http://localhost:5000"
    assert settings.currency == "INR"
    assert settings.qr_strategy == "inline"
    assert settings.webhook_dedup is True
    assert settings.manual_capture is False
    assert settings.razorpay_webhook_secret is None
    assert settings.upi_id is None


def test_alternative_variable_names():
    settings = load_settings({
        "RAZORPAY_KEY_ID": "rzp_test_key",
        "RAZORPAY_SECRET_KEY": "secret",
        "UPI_RECIPIENT_ID": "merchant@oksbi",
    })

    assert settings.razorpay_key_secret == "secret"
    assert settings.upi_id == "merchant@oksbi"


def test_overrides():
    settings = load_settings({
        **CREDENTIALS,
        "PORT": "8080",
        "SERVER_URL": "https://pay.example.com/",
        "RAZORPAY_MANUAL_CAPTURE": "true",
        "WEBHOOK_DEDUP": "0",
        "QR_STRATEGY": "File",
        "ALLOWED_ORIGINS": "https://a.example, https://b.example",
        "GATEWAY_TIMEOUT_SECONDS": "2.5",
    })

    assert settings.port == 8080
    assert settings.server_url == "https://pay.example.com"
    assert settings.manual_capture is True
    assert settings.webhook_dedup is False
    assert settings.qr_strategy == "file"
    assert settings.allowed_origins == ["https://a.example", "https://b.example"]
    assert settings.gateway_timeout_seconds == 2.5


@pytest.mark.parametrize("env", [
    {"PORT": "eighty"},
    {"GATEWAY_TIMEOUT_SECONDS": "0"},
    {"QR_STRATEGY": "ascii-art"},
])
def test_invalid_values(env):
    with pytest.raises(ConfigurationError):
        load_settings({**CREDENTIALS, **env})


def test_app_refuses_to_start_without_credentials(monkeypatch):
    monkeypatch.delenv("RAZORPAY_KEY_ID", raising=False)
    monkeypatch.delenv("RAZORPAY_KEY_SECRET", raising=False)
    monkeypatch.delenv("RAZORPAY_SECRET_KEY", raising=False)

    with pytest.raises(ConfigurationError):
        create_app()
