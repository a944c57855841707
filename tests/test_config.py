import jwt
import pytest

from ordermgmt import config
from ordermgmt.auth import create_access_token, decode_access_token


@pytest.fixture
def restore_settings():
    saved = config.get_settings()
    yield
    config.override_settings(**saved._asdict())


def test_load_settings_reads_environment(monkeypatch):
    monkeypatch.setenv("JWT_EXP_SECONDS", "60")
    monkeypatch.setenv("LOG_LEVEL", "debug")
    monkeypatch.delenv("ADMIN_EMAIL", raising=False)
    settings = config.load_settings()
    assert settings.jwt_exp_seconds == 60
    assert settings.log_level == "DEBUG"
    assert settings.admin_email is None


def test_initial_admin_settings(monkeypatch):
    monkeypatch.setenv("ADMIN_EMAIL", "root@example.com")
    monkeypatch.setenv("ADMIN_PASSWORD", "secret1")
    settings = config.load_settings()
    assert (settings.admin_email, settings.admin_password) == ("root@example.com", "secret1")


def test_token_signed_with_current_secret(restore_settings):
    config.override_settings(jwt_secret="first-secret")
    token = create_access_token(5, "admin")
    assert decode_access_token(token)["sub"] == "5"

    config.override_settings(jwt_secret="second-secret")
    with pytest.raises(jwt.InvalidSignatureError):
        decode_access_token(token)
