import pytest

from async_code_mailer.config import ConfigurationError, Settings, load_settings, parse_delays


def test_defaults_without_file_or_env(tmp_path):
    settings = load_settings(tmp_path / "missing.ini", environ={})

    assert settings == Settings()
    assert settings.smtp_configured is False
    assert settings.rate_max_attempts == 3
    assert settings.rate_window_seconds == 900
    assert settings.foreground_attempts == 3
    assert settings.retry_delays == (1.0, 3.0, 7.0)
    assert settings.background_retry_limit == 3
    assert settings.requeue_interval == 60.0
    assert settings.http_port == 3000


def test_environment_fallbacks(tmp_path):
    env = {
        "ACM_SMTP_HOST": "smtp.example.com",
        "ACM_SMTP_PORT": "465",
        "ACM_SMTP_USER": "mailer@example.com",
        "ACM_SMTP_PASSWORD": "secret",
        "ACM_RETRY_DELAYS": "2, 4",
        "ACM_LOG_DELIVERY_ACTIVITY": "yes",
        "ACM_LOG_LEVEL": "debug",
    }
    settings = load_settings(tmp_path / "missing.ini", environ=env)

    assert settings.smtp_configured is True
    assert settings.smtp_port == 465
    assert settings.sender == "mailer@example.com"
    assert settings.retry_delays == (2.0, 4.0)
    assert settings.log_delivery_activity is True
    assert settings.log_level == "DEBUG"


def test_file_values_win_over_environment(tmp_path):
    config = tmp_path / "config.ini"
    config.write_text(
        "[smtp]\n"
        "host = file.example.com\n"
        "from_address = codes@example.com\n"
        "[rate_limit]\n"
        "max_attempts = 5\n"
        "window_seconds = 60\n"
        "[delivery]\n"
        "background_retry_limit = 4\n"
        "requeue_interval_seconds = 30\n"
    )
    env = {"ACM_SMTP_HOST": "env.example.com", "ACM_SMTP_USER": "u", "ACM_SMTP_PASSWORD": "p"}

    settings = load_settings(config, environ=env)

    assert settings.smtp_host == "file.example.com"
    assert settings.sender == "codes@example.com"
    assert settings.rate_max_attempts == 5
    assert settings.rate_window_seconds == 60
    assert settings.background_retry_limit == 4
    assert settings.requeue_interval == 30


def test_config_path_from_environment(tmp_path):
    config = tmp_path / "custom.ini"
    config.write_text("[server]\nport = 8080\n")
    settings = load_settings(environ={"ACM_CONFIG": str(config)})
    assert settings.http_port == 8080


def test_blank_credentials_mean_simulation(tmp_path):
    env = {"ACM_SMTP_HOST": "smtp.example.com", "ACM_SMTP_USER": "u", "ACM_SMTP_PASSWORD": "  "}
    settings = load_settings(tmp_path / "missing.ini", environ=env)
    assert settings.smtp_password is None
    assert settings.smtp_configured is False


@pytest.mark.parametrize(
    "env",
    [
        {"ACM_SMTP_PORT": "abc"},
        {"ACM_RATE_MAX_ATTEMPTS": "0"},
        {"ACM_RETRY_DELAYS": ","},
        {"ACM_RETRY_DELAYS": "1,-2"},
        {"ACM_REQUEUE_INTERVAL": "soon"},
    ],
)
def test_invalid_values_raise(tmp_path, env):
    with pytest.raises(ConfigurationError):
        load_settings(tmp_path / "missing.ini", environ=env)


def test_parse_delays():
    assert parse_delays("1, 3,7") == (1.0, 3.0, 7.0)
    assert parse_delays(None) == (1.0, 3.0, 7.0)


def test_as_dict_masks_password():
    data = Settings(smtp_password="secret").as_dict()
    assert data["smtp_password"] == "********"
    assert data["smtp_configured"] is False
    assert Settings(smtp_password="secret").as_dict(mask_secrets=False)["smtp_password"] == "secret"
