from pathlib import Path

import pytest

from tfdeploy import predict_savedmodel
from tfdeploy.config import DEFAULT_CLOUDML_ENDPOINT, load_settings
from tfdeploy.errors import ConfigurationError

REPO_ROOT = Path(__file__).resolve().parents[1]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for var in (
        "TFDEPLOY_CONFIG",
        "TFDEPLOY_CONNECT_TIMEOUT",
        "TFDEPLOY_READ_TIMEOUT",
        "TFDEPLOY_MAX_RETRIES",
        "CLOUDML_PROJECT",
        "GOOGLE_CLOUD_PROJECT",
        "CLOUDML_ACCESS_TOKEN",
        "CLOUDML_ENDPOINT",
        "TFDEPLOY_HOST",
        "TFDEPLOY_PORT",
        "LOG_LEVEL",
    ):
        monkeypatch.delenv(var, raising=False)


def test_defaults():
    settings = load_settings()
    assert settings.http.timeout == (10.0, 60.0)
    assert settings.http.max_retries == 0
    assert settings.cloudml.endpoint == DEFAULT_CLOUDML_ENDPOINT
    assert settings.server.port == 8089


def test_sample_params_file_loads():
    settings = load_settings(str(REPO_ROOT / "params.yaml"))
    assert settings.server.host == "127.0.0.1"
    assert settings.logging.serialize is True


def test_yaml_then_env(tmp_path, monkeypatch):
    config = tmp_path / "params.yaml"
    config.write_text("http:\n  read_timeout: 5\n  max_retries: 2\ncloudml:\n  project: from-file\n")
    monkeypatch.setenv("TFDEPLOY_CONFIG", str(config))
    monkeypatch.setenv("CLOUDML_PROJECT", "from-env")
    monkeypatch.setenv("TFDEPLOY_PORT", "9000")

    settings = load_settings()
    assert settings.http.read_timeout == 5
    assert settings.http.max_retries == 2
    assert settings.cloudml.project == "from-env"
    assert settings.server.port == 9000


def test_empty_yaml(tmp_path):
    config = tmp_path / "empty.yaml"
    config.write_text("")
    assert load_settings(str(config)).http.read_timeout == 60.0


def test_bad_env_value_is_a_configuration_error(monkeypatch):
    monkeypatch.setenv("TFDEPLOY_MAX_RETRIES", "abc")
    with pytest.raises(ConfigurationError, match="http.max_retries"):
        load_settings()


def test_missing_settings_file(tmp_path, monkeypatch):
    monkeypatch.setenv("TFDEPLOY_CONFIG", str(tmp_path / "missing.yaml"))
    with pytest.raises(ConfigurationError, match="Could not read settings file"):
        load_settings()


def test_invalid_yaml(tmp_path):
    config = tmp_path / "broken.yaml"
    config.write_text("http: [unclosed\n")
    with pytest.raises(ConfigurationError):
        load_settings(str(config))


def test_yaml_that_is_not_a_mapping(tmp_path):
    config = tmp_path / "list.yaml"
    config.write_text("- http\n- server\n")
    with pytest.raises(ConfigurationError, match="mapping"):
        load_settings(str(config))


def test_prediction_surfaces_settings_errors(monkeypatch):
    monkeypatch.setenv("TFDEPLOY_PORT", "not-a-port")
    with pytest.raises(ConfigurationError):
        predict_savedmodel([[1.0]], "https://example.com/predict")
