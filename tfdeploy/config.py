import os
from typing import List, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .errors import ConfigurationError
from .utils import load_config

DEFAULT_CLOUDML_ENDPOINT = "https://ml.googleapis.com/v1"


class ConfigModel(BaseModel):
    model_config = ConfigDict(extra="ignore")


class HttpConfig(ConfigModel):
    connect_timeout: float = Field(default=10.0, description="Seconds to wait for a connection")
    read_timeout: float = Field(default=60.0, description="Seconds to wait for a response body")
    max_retries: int = Field(default=0, ge=0, description="Extra attempts on connection errors and 429/5xx")
    retry_backoff: float = Field(default=1.0, ge=0, description="Linear backoff step in seconds")

    @property
    def timeout(self):
        return (self.connect_timeout, self.read_timeout)


class CloudMLConfig(ConfigModel):
    endpoint: str = Field(default=DEFAULT_CLOUDML_ENDPOINT, description="CloudML REST API root")
    project: Optional[str] = Field(default=None, description="Google Cloud project id")
    access_token: Optional[str] = Field(default=None, description="OAuth bearer token")
    gcloud_timeout: float = Field(default=30.0, description="Timeout for `gcloud auth print-access-token`")


class ServerConfig(ConfigModel):
    host: str = Field(default="127.0.0.1", description="Local test server host")
    port: int = Field(default=8089, description="Local test server port")
    signature_name: Optional[str] = Field(default=None, description="Signature served at /api/predict/")
    tags: Optional[List[str]] = Field(default=None, description="MetaGraph tags used when loading")


class LogConfig(ConfigModel):
    level: str = Field(default="INFO", description="Logging level")
    serialize: bool = Field(default=True, description="Emit JSON log lines")


class Settings(ConfigModel):
    http: HttpConfig = Field(default_factory=HttpConfig)
    cloudml: CloudMLConfig = Field(default_factory=CloudMLConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    logging: LogConfig = Field(default_factory=LogConfig)


def _env_overrides() -> dict:
    env = {
        "http": {
            "connect_timeout": os.getenv("TFDEPLOY_CONNECT_TIMEOUT"),
            "read_timeout": os.getenv("TFDEPLOY_READ_TIMEOUT"),
            "max_retries": os.getenv("TFDEPLOY_MAX_RETRIES"),
        },
        "cloudml": {
            "endpoint": os.getenv("CLOUDML_ENDPOINT"),
            "project": os.getenv("CLOUDML_PROJECT") or os.getenv("GOOGLE_CLOUD_PROJECT"),
            "access_token": os.getenv("CLOUDML_ACCESS_TOKEN"),
        },
        "server": {
            "host": os.getenv("TFDEPLOY_HOST"),
            "port": os.getenv("TFDEPLOY_PORT"),
        },
        "logging": {
            "level": os.getenv("LOG_LEVEL"),
        },
    }
    return {
        section: {k: v for k, v in values.items() if v not in (None, "")}
        for section, values in env.items()
    }


def load_settings(config_path: Optional[str] = None) -> Settings:
    """
    Build settings from an optional YAML file, then apply environment overrides.

    Without an explicit path, TFDEPLOY_CONFIG names the file; with neither, only
    defaults and environment variables apply.
    """
    config_path = config_path or os.getenv("TFDEPLOY_CONFIG")
    try:
        raw = load_config(config_path) if config_path else {}
    except (OSError, yaml.YAMLError) as exc:
        raise ConfigurationError(f"Could not read settings file {config_path}: {exc}") from exc
    if not isinstance(raw, dict):
        raise ConfigurationError(f"Settings file {config_path} must hold a mapping of sections")

    merged = {}
    for section, overrides in _env_overrides().items():
        merged[section] = {**(raw.get(section) or {}), **overrides}
    try:
        return Settings.model_validate(merged)
    except ValidationError as exc:
        problems = "; ".join(
            f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}" for error in exc.errors()
        )
        raise ConfigurationError(f"Invalid settings: {problems}") from exc
