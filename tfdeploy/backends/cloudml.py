import shutil
import subprocess
from typing import Optional

from loguru import logger

from ..config import Settings
from ..errors import ConfigurationError, InvalidModelReference, RemoteServiceError
from ..instances import normalize_instances
from ..result import PredictionResult
from ..utils import to_jsonable
from .http import post_json


def cloudml_model_path(name: str, version: Optional[str], project: Optional[str]) -> str:
    if name.startswith("projects/"):
        path = name
    else:
        if not project:
            raise ConfigurationError(
                "A CloudML project is required; pass project=..., set cloudml.project "
                "or CLOUDML_PROJECT"
            )
        path = f"projects/{project}/models/{name}"
    if "/versions/" in path:
        named = path.rsplit("/versions/", 1)[1]
        if version and version != named:
            raise ConfigurationError(f"Model name {name} names version {named} but version={version} was given")
    elif version:
        path = f"{path}/versions/{version}"
    return path


def get_access_token(settings: Settings, token: Optional[str] = None) -> str:
    token = token or settings.cloudml.access_token
    if token:
        return token

    gcloud = shutil.which("gcloud")
    if gcloud is None:
        raise RemoteServiceError(
            "No CloudML access token configured and the gcloud CLI is not on PATH"
        )
    try:
        completed = subprocess.run(
            [gcloud, "auth", "print-access-token"],
            capture_output=True,
            text=True,
            check=True,
            timeout=settings.cloudml.gcloud_timeout,
        )
    except (subprocess.CalledProcessError, subprocess.TimeoutExpired, OSError) as exc:
        detail = getattr(exc, "stderr", None) or exc
        raise RemoteServiceError(f"Could not obtain a CloudML access token: {detail}") from exc
    return completed.stdout.strip()


def predict_cloudml(instances, reference, options, settings) -> PredictionResult:
    if not isinstance(reference.value, str):
        raise InvalidModelReference("CloudML predictions need a deployed model name")
    extra = options.extra
    if options.version is None:
        raise ConfigurationError("CloudML predictions require a model version")

    path = cloudml_model_path(str(reference.value), str(options.version), extra.get("project") or settings.cloudml.project)
    endpoint = (extra.get("endpoint") or settings.cloudml.endpoint).rstrip("/")
    url = f"{endpoint}/{path}:predict"

    rows = normalize_instances(instances)
    payload = {"instances": to_jsonable(rows)}
    if options.signature_name:
        payload["signature_name"] = options.signature_name

    headers = {"Authorization": f"Bearer {get_access_token(settings, extra.get('access_token'))}"}
    headers.update(extra.get("headers") or {})

    logger.debug("Posting {} instances to CloudML model {}", len(rows), path)
    body = post_json(
        url,
        payload,
        headers=headers,
        timeout=extra.get("timeout", settings.http.timeout),
        max_retries=extra.get("max_retries", settings.http.max_retries),
        retry_backoff=settings.http.retry_backoff,
        session=extra.get("session"),
    )
    return PredictionResult.from_response(body, len(rows), f"CloudML model {path}")
