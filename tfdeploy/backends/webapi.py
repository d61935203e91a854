from loguru import logger

from ..errors import InvalidModelReference
from ..instances import normalize_instances
from ..resolver import URL_PATTERN
from ..result import PredictionResult
from ..utils import to_jsonable
from .http import post_json


def predict_webapi(instances, reference, options, settings) -> PredictionResult:
    url = str(reference.value)
    if not URL_PATTERN.match(url):
        raise InvalidModelReference(f"{url!r} is not an http(s) URL")

    rows = normalize_instances(instances)
    extra = options.extra
    logger.debug("Posting {} instances to {}", len(rows), url)
    body = post_json(
        url,
        {"instances": to_jsonable(rows)},
        headers=extra.get("headers"),
        timeout=extra.get("timeout", settings.http.timeout),
        max_retries=extra.get("max_retries", settings.http.max_retries),
        retry_backoff=settings.http.retry_backoff,
        session=extra.get("session"),
    )
    return PredictionResult.from_response(body, len(rows), url)
