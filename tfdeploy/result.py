import json
from dataclasses import dataclass, field
from pprint import pformat
from typing import Any, Dict, Iterator, List

from .errors import PredictionError, RemoteServiceError


@dataclass
class PredictionResult:
    predictions: List[Any] = field(default_factory=list)

    @classmethod
    def from_response(cls, body: Any, expected_count: int, source: str) -> "PredictionResult":
        """Validate a decoded {"predictions": [...]} response from a remote endpoint."""
        if isinstance(body, dict) and "error" in body:
            raise RemoteServiceError(f"{source} returned an error: {body['error']}", body=json.dumps(body))
        if not isinstance(body, dict) or not isinstance(body.get("predictions"), list):
            raise RemoteServiceError(
                f"{source} response is missing a 'predictions' list", body=json.dumps(body)[:2000]
            )
        predictions = body["predictions"]
        if len(predictions) != expected_count:
            raise RemoteServiceError(
                f"{source} returned {len(predictions)} predictions for {expected_count} instances"
            )
        return cls(predictions=predictions)

    def to_dict(self) -> Dict[str, Any]:
        return {"predictions": self.predictions}

    def to_json(self) -> str:
        return json.dumps(self.to_dict())

    def format(self) -> str:
        if len(self.predictions) == 1:
            return pformat(self.predictions[0])
        lines = []
        for index, prediction in enumerate(self.predictions, start=1):
            lines.append(f"Prediction {index}:")
            lines.append(pformat(prediction))
        return "\n".join(lines)

    def __str__(self) -> str:
        return self.format()

    def __len__(self) -> int:
        return len(self.predictions)

    def __iter__(self) -> Iterator[Any]:
        return iter(self.predictions)

    def __getitem__(self, index: int) -> Any:
        return self.predictions[index]


def describe_error(exc: PredictionError) -> str:
    message = f"{exc.kind}: {exc}"
    if isinstance(exc, RemoteServiceError) and exc.remote_status is not None:
        message += f" (HTTP {exc.remote_status})"
    return message
