import os
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

from .errors import ConfigurationError, InvalidModelReference
from .model_loader import is_graph_handle

URL_PATTERN = re.compile(r"^https?://", re.IGNORECASE)


class PredictionType(str, Enum):
    GRAPH = "graph"
    EXPORT = "export"
    WEBAPI = "webapi"
    CLOUDML = "cloudml"


class ReferenceKind(str, Enum):
    HANDLE = "handle"
    URL = "url"
    # A local export path or a CloudML deployment name; the options decide which.
    NAME = "name"


@dataclass(frozen=True)
class ModelReference:
    kind: ReferenceKind
    value: Any

    @classmethod
    def from_model(cls, model: Any) -> "ModelReference":
        if is_graph_handle(model):
            return cls(ReferenceKind.HANDLE, model)
        if isinstance(model, os.PathLike):
            model = os.fspath(model)
        if isinstance(model, str):
            if URL_PATTERN.match(model):
                return cls(ReferenceKind.URL, model)
            return cls(ReferenceKind.NAME, model)
        raise InvalidModelReference(
            f"Model must be a path, URL, CloudML model name or loaded graph handle, got {type(model).__name__}"
        )


@dataclass(frozen=True)
class PredictionOptions:
    type: Optional[str] = None
    signature_name: Optional[str] = None
    version: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_kwargs(cls, options: Dict[str, Any]) -> "PredictionOptions":
        options = dict(options)
        return cls(
            type=options.pop("type", None),
            signature_name=options.pop("signature_name", None),
            version=options.pop("version", None),
            extra=options,
        )


def resolve_prediction_type(reference: ModelReference, options: PredictionOptions) -> PredictionType:
    if options.type is not None:
        try:
            return PredictionType(options.type)
        except ValueError:
            valid = [t.value for t in PredictionType]
            raise ConfigurationError(f"Unknown prediction type {options.type!r}; expected one of {valid}") from None
    if reference.kind is ReferenceKind.HANDLE:
        return PredictionType.GRAPH
    if reference.kind is ReferenceKind.URL:
        return PredictionType.WEBAPI
    if options.version is not None:
        return PredictionType.CLOUDML
    return PredictionType.EXPORT
