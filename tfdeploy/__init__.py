"""
tfdeploy: predictions over TensorFlow SavedModels.

Usage:
    import tfdeploy

    # local export directory
    tfdeploy.predict_savedmodel([{"x": [0.0] * 784}], "models/mnist")

    # local test server
    tfdeploy.serve_savedmodel("models/mnist", port=8089)
    tfdeploy.predict_savedmodel(instances, "http://127.0.0.1:8089/api/serving_default/predict/")

    # CloudML
    tfdeploy.predict_savedmodel(instances, "mnist", version="v1", project="my-project")
"""

from .errors import (
    ConfigurationError,
    InvalidModelReference,
    PredictionError,
    RemoteServiceError,
    SchemaMismatch,
    SignatureNotFound,
)
from .model_loader import SavedModelHandle, Signature, TensorInfo, export_savedmodel, load_savedmodel
from .api.server import ModelServer, serve_savedmodel
from .predict import predict_savedmodel
from .resolver import ModelReference, PredictionOptions, PredictionType, resolve_prediction_type
from .result import PredictionResult, describe_error


__version__ = "0.6.0"

__all__ = [
    "predict_savedmodel",
    "serve_savedmodel",
    "ModelServer",
    "load_savedmodel",
    "export_savedmodel",
    "SavedModelHandle",
    "Signature",
    "TensorInfo",
    "ModelReference",
    "PredictionOptions",
    "PredictionType",
    "resolve_prediction_type",
    "PredictionResult",
    "describe_error",
    "PredictionError",
    "InvalidModelReference",
    "SignatureNotFound",
    "SchemaMismatch",
    "RemoteServiceError",
    "ConfigurationError",
]
