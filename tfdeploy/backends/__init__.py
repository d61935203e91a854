from ..resolver import PredictionType
from .cloudml import predict_cloudml
from .export import predict_export, predict_with_handle
from .graph import predict_graph
from .webapi import predict_webapi

BACKENDS = {
    PredictionType.GRAPH: predict_graph,
    PredictionType.EXPORT: predict_export,
    PredictionType.WEBAPI: predict_webapi,
    PredictionType.CLOUDML: predict_cloudml,
}

__all__ = [
    "BACKENDS",
    "predict_cloudml",
    "predict_export",
    "predict_graph",
    "predict_webapi",
    "predict_with_handle",
]
