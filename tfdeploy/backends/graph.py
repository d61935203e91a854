from loguru import logger

from ..model_loader import SavedModelHandle, as_savedmodel_handle, signature_from_function
from ..result import PredictionResult
from .export import predict_with_handle, predict_with_signature


def predict_graph(instances, reference, options, settings) -> PredictionResult:
    graph = reference.value
    outputs = options.extra.get("outputs")

    # A bare concrete function is its own entry point: its tensor specs drive binding.
    if not isinstance(graph, SavedModelHandle) and hasattr(graph, "structured_input_signature"):
        logger.debug("Predicting with in-memory function")
        return predict_with_signature(signature_from_function(graph), instances, outputs)

    handle = as_savedmodel_handle(graph)
    logger.debug("Predicting with in-memory graph signature {}", options.signature_name)
    return predict_with_handle(handle, instances, options.signature_name, outputs)
