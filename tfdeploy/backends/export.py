from typing import Any, List, Optional

from loguru import logger

from ..errors import InvalidModelReference, PredictionError, SchemaMismatch
from ..instances import bind_inputs, normalize_instances, split_outputs
from ..model_loader import SavedModelHandle, Signature, load_savedmodel
from ..result import PredictionResult


def predict_with_signature(signature: Signature, instances: Any, outputs: Optional[List[str]] = None) -> PredictionResult:
    rows = normalize_instances(instances)
    feeds = bind_inputs(rows, signature)
    try:
        raw = signature.fn(**feeds)
    except PredictionError:
        raise
    except Exception as exc:
        raise SchemaMismatch(f"Signature {signature.name!r} rejected the instances: {exc}") from exc
    return PredictionResult(predictions=split_outputs(raw, len(rows), outputs))


def predict_with_handle(
    handle: SavedModelHandle,
    instances: Any,
    signature_name: Optional[str] = None,
    outputs: Optional[List[str]] = None,
) -> PredictionResult:
    """Run one batched inference over all instances against a loaded model."""
    signature = handle.signature(signature_name)
    return predict_with_signature(signature, instances, outputs)


def predict_export(instances, reference, options, settings) -> PredictionResult:
    if not isinstance(reference.value, str):
        raise InvalidModelReference("Export predictions need a path to a SavedModel directory")
    handle = load_savedmodel(reference.value, tags=options.extra.get("tags"))
    logger.debug("Predicting with export {} signature {}", reference.value, options.signature_name)
    return predict_with_handle(handle, instances, options.signature_name, options.extra.get("outputs"))
