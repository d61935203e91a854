from typing import Any

from loguru import logger

from .backends import BACKENDS
from .config import load_settings
from .resolver import ModelReference, PredictionOptions, resolve_prediction_type
from .result import PredictionResult


def predict_savedmodel(instances: Any, model: Any, **options: Any) -> PredictionResult:
    """
    Run a prediction over a SavedModel export, a loaded graph, a REST endpoint or a CloudML model.

    :param instances: a list of prediction instances; even a single prediction is
                      passed as a list with one entry. Each instance is either an
                      object keyed by input name or, for single-input signatures,
                      the bare input value. DataFrames and numpy arrays are accepted.
    :param model: a local export directory, an ``http(s)://`` URL (for instance one
                  served by :func:`tfdeploy.serve_savedmodel`), a CloudML model name
                  (requires ``version``) or a handle from :func:`tfdeploy.load_savedmodel`.
    :param options: ``type`` forces one of ``graph``, ``export``, ``webapi`` or
                    ``cloudml``; ``signature_name`` selects the serving signature;
                    ``version`` selects the CloudML model version. ``settings`` and
                    backend-specific keys (``tags``, ``outputs``, ``timeout``,
                    ``max_retries``, ``headers``, ``session``, ``project``,
                    ``access_token``, ``endpoint``) are passed through.
    """
    settings = options.pop("settings", None) or load_settings()
    prediction_options = PredictionOptions.from_kwargs(options)
    reference = ModelReference.from_model(model)
    prediction_type = resolve_prediction_type(reference, prediction_options)

    logger.debug("Resolved {} reference to {} prediction", reference.kind.value, prediction_type.value)
    return BACKENDS[prediction_type](instances, reference, prediction_options, settings)
