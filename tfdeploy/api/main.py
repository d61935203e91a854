import json
import os
import time
from dataclasses import dataclass
from typing import Any, List, Optional, Sequence

from fastapi import APIRouter, Depends, FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from starlette.responses import Response

from ..backends.export import predict_with_handle
from ..config import load_settings
from ..errors import ConfigurationError, PredictionError, SchemaMismatch
from ..model_loader import SavedModelHandle, load_savedmodel
from ..utils import setup_logging
from .observability import RequestContextMiddleware, audit_prediction_event, observe_inference_latency
from .schemas import DiscoveryResponse, ErrorResponse, PredictionRequest, PredictionResponse, SignatureInfo


@dataclass
class ServerContext:
    """Everything a request handler needs: the model is loaded once and only read afterwards."""

    handle: SavedModelHandle
    default_signature: Optional[str] = None

    @classmethod
    def from_export(
        cls,
        model_dir: str,
        tags: Optional[Sequence[str]] = None,
        signature_name: Optional[str] = None,
    ) -> "ServerContext":
        handle = load_savedmodel(model_dir, tags=tags)
        # Fail at startup rather than on the first request.
        handle.signature(signature_name)
        return cls(handle=handle, default_signature=signature_name)


def get_context(request: Request) -> ServerContext:
    return request.app.state.context


def predict_path(signature_name: str) -> str:
    return f"/api/{signature_name}/predict/"


router = APIRouter()


@router.get("/", response_model=DiscoveryResponse)
def discovery(context: ServerContext = Depends(get_context)):
    description = context.handle.describe()
    signatures = {
        name: SignatureInfo(path=predict_path(name), **info)
        for name, info in description["signatures"].items()
    }
    try:
        default = context.handle.signature(context.default_signature).name
    except PredictionError:
        default = None
    return DiscoveryResponse(model_dir=description["path"], default_signature=default, signatures=signatures)


@router.get("/health")
def health_check(context: ServerContext = Depends(get_context)):
    return {"status": "ok", "model_dir": context.handle.path, "signatures": context.handle.signature_names}


@router.get("/metrics")
def metrics():
    # Prometheus scrape endpoint
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)


def _serve_prediction(request: Request, context: ServerContext, signature_name: Optional[str], instances: List[Any]):
    signature = context.handle.signature(signature_name or context.default_signature)
    request_id = getattr(request.state, "request_id", "unknown")

    start = time.perf_counter()
    try:
        result = predict_with_handle(context.handle, instances, signature.name)
    except PredictionError as exc:
        infer_seconds = time.perf_counter() - start
        observe_inference_latency(signature_name=signature.name, outcome="error", seconds=infer_seconds)
        audit_prediction_event(
            request_id=request_id,
            signature_name=signature.name,
            latency_ms=infer_seconds * 1000.0,
            instances=len(instances),
            output={"error": str(exc)},
            error_type=exc.kind,
        )
        raise

    infer_seconds = time.perf_counter() - start
    observe_inference_latency(signature_name=signature.name, outcome="success", seconds=infer_seconds)
    audit_prediction_event(
        request_id=request_id,
        signature_name=signature.name,
        latency_ms=infer_seconds * 1000.0,
        instances=len(instances),
        output={"predictions_count": len(result)},
    )
    return PredictionResponse(predictions=result.predictions)


@router.post("/api/predict/", response_model=PredictionResponse, responses={400: {"model": ErrorResponse}})
def predict_default(payload: PredictionRequest, request: Request, context: ServerContext = Depends(get_context)):
    return _serve_prediction(request, context, payload.signature_name, payload.instances)


@router.post(
    "/api/{signature_name}/predict/",
    response_model=PredictionResponse,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
def predict_signature(
    signature_name: str,
    payload: PredictionRequest,
    request: Request,
    context: ServerContext = Depends(get_context),
):
    return _serve_prediction(request, context, signature_name, payload.instances)


@router.get("/api/{signature_name}/predict/")
def predict_signature_get(
    signature_name: str,
    request: Request,
    instances: Optional[str] = Query(None, description='JSON list of instances, e.g. [{"x": [1, 2]}]'),
    context: ServerContext = Depends(get_context),
):
    if instances is None:
        signature = context.handle.signature(signature_name)
        return {"signature_name": signature.name, "path": predict_path(signature.name), **signature.describe()}

    try:
        parsed = json.loads(instances)
    except ValueError as exc:
        raise SchemaMismatch(f"instances is not valid JSON: {exc}") from exc
    if not isinstance(parsed, list):
        raise SchemaMismatch("instances must be a JSON list")
    return _serve_prediction(request, context, signature_name, parsed)


async def prediction_error_handler(request: Request, exc: PredictionError):
    return JSONResponse(status_code=exc.status_code, content={"error": str(exc)})


async def request_validation_handler(request: Request, exc: RequestValidationError):
    problems = "; ".join(
        f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}" for error in exc.errors()
    )
    return JSONResponse(status_code=SchemaMismatch.status_code, content={"error": f"Invalid request: {problems}"})


def create_app(context: ServerContext) -> FastAPI:
    from .. import __version__

    app = FastAPI(
        title="tfdeploy",
        version=__version__,
        description="Local test server for a TensorFlow SavedModel, compatible with CloudML predictions.",
    )
    app.add_middleware(RequestContextMiddleware)
    app.add_exception_handler(PredictionError, prediction_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.state.context = context
    app.include_router(router)
    return app


def create_app_from_env() -> FastAPI:
    """App factory for `uvicorn --factory tfdeploy.api.main:create_app_from_env`."""
    settings = load_settings()
    setup_logging(settings.logging.level, settings.logging.serialize)

    model_dir = os.getenv("TFDEPLOY_MODEL_DIR")
    if not model_dir:
        raise ConfigurationError("TFDEPLOY_MODEL_DIR must point to a SavedModel export")
    context = ServerContext.from_export(
        model_dir,
        tags=settings.server.tags,
        signature_name=settings.server.signature_name,
    )
    return create_app(context)
