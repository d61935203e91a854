import pytest
import requests

import tfdeploy
from tfdeploy import predict_savedmodel
from tfdeploy.errors import (
    ConfigurationError,
    InvalidModelReference,
    RemoteServiceError,
    SchemaMismatch,
    SignatureNotFound,
)
from tfdeploy.result import PredictionResult, describe_error

CARS = [{"disp": 160.0, "cyl": 6}, {"disp": 108.0, "cyl": 4}, {"disp": 360.0, "cyl": 8}]


def test_graph_predictions_preserve_order(handle, settings):
    result = predict_savedmodel(CARS, handle, settings=settings)
    assert isinstance(result, PredictionResult)
    assert len(result) == len(CARS)
    assert result.predictions == pytest.approx([30 - 0.02 * c["disp"] - 0.5 * c["cyl"] for c in CARS], rel=1e-5)


def test_graph_named_signature(handle, settings):
    result = predict_savedmodel([[0, 0, 0], [0, 0, 5]], handle, signature_name="scores", settings=settings)
    assert [p["classes"] for p in result] == [0, 2]
    assert sum(result[0]["probabilities"]) == pytest.approx(1.0, abs=1e-3)


def test_graph_output_filter(handle, settings):
    result = predict_savedmodel([[0, 0, 5]], handle, signature_name="scores", outputs=["classes"], settings=settings)
    assert result.predictions == [2]


def test_graph_unknown_signature(handle, settings):
    with pytest.raises(SignatureNotFound, match="Available signatures"):
        predict_savedmodel(CARS, handle, signature_name="classify", settings=settings)


def test_graph_missing_feature(handle, settings):
    with pytest.raises(SchemaMismatch):
        predict_savedmodel([{"disp": 160.0}], handle, settings=settings)


def test_inference_failures_are_translated(handle, settings):
    def boom(**feeds):
        raise RuntimeError("Incompatible shapes: [1,3] vs. [1,4]")

    handle.signatures["serving_default"].fn = boom
    with pytest.raises(SchemaMismatch, match="rejected the instances") as excinfo:
        predict_savedmodel(CARS, handle, settings=settings)
    assert isinstance(excinfo.value.__cause__, RuntimeError)


def test_export_missing_directory(tmp_path, settings):
    with pytest.raises(InvalidModelReference, match="not found"):
        predict_savedmodel(CARS, str(tmp_path / "missing"), settings=settings)


def test_export_directory_without_savedmodel(tmp_path, settings):
    with pytest.raises(InvalidModelReference, match="not a SavedModel export"):
        predict_savedmodel(CARS, str(tmp_path), settings=settings)


def test_export_loads_and_predicts(monkeypatch, handle, tmp_path, settings):
    loaded = []

    def fake_load(path, tags=None):
        loaded.append((path, tags))
        return handle

    monkeypatch.setattr("tfdeploy.backends.export.load_savedmodel", fake_load)
    result = predict_savedmodel(CARS, str(tmp_path), tags=["serve"], settings=settings)
    assert loaded == [(str(tmp_path), ["serve"])]
    assert len(result) == 3


def test_export_with_handle_reference(handle, settings):
    with pytest.raises(InvalidModelReference):
        predict_savedmodel(CARS, handle, type="export", settings=settings)


def test_webapi_round_trip(fake_session, fake_response, settings):
    session = fake_session(fake_response(200, {"predictions": [21.8, 25.84, 18.8]}))
    url = "http://127.0.0.1:8089/api/serving_default/predict/"
    result = predict_savedmodel(CARS, url, session=session, settings=settings)

    assert result.predictions == [21.8, 25.84, 18.8]
    (call,) = session.calls
    assert call["url"] == url
    assert call["json"] == {"instances": CARS}
    assert call["timeout"] == (10.0, 60.0)


def test_webapi_keeps_nested_arrays(fake_session, fake_response, settings):
    image = [[[0, 1], [2, 3]], [[4, 5], [6, 7]]]
    session = fake_session(fake_response(200, {"predictions": [[0.5, 0.5]]}))
    predict_savedmodel([{"image": image}], "https://models.example/predict", session=session, settings=settings)
    assert session.calls[0]["json"]["instances"][0]["image"] == image


def test_path_with_explicit_webapi_type_fails_in_webapi(tmp_path, settings):
    with pytest.raises(InvalidModelReference, match="not an http"):
        predict_savedmodel(CARS, str(tmp_path), type="webapi", settings=settings)


def test_webapi_unreachable(fake_session, settings):
    session = fake_session(requests.ConnectionError("Connection refused"))
    with pytest.raises(RemoteServiceError) as excinfo:
        predict_savedmodel(CARS, "http://127.0.0.1:9/api/predict/", session=session, settings=settings)
    assert excinfo.value.remote_status is None
    assert "Connection refused" in str(excinfo.value)


def test_webapi_count_mismatch(fake_session, fake_response, settings):
    session = fake_session(fake_response(200, {"predictions": [1.0]}))
    with pytest.raises(RemoteServiceError, match="1 predictions for 3 instances"):
        predict_savedmodel(CARS, "http://localhost/p", session=session, settings=settings)


def test_webapi_rejects_empty_instances_without_posting(fake_session, settings):
    session = fake_session()
    with pytest.raises(SchemaMismatch, match="At least one instance"):
        predict_savedmodel([], "http://localhost/p", session=session, settings=settings)
    assert session.calls == []


def test_cloudml_rejects_empty_instances_without_posting(fake_session, settings):
    session = fake_session()
    with pytest.raises(SchemaMismatch, match="At least one instance"):
        predict_savedmodel(
            [], "mtcars", version="v2", project="my-project", access_token="tok", session=session, settings=settings
        )
    assert session.calls == []


def test_cloudml_dispatch(fake_session, fake_response, settings):
    session = fake_session(fake_response(200, {"predictions": [{"mpg": 21.0}, {"mpg": 26.0}, {"mpg": 15.0}]}))
    result = predict_savedmodel(
        CARS, "mtcars", version="v2", project="my-project", access_token="tok", session=session, settings=settings
    )
    assert len(result) == 3
    assert session.calls[0]["url"] == "https://ml.googleapis.com/v1/projects/my-project/models/mtcars/versions/v2:predict"


def test_cloudml_type_without_version(settings):
    with pytest.raises(ConfigurationError, match="version"):
        predict_savedmodel(CARS, "mtcars", type="cloudml", settings=settings)


def test_result_printing():
    single = PredictionResult(predictions=[[0.1, 0.9]])
    assert str(single) == "[0.1, 0.9]"

    several = PredictionResult(predictions=[1.5, 2.5])
    assert str(several).splitlines() == ["Prediction 1:", "1.5", "Prediction 2:", "2.5"]
    assert several.to_json() == '{"predictions": [1.5, 2.5]}'


def test_error_printing():
    exc = RemoteServiceError("http://x returned HTTP 503: down", remote_status=503)
    assert describe_error(exc) == "RemoteServiceError: http://x returned HTTP 503: down (HTTP 503)"
    assert describe_error(SchemaMismatch("bad")) == "SchemaMismatch: bad"


def test_remote_error_keeps_remote_status_apart_from_server_status():
    exc = RemoteServiceError("quota exceeded", remote_status=429, body='{"error": "quota"}')
    assert exc.status_code == 502
    assert exc.remote_status == 429
    assert exc.body == '{"error": "quota"}'


def test_package_exports():
    for name in ("predict_savedmodel", "serve_savedmodel", "load_savedmodel", "export_savedmodel", "ModelServer"):
        assert hasattr(tfdeploy, name)
