"""
Shared fixtures: an in-memory model handle backed by numpy, and a fake HTTP
session, so most tests run without TensorFlow or the network.
"""

import numpy as np
import pytest

from tfdeploy.config import Settings
from tfdeploy.model_loader import SavedModelHandle, Signature, TensorInfo


def _mpg(**feeds):
    return {"predictions": 30.0 - 0.02 * feeds["disp"] - 0.5 * feeds["cyl"]}


def _scores(**feeds):
    x = feeds["x"]
    exp = np.exp(x - x.max(axis=1, keepdims=True))
    probabilities = exp / exp.sum(axis=1, keepdims=True)
    return {"probabilities": probabilities, "classes": probabilities.argmax(axis=1)}


def make_handle() -> SavedModelHandle:
    float32 = np.dtype("float32")
    return SavedModelHandle(
        path="/models/fake",
        signatures={
            "serving_default": Signature(
                name="serving_default",
                inputs={
                    "disp": TensorInfo("disp", float32, (None,)),
                    "cyl": TensorInfo("cyl", float32, (None,)),
                },
                outputs=["predictions"],
                fn=_mpg,
            ),
            "scores": Signature(
                name="scores",
                inputs={"x": TensorInfo("x", float32, (None, 3))},
                outputs=["probabilities", "classes"],
                fn=_scores,
            ),
        },
    )


@pytest.fixture
def handle():
    return make_handle()


@pytest.fixture
def settings():
    return Settings()


class FakeResponse:
    def __init__(self, status_code=200, body=None, text=None):
        self.status_code = status_code
        self._body = body
        self.text = text if text is not None else ("" if body is None else repr(body))

    def json(self):
        if self._body is None:
            raise ValueError("No JSON object could be decoded")
        return self._body


class FakeSession:
    """Stands in for `requests`: replays queued responses or raises queued exceptions."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []

    def post(self, url, json=None, headers=None, timeout=None):
        self.calls.append({"url": url, "json": json, "headers": headers, "timeout": timeout})
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


@pytest.fixture
def fake_response():
    return FakeResponse


@pytest.fixture
def fake_session():
    return FakeSession
