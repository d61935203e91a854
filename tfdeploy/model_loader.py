import os
import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple, Union

import numpy as np
from loguru import logger

from .errors import ConfigurationError, InvalidModelReference, SignatureNotFound

DEFAULT_SIGNATURE_NAME = "serving_default"
SAVED_MODEL_FILENAMES = ("saved_model.pb", "saved_model.pbtxt")


@dataclass(frozen=True)
class TensorInfo:
    name: str
    dtype: Optional[np.dtype] = None
    shape: Tuple[Optional[int], ...] = ()

    def describe(self) -> Dict[str, Any]:
        return {
            "dtype": str(self.dtype) if self.dtype is not None else None,
            "shape": list(self.shape),
        }


@dataclass
class Signature:
    """
    A callable entry point of a loaded model.

    `fn` takes one batched numpy array per input name as keyword arguments and
    returns a mapping of output name to batched array.
    """

    name: str
    inputs: Dict[str, TensorInfo]
    outputs: List[str]
    fn: Callable[..., Mapping[str, Any]]

    def describe(self) -> Dict[str, Any]:
        return {
            "inputs": {name: info.describe() for name, info in self.inputs.items()},
            "outputs": list(self.outputs),
        }


@dataclass
class SavedModelHandle:
    """In-memory handle on a loaded SavedModel; read-only once built."""

    signatures: Dict[str, Signature]
    path: Optional[str] = None
    tags: Optional[List[str]] = None
    # Keeps the loaded object alive: concrete functions only hold weak refs to variables.
    model: Any = field(default=None, repr=False)

    @property
    def signature_names(self) -> List[str]:
        return sorted(self.signatures)

    def default_signature_name(self) -> str:
        if DEFAULT_SIGNATURE_NAME in self.signatures:
            return DEFAULT_SIGNATURE_NAME
        if len(self.signatures) == 1:
            return next(iter(self.signatures))
        raise SignatureNotFound(
            f"No signature name given and the model exposes several: {self.signature_names}"
        )

    def signature(self, name: Optional[str] = None) -> Signature:
        name = name or self.default_signature_name()
        if name not in self.signatures:
            raise SignatureNotFound(
                f"Signature {name!r} not found. Available signatures: {self.signature_names}"
            )
        return self.signatures[name]

    def describe(self) -> Dict[str, Any]:
        return {
            "path": self.path,
            "signatures": {name: self.signatures[name].describe() for name in self.signature_names},
        }


def _import_tensorflow():
    try:
        import tensorflow
    except ImportError as exc:
        raise ConfigurationError(
            "TensorFlow is required to load SavedModels. Install it with `pip install tfdeploy[tensorflow]`."
        ) from exc
    return tensorflow


def _tensor_info(name: str, spec: Any) -> TensorInfo:
    dtype = getattr(spec, "dtype", None)
    np_dtype = np.dtype(dtype.as_numpy_dtype) if dtype is not None else None
    shape = getattr(spec, "shape", None)
    dims: Tuple[Optional[int], ...] = ()
    if shape is not None and shape.rank is not None:
        dims = tuple(shape.as_list())
    return TensorInfo(name=name, dtype=np_dtype, shape=dims)


def signature_from_function(function: Any, name: str = DEFAULT_SIGNATURE_NAME) -> Signature:
    """
    Wrap a TensorFlow concrete function into a Signature.

    Signature functions take keyword tensors. Functions traced from a
    ``tf.function(input_signature=[...])`` take positional tensors instead; those
    inputs are named after each spec's name (``arg_<i>`` when unnamed) and fed
    back positionally in declaration order.
    """
    tf = _import_tensorflow()

    args_spec, kwargs_spec = function.structured_input_signature
    positional: List[str] = []
    for index, spec in enumerate(args_spec):
        positional.append(getattr(spec, "name", None) or f"arg_{index}")
    inputs = {key: _tensor_info(key, spec) for key, spec in zip(positional, args_spec)}
    inputs.update({key: _tensor_info(key, spec) for key, spec in kwargs_spec.items()})

    structured_outputs = function.structured_outputs
    outputs = list(structured_outputs) if isinstance(structured_outputs, Mapping) else ["output_0"]

    def call(**feeds):
        args = [tf.constant(feeds[key]) for key in positional]
        kwargs = {key: tf.constant(value) for key, value in feeds.items() if key not in positional}
        result = function(*args, **kwargs)
        if not isinstance(result, Mapping):
            result = {outputs[0]: result}
        return {key: value.numpy() for key, value in result.items()}

    return Signature(name=name, inputs=inputs, outputs=outputs, fn=call)


def is_graph_handle(obj: Any) -> bool:
    if isinstance(obj, (str, bytes, os.PathLike)):
        return False
    return (
        isinstance(obj, SavedModelHandle)
        or hasattr(obj, "signatures")
        or hasattr(obj, "structured_input_signature")
    )


def as_savedmodel_handle(obj: Any) -> SavedModelHandle:
    """Coerce a handle, a `tf.saved_model.load` result or a concrete function into a SavedModelHandle."""
    if isinstance(obj, SavedModelHandle):
        return obj
    if hasattr(obj, "structured_input_signature"):
        return SavedModelHandle(signatures={DEFAULT_SIGNATURE_NAME: signature_from_function(obj)}, model=obj)
    if hasattr(obj, "signatures"):
        signatures = {
            name: signature_from_function(function, name) for name, function in obj.signatures.items()
        }
        if not signatures:
            raise SignatureNotFound("The loaded model exposes no serving signatures")
        return SavedModelHandle(signatures=signatures, model=obj)
    raise InvalidModelReference(f"Object of type {type(obj).__name__} is not a loaded model handle")


def _check_export_dir(export_dir: Path) -> None:
    if not export_dir.is_dir():
        raise InvalidModelReference(f"SavedModel directory not found at {export_dir}")
    if not os.access(export_dir, os.R_OK):
        raise InvalidModelReference(f"SavedModel directory at {export_dir} is not readable")
    if not any((export_dir / filename).exists() for filename in SAVED_MODEL_FILENAMES):
        raise InvalidModelReference(
            f"{export_dir} is not a SavedModel export (expected one of {list(SAVED_MODEL_FILENAMES)})"
        )


def load_savedmodel(export_dir: Union[str, Path], tags: Optional[Sequence[str]] = None) -> SavedModelHandle:
    export_dir = Path(export_dir)
    _check_export_dir(export_dir)

    tf = _import_tensorflow()
    tags = list(tags) if tags else None
    try:
        loaded = tf.saved_model.load(str(export_dir), tags=tags)
    except Exception as exc:
        logger.exception("Error loading SavedModel from {}: {}", str(export_dir), exc)
        raise InvalidModelReference(f"Could not load SavedModel from {export_dir}: {exc}") from exc

    handle = as_savedmodel_handle(loaded)
    handle.path = str(export_dir)
    handle.tags = tags
    logger.info("SavedModel loaded from {} with signatures {}", str(export_dir), handle.signature_names)
    return handle


def export_savedmodel(
    model: Any,
    export_dir: Union[str, Path],
    signatures: Any = None,
    overwrite: bool = False,
) -> str:
    """
    Write `model` (a tf.Module or Keras model) as a SavedModel.

    :param signatures: a concrete function, or a mapping of signature name to
                       concrete function, forwarded to ``tf.saved_model.save``.
    :param overwrite: replace an existing export directory instead of failing.
    """
    tf = _import_tensorflow()
    export_dir = Path(export_dir)
    if export_dir.exists():
        if not overwrite:
            raise ConfigurationError(f"Export directory {export_dir} already exists; pass overwrite=True")
        shutil.rmtree(export_dir)

    tf.saved_model.save(model, str(export_dir), signatures=signatures)
    logger.info("SavedModel exported to {}", str(export_dir))
    return str(export_dir)
