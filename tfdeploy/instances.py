import base64
import binascii
from typing import Any, Dict, Iterable, List, Mapping, Optional

import numpy as np
import pandas as pd

from .errors import SchemaMismatch
from .model_loader import Signature
from .utils import to_jsonable


def normalize_instances(instances: Any) -> List[Any]:
    """
    Turn the caller's instances into a plain list, one entry per instance.

    Accepts a list of mappings (named inputs), a list of bare values (single
    unnamed input), a pandas DataFrame (one instance per row) or a numpy array
    (one instance per leading-axis entry).
    """
    if isinstance(instances, pd.DataFrame):
        rows = instances.to_dict(orient="records")
    elif isinstance(instances, np.ndarray):
        if instances.ndim == 0:
            raise SchemaMismatch("Instances must be a sequence, got a scalar array")
        rows = list(instances)
    elif isinstance(instances, (Mapping, str, bytes)) or not isinstance(instances, Iterable):
        raise SchemaMismatch(
            f"Instances must be a list of prediction instances, got {type(instances).__name__}. "
            "Wrap a single instance in a list."
        )
    else:
        rows = list(instances)

    if not rows:
        raise SchemaMismatch("At least one instance is required")
    return rows


def _decode_b64(value: Any) -> Any:
    if isinstance(value, Mapping) and set(value) == {"b64"}:
        try:
            return base64.b64decode(value["b64"], validate=True)
        except (binascii.Error, TypeError) as exc:
            raise SchemaMismatch(f"Invalid base64 payload: {exc}") from exc
    if isinstance(value, list):
        return [_decode_b64(item) for item in value]
    return value


def bind_inputs(instances: List[Any], signature: Signature) -> Dict[str, np.ndarray]:
    """Build one batched array per signature input from the instances."""
    if not instances:
        raise SchemaMismatch("At least one instance is required")

    expected = set(signature.inputs)
    named = [isinstance(instance, Mapping) for instance in instances]
    if not all(named):
        if any(named):
            raise SchemaMismatch("Instances mix named (object) and unnamed values")
        if len(expected) != 1:
            raise SchemaMismatch(
                f"Signature {signature.name!r} expects named inputs {sorted(expected)}; "
                "each instance must be an object keyed by input name"
            )
        (only_input,) = expected
        instances = [{only_input: instance} for instance in instances]

    for index, instance in enumerate(instances, start=1):
        keys = set(instance)
        if keys != expected:
            missing = sorted(expected - keys)
            unexpected = sorted(keys - expected)
            raise SchemaMismatch(
                f"Instance {index} does not match signature {signature.name!r}: "
                f"missing inputs {missing}, unexpected inputs {unexpected}"
            )

    feeds = {}
    for name, info in signature.inputs.items():
        values = [_decode_b64(instance[name]) for instance in instances]
        try:
            feeds[name] = np.asarray(values, dtype=info.dtype)
        except (TypeError, ValueError) as exc:
            raise SchemaMismatch(
                f"Input {name!r} could not be batched as {info.dtype}: {exc}"
            ) from exc
    return feeds


def split_outputs(outputs: Mapping[str, Any], count: int, output_names: Optional[List[str]] = None) -> List[Any]:
    """
    Repackage batched outputs as one prediction per instance, in input order.

    A single output yields its row; several outputs yield a {name: row} mapping.
    """
    if output_names:
        unknown = sorted(set(output_names) - set(outputs))
        if unknown:
            raise SchemaMismatch(f"Unknown outputs {unknown}; available outputs: {sorted(outputs)}")
        selected = {name: outputs[name] for name in output_names}
    else:
        selected = dict(outputs)

    arrays = {name: np.asarray(value) for name, value in selected.items()}
    for name, array in arrays.items():
        if array.ndim == 0 or array.shape[0] != count:
            batch = array.shape[0] if array.ndim else "scalar"
            raise SchemaMismatch(f"Output {name!r} has batch size {batch}, expected {count}")

    if len(arrays) == 1:
        (array,) = arrays.values()
        return [to_jsonable(array[i]) for i in range(count)]
    return [{name: to_jsonable(array[i]) for name, array in arrays.items()} for i in range(count)]
