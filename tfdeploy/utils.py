# tfdeploy/utils.py
import base64
import math
import os
import sys
from typing import Any, Dict

import numpy as np
import yaml
from loguru import logger


def load_config(config_path: str = "params.yaml") -> Dict:
    """Load YAML configuration."""
    with open(config_path, "r") as f:
        config = yaml.safe_load(f)
    return config or {}


def setup_logging(level: str = None, serialize: bool = True, sink=None) -> None:
    """
    Structured JSON logs to stdout by default. LOG_LEVEL wins over the configured level.
    """
    logger.remove()
    logger.add(
        sink=sink or sys.stdout,
        serialize=serialize,
        level=os.getenv("LOG_LEVEL", level or "INFO"),
        backtrace=False,
        diagnose=False,
    )


def to_jsonable(v: Any) -> Any:
    # Avoid NaN/Inf (invalid JSON numbers)
    if v is None:
        return None
    if isinstance(v, np.ndarray):
        return [to_jsonable(item) for item in v.tolist()] if v.ndim else to_jsonable(v.item())
    if isinstance(v, np.generic):
        v = v.item()
    if isinstance(v, bytes):
        try:
            return v.decode("utf-8")
        except UnicodeDecodeError:
            return {"b64": base64.b64encode(v).decode("ascii")}
    if isinstance(v, float) and (math.isnan(v) or math.isinf(v)):
        return None
    if isinstance(v, dict):
        return {str(k): to_jsonable(item) for k, item in v.items()}
    if isinstance(v, (list, tuple)):
        return [to_jsonable(item) for item in v]
    return v
