import argparse
import json
import os
import sys
from typing import List, Optional

from loguru import logger

from .api.server import serve_savedmodel
from .config import load_settings
from .errors import PredictionError
from .model_loader import load_savedmodel
from .predict import predict_savedmodel
from .result import describe_error
from .utils import setup_logging


def _read_instances(path: str):
    if path == "-":
        text = sys.stdin.read()
    else:
        with open(path, "r", encoding="utf-8") as f:
            text = f.read()
    body = json.loads(text)
    # Accept both a bare list and a full {"instances": [...]} request body.
    if isinstance(body, dict) and "instances" in body:
        return body["instances"]
    return body


def _predict(args, settings) -> None:
    options = {"settings": settings}
    for key in ("type", "signature_name", "version", "project"):
        value = getattr(args, key)
        if value is not None:
            options[key] = value

    try:
        instances = _read_instances(args.instances)
    except (OSError, ValueError) as exc:
        raise SystemExit(f"Invalid instances input: {exc}")

    result = predict_savedmodel(instances, args.model, **options)
    print(result.to_json() if args.json else result.format())


def _serve(args, settings) -> None:
    serve_savedmodel(
        args.model_dir,
        host=args.host,
        port=args.port,
        signature_name=args.signature_name,
        tags=args.tags.split(",") if args.tags else None,
        settings=settings,
    )


def _describe(args, settings) -> None:
    handle = load_savedmodel(args.model_dir, tags=args.tags.split(",") if args.tags else None)
    print(json.dumps(handle.describe(), indent=2))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="tfdeploy", description="Predictions over TensorFlow SavedModels")
    parser.add_argument("--config", default=os.getenv("TFDEPLOY_CONFIG"), help="YAML settings file")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("predict", help="Predict with an export directory, URL or CloudML model")
    p.add_argument("model", help="Export directory, http(s) URL or CloudML model name")
    p.add_argument("--instances", default="-", help="JSON file with a list of instances ('-' for stdin)")
    p.add_argument("--type", choices=["export", "webapi", "cloudml"], default=None)
    p.add_argument("--signature-name", dest="signature_name", default=None)
    p.add_argument("--version", default=None, help="CloudML model version")
    p.add_argument("--project", default=None, help="CloudML project id")
    p.add_argument("--json", action="store_true", help="Print the raw {\"predictions\": [...]} body")
    p.set_defaults(handler=_predict)

    s = sub.add_parser("serve", help="Serve an export directory over HTTP")
    s.add_argument("model_dir")
    s.add_argument("--host", default=None)
    s.add_argument("--port", type=int, default=None)
    s.add_argument("--signature-name", dest="signature_name", default=None)
    s.add_argument("--tags", default=None, help="Comma-separated MetaGraph tags")
    s.set_defaults(handler=_serve)

    d = sub.add_parser("describe", help="List the signatures of an export directory")
    d.add_argument("model_dir")
    d.add_argument("--tags", default=None, help="Comma-separated MetaGraph tags")
    d.set_defaults(handler=_describe)
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        settings = load_settings(args.config)
        setup_logging(settings.logging.level, settings.logging.serialize, sink=sys.stderr)
        args.handler(args, settings)
    except PredictionError as exc:
        logger.debug("{} failed: {}", args.command, exc)
        print(describe_error(exc), file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
