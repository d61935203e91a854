# .github/scripts/post_deploy_gate.py
import argparse
import json
import os
import time
from pathlib import Path

import numpy as np
import requests

from tfdeploy import PredictionError, describe_error, predict_savedmodel


def p95(values) -> float:
    arr = np.asarray(values, dtype=float)
    return float(np.percentile(arr, 95))


def main():
    parser = argparse.ArgumentParser()
    parser.add_argument("--base-url", default=os.getenv("BASE_URL"))
    parser.add_argument("--signature-name", default=os.getenv("SIGNATURE_NAME", "serving_default"))
    parser.add_argument("--instances", default=os.getenv("INSTANCES_JSON"))
    parser.add_argument("--n-requests", type=int, default=int(os.getenv("N_REQUESTS", "50")))
    parser.add_argument("--p95-ms-max", type=float, default=float(os.getenv("P95_MS_MAX", "200")))
    parser.add_argument("--out", default=os.getenv("POST_DEPLOY_OUT", "artifacts/post_deploy_gate.json"))
    args = parser.parse_args()

    if not args.base_url:
        raise SystemExit("Missing --base-url / BASE_URL")
    if not args.instances:
        raise SystemExit("Missing --instances / INSTANCES_JSON")

    base = args.base_url.rstrip("/")
    out_path = Path(args.out)
    out_path.parent.mkdir(parents=True, exist_ok=True)

    # 1) Smoke
    r = requests.get(f"{base}/health", timeout=10)
    if r.status_code != 200:
        raise SystemExit(f"/health failed: {r.status_code} {r.text}")

    body = json.loads(Path(args.instances).read_text(encoding="utf-8"))
    instances = body["instances"] if isinstance(body, dict) else body
    if len(instances) == 0:
        raise SystemExit("instances file is empty")

    url = f"{base}/api/{args.signature_name}/predict/"
    lat_ms = []

    # 2) Every response must carry one prediction per instance
    for _ in range(args.n_requests):
        start = time.perf_counter()
        try:
            result = predict_savedmodel(instances, url)
        except PredictionError as exc:
            raise SystemExit(f"{url} failed: {describe_error(exc)}")
        lat_ms.append((time.perf_counter() - start) * 1000.0)

        if len(result) != len(instances):
            raise SystemExit(f"{url} returned {len(result)} predictions for {len(instances)} instances")

    report = {
        "ok": True,
        "checks": {
            "health_ok": True,
            "n_requests": args.n_requests,
            "batch_size": len(instances),
            "p95_ms": p95(lat_ms),
            "p95_ms_max": args.p95_ms_max,
        },
    }

    if report["checks"]["p95_ms"] > args.p95_ms_max:
        report["ok"] = False
        report["checks"]["latency_ok"] = False
        out_path.write_text(json.dumps(report, indent=2), encoding="utf-8")
        raise SystemExit(f"Latency gate failed: p95={report['checks']['p95_ms']:.2f}ms > {args.p95_ms_max:.2f}ms")

    report["checks"]["latency_ok"] = True
    out_path.write_text(json.dumps(report, indent=2), encoding="utf-8")


if __name__ == "__main__":
    main()
