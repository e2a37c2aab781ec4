#!/usr/bin/env python3
"""Simple latency benchmark for /v2/eval.

Example
  python3 scripts/bench.py --url http://localhost:8080/v2/eval --source fib.rb --runs 50
"""

from __future__ import annotations

import argparse
import json
import time
from pathlib import Path

import numpy as np
import requests


def main() -> None:
    ap = argparse.ArgumentParser()
    ap.add_argument("--url", default="http://localhost:8080/v2/eval")
    src = ap.add_mutually_exclusive_group(required=True)
    src.add_argument("--source", type=Path, default=None)
    src.add_argument("--blob", type=Path, default=None)
    ap.add_argument("--runs", type=int, default=20)
    args = ap.parse_args()

    if args.source is not None:
        field, path, mime = "source", args.source, "text/plain"
    else:
        field, path, mime = "blob", args.blob, "application/octet-stream"
    body = path.read_bytes()

    lat = []
    eval_ms = []
    for i in range(args.runs):
        files = {field: (path.name, body, mime)}

        t0 = time.time()
        r = requests.post(args.url, files=files, timeout=120)
        dt = (time.time() - t0) * 1000.0
        r.raise_for_status()
        lat.append(dt)
        js = r.json()
        eval_ms.append(js.get("eval_ms", 0.0))

        if i == 0:
            print("first result", json.dumps(js, indent=2))

    lat = np.array(lat, dtype=np.float32)
    dev = np.array(eval_ms, dtype=np.float32)
    print(f"runs={args.runs} mean_ms={lat.mean():.2f} p50_ms={np.percentile(lat,50):.2f} p95_ms={np.percentile(lat,95):.2f}")
    print(f"link mean_ms={dev.mean():.2f} p95_ms={np.percentile(dev,95):.2f}")


if __name__ == "__main__":
    main()
