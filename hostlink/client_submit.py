#!/usr/bin/env python3
"""
Optional local client for the hostlink server.

Example
python3 -m hostlink.client_submit --host http://127.0.0.1:8080 --source blink.rb
python3 -m hostlink.client_submit --blob blink.mrb --verbose
"""
from __future__ import annotations
import argparse
import sys
import requests

def main(argv: list[str] | None = None) -> int:
    ap = argparse.ArgumentParser()
    ap.add_argument("--host", default="http://127.0.0.1:8080")
    src = ap.add_mutually_exclusive_group(required=True)
    src.add_argument("--source", help="mruby source file, compiled on the server")
    src.add_argument("--blob", help="precompiled .mrb file")
    ap.add_argument("--verbose", action="store_true", help="send a verbose frame")
    ap.add_argument("--timeout", type=float, default=600, help="HTTP timeout in seconds")
    args = ap.parse_args(argv)

    field, path = ("source", args.source) if args.source else ("blob", args.blob)
    with open(path, "rb") as f:
        r = requests.post(
            args.host.rstrip("/") + "/v2/eval",
            files={field: f},
            data={"verbose": "1" if args.verbose else "0"},
            timeout=args.timeout,
        )

    if not r.ok:
        try:
            detail = r.json().get("detail", r.text)
        except ValueError:
            detail = r.text
        print(f"error {r.status_code}: {detail}", file=sys.stderr)
        return 1

    js = r.json()
    if js["exception"]:
        print(f"   {js['result']}")
    else:
        print(f" => {js['result']}")
    return 0

if __name__ == "__main__":
    raise SystemExit(main())
