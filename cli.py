from __future__ import annotations

import argparse
import json
import sys
import time

import requests


def _print(obj) -> None:
    print(json.dumps(obj, indent=2, ensure_ascii=False))


def _parse_selector(raw: list[str]) -> dict[str, str]:
    selector: dict[str, str] = {}
    for item in raw:
        key, sep, value = item.partition("=")
        if not sep or not key:
            raise SystemExit(f"Invalid selector term '{item}', expected key=value")
        selector[key] = value
    return selector


def _follow(base: str, wait_id: str, interval_s: float) -> int:
    while True:
        r = requests.get(f"{base}/waits/{wait_id}", timeout=10)
        st = r.json()
        if not r.ok:
            _print(st)
            return 1
        if st["state"] != "running":
            _print(st)
            return 0 if st["state"] == "converged" else 1
        time.sleep(interval_s)


def main(argv: list[str] | None = None) -> int:
    p = argparse.ArgumentParser(description="rollwatch CLI")
    p.add_argument("--api", default="http://localhost:8000", help="API base URL")
    sub = p.add_subparsers(dest="cmd", required=True)

    s_norm = sub.add_parser("normalize", help="Normalize CPU and/or memory quantities")
    s_norm.add_argument("--cpu")
    s_norm.add_argument("--memory")

    s_ready = sub.add_parser("wait-ready", help="Wait for pods matching a selector to be ready")
    s_ready.add_argument("--selector", action="append", required=True, help="key=value, repeatable")
    s_ready.add_argument("--expected", type=int, required=True)
    s_ready.add_argument("--no-containers", action="store_true", help="Only check pod readiness")

    s_stable = sub.add_parser("wait-stable", help="Wait for pods with a name prefix to stay Running")
    s_stable.add_argument("--prefix", required=True)

    s_del = sub.add_parser("wait-deletion", help="Delete a pod and wait until it is gone")
    s_del.add_argument("--name", required=True)

    for s in (s_ready, s_stable, s_del):
        s.add_argument("--follow", action="store_true", help="Poll until the wait finishes")
        s.add_argument("--follow-interval-s", type=float, default=2.0)

    sub.add_parser("waits", help="List waits")

    s_ev = sub.add_parser("events", help="Show events")
    s_ev.add_argument("--limit", type=int, default=20)

    args = p.parse_args(argv)

    base = args.api.rstrip("/")

    if args.cmd == "waits":
        _print(requests.get(f"{base}/waits", timeout=10).json())
        return 0

    if args.cmd == "events":
        _print(requests.get(f"{base}/events", params={"limit": args.limit}, timeout=10).json())
        return 0

    if args.cmd == "normalize":
        payload = {"cpu": args.cpu, "memory": args.memory}
        r = requests.post(f"{base}/quantities/normalize", json=payload, timeout=10)
        _print(r.json())
        return 0 if r.ok else 1

    if args.cmd == "wait-ready":
        path = "/waits/ready"
        payload = {
            "selector": _parse_selector(args.selector),
            "expected_count": args.expected,
            "check_containers": not args.no_containers,
        }
    elif args.cmd == "wait-stable":
        path = "/waits/stable"
        payload = {"prefix": args.prefix}
    elif args.cmd == "wait-deletion":
        path = "/waits/deletion"
        payload = {"name": args.name}
    else:
        return 2

    r = requests.post(f"{base}{path}", json=payload, timeout=30)
    body = r.json()
    if not r.ok or not args.follow:
        _print(body)
        return 0 if r.ok else 1
    return _follow(base, body["id"], args.follow_interval_s)


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
