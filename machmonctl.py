#!/usr/bin/env python3
"""Control client for machine-monitor.

Talks to the monitor's HTTP API so operators can check status, read the live
shift view or a range report, push a test report, or wipe all state.

Commands:
  status | devices | report | timeline | reset | send

Server URL:
  - default: http://127.0.0.1:3000
  - override: --url URL or MACHMON_URL env var
"""

from __future__ import annotations

import argparse
import json
import os
import sys

import requests

DEFAULT_URL = "http://127.0.0.1:3000"


def _request(base_url: str, method: str, path: str, timeout: float = 5.0, **kwargs) -> dict:
    try:
        resp = requests.request(method, base_url.rstrip("/") + path, timeout=timeout, **kwargs)
    except requests.RequestException as e:
        return {"ok": False, "error": str(e)}
    try:
        body = resp.json()
    except ValueError:
        return {"ok": False, "error": "non-json response", "raw": resp.text}
    if not resp.ok:
        return {"ok": False, "error": body.get("error", f"HTTP {resp.status_code}") if isinstance(body, dict) else f"HTTP {resp.status_code}"}
    return {"ok": True, "data": body}


def _fmt_hms(seconds) -> str:
    seconds = max(0, int(seconds or 0))
    return f"{seconds // 3600:02d}:{(seconds % 3600) // 60:02d}:{seconds % 60:02d}"


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(description="Control machine-monitor via its HTTP API")
    ap.add_argument("--url", default=os.environ.get("MACHMON_URL", DEFAULT_URL),
                    help=f"Server base URL (default: {DEFAULT_URL})")
    ap.add_argument("--json", action="store_true", help="Print raw JSON response")
    sub = ap.add_subparsers(dest="command", required=True)

    sub.add_parser("status", help="Service health and known devices")
    sub.add_parser("devices", help="Live shift view per device")

    rep = sub.add_parser("report", help="Totals over an epoch-ms range")
    rep.add_argument("--from", dest="from_ms", type=int, required=True)
    rep.add_argument("--to", dest="to_ms", type=int, required=True)

    tl = sub.add_parser("timeline", help="Segments for a date and shift")
    tl.add_argument("--date", help="YYYY-MM-DD (default: today on the server)")
    tl.add_argument("--shift", choices=["shift1", "shift2", "day"], default="shift1")

    rs = sub.add_parser("reset", help="Drop ALL device state on the server")
    rs.add_argument("--yes", action="store_true", help="Confirm the destructive reset")

    snd = sub.add_parser("send", help="Push one pin report (testing without hardware)")
    snd.add_argument("--name", required=True)
    snd.add_argument("--pin2", type=int, choices=[0, 1], default=0)
    snd.add_argument("--pin3", type=int, choices=[0, 1], default=0)
    snd.add_argument("--pin4", type=int, choices=[0, 1], default=0)
    snd.add_argument("--on-time", type=float, help="Cumulative powered-on time in ms")
    return ap


def run(args) -> dict:
    if args.command == "status":
        return _request(args.url, "GET", "/status")
    if args.command == "devices":
        return _request(args.url, "GET", "/devices")
    if args.command == "report":
        return _request(args.url, "GET", "/devices/report", params={"from": args.from_ms, "to": args.to_ms})
    if args.command == "timeline":
        params = {"shift": args.shift}
        if args.date:
            params["date"] = args.date
        return _request(args.url, "GET", "/devices/timeline", params=params)
    if args.command == "reset":
        if not args.yes:
            return {"ok": False, "error": "reset drops all device data; pass --yes to confirm"}
        return _request(args.url, "DELETE", "/reset")
    if args.command == "send":
        body = {"name": args.name, "pin2": args.pin2, "pin3": args.pin3, "pin4": args.pin4}
        if args.on_time is not None:
            body["onTime"] = args.on_time
        return _request(args.url, "POST", "/update", json=body)
    return {"ok": False, "error": f"unknown command: {args.command}"}


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    resp = run(args)

    if args.json:
        print(json.dumps(resp, indent=2, sort_keys=True))
        return 0 if resp.get("ok") else 2

    if not resp.get("ok"):
        print(f"error: {resp.get('error', 'unknown error')}", file=sys.stderr)
        raw = resp.get("raw")
        if raw:
            print(raw, file=sys.stderr)
        return 2

    data = resp.get("data", {})
    if args.command == "status":
        print(f"ok  status={data.get('status')} uptime={data.get('uptime')}s devices={','.join(data.get('devices', []))}")
    elif args.command == "devices":
        for name in sorted(data):
            d = data[name]
            state = "manufacturing" if d.get("manufacturingActive") else "idle"
            print(f"{name}  {d.get('shiftName')} state={state} spindle={d.get('spindle')} "
                  f"on={_fmt_hms(d.get('totalShiftOnSeconds'))} eff={d.get('efficiencyPercent')}% "
                  f"parts={d.get('partsCount', 0)} last={_fmt_hms(d.get('lastPartSeconds'))} status={d.get('status')}")
    elif args.command == "report":
        devices = data.get("devices", {})
        for name in sorted(devices):
            d = devices[name]
            print(f"{name}  manufacturing={_fmt_hms(d['manufacturingSeconds'])} idle={_fmt_hms(d['idleSeconds'])} "
                  f"total={d['totalOnSeconds']}s eff={d['efficiencyPercent']}%")
    elif args.command == "timeline":
        stats = data.get("stats", {})
        for name in sorted(data.get("devices", {})):
            print(f"{name}  segments={len(data['devices'][name]['segments'])}")
        print(f"fleet  manufacturing={_fmt_hms(stats.get('manufacturingSeconds'))} idle={_fmt_hms(stats.get('idleSeconds'))} "
              f"eff={stats.get('efficiencyPercent')}%")
    else:
        print("ok")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
