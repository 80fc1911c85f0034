from __future__ import annotations

import json
import signal
import sys
import threading

from .config import apply_toml, build_arg_parser, resolve_timezone, resolved_config_dict
from .constants import VERSION
from .errors import ValidationError
from .logging import JsonLogger
from .registry import DeviceRegistry
from .selftest import run_self_test
from .server import ServerThread, create_app


def main(argv=None):
    """CLI entry point. Parses args, builds the registry and serves the HTTP API."""
    if argv is None:
        argv = sys.argv[1:]
    ap = build_arg_parser()
    args = ap.parse_args(argv)

    # TOML fills in anything not given on the command line.
    apply_toml(args, argv)

    if args.version:
        print(VERSION)
        return 0

    if args.print_config:
        print(json.dumps(resolved_config_dict(args), indent=2, sort_keys=True))
        return 0

    try:
        tz = resolve_timezone(args.timezone)
    except ValidationError as e:
        raise SystemExit(f"ERROR: {e}")

    if args.self_test:
        return run_self_test(args, tz=tz)

    logger = JsonLogger(enable_json=bool(args.json))
    registry = DeviceRegistry(logger, debounce_ms=args.debounce_ms, verbose=args.verbose)
    app = create_app(registry, logger, tz=tz)

    try:
        srv = ServerThread(app, args.host, args.port, logger)
    except OSError as e:
        logger.emit("server_bind_error", host=args.host, port=args.port, error=str(e))
        return 2

    if not args.no_banner:
        print(f"machine-monitor {VERSION}")
        print(f"Listening on http://{args.host}:{srv.port}")
        # Structured startup event for log scraping
        logger.emit(
            "startup",
            version=VERSION,
            host=args.host,
            port=srv.port,
            debounce_ms=args.debounce_ms,
            timezone=args.timezone,
            verbose=args.verbose,
        )

    srv.start()

    stop = threading.Event()
    signal.signal(signal.SIGINT, lambda *_: stop.set())
    signal.signal(signal.SIGTERM, lambda *_: stop.set())

    exit_code = 0
    while not stop.is_set():
        if not srv.is_alive():
            logger.emit("server_thread_dead")
            exit_code = 3
            break
        stop.wait(0.2)

    srv.shutdown()
    srv.join(timeout=1.0)
    return exit_code


if __name__ == "__main__":
    raise SystemExit(main())
