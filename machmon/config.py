from __future__ import annotations

import argparse
import os
from argparse import RawDescriptionHelpFormatter
from typing import Optional

import pytz

try:
    import tomllib  # py3.11+
except ImportError:  # pragma: no cover
    import tomli as tomllib  # type: ignore

from .constants import DEBOUNCE_MS, DEFAULT_HOST, DEFAULT_PORT, USAGE_EXAMPLES
from .errors import ValidationError


def get_bool_env(name: str, default: bool = False) -> bool:
    val = os.getenv(name)
    if val is None:
        return default
    val = val.lower()
    if val in ("1", "true", "yes", "on"):
        return True
    if val in ("0", "false", "no", "off"):
        return False
    return default


def resolve_timezone(name: Optional[str]):
    """Map a zone name to a pytz timezone. Empty means host local time (None)."""
    if not name:
        return None
    try:
        return pytz.timezone(name)
    except pytz.exceptions.UnknownTimeZoneError:
        raise ValidationError(f"Unknown timezone: {name!r}") from None


def load_toml_config(path: str) -> dict:
    """Load TOML configuration from path."""
    with open(path, "rb") as f:
        return tomllib.load(f)


def _get_cfg(cfg: dict, section: str, key: str, default=None):
    sec = cfg.get(section, {})
    if not isinstance(sec, dict):
        return default
    return sec.get(key, default)


def config_defaults_from(cfg: dict) -> dict:
    """Map TOML config into argparse defaults."""
    return {
        "host": _get_cfg(cfg, "server", "host", DEFAULT_HOST),
        "port": _get_cfg(cfg, "server", "port", DEFAULT_PORT),
        "debounce_ms": _get_cfg(cfg, "monitor", "debounce_ms", DEBOUNCE_MS),
        "timezone": _get_cfg(cfg, "monitor", "timezone", None),
        "verbose": _get_cfg(cfg, "logging", "verbose", False),
        "no_banner": _get_cfg(cfg, "logging", "no_banner", False),
        "json": _get_cfg(cfg, "logging", "json", get_bool_env("MACHMON_JSON", False)),
    }


def resolved_config_dict(args) -> dict:
    return {
        "server": {"host": args.host, "port": args.port},
        "monitor": {"debounce_ms": args.debounce_ms, "timezone": args.timezone},
        "logging": {
            "verbose": args.verbose,
            "no_banner": args.no_banner,
            "json": bool(args.json),
        },
    }


def build_arg_parser(defaults=None):
    """Construct the CLI argument parser for the service."""
    ap = argparse.ArgumentParser(
        prog="machine-monitor",
        description="Machine-tool activity monitor: pin reports in, shift utilization out.",
        epilog=USAGE_EXAMPLES,
        formatter_class=RawDescriptionHelpFormatter,
        # apply_toml decides which options were given by their full spelling.
        allow_abbrev=False,
    )
    # Built-in defaults; TOML values are backfilled after parsing for flags left unset.
    if defaults is None:
        defaults = config_defaults_from({})
    ap.set_defaults(**defaults)
    ap.add_argument("--host", help="Address to bind the HTTP API to.")
    ap.add_argument("--port", type=int, help="TCP port for the HTTP API.")
    ap.add_argument("--debounce-ms", type=int,
                    help="Quiet interval (ms) required before a new rising edge is accepted.")
    ap.add_argument("--timezone",
                    help="IANA zone used for shift boundaries (default: host local time).")
    ap.add_argument("--verbose", dest="verbose", action="store_true", help="Log every incoming report.")
    ap.add_argument("--no-verbose", dest="verbose", action="store_false", help="Disable verbose logging.")
    json_group = ap.add_mutually_exclusive_group()
    json_group.add_argument("--json", dest="json", action="store_true", help="Emit JSON log events.")
    json_group.add_argument("--no-json", dest="json", action="store_false", help="Disable JSON log output.")
    ap.add_argument("--no-banner", dest="no_banner", action="store_true", help="Disable the startup banner.")
    ap.add_argument("--banner", dest="no_banner", action="store_false", help="Enable the startup banner.")
    ap.add_argument("--self-test", action="store_true",
                    help="Replay a synthetic report sequence through the engine and exit.")
    ap.add_argument("--config", help="Path to a TOML config file. CLI args override config values.")
    ap.add_argument("--print-config", action="store_true", help="Print the resolved configuration and exit.")
    ap.add_argument("--version", action="store_true", help="Print version and exit.")
    return ap


def apply_toml(args, argv) -> None:
    """Backfill settings from --config for options not given on the command line."""
    if not getattr(args, "config", None):
        return
    cfg = load_toml_config(args.config)
    given = {a.split("=", 1)[0] for a in argv if a.startswith("--")}
    flags = {
        "host": ("--host",),
        "port": ("--port",),
        "debounce_ms": ("--debounce-ms",),
        "timezone": ("--timezone",),
        "verbose": ("--verbose", "--no-verbose"),
        "json": ("--json", "--no-json"),
        "no_banner": ("--no-banner", "--banner"),
    }
    for k, v in config_defaults_from(cfg).items():
        if not any(flag in given for flag in flags.get(k, ())):
            setattr(args, k, v)
