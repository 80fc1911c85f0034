from __future__ import annotations

VERSION = "1.0.0"

DEBOUNCE_MS = 500
MIN_VALID_DURATION_S = 1

# Fixed 12h shifts, local time.
SHIFT1_NAME = "Shift1"
SHIFT2_NAME = "Shift2"
SHIFT1_START = (8, 30)
SHIFT2_START = (20, 30)
SHIFT_SECONDS = 12 * 3600

PINS = ("pin2", "pin3", "pin4")
SPINDLE_PIN = "pin2"
MANUFACTURING_PIN = "pin3"

DEFAULT_HOST = "0.0.0.0"
DEFAULT_PORT = 3000


USAGE_EXAMPLES = """\
Usage examples:
  # Serve the ingest/dashboard API on the default port (3000)
  machine-monitor --banner

  # Explicit bind address, shift calendar pinned to a timezone
  machine-monitor --host 127.0.0.1 --port 8080 --timezone Europe/Copenhagen

  # JSON event logs, including every incoming report
  machine-monitor --json --verbose

  # Replay a synthetic report sequence through the engine (no network)
  machine-monitor --self-test

  # Show the configuration resolved from a TOML file and exit
  machine-monitor --config /etc/machmon.toml --print-config
"""
