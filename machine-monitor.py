#!/usr/bin/env python3
#
# Machine-tool activity monitor
#
# Embedded controllers POST their digital pin states to /update. Each device's
# manufacturing pin is turned into debounced manufacturing and idle runs, and
# the spindle pin into accumulated spindle time. A dashboard polls /devices for
# the current 12h shift view and /devices/report for arbitrary date ranges.
#

from __future__ import annotations

from machmon.cli import main

if __name__ == "__main__":
    raise SystemExit(main())
