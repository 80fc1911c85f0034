from __future__ import annotations

import threading
from datetime import datetime, tzinfo
from typing import Optional

from flask import Flask, jsonify, request
from flask_cors import CORS
from werkzeug.serving import make_server

from .errors import ValidationError
from .logging import JsonLogger
from .queries import health, live_snapshot, range_report, timeline
from .registry import DeviceRegistry
from .shifts import window_for_selection


def create_app(registry: DeviceRegistry, logger: JsonLogger, tz: Optional[tzinfo] = None) -> Flask:
    """Build the HTTP API around an explicitly owned registry.

    Routes:
        POST   /update             device report (ingest)
        GET    /devices            live shift-aligned snapshot
        GET    /devices/report     totals over ?from=&to= (epoch ms)
        GET    /devices/timeline   segments for ?date=YYYY-MM-DD&shift=shift1|shift2|day
        GET    /status             health
        DELETE /reset              drop all device state
    """
    app = Flask(__name__)
    app.config["REGISTRY"] = registry
    # Dashboards are served from a different origin than the API.
    CORS(app)

    @app.errorhandler(ValidationError)
    def _bad_request(exc):
        return jsonify({"error": str(exc)}), 400

    @app.post("/update")
    def update():
        payload = request.get_json(silent=True)
        return jsonify(registry.ingest(payload))

    @app.get("/devices")
    def devices():
        return jsonify(live_snapshot(registry, tz=tz))

    @app.get("/devices/report")
    def report():
        return jsonify(range_report(registry, request.args.get("from"), request.args.get("to")))

    @app.get("/devices/timeline")
    def devices_timeline():
        now = registry.now()
        raw_date = request.args.get("date")
        if raw_date:
            try:
                day = datetime.strptime(raw_date, "%Y-%m-%d").date()
            except ValueError:
                raise ValidationError(f"Invalid date: {raw_date!r}") from None
        else:
            day = datetime.fromtimestamp(now / 1000.0, tz).date()
        window = window_for_selection(day, request.args.get("shift", "shift1"), tz)
        return jsonify(timeline(registry, window, now=now))

    @app.get("/status")
    def status():
        return jsonify(health(registry))

    @app.delete("/reset")
    def reset():
        registry.reset()
        return jsonify({
            "success": True,
            "message": "All data has been reset",
            "timestamp": registry.now(),
        })

    return app


class ServerThread(threading.Thread):
    """Background HTTP server.

    Serves the Flask app with werkzeug's threaded server until shutdown() is
    called from the main thread."""
    def __init__(self, app: Flask, host: str, port: int, logger: JsonLogger):
        super().__init__(daemon=True)
        self.logger = logger
        self.host = host
        self._srv = make_server(host, port, app, threaded=True)
        self.port = self._srv.server_port

    def run(self):
        self.logger.emit("server_started", host=self.host, port=self.port)
        self._srv.serve_forever()

    def shutdown(self):
        self._srv.shutdown()
        self._srv.server_close()
        self.logger.emit("server_stopped")
