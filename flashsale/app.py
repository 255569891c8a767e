"""HTTP endpoints for the flash-sale demo and the command that serves them."""

from __future__ import annotations

import argparse
import logging
import re
from collections.abc import Callable
from pathlib import Path

from flask import Blueprint, Flask, abort, jsonify, request, send_file

from .models import Database
from .response import Response
from .service import (
    DEFAULT_MAX_RETRY,
    get_good_info,
    run_channel,
    run_occ,
    run_pcc_read,
    run_pcc_write,
    run_with_lock,
    run_without_lock,
)

FAVICON_PATH = Path("static") / "favicon"
DEFAULT_DATABASE = "sqlite:///flashsale.db"
DEFAULT_HOST = "0.0.0.0"
DEFAULT_PORT = 3000

_INTEGER = re.compile(r"[+-]?[0-9]+")


def _query_gid() -> int:
    """Read the ``gid`` query parameter; anything that is not an integer counts as 0."""
    raw = request.args.get("gid", "")
    return int(raw) if _INTEGER.fullmatch(raw) else 0


def _respond(resp: Response):
    return jsonify(resp.to_dict()), int(resp.status)


def create_app(db: Database, max_retry: int = DEFAULT_MAX_RETRY) -> Flask:
    """Build the web application serving products and purchase strategies from ``db``."""
    app = Flask(__name__)
    app.json.ensure_ascii = False

    @app.get("/favicon.ico")
    def favicon():
        path = FAVICON_PATH.resolve()
        if not path.is_file():
            abort(404)
        return send_file(path, mimetype="image/x-icon")

    @app.get("/ping")
    def ping():
        return jsonify({"msg": "pong"}), 200

    @app.get("/good")
    def good():
        return _respond(get_good_info(db, _query_gid()))

    def strategy_view(run: Callable[[Database, int], Response]):
        def view():
            return _respond(run(db, _query_gid()))

        return view

    strategies: dict[str, Callable[[Database, int], Response]] = {
        "without-lock": run_without_lock,
        "with-lock": run_with_lock,
        "pcc-read-lock": run_pcc_read,
        "pcc-write-lock": run_pcc_write,
        "occ-lock": lambda database, gid: run_occ(database, gid, max_retry),
        "channel": run_channel,
    }

    local = Blueprint("local", __name__, url_prefix="/api/local")
    for path, run in strategies.items():
        local.add_url_rule(
            f"/{path}",
            endpoint=path.replace("-", "_"),
            view_func=strategy_view(run),
            methods=["GET"],
        )
    app.register_blueprint(local)

    distributed = Blueprint("distributed", __name__, url_prefix="/api/distributed")

    @distributed.get("/rush")
    def rush():
        return jsonify({"msg": "success"}), 200

    app.register_blueprint(distributed)
    return app


def main(argv: list[str] | None = None) -> int:
    """Initialise the database and serve the application."""
    parser = argparse.ArgumentParser(description="Flash-sale concurrency demo server.")
    parser.add_argument("--database", default=DEFAULT_DATABASE, help="database URL")
    parser.add_argument("--host", default=DEFAULT_HOST, help="address to listen on")
    parser.add_argument("--port", type=int, default=DEFAULT_PORT, help="port to listen on")
    parser.add_argument(
        "--max-retry",
        type=int,
        default=DEFAULT_MAX_RETRY,
        help="attempts for optimistic purchases",
    )
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO)
    db = Database(args.database)
    db.initialize()
    app = create_app(db, args.max_retry)
    print("启动监听端口：", f"{args.host}:{args.port}")
    app.run(host=args.host, port=args.port, threaded=True)
    return 0