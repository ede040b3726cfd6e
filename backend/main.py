from __future__ import annotations

import json
import logging
import os
from typing import Any

from flask import Flask, jsonify

logger = logging.getLogger(__name__)

FIXTURE_PATH = os.getenv(
    "PARKFINDER_FIXTURE_PATH",
    os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), "data", "parking_spots.json"),
)


def load_fixture(path: str) -> dict[str, Any]:
    if not os.path.exists(path):
        logger.warning("Parking fixture not found at %s, serving an empty collection", path)
        return {"parkingSpots": []}

    with open(path, "r", encoding="utf-8") as f:
        raw = json.load(f)

    if not isinstance(raw, dict) or not isinstance(raw.get("parkingSpots"), list):
        raise ValueError(f"{path}: expected an object with a 'parkingSpots' list")
    return raw


def create_app(fixture_path: str = FIXTURE_PATH) -> Flask:
    app = Flask(__name__)
    document = load_fixture(fixture_path)
    logger.info("Serving %d parking spots from %s", len(document["parkingSpots"]), fixture_path)

    @app.after_request
    def add_cors_headers(resp):
        resp.headers["Access-Control-Allow-Origin"] = "*"
        resp.headers["Access-Control-Allow-Methods"] = "GET, OPTIONS"
        resp.headers["Access-Control-Allow-Headers"] = "Content-Type"
        return resp

    @app.route("/db")
    def db():
        return jsonify(document)

    @app.route("/parkingSpots")
    def parking_spots():
        return jsonify(document["parkingSpots"])

    @app.route("/parkingSpots/<int:spot_id>")
    def parking_spot(spot_id: int):
        for spot in document["parkingSpots"]:
            if isinstance(spot, dict) and spot.get("id") == spot_id:
                return jsonify(spot)
        return jsonify({"detail": f"Parking spot {spot_id} not found"}), 404

    return app


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    # Same port the browser app expects its json-server on
    create_app().run(host="0.0.0.0", port=int(os.getenv("PARKFINDER_SOURCE_PORT", "3000")), debug=True)
