# app.py: Flask API over the population gravity core
# deps: pip install flask numpy rasterio requests

from __future__ import annotations
import logging
import threading
from collections import OrderedDict
from typing import Any, Dict, Optional

from flask import Flask, jsonify, request

from .config import GEOTIFF_URL, MAX_SESSIONS, POPULATION_TIF, SUPERCELL_SIZE_DEG
from .errors import DataUnavailable, DecodeFailure, InvalidRequest
from .models import MODES, SpatialQuery
from .population import compute_population
from .raster import RasterSource
from .session import QuerySession
from .supercells import downsample
from .travel_time import TravelTimeStore, filter_travel_time

logger = logging.getLogger(__name__)


def _number(data: Dict[str, Any], key: str, lo: float, hi: float, default: Optional[float] = None) -> float:
    v = data.get(key, default)
    if isinstance(v, bool) or not isinstance(v, (int, float)) or not (lo <= v <= hi):
        raise InvalidRequest(f"{key} must be a number between {lo:g} and {hi:g}")
    return float(v)


def create_app(
    source: Optional[RasterSource] = None,
    store: Optional[TravelTimeStore] = None,
    max_sessions: int = MAX_SESSIONS,
) -> Flask:
    app = Flask(__name__)
    source = source or RasterSource()
    store = store or TravelTimeStore()
    # LRU by last use; an evicted id simply starts a fresh session next time
    sessions: "OrderedDict[str, QuerySession]" = OrderedDict()
    sessions_lock = threading.Lock()
    app.extensions["popgravity.sessions"] = sessions

    def session_for(key: str) -> QuerySession:
        with sessions_lock:
            s = sessions.get(key)
            if s is None:
                s = sessions[key] = QuerySession()
                while len(sessions) > max_sessions:
                    sessions.popitem(last=False)
            else:
                sessions.move_to_end(key)
            return s

    # ======= CORS =======
    @app.after_request
    def _cors(resp):
        resp.headers["Access-Control-Allow-Origin"]  = "*"
        resp.headers["Access-Control-Allow-Headers"] = "*"
        resp.headers["Access-Control-Allow-Methods"] = "GET,POST,OPTIONS"
        return resp

    @app.errorhandler(InvalidRequest)
    def _bad_request(e):
        return jsonify({"error": str(e)}), 400

    @app.errorhandler(DataUnavailable)
    @app.errorhandler(DecodeFailure)
    def _server_error(e):
        logger.exception("Population data error")
        return jsonify({"error": str(e)}), 500

    @app.route("/", methods=["GET"])
    def root():
        return {
            "ok": True,
            "source_tif": source.url or source.path,
            "population": "/population (POST JSON)",
            "travel_time": "/travel-time/<originId>/summary (POST JSON)",
        }

    # ======= distance rings =======
    @app.route("/population", methods=["POST"])
    def population():
        """
        JSON body:
        { "lat": -90..90, "lng": -180..180, "radiusKm": 1..500, "exponent": 0.1..3 (default 2) }
        """
        data = request.get_json(force=True, silent=True) or {}
        query = SpatialQuery(
            lat=_number(data, "lat", -90, 90),
            lng=_number(data, "lng", -180, 180),
            radius_km=_number(data, "radiusKm", 1, 500),
            exponent=_number(data, "exponent", 0.1, 3, default=2.0),
        )
        result = compute_population(source, query)
        body = result.to_dict()
        body.update({"center": {"lat": query.lat, "lng": query.lng}, "radiusKm": query.radius_km})
        return jsonify(body)

    # ======= travel time =======
    @app.route("/travel-time/results/<origin_id>", methods=["GET"])
    def travel_time_results(origin_id):
        try:
            data = store.load_raw(origin_id)
        except DataUnavailable as e:
            return jsonify({"error": str(e)}), 404
        resp = jsonify(data)
        resp.headers["Cache-Control"] = "public, max-age=86400"
        return resp

    @app.route("/travel-time/<origin_id>/summary", methods=["POST"])
    def travel_time_summary(origin_id):
        """
        JSON body:
        {
          "mode": "driving" | "transit" | "fastest",
          "exponent": 0.1..3,
          "maxTimeMin": int > 0,
          "tiles": false,            // include supercells
          "tileSizeDeg": null,       // implies tiles
          "sessionId": null          // newer calls with the same id supersede older ones
        }
        """
        data = request.get_json(force=True, silent=True) or {}
        mode = data.get("mode", "fastest")
        if mode not in MODES:
            raise InvalidRequest(f"mode must be one of {', '.join(MODES)}")
        exponent = _number(data, "exponent", 0.1, 3, default=2.0)
        max_time = data.get("maxTimeMin", 60)
        if isinstance(max_time, bool) or not isinstance(max_time, int) or max_time <= 0:
            raise InvalidRequest("maxTimeMin must be a positive integer")
        tile_size = data.get("tileSizeDeg")
        want_tiles = bool(data.get("tiles")) or tile_size is not None
        if tile_size is not None:
            tile_size = _number(data, "tileSizeDeg", 1e-6, 10)

        def work(cancel: threading.Event):
            result = filter_travel_time(store.load(origin_id, cancel), mode, exponent, max_time)
            body = result.to_dict()
            if want_tiles:
                tiles = downsample(result.cells, tile_size or SUPERCELL_SIZE_DEG)
                body["tiles"] = [
                    dict(t.to_dict(), travelTimeMin=round(t.mean_metric / 60.0)) for t in tiles
                ]
            return body

        try:
            session_id = data.get("sessionId")
            if session_id:
                body = session_for(str(session_id)).run(work)
                if body is None:
                    return jsonify({"error": "superseded by a newer request"}), 409
            else:
                body = work(threading.Event())
        except DataUnavailable as e:
            return jsonify({"error": str(e)}), 404
        return jsonify(body)

    return app


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    logger.info("Population raster: %s", GEOTIFF_URL or POPULATION_TIF)
    create_app().run(host="0.0.0.0", port=8081, threaded=True)
