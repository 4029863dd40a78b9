"""HTTP JSON API（Flask）- 把請求轉給 RunController"""
import logging
import traceback

from flask import Flask, jsonify, request
from werkzeug.exceptions import HTTPException

from version import get_version_info
from api.controller import ControlError, RunController, DEFAULT_LOG_COUNT, MIN_GAMES, MAX_GAMES

ENDPOINTS = {
    "/api": "GET - API documentation",
    "/games": "GET - List available games",
    "/start": "POST - Start the bot",
    "/stop": "POST - Stop the bot",
    "/pause": "POST - Pause",
    "/resume": "POST - Resume",
    "/status": "GET - Bot status",
    "/stats": "GET - Detailed statistics",
    "/logs": "GET - Recent logs (?count=N)",
}


def _parse_count(raw) -> int:
    try:
        count = int(raw)
    except (TypeError, ValueError):
        return DEFAULT_LOG_COUNT
    return count if count > 0 else DEFAULT_LOG_COUNT


def create_app(controller: RunController) -> Flask:
    app = Flask(__name__)
    app.json.sort_keys = False

    @app.after_request
    def add_cors_headers(response):
        response.headers["Access-Control-Allow-Origin"] = "*"
        response.headers["Access-Control-Allow-Headers"] = "Content-Type"
        response.headers["Access-Control-Allow-Methods"] = "GET, POST, OPTIONS"
        return response

    # ---- 錯誤處理 ----

    @app.errorhandler(ControlError)
    def handle_control_error(err: ControlError):
        logging.info(f"[API] 拒絕 {request.method} {request.path}: {err.message}")
        return jsonify(err.to_dict()), err.status

    @app.errorhandler(404)
    def handle_not_found(err):
        return jsonify({"success": False, "error": "Route not found", "path": request.path}), 404

    @app.errorhandler(HTTPException)
    def handle_http_error(err: HTTPException):
        return jsonify({"success": False, "error": err.description}), err.code

    @app.errorhandler(Exception)
    def handle_unexpected(err: Exception):
        logging.error(f"[API] 未處理的錯誤: {err}")
        logging.error(traceback.format_exc())
        return jsonify({"success": False, "error": "Internal server error", "message": str(err)}), 500

    # ---- 路由 ----

    @app.get("/api")
    def api_docs():
        return jsonify({
            "message": "Multi-Game Bot API",
            "version": get_version_info()["version"],
            "status": "running",
            "endpoints": ENDPOINTS,
            "documentation": {
                "start": {
                    "method": "POST",
                    "body": {
                        "gameKey": "string",
                        "phone": "string",
                        "password": "string",
                        "numGames": f"number ({MIN_GAMES}-{MAX_GAMES})",
                    },
                },
            },
        })

    @app.get("/games")
    def list_games():
        games = controller.list_games()
        return jsonify({"success": True, "games": games, "count": len(games)})

    @app.post("/start")
    def start():
        payload = request.get_json(silent=True)
        config = controller.start(payload)
        return jsonify({"success": True, "message": "Bot started", "config": config})

    @app.post("/stop")
    def stop():
        stats = controller.stop()
        return jsonify({"success": True, "message": "Stop requested", "stats": stats})

    @app.post("/pause")
    def pause():
        controller.pause()
        return jsonify({"success": True, "message": "Bot paused"})

    @app.post("/resume")
    def resume():
        controller.resume()
        return jsonify({"success": True, "message": "Bot resumed"})

    @app.get("/status")
    def status():
        body = {"success": True}
        body.update(controller.status())
        return jsonify(body)

    @app.get("/stats")
    def stats():
        body = {"success": True}
        body.update(controller.stats())
        return jsonify(body)

    @app.get("/logs")
    def logs():
        entries = controller.logs(_parse_count(request.args.get("count")))
        return jsonify({
            "success": True,
            "hasBot": controller.has_bot,
            "count": len(entries),
            "logs": entries,
        })

    return app
