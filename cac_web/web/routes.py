## routes.py
from __future__ import annotations

from datetime import datetime, timezone

from flask import Blueprint, Response, current_app, g, jsonify, request

from cac_web.auth.tokens import TokenVerifier, bearer_token
from cac_web.domain.errors import NotFoundError, ValidationError
from cac_web.services.analysis_service import AnalysisService

ENDPOINT_PATH = "/competitor-analysis-core"

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "authorization, x-client-info, apikey, content-type",
    "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
}

ACTIONS = ("analyze", "export", "progress", "permissions", "debug")


def _error(message: str, code: int, **extra):
    body = {"error": message}
    body.update(extra)
    return jsonify(body), code


def _json_body() -> dict:
    body = request.get_json(silent=True)
    return body if isinstance(body, dict) else {}


def create_blueprint(
    analysis_service: AnalysisService,
    token_verifier: TokenVerifier,
    permissions: dict,
) -> Blueprint:
    bp = Blueprint("analysis", __name__)

    @bp.after_request
    def add_cors_headers(resp: Response) -> Response:
        for k, v in CORS_HEADERS.items():
            resp.headers.setdefault(k, v)
        return resp

    # -----------------------------
    # Sub-handlers
    # -----------------------------
    def handle_analyze():
        body = _json_body()
        job = analysis_service.start_analysis(
            g.user,
            body.get("competitors"),
            analysis_type=body.get("analysisType"),
            options_raw=body.get("options"),
        )
        return jsonify(success=True, analysisId=job.id, sessionId=job.session_id, status="started")

    def handle_export():
        body = _json_body()
        payload = analysis_service.export(g.user, body.get("analysisId"), body.get("format") or "json")
        return Response(payload.body, mimetype=payload.content_type)

    def handle_progress():
        return jsonify(analysis_service.get_progress(g.user, request.args.get("analysisId")))

    def handle_permissions():
        return jsonify(permissions)

    def handle_debug():
        body = _json_body()
        return jsonify(
            timestamp=datetime.now(timezone.utc).isoformat(),
            user=g.user.id,
            action=body.get("action"),
            data=body.get("data"),
            systemStatus="operational",
        )

    handlers = {
        "analyze": handle_analyze,
        "export": handle_export,
        "progress": handle_progress,
        "permissions": handle_permissions,
        "debug": handle_debug,
    }

    # -----------------------------
    # Multiplexed entry point
    # -----------------------------
    @bp.route(ENDPOINT_PATH, methods=["GET", "POST", "OPTIONS"])
    def competitor_analysis_core():
        if request.method == "OPTIONS":
            return Response(status=200)

        user = token_verifier.verify(bearer_token(request.headers.get("Authorization")))
        if user is None:
            return _error("Unauthorized", 401)
        g.user = user

        action = (request.args.get("action") or "analyze").strip().lower()
        current_app.logger.info("Competitor analysis core - action=%s user=%s", action, user.id)

        handler = handlers.get(action)
        if handler is None:
            return _error("Invalid action", 400)

        try:
            return handler()
        except ValidationError as e:
            return _error(str(e), 400)
        except NotFoundError as e:
            return _error(str(e), 404)
        except Exception as e:
            current_app.logger.exception("Competitor analysis core error (action=%s)", action)
            return _error("Internal server error", 500, message=str(e))

    return bp
