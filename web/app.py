"""
HTTP surface: start an analysis, read a report, manage the AI configuration.

Routes stay thin; the work happens in analysis.dispatcher and storage.
"""

import logging
from typing import Optional

from flask import Blueprint, Flask, jsonify, request

from analysis.dispatcher import dispatch
from analysis.errors import InvalidRequest
from analysis.models import ReportRequest
from settings import Settings, load_config
from storage import ai_config as ai_config_store
from storage import reports as report_store
from storage import tasks as task_queue
from storage.db import init_db

logger = logging.getLogger(__name__)


def create_blueprint(settings: Settings) -> Blueprint:
    bp = Blueprint("api", __name__)

    @bp.post("/analyze")
    def analyze():
        try:
            analysis_request = ReportRequest.from_json(request.get_json(silent=True))
            logger.info(
                "Analyze request: url=%r services=%r email=%s",
                analysis_request.website_url,
                analysis_request.enabled_services,
                bool(analysis_request.email),
            )
            report_id = dispatch(analysis_request, settings)
        except InvalidRequest as exc:
            logger.info("Rejected analyze request: %s", exc)
            return jsonify({"error": str(exc)}), 400
        except Exception:
            logger.exception("Failed to initiate analysis")
            return jsonify({"error": "Failed to initiate analysis"}), 500

        return jsonify({
            "reportId": report_id,
            "message": "Analysis started successfully. Results will be available shortly.",
        })

    @bp.get("/reports/<report_id>")
    def get_report(report_id: str):
        report = report_store.get_report(report_id)
        if report is None:
            return jsonify({"error": "Report not found"}), 404
        doc = report.to_dict()
        doc["partialResults"] = {
            key: result.to_dict()
            for key, result in report_store.get_partial_results(report_id).items()
        }
        return jsonify(doc)

    @bp.route("/ai-config", methods=["GET", "POST"])
    def manage_ai_config():
        if request.method != "POST":
            return jsonify({"error": "Method not allowed"}), 405

        body = request.get_json(silent=True) or {}
        if not isinstance(body, dict):
            return jsonify({"error": "Request body must be a JSON object"}), 400
        action = body.get("action")
        try:
            current = ai_config_store.get_current_ai_config(default=settings.ai)
            if action == "get":
                return jsonify(current.to_dict())
            if action == "update":
                changes = body.get("config")
                if not isinstance(changes, dict) or not changes:
                    return jsonify({"error": "Configuration is required"}), 400
                version = ai_config_store.save_ai_config(current.updated(changes))
                return jsonify({"message": "Configuration updated successfully", "version": version})
        except InvalidRequest as exc:
            return jsonify({"error": str(exc)}), 400
        except Exception:
            logger.exception("Error managing AI config")
            return jsonify({"error": "Failed to manage AI configuration"}), 500

        return jsonify({"error": "Invalid action"}), 400

    @bp.get("/health")
    def health():
        return jsonify({
            "status":       "ok",
            "reports":      report_store.count_reports(),
            "pendingTasks": task_queue.count_tasks(status="pending"),
            "failedTasks":  task_queue.count_tasks(status="failed"),
        })

    return bp


def create_app(settings: Optional[Settings] = None) -> Flask:
    settings = settings or load_config()
    init_db()

    app = Flask(__name__)
    app.register_blueprint(create_blueprint(settings))

    app.config["HOST"] = settings.flask_host
    app.config["PORT"] = settings.flask_port
    app.config["DEBUG"] = settings.flask_debug
    return app
