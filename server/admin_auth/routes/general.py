"""General application routes and error handlers."""
from __future__ import annotations

from flask import Blueprint, current_app, jsonify

from ..errors import ServiceError
from ..services import check_admin_status
from .common import EXTENSION_KEY, current_backend, current_caller

bp = Blueprint("general", __name__)


@bp.app_errorhandler(ServiceError)
def handle_service_error(error: ServiceError):
    current_app.logger.info("%s: %s", error.status, error.message)
    return jsonify(error.to_payload()), error.http_status


@bp.route("/api/health")
def health_check():
    handle = current_app.extensions[EXTENSION_KEY]
    return jsonify({"status": "healthy" if handle.is_ready else "starting", "ready": handle.is_ready})


@bp.route("/api/admin/status", methods=["POST"])
def admin_status():
    backend = current_backend()
    return jsonify(check_admin_status(backend, current_caller(backend)))
