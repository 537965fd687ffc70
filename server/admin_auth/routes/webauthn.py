"""Routes for the biometric registration and authentication flows."""
from __future__ import annotations

from flask import Blueprint, jsonify

from ..services import AuthenticationService, RegistrationService, SessionValidator
from .common import current_backend, current_caller, request_payload

bp = Blueprint("webauthn", __name__)


@bp.route("/api/register/begin", methods=["POST"])
def register_begin():
    backend = current_backend()
    options = RegistrationService(backend).generate_registration_challenge(current_caller(backend))
    return jsonify(options)


@bp.route("/api/register/complete", methods=["POST"])
def register_complete():
    backend = current_backend()
    payload = request_payload()
    result = RegistrationService(backend).verify_registration(
        current_caller(backend), payload.get("credential")
    )
    return jsonify(result)


@bp.route("/api/authenticate/begin", methods=["POST"])
def authenticate_begin():
    options = AuthenticationService(current_backend()).generate_authentication_challenge()
    return jsonify(options)


@bp.route("/api/authenticate/complete", methods=["POST"])
def authenticate_complete():
    payload = request_payload()
    result = AuthenticationService(current_backend()).verify_authentication(payload.get("credential"))
    return jsonify(result)


@bp.route("/api/session/validate", methods=["POST"])
def session_validate():
    payload = request_payload()
    result = SessionValidator(current_backend()).validate_session_token(payload.get("sessionToken"))
    return jsonify(result)
