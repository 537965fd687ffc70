"""Authentication Service: verify an admin's assertion and mint a session."""
from __future__ import annotations

import logging
from typing import Any, Dict, Mapping

from fido2.webauthn import AuthenticationResponse, UserVerificationRequirement

from ..encoding import decode_binary_value, encode_urlsafe
from ..errors import FailedPrecondition, InvalidArgument, PermissionDenied
from ..identity import CallerIdentity
from .base import Service, service_operation

__all__ = ["AUTH_METHOD_WEBAUTHN", "AuthenticationService"]

LOGGER = logging.getLogger("admin_auth.authentication")

AUTH_METHOD_WEBAUTHN = "webauthn"


def _credential_id_from(response: Mapping[str, Any]) -> str:
    raw_identifier = response.get("rawId") or response.get("id")
    return encode_urlsafe(decode_binary_value(raw_identifier))


def _counter_regressed(stored: int, received: int) -> bool:
    # Authenticators without a counter report zero on every use.
    if stored == 0 and received == 0:
        return False
    return received <= stored


class AuthenticationService(Service):
    @service_operation("Failed to generate authentication options")
    def generate_authentication_challenge(self) -> Dict[str, Any]:
        credentials = self.backend.credentials.all()
        if not credentials:
            raise FailedPrecondition("No biometric credentials registered. Please register first.")

        record = self.backend.challenges.issue_authentication()
        settings = self.backend.settings
        return {
            "challenge": record.challenge,
            "rpId": settings.rp_id,
            "allowCredentials": [credential.descriptor() for credential in credentials],
            "userVerification": UserVerificationRequirement.REQUIRED.value,
            "timeout": settings.client_timeout_ms,
        }

    @service_operation("Failed to verify authentication")
    def verify_authentication(self, assertion_response: Any) -> Dict[str, Any]:
        backend = self.backend

        if not isinstance(assertion_response, Mapping):
            raise InvalidArgument("A credential assertion response is required")

        # The signed client data is the only trusted source of the challenge.
        try:
            parsed = AuthenticationResponse.from_dict(assertion_response)
            challenge = encode_urlsafe(parsed.response.client_data.challenge)
            credential_id = _credential_id_from(assertion_response)
        except (ValueError, KeyError, TypeError, AttributeError) as exc:
            LOGGER.warning("Malformed assertion response: %s", exc)
            raise InvalidArgument("Malformed assertion response") from exc

        pending = backend.challenges.find_authentication(challenge)
        if pending is None:
            raise FailedPrecondition("Invalid or expired challenge")

        stored = backend.credentials.get(credential_id)
        if stored is None:
            LOGGER.warning("Assertion for unknown credential %s...", credential_id[:12])
            raise PermissionDenied("Credential not found")

        state = {
            "challenge": pending.challenge,
            "user_verification": UserVerificationRequirement.REQUIRED,
        }
        try:
            backend.fido_server().authenticate_complete(
                state,
                [stored.to_attested_credential_data()],
                assertion_response,
            )
        except (ValueError, KeyError, TypeError, AttributeError) as exc:
            LOGGER.warning("Assertion verification failed for %s...: %s", credential_id[:12], exc)
            raise PermissionDenied("Authentication verification failed") from exc

        owner = CallerIdentity(uid=stored.ownerId, email=stored.ownerEmail)
        if not backend.admin_policy.is_approved(owner):
            LOGGER.warning("Credential owner %s is no longer an approved admin.", owner.uid)
            raise PermissionDenied("Admin access has been revoked")

        new_counter = parsed.response.authenticator_data.counter
        backend.credentials.update_counter(stored.credentialId, new_counter)
        if _counter_regressed(stored.signatureCounter, new_counter):
            backend.challenges.consume_authentication(pending.recordId)
            LOGGER.warning(
                "Signature counter did not advance for %s... (stored %d, received %d).",
                credential_id[:12],
                stored.signatureCounter,
                new_counter,
            )
            raise PermissionDenied("Authenticator signature counter did not advance")

        if not backend.challenges.consume_authentication(pending.recordId):
            raise FailedPrecondition("Invalid or expired challenge")

        session = backend.sessions.mint(stored.ownerId, AUTH_METHOD_WEBAUTHN)
        LOGGER.info("Admin %s authenticated with credential %s...", stored.ownerId, credential_id[:12])
        return {
            "verified": True,
            "sessionToken": session.token,
            "ownerId": session.ownerId,
            "expiresAt": session.expiresAt,
            "message": "Authentication successful",
        }
