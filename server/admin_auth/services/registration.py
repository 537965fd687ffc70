"""Registration Service: enrol a platform authenticator for an approved admin."""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional

from fido2.webauthn import AuthenticatorData, UserVerificationRequirement

from ..encoding import encode_urlsafe
from ..errors import DeadlineExceeded, FailedPrecondition, InvalidArgument
from ..identity import CallerIdentity
from ..stores.credentials import CredentialRecord
from .base import Service, service_operation

__all__ = ["PUBLIC_KEY_ALGORITHMS", "RegistrationService"]

LOGGER = logging.getLogger("admin_auth.registration")

# ES256, EdDSA, RS256
PUBLIC_KEY_ALGORITHMS = (-7, -8, -257)

_NOT_ADMIN_MESSAGE = "Only approved admins can register biometric credentials"


def _transports_from(response: Mapping[str, Any]) -> Optional[List[str]]:
    inner = response.get("response")
    transports = inner.get("transports") if isinstance(inner, Mapping) else None
    if not isinstance(transports, list):
        return None
    cleaned = [value for value in transports if isinstance(value, str) and value]
    return cleaned or None


class RegistrationService(Service):
    @service_operation("Failed to generate registration options")
    def generate_registration_challenge(self, caller: Optional[CallerIdentity]) -> Dict[str, Any]:
        identity = self.require_admin(caller, _NOT_ADMIN_MESSAGE)
        settings = self.backend.settings

        existing = self.backend.credentials.for_owner(identity.uid)
        record = self.backend.challenges.issue_registration(identity.uid)
        LOGGER.info(
            "Registration challenge issued for %s (%d existing credentials).",
            identity.uid,
            len(existing),
        )

        return {
            "rp": {"id": settings.rp_id, "name": settings.rp_name},
            "user": {
                "id": encode_urlsafe(identity.uid.encode("utf-8")),
                "name": identity.email or identity.uid,
                "displayName": identity.name,
            },
            "challenge": record.challenge,
            "pubKeyCredParams": [
                {"type": "public-key", "alg": alg} for alg in PUBLIC_KEY_ALGORITHMS
            ],
            "excludeCredentials": [credential.descriptor() for credential in existing],
            "authenticatorSelection": {
                "authenticatorAttachment": "platform",
                "requireResidentKey": False,
                "residentKey": "discouraged",
                "userVerification": UserVerificationRequirement.REQUIRED.value,
            },
            "attestation": "none",
            "timeout": settings.client_timeout_ms,
        }

    @service_operation("Failed to verify registration")
    def verify_registration(
        self,
        caller: Optional[CallerIdentity],
        attestation_response: Any,
    ) -> Dict[str, Any]:
        identity = self.require_admin(caller, _NOT_ADMIN_MESSAGE)
        challenges = self.backend.challenges

        if not isinstance(attestation_response, Mapping):
            raise InvalidArgument("A credential attestation response is required")

        pending = challenges.pending_registration(identity.uid)
        if pending is None:
            raise FailedPrecondition("No pending challenge found")

        if pending.is_expired(self.backend.clock()):
            challenges.consume_registration(identity.uid, pending.challenge)
            raise DeadlineExceeded("Challenge has expired")

        state = {
            "challenge": pending.challenge,
            "user_verification": UserVerificationRequirement.REQUIRED,
        }
        try:
            auth_data = self.backend.fido_server().register_complete(state, attestation_response)
        except (ValueError, KeyError, TypeError, AttributeError) as exc:
            LOGGER.warning("Registration verification failed for %s: %s", identity.uid, exc)
            raise InvalidArgument("Registration verification failed") from exc

        credential_data = auth_data.credential_data
        if credential_data is None:
            raise InvalidArgument("Registration response carries no credential")

        if not challenges.consume_registration(identity.uid, pending.challenge):
            raise FailedPrecondition("No pending challenge found")

        record = CredentialRecord.from_attested_data(
            credential_data,
            owner_id=identity.uid,
            owner_email=identity.email,
            counter=auth_data.counter,
            backup_eligible=bool(auth_data.flags & AuthenticatorData.FLAG.BE),
            backed_up=bool(auth_data.flags & AuthenticatorData.FLAG.BS),
            transports=_transports_from(attestation_response),
            registered_at=self.backend.clock(),
        )
        if not self.backend.credentials.add(record):
            LOGGER.warning("Credential %s is already registered.", record.credentialId[:12])
            raise InvalidArgument("Credential is already registered")

        LOGGER.info("Registered credential %s... for %s.", record.credentialId[:12], identity.uid)
        return {
            "verified": True,
            "credentialId": record.credentialId,
            "message": "Biometric credential registered successfully",
        }
