"""
Software platform authenticator for integration testing.

Produces real ES256 credentials and signatures with "none" attestation, so
responses pass python-fido2 server verification without hardware. Options and
results use ``bytes`` for binary fields, like any
:class:`~admin_auth.client.PlatformAuthenticator`.
"""

import hashlib
import os
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec
from fido2.cose import ES256
from fido2.webauthn import (
    Aaguid,
    AttestationObject,
    AttestedCredentialData,
    AuthenticatorData,
    CollectedClientData,
)

from admin_auth.client import PlatformAuthenticator
from admin_auth.client.agent import (
    decode_creation_options,
    decode_request_options,
    encode_for_transport,
)
from admin_auth.services import AuthenticationService, RegistrationService


@dataclass
class StoredCredential:
    credential_id: bytes
    private_key: ec.EllipticCurvePrivateKey
    rp_id: str
    sign_count: int = 0


class SoftwareAuthenticator(PlatformAuthenticator):
    def __init__(
        self,
        origin: str,
        *,
        counter_step: int = 1,
        backup_eligible: bool = False,
        user_verified: bool = True,
        rp_id: Optional[str] = None,
    ) -> None:
        self.origin = origin
        self.counter_step = counter_step
        self.backup_eligible = backup_eligible
        self.user_verified = user_verified
        # Signs for this RP id instead of the one in the options when set.
        self.rp_id = rp_id
        self.credentials: Dict[bytes, StoredCredential] = {}

    def _presence_flags(self) -> AuthenticatorData.FLAG:
        flags = AuthenticatorData.FLAG.UP
        if self.user_verified:
            flags |= AuthenticatorData.FLAG.UV
        return flags

    def create(self, options: Mapping[str, Any]) -> Dict[str, Any]:
        rp_id = self.rp_id or options["rp"]["id"]
        private_key = ec.generate_private_key(ec.SECP256R1())
        credential_id = os.urandom(32)
        self.credentials[credential_id] = StoredCredential(credential_id, private_key, rp_id)

        client_data = CollectedClientData.create(
            CollectedClientData.TYPE.CREATE,
            options["challenge"],
            self.origin,
        )
        credential_data = AttestedCredentialData.create(
            Aaguid.NONE,
            credential_id,
            ES256.from_cryptography_key(private_key.public_key()),
        )
        flags = self._presence_flags() | AuthenticatorData.FLAG.AT
        if self.backup_eligible:
            flags |= AuthenticatorData.FLAG.BE
        auth_data = AuthenticatorData.create(
            hashlib.sha256(rp_id.encode("utf-8")).digest(),
            flags,
            0,
            credential_data,
        )
        attestation_object = AttestationObject.create("none", auth_data, {})

        return {
            "id": credential_id,
            "rawId": credential_id,
            "type": "public-key",
            "response": {
                "clientDataJSON": bytes(client_data),
                "attestationObject": bytes(attestation_object),
                "transports": ["internal"],
            },
        }

    def get(self, options: Mapping[str, Any], credential_id: Optional[bytes] = None) -> Dict[str, Any]:
        if credential_id is None:
            for descriptor in options.get("allowCredentials", []):
                if descriptor["id"] in self.credentials:
                    credential_id = descriptor["id"]
                    break
        if credential_id is None or credential_id not in self.credentials:
            raise ValueError("No matching credential found for assertion")

        stored = self.credentials[credential_id]
        stored.sign_count += self.counter_step

        client_data = CollectedClientData.create(
            CollectedClientData.TYPE.GET,
            options["challenge"],
            self.origin,
        )
        auth_data = AuthenticatorData.create(
            hashlib.sha256((self.rp_id or stored.rp_id).encode("utf-8")).digest(),
            self._presence_flags(),
            stored.sign_count,
        )
        signature = stored.private_key.sign(
            bytes(auth_data) + client_data.hash,
            ec.ECDSA(hashes.SHA256()),
        )

        return {
            "id": credential_id,
            "rawId": credential_id,
            "type": "public-key",
            "response": {
                "clientDataJSON": bytes(client_data),
                "authenticatorData": bytes(auth_data),
                "signature": signature,
            },
        }


def register_credential(backend, caller, authenticator: SoftwareAuthenticator) -> str:
    """Run a full registration through the service and return the credential id."""

    service = RegistrationService(backend)
    options = service.generate_registration_challenge(caller)
    credential = authenticator.create(decode_creation_options(options))
    result = service.verify_registration(caller, encode_for_transport(credential))
    return result["credentialId"]


def build_assertion(backend, authenticator: SoftwareAuthenticator, credential_id: Optional[bytes] = None) -> Dict[str, Any]:
    """Begin an authentication and return the JSON assertion the browser would send."""

    options = AuthenticationService(backend).generate_authentication_challenge()
    assertion = authenticator.get(decode_request_options(options), credential_id)
    return encode_for_transport(assertion)


def sign_in(backend, authenticator: SoftwareAuthenticator) -> Dict[str, Any]:
    assertion = build_assertion(backend, authenticator)
    return AuthenticationService(backend).verify_authentication(assertion)
