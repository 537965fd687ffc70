"""Platform credential capability invoked by the client agent.

Options handed to a platform carry binary fields as ``bytes``; the returned
credential dicts do the same. Transport encoding is the agent's job.
"""
from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional, Sequence

from fido2.client import DefaultClientDataCollector, Fido2Client, UserInteraction
from fido2.webauthn import (
    AttestationConveyancePreference,
    AuthenticatorAttachment,
    AuthenticatorSelectionCriteria,
    AuthenticatorTransport,
    PublicKeyCredentialCreationOptions,
    PublicKeyCredentialDescriptor,
    PublicKeyCredentialParameters,
    PublicKeyCredentialRequestOptions,
    PublicKeyCredentialRpEntity,
    PublicKeyCredentialType,
    PublicKeyCredentialUserEntity,
    ResidentKeyRequirement,
    UserVerificationRequirement,
)

__all__ = ["Fido2ClientPlatform", "PlatformAuthenticator"]


class PlatformAuthenticator:
    """``navigator.credentials`` equivalent: create and get credentials."""

    def create(self, options: Mapping[str, Any]) -> Dict[str, Any]:
        raise NotImplementedError

    def get(self, options: Mapping[str, Any]) -> Dict[str, Any]:
        raise NotImplementedError


def _transports(values: Optional[Sequence[str]]) -> Optional[List[AuthenticatorTransport]]:
    if not values:
        return None
    known = []
    for value in values:
        try:
            known.append(AuthenticatorTransport(value))
        except ValueError:
            continue
    return known or None


def _descriptors(entries: Optional[Sequence[Mapping[str, Any]]]) -> List[PublicKeyCredentialDescriptor]:
    return [
        PublicKeyCredentialDescriptor(
            type=PublicKeyCredentialType.PUBLIC_KEY,
            id=entry["id"],
            transports=_transports(entry.get("transports")),
        )
        for entry in entries or []
    ]


def _selection(raw: Optional[Mapping[str, Any]]) -> Optional[AuthenticatorSelectionCriteria]:
    if not raw:
        return None
    attachment = raw.get("authenticatorAttachment")
    resident_key = raw.get("residentKey")
    user_verification = raw.get("userVerification")
    return AuthenticatorSelectionCriteria(
        authenticator_attachment=AuthenticatorAttachment(attachment) if attachment else None,
        resident_key=ResidentKeyRequirement(resident_key) if resident_key else None,
        user_verification=UserVerificationRequirement(user_verification) if user_verification else None,
    )


class Fido2ClientPlatform(PlatformAuthenticator):
    """Drive a CTAP authenticator through python-fido2's :class:`Fido2Client`."""

    def __init__(self, device: Any, origin: str, user_interaction: Optional[UserInteraction] = None) -> None:
        self._client = Fido2Client(
            device,
            client_data_collector=DefaultClientDataCollector(origin),
            user_interaction=user_interaction or UserInteraction(),
        )

    def create(self, options: Mapping[str, Any]) -> Dict[str, Any]:
        rp = options["rp"]
        user = options["user"]
        attestation = options.get("attestation")
        creation_options = PublicKeyCredentialCreationOptions(
            rp=PublicKeyCredentialRpEntity(name=rp["name"], id=rp.get("id")),
            user=PublicKeyCredentialUserEntity(
                name=user["name"], id=user["id"], display_name=user.get("displayName")
            ),
            challenge=options["challenge"],
            pub_key_cred_params=[
                PublicKeyCredentialParameters(type=PublicKeyCredentialType.PUBLIC_KEY, alg=param["alg"])
                for param in options.get("pubKeyCredParams", [])
            ],
            timeout=options.get("timeout"),
            exclude_credentials=_descriptors(options.get("excludeCredentials")),
            authenticator_selection=_selection(options.get("authenticatorSelection")),
            attestation=AttestationConveyancePreference(attestation) if attestation else None,
        )

        registration = self._client.make_credential(creation_options)
        return {
            "id": bytes(registration.raw_id),
            "rawId": bytes(registration.raw_id),
            "type": "public-key",
            "response": {
                "clientDataJSON": bytes(registration.response.client_data),
                "attestationObject": bytes(registration.response.attestation_object),
                "transports": ["internal"],
            },
        }

    def get(self, options: Mapping[str, Any]) -> Dict[str, Any]:
        user_verification = options.get("userVerification")
        request_options = PublicKeyCredentialRequestOptions(
            challenge=options["challenge"],
            timeout=options.get("timeout"),
            rp_id=options.get("rpId"),
            allow_credentials=_descriptors(options.get("allowCredentials")),
            user_verification=(
                UserVerificationRequirement(user_verification) if user_verification else None
            ),
        )

        selection = self._client.get_assertion(request_options)
        assertion = selection.get_response(0)
        response = {
            "clientDataJSON": bytes(assertion.response.client_data),
            "authenticatorData": bytes(assertion.response.authenticator_data),
            "signature": bytes(assertion.response.signature),
        }
        if assertion.response.user_handle:
            response["userHandle"] = bytes(assertion.response.user_handle)
        return {
            "id": bytes(assertion.raw_id),
            "rawId": bytes(assertion.raw_id),
            "type": "public-key",
            "response": response,
        }
