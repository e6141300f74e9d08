# madrasa_app/services/signatures.py
# -*- coding: utf-8 -*-
"""
Callback authentication for the two payment gateways.

Both verifiers receive their secret at construction time (see
``init_payment_providers``) and fail closed: a verifier built without a
secret refuses every callback with ``ProviderNotConfigured``.
"""
from __future__ import annotations
import hashlib
import hmac
from typing import Any, Mapping, Optional

from flask import current_app

from ..errors import InvalidSignature, ProviderNotConfigured


def _sha256_hex(data: str) -> str:
    return hashlib.sha256(data.encode("utf-8", "replace")).hexdigest()


def _digests_match(expected: str, received: str) -> bool:
    # compared as bytes: a non-ASCII signature is a plain mismatch
    return hmac.compare_digest(
        expected.lower().encode("ascii"),
        received.strip().lower().encode("utf-8", "replace"),
    )


def fawry_request_signature(merchant_code: str, merchant_ref: str, secure_key: str,
                            amount: Optional[str] = None) -> str:
    """Signature Fawry expects on outbound charge/status requests."""
    data = f"{merchant_code}{merchant_ref}{secure_key}"
    if amount:
        data += amount
    return _sha256_hex(data)


class FawrySignatureVerifier:
    provider = "fawry"

    def __init__(self, secure_key: str):
        self._secure_key = secure_key or ""

    @property
    def configured(self) -> bool:
        return bool(self._secure_key)

    def expected(self, merchant_ref: str, fawry_ref: str) -> str:
        return _sha256_hex(f"{merchant_ref}{fawry_ref}{self._secure_key}")

    def verify(self, payload: Mapping[str, Any]) -> None:
        if not self.configured:
            raise ProviderNotConfigured("Fawry secure key is not configured")
        signature = payload.get("messageSignature")
        merchant_ref = payload.get("merchantRefNumber")
        fawry_ref = payload.get("fawryRefNumber")
        if not isinstance(signature, str) or not signature:
            raise InvalidSignature()
        if merchant_ref is None or fawry_ref is None:
            raise InvalidSignature()
        expected = self.expected(str(merchant_ref), str(fawry_ref))
        if not _digests_match(expected, signature):
            raise InvalidSignature()


class PaymobSignatureVerifier:
    provider = "paymob"

    def __init__(self, hmac_secret: str):
        self._secret = hmac_secret or ""

    @property
    def configured(self) -> bool:
        return bool(self._secret)

    def expected(self, raw_body: bytes) -> str:
        return hmac.new(self._secret.encode("utf-8"), raw_body, hashlib.sha256).hexdigest()

    def verify(self, raw_body: bytes, signature: Optional[str]) -> None:
        if not self.configured:
            raise ProviderNotConfigured("PayMob HMAC secret is not configured")
        if not signature:
            raise InvalidSignature()
        if not _digests_match(self.expected(raw_body), signature):
            raise InvalidSignature()


def init_payment_providers(app):
    """Builds the verifiers from app.config once, at startup."""
    app.extensions["payment_verifiers"] = {
        "fawry": FawrySignatureVerifier(app.config.get("FAWRY_SECURE_KEY", "")),
        "paymob": PaymobSignatureVerifier(app.config.get("PAYMOB_HMAC_SECRET", "")),
    }


def get_verifier(provider: str):
    return current_app.extensions["payment_verifiers"][provider]
