# madrasa_app/services/providers.py
# -*- coding: utf-8 -*-
"""HTTP clients for the Fawry and PayMob checkout APIs (intention/charge creation, status)."""
from __future__ import annotations
from typing import Any, Dict, Optional

import requests
from flask import current_app

from ..errors import ProviderError, ProviderNotConfigured
from .signatures import fawry_request_signature

FAWRY_ENDPOINTS = {
    "sandbox": {
        "charge": "https://atfawry.fawrystaging.com/ECommerceWeb/Fawry/payments/charge",
        "status": "https://atfawry.fawrystaging.com/ECommerceWeb/Fawry/payments/status/v2",
    },
    "production": {
        "charge": "https://www.atfawry.com/ECommerceWeb/Fawry/payments/charge",
        "status": "https://www.atfawry.com/ECommerceWeb/Fawry/payments/status/v2",
    },
}


def _json_or_error(resp, provider: str) -> Dict[str, Any]:
    if resp.status_code >= 400:
        current_app.logger.error("%s API returned %s: %s", provider, resp.status_code, resp.text[:500])
        raise ProviderError(f"{provider} API returned HTTP {resp.status_code}")
    try:
        return resp.json()
    except ValueError as exc:
        raise ProviderError(f"{provider} API returned a non-JSON body") from exc


class FawryClient:
    def __init__(self, merchant_code: str, secure_key: str, environment: str = "sandbox",
                 timeout: int = 10):
        self.merchant_code = merchant_code or ""
        self.secure_key = secure_key or ""
        self.environment = environment if environment in FAWRY_ENDPOINTS else "sandbox"
        self.timeout = timeout

    def _require_config(self):
        if not self.merchant_code or not self.secure_key:
            raise ProviderNotConfigured("Fawry merchant code / secure key are not configured")

    def charge(self, merchant_ref: str, amount_egp: int, customer: Dict[str, str],
               payment_method: str = "PAYATFAWRY", description: str = "") -> Dict[str, Any]:
        self._require_config()
        amount = f"{amount_egp:.2f}"
        body = {
            "merchantCode": self.merchant_code,
            "merchantRefNum": merchant_ref,
            "customerName": customer.get("name", ""),
            "customerMobile": customer.get("phone", ""),
            "customerEmail": customer.get("email", ""),
            "paymentMethod": payment_method,
            "amount": amount,
            "description": description,
            "chargeItems": [{"itemId": merchant_ref, "description": description,
                             "price": amount, "quantity": 1}],
            "signature": fawry_request_signature(self.merchant_code, merchant_ref, self.secure_key, amount),
        }
        try:
            resp = requests.post(FAWRY_ENDPOINTS[self.environment]["charge"], json=body, timeout=self.timeout)
        except requests.RequestException as exc:
            current_app.logger.error("Fawry charge request failed: %s", exc)
            raise ProviderError("Fawry charge request failed") from exc
        return _json_or_error(resp, "Fawry")

    def payment_status(self, merchant_ref: str) -> Dict[str, Any]:
        self._require_config()
        params = {
            "merchantCode": self.merchant_code,
            "merchantRefNumber": merchant_ref,
            "signature": fawry_request_signature(self.merchant_code, merchant_ref, self.secure_key),
        }
        try:
            resp = requests.get(FAWRY_ENDPOINTS[self.environment]["status"], params=params, timeout=self.timeout)
        except requests.RequestException as exc:
            current_app.logger.error("Fawry status request failed: %s", exc)
            raise ProviderError("Fawry status check failed") from exc
        return _json_or_error(resp, "Fawry")


class PaymobClient:
    def __init__(self, public_key: str, secret_key: str, api_url: str, timeout: int = 10):
        self.public_key = public_key or ""
        self.secret_key = secret_key or ""
        self.api_url = (api_url or "").rstrip("/")
        self.timeout = timeout

    def create_intention(self, merchant_order_id: str, amount_cents: int, customer: Dict[str, str],
                         payment_methods: Optional[list] = None, extras: Optional[dict] = None) -> Dict[str, Any]:
        if not self.secret_key or not self.public_key:
            raise ProviderNotConfigured("PayMob keys are not configured")
        first, _, last = (customer.get("name") or "").partition(" ")
        body = {
            "amount": amount_cents,
            "currency": "EGP",
            "payment_methods": payment_methods or ["card"],
            "billing_data": {
                "apartment": "", "floor": "", "building": "", "street": "",
                "first_name": customer.get("first_name") or first or "NA",
                "last_name": customer.get("last_name") or last or "NA",
                "phone_number": customer.get("phone", ""),
                "email": customer.get("email", ""),
                "city": "Cairo", "state": "Cairo", "country": "EG", "postal_code": "11111",
            },
            "merchant_order_id": merchant_order_id,
            "special_reference": merchant_order_id,
            "extras": extras or {},
        }
        try:
            resp = requests.post(
                f"{self.api_url}/intention/",
                json=body,
                headers={"Authorization": f"Token {self.secret_key}"},
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            current_app.logger.error("PayMob intention request failed: %s", exc)
            raise ProviderError("Failed to create PayMob payment intention") from exc
        return _json_or_error(resp, "PayMob")


def get_fawry_client() -> FawryClient:
    cfg = current_app.config
    return FawryClient(cfg.get("FAWRY_MERCHANT_CODE", ""), cfg.get("FAWRY_SECURE_KEY", ""),
                       cfg.get("FAWRY_ENV", "sandbox"), cfg.get("PROVIDER_HTTP_TIMEOUT", 10))


def get_paymob_client() -> PaymobClient:
    cfg = current_app.config
    return PaymobClient(cfg.get("PAYMOB_PUBLIC_KEY", ""), cfg.get("PAYMOB_SECRET_KEY", ""),
                        cfg.get("PAYMOB_API_URL", ""), cfg.get("PROVIDER_HTTP_TIMEOUT", 10))
