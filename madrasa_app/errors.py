# madrasa_app/errors.py
# -*- coding: utf-8 -*-
from __future__ import annotations

from flask import jsonify


class PaymentError(Exception):
    status_code = 400
    code = "PAYMENT_ERROR"

    def __init__(self, detail: str, status_code: int | None = None, code: str | None = None) -> None:
        super().__init__(detail)
        self.detail = detail
        if status_code is not None:
            self.status_code = status_code
        if code is not None:
            self.code = code


class ValidationError(PaymentError):
    status_code = 400
    code = "VALIDATION_ERROR"


class InvalidSignature(PaymentError):
    status_code = 401
    code = "INVALID_SIGNATURE"

    def __init__(self, detail: str = "Invalid signature") -> None:
        super().__init__(detail)


class Forbidden(PaymentError):
    status_code = 403
    code = "FORBIDDEN"


class NotFound(PaymentError):
    status_code = 404
    code = "NOT_FOUND"


class Conflict(PaymentError):
    status_code = 409
    code = "CONFLICT"


class ProviderError(PaymentError):
    status_code = 502
    code = "PROVIDER_ERROR"


class ProviderNotConfigured(PaymentError):
    status_code = 503
    code = "PROVIDER_NOT_CONFIGURED"


class MalformedOrderId(ValueError):
    """Merchant order id does not match <TAG>_<student>_<folder>_<timestamp>[_<suffix>]."""


class MalformedPayload(ValueError):
    """Authenticated callback body is missing fields the workflow needs."""


def register_error_handlers(app) -> None:
    @app.errorhandler(PaymentError)
    def _payment_error(exc: PaymentError):
        return jsonify(error=exc.detail, code=exc.code), exc.status_code
