# madrasa_app/blueprints/webhooks.py
from __future__ import annotations
import json

from flask import Blueprint, request, jsonify, current_app

from ..errors import MalformedPayload
from ..services.events import fawry_event, paymob_event
from ..services.payment_workflow import process_event
from ..services.signatures import get_verifier

bp = Blueprint("webhooks", __name__, url_prefix="/api/payments")


def _ack(**extra):
    return jsonify(ok=True, **extra), 200


@bp.route("/fawry/callback", methods=["POST"])
def fawry_callback():
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        payload = {}
    # InvalidSignature (401) / ProviderNotConfigured (503) go through the error handler
    get_verifier("fawry").verify(payload)

    try:
        event = fawry_event(payload)
    except MalformedPayload as exc:
        current_app.logger.warning("Ignoring Fawry callback: %s", exc,
                                   extra={"merchant_order_id": payload.get("merchantRefNumber")})
        return _ack()

    result = process_event(event)
    return _ack(result=result.result)


@bp.route("/paymob/webhook", methods=["POST"])
def paymob_webhook():
    raw = request.get_data(cache=True)
    get_verifier("paymob").verify(raw, request.headers.get("x-hmac-signature"))

    try:
        payload = json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, ValueError):
        current_app.logger.warning("Ignoring PayMob webhook: body is not JSON")
        return _ack()
    if not isinstance(payload, dict):
        current_app.logger.warning("Ignoring PayMob webhook: body is not a JSON object")
        return _ack()

    try:
        event = paymob_event(payload)
    except MalformedPayload as exc:
        current_app.logger.warning("Ignoring PayMob webhook: %s", exc)
        return _ack()
    if event is None:
        current_app.logger.info("PayMob webhook type %r ignored", payload.get("type"))
        return _ack()

    result = process_event(event)
    return _ack(result=result.result)
