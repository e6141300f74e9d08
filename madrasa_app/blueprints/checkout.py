# madrasa_app/blueprints/checkout.py
from __future__ import annotations
from flask import Blueprint, request, jsonify, current_app

from ..errors import ValidationError
from .params import json_body, optional_int, page_args
from ..services.checkout import start_checkout, get_payment, list_payments, text_field
from ..services.providers import get_fawry_client

bp = Blueprint("checkout", __name__, url_prefix="/api/payments")


@bp.route("/fawry/charge", methods=["POST"])
def fawry_charge():
    payment, response = start_checkout("fawry", json_body())
    return jsonify(
        success=True,
        paymentId=payment.id,
        merchantOrderId=payment.merchant_order_id,
        referenceNumber=payment.provider_reference,
        amount=payment.amount_egp,
        status=payment.status,
        fawry=response,
    ), 201


@bp.route("/paymob/create-intention", methods=["POST"])
def paymob_create_intention():
    payment, response = start_checkout("paymob", json_body())
    return jsonify(
        success=True,
        paymentId=payment.id,
        merchantOrderId=payment.merchant_order_id,
        intentionId=payment.provider_reference,
        clientSecret=response.get("client_secret"),
        publicKey=current_app.config.get("PAYMOB_PUBLIC_KEY", ""),
        amount=payment.amount_egp,
        status=payment.status,
    ), 201


@bp.route("/fawry/status", methods=["POST"])
def fawry_status():
    data = json_body()
    merchant_ref = text_field(data, "merchantRefNumber")
    if not merchant_ref:
        raise ValidationError("merchantRefNumber is required", code="MISSING_FIELDS")
    return jsonify(get_fawry_client().payment_status(merchant_ref))


@bp.route("", methods=["GET"])
def payments_index():
    limit, offset = page_args()
    rows, total = list_payments(
        student_id=optional_int("userId"),
        folder_id=optional_int("folderId"),
        provider=request.args.get("provider") or None,
        status=request.args.get("status") or None,
        limit=limit,
        offset=offset,
    )
    return jsonify(
        data=[p.to_dict() for p in rows],
        pagination={"total": total, "limit": limit, "offset": offset,
                    "hasMore": offset + len(rows) < total},
    )


@bp.route("/<int:payment_id>", methods=["GET"])
def payment_detail(payment_id: int):
    return jsonify(get_payment(payment_id).to_dict())
