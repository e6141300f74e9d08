# madrasa_app/services/events.py
# -*- coding: utf-8 -*-
"""
Provider adapters: each turns an authenticated callback body into a
``VerifiedPaymentEvent`` so the state transition logic is shared.
"""
from __future__ import annotations
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Mapping, Optional

from ..errors import MalformedPayload

SUCCEEDED = "succeeded"
FAILED = "failed"
EXPIRED = "expired"
CANCELLED = "cancelled"
STILL_PENDING = "pending"

# outcome -> Payment.status
OUTCOME_STATUS = {
    SUCCEEDED: "approved",
    FAILED: "failed",
    EXPIRED: "expired",
    CANCELLED: "cancelled",
}

_FAWRY_STATUS = {
    "PAID": SUCCEEDED,
    "NEW": STILL_PENDING,
    "UNPAID": STILL_PENDING,
    "EXPIRED": EXPIRED,
    "CANCELED": CANCELLED,
    "CANCELLED": CANCELLED,
    "FAILED": FAILED,
    "REFUSED": FAILED,
}


@dataclass(frozen=True)
class VerifiedPaymentEvent:
    provider: str
    merchant_order_id: str
    outcome: str
    provider_ref: Optional[str] = None
    transaction_id: Optional[str] = None
    amount_cents: Optional[int] = None
    payment_method: Optional[str] = None
    payload: Dict[str, Any] = field(default_factory=dict, compare=False)

    @property
    def note(self) -> str:
        if self.provider == "fawry":
            return f"Fawry Payment - Ref: {self.provider_ref}"
        return f"PayMob Payment - Transaction ID: {self.transaction_id}"


def _to_cents(value: Any) -> Optional[int]:
    if value is None or value == "":
        return None
    try:
        return int((Decimal(str(value)) * 100).quantize(Decimal("1")))
    except (InvalidOperation, ValueError):
        raise MalformedPayload(f"invalid amount {value!r}") from None


def _whole_cents(value: Any) -> Optional[int]:
    """PayMob sends integer cents, as a number or a numeric string."""
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        raise MalformedPayload(f"invalid amount_cents {value!r}")
    try:
        cents = Decimal(str(value))
    except InvalidOperation:
        raise MalformedPayload(f"invalid amount_cents {value!r}") from None
    if not cents.is_finite() or cents != cents.to_integral_value():
        raise MalformedPayload(f"invalid amount_cents {value!r}")
    return int(cents)


def _str_or_none(value: Any) -> Optional[str]:
    return None if value is None or value == "" else str(value)


def fawry_event(payload: Mapping[str, Any]) -> VerifiedPaymentEvent:
    merchant_ref = payload.get("merchantRefNumber")
    status = str(payload.get("orderStatus") or "").upper()
    if not merchant_ref or not status:
        raise MalformedPayload("merchantRefNumber and orderStatus are required")
    outcome = _FAWRY_STATUS.get(status)
    if outcome is None:
        raise MalformedPayload(f"unknown Fawry orderStatus {status!r}")

    amount = payload.get("orderAmount")
    if amount is None:
        amount = payload.get("paymentAmount")
    return VerifiedPaymentEvent(
        provider="fawry",
        merchant_order_id=str(merchant_ref),
        outcome=outcome,
        provider_ref=_str_or_none(payload.get("fawryRefNumber")),
        transaction_id=_str_or_none(payload.get("fawryRefNumber")),
        amount_cents=_to_cents(amount),
        payment_method=_str_or_none(payload.get("paymentMethod")),
        payload=dict(payload),
    )


def paymob_event(payload: Mapping[str, Any]) -> Optional[VerifiedPaymentEvent]:
    """Returns None for webhook types other than TRANSACTION (nothing to do)."""
    if payload.get("type") != "TRANSACTION":
        return None
    data = payload.get("data")
    if not isinstance(data, Mapping):
        raise MalformedPayload("data object is required")
    merchant_order_id = data.get("merchant_order_id")
    if not merchant_order_id:
        raise MalformedPayload("data.merchant_order_id is required")

    status = str(data.get("status") or "").upper()
    success = data.get("success")
    if status in ("EXPIRED",):
        outcome = EXPIRED
    elif status in ("CANCELLED", "CANCELED", "VOIDED"):
        outcome = CANCELLED
    elif success is True and status in ("", "SUCCESS"):
        outcome = SUCCEEDED
    elif success is False or status in ("FAILED", "DECLINED"):
        outcome = FAILED
    elif status == "PENDING":
        outcome = STILL_PENDING
    else:
        raise MalformedPayload(f"cannot map PayMob status {status!r} / success {success!r}")

    return VerifiedPaymentEvent(
        provider="paymob",
        merchant_order_id=str(merchant_order_id),
        outcome=outcome,
        provider_ref=_str_or_none(data.get("intention_id")),
        transaction_id=_str_or_none(data.get("id")),
        amount_cents=_whole_cents(data.get("amount_cents")),
        payment_method=_str_or_none(data.get("payment_method")),
        payload=dict(payload),
    )
