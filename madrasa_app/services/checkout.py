# madrasa_app/services/checkout.py
# -*- coding: utf-8 -*-
from __future__ import annotations
from typing import Any, Dict, List, Optional, Tuple

from flask import current_app
from sqlalchemy import func, select

from ..errors import Conflict, NotFound, ValidationError
from ..extensions import db
from ..models import LessonFolder, Payment, User
from ..models.payment import PENDING, PROVIDERS, STATUSES, SUBSCRIPTION_TYPES
from .order_ids import new_order_id
from .providers import get_fawry_client, get_paymob_client


def _positive_int(value: Any, field: str) -> int:
    # 150.0 is accepted, 150.75 and true are not
    if isinstance(value, bool) or (isinstance(value, float) and not value.is_integer()):
        raise ValidationError(f"{field} must be a valid integer", code=f"INVALID_{field.upper()}")
    try:
        number = int(value)
    except (TypeError, ValueError, OverflowError):
        raise ValidationError(f"{field} must be a valid integer", code=f"INVALID_{field.upper()}") from None
    if number <= 0:
        raise ValidationError(f"{field} must be a positive integer", code=f"INVALID_{field.upper()}")
    return number


def text_field(data: Dict[str, Any], field: str) -> str:
    """Stripped string value of ``field``; empty when absent, 400 when not a string."""
    value = data.get(field)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a string", code=f"INVALID_{field.upper()}")
    return value.strip()


def validate_checkout(data: Dict[str, Any]) -> Tuple[User, LessonFolder, str, int, Dict[str, str]]:
    student_id = _positive_int(data.get("userId") or data.get("studentId"), "userId")
    folder_id = _positive_int(data.get("folderId"), "folderId")
    amount_egp = _positive_int(data.get("amount"), "amount")
    subscription_type = data.get("subscriptionType")
    if subscription_type not in SUBSCRIPTION_TYPES:
        raise ValidationError('subscriptionType must be either "premium" or "premium_plus"',
                              code="INVALID_SUBSCRIPTION_TYPE")

    customer = {
        "first_name": text_field(data, "firstName"),
        "last_name": text_field(data, "lastName"),
        "email": text_field(data, "email"),
        "phone": text_field(data, "phone"),
    }
    missing = [k for k in ("email", "phone") if not customer[k]]
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}", code="MISSING_FIELDS")
    customer["name"] = f"{customer['first_name']} {customer['last_name']}".strip()

    student = db.session.get(User, student_id)
    if not student:
        raise ValidationError("User not found", code="USER_NOT_FOUND")
    if not student.is_student:
        raise ValidationError("User must be a student", code="NOT_A_STUDENT")
    folder = db.session.get(LessonFolder, folder_id)
    if not folder:
        raise ValidationError("Lesson folder not found", code="FOLDER_NOT_FOUND")
    return student, folder, subscription_type, amount_egp, customer


def _ensure_no_pending(student_id: int, folder_id: int) -> None:
    pending = db.session.execute(
        select(Payment.id).where(
            Payment.student_id == student_id,
            Payment.folder_id == folder_id,
            Payment.status == PENDING,
        ).limit(1)
    ).scalar_one_or_none()
    if pending is not None:
        raise Conflict("A pending payment already exists for this folder", code="PAYMENT_PENDING")


def start_checkout(provider: str, data: Dict[str, Any]) -> Tuple[Payment, Dict[str, Any]]:
    """
    Validates the request, opens the charge/intention at the provider and
    stores the pending Payment. Returns the payment and the provider response.
    """
    if provider not in PROVIDERS:
        raise ValidationError("provider must be either \"paymob\" or \"fawry\"", code="INVALID_PROVIDER")
    student, folder, subscription_type, amount_egp, customer = validate_checkout(data)
    _ensure_no_pending(student.id, folder.id)

    merchant_order_id = new_order_id(provider, student.id, folder.id)
    amount_cents = amount_egp * 100
    payment_method = text_field(data, "paymentMethod") or None

    if provider == "fawry":
        payment_method = payment_method or "PAYATFAWRY"
        response = get_fawry_client().charge(
            merchant_order_id, amount_egp, customer, payment_method=payment_method,
            description=folder.name,
        )
        provider_reference = response.get("referenceNumber") or response.get("fawryRefNumber")
    else:
        payment_method = payment_method or "card"
        response = get_paymob_client().create_intention(
            merchant_order_id, amount_cents, customer, payment_methods=[payment_method],
            extras={"userId": student.id, "folderId": folder.id},
        )
        provider_reference = response.get("id")

    payment = Payment(
        student_id=student.id,
        folder_id=folder.id,
        subscription_type=subscription_type,
        amount=amount_cents,
        currency="EGP",
        provider=provider,
        merchant_order_id=merchant_order_id,
        provider_reference=str(provider_reference) if provider_reference else None,
        payment_method=payment_method,
        status=PENDING,
        provider_metadata=response,
    )
    db.session.add(payment)
    db.session.commit()
    current_app.logger.info("Checkout %s opened with %s (payment %s)", merchant_order_id, provider, payment.id)
    return payment, response


def get_payment(payment_id: int) -> Payment:
    payment = db.session.get(Payment, payment_id)
    if not payment:
        raise NotFound("Payment not found", code="PAYMENT_NOT_FOUND")
    return payment


def list_payments(student_id: Optional[int] = None, folder_id: Optional[int] = None,
                  provider: Optional[str] = None, status: Optional[str] = None,
                  limit: int = 10, offset: int = 0) -> Tuple[List[Payment], int]:
    if provider is not None and provider not in PROVIDERS:
        raise ValidationError('provider must be either "paymob" or "fawry"', code="INVALID_PROVIDER")
    if status is not None and status not in STATUSES:
        raise ValidationError(f"status must be one of: {', '.join(STATUSES)}", code="INVALID_STATUS")

    conditions = []
    if student_id is not None:
        conditions.append(Payment.student_id == student_id)
    if folder_id is not None:
        conditions.append(Payment.folder_id == folder_id)
    if provider is not None:
        conditions.append(Payment.provider == provider)
    if status is not None:
        conditions.append(Payment.status == status)

    total = db.session.execute(select(func.count(Payment.id)).where(*conditions)).scalar_one()
    rows = db.session.execute(
        select(Payment).where(*conditions)
        .order_by(Payment.created_at.desc(), Payment.id.desc())
        .limit(limit).offset(offset)
    ).scalars()
    return list(rows), total
