# madrasa_app/services/payment_workflow.py
# -*- coding: utf-8 -*-
"""
Payment confirmation workflow shared by both gateways.

Webhooks are delivered at least once, possibly out of order and possibly
concurrently. The persisted ``Payment.status`` is the single source of truth:
every transition is a conditional UPDATE that only matches rows still in
``pending``, so exactly one delivery wins and everything downstream
(subscription, notification) runs for that delivery only.
"""
from __future__ import annotations
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, Optional

from flask import current_app
from sqlalchemy import select, update
from sqlalchemy.exc import DBAPIError, OperationalError, SQLAlchemyError

from ..errors import MalformedOrderId
from ..extensions import db
from ..models import Payment, WebhookLog
from ..models.payment import PENDING
from ..timeutils import utcnow
from .events import OUTCOME_STATUS, STILL_PENDING, VerifiedPaymentEvent
from .notifications import notify, payment_approved_message
from .order_ids import PROVIDER_TAGS, decode_order_id
from .subscriptions import issue_subscription

APPROVED = "approved"
REJECTED = "rejected"
IGNORED = "ignored"
MALFORMED = "malformed"
NOT_FOUND = "not_found"
DUPLICATE = "duplicate"
MISMATCH = "mismatch"
RECONCILE = "reconcile"


class TransitionRetriesExhausted(Exception):
    def __init__(self, payment_id: int, attempts: int):
        super().__init__(f"payment {payment_id}: conditional update failed {attempts} times")
        self.payment_id = payment_id
        self.attempts = attempts


@dataclass
class WorkflowResult:
    result: str
    payment_id: Optional[int] = None
    status: Optional[str] = None
    subscription_id: Optional[int] = None
    notification_id: Optional[int] = None


def _is_transient(exc: DBAPIError) -> bool:
    return isinstance(exc, OperationalError) or bool(getattr(exc, "connection_invalidated", False))


def transition_payment(payment_id: int, target_status: str, *, now: Optional[datetime] = None,
                       values: Optional[Dict[str, Any]] = None,
                       on_transition: Optional[Callable[[], None]] = None) -> bool:
    """
    Moves a payment from ``pending`` to ``target_status``.

    Returns True when this call performed the transition, False when the row
    was no longer pending (another delivery or the expiry job got there first).
    ``on_transition`` runs inside the same transaction, before the commit, so
    its writes land together with the status change or not at all.

    Transient database errors are retried with exponential backoff, up to
    PAYMENT_CAS_MAX_ATTEMPTS; after that ``TransitionRetriesExhausted``.
    """
    if target_status == PENDING:
        raise ValueError("pending is not a valid transition target")
    now = now or utcnow()
    attempts = max(int(current_app.config.get("PAYMENT_CAS_MAX_ATTEMPTS", 3)), 1)
    backoff = float(current_app.config.get("PAYMENT_CAS_BACKOFF_SECONDS", 0.2))
    fields = dict(values or {})
    fields.update(status=target_status, updated_at=now)

    for attempt in range(attempts):
        try:
            res = db.session.execute(
                update(Payment)
                .where(Payment.id == payment_id, Payment.status == PENDING)
                .values(**fields)
                .execution_options(synchronize_session=False)
            )
            if res.rowcount != 1:
                db.session.rollback()
                return False
            if on_transition is not None:
                on_transition()
            db.session.commit()
            return True
        except DBAPIError as exc:
            db.session.rollback()
            if not _is_transient(exc):
                raise
            current_app.logger.warning(
                "Conditional update of payment %s failed (attempt %s/%s): %s",
                payment_id, attempt + 1, attempts, exc.__class__.__name__,
            )
            if attempt + 1 < attempts and backoff > 0:
                time.sleep(backoff * (2 ** attempt))
    raise TransitionRetriesExhausted(payment_id, attempts)


def _find_payment(event: VerifiedPaymentEvent) -> Optional[Payment]:
    return db.session.execute(
        select(Payment).where(
            Payment.merchant_order_id == event.merchant_order_id,
            Payment.provider == event.provider,
        )
    ).scalar_one_or_none()


def _record(event: VerifiedPaymentEvent, result: WorkflowResult) -> WorkflowResult:
    try:
        db.session.add(WebhookLog(
            provider=event.provider,
            merchant_order_id=event.merchant_order_id,
            outcome=event.outcome,
            result=result.result,
            payload=event.payload,
        ))
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.warning("Could not write webhook log for %s", event.merchant_order_id, exc_info=True)
    return result


def process_event(event: VerifiedPaymentEvent, now: Optional[datetime] = None) -> WorkflowResult:
    """Applies an authenticated provider event. Never raises for data or persistence problems."""
    now = now or utcnow()
    log = current_app.logger
    ctx = {"provider": event.provider, "merchant_order_id": event.merchant_order_id, "outcome": event.outcome}

    try:
        ref = decode_order_id(event.merchant_order_id, PROVIDER_TAGS[event.provider])
    except MalformedOrderId as exc:
        # no audit row either: an unroutable callback leaves the database untouched
        log.warning("Unroutable %s callback: %s", event.provider, exc, extra=ctx)
        return WorkflowResult(MALFORMED)

    try:
        payment = _find_payment(event)
    except SQLAlchemyError:
        db.session.rollback()
        log.error("Payment lookup failed; needs manual reconciliation", exc_info=True, extra=ctx)
        return WorkflowResult(RECONCILE)

    if payment is None:
        log.warning("No payment for %s callback", event.provider, extra=ctx)
        return _record(event, WorkflowResult(NOT_FOUND))

    if (payment.student_id, payment.folder_id) != (ref.student_id, ref.folder_id):
        log.warning("Order id student/folder do not match payment %s", payment.id, extra=ctx)
        return _record(event, WorkflowResult(MISMATCH, payment.id, payment.status))

    if event.outcome == STILL_PENDING:
        log.info("Payment %s still pending at provider", payment.id, extra=ctx)
        return _record(event, WorkflowResult(IGNORED, payment.id, payment.status))

    if payment.is_terminal:
        log.info("Payment %s already %s; callback ignored", payment.id, payment.status, extra=ctx)
        return _record(event, WorkflowResult(DUPLICATE, payment.id, payment.status))

    target = OUTCOME_STATUS[event.outcome]
    if target == APPROVED and event.amount_cents is not None and event.amount_cents != payment.amount:
        log.error(
            "Amount mismatch for payment %s: callback %s, expected %s; left pending for reconciliation",
            payment.id, event.amount_cents, payment.amount, extra=ctx,
        )
        return _record(event, WorkflowResult(MISMATCH, payment.id, payment.status))

    values: Dict[str, Any] = {
        "webhook_received": True,
        "webhook_received_at": now,
        "note": event.note,
    }
    if event.transaction_id:
        values["provider_transaction_id"] = event.transaction_id
    if event.provider_ref and not payment.provider_reference:
        values["provider_reference"] = event.provider_ref
    if event.payment_method:
        values["payment_method"] = event.payment_method
    if target == APPROVED:
        values["completed_at"] = now

    issued = {}

    def _issue():
        issued["subscription"] = issue_subscription(payment, now)

    payment_id = payment.id
    try:
        moved = transition_payment(
            payment_id, target, now=now, values=values,
            on_transition=_issue if target == APPROVED else None,
        )
    except TransitionRetriesExhausted as exc:
        log.error("Giving up on payment %s after %s attempts; needs manual reconciliation",
                  payment_id, exc.attempts, extra=ctx)
        return _record(event, WorkflowResult(RECONCILE, payment_id, PENDING))
    except SQLAlchemyError:
        db.session.rollback()
        log.error("Payment %s transition failed; needs manual reconciliation", payment_id,
                  exc_info=True, extra=ctx)
        return _record(event, WorkflowResult(RECONCILE, payment_id, PENDING))

    if not moved:
        log.info("Payment %s was no longer pending; duplicate delivery", payment_id, extra=ctx)
        return _record(event, WorkflowResult(DUPLICATE, payment_id))

    if target != APPROVED:
        log.info("Payment %s marked %s", payment_id, target, extra=ctx)
        return _record(event, WorkflowResult(REJECTED, payment_id, target))

    subscription_id = issued["subscription"].id
    log.info("Payment %s approved; subscription %s issued", payment_id, subscription_id, extra=ctx)
    notification = notify(ref.student_id, "payment_approved", payment_approved_message(event.provider), now=now)
    return _record(event, WorkflowResult(
        APPROVED, payment_id, APPROVED,
        subscription_id=subscription_id,
        notification_id=notification.id if notification else None,
    ))
