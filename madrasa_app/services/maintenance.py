# madrasa_app/services/maintenance.py
# -*- coding: utf-8 -*-
from __future__ import annotations
from datetime import datetime, timedelta
from typing import List, Optional

from flask import current_app
from sqlalchemy import select

from ..extensions import db
from ..models import Payment
from ..models.payment import PENDING
from ..timeutils import utcnow
from .payment_workflow import TransitionRetriesExhausted, transition_payment


def expire_stale_payments(now: Optional[datetime] = None) -> List[int]:
    """
    Marks pending payments older than PENDING_PAYMENT_TTL_HOURS as expired.
    Goes through the same conditional update as the webhooks, so a callback
    racing the job still wins or loses cleanly.
    """
    now = now or utcnow()
    ttl = int(current_app.config.get("PENDING_PAYMENT_TTL_HOURS", 48))
    cutoff = now - timedelta(hours=ttl)

    candidates = list(db.session.execute(
        select(Payment.id).where(Payment.status == PENDING, Payment.created_at < cutoff)
    ).scalars())

    expired = []
    for payment_id in candidates:
        try:
            moved = transition_payment(
                payment_id, "expired", now=now,
                values={"note": f"Expired after {ttl}h without provider confirmation"},
            )
        except TransitionRetriesExhausted:
            current_app.logger.error("Could not expire payment %s; will retry next run", payment_id)
            continue
        if moved:
            expired.append(payment_id)

    if expired:
        current_app.logger.info("Expired %s stale pending payment(s): %s", len(expired), expired)
    return expired
