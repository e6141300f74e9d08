# madrasa_app/services/subscriptions.py
# -*- coding: utf-8 -*-
from __future__ import annotations
from datetime import datetime, timedelta
from typing import List, Optional

from flask import current_app
from sqlalchemy import select

from ..errors import NotFound, ValidationError
from ..extensions import db
from ..models import LessonFolder, Payment, Subscription, User
from ..models.subscription import SUBSCRIPTION_TYPES
from ..timeutils import add_months, utcnow


def issue_subscription(payment: Payment, now: Optional[datetime] = None) -> Subscription:
    """
    Adds (does not commit) the subscription granted by an approved payment.
    Renewals are new rows; existing subscriptions are never extended.
    """
    now = now or utcnow()
    months = int(current_app.config.get("SUBSCRIPTION_MONTHS", 1))
    sub = Subscription(
        student_id=payment.student_id,
        folder_id=payment.folder_id,
        subscription_type=payment.subscription_type,
        start_date=now,
        end_date=add_months(now, months),
        is_active=True,
        payment_method=payment.provider,
        monthly_price=payment.amount // 100,
        payment_id=payment.id,
        created_at=now,
    )
    db.session.add(sub)
    return sub


def active_subscription(student_id: int, folder_id: int, now: Optional[datetime] = None) -> Optional[Subscription]:
    now = now or utcnow()
    return db.session.execute(
        select(Subscription)
        .where(
            Subscription.student_id == student_id,
            Subscription.folder_id == folder_id,
            Subscription.is_active.is_(True),
            Subscription.end_date >= now,
        )
        .order_by(Subscription.end_date.desc())
        .limit(1)
    ).scalar_one_or_none()


def has_access(student_id: int, folder_id: int, now: Optional[datetime] = None) -> bool:
    return active_subscription(student_id, folder_id, now) is not None


def grant_subscription(owner_id: int, student_id: int, folder_id: int,
                       subscription_type: str = "owner_granted", months: int = 1,
                       now: Optional[datetime] = None) -> Subscription:
    """Manual grant by an owner; not tied to any payment."""
    if subscription_type not in SUBSCRIPTION_TYPES:
        raise ValidationError(f"subscriptionType must be one of: {', '.join(SUBSCRIPTION_TYPES)}",
                              code="INVALID_SUBSCRIPTION_TYPE")
    if months < 1 or months > 24:
        raise ValidationError("months must be between 1 and 24", code="INVALID_MONTHS")

    owner = db.session.get(User, owner_id)
    if not owner or not owner.is_owner:
        raise ValidationError("User is not an owner", code="NOT_AN_OWNER")
    student = db.session.get(User, student_id)
    if not student:
        raise NotFound("Student not found", code="STUDENT_NOT_FOUND")
    if not student.is_student:
        raise ValidationError("User is not a student", code="NOT_A_STUDENT")
    if not db.session.get(LessonFolder, folder_id):
        raise NotFound("Lesson folder not found", code="FOLDER_NOT_FOUND")

    now = now or utcnow()
    sub = Subscription(
        student_id=student_id,
        folder_id=folder_id,
        subscription_type=subscription_type,
        start_date=now,
        end_date=add_months(now, months),
        is_active=True,
        payment_method="owner_granted",
        granted_by_owner_id=owner_id,
        created_at=now,
    )
    db.session.add(sub)
    db.session.commit()
    current_app.logger.info("Subscription %s granted by owner %s (student=%s folder=%s)",
                            sub.id, owner_id, student_id, folder_id)
    return sub


def cancel_subscription(subscription_id: int) -> Subscription:
    sub = db.session.get(Subscription, subscription_id)
    if not sub:
        raise NotFound("Subscription not found")
    if sub.is_active:
        sub.is_active = False
        db.session.commit()
    return sub


def list_subscriptions(student_id: Optional[int] = None, folder_id: Optional[int] = None,
                       subscription_type: Optional[str] = None, is_active: Optional[bool] = None,
                       limit: int = 10, offset: int = 0) -> List[Subscription]:
    stmt = select(Subscription)
    if student_id is not None:
        stmt = stmt.where(Subscription.student_id == student_id)
    if folder_id is not None:
        stmt = stmt.where(Subscription.folder_id == folder_id)
    if subscription_type is not None:
        stmt = stmt.where(Subscription.subscription_type == subscription_type)
    if is_active is not None:
        stmt = stmt.where(Subscription.is_active.is_(is_active))
    stmt = stmt.order_by(Subscription.created_at.desc(), Subscription.id.desc()).limit(limit).offset(offset)
    return list(db.session.execute(stmt).scalars())


def expiring_subscriptions(within_days: int, now: Optional[datetime] = None) -> List[Subscription]:
    now = now or utcnow()
    return list(db.session.execute(
        select(Subscription).where(
            Subscription.is_active.is_(True),
            Subscription.end_date >= now,
            Subscription.end_date <= now + timedelta(days=within_days),
        )
    ).scalars())
