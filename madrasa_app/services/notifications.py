# madrasa_app/services/notifications.py
# -*- coding: utf-8 -*-
from __future__ import annotations
from datetime import datetime, timedelta
from typing import List, Optional

from flask import current_app
from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError

from ..errors import NotFound, ValidationError
from ..extensions import db
from ..models import Notification
from ..models.notification import NOTIFICATION_TYPES
from ..timeutils import utcnow
from .subscriptions import expiring_subscriptions

PROVIDER_DISPLAY = {"fawry": "Fawry", "paymob": "PayMob"}


def payment_approved_message(provider: str) -> str:
    return f"تم قبول طلب الدفع الخاص بك بنجاح عبر {PROVIDER_DISPLAY.get(provider, provider)}"


def expiring_message(days_left: int) -> str:
    return f"اشتراكك سينتهي خلال {days_left} يوم. جدد اشتراكك للاستمرار في الوصول إلى الدروس"


def notify(student_id: int, notification_type: str, message: str,
           lesson_id: Optional[int] = None, now: Optional[datetime] = None) -> Optional[Notification]:
    """
    Best-effort insert: a failure is logged and rolled back, never raised,
    so callers (payment approval in particular) are not affected.
    """
    if notification_type not in NOTIFICATION_TYPES:
        raise ValueError(f"unknown notification type {notification_type!r}")
    try:
        n = Notification(
            student_id=student_id,
            notification_type=notification_type,
            message=message,
            lesson_id=lesson_id,
            is_read=False,
            created_at=now or utcnow(),
        )
        db.session.add(n)
        db.session.commit()
        return n
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.warning(
            "Notification insert failed (student=%s type=%s)", student_id, notification_type,
            exc_info=True,
        )
        return None


def list_for_student(student_id: int, is_read: Optional[bool] = None,
                     notification_type: Optional[str] = None,
                     limit: int = 10, offset: int = 0) -> List[Notification]:
    if notification_type is not None and notification_type not in NOTIFICATION_TYPES:
        raise ValidationError("Invalid notification type", code="INVALID_NOTIFICATION_TYPE")
    stmt = select(Notification).where(Notification.student_id == student_id)
    if is_read is not None:
        stmt = stmt.where(Notification.is_read.is_(is_read))
    if notification_type is not None:
        stmt = stmt.where(Notification.notification_type == notification_type)
    stmt = stmt.order_by(Notification.created_at.desc(), Notification.id.desc()).limit(limit).offset(offset)
    return list(db.session.execute(stmt).scalars())


def unread_count(student_id: int) -> int:
    return db.session.execute(
        select(func.count(Notification.id)).where(
            Notification.student_id == student_id,
            Notification.is_read.is_(False),
        )
    ).scalar_one()


def mark_read(notification_id: int) -> Notification:
    n = db.session.get(Notification, notification_id)
    if not n:
        raise NotFound("Notification not found")
    if not n.is_read:
        n.is_read = True
        db.session.commit()
    return n


def mark_all_read(student_id: int) -> int:
    res = db.session.execute(
        update(Notification)
        .where(Notification.student_id == student_id, Notification.is_read.is_(False))
        .values(is_read=True)
    )
    db.session.commit()
    return res.rowcount or 0


def delete_notification(notification_id: int) -> None:
    n = db.session.get(Notification, notification_id)
    if not n:
        raise NotFound("Notification not found")
    db.session.delete(n)
    db.session.commit()


def notify_expiring_subscriptions(now: Optional[datetime] = None) -> int:
    """One subscription_expiring notice per student per day, whatever the number of subscriptions."""
    now = now or utcnow()
    days = int(current_app.config.get("SUBSCRIPTION_EXPIRY_NOTICE_DAYS", 3))
    day_start = now.replace(hour=0, minute=0, second=0, microsecond=0)

    sent = 0
    seen = set()
    for sub in expiring_subscriptions(days, now):
        if sub.student_id in seen:
            continue
        seen.add(sub.student_id)
        already = db.session.execute(
            select(func.count(Notification.id)).where(
                Notification.student_id == sub.student_id,
                Notification.notification_type == "subscription_expiring",
                Notification.created_at >= day_start,
                Notification.created_at < day_start + timedelta(days=1),
            )
        ).scalar_one()
        if already:
            continue
        days_left = max((sub.end_date - now).days, 0)
        if notify(sub.student_id, "subscription_expiring", expiring_message(days_left), now=now):
            sent += 1
    current_app.logger.info("Expiry notices sent: %s", sent)
    return sent
