# madrasa_app/models/__init__.py
# -*- coding: utf-8 -*-
from .user import User
from .folder import LessonFolder
from .payment import Payment
from .subscription import Subscription
from .notification import Notification
from .webhook_log import WebhookLog


__all__ = [
    "User",
    "LessonFolder",
    "Payment",
    "Subscription",
    "Notification",
    "WebhookLog",
]
