# madrasa_app/decorators.py
# -*- coding: utf-8 -*-
from __future__ import annotations
from functools import wraps
from flask import session

from .errors import Forbidden, PaymentError


def current_user_id():
    user = session.get("user") or {}
    return user.get("id")


def owner_required(view_func):
    @wraps(view_func)
    def wrapper(*args, **kwargs):
        user = session.get("user")
        if not user:
            raise PaymentError("Authentication required", status_code=401, code="UNAUTHENTICATED")
        if user.get("role") != "owner":
            raise Forbidden("Owner access required")
        return view_func(*args, **kwargs)
    return wrapper
