# madrasa_app/blueprints/params.py
# -*- coding: utf-8 -*-
"""Query-string helpers shared by the JSON API blueprints."""
from __future__ import annotations
from flask import request

from ..errors import ValidationError


def json_body() -> dict:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object", code="INVALID_BODY")
    return data


def optional_int(name: str):
    raw = request.args.get(name)
    if raw is None or raw == "":
        return None
    try:
        return int(raw)
    except ValueError:
        raise ValidationError(f"{name} must be a valid integer", code=f"INVALID_{name.upper()}") from None


def required_int(name: str) -> int:
    value = optional_int(name)
    if value is None:
        raise ValidationError(f"{name} is required", code="MISSING_FIELDS")
    return value


def optional_bool(name: str):
    raw = request.args.get(name)
    if raw is None or raw == "":
        return None
    if raw.lower() in ("true", "1"):
        return True
    if raw.lower() in ("false", "0"):
        return False
    raise ValidationError(f"{name} must be true or false", code=f"INVALID_{name.upper()}")


def page_args(default_limit: int = 10):
    limit = optional_int("limit")
    offset = optional_int("offset")
    limit = default_limit if limit is None else limit
    offset = 0 if offset is None else offset
    if limit < 1 or limit > 100:
        raise ValidationError("limit must be between 1 and 100", code="INVALID_LIMIT")
    if offset < 0:
        raise ValidationError("offset must be a non-negative integer", code="INVALID_OFFSET")
    return limit, offset
