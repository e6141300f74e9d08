# madrasa_app/services/order_ids.py
# -*- coding: utf-8 -*-
from __future__ import annotations
import secrets
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from ..errors import MalformedOrderId

PROVIDER_TAGS = {"fawry": "FAWRY", "paymob": "PAYMOB"}


@dataclass(frozen=True)
class OrderRef:
    tag: str
    student_id: int
    folder_id: int
    timestamp: str
    suffix: Optional[str] = None


def new_order_id(provider: str, student_id: int, folder_id: int, now: Optional[datetime] = None) -> str:
    """<TAG>_<studentId>_<folderId>_<epoch ms>_<6 hex>"""
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    millis = int(now.timestamp() * 1000)
    return f"{PROVIDER_TAGS[provider]}_{int(student_id)}_{int(folder_id)}_{millis}_{secrets.token_hex(3)}"


def decode_order_id(raw: Optional[str], expected_tag: str) -> OrderRef:
    if not isinstance(raw, str) or not raw:
        raise MalformedOrderId("empty merchant order id")
    parts = raw.split("_")
    if len(parts) < 4:
        raise MalformedOrderId(f"expected at least 4 segments, got {len(parts)}")
    if parts[0] != expected_tag:
        raise MalformedOrderId(f"unexpected tag {parts[0]!r}")
    try:
        student_id = int(parts[1])
        folder_id = int(parts[2])
    except ValueError as exc:
        raise MalformedOrderId("student/folder segments are not integers") from exc
    if student_id <= 0 or folder_id <= 0:
        raise MalformedOrderId("student/folder ids must be positive")
    suffix = "_".join(parts[4:]) or None
    return OrderRef(tag=parts[0], student_id=student_id, folder_id=folder_id,
                    timestamp=parts[3], suffix=suffix)
