# madrasa_app/blueprints/subscriptions.py
from __future__ import annotations
from flask import Blueprint, request, jsonify

from ..decorators import owner_required, current_user_id
from ..errors import ValidationError
from ..models.subscription import SUBSCRIPTION_TYPES
from ..services.subscriptions import (
    active_subscription, grant_subscription, cancel_subscription, list_subscriptions,
)
from .params import json_body, optional_bool, optional_int, required_int, page_args

bp = Blueprint("subscriptions", __name__, url_prefix="/api/subscriptions")


@bp.route("/check", methods=["GET"])
def check_access():
    """Whether the student can currently open the folder's lessons."""
    sub = active_subscription(required_int("studentId"), required_int("folderId"))
    return jsonify(hasAccess=sub is not None, subscription=sub.to_dict() if sub else None)


@bp.route("", methods=["GET"])
def subscriptions_index():
    subscription_type = request.args.get("subscriptionType") or None
    if subscription_type is not None and subscription_type not in SUBSCRIPTION_TYPES:
        raise ValidationError(f"subscriptionType must be one of: {', '.join(SUBSCRIPTION_TYPES)}",
                              code="INVALID_SUBSCRIPTION_TYPE")
    limit, offset = page_args()
    rows = list_subscriptions(
        student_id=optional_int("studentId"),
        folder_id=optional_int("folderId"),
        subscription_type=subscription_type,
        is_active=optional_bool("isActive"),
        limit=limit,
        offset=offset,
    )
    return jsonify(data=[s.to_dict() for s in rows], pagination={"limit": limit, "offset": offset})


@bp.route("", methods=["POST"])
@owner_required
def subscriptions_grant():
    data = json_body()
    try:
        student_id = int(data.get("studentId"))
        folder_id = int(data.get("folderId"))
        months = int(data.get("months", 1))
    except (TypeError, ValueError):
        raise ValidationError("studentId, folderId and months must be integers",
                              code="INVALID_FIELDS") from None
    sub = grant_subscription(
        current_user_id(), student_id, folder_id,
        subscription_type=data.get("subscriptionType") or "owner_granted",
        months=months,
    )
    return jsonify(sub.to_dict()), 201


@bp.route("/<int:subscription_id>/cancel", methods=["POST"])
@owner_required
def subscriptions_cancel(subscription_id: int):
    return jsonify(cancel_subscription(subscription_id).to_dict())
