# madrasa_app/blueprints/notifications.py
from __future__ import annotations
from flask import Blueprint, request, jsonify

from ..services import notifications as svc
from .params import optional_bool, required_int, page_args

bp = Blueprint("notifications", __name__, url_prefix="/api/notifications")


@bp.route("", methods=["GET"])
def notifications_index():
    limit, offset = page_args()
    rows = svc.list_for_student(
        required_int("studentId"),
        is_read=optional_bool("isRead"),
        notification_type=request.args.get("notificationType") or None,
        limit=limit,
        offset=offset,
    )
    return jsonify(data=[n.to_dict() for n in rows], pagination={"limit": limit, "offset": offset})


@bp.route("/unread-count", methods=["GET"])
def notifications_unread_count():
    student_id = required_int("studentId")
    return jsonify(studentId=student_id, unreadCount=svc.unread_count(student_id))


@bp.route("/<int:notification_id>/read", methods=["POST"])
def notifications_mark_read(notification_id: int):
    return jsonify(svc.mark_read(notification_id).to_dict())


@bp.route("/read-all", methods=["POST"])
def notifications_mark_all_read():
    updated = svc.mark_all_read(required_int("studentId"))
    return jsonify(updated=updated)


@bp.route("/<int:notification_id>", methods=["DELETE"])
def notifications_delete(notification_id: int):
    svc.delete_notification(notification_id)
    return jsonify(deleted=True)
