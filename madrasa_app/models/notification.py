# madrasa_app/models/notification.py
from __future__ import annotations
from ..extensions import db
from ..timeutils import utcnow

NOTIFICATION_TYPES = ("new_lesson", "subscription_expiring", "payment_approved")


class Notification(db.Model):
    __tablename__ = "notifications"

    id = db.Column(db.Integer, primary_key=True)
    student_id = db.Column(db.Integer, db.ForeignKey("users.id"), index=True, nullable=False)
    lesson_id = db.Column(db.Integer, nullable=True)
    notification_type = db.Column(db.String(40), nullable=False)
    message = db.Column(db.Text, nullable=False)
    is_read = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime, default=utcnow, index=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "studentId": self.student_id,
            "lessonId": self.lesson_id,
            "notificationType": self.notification_type,
            "message": self.message,
            "isRead": bool(self.is_read),
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }
