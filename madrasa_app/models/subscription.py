# madrasa_app/models/subscription.py
from __future__ import annotations
from ..extensions import db
from ..timeutils import utcnow

SUBSCRIPTION_TYPES = ("free_trial", "premium", "premium_plus", "owner_granted")


class Subscription(db.Model):
    __tablename__ = "subscriptions"
    id = db.Column(db.Integer, primary_key=True)
    student_id = db.Column(db.Integer, db.ForeignKey("users.id"), index=True, nullable=False)
    folder_id = db.Column(db.Integer, db.ForeignKey("lesson_folders.id"), index=True, nullable=False)
    subscription_type = db.Column(db.String(20), nullable=False)

    start_date = db.Column(db.DateTime, nullable=False)
    end_date = db.Column(db.DateTime, nullable=False, index=True)   # acesso enquanto end_date >= agora
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    payment_method = db.Column(db.String(32))   # fawry, paymob, owner_granted
    monthly_price = db.Column(db.Integer)       # EGP
    # unique: a payment issues at most one subscription
    payment_id = db.Column(db.Integer, db.ForeignKey("payments.id"), unique=True, nullable=True)
    granted_by_owner_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    created_at = db.Column(db.DateTime, default=utcnow)

    payment = db.relationship("Payment")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "studentId": self.student_id,
            "folderId": self.folder_id,
            "subscriptionType": self.subscription_type,
            "startDate": self.start_date.isoformat() if self.start_date else None,
            "endDate": self.end_date.isoformat() if self.end_date else None,
            "isActive": bool(self.is_active),
            "paymentMethod": self.payment_method,
            "monthlyPrice": self.monthly_price,
            "paymentId": self.payment_id,
            "grantedByOwnerId": self.granted_by_owner_id,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }
