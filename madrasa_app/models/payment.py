# madrasa_app/models/payment.py
# -*- coding: utf-8 -*-
from __future__ import annotations
from ..extensions import db
from ..timeutils import utcnow

PROVIDERS = ("fawry", "paymob")
SUBSCRIPTION_TYPES = ("premium", "premium_plus")
PENDING = "pending"
TERMINAL_STATUSES = ("approved", "failed", "expired", "cancelled")
STATUSES = (PENDING,) + TERMINAL_STATUSES

STATUS_LABELS_AR = {
    "pending": "قيد الانتظار",
    "approved": "مدفوع",
    "failed": "فشل",
    "expired": "منتهي الصلاحية",
    "cancelled": "ملغي",
}


class Payment(db.Model):
    __tablename__ = "payments"

    id = db.Column(db.Integer, primary_key=True)
    student_id = db.Column(db.Integer, db.ForeignKey("users.id"), index=True, nullable=False)
    folder_id = db.Column(db.Integer, db.ForeignKey("lesson_folders.id"), index=True, nullable=False)
    subscription_type = db.Column(db.String(20), nullable=False)   # premium, premium_plus
    amount = db.Column(db.Integer, nullable=False)                 # piastres
    currency = db.Column(db.String(8), nullable=False, default="EGP")
    provider = db.Column(db.String(20), nullable=False)            # fawry, paymob
    merchant_order_id = db.Column(db.String(120), unique=True, nullable=False, index=True)
    provider_reference = db.Column(db.String(120))                 # intention id / fawryRefNumber
    provider_transaction_id = db.Column(db.String(120))
    payment_method = db.Column(db.String(32))                      # CARD, WALLET, PAYATFAWRY...
    # only services.payment_workflow.transition_payment moves this away from "pending"
    status = db.Column(db.String(20), nullable=False, default=PENDING, index=True)
    note = db.Column(db.Text)
    webhook_received = db.Column(db.Boolean, nullable=False, default=False)
    webhook_received_at = db.Column(db.DateTime)
    completed_at = db.Column(db.DateTime)
    provider_metadata = db.Column(db.JSON)
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    folder = db.relationship("LessonFolder")

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def amount_egp(self) -> float:
        return self.amount / 100

    @property
    def status_label(self) -> str:
        return STATUS_LABELS_AR.get(self.status, self.status)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "userId": self.student_id,
            "folderId": self.folder_id,
            "subscriptionType": self.subscription_type,
            "merchantOrderId": self.merchant_order_id,
            "provider": self.provider,
            "providerReferenceNumber": self.provider_reference,
            "providerTransactionId": self.provider_transaction_id,
            "paymentMethod": self.payment_method,
            "amount": self.amount,
            "amountEGP": self.amount_egp,
            "currency": self.currency,
            "status": self.status,
            "statusArabic": self.status_label,
            "note": self.note,
            "webhookReceived": bool(self.webhook_received),
            "webhookReceivedAt": _iso(self.webhook_received_at),
            "paymentCompletedAt": _iso(self.completed_at),
            "createdAt": _iso(self.created_at),
            "updatedAt": _iso(self.updated_at),
        }


def _iso(value):
    return value.isoformat() if value else None
