# madrasa_app/models/webhook_log.py
from __future__ import annotations
from ..extensions import db
from ..timeutils import utcnow


class WebhookLog(db.Model):
    """One row per authenticated provider callback, whatever the outcome."""
    __tablename__ = "webhook_logs"

    id = db.Column(db.Integer, primary_key=True)
    provider = db.Column(db.String(20), nullable=False)
    merchant_order_id = db.Column(db.String(120), index=True)
    outcome = db.Column(db.String(20))        # succeeded, failed, expired, cancelled, pending
    result = db.Column(db.String(20), nullable=False)   # approved, duplicate, not_found, ...
    payload = db.Column(db.JSON)
    created_at = db.Column(db.DateTime, default=utcnow, index=True)
