# madrasa_app/models/user.py
# -*- coding: utf-8 -*-
from __future__ import annotations
from ..extensions import db
from ..timeutils import utcnow

ROLES = ("student", "teacher", "owner", "secretary")


class User(db.Model):
    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    email = db.Column(db.String(180), unique=True, nullable=False, index=True)
    phone = db.Column(db.String(32))
    role = db.Column(db.String(20), nullable=False, default="student")  # student, teacher, owner, secretary
    created_at = db.Column(db.DateTime, default=utcnow)

    payments = db.relationship("Payment", backref="student", lazy="dynamic",
                               foreign_keys="Payment.student_id")

    @property
    def is_student(self) -> bool:
        return self.role == "student"

    @property
    def is_owner(self) -> bool:
        return self.role == "owner"
