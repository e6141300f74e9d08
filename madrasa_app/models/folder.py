# madrasa_app/models/folder.py
from __future__ import annotations
from ..extensions import db
from ..timeutils import utcnow


class LessonFolder(db.Model):
    __tablename__ = "lesson_folders"

    id = db.Column(db.Integer, primary_key=True)
    teacher_id = db.Column(db.Integer, db.ForeignKey("users.id"), index=True, nullable=False)
    name = db.Column(db.String(200), nullable=False)
    monthly_price = db.Column(db.Integer, default=0)  # whole EGP
    created_at = db.Column(db.DateTime, default=utcnow)

    teacher = db.relationship("User")
