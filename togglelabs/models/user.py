"""
User Model — sign-in credentials.

Only ``User.id`` crosses into the organization and flag stores; the
password hash never leaves the credential check in user_service.
"""

from togglelabs.models import db
from togglelabs.models.base import isoformat_utc, new_object_id, utcnow


class User(db.Model):
    __tablename__ = "user"

    id = db.Column(db.String(32), primary_key=True, default=new_object_id)
    email = db.Column(db.String(200), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(256), nullable=False)
    first_name = db.Column(db.String(100))
    last_name = db.Column(db.String(100))
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        onupdate=utcnow,
    )

    def to_dict(self):
        return {
            "id": self.id,
            "email": self.email,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "created_at": isoformat_utc(self.created_at),
        }
