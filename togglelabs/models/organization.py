"""
Organization Model — the tenant that owns feature flags.

Members and invites are embedded documents (JSON lists on the row),
not separate tables. The organization is created with its creator as
the single ADMIN member and is never hard-deleted.
"""

from togglelabs.models import db
from togglelabs.models.base import isoformat_utc, utcnow

ADMIN = "ADMIN"
COLLABORATOR = "COLLABORATOR"
READ_ONLY = "READ_ONLY"

PERMISSION_LEVELS = (ADMIN, COLLABORATOR, READ_ONLY)

# Level -> levels it satisfies (admin > collaborator > read-only)
PERMISSION_HIERARCHY = {
    ADMIN: {ADMIN, COLLABORATOR, READ_ONLY},
    COLLABORATOR: {COLLABORATOR, READ_ONLY},
    READ_ONLY: {READ_ONLY},
}

INVITE_PENDING = "PENDING"
INVITE_ACCEPTED = "ACCEPTED"
INVITE_DENIED = "DENIED"
INVITE_CANCELED = "CANCELED"

INVITE_STATUSES = (INVITE_PENDING, INVITE_ACCEPTED, INVITE_DENIED, INVITE_CANCELED)


class Organization(db.Model):
    __tablename__ = "organization"

    id = db.Column(db.String(32), primary_key=True)
    name = db.Column(db.String(200), nullable=False)
    members = db.Column(db.JSON, nullable=False, default=list)  # [{user_id, permission_level}]
    invites = db.Column(db.JSON, nullable=False, default=list)  # [{email, status}]
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    def member(self, user_id: str) -> dict | None:
        """Return the embedded member entry for ``user_id``, if any."""
        for entry in self.members or []:
            if entry["user_id"] == user_id:
                return entry
        return None

    def to_dict(self):
        d = {
            "name": self.name,
            "members": [dict(m) for m in self.members or []],
            "invites": [dict(i) for i in self.invites or []],
            "created_at": isoformat_utc(self.created_at),
            "updated_at": isoformat_utc(self.updated_at),
        }
        if self.id is not None:
            d = {"id": self.id, **d}
        return d

    def __repr__(self):
        return f"<Organization {self.id} {self.name!r}>"


def new_organization_record(name: str, admin_user_id: str) -> Organization:
    """Build an unsaved organization whose only member is its ADMIN creator."""
    now = utcnow()
    return Organization(
        name=name,
        members=[{"user_id": admin_user_id, "permission_level": ADMIN}],
        invites=[],
        created_at=now,
        updated_at=now,
    )
