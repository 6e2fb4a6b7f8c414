"""
Auth Models — roles and users.

A Role is both a privilege level and, through its ``scope`` tag, the
organisational reach an approver holding it is expected to have:

    department — holder must share the initiator's department
                 (falls back to the initiator's college)
    college    — holder must share the initiator's college
    global     — any holder, preferring one in the initiator's college

The scope tag drives approver resolution (see services/approver_resolver.py);
role names are never parsed for meaning.
"""

from datetime import datetime, timezone

from app.models import db


# ── Constants ────────────────────────────────────────────────────────────────

ROLE_SCOPE_DEPARTMENT = "department"
ROLE_SCOPE_COLLEGE = "college"
ROLE_SCOPE_GLOBAL = "global"

ROLE_SCOPES = frozenset({ROLE_SCOPE_DEPARTMENT, ROLE_SCOPE_COLLEGE, ROLE_SCOPE_GLOBAL})


# ═══════════════════════════════════════════════════════════════
# 1. ROLES
# ═══════════════════════════════════════════════════════════════
class Role(db.Model):
    __tablename__ = "roles"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), unique=True, nullable=False)
    scope = db.Column(
        db.String(20),
        nullable=False,
        default=ROLE_SCOPE_GLOBAL,
        comment="department | college | global",
    )
    description = db.Column(db.Text)
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))

    # Relationships
    users = db.relationship("User", back_populates="role", lazy="dynamic")

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "scope": self.scope,
            "description": self.description,
        }

    def __repr__(self):
        return f"<Role {self.id}: {self.name} ({self.scope})>"


# ═══════════════════════════════════════════════════════════════
# 2. USERS
# ═══════════════════════════════════════════════════════════════
class User(db.Model):
    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)
    first_name = db.Column(db.String(100), nullable=False)
    last_name = db.Column(db.String(100), nullable=False)
    email = db.Column(db.String(200), unique=True, nullable=False)
    password_hash = db.Column(db.String(256))
    role_id = db.Column(db.Integer, db.ForeignKey("roles.id"), nullable=False, index=True)
    college_id = db.Column(
        db.Integer, db.ForeignKey("colleges.id", ondelete="SET NULL"), nullable=True, index=True,
    )
    department_id = db.Column(
        db.Integer, db.ForeignKey("departments.id", ondelete="SET NULL"), nullable=True, index=True,
    )
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(
        db.DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    # Relationships
    role = db.relationship("Role", back_populates="users")
    college = db.relationship("College", back_populates="users")
    department = db.relationship("Department", back_populates="users")

    @property
    def full_name(self):
        return f"{self.first_name} {self.last_name}".strip()

    @property
    def role_name(self):
        return self.role.name if self.role else None

    def to_dict(self):
        return {
            "id": self.id,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "full_name": self.full_name,
            "email": self.email,
            "role_id": self.role_id,
            "role": self.role_name,
            "college_id": self.college_id,
            "department_id": self.department_id,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<User {self.id}: {self.email}>"
