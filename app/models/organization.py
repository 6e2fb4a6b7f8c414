"""
Organisation models — colleges and departments.

Both are referenced (never owned) by users; a user's
(college_id, department_id) pair is the scoping key for approver lookup.
"""

from datetime import datetime, timezone

from app.models import db


class College(db.Model):
    __tablename__ = "colleges"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False)
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))

    departments = db.relationship("Department", back_populates="college", lazy="dynamic")
    users = db.relationship("User", back_populates="college", lazy="dynamic")

    def to_dict(self):
        return {"id": self.id, "name": self.name}


class Department(db.Model):
    __tablename__ = "departments"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False)
    college_id = db.Column(
        db.Integer, db.ForeignKey("colleges.id", ondelete="SET NULL"), nullable=True, index=True,
    )
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))

    college = db.relationship("College", back_populates="departments")
    users = db.relationship("User", back_populates="department", lazy="dynamic")

    def to_dict(self):
        return {"id": self.id, "name": self.name, "college_id": self.college_id}
