"""
Forms & Approvals Backend
Shared SQLAlchemy handle.

Every model module imports ``db`` from here so that a single metadata
object backs ``db.create_all()`` and Flask-Migrate autogeneration.
"""

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()
