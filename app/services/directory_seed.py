"""
Seed the organisation directory: roles (with routing scope), colleges,
departments and a handful of sample users.

Idempotent: existing rows (matched by name / email) are left alone, so the
seed can run on every deploy.  The role directory cache is invalidated
afterwards.
"""

import logging

from sqlalchemy import select

from app.models import db
from app.models.auth import (
    ROLE_SCOPE_COLLEGE,
    ROLE_SCOPE_DEPARTMENT,
    ROLE_SCOPE_GLOBAL,
    Role,
    User,
)
from app.models.organization import College, Department
from app.services.role_directory import invalidate_role_directory
from app.utils.crypto import hash_password

logger = logging.getLogger(__name__)

SAMPLE_PASSWORD = "password123"

ROLES = [
    ("student", ROLE_SCOPE_GLOBAL, "Submits forms"),
    ("admin", ROLE_SCOPE_GLOBAL, "Manages forms and approval flows"),
    ("college dean", ROLE_SCOPE_COLLEGE, "Dean of a college"),
    ("hod", ROLE_SCOPE_DEPARTMENT, "Head of department"),
    ("dean sps", ROLE_SCOPE_GLOBAL, "Dean, School of Postgraduate Studies"),
    ("sub-dean sps", ROLE_SCOPE_GLOBAL, "Sub-dean, School of Postgraduate Studies"),
    ("college pg coordinator", ROLE_SCOPE_COLLEGE, "Postgraduate coordinator of a college"),
    ("departmental pg coordinator", ROLE_SCOPE_DEPARTMENT, "Postgraduate coordinator of a department"),
]

COLLEGES = [
    "College of Engineering",
    "College of Science and Technology",
    "College of Management and Social Sciences",
]

# (department, college)
DEPARTMENTS = [
    ("Computer Science", "College of Science and Technology"),
    ("Mechanical Engineering", "College of Engineering"),
    ("Finance", "College of Management and Social Sciences"),
    ("Marketing", "College of Management and Social Sciences"),
]

# (first, last, email, role, college, department)
USERS = [
    ("Admin", "User", "admin@example.com", "admin", None, None),
    ("Student", "User", "student@example.com", "student",
     "College of Science and Technology", "Computer Science"),
    ("HOD Mechanical", "Engineering", "hod-mech@example.com", "hod",
     "College of Engineering", "Mechanical Engineering"),
    ("HOD Computer", "Science", "hod-cs@example.com", "hod",
     "College of Science and Technology", "Computer Science"),
    ("CST", "Dean", "cstdean@example.com", "college dean",
     "College of Science and Technology", None),
    ("COE", "Dean", "coedean@example.com", "college dean", "College of Engineering", None),
    ("Dean", "SPS", "deansps@example.com", "dean sps", "College of Science and Technology", None),
    ("Sub", "Dean", "subdean@example.com", "sub-dean sps",
     "College of Management and Social Sciences", None),
    ("College PG", "Coordinator", "col-pgcoordinator@example.com", "college pg coordinator",
     "College of Science and Technology", None),
    ("Departmental PG", "Coordinator", "dep-pgcoordinator@example.com",
     "departmental pg coordinator", "College of Science and Technology", "Computer Science"),
]


def _get_or_create(model, defaults=None, **lookup):
    obj = db.session.execute(select(model).filter_by(**lookup)).scalar_one_or_none()
    if obj is not None:
        return obj, False
    obj = model(**lookup, **(defaults or {}))
    db.session.add(obj)
    db.session.flush()
    return obj, True


def seed_directory(with_users: bool = True) -> dict:
    """Create missing directory rows.  Returns per-table counts of new rows."""
    created = {"roles": 0, "colleges": 0, "departments": 0, "users": 0}

    roles = {}
    for name, scope, description in ROLES:
        roles[name], new = _get_or_create(Role, {"scope": scope, "description": description}, name=name)
        created["roles"] += new

    colleges = {}
    for name in COLLEGES:
        colleges[name], new = _get_or_create(College, name=name)
        created["colleges"] += new

    departments = {}
    for name, college in DEPARTMENTS:
        departments[name], new = _get_or_create(
            Department, {"college_id": colleges[college].id}, name=name,
        )
        created["departments"] += new

    if with_users:
        password_hash = None
        for first, last, email, role, college, department in USERS:
            if db.session.execute(select(User.id).filter_by(email=email)).first():
                continue
            if password_hash is None:
                password_hash = hash_password(SAMPLE_PASSWORD)
            db.session.add(User(
                first_name=first,
                last_name=last,
                email=email,
                password_hash=password_hash,
                role_id=roles[role].id,
                college_id=colleges[college].id if college else None,
                department_id=departments[department].id if department else None,
            ))
            created["users"] += 1

    db.session.commit()
    invalidate_role_directory()
    logger.info("Directory seeded: %s", created)
    return created
