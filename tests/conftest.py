"""
Shared pytest fixtures for the Forms & Approvals test suite.

Provides:
    - app: Flask application (session-scoped)
    - _setup_db: Database table creation/teardown (session-scoped)
    - session: Per-test DB cleanup w/ rollback + recreate (autouse)
    - client: Flask test client (function-scoped)
    - org: a small institution (roles, colleges, departments, users)
    - make_form / make_flow: factories for forms and raw flow rows
    - auth_headers: Bearer headers for a user
"""

from types import SimpleNamespace

import pytest

from app import create_app
from app.models import db as _db
from app.models.approval import ApprovalFlow
from app.models.auth import (
    ROLE_SCOPE_COLLEGE,
    ROLE_SCOPE_DEPARTMENT,
    ROLE_SCOPE_GLOBAL,
    Role,
    User,
)
from app.models.form import Form, Question
from app.models.organization import College, Department
from app.services.jwt_service import generate_access_token
from app.services.role_directory import invalidate_role_directory


# ── App & DB fixtures ────────────────────────────────────────────────────


@pytest.fixture(scope="session")
def app():
    """Create the Flask application once per test session."""
    application = create_app("testing")
    return application


@pytest.fixture(scope="session")
def _setup_db(app):
    """Create all tables at session start, drop at end."""
    with app.app_context():
        _db.create_all()
    yield
    with app.app_context():
        _db.drop_all()


@pytest.fixture(autouse=True)
def session(app, _setup_db):
    """Per-test: open app context, rollback after test, recreate tables."""
    with app.app_context():
        # Role ids are reused across tests; drop the cached directory.
        invalidate_role_directory()
        yield
        invalidate_role_directory()
        _db.session.rollback()
        _db.drop_all()
        _db.create_all()


@pytest.fixture()
def client(app):
    """Flask test client."""
    return app.test_client()


# ── Organisation fixtures ────────────────────────────────────────────────


def _make_user(first, role, college=None, department=None):
    user = User(
        first_name=first,
        last_name="Test",
        email=f"{first.lower().replace(' ', '.')}@example.edu",
        password_hash="x",
        role_id=role.id,
        college_id=college.id if college else None,
        department_id=department.id if department else None,
    )
    _db.session.add(user)
    _db.session.flush()
    return user


@pytest.fixture()
def org():
    """
    Two colleges, three departments:

        Engineering  ── Mechanical (hod_mech)
                     └─ Civil      (no hod)
        Science      ── Computer Science (hod_cs, dpc_cs)

    Deans: dean_eng (Engineering), dean_sci (Science).
    Global: sps_dean (Science college), sps_subdean (no college).
    Students: student_cs (CS/Science), student_civil (Civil/Engineering),
              student_nodept (Science, no department).
    """
    roles = {}
    for name, scope in (
        ("student", ROLE_SCOPE_GLOBAL),
        ("admin", ROLE_SCOPE_GLOBAL),
        ("hod", ROLE_SCOPE_DEPARTMENT),
        ("departmental pg coordinator", ROLE_SCOPE_DEPARTMENT),
        ("college dean", ROLE_SCOPE_COLLEGE),
        ("college pg coordinator", ROLE_SCOPE_COLLEGE),
        ("dean sps", ROLE_SCOPE_GLOBAL),
        ("sub-dean sps", ROLE_SCOPE_GLOBAL),
    ):
        role = Role(name=name, scope=scope)
        _db.session.add(role)
        roles[name] = role
    _db.session.flush()

    eng = College(name="Engineering")
    sci = College(name="Science")
    _db.session.add_all([eng, sci])
    _db.session.flush()

    mech = Department(name="Mechanical", college_id=eng.id)
    civil = Department(name="Civil", college_id=eng.id)
    cs = Department(name="Computer Science", college_id=sci.id)
    _db.session.add_all([mech, civil, cs])
    _db.session.flush()

    ns = SimpleNamespace(
        roles=roles, eng=eng, sci=sci, mech=mech, civil=civil, cs=cs,
        admin=_make_user("Admin", roles["admin"]),
        student_cs=_make_user("Student CS", roles["student"], sci, cs),
        student_civil=_make_user("Student Civil", roles["student"], eng, civil),
        student_nodept=_make_user("Student Nodept", roles["student"], sci),
        hod_mech=_make_user("Hod Mech", roles["hod"], eng, mech),
        hod_cs=_make_user("Hod CS", roles["hod"], sci, cs),
        dpc_cs=_make_user("Dpc CS", roles["departmental pg coordinator"], sci, cs),
        dean_eng=_make_user("Dean Eng", roles["college dean"], eng),
        dean_sci=_make_user("Dean Sci", roles["college dean"], sci),
        sps_dean=_make_user("Sps Dean", roles["dean sps"], sci),
        sps_subdean=_make_user("Sps Subdean", roles["sub-dean sps"]),
    )
    _db.session.commit()
    return ns


@pytest.fixture()
def make_form():
    """Factory: make_form(title=..., initiator=None, questions=("Reason",))."""

    def _make(title="Leave Request", initiator=None, questions=("Reason",)):
        form = Form(title=title, description="", initiator=initiator)
        _db.session.add(form)
        _db.session.flush()
        for text in questions:
            _db.session.add(Question(form_id=form.id, question_text=text))
        _db.session.commit()
        return form

    return _make


@pytest.fixture()
def make_flow():
    """Factory: store a flow definition as-is (no validation)."""

    def _make(form, definition):
        flow = ApprovalFlow(form_id=form.id, flow_definition=definition)
        _db.session.add(flow)
        _db.session.commit()
        return flow

    return _make


@pytest.fixture()
def auth_headers():
    """Factory: auth_headers(user) -> {"Authorization": "Bearer ..."}."""

    def _headers(user):
        token = generate_access_token(user.id, user.role_name)
        return {"Authorization": f"Bearer {token}"}

    return _headers
