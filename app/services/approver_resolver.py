"""
Approver Resolver — maps a required role plus the initiator's organisational
context to one concrete approver.

Dispatch is on the role's scope tag from the role directory:

    department  1. same department as the initiator
                2. same college as the initiator
    college     1. same college as the initiator
    global      1. same college as the initiator (when the initiator has one)
                2. any holder of the role

Each tier is a single query.  A tier whose context key is missing on the
initiator (e.g. no department_id) is skipped; NULL never matches NULL.
Within a tier the lowest user id wins, so results are stable for a given
data snapshot.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass

from sqlalchemy import select

from app.models import db
from app.models.auth import ROLE_SCOPE_COLLEGE, ROLE_SCOPE_DEPARTMENT, User
from app.services.role_directory import RoleDirectory, get_role_directory

logger = logging.getLogger(__name__)


class UnresolvedPolicy(str, enum.Enum):
    """What a caller does when no approver can be found for a step."""

    AUTO_APPROVE = "auto_approve"
    FAIL = "fail"


@dataclass(frozen=True)
class InitiatorContext:
    user_id: int | None
    department_id: int | None
    college_id: int | None

    @classmethod
    def of(cls, user: User) -> "InitiatorContext":
        return cls(
            user_id=user.id,
            department_id=user.department_id,
            college_id=user.college_id,
        )


def _first_holder(role_id: int, **scope) -> User | None:
    stmt = select(User).where(User.role_id == role_id)
    for column, value in scope.items():
        stmt = stmt.where(getattr(User, column) == value)
    return db.session.execute(stmt.order_by(User.id).limit(1)).scalar_one_or_none()


def _tiers(scope: str, ctx: InitiatorContext) -> list[tuple[str, dict]]:
    """Ordered (tier_name, filter) pairs to try for a role scope."""
    if scope == ROLE_SCOPE_DEPARTMENT:
        return [
            ("department", {"department_id": ctx.department_id}),
            ("college", {"college_id": ctx.college_id}),
        ]
    if scope == ROLE_SCOPE_COLLEGE:
        return [("college", {"college_id": ctx.college_id})]
    return [
        ("college", {"college_id": ctx.college_id}),
        ("any", {}),
    ]


def resolve_approver(
    role_name: str,
    initiator: User | InitiatorContext,
    directory: RoleDirectory | None = None,
) -> User | None:
    """Find the approver for *role_name* on behalf of *initiator*.

    Args:
        role_name:  Role required by the flow step; matched case-insensitively.
        initiator:  The submitting user (or a pre-built context).  Always the
                    original submitter, never the approver of a prior step.
        directory:  Role directory to use; defaults to the app-cached one.

    Returns:
        The matching User, or None when no tier yields a candidate.

    Raises:
        ConfigurationError: the role is not in the directory.
    """
    if directory is None:
        directory = get_role_directory()
    ctx = initiator if isinstance(initiator, InitiatorContext) else InitiatorContext.of(initiator)
    role = directory.require(role_name)

    for tier, scope in _tiers(role.scope, ctx):
        if any(value is None for value in scope.values()):
            continue
        approver = _first_holder(role.id, **scope)
        if approver is not None:
            logger.debug(
                "Resolved %r for user %s at tier %s -> user %s",
                role.name, ctx.user_id, tier, approver.id,
            )
            return approver

    logger.info(
        "No approver for role %r (scope=%s) for user %s",
        role.name, role.scope, ctx.user_id,
        extra={"user_id": ctx.user_id},
    )
    return None
