"""
Role Directory — immutable name → (id, scope) mapping.

Routing logic never hard-codes role ids or parses role names.  Instead the
``roles`` table is read once into a ``RoleDirectory`` and cached on the Flask
app; the resolver dispatches on the scope tag stored with each role.

Call ``invalidate_role_directory()`` after any write to ``roles`` (seeding,
admin tooling) so the next lookup reloads.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from types import MappingProxyType

from flask import current_app
from sqlalchemy import select

from app.core.exceptions import ConfigurationError
from app.models import db
from app.models.auth import ROLE_SCOPES, ROLE_SCOPE_GLOBAL, Role

logger = logging.getLogger(__name__)

_EXTENSION_KEY = "role_directory"


def normalize_role_name(name: str | None) -> str:
    """Case-fold and trim a role name for directory lookups."""
    return (name or "").strip().casefold()


@dataclass(frozen=True)
class RoleEntry:
    id: int
    name: str
    scope: str


class RoleDirectory:
    """Read-only, case-insensitive view over the role table."""

    def __init__(self, entries):
        by_name = {}
        for entry in entries:
            by_name[normalize_role_name(entry.name)] = entry
        self._by_name = MappingProxyType(by_name)

    @classmethod
    def load(cls) -> "RoleDirectory":
        """Build a directory from the current contents of ``roles``."""
        entries = []
        for role in db.session.execute(select(Role).order_by(Role.id)).scalars():
            scope = role.scope if role.scope in ROLE_SCOPES else ROLE_SCOPE_GLOBAL
            if scope != role.scope:
                logger.warning(
                    "Role %r has unknown scope %r; treating as global", role.name, role.scope,
                )
            entries.append(RoleEntry(id=role.id, name=role.name, scope=scope))
        logger.debug("Role directory loaded: %d roles", len(entries))
        return cls(entries)

    def lookup(self, name: str | None) -> RoleEntry | None:
        return self._by_name.get(normalize_role_name(name))

    def require(self, name: str | None) -> RoleEntry:
        """Return the entry for *name* or raise ConfigurationError."""
        entry = self.lookup(name)
        if entry is None:
            raise ConfigurationError(f"Role {name!r} is not defined in the role directory")
        return entry

    def __contains__(self, name) -> bool:
        return self.lookup(name) is not None

    def __len__(self) -> int:
        return len(self._by_name)

    def names(self) -> list[str]:
        return sorted(entry.name for entry in self._by_name.values())


def get_role_directory() -> RoleDirectory:
    """Return the app-cached directory, loading it on first use."""
    directory = current_app.extensions.get(_EXTENSION_KEY)
    if directory is None:
        directory = RoleDirectory.load()
        current_app.extensions[_EXTENSION_KEY] = directory
    return directory


def invalidate_role_directory() -> None:
    current_app.extensions.pop(_EXTENSION_KEY, None)


def is_admin(user) -> bool:
    """True if *user* holds the configured administrator role."""
    if user is None:
        return False
    admin_role = current_app.config.get("ADMIN_ROLE_NAME", "admin")
    return normalize_role_name(user.role_name) == normalize_role_name(admin_role)
