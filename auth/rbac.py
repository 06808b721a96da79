"""
auth/rbac.py -- Role/permission storage and the permission query.

RbacStore answers one question for the auth core: which permission codes
does a user hold right now (user -> role -> role_permissions -> permissions).
It also seeds the default roles so a fresh database can accept registrations
(AuthService.create_user() refuses to run without the default role).

Runs on the engine owned by UserStore; the tables live in auth/store.py.

Layer rule: no imports from api/ or mail/.
"""

from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.engine import Engine

from auth.models import PermissionRecord, Role
from auth.store import permissions, role_permissions, roles, users

logger = logging.getLogger("userhub.auth.rbac")

# Permission codes known to the application. Descriptions are shown in admin
# tooling only.
PERMISSIONS: dict[str, str] = {
    "profile:read": "Read own profile",
    "profile:update": "Update own profile",
    "users:read": "List and view user accounts",
    "users:manage": "Change roles and force logout of other users",
}

DEFAULT_ROLES: dict[str, list[str]] = {
    "Admin": list(PERMISSIONS),
    "User": ["profile:read", "profile:update"],
}


class RbacStore:
    """Usage:
    rbac = RbacStore(user_store.engine)
    rbac.seed_defaults()
    codes = [p.code for p in rbac.get_user_permissions(user_id)]
    """

    def __init__(self, engine: Engine) -> None:
        self.engine = engine

    def get_user_permissions(self, user_id: str) -> list[PermissionRecord]:
        """Return the permissions granted to the user's role, ordered by code.

        A user without a role, or an unknown user id, has no permissions.
        """
        query = (
            select(permissions.c.code, permissions.c.description)
            .select_from(
                users.join(role_permissions, users.c.role_id == role_permissions.c.role_id).join(
                    permissions, role_permissions.c.permission_id == permissions.c.id
                )
            )
            .where(users.c.id == user_id)
            .order_by(permissions.c.code)
        )
        with self.engine.connect() as conn:
            rows = conn.execute(query).fetchall()
        return [PermissionRecord(code=r.code, description=r.description) for r in rows]

    def ensure_role(self, name: str, codes: list[str]) -> Role:
        """Create the role (if missing) and grant it every code in `codes`.

        Idempotent: existing roles, permissions, and grants are left alone, so
        this is safe to run on every startup. Never revokes.
        """
        with self.engine.connect() as conn:
            role_id = conn.execute(select(roles.c.id).where(roles.c.name == name)).scalar()
            if role_id is None:
                role_id = conn.execute(roles.insert().values(name=name)).inserted_primary_key[0]
                logger.info("Role created (name=%s)", name)
            for code in codes:
                perm_id = conn.execute(select(permissions.c.id).where(permissions.c.code == code)).scalar()
                if perm_id is None:
                    perm_id = conn.execute(
                        permissions.insert().values(code=code, description=PERMISSIONS.get(code))
                    ).inserted_primary_key[0]
                granted = conn.execute(
                    select(role_permissions.c.role_id).where(
                        (role_permissions.c.role_id == role_id) & (role_permissions.c.permission_id == perm_id)
                    )
                ).first()
                if granted is None:
                    conn.execute(role_permissions.insert().values(role_id=role_id, permission_id=perm_id))
            conn.commit()
        return Role(id=role_id, name=name)

    def seed_defaults(self) -> list[Role]:
        """Ensure every role in DEFAULT_ROLES exists with its permissions."""
        return [self.ensure_role(name, codes) for name, codes in DEFAULT_ROLES.items()]
