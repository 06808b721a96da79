"""
auth/permissions.py -- Permission resolution via the RBAC lookup.

Always re-fetched, never cached: a role or permission change shows up on the
user's next login or /me call without waiting for any token to expire.
"""

from __future__ import annotations

import logging

from auth.interfaces import PermissionLookup

logger = logging.getLogger("userhub.auth")


class PermissionResolver:
    def __init__(self, lookup: PermissionLookup) -> None:
        self._lookup = lookup

    def get_permissions(self, user_id: str) -> list[str]:
        """Return the user's current permission codes in lookup order."""
        codes = [p.code for p in self._lookup.get_user_permissions(user_id)]
        logger.debug("Permissions fetched (user_id=%s, count=%d)", user_id, len(codes))
        return codes
