"""
Admin gate. Binary: a subject is either on the allow-list or it is not.
"""
import logging
from collections.abc import Iterable

from item_server.errors import Forbidden, Unauthenticated
from item_server.identity import Authenticated, Identity

logger = logging.getLogger(__name__)


class AuthorizationPolicy:
    def __init__(self, admin_subjects: Iterable[str]):
        # Exact, case-sensitive match; an empty set denies every admin action
        self.admin_subjects = frozenset(admin_subjects)

    def is_admin(self, identity: Identity) -> bool:
        return isinstance(identity, Authenticated) and identity.subject in self.admin_subjects

    def require_authenticated(self, identity: Identity) -> str:
        """Return the caller's subject or raise Unauthenticated."""
        if not isinstance(identity, Authenticated):
            raise Unauthenticated("Unauthenticated.")
        return identity.subject

    def require_admin(self, identity: Identity) -> str:
        """Return the caller's subject if it is an admin; Unauthenticated / Forbidden otherwise."""
        subject = self.require_authenticated(identity)
        if not self.is_admin(identity):
            logger.warning("Admin action refused for subject=%s", subject)
            raise Forbidden("You're not an administrator.")
        return subject
