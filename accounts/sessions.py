"""
Server-side login sessions.

A session maps an opaque token (the session store key) to an identity and its
role. The token is handed to the client in a cookie; the data never leaves the
server.
"""

import logging
from importlib import import_module
from typing import NamedTuple, Optional

from django.conf import settings

from .models import User

logger = logging.getLogger("accounts")

IDENTITY_KEY = "identity_id"
ROLE_KEY = "role"


class SessionError(Exception):
    """Base exception for session resolution"""

    pass


class SessionInvalid(SessionError):
    """Raised when a token is empty, unknown or points at a missing identity"""

    pass


class SessionExpired(SessionError):
    """Raised when a token is known but its expiry window has passed"""

    pass


class ResolvedSession(NamedTuple):
    identity: User
    role: str
    token: str


class SessionAuthority:
    """
    Creates, resolves and destroys login sessions.

    The session store engine and expiry window are injectable so the
    authority can be swapped or tested on its own; by default they come
    from ``SESSION_ENGINE`` and ``VOTING_CONFIG``.
    """

    def __init__(self, engine: Optional[str] = None, expiry_window: Optional[int] = None):
        engine = engine or settings.SESSION_ENGINE
        self.store_class = import_module(engine).SessionStore
        if expiry_window is None:
            expiry_window = settings.VOTING_CONFIG["SESSION_EXPIRY_WINDOW"]
        self.expiry_window = expiry_window

    def create_session(self, identity: User) -> str:
        store = self.store_class()
        store[IDENTITY_KEY] = identity.pk
        store[ROLE_KEY] = identity.role
        # absolute expiry: the session is never re-saved after creation
        store.set_expiry(self.expiry_window)
        store.create()
        logger.info("Session created for %s (role=%s)", identity.student_id, identity.role)
        return store.session_key

    def resolve(self, token: Optional[str]) -> ResolvedSession:
        if not token:
            raise SessionInvalid("No session token")

        store = self.store_class(session_key=token)
        identity_id = store.get(IDENTITY_KEY)
        if identity_id is None:
            # the store hides expired sessions but still knows their key
            if store.exists(token):
                raise SessionExpired("Session expired")
            raise SessionInvalid("Unknown session token")

        identity = User.objects.filter(pk=identity_id).first()
        if identity is None:
            raise SessionInvalid("Session identity no longer exists")

        return ResolvedSession(identity=identity, role=store.get(ROLE_KEY), token=token)

    def destroy(self, token: Optional[str]) -> None:
        if not token:
            return
        self.store_class(session_key=token).delete(token)
        logger.info("Session destroyed")


# Singleton instance
_session_authority: Optional[SessionAuthority] = None


def get_session_authority() -> SessionAuthority:
    """Get or create the session authority singleton"""
    global _session_authority
    if _session_authority is None:
        _session_authority = SessionAuthority()
    return _session_authority
