import logging

from django.conf import settings
from rest_framework.authentication import BaseAuthentication

from .sessions import SessionError, get_session_authority

logger = logging.getLogger("accounts")


def get_session_token(request):
    return request.COOKIES.get(settings.VOTING_CONFIG["SESSION_COOKIE_NAME"])


class SessionTokenAuthentication(BaseAuthentication):
    """
    Authenticate requests by the opaque session cookie set at login.

    ``request.auth`` becomes the resolved session, carrying the role.
    Expired or unknown tokens leave the request anonymous.
    """

    def authenticate(self, request):
        token = get_session_token(request)
        if not token:
            return None

        try:
            session = get_session_authority().resolve(token)
        except SessionError as e:
            logger.debug("Ignoring session cookie: %s", e)
            return None

        return (session.identity, session)

    def authenticate_header(self, request):
        # a non-empty header makes DRF answer 401 rather than 403
        return "Session"
