import logging

from django.contrib import auth
from django.db import IntegrityError, transaction

from .models import User

logger = logging.getLogger(__name__)


class CredentialStoreError(Exception):
    """Base exception for the credential store"""

    pass


class InvalidIdentityData(CredentialStoreError):
    """Raised when a registration field is missing or blank"""

    pass


class DuplicateIdentity(CredentialStoreError):
    """Raised when the student id is already registered"""

    pass


class InvalidCredentials(CredentialStoreError):
    """Raised for every failed login, whatever the cause"""

    pass


class CredentialStore:
    """
    Persists identities and checks their credentials.
    """

    # one message for unknown ids and wrong passwords alike
    INVALID_CREDENTIALS_MESSAGE = "Invalid credentials"

    def register(self, student_id, name, password, is_admin=False) -> User:
        """
        Create a new identity.

        Raises:
            InvalidIdentityData: if any field is blank
            DuplicateIdentity: if ``student_id`` is already taken
        """
        student_id = (student_id or "").strip()
        name = (name or "").strip()
        if not student_id or not name or not password:
            raise InvalidIdentityData("Missing fields")

        if User.objects.filter(student_id=student_id).exists():
            logger.warning("Registration rejected, student id already exists: %s", student_id)
            raise DuplicateIdentity("Student ID already exists")

        try:
            with transaction.atomic():
                user = User.objects.create_user(
                    student_id=student_id,
                    name=name,
                    password=password,
                    is_admin=is_admin,
                    # admins also get into the Django admin site
                    is_staff=is_admin,
                )
        except IntegrityError as e:
            # lost a race with a concurrent registration of the same id
            logger.warning("Registration conflict for %s: %s", student_id, e)
            raise DuplicateIdentity("Student ID already exists") from e

        logger.info("New identity registered: %s (admin=%s)", user.student_id, user.is_admin)
        return user

    def authenticate(self, student_id, password, request=None) -> User:
        """
        Return the identity matching ``student_id`` and ``password``.

        ModelBackend hashes the password even when the identity is unknown,
        so both failure paths cost the same.
        """
        user = auth.authenticate(request, username=student_id, password=password)
        if user is None:
            logger.info("Authentication failed for student id: %s", student_id)
            raise InvalidCredentials(self.INVALID_CREDENTIALS_MESSAGE)
        return user

    def mark_voted(self, identity_id) -> bool:
        """Flip ``has_voted`` if it is still False. Returns whether a row changed."""
        updated = User.objects.filter(pk=identity_id, has_voted=False).update(has_voted=True)
        return updated == 1

    def list_identities(self):
        return User.objects.order_by("id")
