import logging

from django.contrib.auth.base_user import BaseUserManager
from django.contrib.auth.models import AbstractUser
from django.db import models

logger = logging.getLogger("accounts")


class UserManager(BaseUserManager):
    """
    Manager for identities keyed by ``student_id`` instead of a username.
    """

    def create_user(self, student_id, name, password=None, **extra_fields):
        if not student_id:
            raise ValueError("A student id is required")
        user = self.model(student_id=student_id, name=name, **extra_fields)
        # stores a salted one-way hash, never the plaintext
        user.set_password(password)
        user.save(using=self._db)
        return user

    def create_superuser(self, student_id, name, password=None, **extra_fields):
        extra_fields.setdefault("is_admin", True)
        extra_fields.setdefault("is_staff", True)
        extra_fields.setdefault("is_superuser", True)
        return self.create_user(student_id, name, password, **extra_fields)


class User(AbstractUser):
    """
    A registered voter or admin account.

    ``has_voted`` flips to True exactly once, inside the vote transaction.
    """

    username = None
    student_id = models.CharField(max_length=64, unique=True)
    name = models.CharField(max_length=150)
    is_admin = models.BooleanField(default=False)
    has_voted = models.BooleanField(default=False)

    USERNAME_FIELD = "student_id"
    REQUIRED_FIELDS = ["name"]

    objects = UserManager()

    class Meta:
        ordering = ["id"]

    def __str__(self):
        return self.student_id

    @property
    def role(self):
        return "admin" if self.is_admin else "student"

    def save(self, *args, **kwargs):
        if self._state.adding:
            logger.info(f"Saving user: {self.student_id}")
        super().save(*args, **kwargs)
