from datetime import timedelta
from io import StringIO
from unittest import mock

from django.conf import settings
from django.contrib.sessions.models import Session
from django.core.management import CommandError, call_command
from django.db import OperationalError
from django.test import TestCase, override_settings
from django.utils import timezone
from rest_framework.test import APIClient

from .models import User, UserManager
from .services import CredentialStore, DuplicateIdentity, InvalidCredentials, InvalidIdentityData
from .sessions import SessionAuthority, SessionExpired, SessionInvalid

FAST_HASHERS = ["django.contrib.auth.hashers.MD5PasswordHasher"]
COOKIE_NAME = settings.VOTING_CONFIG["SESSION_COOKIE_NAME"]


@override_settings(PASSWORD_HASHERS=FAST_HASHERS)
class CredentialStoreTest(TestCase):
    def setUp(self):
        self.store = CredentialStore()

    # method that test a registration stores a hash, not the password
    def test_register_stores_hashed_password(self):
        user = self.store.register("S1", "Alice", "pw1")

        self.assertEqual(User.objects.count(), 1)
        self.assertNotEqual(user.password, "pw1")
        self.assertTrue(user.check_password("pw1"))
        self.assertFalse(user.is_admin)
        self.assertFalse(user.has_voted)
        self.assertFalse(user.is_staff)

    def test_register_duplicate_student_id(self):
        self.store.register("S1", "Alice", "pw1")

        with self.assertRaises(DuplicateIdentity):
            self.store.register("S1", "Someone else", "pw2")

        self.assertEqual(User.objects.count(), 1)
        self.assertEqual(User.objects.get().name, "Alice")

    def test_register_blank_fields(self):
        for student_id, name, password in [("", "Alice", "pw"), ("S1", "  ", "pw"), ("S1", "Alice", "")]:
            with self.assertRaises(InvalidIdentityData):
                self.store.register(student_id, name, password)
        self.assertEqual(User.objects.count(), 0)

    def test_authenticate_success(self):
        registered = self.store.register("S1", "Alice", "pw1")

        self.assertEqual(self.store.authenticate("S1", "pw1"), registered)

    # method to test that unknown ids and wrong passwords fail the same way
    def test_authenticate_failures_are_indistinguishable(self):
        self.store.register("S1", "Alice", "pw1")

        with self.assertRaises(InvalidCredentials) as wrong_secret:
            self.store.authenticate("S1", "not-it")
        with self.assertRaises(InvalidCredentials) as unknown_identity:
            self.store.authenticate("S404", "pw1")

        self.assertIs(type(wrong_secret.exception), type(unknown_identity.exception))
        self.assertEqual(str(wrong_secret.exception), str(unknown_identity.exception))

    def test_mark_voted_only_flips_once(self):
        user = self.store.register("S1", "Alice", "pw1")

        self.assertTrue(self.store.mark_voted(user.pk))
        self.assertFalse(self.store.mark_voted(user.pk))
        user.refresh_from_db()
        self.assertTrue(user.has_voted)


@override_settings(PASSWORD_HASHERS=FAST_HASHERS)
class SessionAuthorityTest(TestCase):
    def setUp(self):
        self.authority = SessionAuthority()
        self.student = User.objects.create_user("S1", "Alice", "pw1")
        self.admin = User.objects.create_user("A1", "Admin", "pw", is_admin=True)

    def test_create_and_resolve(self):
        token = self.authority.create_session(self.student)

        session = self.authority.resolve(token)

        self.assertEqual(session.identity, self.student)
        self.assertEqual(session.role, "student")
        self.assertEqual(session.token, token)
        self.assertEqual(self.authority.resolve(self.authority.create_session(self.admin)).role, "admin")

    def test_expiry_window_is_absolute(self):
        authority = SessionAuthority(expiry_window=60)
        before = timezone.now()

        token = authority.create_session(self.student)

        expire_date = Session.objects.get(session_key=token).expire_date
        self.assertGreaterEqual(expire_date, before + timedelta(seconds=60))
        self.assertLess(expire_date, before + timedelta(seconds=120))

    def test_expired_session(self):
        token = self.authority.create_session(self.student)
        Session.objects.filter(session_key=token).update(expire_date=timezone.now() - timedelta(seconds=1))

        with self.assertRaises(SessionExpired):
            self.authority.resolve(token)

    def test_unknown_or_empty_token(self):
        with self.assertRaises(SessionInvalid):
            self.authority.resolve("doesnotexist0000000000000000000")
        with self.assertRaises(SessionInvalid):
            self.authority.resolve("")
        with self.assertRaises(SessionInvalid):
            self.authority.resolve(None)

    def test_destroy(self):
        token = self.authority.create_session(self.student)

        self.authority.destroy(token)

        with self.assertRaises(SessionInvalid):
            self.authority.resolve(token)
        self.assertFalse(Session.objects.filter(session_key=token).exists())


@override_settings(PASSWORD_HASHERS=FAST_HASHERS)
class AccountApiTest(TestCase):
    def setUp(self):
        self.client = APIClient()

    def login(self, student_id, password, client=None):
        client = client or self.client
        return client.post("/api/login", {"student_id": student_id, "password": password}, format="json")

    def make_admin_client(self):
        User.objects.create_user("A1", "Admin", "adminpw", is_admin=True)
        client = APIClient()
        self.assertEqual(self.login("A1", "adminpw", client).status_code, 200)
        return client

    def test_register(self):
        response = self.client.post(
            "/api/register", {"student_id": "S1", "name": "Alice", "password": "pw1"}, format="json"
        )

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {"success": True, "userId": User.objects.get(student_id="S1").pk})

    # method to test the external_id/display_name/secret key names
    def test_register_with_alias_fields(self):
        response = self.client.post(
            "/api/register", {"external_id": "S2", "display_name": "Bob", "secret": "pw2"}, format="json"
        )

        self.assertEqual(response.status_code, 200)
        user = User.objects.get(student_id="S2")
        self.assertEqual(user.name, "Bob")
        self.assertTrue(user.check_password("pw2"))

    def test_register_duplicate_and_missing_fields(self):
        body = {"student_id": "S1", "name": "Alice", "password": "pw1"}
        self.client.post("/api/register", body, format="json")

        duplicate = self.client.post("/api/register", body, format="json")
        missing = self.client.post("/api/register", {"student_id": "S3"}, format="json")

        self.assertEqual(duplicate.status_code, 400)
        self.assertEqual(duplicate.json()["success"], False)
        self.assertEqual(missing.status_code, 400)
        self.assertIn("name", missing.json()["fields"])
        self.assertEqual(User.objects.count(), 1)

    def test_login_sets_session_cookie(self):
        User.objects.create_user("S1", "Alice", "pw1")

        response = self.login("S1", "pw1")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {"success": True, "isAdmin": False})
        self.assertIn(COOKIE_NAME, response.cookies)
        self.assertTrue(response.cookies[COOKIE_NAME]["httponly"])

    def test_login_failures_are_uniform(self):
        User.objects.create_user("S1", "Alice", "pw1")

        wrong_secret = self.login("S1", "nope")
        unknown = self.login("S404", "pw1")

        self.assertEqual(wrong_secret.status_code, 400)
        self.assertEqual(unknown.status_code, 400)
        self.assertEqual(wrong_secret.json(), unknown.json())
        self.assertNotIn(COOKIE_NAME, wrong_secret.cookies)

    def test_me(self):
        User.objects.create_user("S1", "Alice", "pw1")
        self.assertEqual(self.client.get("/api/me").json(), {"loggedIn": False})

        self.login("S1", "pw1")
        me = self.client.get("/api/me").json()

        self.assertEqual(me["loggedIn"], True)
        self.assertEqual(me["studentId"], "S1")
        self.assertEqual(me["name"], "Alice")
        self.assertEqual(me["isAdmin"], False)

    def test_logout_destroys_session(self):
        User.objects.create_user("S1", "Alice", "pw1")
        self.login("S1", "pw1")
        token = self.client.cookies[COOKIE_NAME].value

        response = self.client.post("/api/logout")

        self.assertEqual(response.json(), {"success": True})
        self.assertFalse(Session.objects.filter(session_key=token).exists())
        self.assertEqual(self.client.get("/api/me").json(), {"loggedIn": False})

    # method to test a stale cookie is treated as logged out
    def test_expired_cookie_is_anonymous(self):
        User.objects.create_user("S1", "Alice", "pw1")
        self.login("S1", "pw1")
        Session.objects.update(expire_date=timezone.now() - timedelta(seconds=1))

        self.assertEqual(self.client.get("/api/me").json(), {"loggedIn": False})

    def test_user_list_requires_admin(self):
        User.objects.create_user("S1", "Alice", "pw1")

        self.assertEqual(self.client.get("/api/admin/users").status_code, 401)
        self.login("S1", "pw1")
        self.assertEqual(self.client.get("/api/admin/users").status_code, 403)

    def test_user_list(self):
        admin_client = self.make_admin_client()
        User.objects.create_user("S1", "Alice", "pw1")
        User.objects.create_user("S2", "Bob", "pw2", has_voted=True)

        rows = admin_client.get("/api/admin/users").json()
        voted = admin_client.get("/api/admin/users", {"has_voted": "true"}).json()

        self.assertEqual([row["student_id"] for row in rows], ["A1", "S1", "S2"])
        self.assertEqual(set(rows[0]), {"id", "student_id", "name", "is_admin", "has_voted"})
        self.assertEqual([row["student_id"] for row in voted], ["S2"])

    def test_create_admin_requires_admin_session(self):
        body = {"student_id": "A2", "name": "Second admin", "password": "pw"}

        self.assertEqual(self.client.post("/api/create-admin", body, format="json").status_code, 401)
        User.objects.create_user("S1", "Alice", "pw1")
        self.login("S1", "pw1")
        self.assertEqual(self.client.post("/api/create-admin", body, format="json").status_code, 403)
        self.assertFalse(User.objects.filter(student_id="A2").exists())

    def test_create_admin(self):
        admin_client = self.make_admin_client()

        response = admin_client.post(
            "/api/create-admin", {"student_id": "A2", "name": "Second admin", "password": "pw"}, format="json"
        )

        self.assertEqual(response.status_code, 200)
        created = User.objects.get(student_id="A2")
        self.assertEqual(response.json(), {"success": True, "id": created.pk})
        self.assertTrue(created.is_admin)

    # method to test a storage fault comes back as a JSON 503, not an HTML page
    def test_register_storage_failure(self):
        with mock.patch.object(UserManager, "create_user", side_effect=OperationalError("database is locked")):
            response = self.client.post(
                "/api/register", {"student_id": "S1", "name": "Alice", "password": "pw1"}, format="json"
            )

        self.assertEqual(response.status_code, 503)
        self.assertEqual(response["Content-Type"], "application/json")
        self.assertEqual(response.json(), {"success": False, "error": "Storage unavailable, please retry"})
        self.assertFalse(User.objects.filter(student_id="S1").exists())

    def test_login_storage_failure(self):
        User.objects.create_user("S1", "Alice", "pw1")

        with mock.patch("accounts.services.auth.authenticate", side_effect=OperationalError("disk I/O error")):
            response = self.login("S1", "pw1")

        self.assertEqual(response.status_code, 503)
        self.assertEqual(response.json()["success"], False)


@override_settings(PASSWORD_HASHERS=FAST_HASHERS)
class CreateAdminCommandTest(TestCase):
    def test_creates_admin(self):
        out = StringIO()

        call_command("create_admin", "--student-id", "A1", "--name", "Admin", "--password", "pw", stdout=out)

        admin = User.objects.get(student_id="A1")
        self.assertTrue(admin.is_admin)
        self.assertTrue(admin.is_staff)
        self.assertTrue(admin.check_password("pw"))
        self.assertIn("A1", out.getvalue())

    def test_duplicate_admin(self):
        User.objects.create_user("A1", "Admin", "pw")

        with self.assertRaises(CommandError):
            call_command("create_admin", "--student-id", "A1", "--name", "Admin", "--password", "pw")

    # method to test the bootstrapped admin can use the Django admin site
    def test_created_admin_can_open_admin_site(self):
        call_command("create_admin", "--student-id", "A1", "--name", "Admin", "--password", "pw", stdout=StringIO())
        self.client.force_login(User.objects.get(student_id="A1"))

        self.assertEqual(self.client.get("/admin/").status_code, 200)
        self.assertEqual(self.client.get("/admin/voting/voterecord/").status_code, 200)
        self.assertEqual(self.client.get("/admin/candidates/candidate/").status_code, 200)


class MigrationStateTest(TestCase):
    # method to test the checked-in migrations match the models
    def test_no_pending_migrations(self):
        out = StringIO()

        try:
            call_command("makemigrations", "--check", "--dry-run", stdout=out)
        except SystemExit:
            self.fail(f"Models have changes not reflected in migrations:\n{out.getvalue()}")
