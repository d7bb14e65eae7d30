from django.test import TestCase, override_settings
from rest_framework.test import APIClient

from accounts.models import User

from .models import Candidate
from .serializers import CandidateCreateSerializer
from .services import CandidateNotFound, CandidateRegistry, CandidateValidationError

FAST_HASHERS = ["django.contrib.auth.hashers.MD5PasswordHasher"]


class CandidateRegistryTest(TestCase):
    def setUp(self):
        self.registry = CandidateRegistry()

    # method to test .create() and confirm the DB interaction
    def test_create(self):
        candidate = self.registry.create("  Cand A ", "First on the ballot")

        self.assertEqual(Candidate.objects.count(), 1)
        self.assertEqual(candidate.name, "Cand A")
        self.assertEqual(candidate.vote_count, 0)

    def test_create_without_name(self):
        for name in ("", "   ", None):
            with self.assertRaises(CandidateValidationError):
                self.registry.create(name)
        self.assertEqual(Candidate.objects.count(), 0)

    def test_list_is_insertion_order(self):
        for name in ("Zed", "Amy", "Mo"):
            self.registry.create(name)

        self.assertEqual([c.name for c in self.registry.list()], ["Zed", "Amy", "Mo"])

    def test_results_are_ordered_by_votes(self):
        first = self.registry.create("First")
        second = self.registry.create("Second")
        third = self.registry.create("Third")
        self.registry.increment_vote(third.pk)
        self.registry.increment_vote(third.pk)
        self.registry.increment_vote(second.pk)

        self.assertEqual(list(self.registry.results()), [third, second, first])

    def test_increment_vote(self):
        candidate = self.registry.create("Cand A")

        self.registry.increment_vote(candidate.pk)

        candidate.refresh_from_db()
        self.assertEqual(candidate.vote_count, 1)

    def test_increment_unknown_candidate(self):
        with self.assertRaises(CandidateNotFound):
            self.registry.increment_vote(999)

    def test_serializer_rejects_blank_name(self):
        serializer = CandidateCreateSerializer(data={"name": ""})

        self.assertFalse(serializer.is_valid())
        self.assertIn("name", serializer.errors)


@override_settings(PASSWORD_HASHERS=FAST_HASHERS)
class CandidateApiTest(TestCase):
    def setUp(self):
        User.objects.create_user("S1", "Alice", "pw1")
        User.objects.create_user("A1", "Admin", "adminpw", is_admin=True)
        self.client = APIClient()

    def login(self, student_id, password):
        response = self.client.post("/api/login", {"student_id": student_id, "password": password}, format="json")
        self.assertEqual(response.status_code, 200)

    def test_list_candidates(self):
        CandidateRegistry().create("Cand A", "desc A")
        CandidateRegistry().create("Cand B")

        rows = self.client.get("/api/candidates").json()

        self.assertEqual(
            rows,
            [
                {"id": rows[0]["id"], "name": "Cand A", "description": "desc A", "votes": 0},
                {"id": rows[1]["id"], "name": "Cand B", "description": "", "votes": 0},
            ],
        )

    def test_admin_creates_candidate(self):
        self.login("A1", "adminpw")

        response = self.client.post("/api/admin/candidates", {"name": "Cand A", "description": "d"}, format="json")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {"success": True, "id": Candidate.objects.get(name="Cand A").pk})

    def test_admin_create_requires_name(self):
        self.login("A1", "adminpw")

        missing = self.client.post("/api/admin/candidates", {"description": "d"}, format="json")
        blank = self.client.post("/api/admin/candidates", {"name": "   "}, format="json")

        self.assertEqual(missing.status_code, 400)
        self.assertEqual(blank.status_code, 400)
        self.assertEqual(Candidate.objects.count(), 0)

    def test_create_candidate_unauthenticated(self):
        response = self.client.post("/api/admin/candidates", {"name": "Cand A"}, format="json")

        self.assertEqual(response.status_code, 401)

    # method to test that a student session cannot add candidates
    def test_create_candidate_forbidden_for_students(self):
        self.login("S1", "pw1")

        response = self.client.post("/api/admin/candidates", {"name": "Cand A"}, format="json")

        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.json()["success"], False)
        self.assertEqual(Candidate.objects.count(), 0)

    def test_results(self):
        low = CandidateRegistry().create("Low")
        high = CandidateRegistry().create("High")
        Candidate.objects.filter(pk=high.pk).update(vote_count=3)
        Candidate.objects.filter(pk=low.pk).update(vote_count=1)

        rows = self.client.get("/api/results").json()

        self.assertEqual(rows, [{"id": high.pk, "name": "High", "votes": 3}, {"id": low.pk, "name": "Low", "votes": 1}])
