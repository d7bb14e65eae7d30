import threading
from io import StringIO
from unittest import mock

from django.core.management import CommandError, call_command
from django.db import OperationalError, connection
from django.test import TestCase, TransactionTestCase, override_settings
from rest_framework.test import APIClient

from accounts.models import User, UserManager
from candidates.models import Candidate

from .models import VoteRecord, VoteRecordError
from .services import (
    AlreadyVotedError,
    TransientStorageError,
    UnknownCandidateError,
    UnknownIdentityError,
    VoteLedger,
    VotingService,
)

FAST_HASHERS = ["django.contrib.auth.hashers.MD5PasswordHasher"]


@override_settings(PASSWORD_HASHERS=FAST_HASHERS)
class VotingServiceTest(TestCase):
    def setUp(self):
        self.service = VotingService()
        self.voter = User.objects.create_user("S1", "Alice", "pw1")
        self.candidate = Candidate.objects.create(name="Cand A")
        self.other = Candidate.objects.create(name="Cand B")

    def assertNothingRecorded(self):
        self.voter.refresh_from_db()
        self.assertFalse(self.voter.has_voted)
        self.assertEqual(VoteRecord.objects.count(), 0)
        self.assertEqual(sum(Candidate.objects.values_list("vote_count", flat=True)), 0)

    # method to test a vote updates flag, tally and ledger together
    def test_cast_vote(self):
        record = self.service.cast_vote(self.voter.pk, self.candidate.pk)

        self.voter.refresh_from_db()
        self.candidate.refresh_from_db()
        self.assertTrue(self.voter.has_voted)
        self.assertEqual(self.candidate.vote_count, 1)
        self.assertEqual(record.identity_id, self.voter.pk)
        self.assertEqual(record.candidate_id, self.candidate.pk)
        self.assertEqual(VoteLedger().reconcile(), [])

    def test_second_vote_rejected(self):
        self.service.cast_vote(self.voter.pk, self.candidate.pk)

        with self.assertRaises(AlreadyVotedError):
            self.service.cast_vote(self.voter.pk, self.other.pk)

        self.assertEqual(VoteRecord.objects.count(), 1)
        self.assertEqual(Candidate.objects.get(pk=self.other.pk).vote_count, 0)
        self.assertEqual(Candidate.objects.get(pk=self.candidate.pk).vote_count, 1)

    def test_unknown_candidate(self):
        with self.assertRaises(UnknownCandidateError):
            self.service.cast_vote(self.voter.pk, 999)

        self.assertNothingRecorded()

    def test_unknown_identity(self):
        with self.assertRaises(UnknownIdentityError):
            self.service.cast_vote(999, self.candidate.pk)

        self.assertEqual(VoteRecord.objects.count(), 0)

    def test_already_voted_checked_before_candidate(self):
        self.service.cast_vote(self.voter.pk, self.candidate.pk)

        with self.assertRaises(AlreadyVotedError):
            self.service.cast_vote(self.voter.pk, 999)

    # method to test a storage fault mid-transaction leaves no partial state
    def test_storage_failure_rolls_back(self):
        ledger = mock.Mock(spec=VoteLedger)
        ledger.append.side_effect = OperationalError("disk I/O error")
        service = VotingService(ledger=ledger)

        with self.assertRaises(TransientStorageError):
            service.cast_vote(self.voter.pk, self.candidate.pk)

        self.assertNothingRecorded()
        # a retry after the fault succeeds
        self.service.cast_vote(self.voter.pk, self.candidate.pk)
        self.assertEqual(VoteRecord.objects.count(), 1)

    def test_flag_race_rolls_back_increment(self):
        credential_store = mock.Mock()
        credential_store.mark_voted.return_value = False
        service = VotingService(credential_store=credential_store)

        with self.assertRaises(AlreadyVotedError):
            service.cast_vote(self.voter.pk, self.candidate.pk)

        self.assertNothingRecorded()

    def test_ledger_is_append_only(self):
        record = self.service.cast_vote(self.voter.pk, self.candidate.pk)

        record.candidate = self.other
        with self.assertRaises(VoteRecordError):
            record.save()
        with self.assertRaises(VoteRecordError):
            record.delete()
        self.assertEqual(VoteRecord.objects.get().candidate_id, self.candidate.pk)

    def test_ledger_does_not_enforce_one_vote(self):
        ledger = VoteLedger()

        ledger.append(self.voter.pk, self.candidate.pk)
        ledger.append(self.voter.pk, self.other.pk)

        self.assertEqual(ledger.records().count(), 2)

    def test_reconcile_reports_discrepancies(self):
        User.objects.filter(pk=self.voter.pk).update(has_voted=True)
        Candidate.objects.filter(pk=self.candidate.pk).update(vote_count=2)

        problems = VoteLedger().reconcile()

        self.assertEqual(len(problems), 3)

    def test_audit_command(self):
        self.service.cast_vote(self.voter.pk, self.candidate.pk)
        out = StringIO()

        call_command("audit_votes", stdout=out)
        self.assertIn("OK", out.getvalue())

        Candidate.objects.filter(pk=self.other.pk).update(vote_count=5)
        with self.assertRaises(CommandError):
            call_command("audit_votes", stdout=StringIO())


@override_settings(PASSWORD_HASHERS=FAST_HASHERS)
class ConcurrentVoteTest(TransactionTestCase):
    """
    Several requests for one identity racing through the vote transaction.
    """

    attempts = 8

    def test_only_one_concurrent_vote_succeeds(self):
        voter = User.objects.create_user("S1", "Alice", "pw1")
        candidates = [Candidate.objects.create(name=f"Cand {i}") for i in range(2)]
        service = VotingService()
        barrier = threading.Barrier(self.attempts)
        outcomes = []
        lock = threading.Lock()

        def vote(n):
            try:
                barrier.wait()
                try:
                    service.cast_vote(voter.pk, candidates[n % 2].pk)
                    outcome = "success"
                except AlreadyVotedError:
                    outcome = "already_voted"
                with lock:
                    outcomes.append(outcome)
            finally:
                connection.close()

        threads = [threading.Thread(target=vote, args=(n,)) for n in range(self.attempts)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        self.assertEqual(outcomes.count("success"), 1)
        self.assertEqual(outcomes.count("already_voted"), self.attempts - 1)
        self.assertEqual(VoteRecord.objects.count(), 1)
        self.assertEqual(sum(c.vote_count for c in Candidate.objects.all()), 1)
        self.assertEqual(VoteLedger().reconcile(), [])

    # method to test a vote committing while the audit is reading is not reported as drift
    def test_reconcile_is_a_consistent_snapshot(self):
        voter = User.objects.create_user("S1", "Alice", "pw1")
        candidate = Candidate.objects.create(name="Cand")
        original_values_list = UserManager.values_list
        voters = []

        def vote():
            try:
                VotingService().cast_vote(voter.pk, candidate.pk)
            finally:
                connection.close()

        def values_list_with_vote(manager, *args, **kwargs):
            # the ledger counts are already read at this point
            if not voters:
                voters.append(threading.Thread(target=vote))
                voters[0].start()
                voters[0].join(timeout=0.5)
            return original_values_list(manager, *args, **kwargs)

        with mock.patch.object(UserManager, "values_list", values_list_with_vote):
            problems = VoteLedger().reconcile()
        voters[0].join()

        self.assertEqual(problems, [])
        self.assertEqual(VoteRecord.objects.count(), 1)
        self.assertEqual(VoteLedger().reconcile(), [])


@override_settings(PASSWORD_HASHERS=FAST_HASHERS)
class VotingApiTest(TestCase):
    def setUp(self):
        self.client = APIClient()

    def login(self, student_id, password, client=None):
        client = client or self.client
        response = client.post("/api/login", {"student_id": student_id, "password": password}, format="json")
        self.assertEqual(response.status_code, 200)
        return response

    def test_full_voting_scenario(self):
        register = self.client.post(
            "/api/register", {"external_id": "S1", "display_name": "Alice", "secret": "pw1"}, format="json"
        )
        self.assertEqual(register.status_code, 200)

        self.login("S1", "pw1")
        self.assertEqual(self.client.get("/api/me").json()["isAdmin"], False)

        User.objects.create_user("A1", "Admin", "adminpw", is_admin=True)
        admin_client = APIClient()
        self.login("A1", "adminpw", admin_client)
        created = admin_client.post("/api/admin/candidates", {"name": "Cand A"}, format="json").json()

        vote = self.client.post("/api/vote", {"candidate_id": created["id"]}, format="json")
        self.assertEqual(vote.status_code, 200)
        self.assertEqual(vote.json(), {"success": True})
        self.assertEqual(self.client.get("/api/results").json(), [{"id": created["id"], "name": "Cand A", "votes": 1}])

        again = self.client.post("/api/vote", {"candidate_id": created["id"]}, format="json")
        self.assertEqual(again.status_code, 403)
        self.assertEqual(again.json()["success"], False)
        self.assertEqual(self.client.get("/api/results").json(), [{"id": created["id"], "name": "Cand A", "votes": 1}])

        users = admin_client.get("/api/admin/users").json()
        self.assertTrue(next(u for u in users if u["student_id"] == "S1")["has_voted"])

    def test_vote_unauthenticated(self):
        candidate = Candidate.objects.create(name="Cand A")

        response = self.client.post("/api/vote", {"candidate_id": candidate.pk}, format="json")

        self.assertEqual(response.status_code, 401)
        self.assertEqual(VoteRecord.objects.count(), 0)

    def test_vote_missing_or_malformed_candidate(self):
        User.objects.create_user("S1", "Alice", "pw1")
        self.login("S1", "pw1")

        self.assertEqual(self.client.post("/api/vote", {}, format="json").status_code, 400)
        self.assertEqual(self.client.post("/api/vote", {"candidate_id": "abc"}, format="json").status_code, 400)

    def test_vote_unknown_candidate(self):
        voter = User.objects.create_user("S1", "Alice", "pw1")
        self.login("S1", "pw1")

        response = self.client.post("/api/vote", {"candidate_id": 999}, format="json")

        self.assertEqual(response.status_code, 404)
        voter.refresh_from_db()
        self.assertFalse(voter.has_voted)

    def test_vote_storage_failure(self):
        User.objects.create_user("S1", "Alice", "pw1")
        candidate = Candidate.objects.create(name="Cand A")
        self.login("S1", "pw1")

        with mock.patch.object(VoteLedger, "append", side_effect=OperationalError("database is locked")):
            response = self.client.post("/api/vote", {"candidate_id": candidate.pk}, format="json")

        self.assertEqual(response.status_code, 503)
        self.assertEqual(VoteLedger().reconcile(), [])

    def test_ledger_view(self):
        voter = User.objects.create_user("S1", "Alice", "pw1")
        candidate = Candidate.objects.create(name="Cand A")
        VotingService().cast_vote(voter.pk, candidate.pk)
        User.objects.create_user("A1", "Admin", "adminpw", is_admin=True)

        self.login("S1", "pw1")
        self.assertEqual(self.client.get("/api/admin/votes").status_code, 403)

        admin_client = APIClient()
        self.login("A1", "adminpw", admin_client)
        rows = admin_client.get("/api/admin/votes").json()

        self.assertEqual(len(rows), 1)
        self.assertEqual(rows[0]["user_id"], voter.pk)
        self.assertEqual(rows[0]["candidate_id"], candidate.pk)
