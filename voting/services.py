import logging
import uuid
from typing import List, Optional

from django.db import DatabaseError, transaction
from django.db.models import Count, Sum

from accounts.models import User
from accounts.services import CredentialStore
from candidates.models import Candidate
from candidates.services import CandidateNotFound, CandidateRegistry

from .models import VoteRecord

logger = logging.getLogger(__name__)


class VotingServiceError(Exception):
    """Base Exception for voting service"""

    pass


class AlreadyVotedError(VotingServiceError):
    """Raised when user tries to vote twice"""

    pass


class UnknownCandidateError(VotingServiceError):
    """Raised when the chosen candidate does not exist"""

    pass


class UnknownIdentityError(VotingServiceError):
    """Raised when the voting identity does not exist"""

    pass


class TransientStorageError(VotingServiceError):
    """Raised when the store fails mid-vote; nothing was written and a retry is safe"""

    pass


class VoteLedger:
    """
    Append-only audit trail of cast votes.

    The ledger records what it is given; the one-vote rule is enforced by
    VotingService, not here.
    """

    def append(self, identity_id, candidate_id) -> VoteRecord:
        return VoteRecord.objects.create(identity_id=identity_id, candidate_id=candidate_id)

    def records(self):
        return VoteRecord.objects.order_by("id")

    def reconcile(self) -> List[str]:
        """
        Check the ledger against the identity flags and candidate tallies.

        Returns:
            One message per discrepancy; an empty list when consistent.
        """
        # one transaction so a vote committing mid-check is seen entirely or not at all
        with transaction.atomic():
            problems = []

            per_identity = dict(
                VoteRecord.objects.order_by().values("identity_id")
                .annotate(n=Count("id"))
                .values_list("identity_id", "n")
            )
            for identity_id, has_voted in User.objects.values_list("id", "has_voted"):
                n = per_identity.get(identity_id, 0)
                if has_voted and n != 1:
                    problems.append(f"Identity {identity_id} has_voted but has {n} vote records")
                elif not has_voted and n != 0:
                    problems.append(f"Identity {identity_id} has not voted but has {n} vote records")

            per_candidate = dict(
                VoteRecord.objects.order_by().values("candidate_id")
                .annotate(n=Count("id"))
                .values_list("candidate_id", "n")
            )
            for candidate_id, vote_count in Candidate.objects.values_list("id", "vote_count"):
                n = per_candidate.get(candidate_id, 0)
                if vote_count != n:
                    problems.append(f"Candidate {candidate_id} tally is {vote_count} but has {n} vote records")

            total_tally = Candidate.objects.aggregate(total=Sum("vote_count"))["total"] or 0
            total_records = VoteRecord.objects.count()
            if total_tally != total_records:
                problems.append(f"Sum of tallies is {total_tally} but ledger has {total_records} records")

        return problems


class VotingService:
    """
    Casts votes.

    A vote touches three pieces of state (the identity's ``has_voted`` flag,
    the candidate's tally and the ledger) and all three change in one
    database transaction. The identity row is locked for the duration so two
    requests for the same identity cannot both pass the ``has_voted`` check.
    """

    def __init__(self, credential_store=None, registry=None, ledger=None):
        self.credential_store = credential_store or CredentialStore()
        self.registry = registry or CandidateRegistry()
        self.ledger = ledger or VoteLedger()

    def cast_vote(self, identity_id, candidate_id) -> VoteRecord:
        """
        Cast ``identity_id``'s single vote for ``candidate_id``.

        Raises:
            UnknownIdentityError: if the identity does not exist
            AlreadyVotedError: if the identity has voted before
            UnknownCandidateError: if the candidate does not exist
            TransientStorageError: if the store failed; the vote was rolled back
        """
        # Using request IDs for Tracing logs
        request_id = str(uuid.uuid4())[:8]

        try:
            with transaction.atomic():
                record = self._cast_vote_locked(request_id, identity_id, candidate_id)
        except DatabaseError as e:
            logger.error(f"[{request_id}] Vote rolled back after storage failure: {e}")
            raise TransientStorageError("Vote could not be recorded, please retry") from e

        logger.info(
            f"[{request_id}] Vote successfully cast.",
            extra={"vote_id": record.id, "identity_id": identity_id},
        )
        return record

    def _cast_vote_locked(self, request_id, identity_id, candidate_id) -> VoteRecord:
        # Row lock on backends that have one; SQLite connections run
        # BEGIN IMMEDIATE instead (see DATABASES in settings).
        identity = (
            User.objects.select_for_update()
            .only("id", "has_voted")
            .filter(pk=identity_id)
            .first()
        )
        if identity is None:
            raise UnknownIdentityError("User not found")
        if identity.has_voted:
            logger.info(f"[{request_id}] Rejected repeat vote from identity {identity_id}")
            raise AlreadyVotedError("You have already voted")

        if not self.registry.exists(candidate_id):
            raise UnknownCandidateError(f"Candidate {candidate_id} not found")

        try:
            self.registry.increment_vote(candidate_id)
        except CandidateNotFound as e:
            raise UnknownCandidateError(str(e)) from e

        if not self.credential_store.mark_voted(identity_id):
            # flag changed after our read; raising rolls back the increment
            raise AlreadyVotedError("You have already voted")

        return self.ledger.append(identity_id, candidate_id)


# Singleton instance
_voting_service: Optional[VotingService] = None


def get_voting_service() -> VotingService:
    """Get or create the voting service singleton"""
    global _voting_service
    if _voting_service is None:
        _voting_service = VotingService()
    return _voting_service
