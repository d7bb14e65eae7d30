import logging

from django.db.models import F

from .models import Candidate

logger = logging.getLogger("candidates")


class CandidateRegistryError(Exception):
    """Base exception for the candidate registry"""

    pass


class CandidateValidationError(CandidateRegistryError):
    """Raised when a candidate is created without a name"""

    pass


class CandidateNotFound(CandidateRegistryError):
    """Raised when a candidate id does not exist"""

    pass


class CandidateRegistry:
    """
    Reads and inserts candidates, and bumps their tallies.
    """

    def list(self):
        """Candidates in ballot (insertion) order."""
        return Candidate.objects.order_by("id")

    def results(self):
        """Candidates ordered by votes, highest first."""
        return Candidate.objects.order_by("-vote_count", "id")

    def exists(self, candidate_id) -> bool:
        return Candidate.objects.filter(pk=candidate_id).exists()

    def create(self, name, description="") -> Candidate:
        name = (name or "").strip()
        if not name:
            logger.warning("Candidate rejected: empty name")
            raise CandidateValidationError("Name required")

        candidate = Candidate.objects.create(name=name, description=description or "")
        logger.info(f"Candidate '{candidate.name}' created with id {candidate.id}")
        return candidate

    def increment_vote(self, candidate_id) -> None:
        """
        Add exactly one vote, as a single UPDATE so concurrent increments
        never lose a count.
        """
        updated = Candidate.objects.filter(pk=candidate_id).update(vote_count=F("vote_count") + 1)
        if updated == 0:
            raise CandidateNotFound(f"Candidate {candidate_id} not found")
