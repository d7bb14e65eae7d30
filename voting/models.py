from django.db import models
from django.conf import settings


class VoteRecordError(Exception):
    """Raised on any attempt to rewrite the vote ledger"""


class VoteRecord(models.Model):
    """
    One row per successful vote. Rows are appended, never changed or removed.
    """
    identity = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.PROTECT, related_name='vote_records')
    candidate = models.ForeignKey('candidates.Candidate', on_delete=models.PROTECT, related_name='vote_records')
    voted_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['id']

    def __str__(self):
        """
        Returns a string representation of the VoteRecord instance, useful for the Django Admin."""
        return f"Vote by {self.identity} for {self.candidate}"

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise VoteRecordError("Vote records cannot be modified")
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise VoteRecordError("Vote records cannot be deleted")
