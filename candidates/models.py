from django.db import models


class Candidate(models.Model):
    """
    Candidate model - represents a candidate on the ballot.
    """
    name = models.CharField(max_length=255)
    description = models.TextField(blank=True, default="")
    # Only the vote transaction changes this, and only upwards.
    vote_count = models.PositiveIntegerField(default=0)

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        # insertion order is ballot order
        ordering = ['id']

    def __str__(self):
        return self.name
