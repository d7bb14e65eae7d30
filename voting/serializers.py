from rest_framework import serializers

from .models import VoteRecord


class VoteCreateSerializer(serializers.Serializer):
    """
    Body of a cast-vote request.

    Only the shape is checked here; whether the candidate exists is decided
    inside the vote transaction.
    """
    candidate_id = serializers.IntegerField(min_value=1)


class VoteRecordSerializer(serializers.ModelSerializer):
    """
    Serializer for listing ledger entries to admins
    """
    user_id = serializers.IntegerField(source='identity_id', read_only=True)
    candidate_id = serializers.IntegerField(read_only=True)

    class Meta:
        model = VoteRecord
        fields = ['id', 'user_id', 'candidate_id', 'voted_at']
