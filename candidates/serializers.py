from rest_framework import serializers

from .models import Candidate


class CandidateSerializer(serializers.ModelSerializer):
    """
    Ballot entry: a candidate with its current tally.
    """

    votes = serializers.IntegerField(source="vote_count", read_only=True)

    class Meta:
        model = Candidate
        fields = ["id", "name", "description", "votes"]


class CandidateCreateSerializer(serializers.Serializer):
    """
    Body of an admin's create-candidate request.
    """

    name = serializers.CharField(max_length=255)
    description = serializers.CharField(required=False, allow_blank=True, default="")


class ResultSerializer(serializers.ModelSerializer):
    votes = serializers.IntegerField(source="vote_count", read_only=True)

    class Meta:
        model = Candidate
        fields = ["id", "name", "votes"]
