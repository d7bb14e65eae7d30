import logging

from rest_framework import generics, permissions, status
from rest_framework.response import Response
from rest_framework.views import APIView

from accounts.permissions import IsAdminRole

from .serializers import VoteCreateSerializer, VoteRecordSerializer
from .services import (
    AlreadyVotedError,
    TransientStorageError,
    UnknownCandidateError,
    UnknownIdentityError,
    VoteLedger,
    VotingServiceError,
    get_voting_service,
)

# __name__ = 'voting.views' automatically
logger = logging.getLogger(__name__)


class VoteCreateView(APIView):
    """
    API endpoint for casting the logged-in identity's vote.
    """

    # Ensure that only authenticated users can access that endpoint.
    permission_classes = [permissions.IsAuthenticated]

    def post(self, request, *args, **kwargs):
        serializer = VoteCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            get_voting_service().cast_vote(
                identity_id=request.user.pk,
                candidate_id=serializer.validated_data["candidate_id"],
            )
            return Response({"success": True})

        except AlreadyVotedError as e:
            return Response(
                {"success": False, "error": str(e)},
                status=status.HTTP_403_FORBIDDEN,
            )

        except (UnknownCandidateError, UnknownIdentityError) as e:
            return Response(
                {"success": False, "error": str(e)},
                status=status.HTTP_404_NOT_FOUND,
            )

        except TransientStorageError as e:
            return Response(
                {"success": False, "error": str(e)},
                status=status.HTTP_503_SERVICE_UNAVAILABLE,
            )

        except VotingServiceError as e:
            logger.error(f"Voting service error: {e}")
            return Response(
                {
                    "success": False,
                    "error": "An error occurred while processing your vote",
                },
                status=status.HTTP_500_INTERNAL_SERVER_ERROR,
            )


class VoteRecordListView(generics.ListAPIView):
    """
    API endpoint for admins to read the vote ledger, oldest first.
    """

    serializer_class = VoteRecordSerializer
    permission_classes = [permissions.IsAuthenticated, IsAdminRole]

    def get_queryset(self):
        return VoteLedger().records()
