import logging

from rest_framework import generics, permissions, status
from rest_framework.response import Response
from rest_framework.views import APIView

from accounts.permissions import IsAdminRole

from .serializers import CandidateCreateSerializer, CandidateSerializer, ResultSerializer
from .services import CandidateRegistry, CandidateValidationError

logger = logging.getLogger("candidates")


class CandidateListView(generics.ListAPIView):
    """
    API endpoint listing the ballot in insertion order.
    """

    serializer_class = CandidateSerializer

    def get_queryset(self):
        return CandidateRegistry().list()


class CandidateCreateView(APIView):
    """
    API endpoint for admins to add a candidate.
    """

    permission_classes = [permissions.IsAuthenticated, IsAdminRole]

    def post(self, request, *args, **kwargs):
        logger.debug(f"Incoming data: {request.data}")
        serializer = CandidateCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            candidate = CandidateRegistry().create(**serializer.validated_data)
        except CandidateValidationError as e:
            return Response({"success": False, "error": str(e)}, status=status.HTTP_400_BAD_REQUEST)

        logger.info(f"Candidate added by admin: {request.user.student_id} - {candidate.id}")
        return Response({"success": True, "id": candidate.id})


class ResultsView(generics.ListAPIView):
    """
    API endpoint to view aggregated results, highest tally first.
    Tallies are read straight from the database, never cached.
    """

    serializer_class = ResultSerializer

    def get_queryset(self):
        return CandidateRegistry().results()
