import logging

from django.conf import settings
from django_filters.rest_framework import DjangoFilterBackend
from rest_framework import generics, permissions, status
from rest_framework.response import Response
from rest_framework.views import APIView

from .authentication import get_session_token
from .permissions import IsAdminRole
from .serializers import IdentitySerializer, LoginSerializer, RegistrationSerializer
from .services import CredentialStore, DuplicateIdentity, InvalidCredentials, InvalidIdentityData
from .sessions import get_session_authority

logger = logging.getLogger("accounts")


def set_session_cookie(response, token):
    config = settings.VOTING_CONFIG
    response.set_cookie(
        config["SESSION_COOKIE_NAME"],
        token,
        max_age=config["SESSION_EXPIRY_WINDOW"],
        httponly=True,
        secure=config["SESSION_COOKIE_SECURE"],
        samesite=config["SESSION_COOKIE_SAMESITE"],
    )


class UserRegistrationView(APIView):
    """
    API endpoint for registering a new student identity.
    """

    is_admin = False

    def post(self, request, *args, **kwargs):
        serializer = RegistrationSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        logger.info("User registration attempt: %s", serializer.validated_data["student_id"])

        try:
            user = CredentialStore().register(is_admin=self.is_admin, **serializer.validated_data)
        except (DuplicateIdentity, InvalidIdentityData) as e:
            return Response({"success": False, "error": str(e)}, status=status.HTTP_400_BAD_REQUEST)

        return Response(self.get_response_data(user))

    def get_response_data(self, user):
        return {"success": True, "userId": user.pk}


class CreateAdminView(UserRegistrationView):
    """
    API endpoint for admins to create further admin identities.

    The first admin is created with the ``create_admin`` management command.
    """

    permission_classes = [permissions.IsAuthenticated, IsAdminRole]
    is_admin = True

    def get_response_data(self, user):
        logger.info("Admin identity %s created by %s", user.student_id, self.request.user.student_id)
        return {"success": True, "id": user.pk}


class LoginView(APIView):
    """
    Check credentials and open a server-side session.
    The session token is returned only as an HttpOnly cookie.
    """

    def post(self, request, *args, **kwargs):
        serializer = LoginSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        student_id = serializer.validated_data["student_id"]
        logger.info("Authentication attempt for user: %s", student_id)

        try:
            user = CredentialStore().authenticate(
                student_id, serializer.validated_data["password"], request=request._request
            )
        except InvalidCredentials as e:
            return Response({"success": False, "error": str(e)}, status=status.HTTP_400_BAD_REQUEST)

        authority = get_session_authority()
        # never reuse a token issued before this login
        authority.destroy(get_session_token(request))
        token = authority.create_session(user)

        logger.info("User authenticated sucessfully: %s", user.student_id)
        response = Response({"success": True, "isAdmin": user.is_admin})
        set_session_cookie(response, token)
        return response


class LogoutView(APIView):
    def post(self, request, *args, **kwargs):
        get_session_authority().destroy(get_session_token(request))
        response = Response({"success": True})
        response.delete_cookie(
            settings.VOTING_CONFIG["SESSION_COOKIE_NAME"],
            samesite=settings.VOTING_CONFIG["SESSION_COOKIE_SAMESITE"],
        )
        return response


class CurrentUserView(APIView):
    def get(self, request, *args, **kwargs):
        user = request.user
        if not user.is_authenticated:
            return Response({"loggedIn": False})
        return Response(
            {
                "loggedIn": True,
                "userId": user.pk,
                "studentId": user.student_id,
                "name": user.name,
                "isAdmin": request.auth.role == "admin",
            }
        )


class UserListView(generics.ListAPIView):
    """
    API endpoint for admins to view the voter roll.
    Supports ``?has_voted=`` and ``?is_admin=`` filters.
    """

    serializer_class = IdentitySerializer
    permission_classes = [permissions.IsAuthenticated, IsAdminRole]
    filter_backends = [DjangoFilterBackend]
    filterset_fields = ["has_voted", "is_admin"]

    def get_queryset(self):
        return CredentialStore().list_identities()
