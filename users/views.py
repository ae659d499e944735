"""Users app API views.

- signin / refresh / signout: JWT lifecycle (simplejwt, with blacklist).
- register: creates a customer and notifies administrators.
- me: the caller's profile.
- password: change password; the user gets a notification.
"""

from drf_spectacular.utils import OpenApiResponse, extend_schema
from rest_framework import status
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from rest_framework.throttling import ScopedRateThrottle
from rest_framework.views import APIView
from rest_framework_simplejwt.tokens import RefreshToken, TokenError
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView

from .logging import log_auth_event
from .serializers import (
    EmailOrPhoneTokenObtainPairSerializer,
    PasswordChangeSerializer,
    RegistrationSerializer,
    SignOutSerializer,
    UserMeSerializer,
)
from .services import change_password


class CurrentUserView(APIView):
    permission_classes = [IsAuthenticated]
    throttle_scope = "profile"

    @extend_schema(
        tags=["User Endpoints"],
        summary="Get current user profile",
        responses={200: UserMeSerializer, 401: OpenApiResponse(description="Unauthorized")},
    )
    def get(self, request):
        return Response(UserMeSerializer(request.user).data)


class RegisterView(APIView):
    permission_classes = [AllowAny]
    throttle_scope = "register"

    @extend_schema(tags=["User Endpoints"], summary="Register", request=RegistrationSerializer)
    def post(self, request):
        serializer = RegistrationSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        user = serializer.save()
        log_auth_event("register", request, user=user)
        return Response(UserMeSerializer(user).data, status=status.HTTP_201_CREATED)


class PasswordChangeView(APIView):
    permission_classes = [IsAuthenticated]
    throttle_scope = "profile"

    @extend_schema(tags=["User Endpoints"], summary="Change password", request=PasswordChangeSerializer)
    def post(self, request):
        serializer = PasswordChangeSerializer(data=request.data, context={"request": request})
        serializer.is_valid(raise_exception=True)
        change_password(user=request.user, new_password=serializer.validated_data["new_password"])
        log_auth_event("password_change", request, user=request.user)
        return Response({"detail": "Password changed."}, status=status.HTTP_200_OK)


class SignOutView(APIView):
    throttle_classes = [ScopedRateThrottle]
    throttle_scope = "signout"
    permission_classes = [AllowAny]

    @extend_schema(tags=["User Endpoints"], request=SignOutSerializer)
    def post(self, request):
        refresh = request.data.get("refresh")
        if not refresh:
            return Response({"detail": "Refresh token is required."}, status=status.HTTP_400_BAD_REQUEST)
        try:
            RefreshToken(refresh).blacklist()
        except TokenError:
            log_auth_event("signout", request, status="invalid_token")
            return Response({"detail": "Invalid token."}, status=status.HTTP_400_BAD_REQUEST)
        log_auth_event("signout", request)
        return Response({"detail": "Signed out."}, status=status.HTTP_205_RESET_CONTENT)


class SignInView(TokenObtainPairView):
    throttle_classes = [ScopedRateThrottle]
    throttle_scope = "signin"
    serializer_class = EmailOrPhoneTokenObtainPairSerializer

    @extend_schema(tags=["User Endpoints"])
    def post(self, request, *args, **kwargs):
        resp = super().post(request, *args, **kwargs)
        log_auth_event("signin", request, status="success" if resp.status_code == 200 else "failed")
        return resp


class RefreshView(TokenRefreshView):
    throttle_classes = [ScopedRateThrottle]
    throttle_scope = "token_refresh"

    @extend_schema(tags=["User Endpoints"])
    def post(self, request, *args, **kwargs):
        return super().post(request, *args, **kwargs)
