"""Auth and account routes under /api/v1/."""

from django.urls import path

from .views import CurrentUserView, PasswordChangeView, RefreshView, RegisterView, SignInView, SignOutView

urlpatterns = [
    path("auth/signin/", SignInView.as_view(), name="signin"),
    path("auth/refresh/", RefreshView.as_view(), name="token_refresh"),
    path("auth/signout/", SignOutView.as_view(), name="signout"),
    path("auth/register/", RegisterView.as_view(), name="register"),
    path("account/profile/", CurrentUserView.as_view(), name="profile"),
    path("account/password/", PasswordChangeView.as_view(), name="password-change"),
]
