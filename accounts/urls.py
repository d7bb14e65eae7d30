from django.urls import path

from . import views

urlpatterns = [
    path("register", views.UserRegistrationView.as_view(), name="register"),
    path("login", views.LoginView.as_view(), name="login"),
    path("logout", views.LogoutView.as_view(), name="logout"),
    path("me", views.CurrentUserView.as_view(), name="me"),
    path("admin/users", views.UserListView.as_view(), name="admin-users"),
    path("create-admin", views.CreateAdminView.as_view(), name="create-admin"),
]
