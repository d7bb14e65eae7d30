"""
URL configuration for campusvote project.

The JSON API lives under ``api/``; the Django admin site under ``admin/``.
"""
from django.contrib import admin
from django.urls import include, path

api_urlpatterns = [
    path("", include("accounts.urls")),
    path("", include("candidates.urls")),
    path("", include("voting.urls")),
]

urlpatterns = [
    path("api/", include(api_urlpatterns)),
    path("admin/", admin.site.urls),
]
