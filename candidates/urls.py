from django.urls import path

from .views import CandidateCreateView, CandidateListView, ResultsView

urlpatterns = [
    path("candidates", CandidateListView.as_view(), name="candidates"),
    path("admin/candidates", CandidateCreateView.as_view(), name="admin-candidates"),
    path("results", ResultsView.as_view(), name="results"),
]
