from django.urls import path

from .views import VoteCreateView, VoteRecordListView

urlpatterns = [
    path("vote", VoteCreateView.as_view(), name="vote"),
    path("admin/votes", VoteRecordListView.as_view(), name="admin-votes"),
]
