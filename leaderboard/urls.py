from django.urls import path

from leaderboard import views

urlpatterns = [
    path("", views.leaderboard_view, name="leaderboard"),
]
