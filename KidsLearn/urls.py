from django.urls import include, path

from KidsLearn.views import HomePageView

urlpatterns = [
    path("", HomePageView.as_view(), name="home"),
    path("accounts/", include("accounts.urls")),
    path("quizzes/", include("quiz.urls")),
    path("leaderboard/", include("leaderboard.urls")),
]
