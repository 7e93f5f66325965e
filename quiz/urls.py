from django.urls import path

from quiz import views

urlpatterns = [
    path("", views.quiz_view, name="quiz"),
    path("start/", views.start_quiz, name="start_quiz"),
    path("answer/", views.submit_answer, name="submit_answer"),
    path("restart/", views.restart_quiz, name="restart_quiz"),
]
