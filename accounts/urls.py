from django.urls import path

from accounts import views

urlpatterns = [
    path("register/", views.SignUpView.as_view(), name="register"),
    path("login/", views.LoginView.as_view(), name="login"),
    path("logout/", views.logout_view, name="logout"),
    path("confirm-email/", views.ConfirmEmailView.as_view(), name="confirm_email"),
    path("confirm/", views.confirm_email_handler, name="confirm_email_handler"),
]
