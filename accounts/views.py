# accounts/views.py
import logging

from django.contrib import messages
from django.shortcuts import redirect
from django.urls import reverse_lazy
from django.utils.http import url_has_allowed_host_and_scheme
from django.views.decorators.http import require_POST
from django.views.generic import FormView, TemplateView

from accounts.forms import LoginForm, SignUpForm
from store.base import AuthenticationError, CredentialStoreError, ProfileError
from store.utils import get_credential_store

logger = logging.getLogger("kidslearn")

PENDING_EMAIL_KEY = "pending_confirmation_email"


class SignUpView(FormView):
    form_class = SignUpForm
    template_name = "registration/register.html"
    success_url = reverse_lazy("home")

    def form_valid(self, form):
        store = get_credential_store()

        try:
            identity = store.sign_up(email=form.cleaned_data["email"],
                                     password=form.cleaned_data["password"],
                                     username=form.cleaned_data["username"])
        except AuthenticationError as e:
            logger.error(e)
            form.add_error(None, str(e))
            return self.form_invalid(form)

        if not identity.has_session:
            # Backend wants the address confirmed before the first login
            self.request.session[PENDING_EMAIL_KEY] = identity.email
            return redirect("confirm_email")

        try:
            profile = store.ensure_profile(identity)
        except ProfileError as e:
            logger.error(e)
            form.add_error(None, "Error creating profile.")
            return self.form_invalid(form)

        self.request.session_context.set(identity.id, profile.username, identity.access_token)
        return super().form_valid(form)


class LoginView(FormView):
    form_class = LoginForm
    template_name = "registration/login.html"
    success_url = reverse_lazy("home")

    def form_valid(self, form):
        store = get_credential_store()

        try:
            identity = store.sign_in(email=form.cleaned_data["email"], password=form.cleaned_data["password"])
        except AuthenticationError as e:
            logger.error(e)
            form.add_error(None, "Incorrect email or password.")
            return self.form_invalid(form)

        try:
            profile = store.get_profile(identity.id)
        except ProfileError as e:
            logger.error(e)
            form.add_error(None, "Error fetching profile.")
            return self.form_invalid(form)

        if profile is None:
            try:
                profile = store.create_profile(identity.id, identity.username)
            except ProfileError as e:
                logger.error(e)
                form.add_error(None, "Error creating profile.")
                return self.form_invalid(form)

        logger.info(f"User logged in: {profile.username}")
        self.request.session_context.set(identity.id, profile.username, identity.access_token)
        return super().form_valid(form)

    def get_success_url(self):
        next_url = self.request.GET.get("next", "")
        if next_url and url_has_allowed_host_and_scheme(next_url, allowed_hosts={self.request.get_host()},
                                                        require_https=self.request.is_secure()):
            return next_url
        return super().get_success_url()


@require_POST
def logout_view(request):
    try:
        get_credential_store().sign_out(request.session_context.access_token)
    except CredentialStoreError as e:
        logger.error(e)

    request.session_context.clear()
    return redirect("login")


class ConfirmEmailView(TemplateView):
    template_name = "registration/confirm_email.html"

    def get_context_data(self, **kwargs):
        context = super().get_context_data(**kwargs)
        context["email"] = self.request.session.get(PENDING_EMAIL_KEY)
        return context


def confirm_email_handler(request):
    token_hash = request.GET.get("token_hash")

    if not token_hash:
        logger.error("Confirmation token not found in URL")
        messages.error(request, "That confirmation link is not valid.")
        return redirect("login")

    store = get_credential_store()

    try:
        identity = store.verify_email(token_hash)
    except AuthenticationError as e:
        logger.error(f"Error confirming email: {e}")
        messages.error(request, "That confirmation link is not valid or has expired.")
        return redirect("login")

    try:
        profile = store.ensure_profile(identity)
    except ProfileError as e:
        logger.error(f"Error creating profile: {e}")
        messages.error(request, "Error creating profile.")
        return redirect("login")

    logger.info(f"Profile ready for {profile.username}")
    request.session_context.set(identity.id, profile.username, identity.access_token)
    return redirect("home")
