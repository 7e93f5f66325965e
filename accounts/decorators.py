from functools import wraps
from urllib.parse import urlencode

from django.conf import settings
from django.shortcuts import redirect, resolve_url


def redirect_to_login(request):
    login_url = resolve_url(settings.LOGIN_URL)
    return redirect(f"{login_url}?{urlencode({'next': request.get_full_path()})}")


def session_required(view_func):
    """Send visitors without a recorded username to the login page."""
    @wraps(view_func)
    def wrapper(request, *args, **kwargs):
        if not request.session_context.is_authenticated:
            return redirect_to_login(request)
        return view_func(request, *args, **kwargs)
    return wrapper


class SessionRequiredMixin:
    """Class-based view counterpart of ``session_required``."""

    def dispatch(self, request, *args, **kwargs):
        if not request.session_context.is_authenticated:
            return redirect_to_login(request)
        return super().dispatch(request, *args, **kwargs)
