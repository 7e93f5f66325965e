import logging
from functools import wraps

from django.shortcuts import render

from store.utils import get_credential_store

logger = logging.getLogger("kidslearn")


def store_must_be_online(view_func):
    """
    Render the "service unavailable" page instead of calling the view when the
    hosted backend does not answer its health check.
    """
    @wraps(view_func)
    def wrapper(request, *args, **kwargs):
        if not get_credential_store().is_online():
            logger.error(f"Credential store offline, refusing {request.path}")
            return render(request, "store_unavailable.html", status=503)
        return view_func(request, *args, **kwargs)
    return wrapper
