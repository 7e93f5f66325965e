import logging

from django.conf import settings
from django.shortcuts import render
from django.views.decorators.http import require_GET

from accounts.decorators import session_required
from store.base import CredentialStoreError
from store.decorators import store_must_be_online
from store.utils import get_credential_store

logger = logging.getLogger("kidslearn")


@require_GET
@session_required
@store_must_be_online
def leaderboard_view(request):
    try:
        profiles = get_credential_store().top_profiles(settings.LEADERBOARD_SIZE)
    except CredentialStoreError as e:
        logger.error(e)
        return render(request, "leaderboard/leaderboard.html", {"rows": [], "error": str(e)})

    rows = [{"rank": index + 1, "profile": profile} for index, profile in enumerate(profiles)]
    return render(request, "leaderboard/leaderboard.html", {"rows": rows, "error": None})
