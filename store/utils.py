import logging
from functools import lru_cache

import requests
from django.conf import settings
from supabase import create_client
from supabase.client import ClientOptions

logger = logging.getLogger("kidslearn")


@lru_cache(maxsize=1)
def get_supabase_client():
    """Shared client for table reads and writes, authorised with the project key."""

    try:
        client = create_client(
            settings.SUPABASE_URL,
            settings.SUPABASE_KEY,
            options=ClientOptions(postgrest_client_timeout=settings.SUPABASE_TIMEOUT),
        )
    except Exception as e:
        logger.error("Failed to create the Supabase data client")
        logger.error(e)
        return None

    else:
        return client


def new_supabase_auth_client():
    """
    Fresh client for a single sign-up / sign-in / verification call.
    Signing in changes the session held by a client, so these never touch the
    shared data client.
    """

    try:
        client = create_client(
            settings.SUPABASE_URL,
            settings.SUPABASE_KEY,
            options=ClientOptions(persist_session=False, auto_refresh_token=False),
        )
    except Exception as e:
        logger.error("Failed to create a Supabase auth client")
        logger.error(e)
        return None

    else:
        return client


def is_supabase_online():
    try:
        response = requests.get(
            f"{settings.SUPABASE_URL}/auth/v1/health",
            headers={"apikey": settings.SUPABASE_KEY},
            timeout=settings.SUPABASE_HEALTH_TIMEOUT,
        )
        return response.status_code == 200
    except requests.RequestException:
        return False


_stores = {}


def get_credential_store():
    """Return the process-wide store selected by settings.CREDENTIAL_STORE."""
    kind = settings.CREDENTIAL_STORE

    if kind not in _stores:
        if kind == "supabase":
            from store.supabase_store import SupabaseCredentialStore
            _stores[kind] = SupabaseCredentialStore()
        elif kind == "memory":
            from store.memory import InMemoryCredentialStore
            _stores[kind] = InMemoryCredentialStore()
        else:
            raise ValueError(f"Unknown CREDENTIAL_STORE {kind!r}")

    return _stores[kind]


def reset_credential_store():
    _stores.clear()
