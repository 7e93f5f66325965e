import logging

from django.conf import settings

from store.base import AuthIdentity, AuthenticationError, CredentialStore, CredentialStoreError, DEFAULT_LEVEL, \
    Profile, ProfileError
from store.utils import get_supabase_client, is_supabase_online, new_supabase_auth_client

logger = logging.getLogger("kidslearn")

QUIZZES_TABLE = "quizzes"
PROGRESS_TABLE = "user_progress"
PROFILES_TABLE = "profiles"


class SupabaseCredentialStore(CredentialStore):
    """Credential store backed by a hosted Supabase project."""

    def _data_client(self):
        client = get_supabase_client()
        if client is None:
            raise CredentialStoreError("Supabase client not initialized")
        return client

    def _auth_client(self):
        client = new_supabase_auth_client()
        if client is None:
            raise AuthenticationError("Supabase client not initialized")
        return client

    def is_online(self):
        return is_supabase_online()

    def fetch_quizzes(self):
        try:
            response = (self._data_client().table(QUIZZES_TABLE)
                        .select("id, question, options, correct_answer, difficulty")
                        .order("difficulty")
                        .order("id")
                        .execute())
        except CredentialStoreError:
            raise
        except Exception as e:
            logger.error(e)
            raise CredentialStoreError(str(e)) from e

        return response.data or []

    def upsert_quizzes(self, rows):
        try:
            self._data_client().table(QUIZZES_TABLE).upsert(rows).execute()
        except CredentialStoreError:
            raise
        except Exception as e:
            logger.error(e)
            raise CredentialStoreError(str(e)) from e

    def insert_result(self, user_id, quiz_id, score):
        try:
            self._data_client().table(PROGRESS_TABLE).insert(
                {"user_id": user_id, "quiz_id": quiz_id, "score": score}
            ).execute()
        except CredentialStoreError:
            raise
        except Exception as e:
            logger.error(e)
            raise CredentialStoreError(str(e)) from e

    def get_profile(self, user_id):
        try:
            response = (self._data_client().table(PROFILES_TABLE)
                        .select("*")
                        .eq("id", user_id)
                        .limit(1)
                        .execute())
        except CredentialStoreError as e:
            raise ProfileError(str(e)) from e
        except Exception as e:
            logger.error(e)
            raise ProfileError(str(e)) from e

        if not response.data:
            return None
        return Profile.from_row(response.data[0])

    def create_profile(self, user_id, username):
        row = {
            "id": user_id,
            "username": username,
            "current_level": DEFAULT_LEVEL,
            "total_score": 0,
        }
        try:
            self._data_client().table(PROFILES_TABLE).insert(row).execute()
        except Exception as e:
            logger.error(e)
            raise ProfileError(str(e)) from e

        return Profile.from_row(row)

    def update_total_score(self, user_id, total_score):
        try:
            (self._data_client().table(PROFILES_TABLE)
             .update({"total_score": total_score})
             .eq("id", user_id)
             .execute())
        except Exception as e:
            logger.error(e)
            raise ProfileError(str(e)) from e

    def top_profiles(self, limit):
        try:
            response = (self._data_client().table(PROFILES_TABLE)
                        .select("*")
                        .order("total_score", desc=True)
                        .limit(limit)
                        .execute())
        except CredentialStoreError:
            raise
        except Exception as e:
            logger.error(e)
            raise CredentialStoreError(str(e)) from e

        return [Profile.from_row(row) for row in response.data or []]

    def sign_up(self, email, password, username):
        credentials = {
            "email": email,
            "password": password,
            "options": {"data": {"username": username}},
        }
        if settings.EMAIL_CONFIRMATION_REDIRECT_URL:
            credentials["options"]["email_redirect_to"] = settings.EMAIL_CONFIRMATION_REDIRECT_URL

        try:
            response = self._auth_client().auth.sign_up(credentials)
        except AuthenticationError:
            raise
        except Exception as e:
            logger.error(e)
            raise AuthenticationError(str(e)) from e

        if response.user is None:
            raise AuthenticationError("Sign up did not return a user")

        return self._identity(response, fallback_username=username)

    def sign_in(self, email, password):
        try:
            response = self._auth_client().auth.sign_in_with_password({"email": email, "password": password})
        except AuthenticationError:
            raise
        except Exception as e:
            logger.error(e)
            raise AuthenticationError(str(e)) from e

        if response.user is None:
            raise AuthenticationError("Sign in did not return a user")

        return self._identity(response)

    def verify_email(self, token_hash):
        try:
            response = self._auth_client().auth.verify_otp({"token_hash": token_hash, "type": "email"})
        except AuthenticationError:
            raise
        except Exception as e:
            logger.error(e)
            raise AuthenticationError(str(e)) from e

        if response.user is None:
            raise AuthenticationError("Email confirmation did not return a user")

        return self._identity(response)

    def sign_out(self, access_token):
        if not access_token:
            return
        try:
            self._data_client().auth.admin.sign_out(access_token)
        except CredentialStoreError:
            raise
        except Exception as e:
            logger.error(e)
            raise AuthenticationError(str(e)) from e

    @staticmethod
    def _identity(response, fallback_username=""):
        user = response.user
        metadata = user.user_metadata or {}
        session = response.session
        return AuthIdentity(
            id=str(user.id),
            email=user.email or "",
            username=metadata.get("username") or fallback_username,
            has_session=session is not None,
            access_token=session.access_token if session is not None else "",
        )
